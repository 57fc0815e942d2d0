"""
Language capability service.

Wraps the LLM calls the bot needs: reading handwritten text from a photo,
judging whether a text addresses a topic, and writing grammar feedback.

Any failure of the underlying API is raised as LanguageServiceError so that
callers can tell "the service is down" apart from a negative or empty answer.
"""

import base64
import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from core.config import Config
from core.errors import LanguageServiceError
from core.models import Language

logger = logging.getLogger(__name__)

_LANGUAGE_NAMES = {
    Language.EN: "English",
    Language.RU: "Russian",
    Language.DE: "German",
}

EXTRACT_TEXT_PROMPT = (
    "The image contains a handwritten or printed text in German. "
    "Transcribe it exactly as written, keeping the author's mistakes. "
    "Reply with the transcription only. If there is no readable text, reply with an empty message."
)

RELEVANCE_PROMPT = (
    "You check homework for a German writing course. "
    "Topic: \"{topic}\"\n\n"
    "Does the following text address this topic, at least loosely? "
    "Answer with a single word: YES or NO.\n\n"
    "Text:\n{text}"
)

FEEDBACK_PROMPT = (
    "You are a friendly German teacher. The student wrote the text below in German. "
    "Point out grammar, spelling and word-choice mistakes, show the corrected sentences, "
    "and finish with one or two tips. Write your explanations in {language}. "
    "Reply in plain text without Markdown.\n\n"
    "Text:\n{text}"
)


class LanguageService(ABC):
    """Abstract language capability service."""

    @abstractmethod
    async def extract_text(self, image_bytes: bytes) -> str:
        """Return the text on the image, or an empty string if nothing is readable."""
        pass

    @abstractmethod
    async def is_relevant(self, text: str, topic: str) -> bool:
        """Return True if text addresses topic."""
        pass

    @abstractmethod
    async def generate_feedback(self, text: str, language: Language) -> str:
        """Return feedback on text, explained in the given language."""
        pass


class OpenAILanguageService(LanguageService):
    """LanguageService backed by an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or Config.OPENAI_MODEL
        self.client = client or AsyncOpenAI(
            api_key=api_key or Config.OPENAI_API_KEY,
            base_url=base_url or Config.OPENAI_BASE_URL or None,
            timeout=timeout or Config.OPENAI_TIMEOUT_SECONDS,
            # Retries are the caller's decision
            max_retries=0,
        )

    async def _complete(self, content, operation: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                temperature=0,
            )
        except OpenAIError as e:
            logger.error(f"Language service call '{operation}' failed: {e}", exc_info=True)
            raise LanguageServiceError(f"{operation} failed: {e}") from e

        if not response.choices:
            raise LanguageServiceError(f"{operation} returned no choices")
        return (response.choices[0].message.content or "").strip()

    async def extract_text(self, image_bytes: bytes) -> str:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        content = [
            {"type": "text", "text": EXTRACT_TEXT_PROMPT},
            {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
        ]
        return await self._complete(content, "extract_text")

    async def is_relevant(self, text: str, topic: str) -> bool:
        answer = await self._complete(RELEVANCE_PROMPT.format(topic=topic, text=text), "is_relevant")
        return parse_yes_no(answer)

    async def generate_feedback(self, text: str, language: Language) -> str:
        prompt = FEEDBACK_PROMPT.format(language=_LANGUAGE_NAMES.get(language, "English"), text=text)
        feedback = await self._complete(prompt, "generate_feedback")
        if not feedback:
            raise LanguageServiceError("generate_feedback returned an empty answer")
        return feedback

    async def close(self):
        await self.client.close()


def parse_yes_no(answer: str) -> bool:
    """Interpret a YES/NO model answer; anything else counts as NO."""
    normalized = (answer or "").strip().strip(".!\"'`*").upper()
    return normalized.startswith("YES") or normalized.startswith("JA")
