"""
Submission validation.

Checks a written submission against length bounds and asks the language
service whether it actually addresses the assigned topic.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.config import Config
from core.models import Language


class RejectionReason(str, Enum):
    """Why a submission was not accepted."""
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    OFF_TOPIC = "off_topic"


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "ValidationResult":
        return cls(accepted=False, reason=reason)


async def validate_submission(
    text: str,
    language: Language,
    topic: str,
    relevance_checker,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> ValidationResult:
    """
    Validate a submission, short-circuiting on the first failed check.

    Args:
        text: Submitted text (typed or extracted from a photo)
        language: User's interface language; rejection messages are
            localized by the caller, the checks themselves do not depend on it
        topic: Topic string the text must address
        relevance_checker: Object with an async ``is_relevant(text, topic)``
        min_length: Minimum length in characters (Config.MIN_SUBMISSION_LENGTH)
        max_length: Maximum length in characters (Config.MAX_SUBMISSION_LENGTH)

    Returns:
        ValidationResult

    Raises:
        LanguageServiceError: the relevance check itself failed
    """
    if min_length is None:
        min_length = Config.MIN_SUBMISSION_LENGTH
    if max_length is None:
        max_length = Config.MAX_SUBMISSION_LENGTH

    normalized = (text or "").strip()

    if len(normalized) < min_length:
        return ValidationResult.rejected(RejectionReason.TOO_SHORT)
    if len(normalized) > max_length:
        return ValidationResult.rejected(RejectionReason.TOO_LONG)

    if not await relevance_checker.is_relevant(normalized, topic):
        return ValidationResult.rejected(RejectionReason.OFF_TOPIC)

    return ValidationResult.ok()
