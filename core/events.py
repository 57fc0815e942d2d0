"""
Inbound events handled by the interaction orchestrator.

The bot adapter decodes each Telegram update into exactly one of these
variants; the orchestrator never looks at raw callback strings.
"""

from dataclasses import dataclass
from typing import Optional, Union

from core.models import Language, MessageRef


@dataclass(frozen=True)
class Sender:
    """Who sent the event and where to answer."""
    user_id: int
    username: Optional[str]
    chat_id: int


@dataclass(frozen=True)
class StartCommand:
    """/start or /language: show language selection."""
    sender: Sender
    reset: bool = False


@dataclass(frozen=True)
class LanguageSelected:
    sender: Sender
    language: Language
    message_ref: Optional[MessageRef] = None


@dataclass(frozen=True)
class TextSubmission:
    sender: Sender
    text: str


@dataclass(frozen=True)
class PhotoSubmission:
    """Photo of handwritten text; media_ref is the transport's file id."""
    sender: Sender
    media_ref: str


@dataclass(frozen=True)
class ContinueRequested:
    """User pressed the "new assignment" button."""
    sender: Sender
    message_ref: Optional[MessageRef] = None


@dataclass(frozen=True)
class UnknownEvent:
    sender: Sender
    description: str = ""


InboundEvent = Union[
    StartCommand,
    LanguageSelected,
    TextSubmission,
    PhotoSubmission,
    ContinueRequested,
    UnknownEvent,
]


# Inline button payloads
NEW_ASSIGNMENT_ACTION = "new_assignment"
LANGUAGE_ACTION_PREFIX = "set_language:"


def language_action(language: Language) -> str:
    return f"{LANGUAGE_ACTION_PREFIX}{language.value}"
