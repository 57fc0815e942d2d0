"""
Data models for the writing practice bot.

This module defines all data structures used throughout the system:
- User information and chosen interface language
- Topic catalog entries with per-language text
- Assignments and their lifecycle states
- References to outbound Telegram messages
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, List


class Language(str, Enum):
    """Interface languages a user can choose."""
    EN = "EN"
    RU = "RU"
    DE = "DE"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["Language"]:
        """Return the language for a code like "de" or "DE", or None."""
        if not raw:
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


class AssignmentState(str, Enum):
    """Assignment lifecycle states."""
    ACTIVE = "active"          # Topic given, awaiting submission
    SUBMITTED = "submitted"    # Valid submission received, feedback given
    DONE = "done"              # User moved on after submitting
    CANCELLED = "cancelled"    # User asked for another topic before submitting

    @property
    def is_terminal(self) -> bool:
        return self in (AssignmentState.DONE, AssignmentState.CANCELLED)


NON_TERMINAL_STATES = (AssignmentState.ACTIVE, AssignmentState.SUBMITTED)


@dataclass(frozen=True)
class MessageRef:
    """Reference to a message sent by the bot."""
    chat_id: int
    message_id: int


@dataclass
class User:
    """A bot user."""
    user_id: int
    username: Optional[str]
    chat_id: int
    language: Language
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Topic:
    """Writing prompt with per-language title, description and keywords."""
    topic_id: int
    titles: Dict[Language, str]
    descriptions: Dict[Language, str] = field(default_factory=dict)
    keywords: Dict[Language, List[str]] = field(default_factory=dict)
    active: bool = True

    def _localized(self, values: dict, language: Language):
        if language in values:
            return values[language]
        # German is the practice language, so its text always exists in a complete catalog
        if Language.DE in values:
            return values[Language.DE]
        return next(iter(values.values()), None)

    def title(self, language: Language) -> str:
        return self._localized(self.titles, language) or ""

    def description(self, language: Language) -> str:
        return self._localized(self.descriptions, language) or ""

    def keywords_for(self, language: Language) -> List[str]:
        return list(self._localized(self.keywords, language) or [])

    @property
    def canonical_title(self) -> str:
        """Topic string used for relevance checks."""
        return self.title(Language.DE)


@dataclass
class Assignment:
    """One user's writing task tied to a topic."""
    assignment_id: int
    user_id: int
    topic: Topic
    state: AssignmentState
    created_at: datetime
    updated_at: datetime
    message_ref: Optional[MessageRef] = None

    def is_active(self) -> bool:
        return not self.state.is_terminal
