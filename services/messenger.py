"""
Messaging transport interface.

The orchestrator talks to users only through this interface; the Telegram
implementation lives in utils.telegram_helpers.TelegramMessenger.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple

from core.models import MessageRef


class Messenger(ABC):
    """
    Abstract messaging transport.

    Implementations raise core.errors.DeliveryError when a message cannot be
    delivered or edited.
    """

    @abstractmethod
    async def send_text(self, chat_id: int, text: str) -> MessageRef:
        """Send a plain message."""
        pass

    @abstractmethod
    async def send_text_with_action(self, chat_id: int, text: str, action_label: str, action_id: str) -> MessageRef:
        """Send a message with a single inline button."""
        pass

    @abstractmethod
    async def send_choice(self, chat_id: int, text: str, options: List[Tuple[str, str]]) -> MessageRef:
        """Send a message with one inline button per (label, action_id) option."""
        pass

    @abstractmethod
    async def clear_actions(self, message_ref: MessageRef):
        """Remove inline buttons from a previously sent message."""
        pass

    @abstractmethod
    async def download_media(self, media_ref: str) -> bytes:
        """Download a file the user sent."""
        pass
