"""
Telegram helper utilities.

Keyboards, long-message splitting and the aiogram-backed Messenger.
"""

import asyncio
import io
import logging
from typing import List, Tuple, Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from core.errors import DeliveryError
from core.models import MessageRef
from services.messenger import Messenger

logger = logging.getLogger(__name__)

# Margin below Telegram's 4096 character limit
MAX_MESSAGE_LENGTH = 4000


def create_action_keyboard(options: List[Tuple[str, str]]) -> InlineKeyboardMarkup:
    """Create an inline keyboard with all (label, callback_data) options in one row."""
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text=label, callback_data=action_id) for label, action_id in options]
    ])


def split_long_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """
    Split a long message into parts, preferring paragraph and line breaks.

    Args:
        text: Message text
        max_length: Maximum length of one part

    Returns:
        List of non-empty parts
    """
    if len(text) <= max_length:
        return [text]

    parts = []
    current_part = ""

    def _flush():
        nonlocal current_part
        if current_part and current_part.strip():
            parts.append(current_part)
        current_part = ""

    for paragraph in text.split("\n\n"):
        if len(current_part) + len(paragraph) + 2 <= max_length:
            current_part = f"{current_part}\n\n{paragraph}" if current_part else paragraph
            continue

        _flush()
        if len(paragraph) <= max_length:
            current_part = paragraph
            continue

        # Paragraph alone is too long: go line by line, hard-cutting overlong lines
        for line in paragraph.split("\n"):
            while len(line) > max_length:
                _flush()
                parts.append(line[:max_length])
                line = line[max_length:]
            if len(current_part) + len(line) + 1 <= max_length:
                current_part = f"{current_part}\n{line}" if current_part else line
            else:
                _flush()
                current_part = line

    _flush()
    return parts or [text[:max_length]]


class TelegramMessenger(Messenger):
    """Messenger implementation on top of an aiogram Bot."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def _send(self, chat_id: int, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None) -> MessageRef:
        if not text or not text.strip():
            logger.warning(f"Attempted to send empty message to {chat_id}, using zero-width space")
            text = "\u200B"

        parts = split_long_message(text)
        try:
            for part in parts[:-1]:
                await self.bot.send_message(chat_id, part, parse_mode=None)
                await asyncio.sleep(0.2)
            # Buttons go on the last part so they stay under the whole text
            message = await self.bot.send_message(chat_id, parts[-1], reply_markup=reply_markup, parse_mode=None)
        except TelegramAPIError as e:
            logger.error(f"Failed to send message to {chat_id}: {e}", exc_info=True)
            raise DeliveryError(f"send_message to {chat_id} failed: {e}") from e
        return MessageRef(chat_id=message.chat.id, message_id=message.message_id)

    async def send_text(self, chat_id: int, text: str) -> MessageRef:
        return await self._send(chat_id, text)

    async def send_text_with_action(self, chat_id: int, text: str, action_label: str, action_id: str) -> MessageRef:
        return await self._send(chat_id, text, create_action_keyboard([(action_label, action_id)]))

    async def send_choice(self, chat_id: int, text: str, options: List[Tuple[str, str]]) -> MessageRef:
        return await self._send(chat_id, text, create_action_keyboard(options))

    async def clear_actions(self, message_ref: MessageRef):
        try:
            await self.bot.edit_message_reply_markup(
                chat_id=message_ref.chat_id,
                message_id=message_ref.message_id,
                reply_markup=None,
            )
        except TelegramAPIError as e:
            raise DeliveryError(
                f"Could not remove buttons from message {message_ref.message_id} in {message_ref.chat_id}: {e}"
            ) from e

    async def download_media(self, media_ref: str) -> bytes:
        buf = io.BytesIO()
        try:
            await self.bot.download(media_ref, destination=buf)
        except TelegramAPIError as e:
            logger.error(f"Failed to download file {media_ref}: {e}", exc_info=True)
            raise DeliveryError(f"download of {media_ref} failed: {e}") from e
        return buf.getvalue()
