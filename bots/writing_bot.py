"""
Writing Practice Bot

Handles:
- Language selection (/start, /language)
- Daily writing assignments
- Text and photo submissions with feedback
- "Next assignment" button

Every Telegram update is decoded here into one core.events variant and
handed to the InteractionOrchestrator.
"""

import logging
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.types import Message, CallbackQuery

from core.config import Config
from core.database import Database
from core.errors import WritingBotError
from core.events import (
    InboundEvent,
    Sender,
    StartCommand,
    LanguageSelected,
    TextSubmission,
    PhotoSubmission,
    ContinueRequested,
    UnknownEvent,
    NEW_ASSIGNMENT_ACTION,
    LANGUAGE_ACTION_PREFIX,
)
from core.models import Language, MessageRef
from services.assignment_service import AssignmentService
from services.language_service import LanguageService, OpenAILanguageService
from services.localization import Localizer
from services.orchestrator import InteractionOrchestrator
from services.request_gate import RequestGate, SqliteRequestGate, create_request_gate
from services.topic_loader import TopicLoader
from services.user_service import UserService
from utils.telegram_helpers import TelegramMessenger

logger = logging.getLogger(__name__)


def _sender(from_user, chat_id: int) -> Sender:
    return Sender(user_id=from_user.id, username=from_user.username, chat_id=chat_id)


def event_from_message(message: Message) -> Optional[InboundEvent]:
    """Decode an incoming message. Returns None for messages without a sender."""
    if message.from_user is None:
        return None
    sender = _sender(message.from_user, message.chat.id)

    if message.photo:
        # Telegram lists sizes in ascending order; the last one is the largest
        return PhotoSubmission(sender=sender, media_ref=message.photo[-1].file_id)

    text = (message.text or "").strip()
    if not text:
        return UnknownEvent(sender=sender, description=f"content_type={message.content_type}")

    if text.startswith("/"):
        # "/start@MyBot payload" -> "/start"
        command = text.split()[0].split("@")[0].lower()
        if command == "/start":
            return StartCommand(sender=sender, reset=True)
        if command == "/language":
            return StartCommand(sender=sender, reset=False)
        return UnknownEvent(sender=sender, description=f"command={command}")

    return TextSubmission(sender=sender, text=text)


def event_from_callback(callback: CallbackQuery) -> InboundEvent:
    """Decode an inline button press."""
    data = callback.data or ""
    message_ref = None
    if callback.message is not None:
        chat_id = callback.message.chat.id
        message_ref = MessageRef(chat_id=chat_id, message_id=callback.message.message_id)
    else:
        # Button on a message too old for Telegram to include; answer in the private chat
        chat_id = callback.from_user.id
    sender = _sender(callback.from_user, chat_id)

    if data.startswith(LANGUAGE_ACTION_PREFIX):
        language = Language.parse(data[len(LANGUAGE_ACTION_PREFIX):])
        if language is None:
            return UnknownEvent(sender=sender, description=f"callback={data}")
        return LanguageSelected(sender=sender, language=language, message_ref=message_ref)

    if data == NEW_ASSIGNMENT_ACTION:
        return ContinueRequested(sender=sender, message_ref=message_ref)

    return UnknownEvent(sender=sender, description=f"callback={data}")


class WritingBot:
    """Writing Practice Bot implementation."""

    def __init__(
        self,
        db: Optional[Database] = None,
        language_service: Optional[LanguageService] = None,
        gate: Optional[RequestGate] = None,
        bot: Optional[Bot] = None,
    ):
        # Plain text: feedback from the language service may contain any characters
        self.bot = bot or Bot(token=Config.BOT_TOKEN, default=DefaultBotProperties(parse_mode=None))
        self.dp = Dispatcher()
        self.db = db or Database()
        self.user_service = UserService(self.db)
        self.assignment_service = AssignmentService(self.db)
        self.language_service = language_service or OpenAILanguageService()
        self.gate = gate or create_request_gate(self.db)
        self.topic_loader = TopicLoader()
        self.orchestrator = InteractionOrchestrator(
            user_service=self.user_service,
            assignment_service=self.assignment_service,
            gate=self.gate,
            language_service=self.language_service,
            messenger=TelegramMessenger(self.bot),
            localizer=Localizer(),
        )

        # Register handlers
        self._register_handlers()

    def _register_handlers(self):
        """Register all message and callback handlers."""
        self.dp.message.register(self.handle_message)
        self.dp.callback_query.register(self.handle_callback)

    async def _dispatch(self, event: InboundEvent):
        try:
            await self.orchestrator.handle(event)
        except WritingBotError as e:
            logger.error(
                f"Failed to handle {type(event).__name__} from user {event.sender.user_id}: {e}",
                exc_info=True,
            )
            raise

    async def handle_message(self, message: Message):
        """Handle any incoming message."""
        event = event_from_message(message)
        if event is None:
            return
        await self._dispatch(event)

    async def handle_callback(self, callback: CallbackQuery):
        """Handle inline button presses."""
        # Stop the loading spinner right away; processing may take a while
        await callback.answer()
        await self._dispatch(event_from_callback(callback))

    async def start(self):
        """Prepare storage and run long polling until stopped."""
        await self.db.connect()
        await self.topic_loader.seed(self.db)
        if isinstance(self.gate, SqliteRequestGate):
            await self.gate.clear_stale()

        logger.info("Writing Bot started")
        # aiogram stops polling on SIGINT/SIGTERM
        await self.dp.start_polling(self.bot)

    async def close(self):
        """Release connections."""
        if isinstance(self.language_service, OpenAILanguageService):
            await self.language_service.close()
        await self.db.close()
        await self.bot.session.close()
