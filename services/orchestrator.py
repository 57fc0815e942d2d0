"""
Interaction orchestrator.

Receives decoded inbound events, admits them through the per-user request
gate and drives validation, the assignment lifecycle, the language service
and the messaging transport.

Flow for one user:

    /start -> language buttons -> language chosen -> first assignment
    submission (text or photo) -> validated -> feedback + "next" button
    "next" button -> DONE/CANCELLED -> new assignment

Feedback is generated before the assignment is marked SUBMITTED, so an
external failure leaves state unchanged and the user can simply resend.
"""

import logging
from typing import Optional

from core.config import Config
from core.errors import DeliveryError, LanguageServiceError, NoActiveAssignmentError
from core.events import (
    InboundEvent,
    StartCommand,
    LanguageSelected,
    TextSubmission,
    PhotoSubmission,
    ContinueRequested,
    UnknownEvent,
    Sender,
    NEW_ASSIGNMENT_ACTION,
    language_action,
)
from core.models import User, Assignment, AssignmentState, MessageRef
from services.assignment_service import AssignmentService
from services.language_service import LanguageService
from services.localization import Localizer, LANGUAGE_BUTTONS
from services.messenger import Messenger
from services.request_gate import RequestGate
from services.submission_validator import validate_submission, RejectionReason
from services.topic_picker import TopicsExhausted
from services.user_service import UserService

logger = logging.getLogger(__name__)


class InteractionOrchestrator:
    """Top-level control flow for all inbound events."""

    def __init__(
        self,
        user_service: UserService,
        assignment_service: AssignmentService,
        gate: RequestGate,
        language_service: LanguageService,
        messenger: Messenger,
        localizer: Optional[Localizer] = None,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ):
        self.user_service = user_service
        self.assignment_service = assignment_service
        self.gate = gate
        self.language_service = language_service
        self.messenger = messenger
        self.localizer = localizer or Localizer()
        self.min_length = min_length if min_length is not None else Config.MIN_SUBMISSION_LENGTH
        self.max_length = max_length if max_length is not None else Config.MAX_SUBMISSION_LENGTH

    async def handle(self, event: InboundEvent) -> bool:
        """
        Process one inbound event.

        Returns False if the event was dropped because another event from the
        same user is still being processed, True otherwise.
        """
        if isinstance(event, StartCommand):
            await self._handle_start(event)
            return True

        user_id = event.sender.user_id
        async with self.gate.hold(user_id) as acquired:
            if not acquired:
                logger.warning(
                    f"Dropped {type(event).__name__} from user {user_id}: previous request still in flight"
                )
                return False
            await self._dispatch(event)
        return True

    async def _dispatch(self, event: InboundEvent):
        if isinstance(event, LanguageSelected):
            await self._handle_language_selected(event)
        elif isinstance(event, (TextSubmission, PhotoSubmission)):
            await self._handle_submission(event)
        elif isinstance(event, ContinueRequested):
            await self._handle_continue(event)
        elif isinstance(event, UnknownEvent):
            logger.debug(f"Ignoring unsupported update from user {event.sender.user_id}: {event.description}")
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")

    async def _get_user(self, sender: Sender) -> User:
        return await self.user_service.get_or_create_user(sender.user_id, sender.chat_id, sender.username)

    def _text(self, key: str, user: User, **kwargs) -> str:
        return self.localizer.text(key, user.language, **kwargs)

    # Start / language selection
    async def _handle_start(self, event: StartCommand):
        user = await self._get_user(event.sender)
        logger.info(f"User {user.user_id} opened language selection (reset={event.reset})")
        await self._send_language_selection(user)

    async def _send_language_selection(self, user: User):
        options = [(label, language_action(language)) for language, label in LANGUAGE_BUTTONS]
        await self.messenger.send_choice(user.chat_id, self._text("language_select", user), options)

    async def _handle_language_selected(self, event: LanguageSelected):
        user = await self._get_user(event.sender)
        await self.user_service.set_language(user, event.language)
        logger.info(f"User {user.user_id} selected language {event.language.value}")

        if event.message_ref:
            await self._clear_actions(event.message_ref)
        await self.messenger.send_text(user.chat_id, self._text("language_confirmation", user))

        if await self.assignment_service.find_current_assignment(user) is None:
            # First-time setup
            await self.messenger.send_text(user.chat_id, self._text("first_assignment_intro", user))
            await self._assign_and_send(user)

    # Assignments
    async def _assign_and_send(self, user: User) -> Optional[Assignment]:
        result = await self.assignment_service.assign_new_topic(user)
        if isinstance(result, TopicsExhausted):
            await self.messenger.send_text(user.chat_id, self._text("topics_exhausted", user))
            return None
        await self._send_assignment(user, result)
        return result

    async def _send_assignment(self, user: User, assignment: Assignment):
        topic = assignment.topic
        text = self._text(
            "assignment_text",
            user,
            title=topic.title(user.language),
            description=topic.description(user.language),
            keywords=", ".join(topic.keywords_for(user.language)),
        )
        message_ref = await self.messenger.send_text_with_action(
            user.chat_id, text, self._text("button_another_topic", user), NEW_ASSIGNMENT_ACTION
        )
        await self.assignment_service.attach_message(assignment, message_ref)

    async def _clear_actions(self, message_ref: MessageRef):
        try:
            await self.messenger.clear_actions(message_ref)
        except DeliveryError as e:
            logger.warning(f"Failed to remove buttons: {e}")

    # Submissions
    async def _handle_submission(self, event):
        sender = event.sender
        if await self.user_service.get_user(sender.user_id) is None:
            # First contact that isn't /start: ask for the language first
            user = await self._get_user(sender)
            await self._send_language_selection(user)
            return

        user = await self._get_user(sender)
        try:
            if isinstance(event, PhotoSubmission):
                text = await self._extract_photo_text(user, event.media_ref)
                if text is None:
                    return
                await self._process_submission(user, text, from_photo=True)
            else:
                await self._process_submission(user, event.text, from_photo=False)
        except LanguageServiceError as e:
            logger.error(f"Language service failed for user {user.user_id}: {e}", exc_info=True)
            await self.messenger.send_text(user.chat_id, self._text("service_unavailable", user))

    async def _extract_photo_text(self, user: User, media_ref: str) -> Optional[str]:
        try:
            image_bytes = await self.messenger.download_media(media_ref)
        except DeliveryError as e:
            logger.error(f"Could not download photo from user {user.user_id}: {e}")
            await self.messenger.send_text(user.chat_id, self._text("service_unavailable", user))
            return None

        text = (await self.language_service.extract_text(image_bytes)).strip()
        if not text:
            await self.messenger.send_text(user.chat_id, self._text("photo_unreadable", user))
            return None
        return text

    def _rejection_text(self, user: User, reason: RejectionReason, assignment: Assignment) -> str:
        if reason == RejectionReason.TOO_SHORT:
            return self._text("submission_too_short", user, min_length=self.min_length)
        if reason == RejectionReason.TOO_LONG:
            return self._text("submission_too_long", user, max_length=self.max_length)
        return self._text("submission_off_topic", user, topic=assignment.topic.title(user.language))

    async def _process_submission(self, user: User, text: str, from_photo: bool):
        try:
            assignment = await self.assignment_service.get_current_assignment(user)
        except NoActiveAssignmentError:
            await self.messenger.send_text(user.chat_id, self._text("no_assignment", user))
            return

        result = await validate_submission(
            text,
            user.language,
            assignment.topic.canonical_title,
            self.language_service,
            min_length=self.min_length,
            max_length=self.max_length,
        )
        if not result.accepted:
            logger.info(f"Submission from user {user.user_id} rejected: {result.reason.value}")
            await self.messenger.send_text(user.chat_id, self._rejection_text(user, result.reason, assignment))
            return

        # Feedback before submit(): a language service failure must leave the
        # assignment ACTIVE so that resending the same text is a clean retry.
        feedback = await self.language_service.generate_feedback(text.strip(), user.language)

        previous_ref = assignment.message_ref
        if assignment.state == AssignmentState.ACTIVE:
            await self.assignment_service.submit(assignment)
        if previous_ref:
            await self._clear_actions(previous_ref)

        if from_photo:
            feedback = f"{self._text('extracted_text', user, text=text)}\n\n{feedback}"
        message_ref = await self.messenger.send_text_with_action(
            user.chat_id,
            self._text("feedback", user, feedback=feedback),
            self._text("button_next_assignment", user),
            NEW_ASSIGNMENT_ACTION,
        )
        await self.assignment_service.attach_message(assignment, message_ref)

    # Next assignment
    async def _handle_continue(self, event: ContinueRequested):
        user = await self._get_user(event.sender)
        current = await self.assignment_service.find_current_assignment(user)

        # Buttons are only removed once a new assignment exists; on exhaustion
        # the pressed button stays usable for when the catalog grows.
        if current is None:
            # e.g. the catalog was empty when the language was chosen
            if await self._assign_and_send(user) is not None and event.message_ref:
                await self._clear_actions(event.message_ref)
            return

        result = await self.assignment_service.advance_and_reassign(user, current)
        if isinstance(result, TopicsExhausted):
            await self.messenger.send_text(user.chat_id, self._text("topics_exhausted", user))
            return

        previous_state, new_assignment = result
        if event.message_ref:
            await self._clear_actions(event.message_ref)
        if current.message_ref and current.message_ref != event.message_ref:
            # Button pressed on an older message; the current one still has its button
            await self._clear_actions(current.message_ref)

        key = "next_assignment_done" if previous_state == AssignmentState.DONE else "next_assignment_cancelled"
        await self.messenger.send_text(user.chat_id, self._text(key, user))
        await self._send_assignment(user, new_assignment)
