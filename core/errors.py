"""
Exception hierarchy for the writing practice bot.

Validation rejections and gate contention are not errors and never show up
here; see services.submission_validator and services.request_gate.
"""

from typing import Optional


class WritingBotError(Exception):
    """Base class for all bot errors."""


class LanguageServiceError(WritingBotError):
    """Transient failure of the external language capability service."""


class DeliveryError(WritingBotError):
    """The messaging transport failed to deliver or edit a message."""


class NoActiveAssignmentError(WritingBotError):
    """The user has no assignment in ACTIVE or SUBMITTED state."""

    def __init__(self, user_id: int):
        super().__init__(f"No active assignment found for user {user_id}")
        self.user_id = user_id


class InconsistentAssignmentsError(WritingBotError):
    """More than one non-terminal assignment exists for a user. Not recoverable."""

    def __init__(self, user_id: int, assignment_ids: Optional[list] = None):
        ids = assignment_ids or []
        super().__init__(
            f"Multiple active assignments found for user {user_id}: {ids}"
        )
        self.user_id = user_id
        self.assignment_ids = ids


class AssignmentConflictError(WritingBotError):
    """A new assignment was requested while a non-terminal one exists."""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} already has a non-terminal assignment")
        self.user_id = user_id


class InvalidTransitionError(WritingBotError):
    """An assignment state change that the lifecycle does not allow."""

    def __init__(self, assignment_id: int, current, target):
        super().__init__(
            f"Assignment {assignment_id}: cannot move from {current.value} to {target.value}"
        )
        self.assignment_id = assignment_id
        self.current = current
        self.target = target
