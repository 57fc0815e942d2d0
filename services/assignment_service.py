"""
Assignment service for managing the assignment lifecycle.

Each user has at most one assignment in ACTIVE or SUBMITTED state:

    ACTIVE --submit--> SUBMITTED --advance--> DONE
    ACTIVE --advance--> CANCELLED

Terminal assignments are kept so that topics are never repeated.
"""

import logging
from typing import Optional, Tuple, Union

from core.database import Database
from core.errors import (
    InconsistentAssignmentsError,
    InvalidTransitionError,
    NoActiveAssignmentError,
)
from core.models import User, Assignment, AssignmentState, MessageRef
from services.topic_picker import pick_topic, TopicsExhausted

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    AssignmentState.ACTIVE: (AssignmentState.SUBMITTED, AssignmentState.CANCELLED),
    AssignmentState.SUBMITTED: (AssignmentState.DONE,),
    AssignmentState.DONE: (),
    AssignmentState.CANCELLED: (),
}


def check_transition(assignment: Assignment, new_state: AssignmentState):
    """Raise InvalidTransitionError unless assignment may move to new_state."""
    if new_state not in ALLOWED_TRANSITIONS[assignment.state]:
        raise InvalidTransitionError(assignment.assignment_id, assignment.state, new_state)


def advance_target(assignment: Assignment) -> AssignmentState:
    """Terminal state an assignment reaches when the user moves on."""
    if assignment.state == AssignmentState.SUBMITTED:
        return AssignmentState.DONE
    if assignment.state == AssignmentState.ACTIVE:
        return AssignmentState.CANCELLED
    raise InvalidTransitionError(assignment.assignment_id, assignment.state, AssignmentState.DONE)


class AssignmentService:
    """Service for assignment management."""

    def __init__(self, db: Database, rng=None):
        self.db = db
        self.rng = rng

    async def find_current_assignment(self, user: User) -> Optional[Assignment]:
        """Return the user's ACTIVE/SUBMITTED assignment, or None if there is none."""
        assignments = await self.db.get_active_assignments(user.user_id)
        if len(assignments) > 1:
            ids = [a.assignment_id for a in assignments]
            logger.error(f"Invariant violated: user {user.user_id} has active assignments {ids}")
            raise InconsistentAssignmentsError(user.user_id, ids)
        return assignments[0] if assignments else None

    async def get_current_assignment(self, user: User) -> Assignment:
        """
        Return the user's current assignment.

        Raises NoActiveAssignmentError if there is none and
        InconsistentAssignmentsError if there are several.
        """
        assignment = await self.find_current_assignment(user)
        if assignment is None:
            raise NoActiveAssignmentError(user.user_id)
        return assignment

    async def _pick_next_topic(self, user: User):
        seen_topic_ids = await self.db.get_seen_topic_ids(user.user_id)
        catalog = await self.db.get_active_topics()
        return pick_topic(seen_topic_ids, catalog, self.rng)

    async def assign_new_topic(self, user: User) -> Union[Assignment, TopicsExhausted]:
        """
        Give the user a topic they haven't had before.

        Returns the new ACTIVE assignment or TopicsExhausted. Raises
        AssignmentConflictError if the user still has a non-terminal assignment.
        """
        topic = await self._pick_next_topic(user)
        if isinstance(topic, TopicsExhausted):
            logger.info(f"No unseen topics left for user {user.user_id} ({topic.seen_count} seen)")
            return topic

        assignment = await self.db.create_assignment(user.user_id, topic.topic_id)
        logger.info(
            f"Assignment {assignment.assignment_id} created for user {user.user_id} (topic {topic.topic_id})"
        )
        return assignment

    async def submit(self, assignment: Assignment) -> Assignment:
        """Mark an ACTIVE assignment as SUBMITTED."""
        check_transition(assignment, AssignmentState.SUBMITTED)
        await self.db.update_assignment_state(assignment, AssignmentState.SUBMITTED)
        assignment.state = AssignmentState.SUBMITTED
        logger.info(f"Assignment {assignment.assignment_id} submitted")
        return assignment

    async def advance(self, assignment: Assignment) -> AssignmentState:
        """Close the assignment: SUBMITTED -> DONE, ACTIVE -> CANCELLED."""
        target = advance_target(assignment)
        await self.db.update_assignment_state(assignment, target)
        assignment.state = target
        logger.info(f"Assignment {assignment.assignment_id} -> {target.value}")
        return target

    async def advance_and_reassign(
        self, user: User, current: Optional[Assignment] = None
    ) -> Union[Tuple[AssignmentState, Assignment], TopicsExhausted]:
        """
        Close the current assignment and give the user a new one.

        The next topic is picked first; when the catalog is exhausted nothing
        is changed and TopicsExhausted is returned. Pass current to reuse an
        assignment the caller has already loaded.
        """
        if current is None:
            current = await self.get_current_assignment(user)
        topic = await self._pick_next_topic(user)
        if isinstance(topic, TopicsExhausted):
            logger.info(f"User {user.user_id} asked for a new topic but all {topic.seen_count} are used")
            return topic

        target = advance_target(current)
        new_assignment = await self.db.replace_assignment(current, target, topic.topic_id)
        current.state = target
        logger.info(
            f"Assignment {current.assignment_id} -> {target.value}; "
            f"assignment {new_assignment.assignment_id} created (topic {topic.topic_id})"
        )
        return target, new_assignment

    async def attach_message(self, assignment: Assignment, message_ref: Optional[MessageRef]):
        """Store the message that carries the assignment's inline button."""
        await self.db.set_assignment_message(assignment.assignment_id, message_ref)
        assignment.message_ref = message_ref
