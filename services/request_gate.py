"""
Per-user request gate.

Allows at most one inbound event per user to be processed at a time. A
second event arriving while the first is still in flight is dropped, not
queued.

Implementations:
- InMemoryRequestGate: a set of user ids, for a single bot process
- SqliteRequestGate: rows in the shared database, for several processes
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional, Set

from core.config import Config
from core.database import Database

logger = logging.getLogger(__name__)


class RequestGate(ABC):
    """Abstract per-user mutual exclusion guard."""

    @abstractmethod
    async def try_acquire(self, user_id: int) -> bool:
        """
        Mark user_id as busy.

        Returns True if the user was idle (caller now owns the gate),
        False if a previous request for this user is still in flight.
        """
        pass

    @abstractmethod
    async def release(self, user_id: int):
        """Mark user_id as idle. Safe to call when not acquired."""
        pass

    @asynccontextmanager
    async def hold(self, user_id: int):
        """
        Acquire for the duration of the block.

        Yields the acquire result; releases on every exit path when acquired.
        """
        acquired = await self.try_acquire(user_id)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(user_id)


class InMemoryRequestGate(RequestGate):
    """
    Gate backed by a set.

    try_acquire has no await between the membership check and the insert,
    so it is atomic within one event loop.
    """

    def __init__(self):
        self._in_flight: Set[int] = set()

    async def try_acquire(self, user_id: int) -> bool:
        if user_id in self._in_flight:
            return False
        self._in_flight.add(user_id)
        return True

    async def release(self, user_id: int):
        self._in_flight.discard(user_id)

    def is_busy(self, user_id: int) -> bool:
        return user_id in self._in_flight


class SqliteRequestGate(RequestGate):
    """Gate backed by the inflight_requests table (INSERT OR IGNORE)."""

    def __init__(self, db: Database, stale_after_seconds: Optional[int] = None):
        self.db = db
        if stale_after_seconds is None:
            stale_after_seconds = Config.REQUEST_GATE_STALE_SECONDS
        self.stale_after = timedelta(seconds=stale_after_seconds)

    async def try_acquire(self, user_id: int) -> bool:
        return await self.db.try_insert_inflight(user_id)

    async def release(self, user_id: int):
        await self.db.delete_inflight(user_id)

    async def clear_stale(self, now: Optional[datetime] = None) -> int:
        """
        Forget markers left behind by a process that crashed mid-request.

        Only markers older than stale_after are removed; other processes
        sharing the database keep their in-flight requests.
        """
        cutoff = (now or datetime.now(timezone.utc)) - self.stale_after
        removed = await self.db.clear_inflight(cutoff)
        if removed:
            logger.warning(f"Removed {removed} stale request gate markers (older than {cutoff.isoformat()})")
        return removed


def create_request_gate(db: Database, backend: str = None) -> RequestGate:
    """Build the gate selected by Config.REQUEST_GATE_BACKEND."""
    backend = (backend or Config.REQUEST_GATE_BACKEND or "memory").strip().lower()
    if backend == "sqlite":
        logger.info("Using SQLite request gate")
        return SqliteRequestGate(db)
    if backend != "memory":
        logger.warning(f"Unknown REQUEST_GATE_BACKEND '{backend}', using in-memory gate")
    return InMemoryRequestGate()
