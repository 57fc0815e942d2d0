import asyncio
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from tempfile import TemporaryDirectory

from core.database import Database
from services.request_gate import (
    InMemoryRequestGate,
    SqliteRequestGate,
    create_request_gate,
)
from tests.fakes import TempDatabase


class GateBehaviour:
    """Checks shared by both gate backends; subclasses provide self.gate."""

    async def test_second_acquire_is_refused(self):
        self.assertTrue(await self.gate.try_acquire(1))
        self.assertFalse(await self.gate.try_acquire(1))

    async def test_users_are_independent(self):
        self.assertTrue(await self.gate.try_acquire(1))
        self.assertTrue(await self.gate.try_acquire(2))

    async def test_release_allows_next_request(self):
        await self.gate.try_acquire(1)
        await self.gate.release(1)

        self.assertTrue(await self.gate.try_acquire(1))

    async def test_release_without_acquire_is_harmless(self):
        await self.gate.release(42)

        self.assertTrue(await self.gate.try_acquire(42))

    async def test_hold_releases_on_error(self):
        with self.assertRaises(RuntimeError):
            async with self.gate.hold(1) as acquired:
                self.assertTrue(acquired)
                raise RuntimeError("handler failed")

        self.assertTrue(await self.gate.try_acquire(1))

    async def test_refused_hold_does_not_release_owner(self):
        async with self.gate.hold(1) as first:
            async with self.gate.hold(1) as second:
                self.assertTrue(first)
                self.assertFalse(second)
            # still held by the outer block
            self.assertFalse(await self.gate.try_acquire(1))

    async def test_concurrent_acquire_admits_exactly_one(self):
        results = await asyncio.gather(*(self.gate.try_acquire(7) for _ in range(10)))

        self.assertEqual(results.count(True), 1)


class TestInMemoryRequestGate(GateBehaviour, unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.gate = InMemoryRequestGate()

    async def test_is_busy(self):
        self.assertFalse(self.gate.is_busy(1))
        async with self.gate.hold(1):
            self.assertTrue(self.gate.is_busy(1))
        self.assertFalse(self.gate.is_busy(1))


class TestSqliteRequestGate(GateBehaviour, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._database = TempDatabase()
        self.db = await self._database.__aenter__()
        self.gate = SqliteRequestGate(self.db)

    async def asyncTearDown(self):
        await self._database.__aexit__(None, None, None)

    async def test_clear_stale_forgets_old_markers(self):
        await self.gate.try_acquire(1)

        # an hour later the marker is older than the default threshold
        removed = await self.gate.clear_stale(now=datetime.now(timezone.utc) + timedelta(hours=1))

        self.assertEqual(removed, 1)
        self.assertTrue(await self.gate.try_acquire(1))

    async def test_clear_stale_keeps_fresh_markers(self):
        await self.gate.try_acquire(1)

        self.assertEqual(await self.gate.clear_stale(), 0)
        self.assertFalse(await self.gate.try_acquire(1))


class TestSqliteRequestGateAcrossProcesses(unittest.IsolatedAsyncioTestCase):
    """Two connections on one file stand in for two bot processes."""

    async def asyncSetUp(self):
        self._tmp = TemporaryDirectory()
        path = str(Path(self._tmp.name) / "shared.db")
        self.db_a = Database(path)
        self.db_b = Database(path)
        await self.db_a.connect()
        await self.db_b.connect()
        self.gate_a = SqliteRequestGate(self.db_a, stale_after_seconds=600)
        self.gate_b = SqliteRequestGate(self.db_b, stale_after_seconds=600)

    async def asyncTearDown(self):
        await self.db_a.close()
        await self.db_b.close()
        self._tmp.cleanup()

    async def test_busy_user_is_refused_by_other_process(self):
        self.assertTrue(await self.gate_a.try_acquire(1))

        self.assertFalse(await self.gate_b.try_acquire(1))

    async def test_starting_process_keeps_live_markers(self):
        self.assertTrue(await self.gate_a.try_acquire(1))

        await self.gate_b.clear_stale()

        self.assertFalse(await self.gate_b.try_acquire(1))
        await self.gate_a.release(1)
        self.assertTrue(await self.gate_b.try_acquire(1))


class TestCreateRequestGate(unittest.TestCase):
    def test_backend_selection(self):
        db = object()

        self.assertIsInstance(create_request_gate(db, "memory"), InMemoryRequestGate)
        self.assertIsInstance(create_request_gate(db, "SQLite"), SqliteRequestGate)
        self.assertIsInstance(create_request_gate(db, "redis"), InMemoryRequestGate)


if __name__ == "__main__":
    unittest.main()
