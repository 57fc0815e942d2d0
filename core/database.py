"""
Database abstraction layer for the writing practice bot.

Provides a clean interface for database operations using SQLite.
All database interactions go through this layer, making it easy
to switch to PostgreSQL or another database in the future.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional, List

import aiosqlite

from core.config import Config
from core.errors import AssignmentConflictError, InvalidTransitionError
from core.models import (
    User,
    Language,
    Topic,
    Assignment,
    AssignmentState,
    MessageRef,
    NON_TERMINAL_STATES,
)


def _timestamp(value: datetime) -> str:
    # Fixed width so stored timestamps compare correctly as strings
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now() -> str:
    return _timestamp(datetime.now(timezone.utc))


class Database:
    """Database connection and query manager."""

    def __init__(self, db_path: str = None):
        Config.ensure_data_directory(db_path)
        # Read after the check: it may fall back to the working directory
        self.db_path = db_path or Config.DATABASE_PATH
        self.conn = None
        # One shared connection: serialize multi-statement writes so that one
        # task's commit/rollback never covers another task's statements.
        self._write_lock = asyncio.Lock()

    async def connect(self):
        """Create database connection and initialize schema."""
        self.conn = await aiosqlite.connect(self.db_path)
        self.conn.row_factory = aiosqlite.Row
        await self._init_schema()

    async def close(self):
        """Close database connection."""
        if getattr(self, "conn", None) is not None:
            await self.conn.close()
        self.conn = None

    async def _ensure_connection(self):
        """Connect lazily on first use."""
        if getattr(self, "conn", None) is None:
            await self.connect()

    async def _init_schema(self):
        """Initialize database schema."""
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY,
                username TEXT,
                chat_id INTEGER NOT NULL,
                language TEXT NOT NULL DEFAULT 'EN',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        # Per-language text is stored as JSON objects keyed by language code
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS topics (
                topic_id INTEGER PRIMARY KEY,
                titles TEXT NOT NULL,
                descriptions TEXT NOT NULL DEFAULT '{}',
                keywords TEXT NOT NULL DEFAULT '{}',
                active INTEGER NOT NULL DEFAULT 1
            )
        """)

        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS assignments (
                assignment_id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                topic_id INTEGER NOT NULL,
                state TEXT NOT NULL DEFAULT 'active',
                message_chat_id INTEGER,
                message_id INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(user_id),
                FOREIGN KEY (topic_id) REFERENCES topics(topic_id)
            )
        """)
        # At most one ACTIVE/SUBMITTED assignment per user, checked atomically
        # by SQLite even when several bot processes share the file.
        await self.conn.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_assignments_one_active
            ON assignments(user_id) WHERE state IN ('active', 'submitted')
        """)
        await self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_assignments_user
            ON assignments(user_id)
        """)

        # Request gate rows (see services.request_gate.SqliteRequestGate)
        await self.conn.execute("""
            CREATE TABLE IF NOT EXISTS inflight_requests (
                user_id INTEGER PRIMARY KEY,
                acquired_at TEXT NOT NULL
            )
        """)

        await self.conn.commit()

    # User operations
    async def get_user(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        await self._ensure_connection()

        async with self.conn.execute(
            "SELECT * FROM users WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_user(row)

    async def create_user(self, user_id: int, chat_id: int,
                          username: Optional[str] = None,
                          language: Language = Language.EN) -> User:
        """Create a new user (no-op if the user already exists)."""
        await self._ensure_connection()
        now = _now()
        async with self._write_lock:
            await self.conn.execute("""
                INSERT OR IGNORE INTO users (user_id, username, chat_id, language, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (user_id, username, chat_id, language.value, now, now))
            await self.conn.commit()
        return await self.get_user(user_id)

    async def update_user(self, user: User):
        """Update user information."""
        await self._ensure_connection()
        async with self._write_lock:
            await self.conn.execute("""
                UPDATE users SET
                    username = ?, chat_id = ?, language = ?, updated_at = ?
                WHERE user_id = ?
            """, (user.username, user.chat_id, user.language.value, _now(), user.user_id))
            await self.conn.commit()

    # Topic operations
    async def upsert_topic(self, topic: Topic):
        """Insert a catalog topic or refresh its text and active flag."""
        await self._ensure_connection()
        async with self._write_lock:
            await self.conn.execute("""
                INSERT INTO topics (topic_id, titles, descriptions, keywords, active)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(topic_id) DO UPDATE SET
                    titles = excluded.titles,
                    descriptions = excluded.descriptions,
                    keywords = excluded.keywords,
                    active = excluded.active
            """, (
                topic.topic_id,
                self._dump_localized(topic.titles),
                self._dump_localized(topic.descriptions),
                self._dump_localized(topic.keywords),
                1 if topic.active else 0,
            ))
            await self.conn.commit()

    async def get_topic(self, topic_id: int) -> Optional[Topic]:
        await self._ensure_connection()
        async with self.conn.execute(
            "SELECT * FROM topics WHERE topic_id = ?", (topic_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_topic(row) if row else None

    async def get_active_topics(self) -> List[Topic]:
        """Get the active topic catalog."""
        await self._ensure_connection()
        async with self.conn.execute(
            "SELECT * FROM topics WHERE active = 1 ORDER BY topic_id"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_topic(row) for row in rows]

    # Assignment operations
    async def get_seen_topic_ids(self, user_id: int) -> set:
        """Topic ids of every assignment the user ever had, in any state."""
        await self._ensure_connection()
        async with self.conn.execute(
            "SELECT DISTINCT topic_id FROM assignments WHERE user_id = ?", (user_id,)
        ) as cursor:
            rows = await cursor.fetchall()
            return {row["topic_id"] for row in rows}

    async def get_active_assignments(self, user_id: int) -> List[Assignment]:
        """All ACTIVE/SUBMITTED assignments of a user (normally zero or one)."""
        await self._ensure_connection()
        placeholders = ", ".join("?" for _ in NON_TERMINAL_STATES)
        async with self.conn.execute(f"""
            SELECT a.*, t.titles, t.descriptions, t.keywords, t.active
            FROM assignments a
            JOIN topics t ON t.topic_id = a.topic_id
            WHERE a.user_id = ? AND a.state IN ({placeholders})
            ORDER BY a.assignment_id
        """, (user_id, *[s.value for s in NON_TERMINAL_STATES])) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_assignment(row) for row in rows]

    async def get_assignment(self, assignment_id: int) -> Optional[Assignment]:
        """Get assignment by ID."""
        await self._ensure_connection()
        async with self.conn.execute("""
            SELECT a.*, t.titles, t.descriptions, t.keywords, t.active
            FROM assignments a
            JOIN topics t ON t.topic_id = a.topic_id
            WHERE a.assignment_id = ?
        """, (assignment_id,)) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_assignment(row)

    async def create_assignment(self, user_id: int, topic_id: int) -> Assignment:
        """
        Create an ACTIVE assignment.

        Raises AssignmentConflictError if the user already has an ACTIVE or
        SUBMITTED assignment.
        """
        await self._ensure_connection()
        async with self._write_lock:
            try:
                assignment_id = await self._insert_assignment(user_id, topic_id)
                await self.conn.commit()
            except aiosqlite.IntegrityError as e:
                await self.conn.rollback()
                raise AssignmentConflictError(user_id) from e
            except Exception:
                await self.conn.rollback()
                raise
        return await self.get_assignment(assignment_id)

    async def update_assignment_state(self, assignment: Assignment, new_state: AssignmentState):
        """
        Move an assignment to new_state, provided its stored state still
        matches assignment.state.
        """
        await self._ensure_connection()
        async with self._write_lock:
            try:
                await self._transition(assignment, new_state)
                await self.conn.commit()
            except Exception:
                # A refused UPDATE still opened a write transaction
                await self.conn.rollback()
                raise

    async def replace_assignment(self, assignment: Assignment, final_state: AssignmentState,
                                 topic_id: int) -> Assignment:
        """Close the current assignment and open a new one in a single transaction."""
        await self._ensure_connection()
        async with self._write_lock:
            try:
                await self._transition(assignment, final_state)
                assignment_id = await self._insert_assignment(assignment.user_id, topic_id)
                await self.conn.commit()
            except aiosqlite.IntegrityError as e:
                await self.conn.rollback()
                raise AssignmentConflictError(assignment.user_id) from e
            except Exception:
                await self.conn.rollback()
                raise
        return await self.get_assignment(assignment_id)

    async def set_assignment_message(self, assignment_id: int, message_ref: Optional[MessageRef]):
        """Remember which outbound message carries the assignment's button."""
        await self._ensure_connection()
        async with self._write_lock:
            await self.conn.execute("""
                UPDATE assignments SET message_chat_id = ?, message_id = ?, updated_at = ?
                WHERE assignment_id = ?
            """, (
                message_ref.chat_id if message_ref else None,
                message_ref.message_id if message_ref else None,
                _now(),
                assignment_id,
            ))
            await self.conn.commit()

    async def _insert_assignment(self, user_id: int, topic_id: int) -> int:
        now = _now()
        cursor = await self.conn.execute("""
            INSERT INTO assignments (user_id, topic_id, state, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
        """, (user_id, topic_id, AssignmentState.ACTIVE.value, now, now))
        return cursor.lastrowid

    async def _transition(self, assignment: Assignment, new_state: AssignmentState):
        cursor = await self.conn.execute("""
            UPDATE assignments SET state = ?, updated_at = ?
            WHERE assignment_id = ? AND state = ?
        """, (new_state.value, _now(), assignment.assignment_id, assignment.state.value))
        if cursor.rowcount != 1:
            # Stored state moved on under us (another process or a stale object)
            raise InvalidTransitionError(assignment.assignment_id, assignment.state, new_state)

    # Request gate operations
    async def try_insert_inflight(self, user_id: int) -> bool:
        """
        Attempt to mark user_id as having a request in flight.

        Returns True if the row was inserted by this call, False if it already existed.
        """
        await self._ensure_connection()
        async with self._write_lock:
            cursor = await self.conn.execute(
                "INSERT OR IGNORE INTO inflight_requests (user_id, acquired_at) VALUES (?, ?)",
                (user_id, _now()),
            )
            await self.conn.commit()
            return cursor.rowcount == 1

    async def delete_inflight(self, user_id: int):
        await self._ensure_connection()
        async with self._write_lock:
            await self.conn.execute(
                "DELETE FROM inflight_requests WHERE user_id = ?", (user_id,)
            )
            await self.conn.commit()

    async def clear_inflight(self, acquired_before: datetime) -> int:
        """
        Drop in-flight markers acquired before the given UTC time.

        Used at startup to forget markers of a crashed process without
        touching those of processes that are still running. Returns the
        number of rows removed.
        """
        await self._ensure_connection()
        async with self._write_lock:
            cursor = await self.conn.execute(
                "DELETE FROM inflight_requests WHERE acquired_at < ?",
                (_timestamp(acquired_before),),
            )
            await self.conn.commit()
            return cursor.rowcount

    # Helper methods for row conversion
    @staticmethod
    def _dump_localized(values: dict) -> str:
        return json.dumps({lang.value: text for lang, text in values.items()}, ensure_ascii=False)

    @staticmethod
    def _load_localized(raw: Optional[str]) -> dict:
        result = {}
        for code, text in json.loads(raw or "{}").items():
            language = Language.parse(code)
            if language is not None:
                result[language] = text
        return result

    def _row_to_user(self, row) -> User:
        """Convert database row to User object."""
        return User(
            user_id=row["user_id"],
            username=row["username"],
            chat_id=row["chat_id"],
            language=Language.parse(row["language"]) or Language.EN,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_topic(self, row) -> Topic:
        """Convert database row to Topic object."""
        return Topic(
            topic_id=row["topic_id"],
            titles=self._load_localized(row["titles"]),
            descriptions=self._load_localized(row["descriptions"]),
            keywords=self._load_localized(row["keywords"]),
            active=bool(row["active"]),
        )

    def _row_to_assignment(self, row) -> Assignment:
        """Convert joined assignment/topic row to Assignment object."""
        message_ref = None
        if row["message_chat_id"] is not None and row["message_id"] is not None:
            message_ref = MessageRef(chat_id=row["message_chat_id"], message_id=row["message_id"])
        return Assignment(
            assignment_id=row["assignment_id"],
            user_id=row["user_id"],
            topic=self._row_to_topic(row),
            state=AssignmentState(row["state"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            message_ref=message_ref,
        )
