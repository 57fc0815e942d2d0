"""
User service for managing user accounts and language preference.
"""

import logging
from typing import Optional

from core.database import Database
from core.models import User, Language

logger = logging.getLogger(__name__)


class UserService:
    """Service for user management operations."""

    def __init__(self, db: Database):
        self.db = db

    async def get_user(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return await self.db.get_user(user_id)

    async def get_or_create_user(
        self,
        user_id: int,
        chat_id: int,
        username: Optional[str] = None,
    ) -> User:
        """Get existing user or create a new one."""
        user = await self.db.get_user(user_id)
        if user:
            # Update user info if changed
            if user.username != username or user.chat_id != chat_id:
                user.username = username
                user.chat_id = chat_id
                await self.db.update_user(user)
            return user

        logger.info(f"New user {user_id} (@{username})")
        return await self.db.create_user(user_id, chat_id, username)

    async def set_language(self, user: User, language: Language) -> User:
        """Persist the user's interface language."""
        user.language = language
        await self.db.update_user(user)
        return user
