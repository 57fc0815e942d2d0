"""
Configuration management for the writing practice bot.

Loads configuration from environment variables and provides
centralized access to all system settings.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _get_env_value(key: str, default: str = "") -> str:
    """Read an environment variable with surrounding whitespace stripped."""
    value = os.environ.get(key, "")
    if not value:
        value = os.getenv(key, default)
    # Stray spaces are a common copy/paste error in hosting dashboards
    return value.strip() if value else default


def _get_env_int(key: str, default: int) -> int:
    raw = _get_env_value(key, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Config:
    """Application configuration."""

    # Telegram
    BOT_TOKEN: str = _get_env_value("BOT_TOKEN", "")

    # Language capability service (OpenAI-compatible API)
    OPENAI_API_KEY: str = _get_env_value("OPENAI_API_KEY", "")
    # Optional: point the client at a compatible gateway
    OPENAI_BASE_URL: str = _get_env_value("OPENAI_BASE_URL", "")
    OPENAI_MODEL: str = _get_env_value("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT_SECONDS: int = _get_env_int("OPENAI_TIMEOUT_SECONDS", 60)

    # Database
    DATABASE_PATH: str = _get_env_value("DATABASE_PATH", "./data/writing_bot.db")

    # Topic catalog seeded into the database on startup
    TOPICS_FILE: str = _get_env_value("TOPICS_FILE", "")

    # Submission bounds (characters)
    MIN_SUBMISSION_LENGTH: int = _get_env_int("MIN_SUBMISSION_LENGTH", 10)
    MAX_SUBMISSION_LENGTH: int = _get_env_int("MAX_SUBMISSION_LENGTH", 4000)

    # "memory" for a single process, "sqlite" when several processes share DATABASE_PATH
    REQUEST_GATE_BACKEND: str = _get_env_value("REQUEST_GATE_BACKEND", "memory")
    # SQLite gate rows older than this are treated as left behind by a crashed process
    REQUEST_GATE_STALE_SECONDS: int = _get_env_int("REQUEST_GATE_STALE_SECONDS", 600)

    LOG_LEVEL: str = _get_env_value("LOG_LEVEL", "INFO")

    # Healthcheck HTTP server
    PORT: int = _get_env_int("PORT", 8080)

    @classmethod
    def validate(cls) -> bool:
        """Validate that required configuration is present."""
        # Re-read in case the environment was populated after import
        bot_token = _get_env_value("BOT_TOKEN", "") or cls.BOT_TOKEN
        api_key = _get_env_value("OPENAI_API_KEY", "") or cls.OPENAI_API_KEY

        cls.BOT_TOKEN = bot_token
        cls.OPENAI_API_KEY = api_key

        return bool(bot_token) and bool(api_key)

    @classmethod
    def ensure_data_directory(cls, db_path: str = None):
        """Ensure data directory exists for database."""
        path = Path(db_path or cls.DATABASE_PATH)
        if str(path) == ":memory:":
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            import logging
            logger = logging.getLogger(__name__)
            logger.warning(f"Could not create database directory {path.parent}: {e}")
            # Fall back to the working directory
            cls.DATABASE_PATH = "writing_bot.db"
