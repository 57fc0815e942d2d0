"""
Loads the topic catalog from a JSON file and seeds it into the database.

File format (data/topics.json):

    [
      {
        "id": 1,
        "active": true,
        "title": {"DE": "...", "EN": "...", "RU": "..."},
        "description": {"DE": "...", ...},
        "keywords": {"DE": ["...", "..."], ...}
      }
    ]
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from core.config import Config
from core.database import Database
from core.models import Language, Topic

logger = logging.getLogger(__name__)


def _localized(raw: Optional[dict]) -> dict:
    result = {}
    for code, value in (raw or {}).items():
        language = Language.parse(code)
        if language is None:
            logger.warning(f"Unknown language code '{code}' in topic catalog, skipped")
            continue
        result[language] = value
    return result


def parse_topic(raw: dict) -> Topic:
    """Build a Topic from one catalog entry. Raises ValueError on a malformed entry."""
    if "id" not in raw:
        raise ValueError(f"Topic entry without id: {raw!r}")
    titles = _localized(raw.get("title"))
    if not titles:
        raise ValueError(f"Topic {raw['id']} has no title")
    keywords = {
        language: [str(word) for word in words]
        for language, words in _localized(raw.get("keywords")).items()
    }
    return Topic(
        topic_id=int(raw["id"]),
        titles=titles,
        descriptions=_localized(raw.get("description")),
        keywords=keywords,
        active=bool(raw.get("active", True)),
    )


class TopicLoader:
    """Reads topics from a JSON file."""

    def __init__(self, topics_file: str = None):
        project_root = Path(__file__).parent.parent
        if not topics_file:
            topics_file = Config.TOPICS_FILE or project_root / "data" / "topics.json"
        self.topics_file = Path(topics_file)

    def load(self) -> List[Topic]:
        """Return all topics from the file (an empty list if the file is missing)."""
        logger.info(f"Loading topics from: {self.topics_file.absolute()}")
        if not self.topics_file.exists():
            logger.error(f"Topic file {self.topics_file.absolute()} not found")
            return []

        with open(self.topics_file, "r", encoding="utf-8") as f:
            entries = json.load(f)

        topics = [parse_topic(entry) for entry in entries]
        ids = [topic.topic_id for topic in topics]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate topic ids in {self.topics_file}")
        return topics

    async def seed(self, db: Database) -> int:
        """Upsert every topic from the file into the database. Returns the count."""
        topics = self.load()
        for topic in topics:
            await db.upsert_topic(topic)
        active = sum(1 for topic in topics if topic.active)
        logger.info(f"Seeded {len(topics)} topics ({active} active)")
        if active == 0:
            logger.warning("No active topics! Users will not receive assignments")
        return len(topics)
