import json
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from core.models import Language
from services.localization import MESSAGES, Localizer
from services.topic_loader import TopicLoader, parse_topic
from tests.fakes import TempDatabase

PROJECT_ROOT = Path(__file__).parent.parent


class TestLocalizer(unittest.TestCase):
    def test_every_message_has_english(self):
        for key, translations in MESSAGES.items():
            with self.subTest(key=key):
                self.assertIn(Language.EN, translations)

    def test_formats_placeholders(self):
        text = Localizer().text("submission_too_short", Language.EN, min_length=10)

        self.assertEqual(text, "Your text is too short. Please write at least 10 characters.")

    def test_falls_back_to_english(self):
        localizer = Localizer({"greeting": {Language.EN: "Hello"}})

        with self.assertLogs("services.localization", level="WARNING"):
            self.assertEqual(localizer.text("greeting", Language.DE), "Hello")

    def test_unknown_key(self):
        with self.assertRaises(KeyError):
            Localizer().text("no_such_message", Language.EN)


class TestTopicLoader(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = TemporaryDirectory()
        self.path = Path(self._tmp.name) / "topics.json"

    def tearDown(self):
        self._tmp.cleanup()

    def _write(self, entries):
        self.path.write_text(json.dumps(entries, ensure_ascii=False), encoding="utf-8")

    def test_parse_topic(self):
        topic = parse_topic({
            "id": 3,
            "title": {"de": "Meine Stadt", "EN": "My city", "XX": "?"},
            "keywords": {"DE": ["Straße", "Markt"]},
        })

        self.assertEqual(topic.topic_id, 3)
        self.assertTrue(topic.active)
        self.assertEqual(topic.canonical_title, "Meine Stadt")
        self.assertEqual(topic.title(Language.RU), "Meine Stadt")
        self.assertEqual(topic.keywords_for(Language.EN), ["Straße", "Markt"])

    def test_entry_without_title_is_rejected(self):
        with self.assertRaises(ValueError):
            parse_topic({"id": 1, "title": {}})

    def test_missing_file_gives_empty_catalog(self):
        self.assertEqual(TopicLoader(str(self.path)).load(), [])

    def test_duplicate_ids_are_rejected(self):
        self._write([{"id": 1, "title": {"DE": "A"}}, {"id": 1, "title": {"DE": "B"}}])

        with self.assertRaises(ValueError):
            TopicLoader(str(self.path)).load()

    async def test_seed_upserts_topics(self):
        self._write([
            {"id": 1, "title": {"DE": "Familie"}},
            {"id": 2, "title": {"DE": "Urlaub"}, "active": False},
        ])

        async with TempDatabase() as db:
            self.assertEqual(await TopicLoader(str(self.path)).seed(db), 2)
            self.assertEqual([t.topic_id for t in await db.get_active_topics()], [1])

            # re-seeding with changed text updates in place
            self._write([{"id": 1, "title": {"DE": "Meine Familie"}}])
            await TopicLoader(str(self.path)).seed(db)
            self.assertEqual((await db.get_topic(1)).canonical_title, "Meine Familie")

    def test_bundled_catalog_is_valid(self):
        topics = TopicLoader(str(PROJECT_ROOT / "data" / "topics.json")).load()

        self.assertTrue(topics)
        for topic in topics:
            with self.subTest(topic=topic.topic_id):
                for language in Language:
                    self.assertIn(language, topic.titles)


if __name__ == "__main__":
    unittest.main()
