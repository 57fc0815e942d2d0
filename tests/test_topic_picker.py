import random
import unittest

from services.topic_picker import TopicsExhausted, pick_topic
from tests.fakes import make_topic


class TestPickTopic(unittest.TestCase):
    def setUp(self):
        self.catalog = [make_topic(topic_id) for topic_id in range(1, 6)]

    def test_never_returns_a_seen_topic(self):
        seen = {1, 2, 4}
        for seed in range(50):
            topic = pick_topic(seen, self.catalog, random.Random(seed))
            self.assertIn(topic.topic_id, {3, 5})

    def test_exhausted_when_everything_seen(self):
        result = pick_topic({1, 2, 3, 4, 5}, self.catalog)

        self.assertIsInstance(result, TopicsExhausted)
        self.assertEqual(result.seen_count, 5)

    def test_empty_catalog_is_exhausted(self):
        self.assertIsInstance(pick_topic(set(), []), TopicsExhausted)

    def test_inactive_topics_are_skipped(self):
        catalog = [make_topic(1, active=False), make_topic(2)]

        for seed in range(20):
            self.assertEqual(pick_topic(set(), catalog, random.Random(seed)).topic_id, 2)

    def test_only_inactive_left_is_exhausted(self):
        catalog = [make_topic(1), make_topic(2, active=False)]

        self.assertIsInstance(pick_topic({1}, catalog), TopicsExhausted)

    def test_same_seed_gives_same_topic(self):
        first = pick_topic(set(), self.catalog, random.Random(7))
        second = pick_topic(set(), self.catalog, random.Random(7))

        self.assertEqual(first.topic_id, second.topic_id)

    def test_every_unseen_topic_can_be_picked(self):
        rng = random.Random(1)
        picked = {pick_topic({1}, self.catalog, rng).topic_id for _ in range(200)}

        self.assertEqual(picked, {2, 3, 4, 5})


if __name__ == "__main__":
    unittest.main()
