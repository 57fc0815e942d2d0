"""
Random selection of the next writing topic.
"""

import random
from dataclasses import dataclass
from typing import Iterable, Union

from core.models import Topic


@dataclass(frozen=True)
class TopicsExhausted:
    """Every active topic has already been given to the user."""
    seen_count: int


def pick_topic(seen_topic_ids: Iterable[int], catalog: Iterable[Topic], rng=None) -> Union[Topic, TopicsExhausted]:
    """
    Pick an active topic the user has not seen, uniformly at random.

    rng is anything with a ``choice`` method (defaults to the random module).
    """
    seen = set(seen_topic_ids)
    candidates = [topic for topic in catalog if topic.active and topic.topic_id not in seen]
    if not candidates:
        return TopicsExhausted(seen_count=len(seen))
    return (rng or random).choice(candidates)
