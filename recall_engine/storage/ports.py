"""
Storage collaborator interface.

The engine never talks to a database itself; the review service reads and
writes through this protocol. Implementations raise DataUnavailableError when
a fetch fails and own any retry policy.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from recall_engine.core.models import Item, ReviewOutcome, Topic


@runtime_checkable
class StudyRepository(Protocol):
    """Protocol for review data storage."""

    def fetch_due_items(self, learner_id: str, now: datetime) -> list[Item]:
        """Items of the learner whose due timestamp is <= now, in due order."""
        ...

    def fetch_item(self, item_id: str) -> Item:
        """Single item by id."""
        ...

    def fetch_topic(self, topic_id: str) -> Topic:
        """Single topic by id."""
        ...

    def fetch_topic_scores(self, topic_ids: list[str]) -> dict[str, float]:
        """Stored mastery score per topic id."""
        ...

    def fetch_recent_outcomes(self, topic_id: str, limit: int) -> list[ReviewOutcome]:
        """Most recent outcomes of the topic's items, newest first."""
        ...

    def append_outcome(self, outcome: ReviewOutcome) -> None:
        """Append a review event."""
        ...

    def persist_item_state(self, item: Item) -> None:
        """Store the item's new scheduling state."""
        ...

    def persist_topic_score(self, topic_id: str, score: float, timestamp: datetime) -> None:
        """Store a recomputed mastery score."""
        ...
