"""
In-memory study repository backed by a JSON deck file.

Deck format:
    {
      "learner_id": "default",
      "topics":   [{"id": "...", "name": "...", "mastery_score": 0}],
      "items":    [{"id": "...", "topic_id": "...", "front": "...",
                    "back": "...", "state": {...}}],
      "outcomes": [{"item_id": "...", "topic_id": "...", "rating": 2,
                    "reviewed_at": "2025-01-01T09:00:00+00:00"}]
    }

Items without a "state" start as new items due immediately. This is a
working copy for the CLI and tests, not durable storage.
"""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from loguru import logger

from recall_engine.core.errors import DataUnavailableError, ValidationError
from recall_engine.core.models import Item, ItemState, ReviewOutcome, Topic, ensure_utc, utc_now


class InMemoryRepository:
    """Dict-backed implementation of StudyRepository."""

    def __init__(
        self,
        topics: list[Topic] | None = None,
        items: list[Item] | None = None,
        outcomes: list[ReviewOutcome] | None = None,
        learner_id: str = "default",
    ):
        self.learner_id = learner_id
        self._lock = threading.RLock()
        self._topics: dict[str, Topic] = {t.topic_id: t for t in topics or []}
        self._items: dict[str, Item] = {}
        self._outcomes: list[ReviewOutcome] = list(outcomes or [])
        for item in items or []:
            self._items[item.item_id] = item
            self._topics.setdefault(item.topic_id, Topic(topic_id=item.topic_id, name=item.topic_id))

    # ------------------------------------------------------------------
    # StudyRepository
    # ------------------------------------------------------------------

    def fetch_due_items(self, learner_id: str, now: datetime) -> list[Item]:
        if learner_id != self.learner_id:
            raise DataUnavailableError(f"No deck loaded for learner {learner_id!r}")
        now = ensure_utc(now)
        with self._lock:
            due = [item for item in self._items.values() if ensure_utc(item.state.due) <= now]
        return sorted(due, key=lambda item: ensure_utc(item.state.due))

    def fetch_item(self, item_id: str) -> Item:
        with self._lock:
            try:
                return self._items[item_id]
            except KeyError:
                raise DataUnavailableError(f"Item {item_id!r} not found") from None

    def fetch_topic(self, topic_id: str) -> Topic:
        with self._lock:
            try:
                return self._topics[topic_id]
            except KeyError:
                raise DataUnavailableError(f"Topic {topic_id!r} not found") from None

    def fetch_topic_scores(self, topic_ids: list[str]) -> dict[str, float]:
        with self._lock:
            return {
                topic_id: self._topics[topic_id].mastery_score
                for topic_id in topic_ids
                if topic_id in self._topics
            }

    def fetch_recent_outcomes(self, topic_id: str, limit: int) -> list[ReviewOutcome]:
        with self._lock:
            matching = [o for o in self._outcomes if o.topic_id == topic_id]
        matching.sort(key=lambda o: o.reviewed_at, reverse=True)
        return matching[:limit]

    def append_outcome(self, outcome: ReviewOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)

    def persist_item_state(self, item: Item) -> None:
        with self._lock:
            self._items[item.item_id] = item

    def persist_topic_score(self, topic_id: str, score: float, timestamp: datetime) -> None:
        with self._lock:
            topic = self._topics.get(topic_id) or Topic(topic_id=topic_id, name=topic_id)
            self._topics[topic_id] = replace(
                topic, mastery_score=score, last_aggregated_at=ensure_utc(timestamp)
            )

    # ------------------------------------------------------------------
    # Bulk access
    # ------------------------------------------------------------------

    def items(self) -> list[Item]:
        with self._lock:
            return list(self._items.values())

    def topics(self) -> list[Topic]:
        with self._lock:
            return list(self._topics.values())

    def outcomes(self, topic_id: str | None = None) -> list[ReviewOutcome]:
        with self._lock:
            if topic_id is None:
                return list(self._outcomes)
            return [o for o in self._outcomes if o.topic_id == topic_id]

    # ------------------------------------------------------------------
    # JSON deck files
    # ------------------------------------------------------------------

    @classmethod
    def load_deck(cls, path: str | Path, now: datetime | None = None) -> InMemoryRepository:
        """
        Load a deck file.

        Raises:
            DataUnavailableError: if the file cannot be read or parsed
            ValidationError: if a record in the deck is malformed
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise DataUnavailableError(f"Could not read deck {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"Deck {path} must contain a JSON object")

        created = ensure_utc(now) if now else utc_now()
        items = []
        for raw in _records(data, "items"):
            if isinstance(raw, dict) and not raw.get("state"):
                raw = {**raw, "state": ItemState(due=created).to_dict()}
            items.append(Item.from_dict(raw))

        repo = cls(
            topics=[Topic.from_dict(raw) for raw in _records(data, "topics")],
            items=items,
            outcomes=[ReviewOutcome.from_dict(raw) for raw in _records(data, "outcomes")],
            learner_id=str(data.get("learner_id", "default")),
        )
        logger.debug(
            f"Loaded deck {path}: {len(repo._topics)} topics, "
            f"{len(repo._items)} items, {len(repo._outcomes)} outcomes"
        )
        return repo

    def save_deck(self, path: str | Path) -> None:
        """Write the current contents back to a deck file."""
        with self._lock:
            data = {
                "learner_id": self.learner_id,
                "topics": [t.to_dict() for t in self._topics.values()],
                "items": [i.to_dict() for i in self._items.values()],
                "outcomes": [o.to_dict() for o in self._outcomes],
            }
        Path(path).write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug(f"Saved deck {path}")


def _records(data: dict, key: str) -> list:
    records = data.get(key) or []
    if not isinstance(records, list):
        raise ValidationError(f"Deck field {key!r} must be a list", field=key)
    return records
