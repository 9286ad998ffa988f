"""
Review Service - orchestration between the engine and storage.

Wires the three engine components to a StudyRepository:
- submit_review: schedule one item, log the outcome, refresh its topic score
- build_session: fetch the due set and topic scores, compose a session
- topic_overview: scores and bands for display

Storage errors (DataUnavailableError) propagate unchanged; nothing here
retries.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from recall_engine.config import Settings
from recall_engine.core.mastery import AggregatorParameters, MasteryAggregator, MasteryBand
from recall_engine.core.models import Item, Rating, ReviewOutcome, ensure_utc, utc_now
from recall_engine.storage.ports import StudyRepository
from recall_engine.study.composer import SessionComposer, SessionPlan
from recall_engine.study.scheduler import ItemScheduler, SchedulerParameters


@dataclass(frozen=True)
class ReviewReceipt:
    """Everything produced by one review."""

    item: Item
    outcome: ReviewOutcome
    topic_score: float
    band: MasteryBand


class ReviewService:
    """
    Applies reviews and builds sessions against a repository.

    Reviews of the same item are serialized with a per-item lock so that
    the read-modify-write of its state is never interleaved.
    """

    def __init__(
        self,
        repository: StudyRepository,
        scheduler: ItemScheduler | None = None,
        aggregator: MasteryAggregator | None = None,
        composer: SessionComposer | None = None,
    ):
        self.repository = repository
        self.scheduler = scheduler or ItemScheduler()
        self.aggregator = aggregator or MasteryAggregator()
        self.composer = composer or SessionComposer()
        self._locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, repository: StudyRepository, settings: Settings) -> ReviewService:
        return cls(
            repository,
            scheduler=ItemScheduler(SchedulerParameters.from_settings(settings)),
            aggregator=MasteryAggregator(AggregatorParameters.from_settings(settings)),
            composer=SessionComposer.from_settings(settings),
        )

    @contextmanager
    def _item_lock(self, item_id: str) -> Iterator[None]:
        """Hold the item's lock; it is dropped once no review holds or awaits it."""
        with self._locks_guard:
            lock = self._locks.setdefault(item_id, threading.Lock())
            self._lock_users[item_id] = self._lock_users.get(item_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._lock_users[item_id] -= 1
                if not self._lock_users[item_id]:
                    del self._lock_users[item_id]
                    del self._locks[item_id]

    def submit_review(
        self,
        item_id: str,
        rating: Rating | int,
        now: datetime | None = None,
    ) -> ReviewReceipt:
        """
        Apply a review outcome to an item.

        Raises:
            ValidationError: for an invalid rating or corrupted item state;
                nothing is persisted in that case
            DataUnavailableError: when the repository cannot deliver data
        """
        grade = Rating.parse(rating)
        now = ensure_utc(now) if now else utc_now()

        with self._item_lock(item_id):
            item = self.repository.fetch_item(item_id)
            updated, outcome = self.scheduler.record_outcome(item, grade, now)
            self.repository.persist_item_state(updated)
            self.repository.append_outcome(outcome)

        score = self.refresh_topic_score(item.topic_id, now)
        band = self.aggregator.classify_band(score)

        logger.info(
            f"Reviewed {item_id} as {grade.name.title()}: {updated.state.phase.display_name}, "
            f"due {updated.state.due:%Y-%m-%d %H:%M}, topic {item.topic_id} at {score:.0f}"
        )
        return ReviewReceipt(item=updated, outcome=outcome, topic_score=score, band=band)

    def refresh_topic_score(self, topic_id: str, now: datetime | None = None) -> float:
        """Re-read recent outcomes and persist the topic's new score."""
        now = ensure_utc(now) if now else utc_now()
        outcomes = self.repository.fetch_recent_outcomes(
            topic_id, self.aggregator.params.history_depth
        )
        score = self.aggregator.compute_score(outcomes)
        self.repository.persist_topic_score(topic_id, score, now)
        return score

    def build_session(
        self,
        learner_id: str,
        target_size: int,
        now: datetime | None = None,
    ) -> SessionPlan:
        """
        Compose a session from the learner's current due set.

        Topics without a stored score are treated as score 0.

        Raises:
            DataUnavailableError: when the due set cannot be fetched
        """
        now = ensure_utc(now) if now else utc_now()
        due_items = self.repository.fetch_due_items(learner_id, now)
        topic_ids = list(dict.fromkeys(item.topic_id for item in due_items))
        scores = self.repository.fetch_topic_scores(topic_ids)

        annotated = [(item, scores.get(item.topic_id, 0.0)) for item in due_items]
        return self.composer.plan(annotated, target_size)

    def topic_overview(
        self,
        topic_ids: list[str],
        refresh: bool = False,
        now: datetime | None = None,
    ) -> list[tuple[str, float, MasteryBand]]:
        """
        Score and band per topic, weakest first.

        With `refresh`, each score is recomputed from the outcome history and
        persisted before it is read; otherwise the stored scores are used.
        """
        if refresh:
            for topic_id in topic_ids:
                self.refresh_topic_score(topic_id, now)
        scores = self.repository.fetch_topic_scores(topic_ids)
        rows = [
            (topic_id, score, self.aggregator.classify_band(score))
            for topic_id, score in scores.items()
        ]
        return sorted(rows, key=lambda row: row[1])
