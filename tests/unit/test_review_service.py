"""
Unit tests for ReviewService with the in-memory repository.

Tests:
- Review application and topic score refresh
- Rejected input is never persisted
- Storage failures propagate unchanged
- Session building from stored scores
- Concurrent reviews of one item are serialized
"""

import random
import threading
from datetime import timedelta

import pytest

from recall_engine.core.errors import DataUnavailableError, ValidationError
from recall_engine.core.mastery import MasteryBand
from recall_engine.core.models import Phase, Rating
from recall_engine.storage.memory import InMemoryRepository
from recall_engine.storage.ports import StudyRepository
from recall_engine.study.composer import SessionComposer
from recall_engine.study.review_service import ReviewService


@pytest.fixture
def service(sample_repository):
    return ReviewService(sample_repository, composer=SessionComposer(rng=random.Random(5)))


class TestSubmitReview:
    def test_review_updates_item_outcomes_and_score(self, service, sample_repository, now):
        receipt = service.submit_review("n1", Rating.GOOD, now)

        stored = sample_repository.fetch_item("n1")
        assert stored.state.repetition_count == 1
        assert stored.state.phase is Phase.LEARNING
        assert stored == receipt.item
        assert sample_repository.outcomes("neuro") == [receipt.outcome]
        assert receipt.topic_score == pytest.approx(100.0)
        assert receipt.band is MasteryBand.MASTERED
        assert sample_repository.fetch_topic("neuro").mastery_score == pytest.approx(100.0)
        assert sample_repository.fetch_topic("neuro").last_aggregated_at == now

    def test_reviewed_item_leaves_due_set(self, service, sample_repository, now):
        service.submit_review("n1", Rating.GOOD, now)

        due_ids = {item.item_id for item in sample_repository.fetch_due_items("default", now)}
        assert "n1" not in due_ids

    def test_score_reflects_recent_history(self, service, now):
        service.submit_review("n1", Rating.GOOD, now)
        receipt = service.submit_review("n2", Rating.AGAIN, now + timedelta(minutes=1))

        assert 0 < receipt.topic_score < 100
        assert receipt.item.state.lapse_count == 1

    def test_invalid_rating_persists_nothing(self, service, sample_repository, now):
        before = sample_repository.fetch_item("n1")

        with pytest.raises(ValidationError):
            service.submit_review("n1", 7, now)

        assert sample_repository.fetch_item("n1") == before
        assert sample_repository.outcomes() == []

    def test_unknown_item(self, service, now):
        with pytest.raises(DataUnavailableError):
            service.submit_review("missing", Rating.GOOD, now)

    def test_concurrent_reviews_are_serialized(self, service, sample_repository, now):
        threads = [
            threading.Thread(target=service.submit_review, args=("c1", Rating.GOOD, now))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sample_repository.fetch_item("c1").state.repetition_count == 8
        assert len(sample_repository.outcomes("cardio")) == 8
        assert service._locks == {}

    def test_item_locks_released_after_reviews(self, service, now):
        for item_id in ["n1", "n2", "c1"]:
            service.submit_review(item_id, Rating.GOOD, now)
        with pytest.raises(DataUnavailableError):
            service.submit_review("missing", Rating.GOOD, now)

        assert service._locks == {}
        assert service._lock_users == {}


class TestBuildSession:
    def test_session_contains_due_items_only(self, service, now):
        plan = service.build_session("default", 10, now)

        assert sorted(i.item_id for i in plan.items) == ["c1", "n1", "n2"]

    def test_stored_scores_drive_bands(self, service, now):
        plan = service.build_session("default", 10, now)
        by_label = {a.label: a for a in plan.allocations}

        assert by_label["critical"].available == 2
        assert by_label["strong"].available == 1

    def test_unknown_learner_propagates(self, service, now):
        with pytest.raises(DataUnavailableError):
            service.build_session("someone-else", 10, now)

    def test_fetch_failure_propagates(self, now):
        class FailingRepository(InMemoryRepository):
            def fetch_due_items(self, learner_id, now):
                raise DataUnavailableError("database offline")

        service = ReviewService(FailingRepository())
        with pytest.raises(DataUnavailableError, match="database offline"):
            service.build_session("default", 10, now)

    def test_topic_without_score_counts_as_zero(self, now, item_factory):
        repo = InMemoryRepository(items=[item_factory("x", "unscored", now)])
        plan = ReviewService(repo).build_session("default", 5, now)

        assert plan.allocations[0].available == 1


class TestOverview:
    def test_weakest_first(self, service):
        rows = service.topic_overview(["cardio", "neuro"])

        assert [row[0] for row in rows] == ["neuro", "cardio"]
        assert rows[0][2] is MasteryBand.CRITICAL
        assert rows[1][2] is MasteryBand.STRONG

    def test_refresh_recomputes_from_outcomes(self, sample_repository, now, outcome_factory):
        for outcome in outcome_factory("cardio", [0, 0, 0], now - timedelta(days=1), "c1"):
            sample_repository.append_outcome(outcome)
        service = ReviewService(sample_repository)

        rows = service.topic_overview(["neuro", "cardio"], refresh=True, now=now)

        assert dict((row[0], row[1]) for row in rows) == {"neuro": 0.0, "cardio": 0.0}
        assert sample_repository.fetch_topic("cardio").mastery_score == 0.0
        assert sample_repository.fetch_topic("cardio").last_aggregated_at == now


def test_memory_repository_satisfies_protocol():
    assert isinstance(InMemoryRepository(), StudyRepository)
