"""Unit tests for collect_study_stats."""

from datetime import timedelta

from recall_engine.core.models import Phase, ReviewOutcome
from recall_engine.study.stats import collect_study_stats


def test_counts_due_new_and_topics(now, item_factory):
    items = [
        item_factory("a", "t1", now - timedelta(days=1)),
        item_factory("b", "t1", now),
        item_factory("c", "t2", now - timedelta(hours=1), phase=Phase.REVIEW,
                     stability=3.0, difficulty=5.0, repetition_count=2),
        item_factory("d", "t3", now + timedelta(days=2), phase=Phase.REVIEW,
                     stability=3.0, difficulty=5.0, repetition_count=2),
    ]

    stats = collect_study_stats(items, [], now)

    assert stats.total_items == 4
    assert stats.due_count == 3
    assert stats.new_count == 2
    assert stats.topics_with_due == 2


def test_todays_reviews_and_allowance(now):
    outcomes = [
        ReviewOutcome.record("a", "t", 2, now - timedelta(hours=1), previous_phase=Phase.NEW),
        ReviewOutcome.record("b", "t", 1, now - timedelta(hours=2)),
        ReviewOutcome.record("c", "t", 0, now - timedelta(days=1)),
    ]

    stats = collect_study_stats(
        [], outcomes, now, max_reviews_per_day=2, max_new_items_per_day=1
    )

    assert stats.reviews_today == 2
    assert stats.new_items_today == 1
    assert stats.reviews_remaining == 0
    assert stats.new_items_remaining == 0


def test_remaining_never_negative(now):
    outcomes = [ReviewOutcome.record(f"i{n}", "t", 2, now) for n in range(5)]

    stats = collect_study_stats([], outcomes, now, max_reviews_per_day=3)

    assert stats.reviews_remaining == 0
    assert stats.to_dict()["reviews_remaining"] == 0
