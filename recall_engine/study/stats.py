"""
Study statistics with daily caps.

Pure counterpart of a dashboard query: everything is derived from items and
outcomes the caller has already loaded.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, time

from recall_engine.core.models import Item, Phase, ReviewOutcome, ensure_utc


@dataclass(frozen=True)
class StudyStats:
    """Snapshot of a learner's review workload."""

    total_items: int
    due_count: int
    new_count: int
    topics_with_due: int
    reviews_today: int
    new_items_today: int
    max_reviews_per_day: int
    max_new_items_per_day: int

    @property
    def reviews_remaining(self) -> int:
        return max(0, self.max_reviews_per_day - self.reviews_today)

    @property
    def new_items_remaining(self) -> int:
        return max(0, self.max_new_items_per_day - self.new_items_today)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["reviews_remaining"] = self.reviews_remaining
        data["new_items_remaining"] = self.new_items_remaining
        return data


def collect_study_stats(
    items: list[Item],
    outcomes: list[ReviewOutcome],
    now: datetime,
    max_reviews_per_day: int = 100,
    max_new_items_per_day: int = 10,
) -> StudyStats:
    """
    Count due and new items and today's reviews.

    "Today" starts at UTC midnight of `now`.
    """
    now = ensure_utc(now)
    day_start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)

    due = [item for item in items if ensure_utc(item.state.due) <= now]
    todays = [o for o in outcomes if day_start <= ensure_utc(o.reviewed_at) <= now]

    return StudyStats(
        total_items=len(items),
        due_count=len(due),
        new_count=sum(1 for item in items if item.state.phase is Phase.NEW),
        topics_with_due=len({item.topic_id for item in due}),
        reviews_today=len(todays),
        new_items_today=sum(1 for o in todays if o.previous_phase is Phase.NEW),
        max_reviews_per_day=max_reviews_per_day,
        max_new_items_per_day=max_new_items_per_day,
    )
