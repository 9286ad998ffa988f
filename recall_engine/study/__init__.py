"""
Study Module.

Provides the review scheduling services:
- Item scheduling (FSRS)
- Session composition by mastery band
- Study statistics with daily caps
- Review orchestration against a repository
"""

from recall_engine.study.composer import CompositionBand, SessionComposer, SessionPlan
from recall_engine.study.review_service import ReviewReceipt, ReviewService
from recall_engine.study.scheduler import ItemScheduler, SchedulerParameters
from recall_engine.study.stats import StudyStats, collect_study_stats

__all__ = [
    "ItemScheduler",
    "SchedulerParameters",
    "SessionComposer",
    "SessionPlan",
    "CompositionBand",
    "ReviewService",
    "ReviewReceipt",
    "StudyStats",
    "collect_study_stats",
]
