"""
Core Mastery Module.

Recency-weighted mastery aggregation per topic.

Design:
- MasteryBand: Enum for categorizing 0-100 mastery scores
- AggregatorParameters: history depth and decay constant
- MasteryAggregator: computes topic scores from raw review outcomes

The aggregator is read-only: it never mutates items or outcomes, and
persisting the resulting score is the caller's responsibility.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from recall_engine.config import Settings
from recall_engine.core.errors import ValidationError
from recall_engine.core.models import ReviewOutcome, Topic, ensure_utc, utc_now


class MasteryBand(str, Enum):
    """
    Mastery band categorization for a 0-100 score.

    Thresholds:
        <20 Critical, [20,40) VeryWeak, [40,60) Weak, [60,75) Moderate,
        [75,85) Good, [85,95) Strong, >=95 Mastered
    """

    CRITICAL = "critical"
    VERY_WEAK = "very_weak"
    WEAK = "weak"
    MODERATE = "moderate"
    GOOD = "good"
    STRONG = "strong"
    MASTERED = "mastered"

    @classmethod
    def from_score(cls, score: float) -> MasteryBand:
        """
        Convert a 0-100 mastery score to a band.

        Args:
            score: Mastery score between 0 and 100

        Returns:
            Corresponding MasteryBand
        """
        if score < 20:
            return cls.CRITICAL
        elif score < 40:
            return cls.VERY_WEAK
        elif score < 60:
            return cls.WEAK
        elif score < 75:
            return cls.MODERATE
        elif score < 85:
            return cls.GOOD
        elif score < 95:
            return cls.STRONG
        else:
            return cls.MASTERED

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.replace("_", " ").title()

    @property
    def emoji(self) -> str:
        """Status emoji for CLI/UI display."""
        return {
            MasteryBand.CRITICAL: "⚫",
            MasteryBand.VERY_WEAK: "🟥",
            MasteryBand.WEAK: "🔴",
            MasteryBand.MODERATE: "🟠",
            MasteryBand.GOOD: "🟡",
            MasteryBand.STRONG: "🟢",
            MasteryBand.MASTERED: "💠",
        }[self]

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryBand.CRITICAL: "bright_black",
            MasteryBand.VERY_WEAK: "dark_red",
            MasteryBand.WEAK: "red",
            MasteryBand.MODERATE: "dark_orange",
            MasteryBand.GOOD: "yellow",
            MasteryBand.STRONG: "green",
            MasteryBand.MASTERED: "blue",
        }[self]


def classify_band(score: float) -> MasteryBand:
    """Map a mastery score onto its band."""
    return MasteryBand.from_score(score)


@dataclass(frozen=True)
class AggregatorParameters:
    """Recency weighting parameters."""

    history_depth: int = 30
    decay_constant: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> AggregatorParameters:
        return cls(
            history_depth=settings.mastery_history_depth,
            decay_constant=settings.mastery_decay_constant,
        )


class MasteryAggregator:
    """
    Computes a 0-100 retention score for a topic.

    Formula:
        score = 100 × Σ(w_r × grade) / Σ(w_r),   w_r = exp(-r / decay)

    where r is the rank of an outcome (0 = most recent) among the
    `history_depth` most recent outcomes of all items in the topic. Weighting
    is per outcome, so topics with many items are not favoured over topics
    with few.
    """

    def __init__(self, params: AggregatorParameters | None = None):
        self.params = params or AggregatorParameters()

    def compute_score(
        self,
        outcomes: list[ReviewOutcome],
        history_depth: int | None = None,
        decay_constant: float | None = None,
    ) -> float:
        """
        Calculate the recency-weighted mastery score.

        Args:
            outcomes: Review outcomes of the topic's items, any order
            history_depth: Most recent outcomes to consider (default 30)
            decay_constant: Rank decay constant (default 10)

        Returns:
            Score between 0 and 100; 0 when there are no outcomes

        Raises:
            ValidationError: for a non-positive depth or decay constant
        """
        depth = self.params.history_depth if history_depth is None else history_depth
        decay = self.params.decay_constant if decay_constant is None else decay_constant
        if isinstance(depth, bool) or not isinstance(depth, int) or depth <= 0:
            raise ValidationError("history_depth must be a positive integer", field="history_depth")
        if not decay > 0 or not math.isfinite(decay):
            raise ValidationError("decay_constant must be positive", field="decay_constant")

        if not outcomes:
            return 0.0

        recent = sorted(outcomes, key=lambda o: ensure_utc(o.reviewed_at), reverse=True)[:depth]

        weighted_sum = 0.0
        weight_sum = 0.0
        for rank, outcome in enumerate(recent):
            weight = math.exp(-rank / decay)
            weighted_sum += outcome.grade_score * weight
            weight_sum += weight

        score = 100 * weighted_sum / weight_sum
        return min(max(score, 0.0), 100.0)

    def classify_band(self, score: float) -> MasteryBand:
        return MasteryBand.from_score(score)

    def refresh_topic(
        self,
        topic: Topic,
        outcomes: list[ReviewOutcome],
        now: datetime | None = None,
    ) -> Topic:
        """Return a copy of `topic` with a freshly computed score."""
        return replace(
            topic,
            mastery_score=self.compute_score(outcomes),
            last_aggregated_at=ensure_utc(now) if now else utc_now(),
        )

    @staticmethod
    def progress_history(
        outcomes: list[ReviewOutcome],
        window: int = 30,
    ) -> list[tuple[datetime, float]]:
        """
        Chronological progress series for a topic.

        Each point is the plain mean of the last `window` grade scores up to
        and including that review, scaled to 0-100.
        """
        if window <= 0:
            raise ValidationError("window must be positive", field="window")

        points: list[tuple[datetime, float]] = []
        grades: deque[float] = deque(maxlen=window)
        for outcome in sorted(outcomes, key=lambda o: ensure_utc(o.reviewed_at)):
            grades.append(outcome.grade_score)
            points.append((outcome.reviewed_at, 100 * sum(grades) / len(grades)))
        return points

    @staticmethod
    def format_progress_bar(score: float, width: int = 10) -> str:
        """
        Format a text progress bar.

        Returns:
            String like "████████░░"
        """
        filled = int(max(0.0, min(score, 100.0)) / 100 * width)
        return "█" * filled + "░" * (width - filled)
