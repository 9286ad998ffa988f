"""
Item Scheduler - FSRS spaced repetition state machine.

Each review moves an item through the phases

    New -> Learning -> Review
       \\        \\        \\
        +--------+--------+--> Relapsing (on Again) --> Review

and updates its memory model:
- stability: days until recall probability falls to 90%
- difficulty: 1 (easy) to 10 (hard)

Stability and difficulty follow the FSRS v4 update rules. The next interval
targets a fixed desired retention, except after a lapse, where a short
re-learning interval is used instead.

Based on:
- Ye (FSRS algorithm)
- Wozniak (SM algorithms)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from loguru import logger

from recall_engine.config import DEFAULT_FSRS_WEIGHTS, Settings
from recall_engine.core.errors import ValidationError
from recall_engine.core.models import (
    SECONDS_PER_DAY,
    Item,
    ItemState,
    Phase,
    Rating,
    ReviewOutcome,
    ensure_utc,
    forgetting_curve,
    utc_now,
)

MIN_STABILITY = 0.01
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


@dataclass(frozen=True)
class SchedulerParameters:
    """Tunable constants of the forgetting-curve model."""

    w: list[float] = field(default_factory=lambda: list(DEFAULT_FSRS_WEIGHTS))
    desired_retention: float = 0.9
    maximum_interval_days: int = 36500
    relearning_interval: timedelta = timedelta(minutes=10)

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerParameters:
        return cls(
            w=list(settings.fsrs_weights),
            desired_retention=settings.fsrs_desired_retention,
            maximum_interval_days=settings.fsrs_maximum_interval_days,
            relearning_interval=timedelta(minutes=settings.fsrs_relearning_minutes),
        )


class ItemScheduler:
    """
    FSRS Spaced Repetition Scheduler.

    Pure and deterministic: the same (state, rating, now) always yields the
    same next state. Nothing is persisted here; the caller stores the
    returned state.
    """

    def __init__(self, params: SchedulerParameters | None = None):
        self.params = params or SchedulerParameters()
        self.w = self.params.w
        if len(self.w) != len(DEFAULT_FSRS_WEIGHTS):
            raise ValidationError(
                f"Expected {len(DEFAULT_FSRS_WEIGHTS)} FSRS weights, got {len(self.w)}",
                field="w",
            )
        if not 0 < self.params.desired_retention < 1:
            raise ValidationError(
                "desired_retention must be between 0 and 1", field="desired_retention"
            )
        # Must stay below the one-day minimum review interval
        if not timedelta(0) < self.params.relearning_interval < timedelta(days=1):
            raise ValidationError(
                "relearning_interval must be shorter than one day",
                field="relearning_interval",
            )

    def initialize(self, now: datetime | None = None) -> ItemState:
        """Default state for a brand new item, due immediately."""
        return ItemState(due=ensure_utc(now) if now else utc_now())

    def schedule(self, state: ItemState, rating: Rating | int, now: datetime) -> ItemState:
        """
        Process a review and return the new item state.

        Args:
            state: Current state (not modified)
            rating: 0=Again, 1=Hard, 2=Good, 3=Easy
            now: Review timestamp

        Returns:
            Updated ItemState with due >= now

        Raises:
            ValidationError: for a rating outside 0..3 or a malformed state
        """
        grade = Rating.parse(rating)
        state.validate()
        now = ensure_utc(now)

        elapsed = timedelta(0)
        if state.last_reviewed_at is not None:
            elapsed = max(timedelta(0), now - ensure_utc(state.last_reviewed_at))
        elapsed_days = elapsed.total_seconds() / SECONDS_PER_DAY

        if state.repetition_count == 0:
            # First review - use initial stability and difficulty
            stability = self._initial_stability(grade)
            difficulty = self._initial_difficulty(grade)
        else:
            retrievability = forgetting_curve(elapsed_days, state.stability)
            if grade is Rating.AGAIN:
                stability = self._next_forget_stability(
                    state.difficulty, state.stability, retrievability
                )
            else:
                stability = self._next_recall_stability(
                    state.difficulty, state.stability, retrievability, grade
                )
            difficulty = self._next_difficulty(state.difficulty, grade)

        stability = self._clamp_stability(stability)
        difficulty = self._clamp_difficulty(difficulty)

        if grade is Rating.AGAIN:
            phase = Phase.RELAPSING
            lapses = state.lapse_count + 1
            interval = self._relearning_interval(state.scheduled_interval)
        else:
            phase = self._next_phase(state.phase)
            lapses = state.lapse_count
            interval = timedelta(days=self._next_interval(stability))

        return ItemState(
            due=now + interval,
            stability=stability,
            difficulty=difficulty,
            elapsed_interval=elapsed,
            scheduled_interval=interval,
            repetition_count=state.repetition_count + 1,
            lapse_count=lapses,
            phase=phase,
            last_reviewed_at=now,
        )

    def record_outcome(
        self, item: Item, rating: Rating | int, now: datetime
    ) -> tuple[Item, ReviewOutcome]:
        """Schedule an item and build the matching review event."""
        new_state = self.schedule(item.state, rating, now)
        outcome = ReviewOutcome.record(
            item_id=item.item_id,
            topic_id=item.topic_id,
            rating=rating,
            reviewed_at=now,
            previous_phase=item.state.phase,
        )
        return replace(item, state=new_state), outcome

    def preview(self, state: ItemState, now: datetime) -> dict[Rating, datetime]:
        """Next due timestamp for each possible rating."""
        return {grade: self.schedule(state, grade, now).due for grade in Rating}

    def retrievability(self, state: ItemState, now: datetime) -> float:
        """Current recall probability (0-1)."""
        return state.retrievability(now)

    @staticmethod
    def is_due(state: ItemState, now: datetime) -> bool:
        return ensure_utc(state.due) <= ensure_utc(now)

    @staticmethod
    def days_until_due(state: ItemState, now: datetime) -> int:
        """Whole days until due, rounded up; negative when overdue."""
        delta = ensure_utc(state.due) - ensure_utc(now)
        return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)

    # -------------------------------------------------------------------------
    # FSRS formulas
    # -------------------------------------------------------------------------

    def _initial_stability(self, grade: Rating) -> float:
        """Initial stability based on first review grade."""
        return self.w[int(grade)]

    def _initial_difficulty(self, grade: Rating) -> float:
        """Initial difficulty, w4 for Good and one w5 step per rating."""
        return self.w[4] - (int(grade) - Rating.GOOD) * self.w[5]

    def _next_difficulty(self, d: float, grade: Rating) -> float:
        """Update difficulty, reverting slightly towards the Good baseline."""
        new_d = d - self.w[6] * (int(grade) - Rating.GOOD)
        baseline = self._initial_difficulty(Rating.GOOD)
        return self.w[7] * baseline + (1 - self.w[7]) * new_d

    def _next_recall_stability(
        self, d: float, s: float, r: float, grade: Rating
    ) -> float:
        """Calculate new stability after successful recall."""
        hard_penalty = self.w[15] if grade is Rating.HARD else 1.0
        easy_bonus = self.w[16] if grade is Rating.EASY else 1.0

        return s * (
            1 + math.exp(self.w[8]) *
            (11 - d) *
            math.pow(s, -self.w[9]) *
            (math.exp((1 - r) * self.w[10]) - 1) *
            hard_penalty *
            easy_bonus
        )

    def _next_forget_stability(self, d: float, s: float, r: float) -> float:
        """Calculate new stability after forgetting, never above the old one."""
        d = max(d, MIN_DIFFICULTY)
        new_s = self.w[11] * math.pow(d, -self.w[12]) * (
            math.pow(s + 1, self.w[13]) - 1
        ) * math.exp((1 - r) * self.w[14])

        return min(s, new_s)

    def _next_interval(self, stability: float) -> int:
        """Convert stability to interval days at the desired retention."""
        interval = 9 * stability * (1 / self.params.desired_retention - 1)
        return max(1, min(self.params.maximum_interval_days, round(interval)))

    def _relearning_interval(self, previous: timedelta) -> timedelta:
        """Interval after a lapse, halving the previous one on repeated lapses."""
        if previous > timedelta(0):
            return min(self.params.relearning_interval, previous / 2)
        return self.params.relearning_interval

    @staticmethod
    def _next_phase(phase: Phase) -> Phase:
        if phase is Phase.NEW:
            return Phase.LEARNING
        return Phase.REVIEW

    @staticmethod
    def _clamp_stability(stability: float) -> float:
        if not math.isfinite(stability) or stability < MIN_STABILITY:
            logger.warning(
                f"Stability {stability!r} outside the valid range, clamped to {MIN_STABILITY}"
            )
            return MIN_STABILITY
        return stability

    def _clamp_difficulty(self, difficulty: float) -> float:
        if not math.isfinite(difficulty):
            fallback = self._initial_difficulty(Rating.GOOD)
            logger.warning(f"Difficulty {difficulty!r} is not finite, reset to {fallback}")
            return fallback
        return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, difficulty))
