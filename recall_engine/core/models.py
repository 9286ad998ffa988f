"""
Core data model for the review scheduling engine.

Design:
- Rating / Phase: small integer enums shared by every component
- ItemState: the spaced-repetition state of one item (immutable)
- Item: a reviewable unit bound to a topic
- ReviewOutcome: append-only review event
- Topic: knowledge node carrying an aggregated mastery score

All records are frozen dataclasses; the scheduler and aggregator return new
records instead of mutating the ones they were given.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import IntEnum
from typing import Any

from recall_engine.core.errors import ValidationError

SECONDS_PER_DAY = 86400.0

# Grade score contributed by each rating to the mastery aggregate
GRADE_SCORES = {
    0: 0.0,  # Again
    1: 0.4,  # Hard
    2: 1.0,  # Good
    3: 1.0,  # Easy
}


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def forgetting_curve(elapsed_days: float, stability: float) -> float:
    """
    Probability of recall after `elapsed_days` for a memory of `stability`.

    Power forgetting curve R = (1 + t / (9 * S)) ^ -1, which gives
    R = 0.9 when t == S.
    """
    if stability <= 0:
        return 0.0
    return math.pow(1 + max(0.0, elapsed_days) / (9 * stability), -1)


class Rating(IntEnum):
    """Review rating given by the learner."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    @property
    def grade_score(self) -> float:
        return GRADE_SCORES[int(self)]

    @property
    def is_lapse(self) -> bool:
        return self is Rating.AGAIN

    @classmethod
    def parse(cls, value: Any) -> Rating:
        """
        Convert a raw value into a Rating.

        Raises:
            ValidationError: if value is not an integer in 0..3
        """
        if isinstance(value, Rating):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"Rating must be an integer 0-3, got {value!r}", field="rating"
            )
        if value not in GRADE_SCORES:
            raise ValidationError(
                f"Rating must be between 0 and 3, got {value}", field="rating"
            )
        return cls(value)


class Phase(IntEnum):
    """Scheduling phase of an item."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELAPSING = 3

    @property
    def display_name(self) -> str:
        return self.name.title()


@dataclass(frozen=True)
class ItemState:
    """Spaced-repetition state for a single item."""

    due: datetime
    stability: float = 0.0  # Days until recall probability drops to 90%
    difficulty: float = 0.0  # 1 (easy) to 10 (hard); 0 until first review
    elapsed_interval: timedelta = timedelta(0)
    scheduled_interval: timedelta = timedelta(0)
    repetition_count: int = 0
    lapse_count: int = 0
    phase: Phase = Phase.NEW
    last_reviewed_at: datetime | None = None

    def validate(self) -> ItemState:
        """
        Check the state invariants.

        Returns:
            self, so the call can be chained

        Raises:
            ValidationError: on missing or out-of-range fields
        """
        if not isinstance(self.due, datetime):
            raise ValidationError("due must be a datetime", field="due")
        for name in ("stability", "difficulty"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{name} must be a number", field=name)
            if not math.isfinite(value):
                raise ValidationError(f"{name} must be finite", field=name)
        if self.stability < 0:
            raise ValidationError(
                f"stability must not be negative, got {self.stability}",
                field="stability",
            )
        for name in ("repetition_count", "lapse_count"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError(
                    f"{name} must be a non-negative integer", field=name
                )
        if self.repetition_count > 0 and self.stability <= 0:
            raise ValidationError(
                "stability must be positive once the item has been reviewed",
                field="stability",
            )
        if not isinstance(self.phase, Phase):
            raise ValidationError("phase must be a Phase", field="phase")
        for name in ("elapsed_interval", "scheduled_interval"):
            if not isinstance(getattr(self, name), timedelta):
                raise ValidationError(f"{name} must be a timedelta", field=name)
        return self

    def retrievability(self, now: datetime) -> float:
        """Current recall probability (0-1); 0 for items never reviewed."""
        if self.last_reviewed_at is None:
            return 0.0
        elapsed = ensure_utc(now) - ensure_utc(self.last_reviewed_at)
        return forgetting_curve(elapsed.total_seconds() / SECONDS_PER_DAY, self.stability)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        return {
            "due": ensure_utc(self.due).isoformat(),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_seconds": self.elapsed_interval.total_seconds(),
            "scheduled_seconds": self.scheduled_interval.total_seconds(),
            "repetition_count": self.repetition_count,
            "lapse_count": self.lapse_count,
            "phase": self.phase.name.lower(),
            "last_reviewed_at": (
                ensure_utc(self.last_reviewed_at).isoformat()
                if self.last_reviewed_at
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ItemState:
        """
        Rebuild a state from `to_dict` output.

        Raises:
            ValidationError: if a required field is missing or malformed
        """
        data = _mapping(data, "Item state")
        try:
            state = cls(
                due=ensure_utc(datetime.fromisoformat(data["due"])),
                stability=_number(data, "stability"),
                difficulty=_number(data, "difficulty"),
                elapsed_interval=timedelta(seconds=_number(data, "elapsed_seconds", 0)),
                scheduled_interval=timedelta(seconds=_number(data, "scheduled_seconds", 0)),
                repetition_count=int(data.get("repetition_count", 0)),
                lapse_count=int(data.get("lapse_count", 0)),
                phase=_phase(data.get("phase", "new")),
                last_reviewed_at=(
                    ensure_utc(datetime.fromisoformat(data["last_reviewed_at"]))
                    if data.get("last_reviewed_at")
                    else None
                ),
            )
        except KeyError as e:
            raise ValidationError(f"Missing item state field: {e.args[0]}", field=e.args[0]) from e
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed item state: {e}") from e
        return state.validate()


def _mapping(data: Any, kind: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError(f"{kind} must be an object, got {type(data).__name__}")
    return data


def _number(data: dict[str, Any], key: str, default: float | None = None) -> float:
    if key not in data or data[key] is None:
        if default is None:
            raise KeyError(key)
        return default
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number, got {value!r}", field=key)
    return float(value)


def _phase(value: Any) -> Phase:
    if isinstance(value, Phase):
        return value
    if isinstance(value, str):
        try:
            return Phase[value.upper()]
        except KeyError:
            raise ValidationError(f"Unknown phase {value!r}", field="phase") from None
    return Phase(int(value))


@dataclass(frozen=True)
class Item:
    """An atomic reviewable question/answer unit."""

    item_id: str
    topic_id: str
    state: ItemState
    front: str = ""
    back: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.item_id,
            "topic_id": self.topic_id,
            "front": self.front,
            "back": self.back,
            "state": self.state.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Item:
        data = _mapping(data, "Item")
        try:
            item_id = str(data["id"])
            topic_id = str(data["topic_id"])
        except KeyError as e:
            raise ValidationError(f"Missing item field: {e.args[0]}", field=e.args[0]) from e
        return cls(
            item_id=item_id,
            topic_id=topic_id,
            state=ItemState.from_dict(data.get("state") or {}),
            front=str(data.get("front", "")),
            back=str(data.get("back", "")),
        )


@dataclass(frozen=True)
class ReviewOutcome:
    """Immutable record of one review."""

    item_id: str
    topic_id: str
    rating: Rating
    grade_score: float
    reviewed_at: datetime
    previous_phase: Phase = Phase.REVIEW

    @classmethod
    def record(
        cls,
        item_id: str,
        topic_id: str,
        rating: Rating | int,
        reviewed_at: datetime,
        previous_phase: Phase = Phase.REVIEW,
    ) -> ReviewOutcome:
        """Create an outcome, deriving the grade score from the rating."""
        parsed = Rating.parse(rating)
        return cls(
            item_id=item_id,
            topic_id=topic_id,
            rating=parsed,
            grade_score=parsed.grade_score,
            reviewed_at=ensure_utc(reviewed_at),
            previous_phase=previous_phase,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "topic_id": self.topic_id,
            "rating": int(self.rating),
            "reviewed_at": self.reviewed_at.isoformat(),
            "previous_phase": self.previous_phase.name.lower(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewOutcome:
        data = _mapping(data, "Outcome")
        try:
            return cls.record(
                item_id=str(data["item_id"]),
                topic_id=str(data["topic_id"]),
                rating=data["rating"],
                reviewed_at=datetime.fromisoformat(data["reviewed_at"]),
                previous_phase=_phase(data.get("previous_phase", "review")),
            )
        except KeyError as e:
            raise ValidationError(f"Missing outcome field: {e.args[0]}", field=e.args[0]) from e
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed outcome: {e}") from e


@dataclass(frozen=True)
class Topic:
    """A named grouping of items with its aggregated mastery score."""

    topic_id: str
    name: str = ""
    mastery_score: float = 0.0
    last_aggregated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.topic_id,
            "name": self.name,
            "mastery_score": self.mastery_score,
            "last_aggregated_at": (
                self.last_aggregated_at.isoformat() if self.last_aggregated_at else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Topic:
        data = _mapping(data, "Topic")
        try:
            topic_id = str(data["id"])
        except KeyError as e:
            raise ValidationError("Missing topic field: id", field="id") from e
        aggregated = data.get("last_aggregated_at")
        try:
            last_aggregated_at = (
                ensure_utc(datetime.fromisoformat(aggregated)) if aggregated else None
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed topic {topic_id!r}: {e}", field="last_aggregated_at") from e
        return cls(
            topic_id=topic_id,
            name=str(data.get("name", topic_id)),
            mastery_score=_number(data, "mastery_score", 0.0),
            last_aggregated_at=last_aggregated_at,
        )
