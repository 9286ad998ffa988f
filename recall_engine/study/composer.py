"""
Session Composer - band-weighted review queue.

Builds a bounded review session from the due set, biased towards weaker
topics while keeping topic variety:

1. Split the session size into per-band quotas (largest remainder):
   - mastery [0,40)   -> 40%
   - mastery [40,60)  -> 30%
   - mastery [60,85)  -> 20%
   - mastery [85,100] -> 10%
2. Fill each band round-robin across its topics, one item per topic per pass
3. Top up from the whole due set (original order) when bands run dry
4. Shuffle only the final selection

Per-topic item lists are built once and walked with cursors, so every due
item is visited at most once.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

from loguru import logger

from recall_engine.config import DEFAULT_BAND_SHARES, Settings
from recall_engine.core.errors import ValidationError
from recall_engine.core.models import Item

SECONDS_PER_ITEM = 30


@dataclass(frozen=True)
class CompositionBand:
    """A mastery range and its share of the session."""
    label: str
    lower: float
    upper: float
    share: float
    include_upper: bool = False

    def contains(self, score: float) -> bool:
        if self.include_upper:
            return self.lower <= score <= self.upper
        return self.lower <= score < self.upper


def default_bands(shares: list[float] | None = None) -> list[CompositionBand]:
    """The four standard composition bands."""
    critical, weak, moderate, strong = shares or DEFAULT_BAND_SHARES
    return [
        CompositionBand("critical", 0, 40, critical),
        CompositionBand("weak", 40, 60, weak),
        CompositionBand("moderate", 60, 85, moderate),
        CompositionBand("strong", 85, 100, strong, include_upper=True),
    ]


@dataclass
class BandAllocation:
    """Quota and fill count for one band."""
    label: str
    quota: int
    filled: int = 0
    topics: int = 0
    available: int = 0


@dataclass
class SessionPlan:
    """Complete result of a composition."""
    items: list[Item] = field(default_factory=list)
    target_size: int = 0
    allocations: list[BandAllocation] = field(default_factory=list)
    top_up: int = 0
    excluded: list[str] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def estimated_minutes(self) -> int:
        """Estimate study time (30 seconds per item average)."""
        if not self.items:
            return 0
        return max(1, math.ceil(self.total_items * SECONDS_PER_ITEM / 60))


class SessionComposer:
    """
    Composes a review session from due items and their topic scores.

    The selected set is deterministic for a given input; only the final
    presentation order is random.
    """

    def __init__(
        self,
        bands: list[CompositionBand] | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize composer.

        Args:
            bands: Composition bands or None for the standard four
            rng: Random source for the final shuffle
        """
        self.bands = bands or default_bands()
        if abs(sum(band.share for band in self.bands) - 1.0) > 1e-6:
            raise ValidationError("Band shares must sum to 1", field="bands")
        self.rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings: Settings, rng: random.Random | None = None) -> SessionComposer:
        return cls(bands=default_bands(settings.session_band_shares), rng=rng)

    def allocate_quotas(self, target_size: int) -> list[int]:
        """
        Split `target_size` across bands by largest remainder.

        Each quota is the floor of its exact share; leftover slots go to the
        bands with the largest fractional parts (earlier bands win ties), so
        quotas always sum to `target_size`.
        """
        exact = [band.share * target_size for band in self.bands]
        quotas = [math.floor(value) for value in exact]
        leftover = target_size - sum(quotas)
        order = sorted(
            range(len(self.bands)),
            key=lambda i: (-(exact[i] - quotas[i]), i),
        )
        for i in order[:leftover]:
            quotas[i] += 1
        return quotas

    def compose_session(
        self,
        due_items: list[tuple[Item, float]],
        target_size: int,
    ) -> list[Item]:
        """Ordered session of at most `target_size` items."""
        return self.plan(due_items, target_size).items

    def plan(
        self,
        due_items: list[tuple[Item, float]],
        target_size: int,
    ) -> SessionPlan:
        """
        Build a session plan.

        Args:
            due_items: (item, topic mastery score) pairs in due-set order
            target_size: Maximum session size

        Returns:
            SessionPlan with shuffled items and allocation details

        Raises:
            ValidationError: for a negative target size
        """
        if isinstance(target_size, bool) or not isinstance(target_size, int) or target_size < 0:
            raise ValidationError("target_size must be a non-negative integer", field="target_size")

        eligible, scores, excluded = self._screen(due_items)
        quotas = self.allocate_quotas(target_size)
        plan = SessionPlan(
            target_size=target_size,
            allocations=[
                BandAllocation(label=band.label, quota=quota)
                for band, quota in zip(self.bands, quotas)
            ],
            excluded=excluded,
        )
        if not eligible or target_size == 0:
            return plan

        # Per-band, per-topic index lists into `eligible`, in due-set order
        band_topics: list[dict[str, list[int]]] = [{} for _ in self.bands]
        for index, (item, score) in enumerate(zip(eligible, scores)):
            band_index = self._band_index(score)
            band_topics[band_index].setdefault(item.topic_id, []).append(index)

        chosen: list[int] = []
        taken = [False] * len(eligible)

        for allocation, topics in zip(plan.allocations, band_topics):
            allocation.topics = len(topics)
            allocation.available = sum(len(indices) for indices in topics.values())
            picked = self._round_robin(topics, allocation.quota)
            for index in picked:
                taken[index] = True
            chosen.extend(picked)
            allocation.filled = len(picked)

        # Top-up from the whole due set when some bands ran dry
        for index in range(len(eligible)):
            if len(chosen) >= target_size:
                break
            if not taken[index]:
                taken[index] = True
                chosen.append(index)
                plan.top_up += 1

        plan.items = [eligible[index] for index in chosen]
        self.rng.shuffle(plan.items)

        bands_summary = ", ".join(f"{a.label} {a.filled}/{a.quota}" for a in plan.allocations)
        logger.info(
            f"Composed session: {len(plan.items)} of {target_size} requested "
            f"({bands_summary}; top-up {plan.top_up})"
        )
        return plan

    def summarize(self, plan: SessionPlan) -> dict:
        """
        Get summary of a session plan.

        Returns:
            Dictionary with session stats
        """
        return {
            "total_items": plan.total_items,
            "target_size": plan.target_size,
            "bands": {
                a.label: {"quota": a.quota, "filled": a.filled, "topics": a.topics}
                for a in plan.allocations
            },
            "top_up": plan.top_up,
            "excluded": len(plan.excluded),
            "estimated_minutes": plan.estimated_minutes,
        }

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _screen(
        self, due_items: list[tuple[Item, float]]
    ) -> tuple[list[Item], list[float], list[str]]:
        """Drop corrupted and duplicate entries, clamp out-of-range scores."""
        eligible: list[Item] = []
        scores: list[float] = []
        excluded: list[str] = []
        seen: set[str] = set()

        for item, score in due_items:
            item_id = getattr(item, "item_id", None)
            try:
                item.state.validate()
                score = float(score)
            except (ValidationError, AttributeError, TypeError, ValueError) as e:
                logger.debug(f"Excluding item {item_id}: {e}")
                excluded.append(str(item_id))
                continue
            if not math.isfinite(score):
                logger.debug(f"Excluding item {item_id}: mastery score {score!r}")
                excluded.append(str(item_id))
                continue
            if item_id in seen:
                logger.warning(f"Duplicate item {item_id} in due set ignored")
                continue
            if not 0 <= score <= 100:
                logger.warning(f"Mastery score {score} for item {item_id} clamped to 0-100")
                score = min(max(score, 0.0), 100.0)

            seen.add(item_id)
            eligible.append(item)
            scores.append(score)

        if excluded:
            logger.warning(
                f"Excluded {len(excluded)} item(s) with corrupted state from session: "
                f"{', '.join(excluded)}"
            )
        return eligible, scores, excluded

    def _band_index(self, score: float) -> int:
        for index, band in enumerate(self.bands):
            if band.contains(score):
                return index
        # Scores are clamped to 0-100 and the bands cover that range
        return len(self.bands) - 1

    @staticmethod
    def _round_robin(topics: dict[str, list[int]], quota: int) -> list[int]:
        """Take one index per topic per pass until `quota` or exhaustion."""
        picked: list[int] = []
        cursors = {topic: 0 for topic in topics}
        active = list(topics)

        while len(picked) < quota and active:
            next_pass = []
            for topic in active:
                if len(picked) >= quota:
                    break
                indices = topics[topic]
                picked.append(indices[cursors[topic]])
                cursors[topic] += 1
                if cursors[topic] < len(indices):
                    next_pass.append(topic)
            active = next_pass

        return picked
