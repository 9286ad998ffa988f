"""
Core Module - Shared domain models and interfaces.

Components:
- models: Items, item state, review outcomes, topics
- mastery: Recency-weighted mastery aggregation and bands
- errors: ValidationError / DataUnavailableError taxonomy

Design Principle:
Engine components in study/ import from core/ rather than
reimplementing shared concepts.
"""

from recall_engine.core.errors import DataUnavailableError, RecallEngineError, ValidationError
from recall_engine.core.mastery import (
    AggregatorParameters,
    MasteryAggregator,
    MasteryBand,
    classify_band,
)
from recall_engine.core.models import Item, ItemState, Phase, Rating, ReviewOutcome, Topic

__all__ = [
    # Errors
    "RecallEngineError",
    "ValidationError",
    "DataUnavailableError",
    # Models
    "Item",
    "ItemState",
    "Phase",
    "Rating",
    "ReviewOutcome",
    "Topic",
    # Mastery
    "AggregatorParameters",
    "MasteryAggregator",
    "MasteryBand",
    "classify_band",
]
