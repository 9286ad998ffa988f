"""
Error taxonomy for the review scheduling engine.

- ValidationError: malformed rating or item state, rejected before mutation
- DataUnavailableError: a storage collaborator could not deliver data

Computation invariant violations (e.g. a negative stability produced by the
forgetting-curve update) are not errors: they are clamped and logged.
"""

from __future__ import annotations


class RecallEngineError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(RecallEngineError):
    """Raised when a rating, item state or parameter is malformed."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DataUnavailableError(RecallEngineError):
    """Raised by storage collaborators when a fetch fails."""
    pass
