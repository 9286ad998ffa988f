"""
Configuration settings for the recall engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Published FSRS v4 default parameters
DEFAULT_FSRS_WEIGHTS = [
    0.4,    # w0: initial stability for Again
    0.6,    # w1: initial stability for Hard
    2.4,    # w2: initial stability for Good
    5.8,    # w3: initial stability for Easy
    4.93,   # w4: initial difficulty for Good
    0.94,   # w5: initial difficulty step per rating
    0.86,   # w6: difficulty step per rating
    0.01,   # w7: difficulty mean reversion
    1.49,   # w8: recall stability growth (exp)
    0.14,   # w9: recall stability saturation
    0.94,   # w10: recall retrievability gain
    2.18,   # w11: forget stability base
    0.05,   # w12: forget difficulty exponent
    0.34,   # w13: forget stability exponent
    1.26,   # w14: forget retrievability gain
    0.29,   # w15: hard penalty
    2.61,   # w16: easy bonus
]

DEFAULT_BAND_SHARES = [0.40, 0.30, 0.20, 0.10]

MINUTES_PER_DAY = 24 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # FSRS Settings (item scheduler)
    # ========================================
    fsrs_weights: list[float] = Field(
        default_factory=lambda: list(DEFAULT_FSRS_WEIGHTS),
        description="FSRS model weights w0..w16",
    )
    fsrs_desired_retention: float = Field(
        default=0.9,
        description="Target retention rate for scheduling",
    )
    fsrs_maximum_interval_days: int = Field(
        default=36500,
        description="Longest interval the scheduler will assign (days)",
    )
    fsrs_relearning_minutes: int = Field(
        default=10,
        description="Re-learning interval after a lapse (minutes, under one day)",
    )

    # ========================================
    # Mastery Aggregation
    # ========================================
    mastery_history_depth: int = Field(
        default=30,
        description="Number of most recent outcomes considered per topic",
    )
    mastery_decay_constant: float = Field(
        default=10.0,
        description="Rank decay constant for recency weighting",
    )

    # ========================================
    # Session Composition
    # ========================================
    session_target_size: int = Field(
        default=80,
        description="Default number of items per review session",
    )
    session_band_shares: list[float] = Field(
        default_factory=lambda: list(DEFAULT_BAND_SHARES),
        description="Share of the session for mastery bands [0,40), [40,60), [60,85), [85,100]",
    )

    # ========================================
    # Daily Caps (study statistics)
    # ========================================
    max_reviews_per_day: int = Field(
        default=100,
        description="Daily review allowance",
    )
    max_new_items_per_day: int = Field(
        default=10,
        description="Daily allowance of first-time reviews",
    )

    @field_validator("fsrs_weights")
    @classmethod
    def _check_weights(cls, value: list[float]) -> list[float]:
        if len(value) != len(DEFAULT_FSRS_WEIGHTS):
            raise ValueError(f"fsrs_weights needs {len(DEFAULT_FSRS_WEIGHTS)} values")
        return value

    @field_validator("fsrs_desired_retention")
    @classmethod
    def _check_retention(cls, value: float) -> float:
        if not 0 < value < 1:
            raise ValueError("fsrs_desired_retention must be between 0 and 1")
        return value

    @field_validator(
        "fsrs_maximum_interval_days",
        "fsrs_relearning_minutes",
        "mastery_history_depth",
        "session_target_size",
    )
    @classmethod
    def _check_positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("fsrs_relearning_minutes")
    @classmethod
    def _check_relearning(cls, value: int) -> int:
        if value >= MINUTES_PER_DAY:
            raise ValueError("fsrs_relearning_minutes must be shorter than one day")
        return value

    @field_validator("mastery_decay_constant")
    @classmethod
    def _check_decay(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("mastery_decay_constant must be positive")
        return value

    @field_validator("max_reviews_per_day", "max_new_items_per_day")
    @classmethod
    def _check_caps(cls, value: int) -> int:
        if value < 0:
            raise ValueError("daily caps must not be negative")
        return value

    @field_validator("session_band_shares")
    @classmethod
    def _check_shares(cls, value: list[float]) -> list[float]:
        if len(value) != len(DEFAULT_BAND_SHARES):
            raise ValueError("session_band_shares needs four values")
        if any(share < 0 for share in value):
            raise ValueError("session_band_shares must not be negative")
        if abs(sum(value) - 1.0) > 1e-6:
            raise ValueError("session_band_shares must sum to 1")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
