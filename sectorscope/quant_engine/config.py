"""Quant engine policy knobs.

Warm-up lengths, window minimums, tolerances and the growth weight table are
empirically tuned values, not derived constants. They are loaded from the
environment so they can be adjusted without code changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


DEFAULT_GROWTH_WEIGHTS: dict[str, float] = {
    "ret_12m": 0.20,
    "ret_6m": 0.15,
    "ret_3m": 0.10,
    "drawdown": 0.15,
    "trend_30w": 0.10,
    "rs_trend": 0.10,
    "comove": 0.10,
    "sentiment": 0.05,
    "news": 0.05,
}


class QuantSettings(BaseSettings):
    """Quant engine settings from environment."""

    model_config = ConfigDict(extra="ignore")

    # Z-score engine
    zscore_min_warmup: int = Field(
        default=52, ge=1, description="Minimum relative-return points before scoring"
    )
    zscore_warmup_fraction: float = Field(
        default=0.6, gt=0, le=1, description="Fraction of the window required as warm-up"
    )
    zscore_min_window: int = Field(
        default=30, ge=2, description="Minimum trailing points in a scoring window"
    )
    zscore_min_std: float = Field(
        default=1e-6, gt=0, description="Windows flatter than this are skipped"
    )
    zscore_clamp: float = Field(default=6.0, gt=0, description="Z-scores are clamped to +/- this")
    benchmark_tolerance_days: int = Field(
        default=10, ge=0, le=31, description="Sector/benchmark alignment tolerance"
    )

    # Rotation signal
    rotation_ma_window: int = Field(default=30, ge=2)
    rotation_trend_lookback: int = Field(default=5, ge=1)
    rotation_min_points: int = Field(default=30, ge=2)
    rotation_flat_band: float = Field(
        default=0.005, ge=0, le=0.1, description="Relative ratio change treated as flat"
    )

    # Co-movement
    comove_window_weeks: int = Field(default=110, ge=10)
    comove_tolerance_days: int = Field(default=7, ge=0, le=31)
    comove_min_pairs: int = Field(default=8, ge=3)
    comove_min_t_stat: float = Field(
        default=2.0, ge=0, description="Correlations with a smaller |t| score as noise"
    )

    # Growth score
    growth_weights: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_GROWTH_WEIGHTS)
    )
    cycle_boost_factor: float = Field(default=0.25, ge=0, le=2)
    sector_turn_low: float = Field(default=-2.0)
    sector_turn_recovered: float = Field(default=-1.0)
    sector_turn_lookback: int = Field(default=6, ge=2)


@dataclass
class QuantConfig:
    """Runtime quant configuration (plain object passed into the engines)."""

    zscore_min_warmup: int = 52
    zscore_warmup_fraction: float = 0.6
    zscore_min_window: int = 30
    zscore_min_std: float = 1e-6
    zscore_clamp: float = 6.0
    benchmark_tolerance_days: int = 10

    rotation_ma_window: int = 30
    rotation_trend_lookback: int = 5
    rotation_min_points: int = 30
    rotation_flat_band: float = 0.005

    comove_window_weeks: int = 110
    comove_tolerance_days: int = 7
    comove_min_pairs: int = 8
    comove_min_t_stat: float = 2.0

    growth_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_GROWTH_WEIGHTS)
    )
    cycle_boost_factor: float = 0.25
    sector_turn_low: float = -2.0
    sector_turn_recovered: float = -1.0
    sector_turn_lookback: int = 6

    @classmethod
    def from_settings(cls, settings: QuantSettings) -> "QuantConfig":
        """Create config from settings."""
        return cls(**settings.model_dump())


@lru_cache
def get_quant_config() -> QuantConfig:
    """Get cached quant configuration."""
    return QuantConfig.from_settings(QuantSettings())
