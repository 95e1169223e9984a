"""Rotation and sector classification models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Setup(str, Enum):
    WEAK = "WEAK"
    STRONG = "STRONG"
    NEUTRAL = "NEUTRAL"


class Trend(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


class Trigger(str, Enum):
    BUY_ROTATION = "BUY ROTATION"
    SELL_ROTATION = "SELL ROTATION"
    WATCH = "WATCH"
    CAUTION = "CAUTION"
    WAIT = "WAIT"


class SectorSignal(str, Enum):
    """Label shown next to a sector's latest Z-score."""

    CYCLICAL_LOW = "CYCLICAL LOW"
    CHEAP = "CHEAP"
    EXTENDED = "EXTENDED"
    NEUTRAL = "NEUTRAL"

    @classmethod
    def classify(cls, z: float | None) -> "SectorSignal | None":
        if z is None:
            return None
        if z < -2:
            return cls.CYCLICAL_LOW
        if z < -1:
            return cls.CHEAP
        if z > 2:
            return cls.EXTENDED
        return cls.NEUTRAL


class RotationSignal(BaseModel):
    """Relative-strength rotation read for one sector against a benchmark.

    ``confidence`` is a presentation heuristic on a 0-100 scale, not a
    calibrated probability.
    """

    sector: str
    benchmark: str
    zscore: float
    setup: Setup
    ratio: float = Field(..., description="Latest sector/benchmark close ratio")
    ratio_ma: float = Field(..., description="Moving average of the ratio")
    above_ma: bool
    trending: Trend
    trigger: Trigger
    confidence: float = Field(..., ge=0, le=100)
    points: int = Field(..., description="Aligned ratio points used")
