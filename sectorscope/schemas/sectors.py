"""
Pydantic schemas for the sector analytics API.

Missing values serialize as ``null``; clients render them as "no data"
(sectors) or "Gap" (holding metrics).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from sectorscope.domain import (
    DataQuality,
    HoldingSort,
    RankedHolding,
    ReturnPoint,
    SectorSignal,
    ZScorePoint,
)


# ============================================================================
# Refresh
# ============================================================================


class RefreshConfig(BaseModel):
    """Options for one refresh of every sector's Z-scores."""

    return_period_years: float = Field(
        default=1.0, gt=0, le=10, description="Trailing return period in years"
    )
    zscore_window_years: float = Field(
        default=5.0, gt=0, le=25, description="Z-score lookback window in years"
    )
    benchmark_ticker: str = Field(
        default="SPY", min_length=1, max_length=10, description="Benchmark ticker"
    )

    @field_validator("benchmark_ticker")
    @classmethod
    def upper_ticker(cls, v: str) -> str:
        return v.strip().upper()


class RefreshResult(BaseModel):
    """Output of a refresh: monthly Z-scores and data quality per sector."""

    config: RefreshConfig
    benchmark: str
    refreshed_at: datetime
    per_sector_zscore: dict[str, list[ZScorePoint]] = Field(default_factory=dict)
    per_sector_quality: dict[str, DataQuality] = Field(default_factory=dict)


# ============================================================================
# Sector list
# ============================================================================


class SectorSummary(BaseModel):
    """Latest reading for one sector."""

    ticker: str
    name: str
    zscore: Optional[float] = Field(None, description="Latest monthly Z-score")
    signal: Optional[SectorSignal] = None
    as_of: Optional[date] = None
    quality: DataQuality = Field(default_factory=DataQuality)


class SectorListResponse(BaseModel):
    benchmark: Optional[str] = None
    refreshed_at: Optional[datetime] = None
    selected: Optional[str] = None
    sectors: list[SectorSummary] = Field(default_factory=list)


# ============================================================================
# Holdings and performance
# ============================================================================


class HoldingsResponse(BaseModel):
    sector: str
    sort: HoldingSort
    sector_turn: bool = False
    holdings: list[RankedHolding] = Field(default_factory=list)


class PerformanceResponse(BaseModel):
    """Sector and benchmark cumulative % change from a common start."""

    sector: str
    benchmark: str
    start: Optional[date] = None
    sector_curve: list[ReturnPoint] = Field(default_factory=list)
    benchmark_curve: list[ReturnPoint] = Field(default_factory=list)
