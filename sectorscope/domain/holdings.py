"""Holdings domain models.

Constituents of a sector ETF and the per-holding metrics they are ranked on.
Every metric is optional: a missing value is a gap in the data, never a zero.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Holding(BaseModel):
    """Membership of a sector ETF."""

    ticker: str
    name: str = ""
    weight: float = Field(default=0.0, ge=0, description="Percent of fund, 0 if unknown")


class HoldingMetrics(BaseModel):
    """Technical and sentiment inputs to the growth score."""

    ret_12m: float | None = None
    ret_6m: float | None = None
    ret_3m: float | None = None
    max_drawdown: float | None = Field(
        default=None, description="Trailing-year max drawdown, positive percent"
    )
    above_30w_ma: bool | None = None
    rs_trend_improving: bool | None = None
    comove: float | None = None
    sentiment: float | None = None
    news_count: float | None = None


class GrowthScore(BaseModel):
    """Composite 0-100 score with the percentile ranks behind it."""

    score: float | None = Field(default=None, ge=0, le=100)
    percentiles: dict[str, float] = Field(default_factory=dict)
    sector_turn: bool = False
    boosted: bool = False


class HoldingSort(str, Enum):
    """Caller-selectable ranking key; every key sorts descending."""

    SCORE = "score"
    WEIGHT = "weight"
    COMOVE = "comove"
    RET_12M = "ret_12m"


class RankedHolding(BaseModel):
    """A holding enriched with its metrics and scores."""

    ticker: str
    name: str = ""
    weight: float = 0.0
    metrics: HoldingMetrics = Field(default_factory=HoldingMetrics)
    growth: GrowthScore = Field(default_factory=GrowthScore)

    @property
    def comove(self) -> float | None:
        return self.metrics.comove

    @property
    def score(self) -> float | None:
        return self.growth.score

    def sort_value(self, key: HoldingSort) -> float | None:
        if key is HoldingSort.SCORE:
            return self.growth.score
        if key is HoldingSort.WEIGHT:
            return self.weight
        if key is HoldingSort.COMOVE:
            return self.metrics.comove
        return self.metrics.ret_12m
