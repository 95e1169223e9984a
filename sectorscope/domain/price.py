"""Price domain models.

Type-safe representations of weekly price history and the series derived
from it (returns, Z-scores) together with per-sector data-quality metadata.
"""

from __future__ import annotations

from datetime import date as DateType
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class PriceSource(str, Enum):
    """Upstream providers of weekly price history.

    Each source owns a distinct cache namespace so entries never collide.
    """

    YAHOO = "yahoo"
    STOOQ = "stooq"

    @property
    def cache_prefix(self) -> str:
        return {"yahoo": "y", "stooq": "s"}[self.value]


class PricePoint(BaseModel):
    """Week-ending close."""

    model_config = ConfigDict(frozen=True)

    date: DateType = Field(..., description="Week-ending date")
    close: float = Field(..., gt=0, description="Closing price (adjusted when available)")


class PriceSeries(BaseModel):
    """Weekly closes for one ticker.

    Dates are strictly increasing and every close is positive. A series is
    replaced wholesale on refresh and never mutated in place.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., description="Ticker symbol")
    source: PriceSource = Field(..., description="Provider the points came from")
    fetched_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the series was fetched",
    )
    points: tuple[PricePoint, ...] = Field(default=(), description="Chronological closes")

    @field_validator("points")
    @classmethod
    def validate_strictly_increasing(cls, v: tuple[PricePoint, ...]) -> tuple[PricePoint, ...]:
        for prev, cur in zip(v, v[1:]):
            if cur.date <= prev.date:
                raise ValueError(
                    f"price dates must be strictly increasing ({prev.date} then {cur.date})"
                )
        return v

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[PricePoint]:  # type: ignore[override]
        return iter(self.points)

    def __getitem__(self, index: int) -> PricePoint:
        return self.points[index]

    @computed_field
    @property
    def start_date(self) -> DateType | None:
        """First date in history."""
        return self.points[0].date if self.points else None

    @computed_field
    @property
    def end_date(self) -> DateType | None:
        """Last date in history."""
        return self.points[-1].date if self.points else None

    @property
    def latest_close(self) -> float | None:
        return self.points[-1].close if self.points else None

    def since(self, start: DateType) -> "PriceSeries":
        """Points on or after ``start``, as a new series."""
        return self.model_copy(
            update={"points": tuple(p for p in self.points if p.date >= start)}
        )


class ReturnPoint(BaseModel):
    """Percentage return over a fixed lag, dated at the later price."""

    model_config = ConfigDict(frozen=True)

    date: DateType
    value: float


class ZScorePoint(BaseModel):
    """Month-end cyclical Z-score."""

    model_config = ConfigDict(frozen=True)

    date: DateType
    value: float = Field(..., ge=-6.0, le=6.0)


class DataQuality(BaseModel):
    """How much of a sector's history made it through alignment."""

    source: PriceSource | None = None
    point_count: int = 0
    start_date: DateType | None = None
    end_date: DateType | None = None
    aligned_count: int = 0
    missed_count: int = 0
    alignment_pct: int = 0

    @classmethod
    def empty(cls) -> "DataQuality":
        return cls()
