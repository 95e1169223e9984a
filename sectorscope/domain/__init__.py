"""Domain models for strongly-typed data throughout the application.

Usage:
    from sectorscope.domain import PriceSeries, ZScorePoint, RotationSignal

    series: PriceSeries = await store.get_prices("XLK")
    data = series.model_dump(mode="json")
"""

from sectorscope.domain.holdings import (
    GrowthScore,
    Holding,
    HoldingMetrics,
    HoldingSort,
    RankedHolding,
)
from sectorscope.domain.price import (
    DataQuality,
    PricePoint,
    PriceSeries,
    PriceSource,
    ReturnPoint,
    ZScorePoint,
)
from sectorscope.domain.signals import (
    RotationSignal,
    SectorSignal,
    Setup,
    Trend,
    Trigger,
)

__all__ = [
    # Price
    "DataQuality",
    "PricePoint",
    "PriceSeries",
    "PriceSource",
    "ReturnPoint",
    "ZScorePoint",
    # Holdings
    "GrowthScore",
    "Holding",
    "HoldingMetrics",
    "HoldingSort",
    "RankedHolding",
    # Signals
    "RotationSignal",
    "SectorSignal",
    "Setup",
    "Trend",
    "Trigger",
]
