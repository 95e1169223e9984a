"""Services: price store, holdings enrichment and the analytics session."""

from .holdings import HoldingsService, sort_holdings
from .price_store import PriceSeriesStore
from .sector_service import RefreshGeneration, SectorAnalyticsService

__all__ = [
    "HoldingsService",
    "PriceSeriesStore",
    "RefreshGeneration",
    "SectorAnalyticsService",
    "sort_holdings",
]
