"""API request and response schemas."""

from .common import ErrorResponse, HealthResponse
from .sectors import (
    HoldingsResponse,
    PerformanceResponse,
    RefreshConfig,
    RefreshResult,
    SectorListResponse,
    SectorSummary,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "HoldingsResponse",
    "PerformanceResponse",
    "RefreshConfig",
    "RefreshResult",
    "SectorListResponse",
    "SectorSummary",
]
