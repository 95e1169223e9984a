"""
Sector analytics API routes.

Provides endpoints for:
- Refreshing cyclical Z-scores for the whole sector universe
- The latest Z-score and classification per sector
- Rotation signal, holdings ranking and price performance for one sector
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from sectorscope.core.exceptions import NotFoundError
from sectorscope.domain import HoldingSort, RotationSignal
from sectorscope.schemas import (
    HoldingsResponse,
    PerformanceResponse,
    RefreshConfig,
    RefreshResult,
    SectorListResponse,
)
from sectorscope.services import SectorAnalyticsService

from ..deps import get_service


router = APIRouter()


def _sector_list(service: SectorAnalyticsService) -> SectorListResponse:
    gen = service.generation
    return SectorListResponse(
        benchmark=gen.benchmark.symbol if gen else None,
        refreshed_at=gen.refreshed_at if gen else None,
        selected=service.selected_sector,
        sectors=service.latest_zscores(),
    )


@router.post(
    "/refresh",
    response_model=RefreshResult,
    summary="Refresh sector Z-scores",
    description="Fetch the benchmark and every sector, then recompute monthly Z-scores.",
)
async def refresh_sectors(
    config: Optional[RefreshConfig] = Body(default=None),
    service: SectorAnalyticsService = Depends(get_service),
) -> RefreshResult:
    return await service.refresh_all(config)


@router.get(
    "",
    response_model=SectorListResponse,
    summary="Latest sector readings",
    description="Latest Z-score and signal per sector, lowest first; sectors with no data last.",
)
async def list_sectors(
    service: SectorAnalyticsService = Depends(get_service),
) -> SectorListResponse:
    return _sector_list(service)


@router.post(
    "/{ticker}/select",
    response_model=SectorListResponse,
    summary="Select a sector",
)
async def select_sector(
    ticker: str,
    service: SectorAnalyticsService = Depends(get_service),
) -> SectorListResponse:
    service.select_sector(ticker)
    return _sector_list(service)


@router.get(
    "/{ticker}/rotation",
    response_model=RotationSignal,
    summary="Rotation signal",
    description="Relative-strength rotation trigger for a sector against a benchmark.",
)
async def get_rotation(
    ticker: str,
    benchmark: Optional[str] = Query(None, min_length=1, max_length=10),
    service: SectorAnalyticsService = Depends(get_service),
) -> RotationSignal:
    signal = await service.get_rotation_signal(ticker, benchmark)
    if signal is None:
        raise NotFoundError(f"No rotation signal for {ticker.upper()}")
    return signal


@router.get(
    "/{ticker}/holdings",
    response_model=HoldingsResponse,
    summary="Ranked holdings",
    description="Sector holdings with co-move and growth scores; missing metrics are null.",
)
async def get_holdings(
    ticker: str,
    sort: HoldingSort = Query(HoldingSort.SCORE),
    service: SectorAnalyticsService = Depends(get_service),
) -> HoldingsResponse:
    return await service.get_holdings_ranking(ticker, sort)


@router.get(
    "/{ticker}/performance",
    response_model=PerformanceResponse,
    summary="Price performance",
    description="Sector and benchmark cumulative % change from a common start date.",
)
async def get_performance(
    ticker: str,
    benchmark: Optional[str] = Query(None, min_length=1, max_length=10),
    start: Optional[date] = Query(None),
    service: SectorAnalyticsService = Depends(get_service),
) -> PerformanceResponse:
    return await service.get_performance(ticker, benchmark, start)
