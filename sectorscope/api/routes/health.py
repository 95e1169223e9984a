"""Health check endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from sectorscope.core.config import settings
from sectorscope.schemas import HealthResponse
from sectorscope.services import SectorAnalyticsService

from ..deps import get_service


router = APIRouter(prefix="/health")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the analytics session and upstream route health.",
)
async def health_check(service: SectorAnalyticsService = Depends(get_service)) -> HealthResponse:
    """
    Report session state.

    ``degraded`` means the service is running but every fetch route is
    currently broken or no refresh has completed yet.
    """
    checks = {
        "cache": service.started,
        "routes": service.routes_available(),
        "refreshed": service.generation is not None,
    }

    if all(checks.values()):
        status = "healthy"
    elif checks["cache"]:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get(
    "/live",
    summary="Liveness probe",
    description="Returns 200 while the process is serving requests.",
)
async def liveness() -> dict:
    return {"status": "alive"}
