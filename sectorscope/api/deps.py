from __future__ import annotations

from fastapi import Request

from sectorscope.core.exceptions import ExternalServiceError
from sectorscope.services import SectorAnalyticsService


def get_service(request: Request) -> SectorAnalyticsService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise ExternalServiceError("Sector analytics service is not running")
    return service
