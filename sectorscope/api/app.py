"""API application factory."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from sectorscope.core.config import settings
from sectorscope.core.exceptions import register_exception_handlers
from sectorscope.core.logging import get_logger, request_id_var
from sectorscope.schemas import ErrorResponse
from sectorscope.services import SectorAnalyticsService

from .routes import health, sectors


logger = get_logger("api")


def _lifespan(service: Optional[SectorAnalyticsService]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Own the analytics session for the lifetime of the app."""
        session = service or SectorAnalyticsService()
        await session.start()
        app.state.service = session

        yield

        app.state.service = None
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Service shutdown failed: {e}")

    return lifespan


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its status and duration."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()

        response = await call_next(request)

        duration = time.monotonic() - start_time

        # Path only; query strings are not logged
        path = request.url.path

        logger.info(
            f"{request.method} {path} -> {response.status_code} ({duration:.3f}s)",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": int(duration * 1000),
            },
        )

        return response


def create_api_app(service: Optional[SectorAnalyticsService] = None) -> FastAPI:
    """
    Create and configure the API application.

    Args:
        service: Analytics session to serve; a default one is created on
            startup when omitted
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Sector ETF cyclical Z-score and rotation analytics",
        root_path=settings.root_path,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=_lifespan(service),
        responses={
            400: {"model": ErrorResponse, "description": "Bad Request"},
            404: {"model": ErrorResponse, "description": "Not Found"},
            422: {"model": ErrorResponse, "description": "Validation Error"},
            500: {"model": ErrorResponse, "description": "Internal Server Error"},
            502: {"model": ErrorResponse, "description": "Invalid Upstream Payload"},
            503: {"model": ErrorResponse, "description": "Upstream Unavailable"},
        },
    )

    # Add middlewares (order matters - first added is outermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(sectors.router, prefix="/sectors", tags=["Sectors"])

    return app
