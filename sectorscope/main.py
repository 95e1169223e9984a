"""Main application entry point."""

from __future__ import annotations

from fastapi import FastAPI

from sectorscope.api.app import create_api_app
from sectorscope.core.config import settings
from sectorscope.core.logging import get_logger, setup_logging

logger = get_logger("main")


def create_app() -> FastAPI:
    """Create the application with logging configured."""
    setup_logging()
    app = create_api_app()

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if settings.debug else None,
            "health": "/health",
        }

    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")
    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sectorscope.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
