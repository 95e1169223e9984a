"""Core infrastructure: settings, logging, exceptions."""

from .config import settings
from .exceptions import (
    AppException,
    DataUnavailableError,
    ExternalServiceError,
    InvalidPayloadError,
    NotFoundError,
    UpstreamUnavailableError,
)
from .logging import get_logger, setup_logging


__all__ = [
    "settings",
    "AppException",
    "DataUnavailableError",
    "ExternalServiceError",
    "InvalidPayloadError",
    "NotFoundError",
    "UpstreamUnavailableError",
    "get_logger",
    "setup_logging",
]
