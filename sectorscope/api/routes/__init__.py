"""API route modules."""

from . import health, sectors

__all__ = ["health", "sectors"]
