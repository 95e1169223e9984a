"""Local TTL cache module."""

from .store import (
    CacheEntry,
    PersistentCache,
    cache_key,
)


__all__ = [
    "CacheEntry",
    "PersistentCache",
    "cache_key",
]
