"""Local TTL cache persisted to a JSON file.

A single shared mapping from string key to ``{ts, data}``. Many fetch tasks
read and write it concurrently on one event loop; keys are unique per
(source, ticker) or (kind, symbol), so a duplicate concurrent fetch just
overwrites an entry with equivalent data.

Values must be JSON-compatible. Dates travel as ISO-8601 strings and are
revived into typed objects by the caller (pydantic models at the store layer).
The cache is best-effort: persistence failures are logged and swallowed.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from sectorscope.core.logging import get_logger

logger = get_logger("cache")


def cache_key(*parts: Union[str, int, float]) -> str:
    """
    Generate a consistent cache key from parts.

    Usage:
        cache_key("y", "XLK") -> "y:XLK"
    """
    sanitized = [str(part).replace(":", "_") for part in parts]
    return ":".join(sanitized)


@dataclass
class CacheEntry:
    """A cached value and the epoch seconds it was stored at."""

    ts: float
    data: Any

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.ts

    def is_fresh(self, ttl: float, now: float | None = None) -> bool:
        return self.age(now) < ttl


class PersistentCache:
    """In-memory TTL cache with a JSON file behind it."""

    def __init__(self, path: Union[str, Path, None] = None, max_age: float = 24 * 60 * 60):
        """
        Args:
            path: File to persist to; None keeps the cache memory-only
            max_age: Entries older than this are discarded on load
        """
        self.path = Path(path) if path is not None else None
        self.max_age = max_age
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries))

    def entry(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get(self, key: str, ttl: Optional[float] = None) -> Optional[Any]:
        """Cached data for ``key``, or None when absent or older than ``ttl``."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key}")
            return None
        if not entry.is_fresh(ttl if ttl is not None else self.max_age):
            logger.debug(f"Cache stale: {key}")
            return None
        logger.debug(f"Cache hit: {key}")
        return entry.data

    def has(self, key: str, ttl: Optional[float] = None) -> bool:
        """True when ``key`` holds a non-expired entry."""
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(ttl if ttl is not None else self.max_age)

    def set(self, key: str, data: Any, ts: Optional[float] = None) -> None:
        """Store ``data`` stamped with ``ts`` (now by default)."""
        self._entries[key] = CacheEntry(ts=ts if ts is not None else time.time(), data=data)
        logger.debug(f"Cache set: {key}")

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def persist(self) -> bool:
        """
        Write every entry to the backing file atomically.

        Returns:
            True on success; False when memory-only or the write failed
        """
        if self.path is None:
            return False
        payload = {k: {"ts": e.ts, "data": e.data} for k, e in self._entries.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".cache-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, default=str)
                os.replace(tmp, self.path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.debug(f"Cache persist failed: {e}")
            return False
        return True

    def load(self) -> int:
        """
        Replace in-memory entries with the backing file's fresh entries.

        Malformed entries and entries older than ``max_age`` are dropped; a
        missing or unreadable file yields an empty cache.

        Returns:
            Number of entries loaded
        """
        self._entries = {}
        if self.path is None or not self.path.exists():
            return 0
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as e:
            logger.debug(f"Cache load failed: {e}")
            return 0
        if not isinstance(raw, dict):
            return 0

        now = time.time()
        for key, value in raw.items():
            if not isinstance(value, dict) or "data" not in value:
                continue
            ts = value.get("ts")
            if not isinstance(ts, (int, float)) or isinstance(ts, bool):
                continue
            entry = CacheEntry(ts=float(ts), data=value["data"])
            if entry.is_fresh(self.max_age, now):
                self._entries[key] = entry

        logger.info(f"Loaded {len(self._entries)} cache entries from {self.path}")
        return len(self._entries)
