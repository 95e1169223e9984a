"""Nearest-timestamp alignment between independently fetched series.

Two weekly series from different sources rarely share exact dates (holidays,
different week-ending conventions, fetch cadence). A ``ReturnIndex`` over one
series lets the other look up the value closest in time, within a tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Sequence

import numpy as np

from sectorscope.domain import ReturnPoint


MS_PER_DAY = 86_400_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_ms(d: date) -> int:
    """Milliseconds since the epoch at UTC midnight of ``d``."""
    dt = datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    return int((dt - _EPOCH).total_seconds()) * 1000


@dataclass(frozen=True)
class ReturnIndex:
    """Sorted timestamps and their values as parallel arrays."""

    timestamps: np.ndarray
    values: np.ndarray

    def __len__(self) -> int:
        return len(self.timestamps)

    @property
    def is_empty(self) -> bool:
        return len(self.timestamps) == 0


def build_index(returns: Sequence[ReturnPoint]) -> ReturnIndex:
    """
    Build a lookup index over a return series.

    The input is already chronological (returns are generated from sorted
    prices), so no sort is performed.
    """
    timestamps = np.fromiter(
        (to_epoch_ms(r.date) for r in returns), dtype=np.int64, count=len(returns)
    )
    values = np.fromiter((r.value for r in returns), dtype=float, count=len(returns))
    return ReturnIndex(timestamps=timestamps, values=values)


def nearest(index: ReturnIndex, target_ts: int, max_delta_days: float) -> Optional[float]:
    """
    Value of the index point closest in time to ``target_ts``.

    Binary-searches the insertion point, then compares the point there with
    the one immediately before it. On an exact tie the earlier point wins.

    Args:
        index: Index to search
        target_ts: Epoch milliseconds to look up
        max_delta_days: Tolerance; a closest match further away than this is a miss

    Returns:
        The matched value, or None when nothing lies within the tolerance
    """
    n = len(index.timestamps)
    if n == 0:
        return None

    pos = int(np.searchsorted(index.timestamps, target_ts, side="left"))

    best: Optional[int] = None
    best_delta: Optional[int] = None
    for candidate in (pos - 1, pos):
        if 0 <= candidate < n:
            delta = abs(int(index.timestamps[candidate]) - target_ts)
            if best_delta is None or delta < best_delta:
                best, best_delta = candidate, delta

    if best is None or best_delta > max_delta_days * MS_PER_DAY:
        return None
    return float(index.values[best])


def nearest_on(index: ReturnIndex, d: date, max_delta_days: float) -> Optional[float]:
    """``nearest`` keyed by calendar date."""
    return nearest(index, to_epoch_ms(d), max_delta_days)
