"""Return and summary statistics over weekly price series.

All returns are percentages: a move from 100 to 110 is ``10.0``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

import numpy as np

from sectorscope.domain import PricePoint, ReturnPoint


def rolling_return(series: Sequence[PricePoint], lag_weeks: int) -> list[ReturnPoint]:
    """
    Percentage return over a fixed lag, dated at the later price.

    The first ``lag_weeks`` points have no history to compare against and
    produce no output. Output order follows input order.

    Args:
        series: Chronological price points
        lag_weeks: Lag in points (weeks)

    Returns:
        ReturnPoint list of length ``max(0, len(series) - lag_weeks)``
        when every close is positive
    """
    if lag_weeks < 1:
        raise ValueError("lag_weeks must be >= 1")

    out: list[ReturnPoint] = []
    for i in range(lag_weeks, len(series)):
        cur = series[i].close
        prev = series[i - lag_weeks].close
        if cur > 0 and prev > 0:
            out.append(ReturnPoint(date=series[i].date, value=(cur / prev - 1) * 100))
    return out


def weekly_return(series: Sequence[PricePoint]) -> list[ReturnPoint]:
    """One-week returns, used for covariance work."""
    return rolling_return(series, 1)


def period_return(series: Sequence[PricePoint], lag_weeks: int) -> Optional[float]:
    """Return of the latest close over ``lag_weeks`` earlier, or None."""
    if len(series) <= lag_weeks:
        return None
    prev = series[-1 - lag_weeks].close
    if prev <= 0:
        return None
    return (series[-1].close / prev - 1) * 100


def max_drawdown(series: Sequence[PricePoint], weeks: int = 52) -> Optional[float]:
    """
    Largest peak-to-trough decline over the trailing window.

    Returns:
        Positive percent magnitude (25.0 = 25% drawdown), or None with fewer
        than two points
    """
    window = series[-(weeks + 1):] if len(series) > weeks + 1 else series
    if len(window) < 2:
        return None

    closes = np.array([p.close for p in window], dtype=float)
    running_max = np.maximum.accumulate(closes)
    drawdowns = (running_max - closes) / running_max
    return float(np.max(drawdowns)) * 100


def above_moving_average(series: Sequence[PricePoint], window: int = 30) -> Optional[bool]:
    """Whether the latest close sits above its ``window``-point simple average."""
    if len(series) < window:
        return None
    closes = [p.close for p in series[-window:]]
    return series[-1].close > sum(closes) / window


@dataclass(frozen=True)
class ReturnStats:
    """Sample statistics of a return window."""

    mean: float
    variance: float
    std: float
    count: int


def sample_stats(values: Sequence[float]) -> Optional[ReturnStats]:
    """
    Sample mean, variance and standard deviation.

    The variance denominator is ``n - 1`` guarded to a minimum of 1.
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if n == 0:
        return None
    mean = float(np.mean(arr))
    variance = float(np.var(arr, ddof=1)) if n > 1 else 0.0
    return ReturnStats(mean=mean, variance=variance, std=float(np.sqrt(variance)), count=n)


def normalize_prices(
    series: Sequence[PricePoint],
    start: Optional[date] = None,
) -> list[ReturnPoint]:
    """
    Cumulative percent change from the first close on or after ``start``.

    Used to draw a sector and its benchmark on one scale from a common date.
    """
    points = [p for p in series if start is None or p.date >= start]
    if not points:
        return []
    base = points[0].close
    return [ReturnPoint(date=p.date, value=(p.close / base - 1) * 100) for p in points]
