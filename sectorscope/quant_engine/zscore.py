"""
Cyclical Z-score engine.

A sector's trailing return minus the benchmark's trailing return gives a
relative-return series. Each relative return is then standardized against
its own trailing window (the current point is never part of the window it
is scored against), clamped, and reduced to one point per calendar month.

Pipeline:
    sector prices -> rolling_return(ret_weeks)
                  -> align to benchmark returns (nearest within tolerance)
                  -> relative returns
                  -> rolling_zscores(z_weeks) with warm-up and flat-window guards
                  -> dedupe_monthly
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from sectorscope.core.logging import get_logger
from sectorscope.domain import DataQuality, PricePoint, PriceSeries, ReturnPoint, ZScorePoint

from .alignment import ReturnIndex, build_index, nearest_on
from .config import QuantConfig, get_quant_config
from .returns import rolling_return

logger = get_logger("quant_engine.zscore")


def weeks_from_years(years: float) -> int:
    """Convert a period in years to whole weeks."""
    return max(1, int(math.floor(years * 52 + 0.5)))


@dataclass
class RelativeReturns:
    """Sector-minus-benchmark returns with alignment counts."""

    points: list[ReturnPoint] = field(default_factory=list)
    aligned_count: int = 0
    missed_count: int = 0

    @property
    def alignment_pct(self) -> int:
        total = self.aligned_count + self.missed_count
        if total == 0:
            return 0
        return int(math.floor(self.aligned_count / total * 100 + 0.5))


@dataclass
class ZScoreResult:
    """Monthly Z-scores plus the data-quality summary behind them."""

    points: list[ZScorePoint]
    quality: DataQuality

    @property
    def latest(self) -> Optional[float]:
        return self.points[-1].value if self.points else None


def benchmark_index(benchmark: Sequence[PricePoint], ret_weeks: int) -> ReturnIndex:
    """Index of benchmark returns, built once per refresh and shared by every sector."""
    return build_index(rolling_return(benchmark, ret_weeks))


def relative_returns(
    sector: Sequence[PricePoint],
    bench_index: ReturnIndex,
    ret_weeks: int,
    tolerance_days: float = 10,
) -> RelativeReturns:
    """
    Sector return minus the nearest benchmark return at each sector date.

    Sector points without a benchmark return inside the tolerance are
    dropped and counted as missed.
    """
    result = RelativeReturns()
    for r in rolling_return(sector, ret_weeks):
        bench = nearest_on(bench_index, r.date, tolerance_days)
        if bench is None:
            result.missed_count += 1
            continue
        result.aligned_count += 1
        result.points.append(ReturnPoint(date=r.date, value=r.value - bench))
    return result


def warmup_length(z_weeks: int, n: int, config: QuantConfig | None = None) -> int:
    """History required before the first Z-score is emitted."""
    cfg = config or get_quant_config()
    return max(cfg.zscore_min_warmup, int(math.floor(min(z_weeks, n) * cfg.zscore_warmup_fraction)))


def rolling_zscores(
    rel: Sequence[ReturnPoint],
    z_weeks: int,
    config: QuantConfig | None = None,
) -> list[ZScorePoint]:
    """
    Score each relative return against its trailing window.

    The window for index ``i`` is ``rel[max(0, i - z_weeks):i]``. Windows
    shorter than the configured minimum, or flatter than the minimum
    standard deviation, produce no point.

    Returns:
        One ZScorePoint per scored week (not yet deduplicated)
    """
    cfg = config or get_quant_config()
    n = len(rel)
    warmup = warmup_length(z_weeks, n, cfg)
    if n <= warmup:
        return []

    values = np.fromiter((r.value for r in rel), dtype=float, count=n)
    clamp = cfg.zscore_clamp
    out: list[ZScorePoint] = []
    skipped_flat = 0

    for i in range(warmup, n):
        window = values[max(0, i - z_weeks):i]
        size = len(window)
        if size < cfg.zscore_min_window:
            continue
        mean = float(window.mean())
        std = math.sqrt(float(((window - mean) ** 2).sum()) / max(1, size - 1))
        if std < cfg.zscore_min_std:
            skipped_flat += 1
            continue
        z = (values[i] - mean) / std
        out.append(ZScorePoint(date=rel[i].date, value=max(-clamp, min(clamp, float(z)))))

    if skipped_flat:
        logger.debug(f"Skipped {skipped_flat} flat windows")
    return out


def dedupe_monthly(points: Sequence[ZScorePoint]) -> list[ZScorePoint]:
    """Keep the chronologically last point in each calendar month."""
    monthly: dict[tuple[int, int], ZScorePoint] = {}
    for p in points:
        key = (p.date.year, p.date.month)
        existing = monthly.get(key)
        if existing is None or p.date >= existing.date:
            monthly[key] = p
    return sorted(monthly.values(), key=lambda p: p.date)


def compute_sector_zscores(
    sector: PriceSeries,
    bench_index: ReturnIndex,
    ret_weeks: int,
    z_weeks: int,
    config: QuantConfig | None = None,
) -> ZScoreResult:
    """
    Full Z-score pipeline for one sector.

    Insufficient history is not an error: newly listed tickers simply yield
    an empty point list.

    Args:
        sector: Sector weekly prices
        bench_index: Shared benchmark return index for ``ret_weeks``
        ret_weeks: Return lag in weeks
        z_weeks: Z-score window in weeks
        config: Policy knobs (defaults from environment)

    Returns:
        ZScoreResult with monthly points ascending and quality metadata
    """
    cfg = config or get_quant_config()
    rel = relative_returns(sector, bench_index, ret_weeks, cfg.benchmark_tolerance_days)
    points = dedupe_monthly(rolling_zscores(rel.points, z_weeks, cfg))

    quality = DataQuality(
        source=sector.source,
        point_count=len(sector),
        start_date=sector.start_date,
        end_date=sector.end_date,
        aligned_count=rel.aligned_count,
        missed_count=rel.missed_count,
        alignment_pct=rel.alignment_pct,
    )
    return ZScoreResult(points=points, quality=quality)


def latest_value(points: Sequence[ZScorePoint]) -> Optional[float]:
    return points[-1].value if points else None