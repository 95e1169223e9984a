"""Holding-versus-sector co-movement.

A single-factor sensitivity measure: correlation times beta of a holding's
weekly returns against its sector's weekly returns over a trailing window.
It is not a full regression (no intercept, no residual diagnostics).

A correlation whose t-statistic falls below ``comove_min_t_stat`` is
indistinguishable from noise and yields no score.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from sectorscope.domain import PricePoint

from .alignment import ReturnIndex, build_index, nearest_on
from .config import QuantConfig, get_quant_config
from .returns import ReturnStats, sample_stats, weekly_return


@dataclass(frozen=True)
class SectorReturnProfile:
    """Sector weekly-return index and statistics, computed once per sector."""

    index: ReturnIndex
    stats: ReturnStats


@dataclass(frozen=True)
class CoMovement:
    """Correlation and beta of one holding against its sector."""

    correlation: float
    beta: float
    pairs: int

    @property
    def score(self) -> Optional[float]:
        """``correlation * beta`` when both are finite and positive, else None.

        A holding moving against its sector, or with no measurable
        co-movement, gets no comparative rank.
        """
        if not (np.isfinite(self.correlation) and np.isfinite(self.beta)):
            return None
        if self.correlation <= 0 or self.beta <= 0:
            return None
        return self.correlation * self.beta

    @property
    def t_stat(self) -> float:
        """t-statistic of the correlation over ``pairs - 2`` degrees of freedom."""
        r = self.correlation
        if not np.isfinite(r) or self.pairs <= 2:
            return 0.0
        if abs(r) >= 1:
            return float(np.copysign(np.inf, r))
        return float(r * np.sqrt((self.pairs - 2) / (1 - r * r)))


def sector_profile(
    sector: Sequence[PricePoint],
    config: QuantConfig | None = None,
) -> Optional[SectorReturnProfile]:
    """Build the trailing-window return profile of a sector."""
    cfg = config or get_quant_config()
    weekly = weekly_return(sector)[-cfg.comove_window_weeks:]
    stats = sample_stats([r.value for r in weekly])
    if stats is None:
        return None
    return SectorReturnProfile(index=build_index(weekly), stats=stats)


def compute_comovement(
    stock: Sequence[PricePoint],
    profile: SectorReturnProfile,
    config: QuantConfig | None = None,
) -> Optional[CoMovement]:
    """
    Pair a holding's weekly returns with the nearest sector weekly returns.

    Covariance uses the holding's mean over the paired weeks and the sector
    mean from the precomputed profile.

    Returns:
        CoMovement, or None with fewer aligned pairs than required
    """
    cfg = config or get_quant_config()
    stock_returns = weekly_return(stock)[-cfg.comove_window_weeks:]

    stock_values: list[float] = []
    sector_values: list[float] = []
    for r in stock_returns:
        sector_value = nearest_on(profile.index, r.date, cfg.comove_tolerance_days)
        if sector_value is not None:
            stock_values.append(r.value)
            sector_values.append(sector_value)

    n = len(stock_values)
    if n < cfg.comove_min_pairs:
        return None

    stock_arr = np.asarray(stock_values, dtype=float)
    sector_arr = np.asarray(sector_values, dtype=float)
    cov = float(np.dot(stock_arr - np.mean(stock_arr), sector_arr - profile.stats.mean)) / max(1, n - 1)
    stock_std = float(np.std(stock_arr, ddof=1)) if n > 1 else 0.0

    denom = stock_std * profile.stats.std
    correlation = cov / denom if denom > 0 else float("nan")
    beta = cov / profile.stats.variance if profile.stats.variance > 0 else float("nan")
    return CoMovement(correlation=correlation, beta=beta, pairs=n)


def comove_score(
    stock: Sequence[PricePoint],
    profile: SectorReturnProfile,
    config: QuantConfig | None = None,
) -> Optional[float]:
    """Correlation x beta, or None when undefined or not significant."""
    cfg = config or get_quant_config()
    result = compute_comovement(stock, profile, cfg)
    if result is None or abs(result.t_stat) < cfg.comove_min_t_stat:
        return None
    return result.score
