"""
Composite growth score for sector holdings.

Each metric is percentile-ranked against the holding's peers (the other
holdings scored with it), then combined through the configured weight table.

Metric handling:
    continuous (returns, co-move, sentiment, news): % of peers strictly below
    drawdown: % of peers with a strictly larger drawdown (smaller is better)
    flags (30-week trend, RS trend): True -> 100, False -> 0

Metrics with no data, or with no peer to rank against, are left out of both
the weighted sum and the weight total, so partial data lowers confidence
rather than the score.

The weight table and boost factor are untuned heuristics carried as
configuration.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import numpy as np

from sectorscope.domain import GrowthScore, HoldingMetrics

from .config import QuantConfig, get_quant_config


CONTINUOUS_METRICS: dict[str, Callable[[HoldingMetrics], Optional[float]]] = {
    "ret_12m": lambda m: m.ret_12m,
    "ret_6m": lambda m: m.ret_6m,
    "ret_3m": lambda m: m.ret_3m,
    "comove": lambda m: m.comove,
    "sentiment": lambda m: m.sentiment,
    "news": lambda m: m.news_count,
}

INVERTED_METRICS: dict[str, Callable[[HoldingMetrics], Optional[float]]] = {
    "drawdown": lambda m: m.max_drawdown,
}

FLAG_METRICS: dict[str, Callable[[HoldingMetrics], Optional[bool]]] = {
    "trend_30w": lambda m: m.above_30w_ma,
    "rs_trend": lambda m: m.rs_trend_improving,
}


def percentile_rank(value: float, population: Sequence[float] | np.ndarray) -> Optional[float]:
    """Percent of the population strictly below ``value``; None when empty."""
    values = np.asarray(population, dtype=float)
    if len(values) == 0:
        return None
    return float((values < value).mean() * 100)


def inverted_percentile_rank(
    value: float, population: Sequence[float] | np.ndarray
) -> Optional[float]:
    """Percent of the population strictly above ``value``; None when empty."""
    values = np.asarray(population, dtype=float)
    if len(values) == 0:
        return None
    return float((values > value).mean() * 100)


def detect_sector_turn(
    zscores: Sequence[float],
    rs_above_ma: Optional[bool],
    config: QuantConfig | None = None,
) -> bool:
    """
    A sector "turn": Z was below the low threshold within the lookback of
    monthly points, the latest Z has since recovered above the recovery
    threshold, and relative strength is above its moving average.
    """
    cfg = config or get_quant_config()
    if not rs_above_ma:
        return False
    recent = list(zscores[-cfg.sector_turn_lookback:])
    if len(recent) < 2:
        return False
    lows = [i for i, z in enumerate(recent[:-1]) if z < cfg.sector_turn_low]
    if not lows:
        return False
    return recent[-1] > cfg.sector_turn_recovered


def _populations(peers: Sequence[HoldingMetrics]) -> dict[str, np.ndarray]:
    pops: dict[str, np.ndarray] = {}
    for key, getter in {**CONTINUOUS_METRICS, **INVERTED_METRICS}.items():
        values = np.array(
            [np.nan if v is None else v for v in (getter(m) for m in peers)], dtype=float
        )
        pops[key] = values[~np.isnan(values)]
    return pops


def metric_percentiles(
    metrics: HoldingMetrics,
    populations: dict[str, np.ndarray],
) -> dict[str, float]:
    """Percentile of every metric the holding has data and peers for."""
    out: dict[str, float] = {}
    for key, getter in CONTINUOUS_METRICS.items():
        value = getter(metrics)
        if value is not None:
            pct = percentile_rank(value, populations[key])
            if pct is not None:
                out[key] = pct
    for key, getter in INVERTED_METRICS.items():
        value = getter(metrics)
        if value is not None:
            pct = inverted_percentile_rank(value, populations[key])
            if pct is not None:
                out[key] = pct
    for key, getter in FLAG_METRICS.items():
        flag = getter(metrics)
        if flag is not None:
            out[key] = 100.0 if flag else 0.0
    return out


def compute_growth_score(
    metrics: HoldingMetrics,
    peers: Sequence[HoldingMetrics],
    sector_turn: bool = False,
    config: QuantConfig | None = None,
) -> GrowthScore:
    """
    Score one holding against the peers it is ranked with.

    Args:
        metrics: The holding's metric bundle
        peers: The other bundles in the cross-section (excluding this one)
        sector_turn: Whether the sector-turn condition holds
        config: Weight table and boost factor

    Returns:
        GrowthScore with score in [0, 100] rounded to one decimal, or a
        None score when no weighted metric has data
    """
    cfg = config or get_quant_config()
    percentiles = metric_percentiles(metrics, _populations(peers))

    weighted = 0.0
    total_weight = 0.0
    for key, pct in percentiles.items():
        weight = cfg.growth_weights.get(key, 0.0)
        if weight > 0:
            weighted += weight * pct
            total_weight += weight

    if total_weight <= 0:
        return GrowthScore(score=None, percentiles=percentiles, sector_turn=sector_turn)

    score = weighted / total_weight
    boosted = False
    comove_pct = percentiles.get("comove")
    if sector_turn and comove_pct is not None:
        score = min(100.0, score * (1 + cfg.cycle_boost_factor * (comove_pct / 100)))
        boosted = True

    return GrowthScore(
        score=round(score, 1),
        percentiles={k: round(v, 1) for k, v in percentiles.items()},
        sector_turn=sector_turn,
        boosted=boosted,
    )


def score_universe(
    universe: Sequence[HoldingMetrics],
    sector_turn: bool = False,
    config: QuantConfig | None = None,
) -> list[GrowthScore]:
    """Growth scores for every holding in the cross-section, in input order."""
    holdings = list(universe)
    return [
        compute_growth_score(m, holdings[:i] + holdings[i + 1:], sector_turn, config)
        for i, m in enumerate(holdings)
    ]
