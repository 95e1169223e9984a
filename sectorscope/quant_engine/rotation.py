"""Relative-strength rotation signal.

The sector/benchmark close ratio rising above its moving average while the
sector's Z-score is depressed is the classic "rotation in" setup; the mirror
image (extended Z, ratio rolling over below its average) is "rotation out".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from sectorscope.domain import PricePoint, RotationSignal, Setup, Trend, Trigger

from .alignment import MS_PER_DAY, to_epoch_ms
from .config import QuantConfig, get_quant_config


@dataclass(frozen=True)
class RatioPoint:
    date: date
    value: float


def ratio_series(
    numerator: Sequence[PricePoint],
    denominator: Sequence[PricePoint],
    tolerance_days: float = 10,
) -> list[RatioPoint]:
    """
    Close ratio of two series aligned by nearest date.

    Both inputs are walked once in date order: the denominator cursor only
    moves forward, stepping while the next point is strictly closer to the
    current numerator date (so ties resolve to the earlier point).
    """
    out: list[RatioPoint] = []
    n_den = len(denominator)
    if n_den == 0:
        return out

    den_ts = [to_epoch_ms(p.date) for p in denominator]
    max_delta = tolerance_days * MS_PER_DAY
    j = 0
    for p in numerator:
        target = to_epoch_ms(p.date)
        while j + 1 < n_den and abs(den_ts[j + 1] - target) < abs(den_ts[j] - target):
            j += 1
        if abs(den_ts[j] - target) > max_delta:
            continue
        den_close = denominator[j].close
        if den_close > 0:
            out.append(RatioPoint(date=p.date, value=p.close / den_close))
    return out


def moving_average(values: Sequence[float], window: int) -> Optional[float]:
    """Simple average of the trailing ``window`` values."""
    if len(values) < window or window <= 0:
        return None
    tail = values[-window:]
    return sum(tail) / window


def classify_setup(z: float) -> Setup:
    if z < -1:
        return Setup.WEAK
    if z > 1:
        return Setup.STRONG
    return Setup.NEUTRAL


def classify_trend(current: float, earlier: float, flat_band: float = 0.0) -> Trend:
    """Direction of the ratio versus its value a few points earlier."""
    if earlier <= 0:
        return Trend.FLAT
    change = current / earlier - 1
    if change > flat_band:
        return Trend.UP
    if change < -flat_band:
        return Trend.DOWN
    return Trend.FLAT


def classify_trigger(setup: Setup, above_ma: bool, trending: Trend) -> Trigger:
    if setup is Setup.WEAK and above_ma and trending is Trend.UP:
        return Trigger.BUY_ROTATION
    if setup is Setup.STRONG and not above_ma and trending is Trend.DOWN:
        return Trigger.SELL_ROTATION
    if setup is Setup.WEAK:
        return Trigger.WATCH
    if setup is Setup.STRONG:
        return Trigger.CAUTION
    return Trigger.WAIT


def trigger_confidence(z: float, setup: Setup, above_ma: bool, trigger: Trigger) -> float:
    """
    Heuristic 0-100 confidence for display.

    Scales with |Z| when the moving-average condition agrees with the
    setup's direction (above for weak, below for strong); otherwise watch
    and caution states sit at a flat 30 and WAIT at 0.
    """
    if trigger is Trigger.WAIT:
        return 0.0
    supports = (setup is Setup.WEAK and above_ma) or (setup is Setup.STRONG and not above_ma)
    if supports:
        return min(100.0, abs(z) * 30 + 20)
    return 30.0


def compute_rotation_signal(
    sector: Sequence[PricePoint],
    benchmark: Sequence[PricePoint],
    zscore: Optional[float],
    sector_ticker: str = "",
    benchmark_ticker: str = "",
    config: QuantConfig | None = None,
) -> Optional[RotationSignal]:
    """
    Classify the rotation state of a sector.

    Args:
        sector: Sector weekly prices
        benchmark: Benchmark weekly prices
        zscore: The sector's current cyclical Z-score
        sector_ticker: Label for the result
        benchmark_ticker: Label for the result
        config: Policy knobs

    Returns:
        RotationSignal, or None without a Z-score or with fewer aligned ratio
        points than required
    """
    cfg = config or get_quant_config()
    if zscore is None:
        return None

    ratios = ratio_series(sector, benchmark, cfg.benchmark_tolerance_days)
    if len(ratios) < max(cfg.rotation_min_points, cfg.rotation_trend_lookback + 1):
        return None

    values = [r.value for r in ratios]
    current = values[-1]
    ma = moving_average(values, cfg.rotation_ma_window)
    if ma is None:
        return None

    setup = classify_setup(zscore)
    above_ma = current > ma
    trending = classify_trend(
        current, values[-1 - cfg.rotation_trend_lookback], cfg.rotation_flat_band
    )
    trigger = classify_trigger(setup, above_ma, trending)

    return RotationSignal(
        sector=sector_ticker,
        benchmark=benchmark_ticker,
        zscore=zscore,
        setup=setup,
        ratio=current,
        ratio_ma=ma,
        above_ma=above_ma,
        trending=trending,
        trigger=trigger,
        confidence=trigger_confidence(zscore, setup, above_ma, trigger),
        points=len(ratios),
    )


def relative_strength_above_ma(
    sector: Sequence[PricePoint],
    benchmark: Sequence[PricePoint],
    config: QuantConfig | None = None,
) -> Optional[bool]:
    """Whether the sector/benchmark ratio sits above its moving average."""
    cfg = config or get_quant_config()
    values = [r.value for r in ratio_series(sector, benchmark, cfg.benchmark_tolerance_days)]
    ma = moving_average(values, cfg.rotation_ma_window)
    if ma is None:
        return None
    return values[-1] > ma
