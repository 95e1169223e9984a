"""
Quant engine: the statistical time-series pipeline.

Pure, synchronous computation over already-fetched price series. Nothing in
this package performs I/O.

Modules:
    returns    rolling / weekly returns and summary statistics
    alignment  binary-searchable nearest-timestamp index
    zscore     relative-return cyclical Z-scores
    rotation   relative-strength ratio and rotation trigger
    comove     correlation x beta of a holding against its sector
    growth     percentile composite growth score
"""

from .alignment import ReturnIndex, build_index, nearest, nearest_on, to_epoch_ms
from .comove import (
    CoMovement,
    SectorReturnProfile,
    comove_score,
    compute_comovement,
    sector_profile,
)
from .config import QuantConfig, QuantSettings, get_quant_config
from .growth import (
    compute_growth_score,
    detect_sector_turn,
    percentile_rank,
    score_universe,
)
from .returns import (
    ReturnStats,
    above_moving_average,
    max_drawdown,
    normalize_prices,
    period_return,
    rolling_return,
    sample_stats,
    weekly_return,
)
from .rotation import compute_rotation_signal, ratio_series, relative_strength_above_ma
from .zscore import (
    ZScoreResult,
    benchmark_index,
    compute_sector_zscores,
    dedupe_monthly,
    relative_returns,
    rolling_zscores,
    weeks_from_years,
)

__all__ = [
    "CoMovement",
    "QuantConfig",
    "QuantSettings",
    "ReturnIndex",
    "ReturnStats",
    "SectorReturnProfile",
    "ZScoreResult",
    "above_moving_average",
    "benchmark_index",
    "build_index",
    "comove_score",
    "compute_comovement",
    "compute_growth_score",
    "compute_rotation_signal",
    "compute_sector_zscores",
    "dedupe_monthly",
    "detect_sector_turn",
    "get_quant_config",
    "max_drawdown",
    "nearest",
    "nearest_on",
    "normalize_prices",
    "percentile_rank",
    "period_return",
    "ratio_series",
    "relative_returns",
    "relative_strength_above_ma",
    "rolling_return",
    "rolling_zscores",
    "sample_stats",
    "score_universe",
    "sector_profile",
    "to_epoch_ms",
    "weekly_return",
    "weeks_from_years",
]
