"""
Sector analytics session.

One ``SectorAnalyticsService`` owns every piece of mutable state the
pipeline needs: the local cache, the HTTP fetcher with its route health,
the price store, the holdings service, the last refresh generation and the
current sector selection. It is created at application start and closed
(cache persisted, HTTP client released) at shutdown.

Refresh ordering:
    1. benchmark series fetched and its return index built (fatal on failure)
    2. every sector fetched with bounded concurrency and scored independently
    3. results assembled in universe order
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sectorscope.cache import PersistentCache
from sectorscope.core.config import settings
from sectorscope.core.exceptions import DataUnavailableError, NotFoundError
from sectorscope.core.logging import get_logger
from sectorscope.domain import (
    DataQuality,
    HoldingSort,
    PriceSeries,
    RotationSignal,
    SectorSignal,
    ZScorePoint,
)
from sectorscope.quant_engine import (
    QuantConfig,
    benchmark_index,
    compute_rotation_signal,
    compute_sector_zscores,
    detect_sector_turn,
    get_quant_config,
    normalize_prices,
    relative_strength_above_ma,
    weeks_from_years,
)
from sectorscope.schemas import (
    HoldingsResponse,
    PerformanceResponse,
    RefreshConfig,
    RefreshResult,
    SectorSummary,
)

from .data_providers import HttpFetcher, NewsSentimentClient
from .holdings import HoldingsService
from .price_store import PriceSeriesStore

logger = get_logger("sector_service")


@dataclass
class RefreshGeneration:
    """Everything one refresh produced; replaced wholesale by the next."""

    config: RefreshConfig
    benchmark: PriceSeries
    zscores: dict[str, list[ZScorePoint]]
    quality: dict[str, DataQuality]
    refreshed_at: datetime


class SectorAnalyticsService:
    """Cyclical Z-score, rotation and holdings analytics for a sector universe."""

    def __init__(
        self,
        cache: Optional[PersistentCache] = None,
        fetcher: Optional[HttpFetcher] = None,
        news: Optional[NewsSentimentClient] = None,
        config: Optional[QuantConfig] = None,
        universe: Optional[dict[str, str]] = None,
        concurrency: Optional[int] = None,
    ):
        self.cache = cache or PersistentCache(settings.cache_path, max_age=settings.price_cache_ttl)
        self.fetcher = fetcher or HttpFetcher()
        self.config = config or get_quant_config()
        self.universe = {t.upper(): n for t, n in (universe or settings.sector_universe).items()}
        self.concurrency = concurrency or settings.sector_fetch_concurrency

        self.store = PriceSeriesStore(self.cache, self.fetcher)
        self.holdings = HoldingsService(
            self.cache,
            self.fetcher,
            self.store,
            news=news or NewsSentimentClient(self.fetcher.client),
            config=self.config,
        )

        self._generation: Optional[RefreshGeneration] = None
        self._selected: Optional[str] = None
        self._refresh_lock = asyncio.Lock()
        self.started = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        loaded = self.cache.load()
        self.started = True
        logger.info(f"Sector analytics started ({loaded} cached entries, {len(self.universe)} sectors)")

    async def close(self) -> None:
        self.cache.persist()
        await self.fetcher.aclose()
        self.started = False
        logger.info("Sector analytics stopped")

    async def __aenter__(self) -> "SectorAnalyticsService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def generation(self) -> Optional[RefreshGeneration]:
        return self._generation

    @property
    def selected_sector(self) -> Optional[str]:
        return self._selected

    def select_sector(self, ticker: str) -> str:
        self._selected = self._require_sector(ticker)
        return self._selected

    def routes_available(self) -> bool:
        health = self.fetcher.health
        return any(not health.breaker(r).is_open for r in health.routes)

    def _require_sector(self, ticker: str) -> str:
        ticker = ticker.upper()
        if ticker not in self.universe:
            raise NotFoundError(f"Unknown sector: {ticker}")
        return ticker

    async def _ensure_refreshed(self) -> RefreshGeneration:
        if self._generation is None:
            await self.refresh_all()
        assert self._generation is not None
        return self._generation

    async def _benchmark_series(self, ticker: str, generation: RefreshGeneration) -> PriceSeries:
        if ticker == generation.benchmark.symbol:
            return generation.benchmark
        return await self.store.get_prices(ticker)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def refresh_all(self, config: Optional[RefreshConfig] = None) -> RefreshResult:
        """
        Recompute monthly Z-scores for every sector.

        A sector whose prices cannot be fetched gets an empty series and empty
        quality; it never aborts the batch.

        Raises:
            DataUnavailableError: The benchmark series could not be fetched
        """
        config = config or RefreshConfig(benchmark_ticker=settings.default_benchmark)
        ret_weeks = weeks_from_years(config.return_period_years)
        z_weeks = weeks_from_years(config.zscore_window_years)

        async with self._refresh_lock:
            benchmark = await self.store.get_prices(config.benchmark_ticker)
            bench_index = benchmark_index(benchmark.points, ret_weeks)

            semaphore = asyncio.Semaphore(self.concurrency)

            async def fetch(ticker: str) -> Optional[PriceSeries]:
                async with semaphore:
                    try:
                        return await self.store.get_prices(ticker)
                    except DataUnavailableError as e:
                        logger.warning(f"Skipping {ticker}: {e.message}")
                        return None

            tickers = list(self.universe)
            series_list = await asyncio.gather(*(fetch(t) for t in tickers))

            zscores: dict[str, list[ZScorePoint]] = {}
            quality: dict[str, DataQuality] = {}
            for ticker, series in zip(tickers, series_list):
                if series is None:
                    zscores[ticker] = []
                    quality[ticker] = DataQuality.empty()
                    continue
                result = compute_sector_zscores(series, bench_index, ret_weeks, z_weeks, self.config)
                zscores[ticker] = result.points
                quality[ticker] = result.quality

            generation = RefreshGeneration(
                config=config,
                benchmark=benchmark,
                zscores=zscores,
                quality=quality,
                refreshed_at=datetime.now(timezone.utc),
            )
            self._generation = generation
            if self._selected is None and self.universe:
                # Lowest latest Z first; the first universe sector when none scored
                self._selected = self.latest_zscores()[0].ticker

        scored = sum(1 for points in zscores.values() if points)
        logger.info(
            f"Refreshed {scored}/{len(tickers)} sectors vs {benchmark.symbol}",
            extra={"ret_weeks": ret_weeks, "z_weeks": z_weeks},
        )
        return RefreshResult(
            config=config,
            benchmark=benchmark.symbol,
            refreshed_at=generation.refreshed_at,
            per_sector_zscore=zscores,
            per_sector_quality=quality,
        )

    def latest_zscores(self) -> list[SectorSummary]:
        """Latest reading per sector, ascending by Z-score; sectors with no data last."""
        gen = self._generation
        rows = []
        for ticker, name in self.universe.items():
            points = gen.zscores.get(ticker, []) if gen else []
            latest = points[-1] if points else None
            rows.append(
                SectorSummary(
                    ticker=ticker,
                    name=name,
                    zscore=latest.value if latest else None,
                    signal=SectorSignal.classify(latest.value if latest else None),
                    as_of=latest.date if latest else None,
                    quality=gen.quality.get(ticker, DataQuality.empty()) if gen else DataQuality.empty(),
                )
            )
        rows.sort(key=lambda r: (r.zscore is None, r.zscore if r.zscore is not None else 0.0))
        return rows

    async def get_rotation_signal(
        self,
        sector: str,
        benchmark: Optional[str] = None,
    ) -> Optional[RotationSignal]:
        """
        Rotation read for ``sector``; None when there is no Z-score, too
        little aligned history, or either series is unavailable.
        """
        sector = self._require_sector(sector)
        gen = await self._ensure_refreshed()
        bench = (benchmark or gen.benchmark.symbol).upper()

        try:
            sector_series = await self.store.get_prices(sector)
            bench_series = await self._benchmark_series(bench, gen)
        except DataUnavailableError as e:
            logger.warning(f"No rotation signal for {sector}: {e.message}")
            return None

        points = gen.zscores.get(sector, [])
        zscore = points[-1].value if points else None
        return compute_rotation_signal(
            sector_series.points,
            bench_series.points,
            zscore,
            sector_ticker=sector,
            benchmark_ticker=bench,
            config=self.config,
        )

    async def get_holdings_ranking(
        self,
        sector: str,
        sort_by: HoldingSort = HoldingSort.SCORE,
    ) -> HoldingsResponse:
        """Holdings of ``sector`` with metrics and growth scores, sorted by ``sort_by``."""
        sector = self._require_sector(sector)
        gen = await self._ensure_refreshed()

        try:
            sector_series: Optional[PriceSeries] = await self.store.get_prices(sector)
        except DataUnavailableError as e:
            logger.warning(f"Ranking {sector} holdings without sector prices: {e.message}")
            sector_series = None

        rs_above = (
            relative_strength_above_ma(sector_series.points, gen.benchmark.points, self.config)
            if sector_series is not None
            else None
        )
        turn = detect_sector_turn(
            [p.value for p in gen.zscores.get(sector, [])], rs_above, self.config
        )
        ranked = await self.holdings.rank(sector, sector_series, turn, sort_by)
        return HoldingsResponse(sector=sector, sort=sort_by, sector_turn=turn, holdings=ranked)

    async def get_performance(
        self,
        sector: str,
        benchmark: Optional[str] = None,
        start: Optional[date] = None,
    ) -> PerformanceResponse:
        """
        Sector and benchmark prices rebased to 0% at a common start date.

        Raises:
            DataUnavailableError: Either series could not be fetched
        """
        sector = self._require_sector(sector)
        bench = (benchmark or settings.default_benchmark).upper()
        sector_series = await self.store.get_prices(sector)
        bench_series = await self.store.get_prices(bench)

        firsts = [d for d in (sector_series.start_date, bench_series.start_date, start) if d]
        common = max(firsts) if firsts else None
        return PerformanceResponse(
            sector=sector,
            benchmark=bench,
            start=common,
            sector_curve=normalize_prices(sector_series.points, common),
            benchmark_curve=normalize_prices(bench_series.points, common),
        )
