"""Sector holdings: membership, per-holding metrics and ranking."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from sectorscope.cache import PersistentCache, cache_key
from sectorscope.core.config import settings
from sectorscope.core.exceptions import AppException, InvalidPayloadError
from sectorscope.core.logging import get_logger
from sectorscope.domain import (
    Holding,
    HoldingMetrics,
    HoldingSort,
    PricePoint,
    PriceSeries,
    RankedHolding,
)
from sectorscope.quant_engine import (
    QuantConfig,
    SectorReturnProfile,
    above_moving_average,
    comove_score,
    get_quant_config,
    max_drawdown,
    period_return,
    ratio_series,
    score_universe,
    sector_profile,
)

from .data_providers import HttpFetcher, NewsSentiment, NewsSentimentClient, parse_holdings_sheet
from .price_store import PriceSeriesStore

logger = get_logger("holdings")

RETURN_LAGS = {"ret_12m": 52, "ret_6m": 26, "ret_3m": 13}


def sort_holdings(holdings: Sequence[RankedHolding], key: HoldingSort) -> list[RankedHolding]:
    """Descending by ``key``; holdings without a value go last in input order."""
    present = [h for h in holdings if h.sort_value(key) is not None]
    missing = [h for h in holdings if h.sort_value(key) is None]
    present.sort(key=lambda h: h.sort_value(key), reverse=True)
    return present + missing


def rs_trend_improving(
    stock: Sequence[PricePoint],
    sector: Sequence[PricePoint],
    lookback: int,
    tolerance_days: float,
) -> Optional[bool]:
    """Whether the stock/sector ratio is higher now than ``lookback`` points ago."""
    ratios = ratio_series(stock, sector, tolerance_days)
    if len(ratios) <= lookback:
        return None
    return ratios[-1].value > ratios[-1 - lookback].value


class HoldingsService:
    """Loads a sector's constituents and scores them against each other."""

    def __init__(
        self,
        cache: PersistentCache,
        fetcher: HttpFetcher,
        store: PriceSeriesStore,
        news: Optional[NewsSentimentClient] = None,
        config: Optional[QuantConfig] = None,
        concurrency: Optional[int] = None,
    ):
        self._cache = cache
        self._fetcher = fetcher
        self._store = store
        self._news = news
        self.config = config or get_quant_config()
        self.concurrency = concurrency or settings.holding_fetch_concurrency

    async def get_holdings(self, sector: str) -> list[Holding]:
        """
        Constituents of ``sector`` from the issuer's holdings workbook.

        Raises:
            UpstreamUnavailableError: Workbook could not be fetched
            InvalidPayloadError: Workbook held no holdings
        """
        sector = sector.upper()
        key = cache_key("holdings", sector)
        cached = self._cache.get(key, ttl=settings.holdings_cache_ttl)
        if cached is not None:
            try:
                return [Holding.model_validate(h) for h in cached]
            except (PydanticValidationError, TypeError):
                self._cache.delete(key)

        url = settings.holdings_url_template.format(ticker=sector.lower())
        holdings = parse_holdings_sheet(await self._fetcher.fetch_binary(url))
        if not holdings:
            raise InvalidPayloadError(f"No holdings listed for {sector}")

        self._cache.set(key, [h.model_dump() for h in holdings])
        self._cache.persist()
        logger.info(f"Loaded {len(holdings)} holdings for {sector}")
        return holdings

    async def get_sentiment(self, symbol: str) -> Optional[NewsSentiment]:
        """News sentiment for ``symbol``, cached; None when unavailable."""
        if self._news is None or not self._news.enabled:
            return None
        key = cache_key("news", symbol)
        cached = self._cache.get(key, ttl=settings.news_cache_ttl)
        if cached is not None:
            return NewsSentiment.model_validate(cached)

        result = await self._news.get_sentiment(symbol)
        if result is not None:
            self._cache.set(key, result.model_dump())
        return result

    async def build_metrics(
        self,
        holding: Holding,
        sector_series: Optional[PriceSeries],
        profile: Optional[SectorReturnProfile],
    ) -> HoldingMetrics:
        """
        Metric bundle for one holding. Inputs that cannot be fetched leave
        their metrics as None.
        """
        cfg = self.config
        values: dict[str, object] = {}

        try:
            series: Optional[PriceSeries] = await self._store.get_prices(holding.ticker)
        except AppException as e:
            logger.debug(f"No prices for holding {holding.ticker}: {e.message}")
            series = None

        if series is not None and len(series) > 0:
            points = series.points
            for name, lag in RETURN_LAGS.items():
                values[name] = period_return(points, lag)
            values["max_drawdown"] = max_drawdown(points, 52)
            values["above_30w_ma"] = above_moving_average(points, cfg.rotation_ma_window)
            if sector_series is not None:
                values["rs_trend_improving"] = rs_trend_improving(
                    points,
                    sector_series.points,
                    cfg.rotation_trend_lookback,
                    cfg.comove_tolerance_days,
                )
            if profile is not None:
                values["comove"] = comove_score(points, profile, cfg)

        sentiment = await self.get_sentiment(holding.ticker)
        if sentiment is not None:
            values["sentiment"] = sentiment.sentiment
            values["news_count"] = sentiment.mentions

        return HoldingMetrics(**values)

    async def rank(
        self,
        sector: str,
        sector_series: Optional[PriceSeries],
        sector_turn: bool = False,
        sort_by: HoldingSort = HoldingSort.SCORE,
    ) -> list[RankedHolding]:
        """Enrich, score and sort every holding of ``sector``."""
        holdings = await self.get_holdings(sector)
        profile = (
            sector_profile(sector_series.points, self.config)
            if sector_series is not None
            else None
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def enrich(holding: Holding) -> HoldingMetrics:
            async with semaphore:
                return await self.build_metrics(holding, sector_series, profile)

        metrics = await asyncio.gather(*(enrich(h) for h in holdings))
        scores = score_universe(metrics, sector_turn, self.config)

        ranked = [
            RankedHolding(
                ticker=h.ticker,
                name=h.name,
                weight=h.weight,
                metrics=m,
                growth=g,
            )
            for h, m, g in zip(holdings, metrics, scores)
        ]
        return sort_holdings(ranked, sort_by)
