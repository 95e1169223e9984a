"""Weekly price series store with cache and source failover.

Lookup order for a ticker:
    1. cache ``y:<TICKER>`` then ``s:<TICKER>`` (fresh entries only)
    2. Yahoo chart JSON
    3. Stooq weekly CSV

A fetched series is cached under its own source's prefix and the cache is
persisted straight away. Persistence is best-effort.
"""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from sectorscope.cache import PersistentCache, cache_key
from sectorscope.core.config import settings
from sectorscope.core.exceptions import AppException, DataUnavailableError
from sectorscope.core.logging import get_logger
from sectorscope.domain import PriceSeries, PriceSource

from .data_providers import (
    HttpFetcher,
    PayloadKind,
    parse_stooq_csv,
    parse_yahoo_chart,
    stooq_csv_url,
    yahoo_chart_url,
)

logger = get_logger("price_store")

SOURCE_ORDER = (PriceSource.YAHOO, PriceSource.STOOQ)


class PriceSeriesStore:
    """Serves ``PriceSeries`` for tickers, cache first."""

    def __init__(
        self,
        cache: PersistentCache,
        fetcher: HttpFetcher,
        ttl: Optional[float] = None,
        history_years: Optional[int] = None,
        stooq_timeout: Optional[float] = None,
    ):
        self._cache = cache
        self._fetcher = fetcher
        self.ttl = ttl if ttl is not None else settings.price_cache_ttl
        self.history_years = history_years or settings.history_years
        self.stooq_timeout = stooq_timeout or settings.stooq_fetch_timeout

    def cached(self, ticker: str) -> Optional[PriceSeries]:
        """Fresh cached series for ``ticker`` from any source, or None."""
        ticker = ticker.upper()
        for source in SOURCE_ORDER:
            key = cache_key(source.cache_prefix, ticker)
            data = self._cache.get(key, ttl=self.ttl)
            if data is None:
                continue
            try:
                return PriceSeries.model_validate(data)
            except PydanticValidationError:
                logger.warning(f"Discarding unreadable cache entry {key}")
                self._cache.delete(key)
        return None

    async def get_prices(self, ticker: str) -> PriceSeries:
        """
        Weekly closes for ``ticker``.

        Raises:
            DataUnavailableError: Every source failed
        """
        ticker = ticker.upper()
        hit = self.cached(ticker)
        if hit is not None:
            return hit

        last_error: Optional[Exception] = None
        for source in SOURCE_ORDER:
            try:
                series = await self._fetch(source, ticker)
            except AppException as e:
                logger.warning(f"{source.value} failed for {ticker}: {e.message}")
                last_error = e
                continue

            self._cache.set(
                cache_key(source.cache_prefix, ticker), series.model_dump(mode="json")
            )
            self._cache.persist()
            logger.info(f"Fetched {len(series)} weekly closes for {ticker} from {source.value}")
            return series

        raise DataUnavailableError(f"No price source for {ticker}", last_error=last_error)

    async def _fetch(self, source: PriceSource, ticker: str) -> PriceSeries:
        if source is PriceSource.YAHOO:
            text = await self._fetcher.fetch_text(
                yahoo_chart_url(ticker, self.history_years), PayloadKind.JSON
            )
            points = parse_yahoo_chart(text)
        else:
            text = await self._fetcher.fetch_text(
                stooq_csv_url(ticker), PayloadKind.CSV, timeout=self.stooq_timeout
            )
            points = parse_stooq_csv(text)
        return PriceSeries(symbol=ticker, source=source, points=points)
