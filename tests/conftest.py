"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Generator, Optional, Sequence

import httpx
import pytest
from fastapi.testclient import TestClient

from sectorscope.cache import PersistentCache
from sectorscope.domain import PricePoint, PriceSeries, PriceSource
from sectorscope.quant_engine import QuantConfig

# Configure asyncio
pytest_plugins = ["pytest_asyncio"]


START = date(2000, 1, 7)


def weekly_points(
    closes: Sequence[float],
    start: date = START,
    step_days: int = 7,
) -> tuple[PricePoint, ...]:
    """Build week-spaced price points from a list of closes."""
    return tuple(
        PricePoint(date=start + timedelta(days=step_days * i), close=c)
        for i, c in enumerate(closes)
    )


@pytest.fixture
def make_series() -> Callable[..., PriceSeries]:
    """Factory for weekly PriceSeries."""

    def _make(
        closes: Sequence[float],
        symbol: str = "XLK",
        start: date = START,
        source: PriceSource = PriceSource.YAHOO,
        step_days: int = 7,
    ) -> PriceSeries:
        return PriceSeries(
            symbol=symbol,
            source=source,
            points=weekly_points(closes, start=start, step_days=step_days),
        )

    return _make


@pytest.fixture
def make_points() -> Callable[..., tuple[PricePoint, ...]]:
    return weekly_points


@pytest.fixture
def quant_config() -> QuantConfig:
    """Default policy knobs, independent of the environment."""
    return QuantConfig()


@pytest.fixture
def memory_cache() -> PersistentCache:
    """Cache that never touches disk."""
    return PersistentCache(path=None)


@pytest.fixture
def file_cache(tmp_path) -> PersistentCache:
    return PersistentCache(path=tmp_path / "cache.json")


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory for an httpx.AsyncClient backed by a request handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def sample_prices() -> list[float]:
    """Three years of gently rising weekly closes with a drawdown in year two."""
    closes = [100.0 * (1.004 ** i) for i in range(52)]
    closes += [closes[-1] * (0.99 ** i) for i in range(1, 27)]
    closes += [closes[-1] * (1.006 ** i) for i in range(1, 79)]
    return closes


@pytest.fixture
def client_factory() -> Callable[..., Generator[TestClient, None, None]]:
    """Build a TestClient around an app serving the given service."""
    from contextlib import contextmanager

    from sectorscope.api.app import create_api_app

    @contextmanager
    def _make(service: Optional[object] = None):
        app = create_api_app(service=service)
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client

    return _make


# =============================================================================
# Upstream simulation
# =============================================================================


def chart_json(closes: Sequence[float], start: date = START) -> str:
    """Yahoo weekly chart payload for the given closes."""
    import json
    from datetime import datetime, timezone

    stamps = [
        int(datetime(d.year, d.month, d.day, 14, tzinfo=timezone.utc).timestamp())
        for d in (start + timedelta(days=7 * i) for i in range(len(closes)))
    ]
    return json.dumps(
        {
            "chart": {
                "result": [
                    {"timestamp": stamps, "indicators": {"quote": [{"close": list(closes)}]}}
                ],
                "error": None,
            }
        }
    )


@pytest.fixture
def holdings_workbook() -> Callable[[Sequence[Sequence[object]]], bytes]:
    """Factory for xlsx bytes holding the given rows on the first sheet."""
    from io import BytesIO

    from openpyxl import Workbook

    def _make(rows: Sequence[Sequence[object]]) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(list(row))
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _make


@pytest.fixture
def upstream_handler() -> Callable[..., Callable[[httpx.Request], httpx.Response]]:
    """
    Build a request handler serving Yahoo charts for known tickers and an
    optional holdings workbook. Everything else is a 404.
    """

    def _make(
        prices: dict[str, Sequence[float]],
        workbook: Optional[bytes] = None,
    ) -> Callable[[httpx.Request], httpx.Response]:
        def handler(request: httpx.Request) -> httpx.Response:
            host = request.url.host
            if host == "query1.finance.yahoo.com":
                ticker = request.url.path.rsplit("/", 1)[-1].upper()
                if ticker in prices:
                    return httpx.Response(200, text=chart_json(prices[ticker]))
            elif host == "www.ssga.com" and workbook is not None:
                return httpx.Response(200, content=workbook)
            return httpx.Response(404, text="Not Found")

        return handler

    return _make


@pytest.fixture
def service_factory(mock_client, memory_cache, upstream_handler, quant_config):
    """Sector analytics session over simulated upstreams and a memory cache."""
    from sectorscope.services import SectorAnalyticsService
    from sectorscope.services.data_providers import HttpFetcher

    def _make(
        prices: dict[str, Sequence[float]],
        universe: Optional[dict[str, str]] = None,
        workbook: Optional[bytes] = None,
    ) -> SectorAnalyticsService:
        client = mock_client(upstream_handler(prices, workbook))
        fetcher = HttpFetcher(client=client, routes=["{url}"], timeout=2.0)
        return SectorAnalyticsService(
            cache=memory_cache,
            fetcher=fetcher,
            config=quant_config,
            universe=universe or {"XLK": "Technology", "XLE": "Energy", "XLU": "Utilities"},
            concurrency=2,
        )

    return _make


@pytest.fixture
def cyclical_prices() -> dict[str, list[float]]:
    """Ten years of benchmark plus two sectors swinging around it in opposite phase."""
    import math

    weeks = 520
    bench = [100.0 * 1.002 ** i for i in range(weeks)]
    swing = [0.2 * math.sin(2 * math.pi * i / 150) for i in range(weeks)]
    return {
        "SPY": bench,
        "XLK": [b * (1 + s) for b, s in zip(bench, swing)],
        "XLE": [b * (1 - s) for b, s in zip(bench, swing)],
    }
