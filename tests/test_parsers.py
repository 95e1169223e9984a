"""Tests for upstream payload parsing (chart JSON, CSV, holdings, news)."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from io import BytesIO

import httpx
import pytest
from openpyxl import Workbook

from sectorscope.core.exceptions import InvalidPayloadError
from sectorscope.services.data_providers import (
    NewsSentimentClient,
    parse_holdings_rows,
    parse_holdings_sheet,
    parse_stooq_csv,
    parse_yahoo_chart,
    stooq_csv_url,
    yahoo_chart_url,
)


def _ts(d: date) -> int:
    return int(datetime(d.year, d.month, d.day, 14, 30, tzinfo=timezone.utc).timestamp())


def chart_payload(dates, closes=None, adjclose=None) -> str:
    indicators: dict = {"quote": [{"close": closes if closes is not None else []}]}
    if adjclose is not None:
        indicators["adjclose"] = [{"adjclose": adjclose}]
    return json.dumps(
        {
            "chart": {
                "result": [{"timestamp": [_ts(d) for d in dates], "indicators": indicators}],
                "error": None,
            }
        }
    )


DATES = [date(2024, 1, 5), date(2024, 1, 12), date(2024, 1, 19)]


# =============================================================================
# Yahoo chart
# =============================================================================


class TestYahooChart:
    def test_prefers_adjusted_close(self):
        text = chart_payload(DATES, closes=[10.0, 11.0, 12.0], adjclose=[9.5, 10.5, 11.5])
        points = parse_yahoo_chart(text)
        assert [p.close for p in points] == [9.5, 10.5, 11.5]
        assert [p.date for p in points] == DATES

    def test_falls_back_to_raw_close(self):
        points = parse_yahoo_chart(chart_payload(DATES, closes=[10.0, 11.0, 12.0]))
        assert [p.close for p in points] == [10.0, 11.0, 12.0]

    def test_nulls_and_non_positive_dropped(self):
        points = parse_yahoo_chart(chart_payload(DATES, closes=[None, 0.0, 12.0]))
        assert [(p.date, p.close) for p in points] == [(DATES[2], 12.0)]

    def test_duplicate_dates_keep_last(self):
        dates = [DATES[0], DATES[1], DATES[1]]
        points = parse_yahoo_chart(chart_payload(dates, closes=[10.0, 11.0, 11.7]))
        assert [p.close for p in points] == [10.0, 11.7]

    def test_out_of_order_rows_sorted(self):
        points = parse_yahoo_chart(chart_payload(list(reversed(DATES)), closes=[3.0, 2.0, 1.0]))
        assert [p.date for p in points] == DATES
        assert [p.close for p in points] == [1.0, 2.0, 3.0]

    def test_no_result_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_yahoo_chart('{"chart": {"result": null, "error": {"code": "Not Found"}}}')

    def test_wrong_shape_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_yahoo_chart('{"unexpected": true}')

    def test_all_null_closes_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_yahoo_chart(chart_payload(DATES, closes=[None, None, None]))

    def test_url_is_weekly(self):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        url = yahoo_chart_url("XLK", 10, now=now)
        assert url.startswith("https://query1.finance.yahoo.com/v8/finance/chart/XLK?")
        assert "interval=1wk" in url
        assert f"period2={int(now.timestamp())}" in url


# =============================================================================
# Stooq CSV
# =============================================================================


class TestStooqCsv:
    def test_parses_close_column(self):
        text = (
            "Date,Open,High,Low,Close,Volume\n"
            "2024-01-05,1,1,1,100.5,10\n"
            "2024-01-12,1,1,1,101.25,10\n"
        )
        points = parse_stooq_csv(text)
        assert [(p.date, p.close) for p in points] == [
            (date(2024, 1, 5), 100.5),
            (date(2024, 1, 12), 101.25),
        ]

    def test_bad_rows_skipped(self):
        text = (
            "Date,Open,High,Low,Close,Volume\n"
            "2024-01-05,1,1,1,100.5,10\n"
            "garbage,1,1,1,101,10\n"
            "2024-01-19,1,1,1,,10\n"
            "2024-01-26,1,1,1,99,10\n"
        )
        assert [p.date for p in parse_stooq_csv(text)] == [date(2024, 1, 5), date(2024, 1, 26)]

    def test_missing_close_column(self):
        with pytest.raises(InvalidPayloadError):
            parse_stooq_csv("Date,Open\n2024-01-05,1\n")

    def test_no_data_page_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_stooq_csv("No data")

    def test_header_only_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_stooq_csv("Date,Open,High,Low,Close,Volume\n")

    def test_url_uses_us_suffix(self):
        assert stooq_csv_url("XLK") == "https://stooq.com/q/d/l/?s=xlk.us&i=w"


# =============================================================================
# Holdings workbook
# =============================================================================


SHEET_ROWS = [
    ("Fund Name:", "Technology Select Sector SPDR", None, None),
    ("Holdings:", "As of 14-Jun-2024", None, None),
    (None, None, None, None),
    ("Name", "Ticker", "Weight", "Sector"),
    ("APPLE INC", "aapl", 22.1, "Information Technology"),
    ("MICROSOFT CORP", "MSFT", "21.5%", "Information Technology"),
    ("US DOLLAR", "CASH_USD", 0.2, "Cash"),
    ("APPLE INC", "AAPL", 22.1, "Information Technology"),
    ("NVIDIA CORP", "NVDA", "-", "Information Technology"),
    (None, "-", None, None),
]


class TestHoldingsRows:
    def test_header_located_by_content(self):
        holdings = parse_holdings_rows(SHEET_ROWS)
        assert [h.ticker for h in holdings] == ["AAPL", "MSFT", "NVDA"]

    def test_weights_and_names(self):
        by_ticker = {h.ticker: h for h in parse_holdings_rows(SHEET_ROWS)}
        assert by_ticker["AAPL"].weight == pytest.approx(22.1)
        assert by_ticker["AAPL"].name == "APPLE INC"
        assert by_ticker["MSFT"].weight == pytest.approx(21.5)
        assert by_ticker["NVDA"].weight == 0.0

    def test_optional_columns(self):
        holdings = parse_holdings_rows([("TICKER",), ("XOM",), ("CVX",)])
        assert [(h.ticker, h.weight, h.name) for h in holdings] == [
            ("XOM", 0.0, ""),
            ("CVX", 0.0, ""),
        ]

    def test_no_header_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_holdings_rows([("Symbol", "Weight"), ("XOM", 1.0)])


class TestHoldingsWorkbook:
    def _workbook_bytes(self, rows) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(list(row))
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def test_reads_first_sheet(self):
        content = self._workbook_bytes(SHEET_ROWS)
        assert content.startswith(b"PK")
        holdings = parse_holdings_sheet(content)
        assert [h.ticker for h in holdings] == ["AAPL", "MSFT", "NVDA"]

    def test_not_a_workbook(self):
        with pytest.raises(InvalidPayloadError):
            parse_holdings_sheet(b"PK\x03\x04 truncated")


# =============================================================================
# News sentiment
# =============================================================================


class TestNewsSentiment:
    @pytest.mark.asyncio
    async def test_reads_score_and_buzz(self, mock_client):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(dict(request.url.params))
            return httpx.Response(
                200,
                json={
                    "buzz": {"articlesInLastWeek": 14, "buzz": 1.2, "weeklyAverage": 11.5},
                    "companyNewsScore": 0.72,
                    "symbol": "AAPL",
                },
            )

        client = mock_client(handler)
        news = NewsSentimentClient(client, api_key="secret", base_url="https://finnhub.example/api/v1")
        result = await news.get_sentiment("AAPL")
        await client.aclose()

        assert result.sentiment == pytest.approx(0.72)
        assert result.mentions == 14
        assert seen == {"symbol": "AAPL", "token": "secret"}

    @pytest.mark.asyncio
    async def test_disabled_without_key(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = mock_client(handler)
        news = NewsSentimentClient(client, api_key="")
        assert news.enabled is False
        assert await news.get_sentiment("AAPL") is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_failure_becomes_gap(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "limit"})

        client = mock_client(handler)
        news = NewsSentimentClient(client, api_key="secret")
        assert await news.get_sentiment("AAPL") is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body_becomes_gap(self, mock_client):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        client = mock_client(handler)
        news = NewsSentimentClient(client, api_key="secret")
        assert await news.get_sentiment("AAPL") is None
        await client.aclose()
