"""Typed parsing of upstream price payloads.

Every parser fails closed: a payload whose shape is not recognized raises
InvalidPayloadError instead of yielding a partial or guessed result.

Sources:
    Yahoo chart JSON  - /v8/finance/chart/{ticker}?interval=1wk
    Stooq weekly CSV  - /q/d/l/?s={ticker}.us&i=w
"""

from __future__ import annotations

import io
import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Iterable, Optional

import pandas as pd
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from sectorscope.core.exceptions import InvalidPayloadError
from sectorscope.domain import PricePoint

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{ticker}"
STOOQ_CSV_URL = "https://stooq.com/q/d/l/?s={symbol}&i=w"

ZIP_MAGIC = b"PK"


class PayloadKind(str, Enum):
    """Declared shape of a text payload."""

    JSON = "json"
    CSV = "csv"


def validate_text(text: str, kind: PayloadKind) -> str:
    """Check the leading characters of a text payload against its kind."""
    head = text.lstrip()
    if kind is PayloadKind.JSON and head[:1] in ("{", "["):
        return text
    if kind is PayloadKind.CSV and head.startswith("Date,"):
        return text
    raise InvalidPayloadError(
        f"Expected {kind.value} payload",
        details={"head": head[:40]},
    )


def validate_zip(content: bytes) -> bytes:
    """Accept only ZIP containers (xlsx workbooks start with a local file header)."""
    if not content.startswith(ZIP_MAGIC):
        raise InvalidPayloadError(
            "Expected a spreadsheet (ZIP) payload",
            details={"head": content[:8].hex()},
        )
    return content


def normalize_points(pairs: Iterable[tuple[date, Optional[float]]]) -> tuple[PricePoint, ...]:
    """
    Drop unusable closes, sort ascending and collapse duplicate dates.

    When two rows share a date the later row wins.
    """
    by_date: dict[date, float] = {}
    for d, close in pairs:
        if close is None:
            continue
        close = float(close)
        if not math.isfinite(close) or close <= 0:
            continue
        by_date[d] = close
    return tuple(PricePoint(date=d, close=c) for d, c in sorted(by_date.items()))


# =============================================================================
# Yahoo chart JSON
# =============================================================================


class _Quote(BaseModel):
    close: list[Optional[float]] = Field(default_factory=list)


class _AdjClose(BaseModel):
    adjclose: list[Optional[float]] = Field(default_factory=list)


class _Indicators(BaseModel):
    quote: list[_Quote] = Field(default_factory=list)
    adjclose: list[_AdjClose] = Field(default_factory=list)


class _ChartResult(BaseModel):
    timestamp: list[int] = Field(default_factory=list)
    indicators: _Indicators = Field(default_factory=_Indicators)


class _Chart(BaseModel):
    result: Optional[list[_ChartResult]] = None


class YahooChartResponse(BaseModel):
    chart: _Chart


def yahoo_chart_url(ticker: str, years: int, now: datetime | None = None) -> str:
    """Weekly chart URL covering the last ``years`` years."""
    end = int((now or datetime.now(timezone.utc)).timestamp())
    start = end - int(years * 365.25 * 24 * 60 * 60)
    return (
        f"{YAHOO_CHART_URL.format(ticker=ticker)}"
        f"?period1={start}&period2={end}&interval=1wk"
    )


def parse_yahoo_chart(text: str) -> tuple[PricePoint, ...]:
    """
    Parse a Yahoo chart response into weekly closes.

    Adjusted closes are preferred when present; otherwise raw closes.

    Raises:
        InvalidPayloadError: Unrecognized shape, no result or no usable closes
    """
    try:
        payload = YahooChartResponse.model_validate_json(text)
    except PydanticValidationError as e:
        raise InvalidPayloadError("Malformed chart payload", details={"errors": e.error_count()})

    if not payload.chart.result:
        raise InvalidPayloadError("Chart payload has no result")

    result = payload.chart.result[0]
    indicators = result.indicators
    if indicators.adjclose and indicators.adjclose[0].adjclose:
        closes = indicators.adjclose[0].adjclose
    elif indicators.quote:
        closes = indicators.quote[0].close
    else:
        closes = []

    points = normalize_points(
        (datetime.fromtimestamp(ts, tz=timezone.utc).date(), close)
        for ts, close in zip(result.timestamp, closes)
    )
    if not points:
        raise InvalidPayloadError("Chart payload has no usable closes")
    return points


# =============================================================================
# Stooq weekly CSV
# =============================================================================


def stooq_symbol(ticker: str) -> str:
    return f"{ticker.lower()}.us"


def stooq_csv_url(ticker: str) -> str:
    return STOOQ_CSV_URL.format(symbol=stooq_symbol(ticker))


def parse_stooq_csv(text: str) -> tuple[PricePoint, ...]:
    """
    Parse a Stooq ``Date,Open,High,Low,Close,Volume`` weekly CSV.

    Raises:
        InvalidPayloadError: Missing columns or no usable rows
    """
    validate_text(text, PayloadKind.CSV)
    try:
        df = pd.read_csv(io.StringIO(text.strip()))
    except (ValueError, pd.errors.ParserError) as e:
        raise InvalidPayloadError(f"Malformed CSV payload: {e}")

    if "Date" not in df.columns or "Close" not in df.columns:
        raise InvalidPayloadError(
            "CSV payload lacks Date/Close columns",
            details={"columns": [str(c) for c in df.columns]},
        )

    dates = pd.to_datetime(df["Date"], errors="coerce")
    closes = pd.to_numeric(df["Close"], errors="coerce")
    frame = pd.DataFrame({"date": dates, "close": closes}).dropna()

    points = normalize_points(
        (ts.date(), float(close)) for ts, close in zip(frame["date"], frame["close"])
    )
    if not points:
        raise InvalidPayloadError("CSV payload has no usable closes")
    return points
