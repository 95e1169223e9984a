"""Upstream data providers: fetch routes, payload parsers and API clients."""

from .fetcher import HttpFetcher, build_route_url
from .holdings_sheet import parse_holdings_rows, parse_holdings_sheet
from .news import NewsSentiment, NewsSentimentClient
from .payloads import (
    PayloadKind,
    normalize_points,
    parse_stooq_csv,
    parse_yahoo_chart,
    stooq_csv_url,
    validate_text,
    validate_zip,
    yahoo_chart_url,
)
from .resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    RouteHealth,
    race_first_success,
)

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "HttpFetcher",
    "NewsSentiment",
    "NewsSentimentClient",
    "PayloadKind",
    "RouteHealth",
    "build_route_url",
    "normalize_points",
    "parse_holdings_rows",
    "parse_holdings_sheet",
    "parse_stooq_csv",
    "parse_yahoo_chart",
    "race_first_success",
    "stooq_csv_url",
    "validate_text",
    "validate_zip",
    "yahoo_chart_url",
]
