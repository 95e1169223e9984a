"""Application settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SECTOR_UNIVERSE: Dict[str, str] = {
    "XLB": "Materials",
    "XLE": "Energy",
    "XLF": "Financials",
    "XLI": "Industrials",
    "XLK": "Technology",
    "XLP": "Consumer Staples",
    "XLU": "Utilities",
    "XLV": "Healthcare",
    "XLY": "Consumer Disc",
    "XLRE": "Real Estate",
    "XLC": "Communication",
    "SMH": "Semiconductors",
    "XHB": "Homebuilders",
    "XOP": "Oil & Gas E&P",
    "XME": "Metals & Mining",
    "KRE": "Regional Banks",
    "XBI": "Biotech",
    "ITB": "Home Construction",
    "IYT": "Transportation",
}

# The identity route "{url}" fetches directly; the rest are public relay proxies.
DEFAULT_FETCH_ROUTES: List[str] = [
    "{url}",
    "https://api.allorigins.win/raw?url={url}",
    "https://corsproxy.io/?{url}",
    "https://api.codetabs.com/v1/proxy?quest={url}",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "Sectorscope API"
    app_version: str = "1.0.0"
    debug: bool = Field(
        default=False, description="Enable debug mode (disable in production)"
    )
    root_path: str = Field(default="", description="Root path for reverse proxy")
    environment: str = Field(
        default="production",
        description="Environment: development, staging, production",
    )

    # CORS
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins",
    )

    # Local cache
    cache_path: str = Field(
        default=".cache/sectorscope.json",
        description="File the in-memory cache is persisted to",
    )
    price_cache_ttl: int = Field(
        default=24 * 60 * 60, ge=60, description="Price series cache TTL in seconds"
    )
    holdings_cache_ttl: int = Field(
        default=6 * 60 * 60, ge=60, description="Holdings cache TTL in seconds"
    )
    news_cache_ttl: int = Field(
        default=60 * 60, ge=60, description="News sentiment cache TTL in seconds"
    )

    # Network
    fetch_timeout: float = Field(
        default=12.0, gt=0, le=120, description="Per-fetch timeout in seconds"
    )
    stooq_fetch_timeout: float = Field(
        default=15.0, gt=0, le=120, description="Timeout for the CSV history source"
    )
    fetch_routes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_FETCH_ROUTES),
        description="URL templates raced for each fetch; must contain {url}",
    )
    route_failure_threshold: int = Field(
        default=3, ge=1, le=50, description="Consecutive failures before a route is skipped"
    )
    route_cooldown: float = Field(
        default=300.0, ge=1, description="Seconds a broken route is skipped"
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; sectorscope/1.0)",
        description="User-Agent sent upstream",
    )

    # Concurrency
    sector_fetch_concurrency: int = Field(default=5, ge=1, le=50)
    holding_fetch_concurrency: int = Field(default=3, ge=1, le=20)

    # Data
    history_years: int = Field(
        default=25, ge=1, le=50, description="Years of weekly history requested"
    )
    sector_universe: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SECTOR_UNIVERSE),
        description="Sector ETF ticker -> display name",
    )
    default_benchmark: str = Field(default="SPY", description="Default benchmark ticker")
    holdings_url_template: str = Field(
        default=(
            "https://www.ssga.com/us/en/intermediary/library-content/products/"
            "fund-data/etfs/us/holdings-daily-us-en-{ticker}.xlsx"
        ),
        description="Holdings workbook URL; {ticker} is lower-cased",
    )

    # News / sentiment
    finnhub_api_key: Optional[str] = Field(
        default=None, description="Finnhub API key for news sentiment"
    )
    finnhub_base_url: str = Field(default="https://finnhub.io/api/v1")

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="json", description="Log format: json or text")

    @field_validator("cors_origins", "fetch_routes", mode="before")
    @classmethod
    def parse_csv_list(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("fetch_routes")
    @classmethod
    def validate_fetch_routes(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("fetch_routes must not be empty")
        for route in v:
            if "{url}" not in route:
                raise ValueError(f"fetch route {route!r} has no {{url}} placeholder")
        return v

    @field_validator("default_benchmark")
    @classmethod
    def upper_benchmark(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()


settings = get_settings()
