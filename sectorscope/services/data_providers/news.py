"""Finnhub news-sentiment client.

Sentiment and buzz are optional inputs to the growth score. Without an
API key, or when Finnhub fails, the client returns None and the metric
stays a gap.
"""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from sectorscope.core.config import settings
from sectorscope.core.logging import get_logger

logger = get_logger("news")


class _Buzz(BaseModel):
    articles_in_last_week: Optional[float] = Field(default=None, alias="articlesInLastWeek")


class NewsSentimentResponse(BaseModel):
    """Subset of the Finnhub ``/news-sentiment`` payload."""

    buzz: _Buzz = Field(default_factory=_Buzz)
    company_news_score: Optional[float] = Field(default=None, alias="companyNewsScore")


class NewsSentiment(BaseModel):
    sentiment: Optional[float] = None
    mentions: Optional[float] = None


class NewsSentimentClient:
    """Fetches per-symbol news sentiment from Finnhub."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self.api_key = api_key if api_key is not None else settings.finnhub_api_key
        self.base_url = (base_url or settings.finnhub_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.fetch_timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def get_sentiment(self, symbol: str) -> Optional[NewsSentiment]:
        """
        Sentiment score and weekly article count for ``symbol``.

        Returns:
            NewsSentiment, or None when disabled or the call fails
        """
        if not self.enabled:
            return None
        try:
            response = await self._client.get(
                f"{self.base_url}/news-sentiment",
                params={"symbol": symbol, "token": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = NewsSentimentResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, PydanticValidationError) as e:
            logger.warning(f"News sentiment unavailable for {symbol}: {type(e).__name__}")
            return None

        return NewsSentiment(
            sentiment=payload.company_news_score,
            mentions=payload.buzz.articles_in_last_week,
        )
