"""HTTP fetcher with redundant routes, payload checks and circuit breaking.

Every fetch is raced across the healthy routes (a direct request plus
relay proxies). The first route to return a payload that passes its
structural check wins; the rest are cancelled.
"""

from __future__ import annotations

import functools
from typing import Callable, Optional, Sequence, TypeVar
from urllib.parse import quote

import httpx

from sectorscope.core.config import settings
from sectorscope.core.logging import get_logger

from .payloads import PayloadKind, validate_text, validate_zip
from .resilience import RouteHealth, race_first_success, route_label

logger = get_logger("fetcher")

T = TypeVar("T")


def build_route_url(route: str, url: str) -> str:
    """Apply a route template; proxies receive the target URL-encoded."""
    if route == "{url}":
        return url
    return route.replace("{url}", quote(url, safe=""))


class HttpFetcher:
    """Race-based text and binary fetching over an httpx.AsyncClient."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        health: Optional[RouteHealth] = None,
        routes: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.fetch_timeout
        self.health = health or RouteHealth(
            routes or settings.fetch_routes,
            failure_threshold=settings.route_failure_threshold,
            cooldown=settings.route_cooldown,
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": user_agent or settings.user_agent},
            follow_redirects=True,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def fetch_text(
        self,
        url: str,
        kind: PayloadKind = PayloadKind.JSON,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Fetch a text payload of the declared kind.

        Raises:
            UpstreamUnavailableError: Every route failed or timed out
        """
        return await self._race(url, lambda r: validate_text(r.text, kind), timeout)

    async def fetch_binary(self, url: str, timeout: Optional[float] = None) -> bytes:
        """
        Fetch a spreadsheet payload; it must start with the ZIP magic bytes.

        Raises:
            UpstreamUnavailableError: Every route failed or timed out
        """
        return await self._race(url, lambda r: validate_zip(r.content), timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _race(
        self,
        url: str,
        read: Callable[[httpx.Response], T],
        timeout: Optional[float],
    ) -> T:
        timeout = timeout if timeout is not None else self.timeout
        routes = self.health.available_routes()
        attempts = [
            functools.partial(self._attempt, route, url, read, timeout) for route in routes
        ]
        return await race_first_success(attempts, timeout=timeout, name=url)

    async def _attempt(
        self,
        route: str,
        url: str,
        read: Callable[[httpx.Response], T],
        timeout: float,
    ) -> T:
        await self.health.breaker(route).guard()
        target = build_route_url(route, url)
        try:
            response = await self._client.get(target, timeout=timeout)
            response.raise_for_status()
            result = read(response)
        except Exception as e:
            logger.debug(f"Route {route_label(route)} failed for {url}: {e}")
            self.health.record_failure(route, e)
            raise
        self.health.record_success(route)
        return result
