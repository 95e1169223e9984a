"""
Resilience patterns for upstream fetches.

This module provides:
1. Circuit Breaker - Skip a route after consecutive failures
2. Route Health - One breaker per fetch route, with a fail-open reset
3. Race - Start every route together, keep the first success, cancel the rest

Usage:
    from sectorscope.services.data_providers.resilience import (
        RouteHealth,
        race_first_success,
    )

    health = RouteHealth(["{url}", "https://proxy.example/?{url}"])

    result = await race_first_success(
        [lambda r=r: fetch_via(r) for r in health.available_routes()],
        timeout=12.0,
    )
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence, TypeVar
from urllib.parse import urlsplit

from sectorscope.core.exceptions import UpstreamUnavailableError
from sectorscope.core.logging import get_logger

logger = get_logger("resilience")

T = TypeVar("T")


# =============================================================================
# Exceptions
# =============================================================================


class CircuitOpenError(Exception):
    """Raised when circuit breaker is open and blocking calls."""

    def __init__(self, name: str, message: str = "Circuit breaker is open"):
        self.name = name
        self.message = message
        super().__init__(f"{name}: {message}")


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast, route skipped
    HALF_OPEN = "half_open"  # Cooldown elapsed, route may be tried again


@dataclass
class CircuitBreaker:
    """
    Circuit breaker pattern for fail-fast protection.

    States:
    - CLOSED: Normal operation, counting consecutive failures
    - OPEN: After threshold failures, block all calls
    - HALF_OPEN: After recovery timeout, allow the next attempt

    Args:
        failure_threshold: Number of consecutive failures before opening
        recovery_timeout: Seconds to wait before allowing a new attempt
        name: Identifier for logging
    """

    failure_threshold: int = 3
    recovery_timeout: float = 300.0
    name: str = "circuit"

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _last_failure_time: float | None = field(default=None, init=False)

    @property
    def state(self) -> CircuitState:
        """Current circuit state (may transition from OPEN to HALF_OPEN)."""
        if self._state == CircuitState.OPEN and self._last_failure_time:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                return CircuitState.HALF_OPEN
        return self._state

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._failure_count

    async def guard(self) -> None:
        """
        Guard entry to protected code. Raises CircuitOpenError if open.
        """
        state = self.state

        if state == CircuitState.OPEN:
            raise CircuitOpenError(
                self.name,
                f"Circuit open after {self._failure_count} failures, "
                f"retry in {self.recovery_timeout - (time.monotonic() - (self._last_failure_time or 0)):.1f}s",
            )

        if state == CircuitState.HALF_OPEN:
            logger.info(f"[{self.name}] Circuit half-open, allowing test request")

    def record_success(self) -> None:
        """Record a successful call, reset failure count."""
        if self._state != CircuitState.CLOSED:
            logger.info(f"[{self.name}] Circuit closed after successful recovery")

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None

    def record_failure(self, error: Exception | None = None) -> None:
        """
        Record a failed call. Opens circuit after threshold failures.

        Args:
            error: The exception that caused the failure
        """
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            if self._state != CircuitState.OPEN:
                logger.warning(
                    f"[{self.name}] Circuit OPEN after {self._failure_count} failures: {error}"
                )
            self._state = CircuitState.OPEN
        else:
            logger.debug(
                f"[{self.name}] Failure {self._failure_count}/{self.failure_threshold}: {error}"
            )

    def reset(self) -> None:
        """Force reset to closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None

    def get_stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "last_failure_age": (
                time.monotonic() - self._last_failure_time
                if self._last_failure_time
                else None
            ),
        }


# =============================================================================
# Route Health
# =============================================================================


def route_label(route: str) -> str:
    """Short name for a route template, for logs and stats."""
    if route == "{url}":
        return "direct"
    return urlsplit(route).netloc or route


class RouteHealth:
    """
    Per-route circuit breakers for the redundant fetch routes.

    Invariant ALL_ROUTES_BROKEN_RESETS: when every route's breaker is open,
    all breakers are reset and every route is offered again. Failing open
    keeps a burst of upstream errors from locking the service out entirely.
    """

    def __init__(
        self,
        routes: Sequence[str],
        failure_threshold: int = 3,
        cooldown: float = 300.0,
    ):
        if not routes:
            raise ValueError("at least one route is required")
        self.routes = list(routes)
        self._breakers = {
            route: CircuitBreaker(
                failure_threshold=failure_threshold,
                recovery_timeout=cooldown,
                name=route_label(route),
            )
            for route in self.routes
        }

    def breaker(self, route: str) -> CircuitBreaker:
        return self._breakers[route]

    def available_routes(self) -> list[str]:
        """Routes whose breaker is not open, in configured order."""
        healthy = [r for r in self.routes if not self._breakers[r].is_open]
        if healthy:
            return healthy

        logger.warning(f"All {len(self.routes)} fetch routes are broken; resetting breakers")
        self.reset_all()
        return list(self.routes)

    def record_success(self, route: str) -> None:
        self._breakers[route].record_success()

    def record_failure(self, route: str, error: Exception | None = None) -> None:
        self._breakers[route].record_failure(error)

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()

    def get_stats(self) -> list[dict[str, Any]]:
        return [self._breakers[r].get_stats() for r in self.routes]


# =============================================================================
# Race
# =============================================================================


async def race_first_success(
    attempts: Sequence[Callable[[], Awaitable[T]]],
    timeout: float | None = None,
    name: str = "race",
) -> T:
    """
    Run every attempt concurrently and return the first successful result.

    The moment one attempt succeeds, or the deadline passes, every attempt
    still running is cancelled and awaited.

    Args:
        attempts: Zero-argument async callables
        timeout: Overall deadline in seconds
        name: Label for errors and logs

    Returns:
        Result of the first attempt to succeed

    Raises:
        UpstreamUnavailableError: All attempts failed or the deadline passed;
            carries the last failure seen as ``last_error``
    """
    if not attempts:
        raise UpstreamUnavailableError(f"{name}: nothing to try")

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None
    tasks = [asyncio.ensure_future(attempt()) for attempt in attempts]
    last_error: BaseException | None = None

    try:
        pending = set(tasks)
        while pending:
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            if not done:
                last_error = asyncio.TimeoutError(f"{name}: timed out after {timeout}s")
                break
            for task in done:
                if task.cancelled():
                    continue
                error = task.exception()
                if error is None:
                    return task.result()
                last_error = error
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    raise UpstreamUnavailableError(
        f"{name}: all {len(tasks)} attempts failed",
        last_error=last_error if isinstance(last_error, Exception) else None,
    )
