"""
Tests for resilience patterns (circuit breaker, route health, race).
"""

import asyncio
import time

import pytest

from sectorscope.core.exceptions import UpstreamUnavailableError
from sectorscope.services.data_providers.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    RouteHealth,
    race_first_success,
    route_label,
)


# =============================================================================
# Circuit Breaker Tests
# =============================================================================


class TestCircuitBreaker:
    """Tests for CircuitBreaker."""

    def test_initial_state_is_closed(self):
        """Circuit starts in closed state."""
        breaker = CircuitBreaker(name="test")
        assert breaker.state == CircuitState.CLOSED
        assert breaker.is_closed
        assert not breaker.is_open

    def test_opens_after_threshold_failures(self):
        """Circuit opens after reaching failure threshold."""
        breaker = CircuitBreaker(failure_threshold=3, name="test")

        breaker.record_failure()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_guard_raises_when_open(self):
        """Guard raises CircuitOpenError when circuit is open."""
        breaker = CircuitBreaker(failure_threshold=1, name="proxy")
        breaker.record_failure(RuntimeError("boom"))

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.guard()
        assert exc_info.value.name == "proxy"

    def test_success_resets_failure_count(self):
        """Success resets consecutive failures."""
        breaker = CircuitBreaker(failure_threshold=3, name="test")
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 1

    def test_half_open_after_cooldown(self):
        """Circuit allows a new attempt once the cooldown has elapsed."""
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.05, name="test")
        breaker.record_failure()
        assert breaker.is_open

        time.sleep(0.06)
        assert breaker.state == CircuitState.HALF_OPEN
        assert not breaker.is_open

    def test_get_stats(self):
        breaker = CircuitBreaker(failure_threshold=2, name="stats")
        breaker.record_failure()
        stats = breaker.get_stats()
        assert stats["name"] == "stats"
        assert stats["state"] == "closed"
        assert stats["failure_count"] == 1
        assert stats["last_failure_age"] is not None


# =============================================================================
# Route Health Tests
# =============================================================================


ROUTES = ["{url}", "https://relay-a.example/?u={url}", "https://relay-b.example/raw?url={url}"]


class TestRouteHealth:
    """Tests for RouteHealth."""

    def test_all_routes_available_initially(self):
        health = RouteHealth(ROUTES)
        assert health.available_routes() == ROUTES

    def test_broken_route_skipped(self):
        health = RouteHealth(ROUTES, failure_threshold=2)
        health.record_failure(ROUTES[1])
        health.record_failure(ROUTES[1])
        assert health.available_routes() == [ROUTES[0], ROUTES[2]]

    def test_every_route_broken_resets_all(self):
        """When every route is open, all are reset and offered again."""
        health = RouteHealth(ROUTES, failure_threshold=1)
        for route in ROUTES:
            health.record_failure(route)
        assert all(health.breaker(r).is_open for r in ROUTES)

        assert health.available_routes() == ROUTES
        assert all(health.breaker(r).is_closed for r in ROUTES)

    def test_route_recovers_after_success(self):
        health = RouteHealth(ROUTES, failure_threshold=1)
        health.record_failure(ROUTES[0])
        assert ROUTES[0] not in health.available_routes()
        health.breaker(ROUTES[0]).reset()
        health.record_success(ROUTES[0])
        assert ROUTES[0] in health.available_routes()

    def test_requires_routes(self):
        with pytest.raises(ValueError):
            RouteHealth([])

    def test_labels(self):
        assert route_label("{url}") == "direct"
        assert route_label(ROUTES[1]) == "relay-a.example"
        assert [s["name"] for s in RouteHealth(ROUTES).get_stats()] == [
            "direct",
            "relay-a.example",
            "relay-b.example",
        ]


# =============================================================================
# Race Tests
# =============================================================================


class TestRaceFirstSuccess:
    """Tests for race_first_success."""

    @pytest.mark.asyncio
    async def test_first_success_wins_and_losers_cancelled(self):
        cancelled = []

        async def slow():
            try:
                await asyncio.sleep(5)
                return "slow"
            except asyncio.CancelledError:
                cancelled.append("slow")
                raise

        async def fast():
            await asyncio.sleep(0.01)
            return "fast"

        result = await race_first_success([slow, fast], timeout=2)
        assert result == "fast"
        assert cancelled == ["slow"]

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_race(self):
        async def broken():
            raise ConnectionError("refused")

        async def ok():
            await asyncio.sleep(0.01)
            return 42

        assert await race_first_success([broken, ok], timeout=1) == 42

    @pytest.mark.asyncio
    async def test_all_failures_surface_last_error(self):
        async def first():
            raise ConnectionError("first")

        async def second():
            await asyncio.sleep(0.01)
            raise ValueError("second")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await race_first_success([first, second], timeout=1)
        assert isinstance(exc_info.value.last_error, ValueError)
        assert "second" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_cancels_everything(self):
        cancelled = []

        async def hang():
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        with pytest.raises(UpstreamUnavailableError):
            await race_first_success([hang, hang], timeout=0.05)
        assert cancelled == [True, True]

    @pytest.mark.asyncio
    async def test_nothing_to_race(self):
        with pytest.raises(UpstreamUnavailableError):
            await race_first_success([], timeout=1)
