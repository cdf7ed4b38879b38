"""Tests for circuit breaker pattern."""

from datetime import datetime

import pytest

from servers.community_events.clock import FrozenClock
from servers.community_events.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
)


@pytest.fixture
def breaker_clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 6, 2, 10, 0))


async def _ok():
    return "ok"


async def _fail():
    raise ConnectionError("provider down")


class TestCircuitBreaker:
    """Tests for CircuitBreaker class."""

    def test_initial_state_is_closed(self):
        breaker = CircuitBreaker(name="meetup")
        assert breaker.state == CircuitState.CLOSED
        assert breaker.is_closed
        assert not breaker.is_open

    @pytest.mark.asyncio
    async def test_success_passes_through(self):
        breaker = CircuitBreaker()
        assert await breaker.call(_ok) == "ok"
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker_clock):
        breaker = CircuitBreaker(failure_threshold=3, clock=breaker_clock)

        for _ in range(3):
            with pytest.raises(ConnectionError):
                await breaker.call(_fail)

        assert breaker.is_open
        assert breaker.failure_count == 3

    @pytest.mark.asyncio
    async def test_open_circuit_blocks_calls(self, breaker_clock):
        breaker = CircuitBreaker(failure_threshold=1, clock=breaker_clock, name="seatgeek")
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            await breaker.call(_ok)

        assert exc_info.value.circuit_name == "seatgeek"

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker_clock):
        breaker = CircuitBreaker(failure_threshold=3, clock=breaker_clock)
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        await breaker.call(_ok)

        assert breaker.failure_count == 0
        assert breaker.is_closed

    @pytest.mark.asyncio
    async def test_half_open_after_recovery_timeout(self, breaker_clock):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60, clock=breaker_clock)
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        breaker_clock.advance(seconds=61)

        assert breaker.allow()
        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker_clock):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60, clock=breaker_clock)
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)
        breaker_clock.advance(seconds=61)

        assert await breaker.call(_ok) == "ok"
        assert breaker.is_closed

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker_clock):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60, clock=breaker_clock)
        for _ in range(3):
            with pytest.raises(ConnectionError):
                await breaker.call(_fail)
        breaker_clock.advance(seconds=61)

        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

        assert breaker.is_open

    def test_record_failure_without_call(self, breaker_clock):
        """Adapters that report errors in diagnostics can feed the breaker directly."""
        breaker = CircuitBreaker(failure_threshold=2, clock=breaker_clock)
        breaker.record_failure("HTTP 503")
        breaker.record_failure("HTTP 503")
        assert breaker.is_open

    def test_get_status(self, breaker_clock):
        breaker = CircuitBreaker(failure_threshold=5, name="bandsintown", clock=breaker_clock)
        breaker.record_failure("timeout")

        status = breaker.get_status()

        assert status["name"] == "bandsintown"
        assert status["state"] == "closed"
        assert status["failure_count"] == 1
        assert status["last_failure"] == "2025-06-02T10:00:00"
