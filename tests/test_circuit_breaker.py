"""
Unit tests for the provider circuit breaker.
"""

import asyncio

import pytest

from voice_companion.core.errors import CircuitBreakerOpenError
from voice_companion.core.errors import ProviderUnavailable
from voice_companion.services.circuit_breaker import CircuitBreaker
from voice_companion.services.circuit_breaker import CircuitState


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


async def failing():
    raise ProviderUnavailable("flaky", "HTTP 500")


async def succeeding():
    return "ok"


class TestCircuitBreaker:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreaker("flaky", failure_threshold=2, recovery_timeout=30.0, clock=clock)

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        for _ in range(2):
            with pytest.raises(ProviderUnavailable):
                await breaker.execute(failing)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            await breaker.execute(succeeding)

    @pytest.mark.asyncio
    async def test_half_open_trial_closes_on_success(self, breaker, clock):
        breaker.record_failure()
        breaker.record_failure()
        clock.now += 31

        assert await breaker.execute(succeeding) == "ok"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_trial_failure_reopens(self, breaker, clock):
        breaker.record_failure()
        breaker.record_failure()
        clock.now += 31

        with pytest.raises(ProviderUnavailable):
            await breaker.execute(failing)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_cancellation_is_not_a_failure(self, breaker):
        async def slow():
            await asyncio.sleep(10)

        task = asyncio.create_task(breaker.execute(slow))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert breaker.failure_count == 0
        assert breaker.state == CircuitState.CLOSED

    def test_reset(self, breaker):
        breaker.record_failure()
        breaker.record_failure()
        breaker.reset()

        assert breaker.get_state() == {
            "name": "flaky",
            "state": "closed",
            "failure_count": 0,
            "last_failure_time": 0.0,
        }
