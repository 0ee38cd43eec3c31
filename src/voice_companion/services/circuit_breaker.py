"""
Circuit breaker for remote providers.

A provider that keeps failing is skipped for a while instead of costing a
network round trip on every turn. The engine runs on a single event loop, so
breaker state is mutated without locks.
"""

import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable
from enum import Enum
from typing import Any
from typing import TypeVar

from voice_companion.core.errors import CircuitBreakerOpenError

# Type variables for generic functions
T = TypeVar("T")

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, requests pass through
    OPEN = "open"  # Failing state, requests are blocked
    HALF_OPEN = "half_open"  # Testing state, one trial request passes through


class CircuitBreaker:
    """
    Circuit breaker around one provider.

    Cancellation is not counted as a failure: an interrupted request says
    nothing about the provider's health.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the circuit breaker.

        Args:
            name: Provider name (for logging)
            failure_threshold: Consecutive failures before opening the circuit
            recovery_timeout: Seconds before a trial call is allowed again
            clock: Time source, injectable for tests
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time = 0.0

    def allow_request(self) -> bool:
        """Return True when a call may be attempted now."""
        if self.state == CircuitState.OPEN:
            if self._clock() - self.last_failure_time >= self.recovery_timeout:
                logger.info(f"Circuit breaker '{self.name}' transitioning from OPEN to HALF_OPEN")
                self.state = CircuitState.HALF_OPEN
                return True
            return False
        return True

    async def execute(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Execute a coroutine function with circuit breaker protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Any exception raised by the function
        """
        if not self.allow_request():
            raise CircuitBreakerOpenError(self.name, "circuit open")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit breaker '{self.name}' transitioning from HALF_OPEN to CLOSED")
        self.state = CircuitState.CLOSED
        self.failure_count = 0

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = self._clock()

        if self.state == CircuitState.HALF_OPEN:
            logger.warning(f"Circuit breaker '{self.name}' trial call failed, reopening")
            self.state = CircuitState.OPEN
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                f"Circuit breaker '{self.name}' transitioning from CLOSED to OPEN "
                f"after {self.failure_count} failures"
            )
            self.state = CircuitState.OPEN

    def get_state(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
        }

    def reset(self) -> None:
        """Reset the circuit breaker to closed state."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time = 0.0
        logger.info(f"Circuit breaker '{self.name}' manually reset to CLOSED state")
