"""Circuit breaker that benches a source adapter after repeated failed runs."""

from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from ..clock import Clock, system_clock

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitState(Enum):
    """States for the circuit breaker."""

    CLOSED = "closed"  # Adapter runs normally
    OPEN = "open"  # Adapter benched
    HALF_OPEN = "half_open"  # One trial run allowed


class CircuitBreakerOpenError(Exception):
    """Raised when circuit breaker is open and blocking calls."""

    def __init__(self, circuit_name: str):
        super().__init__(f"Circuit breaker '{circuit_name}' is open")
        self.circuit_name = circuit_name


class CircuitBreaker:
    """Circuit breaker for one source adapter.

    A failure is whatever the caller reports: an exception from the wrapped
    call, or an explicit record_failure() for adapters that swallow their
    own errors and only report them in diagnostics.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 6 * 3600,
        name: str = "default",
        clock: Clock = system_clock,
    ):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Seconds before a half-open trial is allowed
            name: Name for logging and identification
            clock: Time source
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.clock = clock
        self.failure_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time: datetime | None = None

    def allow(self) -> bool:
        """Whether a call may go through now. Moves OPEN to HALF_OPEN when due."""
        if self.state != CircuitState.OPEN:
            return True
        if self._should_attempt_reset():
            self.state = CircuitState.HALF_OPEN
            logger.info("circuit_half_open", circuit=self.name)
            return True
        return False

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run func under circuit protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Whatever func raises, after recording the failure
        """
        if not self.allow():
            raise CircuitBreakerOpenError(self.name)

        try:
            result = await func()
        except Exception as e:
            self.record_failure(str(e) or type(e).__name__)
            raise
        self.record_success()
        return result

    def _should_attempt_reset(self) -> bool:
        if not self.last_failure_time:
            return True
        elapsed = (self.clock() - self.last_failure_time).total_seconds()
        return elapsed >= self.recovery_timeout

    def record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info("circuit_closed", circuit=self.name)
        self.failure_count = 0
        self.state = CircuitState.CLOSED

    def record_failure(self, error: str) -> None:
        self.failure_count += 1
        self.last_failure_time = self.clock()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            logger.warning(
                "circuit_opened",
                circuit=self.name,
                failure_count=self.failure_count,
                recovery_timeout=self.recovery_timeout,
                error=error,
            )

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def get_status(self) -> dict[str, Any]:
        """Get current circuit breaker status."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure": (
                self.last_failure_time.isoformat() if self.last_failure_time else None
            ),
        }
