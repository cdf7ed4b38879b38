"""Resilience patterns for unreliable event providers."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState
from .fallback import FallbackChain
from .health import HealthMonitor
from .retry import (
    is_transient_http_error,
    retry_after_seconds,
    retry_transient_http,
    retry_with_backoff,
)

__all__ = [
    "retry_with_backoff",
    "retry_transient_http",
    "is_transient_http_error",
    "retry_after_seconds",
    "CircuitBreaker",
    "CircuitState",
    "CircuitBreakerOpenError",
    "FallbackChain",
    "HealthMonitor",
]
