"""
Retry with exponential backoff for provider fetches.

Providers fail in two transient ways: the connection drops (httpx.TransportError)
or the server answers 429 or 5xx. Both are retried; any other status is final.
A Retry-After header on the response replaces the computed backoff delay.
"""

import asyncio
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import httpx
import structlog

logger = structlog.get_logger()

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
HTTP_RETRYABLE_EXCEPTIONS = (httpx.TransportError, httpx.HTTPStatusError)


def is_transient_http_error(error: BaseException) -> bool:
    """True for dropped connections and 429/5xx responses."""
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return False


def retry_after_seconds(error: BaseException) -> Optional[float]:
    """
    Delay requested by the server's Retry-After header, if any.

    Accepts both forms of the header: delta-seconds and an HTTP date.
    """
    if not isinstance(error, httpx.HTTPStatusError):
        return None
    value = error.response.headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
    delay_hint: Optional[Callable[[Exception], Optional[float]]] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for async retry with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts, including the first
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds, hinted delays included
        exponential_base: Base for exponential backoff calculation
        jitter: Add randomness to delay so parallel adapters do not retry in lockstep
        retryable_exceptions: Tuple of exception types to retry on
        retry_if: Further filter on a caught exception; False re-raises at once
        delay_hint: Server-requested delay for an exception, or None to back off

    Returns:
        Decorated async function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        raise
                    last_exception = e
                    if attempt >= max_attempts - 1:
                        break

                    hinted = delay_hint(e) if delay_hint else None
                    if hinted is not None:
                        delay = min(hinted, max_delay)
                    else:
                        delay = min(base_delay * (exponential_base**attempt), max_delay)
                        if jitter:
                            delay *= 0.5 + random.random()

                    logger.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=max_attempts,
                        delay=round(delay, 2),
                        server_hint=hinted is not None,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

            logger.error(
                "retry_exhausted",
                function=func.__name__,
                max_attempts=max_attempts,
                error=str(last_exception),
            )
            raise last_exception  # type: ignore

        return wrapper  # type: ignore

    return decorator


def retry_transient_http(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: bool = True,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """retry_with_backoff preset for httpx calls that raise_for_status()."""
    return retry_with_backoff(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        jitter=jitter,
        retryable_exceptions=HTTP_RETRYABLE_EXCEPTIONS,
        retry_if=is_transient_http_error,
        delay_hint=retry_after_seconds,
    )
