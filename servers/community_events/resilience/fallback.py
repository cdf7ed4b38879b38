"""Fallback chain pattern for graceful degradation."""

from typing import Any, Callable, Coroutine, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class FallbackChain:
    """Execute async functions in order until one succeeds.

    Used by fetchers that can render a page in more than one way.
    """

    def __init__(self, *functions: Callable[..., Coroutine[Any, Any, T]]):
        """Initialize fallback chain with ordered functions.

        Args:
            *functions: Async functions to try in order
        """
        if not functions:
            raise ValueError("FallbackChain needs at least one function")
        self.functions = functions

    async def execute(self, *args: Any, **kwargs: Any) -> T:
        """Execute functions in order until one succeeds.

        Returns:
            Result from first successful function

        Raises:
            Last exception if all functions fail
        """
        last_error: Exception | None = None

        for i, func in enumerate(self.functions):
            name = getattr(func, "__name__", repr(func))
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                last_error = e
                logger.warning(
                    "fallback_attempt_failed",
                    function=name,
                    attempt=i + 1,
                    total_functions=len(self.functions),
                    error=str(e),
                )
                continue
            if i > 0:
                logger.info("fallback_used", function=name, attempt=i + 1)
            return result

        logger.error("fallback_chain_exhausted", final_error=str(last_error))
        raise last_error  # type: ignore
