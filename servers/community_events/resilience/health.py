"""Health monitoring for source adapters across runs."""

from typing import Any

import structlog

from ..clock import Clock, system_clock
from ..models import ScrapeSourceResult

logger = structlog.get_logger()


class HealthMonitor:
    """Track per-adapter outcomes so operators can see which sources are dead."""

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock
        self.status: dict[str, dict[str, Any]] = {}

    def record(self, result: ScrapeSourceResult) -> None:
        """Record an adapter outcome. Skipped adapters are tracked but not unhealthy."""
        if result.status == "error":
            self.record_failure(result.source_name, result.error or "unknown error")
        else:
            self.record_success(result.source_name, result.count, skipped=result.status == "skipped")

    def record_success(self, source: str, event_count: int, skipped: bool = False) -> None:
        self.status[source] = {
            "healthy": True,
            "skipped": skipped,
            "last_check": self.clock().isoformat(),
            "event_count": event_count,
            "consecutive_failures": 0,
            "last_error": None,
        }
        logger.debug("source_healthy", source=source, event_count=event_count, skipped=skipped)

    def record_failure(self, source: str, error: str) -> None:
        consecutive = self.status.get(source, {}).get("consecutive_failures", 0) + 1
        self.status[source] = {
            "healthy": False,
            "skipped": False,
            "last_check": self.clock().isoformat(),
            "event_count": 0,
            "consecutive_failures": consecutive,
            "last_error": error,
        }
        logger.warning(
            "source_unhealthy",
            source=source,
            consecutive_failures=consecutive,
            error=error,
        )

    def is_healthy(self, source: str) -> bool:
        """Unknown sources count as healthy."""
        return self.status.get(source, {}).get("healthy", True)

    def get_unhealthy_sources(self) -> list[str]:
        return [name for name in self.status if not self.is_healthy(name)]

    def get_status(self) -> dict[str, Any]:
        healthy = sum(1 for s in self.status.values() if s.get("healthy", False))
        return {
            "timestamp": self.clock().isoformat(),
            "summary": {
                "healthy": healthy,
                "unhealthy": len(self.status) - healthy,
                "total": len(self.status),
            },
            "sources": self.status,
        }
