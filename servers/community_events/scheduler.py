"""
Periodic scheduling of aggregation runs with a single-flight guard.

One scheduler instance owns its SchedulerRunState. A run is started by a
timer tick or a manual trigger; while it is active, further ticks are
skipped and manual triggers are rejected.
"""

import asyncio
from typing import Any, Optional

import structlog

from .clock import Clock, system_clock
from .config.settings import get_default_config
from .errors import ScrapingInProgressError
from .models import Coordinates, RunSummary, SchedulerRunState, ScrapingStatus
from .orchestrator import EventOrchestrator
from .persistence import EventGateway

logger = structlog.get_logger()


class EventScrapingScheduler:
    """Runs the orchestrator on a fixed interval, never two runs at once."""

    def __init__(
        self,
        orchestrator: EventOrchestrator,
        gateway: EventGateway,
        config: Optional[dict[str, Any]] = None,
        clock: Clock = system_clock,
    ):
        self.orchestrator = orchestrator
        self.gateway = gateway
        self.clock = clock
        scheduler_config = (config or get_default_config())["scheduler"]
        self.interval_seconds = scheduler_config["interval_hours"] * 3600
        self.warmup_seconds = scheduler_config["warmup_seconds"]

        self.state = SchedulerRunState()
        self._timer: Optional[asyncio.Task] = None
        self._runs: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def is_started(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Schedule a warm-up run and then one tick per interval."""
        if self.is_started:
            logger.warning("scheduler_already_started")
            return
        self._timer = asyncio.get_running_loop().create_task(self._tick_loop())
        logger.info(
            "scheduler_started",
            warmup_seconds=self.warmup_seconds,
            interval_hours=self.interval_seconds / 3600,
        )

    async def stop(self) -> None:
        """Stop the timer. A run already in flight is left to finish."""
        if self._timer is None:
            return
        self._timer.cancel()
        try:
            await self._timer
        except asyncio.CancelledError:
            pass
        self._timer = None
        logger.info("scheduler_stopped", runs_in_flight=len(self._runs))

    async def wait_for_runs(self) -> None:
        """Wait for spawned runs to finish."""
        if self._runs:
            await asyncio.gather(*self._runs)

    async def _tick_loop(self) -> None:
        await asyncio.sleep(self.warmup_seconds)
        while True:
            self._spawn_run()
            await asyncio.sleep(self.interval_seconds)

    def _spawn_run(self) -> None:
        task = asyncio.get_running_loop().create_task(self.run_scheduled_scraping())
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)

    def _try_acquire(self) -> bool:
        # Check-and-set with no await in between
        if self.state.is_running:
            return False
        self.state.is_running = True
        return True

    async def run_scheduled_scraping(self) -> Optional[RunSummary]:
        """
        Timer-driven run.

        Returns:
            The run summary, or None if the run was skipped or failed
        """
        if not self._try_acquire():
            self.state.runs_skipped += 1
            logger.info("scheduled_run_skipped", reason="run in progress")
            return None

        try:
            users = await self.gateway.read_users_with_location()
            if not users:
                logger.info("scheduled_run_skipped", reason="no users with location")
                return None

            anchor = users[0]
            logger.info("scheduled_run_started", user_id=anchor.user_id, lat=anchor.lat, lon=anchor.lon)
            summary = await self.orchestrator.run(Coordinates(lat=anchor.lat, lon=anchor.lon))
            self._record(summary)
            return summary
        except Exception as e:
            logger.error("scheduled_run_failed", error=str(e))
            self.state.record_errors([str(e)])
            return None
        finally:
            self.state.is_running = False

    async def trigger_manual_scraping(self, reference: Coordinates) -> RunSummary:
        """
        Run now and wait for the result.

        Raises:
            ScrapingInProgressError: If a run is already active
        """
        if not self._try_acquire():
            logger.warning("manual_run_rejected")
            raise ScrapingInProgressError()

        try:
            logger.info("manual_run_started", lat=reference.lat, lon=reference.lon)
            summary = await self.orchestrator.run(reference)
            self._record(summary)
            return summary
        finally:
            self.state.is_running = False

    async def trigger_community_scraping(self, community_id: int, reference: Coordinates) -> int:
        """
        Scrape for one community now and wait for the result.

        Returns:
            Number of events created for the community

        Raises:
            ScrapingInProgressError: If a run is already active
        """
        if not self._try_acquire():
            logger.warning("community_run_rejected", community_id=community_id)
            raise ScrapingInProgressError()

        try:
            created = await self.orchestrator.run_for_community(community_id, reference)
        finally:
            self.state.is_running = False

        self.state.last_run_at = self.clock()
        self.state.total_events += created
        if created:
            self.state.communities_updated += 1
        return created

    def _record(self, summary: RunSummary) -> None:
        self.state.last_run_at = summary.finished_at or self.clock()
        self.state.total_events += summary.total_events
        self.state.communities_updated += summary.communities_updated
        self.state.record_errors(summary.errors)
        if summary.communities_read is not None:
            self.state.last_known_communities = summary.communities_read
        self.state.runs_completed += 1

    async def get_scraping_status(self) -> ScrapingStatus:
        """Current status. Falls back to run counters if storage is unavailable."""
        try:
            communities = await self.gateway.read_communities()
            self.state.last_known_communities = len(communities)
            total_events = 0
            for community in communities:
                total_events += len(await self.gateway.read_existing_events_for_community(community.id))
            return ScrapingStatus(
                is_running=self.state.is_running,
                total_events=total_events,
                total_communities=len(communities),
                last_run_at=self.state.last_run_at,
            )
        except Exception as e:
            logger.warning("status_read_failed", error=str(e))
            return ScrapingStatus(
                is_running=self.state.is_running,
                total_events=self.state.total_events,
                total_communities=self.state.last_known_communities or 0,
                last_run_at=self.state.last_run_at,
            )
