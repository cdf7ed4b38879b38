"""
One aggregation pass, end to end.

communities -> keywords -> adapters (concurrent) -> fallback if empty ->
dedup -> future-only -> per-community geo filter -> scoring -> persistence
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

import structlog

from .clock import Clock, system_clock
from .config.settings import get_default_config
from .dedup import deduplicate, format_audit_summary
from .errors import AdapterFailure, PersistenceFailure
from .geo import filter_with_expansion, nearest_city_name
from .matching import CommunityMatcher, extract_run_keywords
from .models import (
    CommunityMatch,
    CommunityProfile,
    Coordinates,
    EventRecord,
    RunSummary,
    ScrapedEvent,
    ScrapeSourceResult,
    category_keywords,
)
from .persistence import EventGateway
from .resilience import CircuitBreaker, CircuitBreakerOpenError, HealthMonitor
from .sources.adapter import SourceAdapter
from .sources.fallback_generator import FallbackGenerator

logger = structlog.get_logger()


def _event_key(title: str, date: datetime) -> tuple[str, str]:
    """Equivalence key for idempotent inserts within one community."""
    return (title.strip().casefold(), date.date().isoformat())


class EventOrchestrator:
    """Coordinates adapters and the processing chain for a single run."""

    def __init__(
        self,
        gateway: EventGateway,
        adapters: list[SourceAdapter],
        config: Optional[dict[str, Any]] = None,
        fallback: Optional[FallbackGenerator] = None,
        clock: Clock = system_clock,
        health: Optional[HealthMonitor] = None,
    ):
        self.gateway = gateway
        self.adapters = adapters
        self.config = config or get_default_config()
        self.clock = clock
        self.fallback = fallback or FallbackGenerator(clock=clock)
        self.health = health or HealthMonitor(clock=clock)
        self.matcher = CommunityMatcher.from_config(self.config)

        adapter_config = self.config["adapters"]
        self.breakers = {
            adapter.name: CircuitBreaker(
                failure_threshold=adapter_config["failure_threshold"],
                recovery_timeout=adapter_config["recovery_timeout_seconds"],
                name=adapter.name,
                clock=clock,
            )
            for adapter in adapters
        }

    async def run(self, reference: Coordinates) -> RunSummary:
        """
        Execute one aggregation pass.

        Args:
            reference: Anchor point for queries and for communities without
                their own coordinates

        Returns:
            RunSummary. Never raises for adapter, event or persistence failures.
        """
        summary = RunSummary(started_at=self.clock())

        try:
            communities = await self.gateway.read_communities()
        except Exception as e:
            logger.error("communities_read_failed", error=str(e))
            summary.errors.append(f"Failed to read communities: {e}")
            self._finish(summary)
            return summary

        summary.communities_read = len(communities)
        if not communities:
            logger.info("run_skipped_no_communities")
            self._finish(summary)
            return summary

        location_name = nearest_city_name(reference)
        keywords = extract_run_keywords(communities, self.config["adapters"]["max_keywords"])
        logger.info(
            "run_started",
            location=location_name,
            communities=len(communities),
            keywords=keywords,
        )

        upcoming = await self.collect_candidates(
            location_name,
            keywords,
            {c.category for c in communities},
            reference,
            summary,
        )

        for community in communities:
            match = self.match_community(community, upcoming, reference)
            created = await self.persist(match, summary)
            if created:
                summary.communities_updated += 1
                summary.total_events += created

        self._finish(summary)
        logger.info(
            "run_completed",
            total_events=summary.total_events,
            communities_updated=summary.communities_updated,
            candidates=summary.candidates_scraped,
            used_fallback=summary.used_fallback,
            discarded=summary.discarded,
            errors=len(summary.errors),
            sources=summary.source_breakdown(),
            unhealthy_sources=self.health.get_unhealthy_sources(),
            open_circuits=summary.open_circuits(),
        )
        return summary

    async def run_for_community(self, community_id: int, reference: Coordinates) -> int:
        """
        On-demand pass for a single community.

        Queries providers with the community's own keywords widened by its
        category synonyms, and persists matches for that community only.

        Returns:
            Number of events created. 0 for an unknown community or a failed
            community read; nothing is raised.
        """
        summary = RunSummary(started_at=self.clock())
        try:
            communities = await self.gateway.read_communities()
        except Exception as e:
            logger.error("communities_read_failed", community_id=community_id, error=str(e))
            return 0

        community = next((c for c in communities if c.id == community_id), None)
        if community is None:
            logger.error("community_not_found", community_id=community_id)
            return 0

        location_name = nearest_city_name(community.anchor or reference)
        own = extract_run_keywords([community]) + category_keywords(community.category)
        keywords = list(dict.fromkeys(own))[: self.config["adapters"]["max_keywords"]]
        logger.info(
            "community_run_started",
            community_id=community_id,
            location=location_name,
            keywords=keywords,
        )

        upcoming = await self.collect_candidates(
            location_name,
            keywords,
            {community.category},
            community.anchor or reference,
            summary,
        )
        match = self.match_community(community, upcoming, reference)
        created = await self.persist(match, summary)

        self._finish(summary)
        logger.info(
            "community_run_completed",
            community_id=community_id,
            created=created,
            candidates=summary.candidates_scraped,
            used_fallback=summary.used_fallback,
            errors=summary.errors,
        )
        return created

    async def collect_candidates(
        self,
        location_name: str,
        keywords: list[str],
        categories: set[str],
        reference: Coordinates,
        summary: RunSummary,
    ) -> list[ScrapedEvent]:
        """Scrape every adapter, fall back to synthetic events if none, then prepare."""
        summary.source_results = await self.scrape_all(
            location_name, keywords, self.config["geo"]["primary_radius_miles"]
        )
        candidates = [e for r in summary.source_results for e in r.events]
        summary.candidates_scraped = len(candidates)
        summary.discarded = sum(r.discarded for r in summary.source_results)

        if not candidates:
            candidates = self.fallback.generate(
                location_name,
                keywords,
                categories=categories,
                reference=reference,
            )
            summary.used_fallback = True

        return self.prepare(candidates, summary)

    def _finish(self, summary: RunSummary) -> None:
        summary.health = self.health.get_status()
        summary.breakers = {name: b.get_status() for name, b in self.breakers.items()}
        summary.finished_at = self.clock()

    async def scrape_all(
        self,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> list[ScrapeSourceResult]:
        """Fan out to every adapter and wait for all of them to settle."""
        outcomes = await asyncio.gather(
            *(self._scrape_one(adapter, location_name, keywords, radius_miles) for adapter in self.adapters),
            return_exceptions=True,
        )

        results: list[ScrapeSourceResult] = []
        for adapter, outcome in zip(self.adapters, outcomes):
            if isinstance(outcome, Exception):
                logger.error("adapter_crashed", source=adapter.name, error=repr(outcome))
                outcome = ScrapeSourceResult(
                    source_name=adapter.name,
                    status="error",
                    error=str(outcome) or type(outcome).__name__,
                )
                self.health.record(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            results.append(outcome)
        return results

    async def _scrape_one(
        self,
        adapter: SourceAdapter,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> ScrapeSourceResult:
        timeout = self.config["adapters"]["timeout_seconds"]
        breaker = self.breakers[adapter.name]

        async def attempt() -> ScrapeSourceResult:
            result = await asyncio.wait_for(
                adapter.scrape_with_result(location_name, keywords, radius_miles),
                timeout=timeout,
            )
            if result.status == "error":
                raise AdapterFailure(adapter.name, result.error or "unknown error")
            return result

        try:
            result = await breaker.call(attempt)
        except CircuitBreakerOpenError as e:
            logger.info("adapter_circuit_open", source=adapter.name)
            result = ScrapeSourceResult(source_name=adapter.name, status="error", error=str(e))
        except AdapterFailure as e:
            result = ScrapeSourceResult(source_name=adapter.name, status="error", error=e.reason)
        except asyncio.TimeoutError:
            logger.warning("adapter_timed_out", source=adapter.name, timeout=timeout)
            result = ScrapeSourceResult(
                source_name=adapter.name,
                status="error",
                error=f"timed out after {timeout:g}s",
            )

        self.health.record(result)
        return result

    def prepare(self, candidates: list[ScrapedEvent], summary: RunSummary) -> list[ScrapedEvent]:
        """Deduplicate, then drop anything not strictly in the future."""
        dedup = self.config["dedup"]
        result = deduplicate(
            candidates,
            title_threshold=dedup["title_threshold"],
            location_threshold=dedup["location_threshold"],
        )
        if result.duplicates_removed:
            logger.info(
                "duplicates_removed",
                original=result.original_count,
                removed=result.duplicates_removed,
            )
            logger.debug("dedup_audit", summary=format_audit_summary(result))

        now = self.clock()
        upcoming = [e for e in result.events if e.date > now]
        summary.discarded += len(result.events) - len(upcoming)
        return upcoming

    def match_community(
        self,
        community: CommunityProfile,
        events: list[ScrapedEvent],
        reference: Coordinates,
    ) -> CommunityMatch:
        geo = self.config["geo"]
        nearby = filter_with_expansion(
            events,
            community.anchor or reference,
            primary_radius=geo["primary_radius_miles"],
            secondary_radius=geo["secondary_radius_miles"],
        )
        return self.matcher.match(nearby.events, community, radius_miles=nearby.radius_miles)

    async def persist(self, match: CommunityMatch, summary: RunSummary) -> int:
        """
        Create events that do not already exist for the community.

        Returns:
            Number of events created. Failed writes are recorded in
            summary.errors and do not stop the batch.
        """
        if not match.matches:
            return 0

        try:
            existing = await self.gateway.read_existing_events_for_community(match.community_id)
        except Exception as e:
            logger.error("existing_events_read_failed", community_id=match.community_id, error=str(e))
            summary.errors.append(f"Failed to read events for community {match.community_id}: {e}")
            return 0

        seen = {_event_key(e.title, e.date) for e in existing}
        created = 0

        for scored in match.matches:
            event = scored.event
            key = _event_key(event.title, event.date)
            if key in seen:
                continue
            try:
                await self.gateway.create_event(EventRecord.from_scraped(match.community_id, event))
            except Exception as e:
                failure = PersistenceFailure(match.community_id, event.title, e)
                logger.error(
                    "event_save_failed",
                    community_id=match.community_id,
                    title=event.title,
                    error=str(e),
                )
                summary.errors.append(str(failure))
                continue
            seen.add(key)
            created += 1

        if created:
            logger.info("community_events_saved", community_id=match.community_id, created=created)
        return created
