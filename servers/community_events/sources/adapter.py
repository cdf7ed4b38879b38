"""
Source adapter contract and the generic HTML listing adapter.

Contract:
    scrape(location_name, keywords, radius_miles) -> list[ScrapedEvent]

An adapter never raises to its caller. Network, parse and timeout
failures are caught inside and turn into an empty list plus a logged
diagnostic; scrape_with_result() exposes the diagnostic as a
ScrapeSourceResult.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import httpx
import structlog

from ..clock import Clock, system_clock
from ..config.settings import get_credential
from ..dates import is_reasonable_future, parse_event_date
from ..errors import AdapterFailure
from ..matching import classify_category
from ..models import ScrapedEvent, ScrapeSourceResult
from ..template_engine import TemplateEngine, default_engine
from .extraction import RawListing, clean_title, extract_listings, parse_attendees, parse_price
from .fetchers import PageFetcher
from .providers import ProviderConfig
from .url_guard import check_url

logger = structlog.get_logger()

MIN_TITLE_LENGTH = 5
MAX_DAYS_AHEAD = 365
MAX_DESCRIPTION_LENGTH = 500

_TEST_MARKERS = re.compile(r"\b(test|sample|demo|placeholder)\b", re.IGNORECASE)


def rejection_reason(title: str, date: Optional[datetime], now: datetime) -> Optional[str]:
    """Why a candidate should be discarded, or None if it is acceptable."""
    if len(title) < MIN_TITLE_LENGTH:
        return "title_too_short"
    if _TEST_MARKERS.search(title):
        return "placeholder_title"
    if date is None:
        return "unparsable_date"
    if not is_reasonable_future(date, now, MAX_DAYS_AHEAD):
        return "date_out_of_range"
    return None


class RateLimiter:
    """Fixed minimum delay between consecutive requests."""

    def __init__(self, min_interval: float = 2.0):
        self.min_interval = min_interval
        self.last_call: Optional[float] = None

    async def wait(self):
        """Wait if needed to respect the delay. The first call never waits."""
        loop = asyncio.get_running_loop()
        if self.last_call is not None:
            elapsed = loop.time() - self.last_call
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)
        self.last_call = loop.time()


class SourceAdapter(ABC):
    """Base class for every provider adapter."""

    name: str = "source"

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock

    @abstractmethod
    async def collect(
        self,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> ScrapeSourceResult:
        """Provider-specific work. May raise; scrape_with_result() contains it."""

    async def scrape_with_result(
        self,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> ScrapeSourceResult:
        start_time = datetime.now()
        try:
            result = await self.collect(location_name, keywords, radius_miles)
        except Exception as e:
            failure = e if isinstance(e, AdapterFailure) else AdapterFailure(self.name, _describe(e))
            logger.warning("adapter_failed", source=self.name, error=failure.reason)
            result = ScrapeSourceResult(source_name=self.name, status="error", error=failure.reason)

        result.duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        logger.info(
            "adapter_finished",
            source=self.name,
            status=result.status,
            events=result.count,
            discarded=result.discarded,
            duration_ms=result.duration_ms,
        )
        return result

    async def scrape(
        self,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> list[ScrapedEvent]:
        result = await self.scrape_with_result(location_name, keywords, radius_miles)
        return result.events


def _describe(error: Exception) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return str(error) or type(error).__name__


class HtmlSourceAdapter(SourceAdapter):
    """Generic adapter driven by a ProviderConfig."""

    def __init__(
        self,
        provider: ProviderConfig,
        fetcher: PageFetcher,
        request_delay: float = 2.0,
        clock: Clock = system_clock,
        engine: TemplateEngine = default_engine,
    ):
        super().__init__(clock)
        self.provider = provider
        self.fetcher = fetcher
        self.request_delay = request_delay
        self.engine = engine
        self.name = provider.name

    def build_queries(self, keywords: list[str]) -> list[str]:
        selected = [k for k in keywords if k][: self.provider.max_keywords]
        if not self.provider.per_keyword:
            return [" ".join(selected)]
        return selected or ["events"]

    def build_url(self, location_name: str, query: str, keywords: list[str], radius_miles: float) -> str:
        url = self.engine.render_string(self.provider.url_template, {
            "location": location_name,
            "keyword": query,
            "keywords": keywords,
            "radius": radius_miles,
        })
        return check_url(url, self.provider.allowed_domains)

    def _credential_request(self, url: str, credential: str) -> tuple[str, dict[str, str]]:
        headers: dict[str, str] = {}
        if self.provider.credential_header:
            headers[self.provider.credential_header] = f"{self.provider.credential_prefix}{credential}"
        if self.provider.credential_param:
            url = str(httpx.URL(url).copy_add_param(self.provider.credential_param, credential))
        return url, headers

    async def collect(
        self,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> ScrapeSourceResult:
        credential = get_credential(self.provider.credential_env)
        if self.provider.credential_env and not credential:
            logger.info("adapter_skipped", source=self.name, reason=f"{self.provider.credential_env} not configured")
            return ScrapeSourceResult(
                source_name=self.name,
                status="skipped",
                error=f"{self.provider.credential_env} not configured",
            )

        queries = self.build_queries(keywords)
        limiter = RateLimiter(self.request_delay)
        events: list[ScrapedEvent] = []
        discarded = 0
        errors: list[str] = []

        for query in queries:
            if len(events) >= self.provider.max_events:
                break
            try:
                url = self.build_url(location_name, query, keywords, radius_miles)
                logger.debug("adapter_fetch", source=self.name, url=url)
                if credential:
                    url, headers = self._credential_request(url, credential)
                else:
                    headers = {}
                await limiter.wait()
                html = await self.fetcher.fetch(
                    url,
                    wait_for=self.provider.wait_for_selector,
                    headers=headers or None,
                )
            except Exception as e:
                errors.append(f"{query}: {_describe(e)}")
                logger.warning("adapter_query_failed", source=self.name, query=query, error=_describe(e))
                continue

            for listing in extract_listings(html, self.provider.selectors, self.provider.base_url):
                event = self.to_event(listing, query)
                if event is None:
                    discarded += 1
                    continue
                events.append(event)

        if errors and len(errors) == len(queries):
            raise AdapterFailure(self.name, "; ".join(errors))

        return ScrapeSourceResult(
            source_name=self.name,
            events=events[: self.provider.max_events],
            status="success",
            error="; ".join(errors) if errors else None,
            discarded=discarded,
        )

    def to_event(self, listing: RawListing, query: str) -> Optional[ScrapedEvent]:
        """Interpret a raw listing, or None if it fails validation."""
        now = self.clock()
        title = clean_title(listing.title)

        date_text = listing.date
        if date_text and listing.time:
            date_text = f"{date_text} {listing.time}"
        date = parse_event_date(date_text, now, self.provider.date_formats)

        reason = rejection_reason(title, date, now)
        if reason:
            logger.debug("listing_discarded", source=self.name, title=title, reason=reason)
            return None

        description = (listing.description or "")[:MAX_DESCRIPTION_LENGTH]
        category = (
            self.provider.default_category
            or (listing.category or "").lower()
            or classify_category(f"{title} {description}")
            or query
        )

        return ScrapedEvent(
            title=title,
            description=description,
            date=date,
            location=listing.location or "",
            category=category,
            source=self.provider.source,
            source_url=listing.link or self.provider.base_url,
            organizer_name=listing.organizer or self.provider.default_organizer,
            price=parse_price(listing.price),
            attendee_count=parse_attendees(listing.attendees),
            image_url=listing.image,
        )
