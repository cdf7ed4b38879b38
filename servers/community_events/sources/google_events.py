"""
SerpApi Google Events integration.

Free tier: 100 searches/month

One combined query per run ("<keywords> events in <location>").
"""

from typing import Optional

import httpx
import structlog

from ..clock import Clock, system_clock
from ..config.settings import get_credential
from ..dates import parse_event_date
from ..matching import classify_category
from ..models import ScrapedEvent, ScrapeSourceResult, SourceIdentifier
from .adapter import SourceAdapter, rejection_reason
from .extraction import clean_title, parse_price
from .url_guard import check_url

logger = structlog.get_logger()

SERPAPI_BASE = "https://serpapi.com/search"
CREDENTIAL_ENV = "SERPAPI_KEY"
MAX_KEYWORDS = 3
MAX_EVENTS = 15


class GoogleEventsAdapter(SourceAdapter):
    """Google Events results through SerpApi's JSON API."""

    name = SourceIdentifier.GOOGLE_EVENTS.value

    def __init__(self, timeout: float = 30.0, clock: Clock = system_clock):
        super().__init__(clock)
        self.timeout = timeout

    def build_query(self, location_name: str, keywords: list[str]) -> str:
        query_parts = [k for k in keywords if k][:MAX_KEYWORDS] + ["events"]
        return f"{' '.join(query_parts)} in {location_name}"

    async def collect(
        self,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> ScrapeSourceResult:
        api_key = get_credential(CREDENTIAL_ENV)
        if not api_key:
            return ScrapeSourceResult(
                source_name=self.name,
                status="skipped",
                error=f"{CREDENTIAL_ENV} not configured",
            )

        params = {
            "engine": "google_events",
            "q": self.build_query(location_name, keywords),
            "hl": "en",
            "api_key": api_key,
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(check_url(SERPAPI_BASE, ["serpapi.com"]), params=params)
            response.raise_for_status()
            data = response.json()

        events: list[ScrapedEvent] = []
        discarded = 0
        for item in data.get("events_results", []):
            event = self.parse_item(item, location_name)
            if event is None:
                discarded += 1
                continue
            events.append(event)
            if len(events) >= MAX_EVENTS:
                break

        return ScrapeSourceResult(source_name=self.name, events=events, discarded=discarded)

    def parse_item(self, item: dict, default_location: str) -> Optional[ScrapedEvent]:
        """Parse a SerpApi event result into a ScrapedEvent."""
        now = self.clock()
        title = clean_title(item.get("title", ""))

        date_info = item.get("date") or {}
        start_time = (
            parse_event_date(date_info.get("when"), now)
            or parse_event_date(date_info.get("start_date"), now)
        )
        if rejection_reason(title, start_time, now):
            return None

        address_info = item.get("address") or []
        location = ", ".join(address_info) if address_info else default_location
        description = item.get("description", "") or ""

        price = None
        for ticket in item.get("ticket_info") or []:
            price = parse_price(ticket.get("price"))
            if price is not None:
                break

        venue = item.get("venue") or {}

        return ScrapedEvent(
            title=title,
            description=description,
            date=start_time,
            location=location,
            category=classify_category(f"{title} {description}") or "community",
            source=SourceIdentifier.GOOGLE_EVENTS,
            source_url=item.get("link", "") or "",
            organizer_name=venue.get("name") or (address_info[0] if address_info else None),
            price=price,
            image_url=item.get("thumbnail"),
        )
