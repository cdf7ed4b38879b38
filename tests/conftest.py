"""Shared pytest fixtures for aggregator tests."""

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import pytest

from servers.community_events.clock import FrozenClock
from servers.community_events.models import (
    CommunityProfile,
    Coordinates,
    ScrapedEvent,
    ScrapeSourceResult,
    SourceIdentifier,
    UserLocation,
)
from servers.community_events.persistence import InMemoryEventGateway
from servers.community_events.sources.adapter import SourceAdapter

CREDENTIAL_VARS = [
    "EVENTBRITE_TOKEN",
    "MEETUP_TOKEN",
    "TICKETMASTER_API_KEY",
    "SEATGEEK_CLIENT_ID",
    "BANDSINTOWN_APP_ID",
    "SERPAPI_KEY",
    "REDDIT_USER_AGENT",
]

# Monday morning
NOW = datetime(2025, 6, 2, 10, 0)


@pytest.fixture(autouse=True)
def no_provider_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests opt in to credentials explicitly."""
    for var in CREDENTIAL_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def salt_lake_city() -> Coordinates:
    return Coordinates(lat=40.7608, lon=-111.8910)


@pytest.fixture
def tech_community() -> CommunityProfile:
    return CommunityProfile(id=1, name="Tech Innovators", category="technology")


@pytest.fixture
def yoga_community() -> CommunityProfile:
    return CommunityProfile(
        id=2,
        name="Sunrise Yoga Circle",
        description="Morning yoga and wellness",
        category="fitness",
    )


@pytest.fixture
def gateway(tech_community: CommunityProfile, salt_lake_city: Coordinates) -> InMemoryEventGateway:
    return InMemoryEventGateway(
        communities=[tech_community],
        users=[UserLocation(user_id=7, lat=salt_lake_city.lat, lon=salt_lake_city.lon)],
    )


@pytest.fixture
def make_event() -> Callable[..., ScrapedEvent]:
    """Build a ScrapedEvent with sensible defaults."""

    def _make(
        title: str = "Downtown Python Meetup",
        days_ahead: float = 3,
        source: SourceIdentifier = SourceIdentifier.MEETUP,
        **kwargs,
    ) -> ScrapedEvent:
        kwargs.setdefault("date", NOW + timedelta(days=days_ahead))
        kwargs.setdefault("location", "Salt Lake City Library")
        kwargs.setdefault("category", "technology")
        return ScrapedEvent(title=title, source=source, **kwargs)

    return _make


@pytest.fixture
def fixtures_path() -> Path:
    """Provide path to recorded provider pages."""
    return Path(__file__).parent / "fixtures"


class FixtureFetcher:
    """PageFetcher that serves recorded HTML and remembers what was asked."""

    def __init__(self, pages: dict[str, str], error: Optional[Exception] = None):
        self.pages = pages
        self.error = error
        self.calls: list[dict] = []

    async def fetch(self, url: str, wait_for: Optional[str] = None, headers: Optional[dict] = None) -> str:
        self.calls.append({"url": url, "wait_for": wait_for, "headers": headers})
        if self.error:
            raise self.error
        for fragment, html in self.pages.items():
            if fragment in url:
                return html
        return "<html><body></body></html>"


@pytest.fixture
def fixture_fetcher(fixtures_path: Path) -> Callable[..., FixtureFetcher]:
    """Factory: fixture_fetcher({"meetup.com": "meetup_search.html"})."""

    def _make(files: Optional[dict[str, str]] = None, error: Optional[Exception] = None) -> FixtureFetcher:
        pages = {
            fragment: (fixtures_path / name).read_text(encoding="utf-8")
            for fragment, name in (files or {}).items()
        }
        return FixtureFetcher(pages, error=error)

    return _make


class StubAdapter(SourceAdapter):
    """Adapter returning canned results, optionally slowly or with an exception."""

    def __init__(
        self,
        name: str,
        events: Optional[list[ScrapedEvent]] = None,
        status: str = "success",
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        super().__init__()
        self.name = name
        self.events = events or []
        self.status = status
        self.error = error
        self.delay = delay
        self.calls = 0

    async def collect(self, location_name, keywords, radius_miles) -> ScrapeSourceResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return ScrapeSourceResult(source_name=self.name, events=list(self.events), status=self.status)


@pytest.fixture
def stub_adapter() -> type[StubAdapter]:
    return StubAdapter
