"""
Declarative provider definitions for HTML listing sites.

Each provider is data, not code: a URL template, ordered selector lists per
field and a few behaviour switches. HtmlSourceAdapter interprets them.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..models import SourceIdentifier


class ProviderConfig(BaseModel):
    """How to query and read one listing site."""

    source: SourceIdentifier
    base_url: str
    allowed_domains: list[str]

    # Jinja2 template; context: location, keyword, keywords, radius
    url_template: str
    selectors: dict[str, list[str]]

    # Credential gate
    credential_env: Optional[str] = None
    credential_header: Optional[str] = None
    credential_prefix: str = ""
    credential_param: Optional[str] = None

    # Query behaviour
    per_keyword: bool = True
    max_keywords: int = 3
    max_events: int = Field(default=15, ge=10, le=20)

    # Fetching
    render: Literal["http", "browser"] = "browser"
    wait_for_selector: Optional[str] = None

    # Interpretation
    date_formats: list[str] = Field(default_factory=list)
    default_category: Optional[str] = None
    default_organizer: Optional[str] = None

    @property
    def name(self) -> str:
        return self.source.value


EVENTBRITE = ProviderConfig(
    source=SourceIdentifier.EVENTBRITE,
    base_url="https://www.eventbrite.com",
    allowed_domains=["eventbrite.com"],
    url_template=(
        "https://www.eventbrite.com/d/{{ location | urlencode }}/{{ keyword | urlencode }}/"
        "?distance={{ radius | int }}mi"
    ),
    selectors={
        "container": ['[data-testid="event-card"]', ".event-card"],
        "title": ['[data-testid="event-title"]', "h3", ".event-card__title"],
        "date": ['[data-testid="event-date"]', ".event-card__date", "time"],
        "location": ['[data-testid="event-location"]', ".event-card__location", ".location"],
        "description": [".event-card__description", "p"],
        "price": [".event-card__price", '[data-testid="event-price"]'],
        "organizer": [".event-card__organizer", '[data-testid="event-organizer"]'],
        "link": ["a[href]"],
        "image": ["img[src]"],
    },
    credential_env="EVENTBRITE_TOKEN",
    credential_header="Authorization",
    credential_prefix="Bearer ",
    wait_for_selector='[data-testid="event-card"]',
    default_organizer="Eventbrite Event",
)

MEETUP = ProviderConfig(
    source=SourceIdentifier.MEETUP,
    base_url="https://www.meetup.com",
    allowed_domains=["meetup.com"],
    url_template=(
        "https://www.meetup.com/find/events/?keywords={{ keyword | urlencode_plus }}"
        "&location={{ location | urlencode_plus }}&distance={{ radius | int }}"
    ),
    selectors={
        "container": ['[data-testid="event-card-wrapper"]', ".event-listing"],
        "title": ['[data-testid="event-title"]', "h3", ".event-title"],
        "date": ["time", '[data-testid="event-time"]', ".event-time"],
        "location": ['[data-testid="event-location"]', ".event-location", ".venue-name"],
        "description": [".event-description", "p"],
        "organizer": ['[data-testid="group-name"]', ".group-name"],
        "attendees": ['[data-testid="attendee-count"]', ".attendee-count"],
        "link": ["a[href]"],
        "image": ["img[src]"],
    },
    credential_env="MEETUP_TOKEN",
    credential_header="Authorization",
    credential_prefix="Bearer ",
    wait_for_selector='[data-testid="event-card-wrapper"]',
    default_organizer="Meetup Group",
)

TICKETMASTER = ProviderConfig(
    source=SourceIdentifier.TICKETMASTER,
    base_url="https://www.ticketmaster.com",
    allowed_domains=["ticketmaster.com"],
    url_template=(
        "https://www.ticketmaster.com/search?q={{ keyword | urlencode_plus }}"
        "&location={{ location | urlencode_plus }}&radius={{ radius | int }}"
    ),
    selectors={
        "container": ['[data-testid="search-result-card"]', ".search-result-card"],
        "title": ['[data-testid="event-name"]', "h3", ".event-name", ".artist-name"],
        "date": ['[data-testid="event-date"]', ".event-date", "time"],
        "location": ['[data-testid="venue-name"]', ".venue-name", ".location", ".venue"],
        "price": ['[data-testid="price"]', ".price", ".starting-price"],
        "link": ["a[href]"],
        "image": ["img[src]"],
    },
    credential_env="TICKETMASTER_API_KEY",
    credential_param="apikey",
    wait_for_selector='[data-testid="search-result-card"]',
    date_formats=["%a %b %d %Y %I:%M %p"],
    default_organizer="Ticketmaster Event",
)

SEATGEEK = ProviderConfig(
    source=SourceIdentifier.SEATGEEK,
    base_url="https://seatgeek.com",
    allowed_domains=["seatgeek.com"],
    url_template=(
        "https://seatgeek.com/search?q={{ keyword | urlencode_plus }}"
        "&location={{ location | urlencode_plus }}&distance={{ radius | int }}mi"
    ),
    selectors={
        "container": [".event-tile", ".event-card", '[data-testid="event"]', ".EventTile"],
        "title": ['[data-testid="event-title"]', ".event-title", "h3", "h2", ".title"],
        "date": ['[data-testid="event-date"]', ".event-date", ".date", "time"],
        "location": ['[data-testid="venue-name"]', ".venue-name", ".venue", ".location"],
        "price": ['[data-testid="price"]', ".price", ".starting-price", ".from-price"],
        "category": ['[data-testid="category"]', ".category", ".genre"],
        "link": ["a[href]"],
        "image": ["img[src]"],
    },
    credential_env="SEATGEEK_CLIENT_ID",
    credential_param="client_id",
    wait_for_selector=".event-tile, .event-card, [data-testid=\"event\"]",
    default_organizer="SeatGeek Event",
)

BANDSINTOWN = ProviderConfig(
    source=SourceIdentifier.BANDSINTOWN,
    base_url="https://www.bandsintown.com",
    allowed_domains=["bandsintown.com"],
    url_template=(
        "https://www.bandsintown.com/concerts?location={{ location | urlencode_plus }}"
        "&radius={{ radius | int }}"
    ),
    selectors={
        "container": [".concert-card", ".event-card", ".concert-item"],
        "title": [".artist-name", ".event-title", ".concert-title"],
        "date": [".date", ".event-date", ".concert-date"],
        "time": [".time", ".event-time"],
        "location": [".venue-name", ".location", ".venue"],
        "attendees": [".attendee-count", ".interested", ".going"],
        "link": ["a[href]"],
        "image": ["img[src]"],
    },
    credential_env="BANDSINTOWN_APP_ID",
    credential_param="app_id",
    per_keyword=False,
    max_events=20,
    date_formats=["%B %d, %Y %I:%M %p", "%B %d, %Y"],
    default_category="music",
    default_organizer="Bandsintown",
)

HTML_PROVIDERS: list[ProviderConfig] = [
    EVENTBRITE,
    MEETUP,
    TICKETMASTER,
    SEATGEEK,
    BANDSINTOWN,
]
