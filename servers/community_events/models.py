"""
Pydantic models for event aggregation data structures.

These models define the core data types used throughout the pipeline:
- ScrapedEvent: Canonical event record produced by any source adapter
- CommunityProfile: Read-only community interest profile
- CommunityMatch: Scored events retained for one community
- ScrapeSourceResult / RunSummary: Per-adapter and per-run diagnostics
- SchedulerRunState / ScrapingStatus: Scheduler bookkeeping
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, computed_field, field_validator


class SourceIdentifier(str, Enum):
    """Known event providers."""

    EVENTBRITE = "eventbrite"
    MEETUP = "meetup"
    TICKETMASTER = "ticketmaster"
    SEATGEEK = "seatgeek"
    BANDSINTOWN = "bandsintown"
    GOOGLE_EVENTS = "google_events"
    REDDIT = "reddit"
    SYNTHETIC = "synthetic"  # Fallback generator, never a real provider


class Coordinates(BaseModel):
    """A point on the globe in decimal degrees."""

    lat: float
    lon: float


class ScrapedEvent(BaseModel):
    """Represents a single event as extracted from a provider."""

    title: str
    description: str = ""
    date: datetime

    # Location
    location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Classification
    category: str = "community"
    tags: list[str] = Field(default_factory=list)

    # Source tracking
    source: SourceIdentifier
    source_url: str = ""

    # Details
    organizer_name: Optional[str] = None
    price: Optional[float] = None
    attendee_count: Optional[int] = None
    image_url: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @property
    def coordinates(self) -> Optional[Coordinates]:
        """Explicit coordinates, if the provider supplied them."""
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(lat=self.latitude, lon=self.longitude)

    @property
    def is_synthetic(self) -> bool:
        return self.source == SourceIdentifier.SYNTHETIC


_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "a", "an", "is", "are", "our", "your", "we", "you",
    "from", "this", "that", "all", "who", "into",
})


def clean_tokens(text: str, min_length: int = 3) -> list[str]:
    """Lowercase, strip punctuation and stop words, keep first-seen order."""
    seen: dict[str, None] = {}
    for token in _TOKEN_PATTERN.findall((text or "").lower()):
        if len(token) >= min_length and token not in STOP_WORDS:
            seen.setdefault(token, None)
    return list(seen)


class CommunityProfile(BaseModel):
    """Community interest profile supplied by the storage layer."""

    id: int
    name: str
    description: str = ""
    category: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @computed_field
    @property
    def keywords(self) -> list[str]:
        """Cleaned tokens of name, description and category."""
        return clean_tokens(f"{self.name} {self.description} {self.category}")

    @property
    def anchor(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(lat=self.latitude, lon=self.longitude)


class UserLocation(BaseModel):
    """A user with a known position, used to anchor scheduled runs."""

    user_id: int
    lat: float
    lon: float


class ScoredEvent(BaseModel):
    """An event with its relevance score against one community."""

    event: ScrapedEvent
    score: float = Field(ge=0.0, le=1.0)


class CommunityMatch(BaseModel):
    """Events retained for a single community, best first."""

    community_id: int
    matches: list[ScoredEvent] = Field(default_factory=list)
    radius_miles: Optional[float] = None

    @property
    def events(self) -> list[ScrapedEvent]:
        return [m.event for m in self.matches]


class EventRecord(BaseModel):
    """Write record handed to the persistence gateway."""

    community_id: int
    title: str
    description: str = ""
    organizer: str = "External Event"
    date: datetime
    location: str = ""
    address: str = ""
    category: str = "community"
    price: str = "0"
    source: SourceIdentifier
    source_url: str = ""
    is_global: bool = False

    @classmethod
    def from_scraped(cls, community_id: int, event: ScrapedEvent) -> "EventRecord":
        return cls(
            community_id=community_id,
            title=event.title,
            description=event.description,
            organizer=event.organizer_name or "External Event",
            date=event.date,
            location=event.location,
            address=event.location,
            category=event.category,
            price=str(event.price or 0),
            source=event.source,
            source_url=event.source_url,
        )


class StoredEvent(EventRecord):
    """A persisted event with its storage-assigned id."""

    id: int


class DuplicateMatch(BaseModel):
    """Records a duplicate match for audit trail."""

    kept_title: str
    merged_title: str
    kept_source: SourceIdentifier
    merged_source: SourceIdentifier
    phase: str  # exact or fuzzy
    title_similarity: float = 1.0
    location_similarity: float = 1.0
    reason: str


class DedupeResult(BaseModel):
    """Result of deduplication with audit trail."""

    events: list[ScrapedEvent]
    original_count: int
    duplicates_removed: int
    audit_trail: list[DuplicateMatch] = Field(default_factory=list)

    @computed_field
    @property
    def dedup_rate(self) -> float:
        """Percentage of events that were duplicates."""
        if self.original_count == 0:
            return 0.0
        return self.duplicates_removed / self.original_count * 100


class ScrapeSourceResult(BaseModel):
    """Outcome of one adapter call. Diagnostic only."""

    source_name: str
    events: list[ScrapedEvent] = Field(default_factory=list)
    status: str = "success"  # success, error, skipped
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    discarded: int = 0

    @property
    def count(self) -> int:
        return len(self.events)


class RunSummary(BaseModel):
    """Result of one aggregation pass."""

    total_events: int = 0
    communities_updated: int = 0
    errors: list[str] = Field(default_factory=list)

    # Diagnostics
    source_results: list[ScrapeSourceResult] = Field(default_factory=list)
    candidates_scraped: int = 0
    used_fallback: bool = False
    discarded: int = 0
    communities_read: Optional[int] = None  # None when the read failed
    health: dict[str, Any] = Field(default_factory=dict)
    breakers: dict[str, dict[str, Any]] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def open_circuits(self) -> list[str]:
        return [name for name, b in self.breakers.items() if b.get("state") != "closed"]

    def source_breakdown(self) -> dict[str, int]:
        return {r.source_name: r.count for r in self.source_results}


# Most recent errors kept in SchedulerRunState.errors
MAX_RECORDED_ERRORS = 100


class SchedulerRunState(BaseModel):
    """Mutable scheduler bookkeeping. Owned by one scheduler instance."""

    is_running: bool = False
    last_run_at: Optional[datetime] = None
    total_events: int = 0
    communities_updated: int = 0
    last_known_communities: Optional[int] = None
    errors: list[str] = Field(default_factory=list)
    runs_completed: int = 0
    runs_skipped: int = 0

    def record_errors(self, errors: Iterable[str]) -> None:
        """Append errors, keeping the most recent MAX_RECORDED_ERRORS."""
        self.errors.extend(errors)
        del self.errors[:-MAX_RECORDED_ERRORS]


class ScrapingStatus(BaseModel):
    """Read-only status snapshot."""

    is_running: bool
    total_events: int
    total_communities: int
    last_run_at: Optional[datetime] = None


# Category taxonomy shared by classification, matching and the fallback catalogue
CATEGORIES = {
    "technology": {
        "name": "Technology",
        "keywords": [
            "tech", "software", "programming", "coding", "developer",
            "startup", "innovation", "ai", "digital",
        ],
    },
    "fitness": {
        "name": "Fitness & Health",
        "keywords": [
            "fitness", "workout", "gym", "health", "wellness",
            "exercise", "yoga", "running", "sports",
        ],
    },
    "art": {
        "name": "Arts & Culture",
        "keywords": [
            "art", "creative", "design", "music", "painting",
            "photography", "theater", "dance", "culture",
        ],
    },
    "food": {
        "name": "Food & Drink",
        "keywords": [
            "food", "cooking", "culinary", "restaurant", "dining",
            "chef", "recipe", "wine", "coffee",
        ],
    },
    "business": {
        "name": "Business & Professional",
        "keywords": [
            "business", "entrepreneur", "startup", "networking",
            "professional", "career", "leadership", "finance",
        ],
    },
    "education": {
        "name": "Education",
        "keywords": [
            "education", "learning", "workshop", "seminar",
            "training", "course", "academic", "study",
        ],
    },
    "social": {
        "name": "Social",
        "keywords": [
            "social", "community", "networking", "meetup",
            "friends", "connect", "gathering", "party",
        ],
    },
    "outdoors": {
        "name": "Outdoors & Recreation",
        "keywords": [
            "outdoor", "hiking", "nature", "adventure",
            "camping", "climbing", "biking", "trail",
        ],
    },
    "entertainment": {
        "name": "Entertainment",
        "keywords": [
            "entertainment", "show", "concert", "comedy",
            "movie", "festival", "performance", "music",
        ],
    },
    "lifestyle": {
        "name": "Lifestyle",
        "keywords": [
            "lifestyle", "wellness", "mindfulness", "personal",
            "growth", "self-care", "hobby",
        ],
    },
}


def category_keywords(category: str) -> list[str]:
    """Synonym set for a category; unknown categories expand to themselves."""
    key = (category or "").lower().strip()
    if key in CATEGORIES:
        return list(CATEGORIES[key]["keywords"])
    return [key] if key else []
