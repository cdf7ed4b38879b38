"""
Relevance scoring of events against community profiles.

score = 0.4 * category + 0.3 * keyword + 0.2 * name + 0.1 * source

Each factor is in [0, 1]. Only pairs at or above the threshold are kept,
best first, ties broken by earliest date, capped per community.
"""

import re
from collections import Counter
from typing import Iterable, Optional

import structlog

from .models import (
    CATEGORIES,
    CommunityMatch,
    CommunityProfile,
    ScoredEvent,
    ScrapedEvent,
    SourceIdentifier,
    category_keywords,
    clean_tokens,
)

log = structlog.get_logger(__name__)

DEFAULT_WEIGHTS = {
    "category": 0.4,
    "keyword": 0.3,
    "name": 0.2,
    "source": 0.1,
}

MATCH_THRESHOLD = 0.7
MAX_EVENTS_PER_COMMUNITY = 15
MAX_RUN_KEYWORDS = 10

SOURCE_CREDIBILITY = {
    SourceIdentifier.MEETUP: 0.95,
    SourceIdentifier.EVENTBRITE: 0.90,
    SourceIdentifier.TICKETMASTER: 0.85,
    SourceIdentifier.SEATGEEK: 0.80,
    SourceIdentifier.BANDSINTOWN: 0.80,
    SourceIdentifier.GOOGLE_EVENTS: 0.75,
    SourceIdentifier.REDDIT: 0.65,
}
DEFAULT_CREDIBILITY = 0.5

# Words too generic to say anything about what a community does
GENERIC_NAME_WORDS = frozenset({"club", "group", "community", "forum", "network"})

_WORD_PATTERN = re.compile(r"[a-z0-9]+")


def extract_run_keywords(
    communities: Iterable[CommunityProfile],
    top_k: int = MAX_RUN_KEYWORDS,
) -> list[str]:
    """
    Keywords for one aggregation pass.

    Each community contributes its category plus the meaningful words of
    its name. Keywords are ranked by how many times they were contributed,
    then by first appearance.
    """
    counts: Counter[str] = Counter()
    first_seen: dict[str, int] = {}

    def add(word: str) -> None:
        counts[word] += 1
        first_seen.setdefault(word, len(first_seen))

    for community in communities:
        category = (community.category or "").lower().strip()
        if category:
            add(category)
        for word in clean_tokens(community.name):
            if len(word) > 3 and word not in GENERIC_NAME_WORDS:
                add(word)

    ranked = sorted(counts, key=lambda w: (-counts[w], first_seen[w]))
    return ranked[:top_k]


def classify_category(text: str) -> Optional[str]:
    """Best taxonomy category for free text, by whole-word keyword hits."""
    words = set(_WORD_PATTERN.findall((text or "").lower()))
    if not words:
        return None

    best: Optional[str] = None
    best_hits = 0
    for key, info in CATEGORIES.items():
        hits = sum(1 for keyword in info["keywords"] if keyword in words)
        if hits > best_hits:
            best, best_hits = key, hits
    return best


def category_match(event: ScrapedEvent, community: CommunityProfile) -> float:
    event_category = (event.category or "").lower()
    community_category = (community.category or "").lower()
    if event_category and event_category == community_category:
        return 1.0

    wanted = category_keywords(community_category)
    if not wanted:
        return 0.0

    offered = set(category_keywords(event_category))
    name = community.name.lower()
    title = event.title.lower()

    hits = [k for k in wanted if k in offered or k in name or k in title]
    return len(hits) / len(wanted)


def keyword_match(event: ScrapedEvent, community: CommunityProfile) -> float:
    keywords = community.keywords
    if not keywords:
        return 0.0
    text = f"{event.title} {event.description}".lower()
    return sum(1 for k in keywords if k in text) / len(keywords)


def name_match(event: ScrapedEvent, community: CommunityProfile) -> float:
    """Share of all name words found in the title. Words of 3 letters or fewer never count as hits."""
    words = community.name.lower().split()
    if not words:
        return 0.0
    title = event.title.lower()
    return sum(1 for w in words if len(w) > 3 and w in title) / len(words)


def source_credibility(event: ScrapedEvent) -> float:
    return SOURCE_CREDIBILITY.get(event.source, DEFAULT_CREDIBILITY)


def score_event(
    event: ScrapedEvent,
    community: CommunityProfile,
    weights: Optional[dict[str, float]] = None,
) -> float:
    """Weighted relevance score in [0, 1]."""
    w = weights or DEFAULT_WEIGHTS
    score = (
        w["category"] * category_match(event, community)
        + w["keyword"] * keyword_match(event, community)
        + w["name"] * name_match(event, community)
        + w["source"] * source_credibility(event)
    )
    return max(0.0, min(score, 1.0))


class CommunityMatcher:
    """Score candidate events for each community and keep the best."""

    def __init__(
        self,
        threshold: float = MATCH_THRESHOLD,
        weights: Optional[dict[str, float]] = None,
        max_events: int = MAX_EVENTS_PER_COMMUNITY,
    ):
        self.threshold = threshold
        self.weights = dict(weights or DEFAULT_WEIGHTS)
        self.max_events = max_events

    def rank(self, events: list[ScrapedEvent], community: CommunityProfile) -> list[ScoredEvent]:
        """Scored events above threshold, best first, earliest first on ties."""
        scored = []
        for event in events:
            score = score_event(event, community, self.weights)
            if score >= self.threshold:
                scored.append(ScoredEvent(event=event, score=score))

        scored.sort(key=lambda s: (-s.score, s.event.date))
        return scored[: self.max_events]

    def match(
        self,
        events: list[ScrapedEvent],
        community: CommunityProfile,
        radius_miles: Optional[float] = None,
    ) -> CommunityMatch:
        matches = self.rank(events, community)
        log.debug(
            "community_matched",
            community_id=community.id,
            candidates=len(events),
            matched=len(matches),
        )
        return CommunityMatch(
            community_id=community.id,
            matches=matches,
            radius_miles=radius_miles,
        )

    @classmethod
    def from_config(cls, config: dict) -> "CommunityMatcher":
        matching = config["matching"]
        return cls(
            threshold=matching["threshold"],
            weights=matching["weights"],
            max_events=matching["max_events_per_community"],
        )
