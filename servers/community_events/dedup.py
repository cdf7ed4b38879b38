"""
Two-phase deduplication for scraped events.

Phase 1 (exact): events sharing a signature of normalized title, calendar
day and normalized location collapse to the best candidate.

Phase 2 (fuzzy): remaining events merge when titles are more than 80%
similar (normalized Levenshtein), fall on the same calendar day and
locations are more than 60% similar.
"""

import re

from rapidfuzz.distance import Levenshtein

from .models import DedupeResult, DuplicateMatch, ScrapedEvent, SourceIdentifier

# Thresholds are strict: similarity must exceed them
TITLE_THRESHOLD = 0.8
LOCATION_THRESHOLD = 0.6

# Which source to trust when two listings describe the same event
SOURCE_RELIABILITY = {
    SourceIdentifier.MEETUP: 7,
    SourceIdentifier.EVENTBRITE: 6,
    SourceIdentifier.TICKETMASTER: 5,
    SourceIdentifier.SEATGEEK: 4,
    SourceIdentifier.BANDSINTOWN: 4,
    SourceIdentifier.GOOGLE_EVENTS: 3,
    SourceIdentifier.REDDIT: 2,
    SourceIdentifier.SYNTHETIC: 0,
}

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_title(text: str) -> str:
    """Lowercase, spell out '&', strip punctuation, collapse whitespace."""
    if not text:
        return ""
    text = text.lower().replace("&", " and ")
    text = _PUNCTUATION.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_location(text: str) -> str:
    """Normalize a free-text location for comparison."""
    if not text:
        return ""
    text = text.lower()
    text = _PUNCTUATION.sub(" ", text)
    text = re.sub(r"\s+", " ", text).strip()

    if text.startswith("the "):
        text = text[4:]
    return text


def event_signature(event: ScrapedEvent) -> tuple[str, str, str]:
    """Exact-phase key: (title, day, location)."""
    return (
        normalize_title(event.title),
        event.date.date().isoformat(),
        normalize_location(event.location),
    )


def title_similarity(e1: ScrapedEvent, e2: ScrapedEvent) -> float:
    """Normalized Levenshtein similarity of normalized titles (0-1)."""
    t1 = normalize_title(e1.title)
    t2 = normalize_title(e2.title)
    if not t1 or not t2:
        return 0.0
    return Levenshtein.normalized_similarity(t1, t2)


def location_similarity(e1: ScrapedEvent, e2: ScrapedEvent) -> float:
    """Normalized Levenshtein similarity of locations; two blanks count as equal."""
    return Levenshtein.normalized_similarity(
        normalize_location(e1.location),
        normalize_location(e2.location),
    )


def is_duplicate(
    e1: ScrapedEvent,
    e2: ScrapedEvent,
    title_threshold: float = TITLE_THRESHOLD,
    location_threshold: float = LOCATION_THRESHOLD,
) -> tuple[bool, float, float]:
    """
    Fuzzy duplicate test.

    Returns: (is_duplicate, title_similarity, location_similarity)
    """
    if e1.date.date() != e2.date.date():
        return (False, 0.0, 0.0)

    title_sim = title_similarity(e1, e2)
    if title_sim <= title_threshold:
        return (False, title_sim, 0.0)

    location_sim = location_similarity(e1, e2)
    return (location_sim > location_threshold, title_sim, location_sim)


def _richness(event: ScrapedEvent) -> tuple[int, int]:
    return (len(event.description), 1 if event.organizer_name else 0)


def is_better(candidate: ScrapedEvent, current: ScrapedEvent) -> bool:
    """
    Whether candidate should replace current as the kept record.

    Priority:
    1. More reliable source
    2. Richer metadata (longer description, then organizer present)
    """
    candidate_rank = SOURCE_RELIABILITY.get(candidate.source, 1)
    current_rank = SOURCE_RELIABILITY.get(current.source, 1)
    if candidate_rank != current_rank:
        return candidate_rank > current_rank
    return _richness(candidate) > _richness(current)


def merge_group(group: list[ScrapedEvent]) -> ScrapedEvent:
    """
    Merge fuzzy duplicates into a single record.

    Keeps the longest title and description, the earliest date, any
    non-zero price, summed attendee counts and the organizer of the most
    reliable source. Other fields come from the most reliable listing.
    """
    primary = group[0]
    for other in group[1:]:
        if is_better(other, primary):
            primary = other

    counts = [e.attendee_count for e in group if e.attendee_count]
    total_attendees = sum(counts) if counts else None

    price = next((e.price for e in group if e.price), primary.price)

    organizer = primary.organizer_name
    if not organizer:
        for event in sorted(group, key=lambda e: SOURCE_RELIABILITY.get(e.source, 1), reverse=True):
            if event.organizer_name:
                organizer = event.organizer_name
                break

    return primary.model_copy(update={
        "title": max((e.title for e in group), key=len),
        "description": max((e.description for e in group), key=len),
        "date": min(e.date for e in group),
        "price": price,
        "attendee_count": total_attendees,
        "organizer_name": organizer,
    })


def _exact_phase(events: list[ScrapedEvent]) -> tuple[list[ScrapedEvent], list[DuplicateMatch]]:
    kept: dict[tuple[str, str, str], ScrapedEvent] = {}
    audit_trail: list[DuplicateMatch] = []

    for event in events:
        key = event_signature(event)
        current = kept.get(key)
        if current is None:
            kept[key] = event
            continue

        winner, loser = (event, current) if is_better(event, current) else (current, event)
        kept[key] = winner
        audit_trail.append(DuplicateMatch(
            kept_title=winner.title,
            merged_title=loser.title,
            kept_source=winner.source,
            merged_source=loser.source,
            phase="exact",
            reason=f"Dropped '{loser.title}' ({loser.source.value}) as exact copy of "
                   f"'{winner.title}' ({winner.source.value})",
        ))

    return list(kept.values()), audit_trail


def _fuzzy_phase(
    events: list[ScrapedEvent],
    title_threshold: float,
    location_threshold: float,
) -> tuple[list[ScrapedEvent], list[DuplicateMatch]]:
    merged_indices: set[int] = set()
    result_events: list[ScrapedEvent] = []
    audit_trail: list[DuplicateMatch] = []

    for i, event in enumerate(events):
        if i in merged_indices:
            continue

        group = [event]
        for j in range(i + 1, len(events)):
            if j in merged_indices:
                continue
            other = events[j]
            duplicate, title_sim, location_sim = is_duplicate(
                event, other, title_threshold, location_threshold
            )
            if not duplicate:
                continue
            merged_indices.add(j)
            group.append(other)
            audit_trail.append(DuplicateMatch(
                kept_title=event.title,
                merged_title=other.title,
                kept_source=event.source,
                merged_source=other.source,
                phase="fuzzy",
                title_similarity=title_sim,
                location_similarity=location_sim,
                reason=f"Merged '{other.title}' ({other.source.value}) into "
                       f"'{event.title}' ({event.source.value})",
            ))

        result_events.append(merge_group(group) if len(group) > 1 else event)

    return result_events, audit_trail


def deduplicate(
    events: list[ScrapedEvent],
    title_threshold: float = TITLE_THRESHOLD,
    location_threshold: float = LOCATION_THRESHOLD,
) -> DedupeResult:
    """
    Deduplicate events from all adapters.

    Args:
        events: Concatenated adapter output
        title_threshold: Fuzzy title similarity that must be exceeded
        location_threshold: Fuzzy location similarity that must be exceeded

    Returns:
        DedupeResult with deduplicated events and audit trail
    """
    if not events:
        return DedupeResult(events=[], original_count=0, duplicates_removed=0)

    exact, exact_trail = _exact_phase(events)
    result_events, fuzzy_trail = _fuzzy_phase(exact, title_threshold, location_threshold)

    return DedupeResult(
        events=result_events,
        original_count=len(events),
        duplicates_removed=len(events) - len(result_events),
        audit_trail=exact_trail + fuzzy_trail,
    )


def format_audit_summary(result: DedupeResult) -> str:
    """Format audit trail as human-readable summary."""
    if not result.audit_trail:
        return "No duplicates found."

    lines = [
        "Deduplication Summary:",
        f"  Original events: {result.original_count}",
        f"  Duplicates removed: {result.duplicates_removed}",
        f"  Final events: {len(result.events)}",
        f"  Dedup rate: {result.dedup_rate:.1f}%",
        "",
        "Merged events:",
    ]

    for match in result.audit_trail:
        if match.phase == "fuzzy":
            lines.append(f"  - {match.reason} (title similarity: {match.title_similarity:.0%})")
        else:
            lines.append(f"  - {match.reason}")

    return "\n".join(lines)
