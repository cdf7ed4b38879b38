"""
Reddit local-subreddit search.

Posts in a city's subreddits that look like event announcements (an event
word plus a time or date hint) become candidates. Reddit requires a
descriptive User-Agent per client; it is read from REDDIT_USER_AGENT and
doubles as this provider's credential.
"""

import re
from typing import Optional

import httpx
import structlog

from ..clock import Clock, system_clock
from ..config.settings import get_credential
from ..dates import parse_event_date
from ..matching import classify_category
from ..models import ScrapedEvent, ScrapeSourceResult, SourceIdentifier
from ..template_engine import TemplateEngine, default_engine
from .adapter import RateLimiter, SourceAdapter, rejection_reason
from .extraction import clean_title
from .url_guard import check_url

logger = structlog.get_logger()

REDDIT_BASE = "https://www.reddit.com"
CREDENTIAL_ENV = "REDDIT_USER_AGENT"
SEARCH_TEMPLATE = (
    "https://www.reddit.com/r/{{ subreddit }}/search.json"
    "?q={{ query | urlencode_plus }}&restrict_sr=1&sort=new&limit=25"
)
MAX_KEYWORDS = 3
MAX_EVENTS = 15
DESCRIPTION_LENGTH = 200

EVENT_WORDS = [
    "event", "meetup", "gathering", "concert", "show", "festival",
    "workshop", "class", "seminar", "conference", "party", "celebration",
    "happening", "tonight", "this weekend", "saturday", "sunday",
]

_DATE_HINTS = [
    re.compile(r"\d{1,2}/\d{1,2}/\d{4}"),
    re.compile(
        r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2}(?:st|nd|rd|th)?"
        r"(?:,?\s+\d{4})?(?:\s*(?:at|@|-)?\s*\d{1,2}(?::\d{2})?\s*(?:am|pm))?",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:today|tonight|tomorrow|this weekend)\b(?:\s*(?:at|@)?\s*\d{1,2}(?::\d{2})?\s*(?:am|pm))?",
        re.IGNORECASE,
    ),
]


def local_subreddits(location_name: str) -> list[str]:
    """Candidate subreddits for a city ("Salt Lake City" -> saltlakecity, ...)."""
    city = re.sub(r"[^a-z]", "", location_name.split(",")[0].lower())
    if not city:
        return []
    return [city, f"{city}events"]


def looks_like_event(title: str, body: str) -> bool:
    text = f"{title} {body}".lower()
    has_event_word = any(word in text for word in EVENT_WORDS)
    has_time_hint = bool(re.search(r"\d\s*(?:am|pm)\b|\d:\d{2}|\bdate\b", text))
    return has_event_word and has_time_hint


def find_date_text(text: str) -> Optional[str]:
    for pattern in _DATE_HINTS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


class RedditAdapter(SourceAdapter):
    """Search local subreddits for event announcements."""

    name = SourceIdentifier.REDDIT.value

    def __init__(
        self,
        request_delay: float = 2.0,
        timeout: float = 30.0,
        clock: Clock = system_clock,
        engine: TemplateEngine = default_engine,
    ):
        super().__init__(clock)
        self.request_delay = request_delay
        self.timeout = timeout
        self.engine = engine

    async def collect(
        self,
        location_name: str,
        keywords: list[str],
        radius_miles: float,
    ) -> ScrapeSourceResult:
        user_agent = get_credential(CREDENTIAL_ENV)
        if not user_agent:
            return ScrapeSourceResult(
                source_name=self.name,
                status="skipped",
                error=f"{CREDENTIAL_ENV} not configured",
            )

        query = " OR ".join([k for k in keywords if k][:MAX_KEYWORDS]) or "events"
        limiter = RateLimiter(self.request_delay)
        events: list[ScrapedEvent] = []
        discarded = 0

        async with httpx.AsyncClient(timeout=self.timeout, headers={"User-Agent": user_agent}) as client:
            for subreddit in local_subreddits(location_name):
                url = check_url(
                    self.engine.render_string(SEARCH_TEMPLATE, {"subreddit": subreddit, "query": query}),
                    ["reddit.com"],
                )
                await limiter.wait()
                try:
                    response = await client.get(url, follow_redirects=True)
                    response.raise_for_status()
                    data = response.json()
                except (httpx.HTTPError, ValueError) as e:
                    # Missing or private subreddits are common; try the next one
                    logger.debug("subreddit_unavailable", subreddit=subreddit, error=str(e))
                    continue

                for child in (data.get("data") or {}).get("children", []):
                    post = child.get("data") or {}
                    if not looks_like_event(post.get("title", ""), post.get("selftext", "")):
                        continue
                    event = self.parse_post(post, subreddit, location_name)
                    if event is None:
                        discarded += 1
                        continue
                    events.append(event)

        return ScrapeSourceResult(
            source_name=self.name,
            events=events[:MAX_EVENTS],
            discarded=discarded,
        )

    def parse_post(self, post: dict, subreddit: str, location_name: str) -> Optional[ScrapedEvent]:
        now = self.clock()
        title = clean_title(post.get("title", ""))
        body = post.get("selftext", "") or ""

        date = parse_event_date(find_date_text(f"{title} {body}"), now)
        if rejection_reason(title, date, now):
            return None

        description = body[:DESCRIPTION_LENGTH] + ("..." if len(body) > DESCRIPTION_LENGTH else "")
        return ScrapedEvent(
            title=title,
            description=description,
            date=date,
            location=location_name,
            category=classify_category(f"{title} {body}") or "community",
            source=SourceIdentifier.REDDIT,
            source_url=f"{REDDIT_BASE}{post.get('permalink', '')}",
            organizer_name=f"r/{subreddit}",
            attendee_count=post.get("ups") or None,
        )
