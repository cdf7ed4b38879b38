"""
Synthetic events for runs where every provider came back empty.

Events are built from a fixed, category-tagged template catalogue and are
always tagged SourceIdentifier.SYNTHETIC. Dates are pseudo-random but
deterministic for a given (template, location, day), so repeated runs on
the same day produce the same events and persistence stays idempotent.
"""

import hashlib
import random
from datetime import timedelta
from typing import Iterable, Optional

import structlog

from ..clock import Clock, system_clock
from ..models import Coordinates, ScrapedEvent, SourceIdentifier
from ..template_engine import TemplateEngine, default_engine

logger = structlog.get_logger()

MIN_DAYS_AHEAD = 1
MAX_DAYS_AHEAD = 30
BUSINESS_HOURS = (9, 16)  # Last start slot is 16:30

_TOPICS = "{% if keywords %} Topics: {{ keywords | join(', ') }}.{% endif %}"

TEMPLATE_CATALOGUE: list[dict] = [
    {
        "key": "tech-meetup",
        "category": "technology",
        "title": "Tech Innovation Meetup in {{ location }}",
        "description": "Local developers and founders share lightning talks on software, "
                       "AI and startup culture, followed by open networking." + _TOPICS,
        "venue": "{{ location }} Tech Hub",
        "organizer": "Local Tech Community",
        "price": 0.0,
    },
    {
        "key": "arts-workshop",
        "category": "art",
        "title": "Creative Arts Workshop",
        "description": "Hands-on session for artists, designers and makers. Learn new "
                       "techniques and connect with fellow creatives." + _TOPICS,
        "venue": "{{ location }} Arts Center",
        "organizer": "Creative Collective",
        "price": 25.0,
    },
    {
        "key": "fitness-bootcamp",
        "category": "fitness",
        "title": "Community Fitness Bootcamp",
        "description": "An all-levels outdoor workout with stretching, strength and "
                       "cardio intervals led by local trainers." + _TOPICS,
        "venue": "{{ location }} Community Park",
        "organizer": "Active Neighbors",
        "price": 10.0,
    },
    {
        "key": "food-tasting",
        "category": "food",
        "title": "Local Food & Coffee Tasting",
        "description": "Sample dishes from neighborhood chefs and roasters and meet "
                       "other food lovers." + _TOPICS,
        "venue": "{{ location }} Public Market",
        "organizer": "Neighborhood Food Circle",
        "price": 15.0,
    },
    {
        "key": "business-networking",
        "category": "business",
        "title": "Entrepreneurship Networking Night",
        "description": "Connect with entrepreneurs, share ideas and hear from business "
                       "leaders in the local startup ecosystem." + _TOPICS,
        "venue": "{{ location }} Business District",
        "organizer": "Founders Roundtable",
        "price": 20.0,
    },
    {
        "key": "education-seminar",
        "category": "education",
        "title": "Open Learning Seminar",
        "description": "A free evening seminar and workshop for lifelong learners, "
                       "with a short course preview and Q&A." + _TOPICS,
        "venue": "{{ location }} Public Library",
        "organizer": "Lifelong Learners",
        "price": 0.0,
    },
    {
        "key": "social-mixer",
        "category": "social",
        "title": "Neighborhood Social Mixer",
        "description": "A relaxed gathering to meet new friends and connect with "
                       "people nearby." + _TOPICS,
        "venue": "{{ location }} Community Center",
        "organizer": "Neighborhood Social Club",
        "price": 0.0,
    },
    {
        "key": "outdoor-hike",
        "category": "outdoors",
        "title": "Outdoor Adventure Group Hike",
        "description": "A scenic group hike on local trails with fellow outdoor "
                       "enthusiasts. All skill levels welcome." + _TOPICS,
        "venue": "{{ location }} Nature Trails",
        "organizer": "Adventure Seekers",
        "price": 0.0,
    },
    {
        "key": "comedy-show",
        "category": "entertainment",
        "title": "Local Comedy Showcase",
        "description": "Stand-up comedy and live performance from up-and-coming "
                       "local acts." + _TOPICS,
        "venue": "{{ location }} Theater",
        "organizer": "Open Stage Collective",
        "price": 12.0,
    },
    {
        "key": "mindfulness-circle",
        "category": "lifestyle",
        "title": "Wellness & Mindfulness Circle",
        "description": "A weekly gathering for meditation, personal growth and "
                       "self-care practices." + _TOPICS,
        "venue": "{{ location }} Wellness Studio",
        "organizer": "Mindful Living Circle",
        "price": 15.0,
    },
]


def _seeded_random(*parts: str) -> random.Random:
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return random.Random(int(digest[:16], 16))


class FallbackGenerator:
    """Build synthetic events from the template catalogue."""

    def __init__(
        self,
        catalogue: Optional[list[dict]] = None,
        clock: Clock = system_clock,
        engine: TemplateEngine = default_engine,
    ):
        self.catalogue = catalogue if catalogue is not None else TEMPLATE_CATALOGUE
        self.clock = clock
        self.engine = engine

    def select_templates(self, categories: Optional[Iterable[str]]) -> list[dict]:
        """Templates for the requested categories; all of them if none requested."""
        wanted = {c.lower().strip() for c in (categories or []) if c}
        if not wanted:
            return list(self.catalogue)
        return [t for t in self.catalogue if t["category"] in wanted]

    def generate(
        self,
        location_name: str,
        keywords: list[str],
        categories: Optional[Iterable[str]] = None,
        reference: Optional[Coordinates] = None,
    ) -> list[ScrapedEvent]:
        """
        Generate synthetic events.

        Args:
            location_name: City name substituted into titles and venues
            keywords: Run keywords substituted into descriptions
            categories: Community categories to cover (None means all)
            reference: Coordinates stamped onto each event

        Returns:
            One event per selected template
        """
        now = self.clock()
        context = {"location": location_name, "keywords": keywords}
        events: list[ScrapedEvent] = []

        for template in self.select_templates(categories):
            rng = _seeded_random(template["key"], location_name.lower(), now.date().isoformat())
            day = now + timedelta(days=rng.randint(MIN_DAYS_AHEAD, MAX_DAYS_AHEAD))
            start = day.replace(
                hour=rng.randint(*BUSINESS_HOURS),
                minute=rng.choice((0, 30)),
                second=0,
                microsecond=0,
            )

            events.append(ScrapedEvent(
                title=self.engine.render_string(template["title"], context),
                description=self.engine.render_string(template["description"], context),
                date=start,
                location=self.engine.render_string(template["venue"], context),
                latitude=reference.lat if reference else None,
                longitude=reference.lon if reference else None,
                category=template["category"],
                tags=["synthetic"],
                source=SourceIdentifier.SYNTHETIC,
                organizer_name=template["organizer"],
                price=template["price"],
            ))

        logger.info(
            "fallback_events_generated",
            location=location_name,
            categories=sorted({e.category for e in events}),
            count=len(events),
        )
        return events
