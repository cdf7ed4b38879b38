"""
Geographic filtering of scraped events.

Distances use the haversine great-circle formula on a spherical Earth
(radius 3959 miles). Events without explicit coordinates are resolved
against a fixed table of major US cities; events that cannot be resolved
are excluded, never guessed.
"""

import math
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from .models import Coordinates, ScrapedEvent

log = structlog.get_logger(__name__)

EARTH_RADIUS_MILES = 3959.0

PRIMARY_RADIUS_MILES = 50.0
SECONDARY_RADIUS_MILES = 100.0

# Approximate city centres; substring-matched against free-text locations
CITY_COORDINATES: dict[str, tuple[float, float]] = {
    "new york": (40.7128, -74.0060),
    "los angeles": (34.0522, -118.2437),
    "chicago": (41.8781, -87.6298),
    "houston": (29.7604, -95.3698),
    "phoenix": (33.4484, -112.0740),
    "philadelphia": (39.9526, -75.1652),
    "san antonio": (29.4241, -98.4936),
    "san diego": (32.7157, -117.1611),
    "dallas": (32.7767, -96.7970),
    "san jose": (37.3382, -121.8863),
    "austin": (30.2672, -97.7431),
    "jacksonville": (30.3322, -81.6557),
    "san francisco": (37.7749, -122.4194),
    "columbus": (39.9612, -82.9988),
    "indianapolis": (39.7684, -86.1581),
    "fort worth": (32.7555, -97.3308),
    "charlotte": (35.2271, -80.8431),
    "seattle": (47.6062, -122.3321),
    "denver": (39.7392, -104.9903),
    "washington": (38.9072, -77.0369),
    "boston": (42.3601, -71.0589),
    "el paso": (31.7619, -106.4850),
    "detroit": (42.3314, -83.0458),
    "nashville": (36.1627, -86.7816),
    "memphis": (35.1495, -90.0490),
    "portland": (45.5152, -122.6784),
    "oklahoma city": (35.4676, -97.5164),
    "las vegas": (36.1699, -115.1398),
    "louisville": (38.2527, -85.7585),
    "baltimore": (39.2904, -76.6122),
    "milwaukee": (43.0389, -87.9065),
    "albuquerque": (35.0844, -106.6504),
    "tucson": (32.2226, -110.9747),
    "fresno": (36.7378, -119.7871),
    "sacramento": (38.5816, -121.4944),
    "kansas city": (39.0997, -94.5786),
    "atlanta": (33.7490, -84.3880),
    "colorado springs": (38.8339, -104.8214),
    "raleigh": (35.7796, -78.6382),
    "omaha": (41.2565, -95.9345),
    "miami": (25.7617, -80.1918),
    "virginia beach": (36.8529, -76.0142),
    "richmond": (37.5407, -77.4360),
    "oakland": (37.8044, -122.2711),
    "minneapolis": (44.9778, -93.2650),
    "tulsa": (36.1540, -95.9928),
    "new orleans": (29.9511, -90.0715),
    "cleveland": (41.4993, -81.6944),
    "tampa": (27.9506, -82.4572),
    "honolulu": (21.3099, -157.8581),
    "saint paul": (44.9537, -93.0900),
    "st. louis": (38.6270, -90.1994),
    "cincinnati": (39.1031, -84.5120),
    "pittsburgh": (40.4406, -79.9959),
    "salt lake city": (40.7608, -111.8910),
    "provo": (40.2338, -111.6585),
    "ogden": (41.2230, -111.9738),
    "boise": (43.6150, -116.2023),
}

# Longest names first so "kansas city" wins over a shorter accidental match
_CITIES_BY_LENGTH = sorted(CITY_COORDINATES, key=len, reverse=True)


class GeoFilterResult(BaseModel):
    """Outcome of a radius filter, including whether the radius was widened."""

    events: list[ScrapedEvent] = Field(default_factory=list)
    radius_miles: float
    attempts: int = 1
    unresolved: int = 0

    @property
    def expanded(self) -> bool:
        return self.attempts > 1


def haversine_miles(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two points in miles."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.lon - a.lon)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def city_coordinates(text: str) -> Optional[Coordinates]:
    """Find a known city named anywhere in text."""
    lowered = (text or "").lower()
    if not lowered:
        return None
    for city in _CITIES_BY_LENGTH:
        if city in lowered:
            lat, lon = CITY_COORDINATES[city]
            return Coordinates(lat=lat, lon=lon)
    return None


def resolve_coordinates(event: ScrapedEvent) -> Optional[Coordinates]:
    """Explicit coordinates first, then the city table."""
    return event.coordinates or city_coordinates(event.location)


def nearest_city_name(point: Coordinates) -> str:
    """Closest table city, title-cased, for building provider queries."""
    best_name = ""
    best_distance = math.inf
    for name, (lat, lon) in CITY_COORDINATES.items():
        distance = haversine_miles(point, Coordinates(lat=lat, lon=lon))
        if distance < best_distance:
            best_name, best_distance = name, distance
    return best_name.title()


def filter_by_radius(
    events: list[ScrapedEvent],
    reference: Coordinates,
    radius_miles: float,
) -> GeoFilterResult:
    """Keep events within radius_miles of reference."""
    kept: list[ScrapedEvent] = []
    unresolved = 0

    for event in events:
        point = resolve_coordinates(event)
        if point is None:
            unresolved += 1
            continue
        if haversine_miles(reference, point) <= radius_miles:
            kept.append(event)

    return GeoFilterResult(events=kept, radius_miles=radius_miles, unresolved=unresolved)


def filter_with_expansion(
    events: list[ScrapedEvent],
    reference: Coordinates,
    primary_radius: float = PRIMARY_RADIUS_MILES,
    secondary_radius: float = SECONDARY_RADIUS_MILES,
) -> GeoFilterResult:
    """
    Filter at the primary radius, widening exactly once if nothing is left.

    Args:
        events: Candidate events
        reference: Centre point
        primary_radius: First radius to try
        secondary_radius: Single fallback radius

    Returns:
        GeoFilterResult with attempts == 2 when the secondary radius was used
    """
    result = filter_by_radius(events, reference, primary_radius)
    if result.events or not events:
        return result

    log.info(
        "geo_radius_expanded",
        primary_radius=primary_radius,
        secondary_radius=secondary_radius,
        candidates=len(events),
    )
    widened = filter_by_radius(events, reference, secondary_radius)
    widened.attempts = 2
    return widened
