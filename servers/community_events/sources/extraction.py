"""
Selector-driven extraction of raw listings from provider HTML.

Markup drifts, so every field has an ordered list of selectors. The first
container selector that matches anything is used; within a container the
first selector that yields non-empty text wins for each field.
"""

import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel

# Generic selectors used when a provider does not declare its own
DEFAULT_SELECTORS: dict[str, list[str]] = {
    "container": [
        ".event", ".event-item", ".event-card",
        "[data-event]", ".listing",
    ],
    "title": [
        "h2", "h3", ".event-title", ".title", "a",
    ],
    "date": [
        "time", "[datetime]", ".date", ".event-date", ".when",
    ],
    "location": [
        ".venue", ".location", ".place",
    ],
    "description": [
        ".description", ".summary", "p",
    ],
    "price": [
        ".price", ".cost", ".ticket-price",
    ],
    "organizer": [
        ".organizer", ".host",
    ],
    "attendees": [
        ".attendee-count", ".attendees", ".going",
    ],
    "link": [
        "a[href]",
    ],
    "image": [
        "img[src]",
    ],
}

_LEADING_NUMBERING = re.compile(r"^\s*\d+\s*[.)\]:-]\s+")
_LEADING_DASHES = re.compile(r"^\s*[-–—•*]+\s*")
_SITE_SUFFIX = re.compile(r"\s+\|\s+[^|]+$")
_PRICE_PATTERN = re.compile(r"\$\s*(\d[\d,]*(?:\.\d{1,2})?)")
_INTEGER_PATTERN = re.compile(r"\d[\d,]*")


class RawListing(BaseModel):
    """Text fields pulled from one listing container, before interpretation."""

    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    organizer: Optional[str] = None
    attendees: Optional[str] = None
    category: Optional[str] = None
    link: Optional[str] = None
    image: Optional[str] = None


def find_containers(soup: BeautifulSoup, selectors: list[str]) -> list[Tag]:
    """Nodes from the first container selector that matches anything."""
    for selector in selectors:
        try:
            elements = soup.select(selector)
        except ValueError:
            continue
        if elements:
            return elements
    return []


def extract_text(element: Tag, selectors: list[str]) -> Optional[str]:
    """First non-empty text among selectors."""
    for selector in selectors:
        try:
            sub_el = element.select_one(selector)
        except ValueError:
            continue
        if sub_el is None:
            continue
        text = " ".join(sub_el.get_text(" ", strip=True).split())
        if text:
            return text
    return None


def extract_attr(element: Tag, selectors: list[str], attr: str) -> Optional[str]:
    """First non-empty attribute value among selectors."""
    for selector in selectors:
        try:
            sub_el = element.select_one(selector)
        except ValueError:
            continue
        if sub_el is not None:
            value = sub_el.get(attr)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def extract_date_text(element: Tag, selectors: list[str]) -> Optional[str]:
    """Date text, preferring a machine-readable datetime attribute."""
    for selector in selectors:
        try:
            sub_el = element.select_one(selector)
        except ValueError:
            continue
        if sub_el is None:
            continue
        value = sub_el.get("datetime")
        if isinstance(value, str) and value.strip():
            return value.strip()
        text = " ".join(sub_el.get_text(" ", strip=True).split())
        if text:
            return text
    return None


def clean_title(text: Optional[str]) -> str:
    """Strip list numbering, leading dashes and trailing ' | Site' suffixes."""
    if not text:
        return ""
    text = " ".join(text.split())
    text = _LEADING_NUMBERING.sub("", text)
    text = _LEADING_DASHES.sub("", text)
    text = _SITE_SUFFIX.sub("", text)
    return text.strip()


def parse_price(text: Optional[str]) -> Optional[float]:
    """'$12.50' -> 12.5, 'Free' -> 0.0, anything else -> None."""
    if not text:
        return None
    if "free" in text.lower():
        return 0.0
    match = _PRICE_PATTERN.search(text)
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


def parse_attendees(text: Optional[str]) -> Optional[int]:
    """First integer in text ('1,204 going' -> 1204)."""
    if not text:
        return None
    match = _INTEGER_PATTERN.search(text)
    if not match:
        return None
    return int(match.group().replace(",", ""))


def absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Join relative links to the provider base URL."""
    if not href:
        return None
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base_url if base_url.endswith("/") else base_url + "/", href.lstrip("/"))


def extract_listings(html: str, selectors: dict[str, list[str]], base_url: str) -> list[RawListing]:
    """
    Pull raw listings out of a provider page.

    Args:
        html: Page source
        selectors: Field name -> ordered selector list. Missing fields fall
            back to DEFAULT_SELECTORS.
        base_url: Provider root for resolving relative links

    Returns:
        One RawListing per container, in page order
    """
    def sel(field: str) -> list[str]:
        return selectors.get(field) or DEFAULT_SELECTORS.get(field, [])

    soup = BeautifulSoup(html, "html.parser")
    listings: list[RawListing] = []

    for element in find_containers(soup, sel("container")):
        title = extract_text(element, sel("title")) or extract_attr(element, ["a[title]"], "title")
        listings.append(RawListing(
            title=title,
            date=extract_date_text(element, sel("date")),
            time=extract_text(element, selectors["time"]) if selectors.get("time") else None,
            location=extract_text(element, sel("location")),
            description=extract_text(element, sel("description")),
            price=extract_text(element, sel("price")),
            organizer=extract_text(element, sel("organizer")),
            attendees=extract_text(element, sel("attendees")),
            category=extract_text(element, selectors["category"]) if selectors.get("category") else None,
            link=absolute_url(extract_attr(element, sel("link"), "href"), base_url),
            image=extract_attr(element, sel("image"), "src"),
        ))

    return listings
