"""
Layered date parsing for scraped event listings.

Layers, tried in order:
1. Provider-specific strptime formats
2. ISO-8601 ("2025-01-02T19:00:00", with or without offset)
3. Relative terms ("today", "tonight", "tomorrow", "this weekend")
4. Long-form listings ("Mon, Jan 2, 2025 7:00 PM", "Dec 22 • 7:00 PM")

All results are naive local datetimes comparable with the injected clock.
"""

import re
from datetime import datetime, timedelta
from typing import Optional, Sequence

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

# Default hour for relative terms without an explicit time
DEFAULT_EVENT_HOUR = 19
WEEKEND_DEFAULT_HOUR = 12

_TIME_PATTERN = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
_ISO_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?(?:Z|[+-]\d{2}:?\d{2})?$")

_MONTH = r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?"
_WEEKDAY = r"\b(?:mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun)[a-z]*\.?"
_CLOCK = r"\d{1,2}(?::\d{2})?\s*(?:am|pm)"

# Long-form patterns, most specific first. The flag says whether a year is present.
LONG_FORM_PATTERNS: list[tuple[re.Pattern, bool]] = [
    # "Sun, Dec 22, 2024 7:00 PM"
    (re.compile(rf"{_WEEKDAY},?\s+{_MONTH}\s+\d{{1,2}},?\s+\d{{4}}(?:\s*(?:at|•|·|-)?\s*{_CLOCK})?", re.I), True),
    # "December 22, 2024 at 7:00 PM"
    (re.compile(rf"{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}(?:\s*(?:at|•|·|-)?\s*{_CLOCK})?", re.I), True),
    # "1/15/2025 8:00 PM"
    (re.compile(rf"\d{{1,2}}/\d{{1,2}}/\d{{4}}(?:\s*(?:at|•|·|-)?\s*{_CLOCK})?", re.I), True),
    # "Sat, Dec 21 • 7:00 PM"
    (re.compile(rf"{_WEEKDAY},?\s+{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:\s*(?:at|•|·|-)?\s*{_CLOCK})?", re.I), False),
    # "Dec 22 • 7:00 PM"
    (re.compile(rf"{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:\s*(?:at|•|·|-)?\s*{_CLOCK})?", re.I), False),
]


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _extract_time(text: str) -> Optional[tuple[int, int]]:
    match = _TIME_PATTERN.search(text)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    if hour > 12 or minute > 59:
        return None
    meridiem = match.group(3).lower()
    if meridiem == "pm" and hour != 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    return hour, minute


def parse_with_formats(text: str, formats: Sequence[str]) -> Optional[datetime]:
    """Try provider-declared strptime formats."""
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_iso(text: str) -> Optional[datetime]:
    """Parse ISO-8601 timestamps, including a trailing Z."""
    if not _ISO_PATTERN.match(text):
        return None
    try:
        return _to_local_naive(date_parser.isoparse(text))
    except (ValueError, OverflowError):
        return None


def parse_relative(text: str, now: datetime) -> Optional[datetime]:
    """Resolve "today", "tonight", "tomorrow" and "this weekend" against now."""
    lowered = text.lower()
    time_of_day = _extract_time(lowered)

    if "tomorrow" in lowered:
        day = now + timedelta(days=1)
        default_hour = DEFAULT_EVENT_HOUR
    elif "today" in lowered or "tonight" in lowered:
        day = now
        default_hour = DEFAULT_EVENT_HOUR
    elif "this weekend" in lowered:
        # Saturday of the current week; on Sunday the weekend is today
        days_ahead = (5 - now.weekday()) % 7
        if now.weekday() == 6:
            days_ahead = 0
        day = now + timedelta(days=days_ahead)
        default_hour = WEEKEND_DEFAULT_HOUR
    else:
        return None

    hour, minute = time_of_day or (default_hour, 0)
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def parse_long_form(text: str, now: datetime) -> Optional[datetime]:
    """Parse human listing formats; a missing year means the next occurrence."""
    for pattern, has_year in LONG_FORM_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        fragment = re.sub(r"\s+(?:at|•|·|-)\s+|\s*[•·]\s*", " ", match.group(0))
        fragment = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", fragment, flags=re.I)
        default = now.replace(hour=0, minute=0, second=0, microsecond=0)
        try:
            parsed = date_parser.parse(fragment, default=default)
        except (ValueError, OverflowError):
            continue
        parsed = _to_local_naive(parsed)
        if not has_year and parsed.date() < now.date():
            parsed = parsed + relativedelta(years=1)
        return parsed
    return None


def parse_event_date(
    text: Optional[str],
    now: datetime,
    formats: Sequence[str] = (),
) -> Optional[datetime]:
    """
    Parse a scraped date string.

    Args:
        text: Raw date text or attribute value
        now: Current time from the pipeline clock
        formats: Provider-specific strptime formats, tried first

    Returns:
        Parsed naive datetime, or None when no layer understands the text
    """
    if not text:
        return None
    text = " ".join(text.split())
    if not text:
        return None

    return (
        parse_with_formats(text, formats)
        or parse_iso(text)
        or parse_relative(text, now)
        or parse_long_form(text, now)
    )


def is_reasonable_future(value: datetime, now: datetime, max_days_ahead: int = 365) -> bool:
    """Strictly after now and no further out than max_days_ahead."""
    return now < value <= now + timedelta(days=max_days_ahead)
