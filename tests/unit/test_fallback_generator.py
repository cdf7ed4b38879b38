"""Tests for synthetic fallback events."""

from datetime import timedelta

from servers.community_events.clock import FrozenClock
from servers.community_events.models import CATEGORIES, Coordinates, SourceIdentifier
from servers.community_events.sources.fallback_generator import (
    TEMPLATE_CATALOGUE,
    FallbackGenerator,
)


class TestCatalogue:
    """Tests for the template catalogue."""

    def test_one_template_per_category(self):
        assert sorted(t["category"] for t in TEMPLATE_CATALOGUE) == sorted(CATEGORIES)

    def test_keys_unique(self):
        keys = [t["key"] for t in TEMPLATE_CATALOGUE]
        assert len(keys) == len(set(keys))


class TestGenerate:
    """Tests for FallbackGenerator.generate()."""

    def test_all_categories_by_default(self, clock):
        events = FallbackGenerator(clock=clock).generate("Salt Lake City", ["tech"])
        assert len(events) == len(TEMPLATE_CATALOGUE)

    def test_selected_categories_only(self, clock):
        events = FallbackGenerator(clock=clock).generate(
            "Salt Lake City", ["tech"], categories={"technology"}
        )
        assert len(events) == 1
        assert events[0].title == "Tech Innovation Meetup in Salt Lake City"
        assert events[0].category == "technology"

    def test_unknown_category_yields_nothing(self, clock):
        assert FallbackGenerator(clock=clock).generate("Boise", [], categories={"knitting"}) == []

    def test_marked_synthetic(self, clock):
        for event in FallbackGenerator(clock=clock).generate("Boise", []):
            assert event.source == SourceIdentifier.SYNTHETIC
            assert event.tags == ["synthetic"]
            assert event.is_synthetic

    def test_dates_in_window_and_business_hours(self, clock, now):
        for event in FallbackGenerator(clock=clock).generate("Salt Lake City", ["tech"]):
            assert now + timedelta(days=1) <= event.date.replace(hour=now.hour, minute=now.minute)
            assert event.date <= now + timedelta(days=31)
            assert 9 <= event.date.hour <= 16
            assert event.date.minute in (0, 30)

    def test_keywords_in_description(self, clock):
        event = FallbackGenerator(clock=clock).generate(
            "Salt Lake City", ["technology", "tech"], categories=["technology"]
        )[0]
        assert event.description.endswith("Topics: technology, tech.")

    def test_no_keywords_no_topics(self, clock):
        event = FallbackGenerator(clock=clock).generate("Boise", [], categories=["food"])[0]
        assert "Topics" not in event.description

    def test_reference_coordinates_stamped(self, clock, salt_lake_city):
        events = FallbackGenerator(clock=clock).generate("Salt Lake City", [], reference=salt_lake_city)
        assert all(e.coordinates == Coordinates(lat=40.7608, lon=-111.8910) for e in events)

    def test_deterministic_within_a_day(self, now):
        first = FallbackGenerator(clock=FrozenClock(now)).generate("Boise", ["x"])
        again = FallbackGenerator(clock=FrozenClock(now + timedelta(hours=3))).generate("Boise", ["x"])
        assert [e.date for e in first] == [e.date for e in again]

    def test_varies_by_location(self, clock):
        slc = FallbackGenerator(clock=clock).generate("Salt Lake City", [])
        boise = FallbackGenerator(clock=clock).generate("Boise", [])
        assert [e.date for e in slc] != [e.date for e in boise]
