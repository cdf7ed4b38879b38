"""Tests for community relevance scoring."""

from datetime import timedelta

import pytest

from servers.community_events.matching import (
    CommunityMatcher,
    category_match,
    classify_category,
    extract_run_keywords,
    keyword_match,
    name_match,
    score_event,
    source_credibility,
)
from servers.community_events.models import CommunityProfile, SourceIdentifier


class TestRunKeywords:
    """Tests for keyword extraction across communities."""

    def test_category_and_name_words(self, tech_community):
        assert extract_run_keywords([tech_community]) == ["technology", "tech", "innovators"]

    def test_generic_and_short_words_dropped(self):
        community = CommunityProfile(id=3, name="The Art Club of SLC", category="art")
        assert extract_run_keywords([community]) == ["art"]

    def test_ranked_by_frequency(self, tech_community, yoga_community):
        other = CommunityProfile(id=4, name="Yoga Makers", category="fitness")
        keywords = extract_run_keywords([tech_community, yoga_community, other])
        assert keywords[:2] == ["fitness", "yoga"]

    def test_top_k(self, tech_community):
        assert extract_run_keywords([tech_community], top_k=1) == ["technology"]


class TestClassifyCategory:
    """Tests for free-text classification."""

    def test_technology(self):
        assert classify_category("Python programming night for software developers") == "technology"

    def test_whole_words_only(self):
        # "art" inside "startup" must not count
        assert classify_category("startup pitch") == "technology"

    def test_single_hit(self):
        assert classify_category("Weekly Gathering") == "social"

    def test_no_hits(self):
        assert classify_category("zzz qqq") is None
        assert classify_category("") is None


class TestFactors:
    """Tests for individual score factors."""

    def test_category_equal(self, make_event, tech_community):
        assert category_match(make_event(category="technology"), tech_community) == 1.0

    def test_category_partial(self, make_event, tech_community):
        event = make_event("AI Startup Demo Night", category="community")
        assert 0.0 < category_match(event, tech_community) < 1.0

    def test_keyword_fraction(self, make_event, tech_community):
        event = make_event("Tech Talks", description="nothing else")
        assert keyword_match(event, tech_community) == pytest.approx(1 / 3)

    def test_name_fraction(self, make_event, tech_community):
        assert name_match(make_event("Tech Innovators Summit"), tech_community) == 1.0
        assert name_match(make_event("Tech Summit"), tech_community) == 0.5

    def test_short_name_words_still_counted_in_denominator(self, make_event):
        club = CommunityProfile(id=5, name="AI & ML Club", category="technology")
        assert name_match(make_event("Book Club Social"), club) == 0.25
        readers = CommunityProfile(id=6, name="SLC Book Readers", category="education")
        assert name_match(make_event("Book Swap Night"), readers) == pytest.approx(1 / 3)

    def test_source_credibility(self, make_event):
        assert source_credibility(make_event(source=SourceIdentifier.MEETUP)) == 0.95
        assert source_credibility(make_event(source=SourceIdentifier.REDDIT)) == 0.65
        assert source_credibility(make_event(source=SourceIdentifier.SYNTHETIC)) == 0.5


class TestScore:
    """Tests for the weighted score."""

    def test_synthetic_tech_event_scores_above_threshold(self, make_event, tech_community):
        event = make_event(
            "Tech Innovation Meetup in Salt Lake City",
            description="Lightning talks. Topics: technology, tech, innovators.",
            source=SourceIdentifier.SYNTHETIC,
        )
        assert score_event(event, tech_community) == pytest.approx(0.85)

    def test_unrelated_event_scores_low(self, make_event, tech_community):
        event = make_event("Pottery Glaze Night", description="clay", category="art", source=SourceIdentifier.REDDIT)
        assert score_event(event, tech_community) < 0.7

    def test_score_clamped(self, make_event, tech_community):
        weights = {"category": 1.0, "keyword": 1.0, "name": 1.0, "source": 1.0}
        event = make_event("Tech Innovators", description="technology", category="technology")
        assert score_event(event, tech_community, weights) == 1.0


class TestCommunityMatcher:
    """Tests for ranking and capping."""

    def test_threshold_is_inclusive_floor(self, make_event, tech_community):
        matcher = CommunityMatcher()
        strong = make_event("Tech Innovators Night", description="technology")
        weak = make_event("Pottery Glaze Night", category="art")

        result = matcher.match([strong, weak], tech_community, radius_miles=50)

        assert [e.title for e in result.events] == ["Tech Innovators Night"]
        assert all(m.score >= 0.7 for m in result.matches)
        assert result.radius_miles == 50

    def test_ties_broken_by_date(self, make_event, tech_community):
        later = make_event("Tech Innovators Night", days_ahead=5, description="technology")
        sooner = make_event("Tech Innovators Night", days_ahead=2, description="technology")

        ranked = CommunityMatcher().rank([later, sooner], tech_community)
        assert ranked[0].event.date < ranked[1].event.date

    def test_best_first(self, make_event, tech_community):
        good = make_event("Tech Night", description="technology innovators", days_ahead=1)
        best = make_event("Tech Innovators Night", description="technology", days_ahead=9)

        ranked = CommunityMatcher().rank([good, best], tech_community)
        assert ranked[0].event.title == "Tech Innovators Night"
        assert ranked[0].score > ranked[1].score

    def test_capped(self, make_event, tech_community):
        events = [
            make_event("Tech Innovators Night", days_ahead=1 + i, description="technology")
            for i in range(20)
        ]
        ranked = CommunityMatcher(max_events=15).rank(events, tech_community)
        assert len(ranked) == 15
        assert ranked[-1].event.date - ranked[0].event.date == timedelta(days=14)

    def test_from_config(self):
        matcher = CommunityMatcher.from_config({
            "matching": {
                "threshold": 0.5,
                "weights": {"category": 0.25, "keyword": 0.25, "name": 0.25, "source": 0.25},
                "max_events_per_community": 3,
            }
        })
        assert matcher.threshold == 0.5
        assert matcher.max_events == 3
