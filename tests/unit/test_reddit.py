"""Tests for the Reddit local-subreddit adapter."""

import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from servers.community_events.models import SourceIdentifier
from servers.community_events.sources.reddit import (
    RedditAdapter,
    find_date_text,
    local_subreddits,
    looks_like_event,
)


class TestHelpers:
    """Tests for subreddit and post heuristics."""

    def test_local_subreddits(self):
        assert local_subreddits("Salt Lake City") == ["saltlakecity", "saltlakecityevents"]
        assert local_subreddits("Boise, ID") == ["boise", "boiseevents"]
        assert local_subreddits("") == []

    def test_looks_like_event(self):
        assert looks_like_event("Trivia show this Friday", "Starts at 7pm")
        assert not looks_like_event("Best burrito in town?", "Looking for recommendations.")
        assert not looks_like_event("Concert recommendations", "Any good bands?")

    def test_find_date_text(self):
        assert find_date_text("Meet us on Jun 7 at 2pm by the fountain") == "Jun 7 at 2pm"
        assert find_date_text("Doors 6/14/2025, bring ID") == "6/14/2025"
        assert find_date_text("nothing to see") is None


class TestCollect:
    """Tests for the full adapter call."""

    @pytest.mark.asyncio
    async def test_no_user_agent(self, clock):
        adapter = RedditAdapter(request_delay=0, clock=clock)
        result = await adapter.scrape_with_result("Salt Lake City", ["games"], 50)

        assert result.status == "skipped"
        assert "REDDIT_USER_AGENT" in result.error

    @pytest.mark.asyncio
    async def test_successful_fetch(self, clock, fixtures_path, monkeypatch):
        """Event-like posts become candidates; a missing subreddit is skipped."""
        monkeypatch.setenv("REDDIT_USER_AGENT", "community-events-test/1.0")
        mock_response = MagicMock()
        mock_response.json.return_value = json.loads(
            (fixtures_path / "reddit_search.json").read_text(encoding="utf-8")
        )
        mock_response.raise_for_status = MagicMock()

        adapter = RedditAdapter(request_delay=0, clock=clock)
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.get = AsyncMock(side_effect=[
                mock_response,
                httpx.ConnectError("subreddit unreachable"),
            ])

            result = await adapter.scrape_with_result("Salt Lake City", ["games", "social"], 50)

            headers = mock_client.call_args.kwargs["headers"]
            urls = [c.args[0] for c in mock_client.return_value.get.call_args_list]

        assert headers == {"User-Agent": "community-events-test/1.0"}
        assert urls[0].startswith("https://www.reddit.com/r/saltlakecity/search.json?q=games+OR+social")
        assert "/r/saltlakecityevents/" in urls[1]

        assert result.status == "success"
        assert len(result.events) == 1

        event = result.events[0]
        assert event.date == datetime(2025, 6, 7, 14, 0)
        assert event.organizer_name == "r/saltlakecity"
        assert event.attendee_count == 57
        assert event.category == "social"
        assert event.source == SourceIdentifier.REDDIT
        assert event.source_url.endswith("/comments/abc/board_game_meetup/")
