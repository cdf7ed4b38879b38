"""Tests for page fetchers and default adapter wiring."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from servers.community_events.config.settings import get_default_config
from servers.community_events.sources import HTML_PROVIDERS, build_default_adapters
from servers.community_events.sources.adapter import HtmlSourceAdapter
from servers.community_events.sources.fetchers import (
    USER_AGENT,
    BrowserFetcher,
    BrowserSession,
    FallbackFetcher,
    HttpFetcher,
)
from servers.community_events.sources.google_events import GoogleEventsAdapter
from servers.community_events.sources.reddit import RedditAdapter

URL = "https://www.meetup.com/find/?keywords=tech"


def _mock_playwright(goto_error=None, launch_error=None, html="<html><body>listings</body></html>"):
    """async_playwright() stand-in. Returns (factory, playwright, browser, page)."""
    page = MagicMock()
    page.goto = AsyncMock(side_effect=goto_error)
    page.wait_for_selector = AsyncMock()
    page.set_extra_http_headers = AsyncMock()
    page.content = AsyncMock(return_value=html)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_error)
    playwright.stop = AsyncMock()

    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=playwright)
    return factory, playwright, browser, page


def _response(status_code, text="", headers=None):
    return httpx.Response(
        status_code,
        text=text,
        headers=headers,
        request=httpx.Request("GET", URL),
    )


class TestBrowserFetcher:
    """Tests for Playwright rendering and session release."""

    @pytest.mark.asyncio
    async def test_returns_rendered_html(self):
        factory, playwright, browser, page = _mock_playwright()

        with patch("servers.community_events.sources.fetchers.async_playwright", factory):
            html = await BrowserFetcher().fetch(URL, wait_for=".event-card")

        assert html == "<html><body>listings</body></html>"
        assert page.goto.call_args.args[0] == URL
        page.wait_for_selector.assert_awaited_once()
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_session_released_when_navigation_fails(self):
        factory, playwright, browser, _ = _mock_playwright(goto_error=RuntimeError("net::ERR_TIMED_OUT"))

        with patch("servers.community_events.sources.fetchers.async_playwright", factory):
            with pytest.raises(RuntimeError):
                await BrowserFetcher().fetch(URL)

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_playwright_stopped_when_launch_fails(self):
        factory, playwright, browser, _ = _mock_playwright(launch_error=RuntimeError("chromium missing"))

        with patch("servers.community_events.sources.fetchers.async_playwright", factory):
            with pytest.raises(RuntimeError):
                async with BrowserSession():
                    pass

        browser.close.assert_not_awaited()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_wait_selector_still_returns_page(self):
        factory, _, browser, page = _mock_playwright()
        page.wait_for_selector.side_effect = TimeoutError("selector not found")

        with patch("servers.community_events.sources.fetchers.async_playwright", factory):
            html = await BrowserFetcher().fetch(URL, wait_for=".event-card")

        assert "listings" in html
        browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_extra_headers_applied(self):
        factory, _, _, page = _mock_playwright()

        with patch("servers.community_events.sources.fetchers.async_playwright", factory):
            await BrowserFetcher().fetch(URL, headers={"Authorization": "Bearer abc"})

        page.set_extra_http_headers.assert_awaited_once_with({"Authorization": "Bearer abc"})


class TestHttpFetcher:
    """Tests for the httpx fetcher and its retry policy."""

    @pytest.mark.asyncio
    async def test_retries_server_error_then_succeeds(self):
        fetcher = HttpFetcher(base_delay=0)

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.get = AsyncMock(side_effect=[
                _response(503),
                _response(200, text="<html>ok</html>"),
            ])

            html = await fetcher.fetch(URL)

            assert mock_client.return_value.get.await_count == 2

        assert html == "<html>ok</html>"

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        fetcher = HttpFetcher(base_delay=0)

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.get = AsyncMock(return_value=_response(404))

            with pytest.raises(httpx.HTTPStatusError):
                await fetcher.fetch(URL)

            assert mock_client.return_value.get.await_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        fetcher = HttpFetcher(max_attempts=2, base_delay=0)

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.get = AsyncMock(side_effect=httpx.ConnectError("reset by peer"))

            with pytest.raises(httpx.ConnectError):
                await fetcher.fetch(URL)

            assert mock_client.return_value.get.await_count == 2

    @pytest.mark.asyncio
    async def test_headers_merged_with_user_agent(self):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.get = AsyncMock(return_value=_response(200, text="<html></html>"))

            await HttpFetcher().fetch(URL, headers={"Authorization": "Bearer abc"})

            kwargs = mock_client.return_value.get.call_args.kwargs

        assert kwargs["headers"] == {"User-Agent": USER_AGENT, "Authorization": "Bearer abc"}
        assert kwargs["follow_redirects"] is True


class TestFallbackFetcher:
    """Tests for browser-then-HTTP fetching."""

    @pytest.mark.asyncio
    async def test_browser_used_when_it_works(self):
        browser = MagicMock()
        browser.fetch = AsyncMock(return_value="<html>rendered</html>")
        http = MagicMock()
        http.fetch = AsyncMock(return_value="<html>plain</html>")

        html = await FallbackFetcher(browser, http).fetch(URL, wait_for=".card")

        assert html == "<html>rendered</html>"
        http.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falls_through_to_http(self):
        browser = MagicMock()
        browser.fetch = AsyncMock(side_effect=RuntimeError("chromium missing"))
        http = MagicMock()
        http.fetch = AsyncMock(return_value="<html>plain</html>")

        html = await FallbackFetcher(browser, http).fetch(URL, wait_for=".card", headers={"X-Key": "1"})

        assert html == "<html>plain</html>"
        http.fetch.assert_awaited_once_with(URL, wait_for=".card", headers={"X-Key": "1"})

    @pytest.mark.asyncio
    async def test_both_fail_raises_last_error(self):
        browser = MagicMock()
        browser.fetch = AsyncMock(side_effect=RuntimeError("chromium missing"))
        http = MagicMock()
        http.fetch = AsyncMock(side_effect=httpx.ConnectError("unreachable"))

        with pytest.raises(httpx.ConnectError):
            await FallbackFetcher(browser, http).fetch(URL)


class TestBuildDefaultAdapters:
    """Tests for the default provider wiring."""

    def test_all_providers_wired(self, clock):
        adapters = build_default_adapters(get_default_config(), clock=clock)

        assert [a.name for a in adapters] == [
            "eventbrite",
            "meetup",
            "ticketmaster",
            "seatgeek",
            "bandsintown",
            "google_events",
            "reddit",
        ]
        assert isinstance(adapters[-2], GoogleEventsAdapter)
        assert isinstance(adapters[-1], RedditAdapter)

    def test_html_adapters_share_fetchers(self, clock):
        adapters = build_default_adapters(get_default_config(), clock=clock)
        html = [a for a in adapters if isinstance(a, HtmlSourceAdapter)]

        assert len(html) == len(HTML_PROVIDERS)
        assert all(isinstance(a.fetcher, FallbackFetcher) for a in html)
        assert len({id(a.fetcher) for a in html}) == 1

    def test_supplied_fetcher_and_delay(self, clock):
        config = get_default_config()
        config["adapters"]["request_delay_seconds"] = 0.5
        fetcher = MagicMock()

        adapters = build_default_adapters(config, clock=clock, fetcher=fetcher)
        html = [a for a in adapters if isinstance(a, HtmlSourceAdapter)]

        assert all(a.fetcher is fetcher for a in html)
        assert all(a.request_delay == 0.5 for a in html)
