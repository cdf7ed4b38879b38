"""
Page fetchers used by HTML source adapters.

Adapters only see the PageFetcher interface. HttpFetcher is a plain httpx
GET retried on transient failures; BrowserFetcher renders the page in
headless Chromium for providers that build their listings client-side.
Every browser session is owned by exactly one fetch and closed on every
exit path.
"""

from typing import Optional, Protocol

import httpx
import structlog
from playwright.async_api import async_playwright

from ..resilience import FallbackChain, retry_transient_http

logger = structlog.get_logger()

USER_AGENT = "Mozilla/5.0 (compatible; CommunityEventAggregator/1.0)"
REQUEST_TIMEOUT = 30.0
NAVIGATION_TIMEOUT_MS = 30_000
SELECTOR_TIMEOUT_MS = 10_000


class PageFetcher(Protocol):
    """Fetch a page and return its HTML."""

    async def fetch(
        self,
        url: str,
        wait_for: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> str: ...


class HttpFetcher:
    """Plain HTTP GET via httpx, retried on dropped connections, 429 and 5xx."""

    name = "http"

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ):
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def fetch(
        self,
        url: str,
        wait_for: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> str:
        @retry_transient_http(max_attempts=self.max_attempts, base_delay=self.base_delay)
        async def get() -> str:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    url,
                    headers={"User-Agent": USER_AGENT, **(headers or {})},
                    follow_redirects=True,
                )
                response.raise_for_status()
                return response.text

        return await get()


class BrowserSession:
    """One headless Chromium page, released in __aexit__."""

    def __init__(self, headless: bool = True):
        self.headless = headless
        self.playwright = None
        self.browser = None
        self.page = None

    async def __aenter__(self) -> "BrowserSession":
        self.playwright = await async_playwright().start()
        try:
            self.browser = await self.playwright.chromium.launch(headless=self.headless)
            context = await self.browser.new_context(user_agent=USER_AGENT)
            self.page = await context.new_page()
        except BaseException:
            await self._close()
            raise
        return self

    async def __aexit__(self, *args) -> None:
        await self._close()

    async def _close(self) -> None:
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self.playwright:
            await self.playwright.stop()
            self.playwright = None
        logger.debug("browser_session_closed")


class BrowserFetcher:
    """Render pages with Playwright before extraction."""

    name = "browser"

    def __init__(self, headless: bool = True):
        self.headless = headless

    async def fetch(
        self,
        url: str,
        wait_for: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> str:
        async with BrowserSession(headless=self.headless) as session:
            if headers:
                await session.page.set_extra_http_headers(headers)
            await session.page.goto(url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
            if wait_for:
                try:
                    await session.page.wait_for_selector(wait_for, timeout=SELECTOR_TIMEOUT_MS)
                except Exception as e:
                    # Listings may still be present under a fallback selector
                    logger.debug("wait_selector_missing", url=url, selector=wait_for, error=str(e))
            return await session.page.content()


class FallbackFetcher:
    """Browser rendering first, plain HTTP if the browser path fails."""

    name = "browser+http"

    def __init__(self, browser: Optional[PageFetcher] = None, http: Optional[PageFetcher] = None):
        self.browser = browser or BrowserFetcher()
        self.http = http or HttpFetcher()
        self.chain = FallbackChain(self.browser.fetch, self.http.fetch)

    async def fetch(
        self,
        url: str,
        wait_for: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> str:
        return await self.chain.execute(url, wait_for=wait_for, headers=headers)
