"""
Event source adapters.

Each adapter implements:
- scrape(location_name, keywords, radius_miles) -> list[ScrapedEvent]
- scrape_with_result(...) -> ScrapeSourceResult for diagnostics
- Its own credential gate, rate limiting and error containment
"""

from typing import Any, Optional

from ..clock import Clock, system_clock
from .adapter import HtmlSourceAdapter, SourceAdapter
from .fallback_generator import FallbackGenerator
from .fetchers import BrowserFetcher, FallbackFetcher, HttpFetcher, PageFetcher
from .google_events import GoogleEventsAdapter
from .providers import HTML_PROVIDERS, ProviderConfig
from .reddit import RedditAdapter


def build_default_adapters(
    config: dict[str, Any],
    clock: Clock = system_clock,
    fetcher: Optional[PageFetcher] = None,
) -> list[SourceAdapter]:
    """
    Every registered provider, ready for the orchestrator.

    Browser-rendered providers get a browser-then-HTTP fetcher unless a
    fetcher is supplied.
    """
    delay = config["adapters"]["request_delay_seconds"]
    http = HttpFetcher()
    rendered = FallbackFetcher(BrowserFetcher(), http)

    adapters: list[SourceAdapter] = []
    for provider in HTML_PROVIDERS:
        page_fetcher = fetcher or (rendered if provider.render == "browser" else http)
        adapters.append(HtmlSourceAdapter(provider, page_fetcher, request_delay=delay, clock=clock))

    adapters.append(GoogleEventsAdapter(clock=clock))
    adapters.append(RedditAdapter(request_delay=delay, clock=clock))
    return adapters


__all__ = [
    "SourceAdapter",
    "HtmlSourceAdapter",
    "GoogleEventsAdapter",
    "RedditAdapter",
    "FallbackGenerator",
    "ProviderConfig",
    "HTML_PROVIDERS",
    "PageFetcher",
    "HttpFetcher",
    "BrowserFetcher",
    "FallbackFetcher",
    "build_default_adapters",
]
