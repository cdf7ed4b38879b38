"""
Community Event Aggregator

Background pipeline that:
- Scrapes candidate events from many unreliable providers concurrently
- Deduplicates them (exact, then fuzzy matching)
- Filters by distance and scores relevance per community
- Persists new events idempotently on a fixed schedule

Falls back to synthetic events when every provider comes back empty.
"""

__version__ = "1.0.0"
