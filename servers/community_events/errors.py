"""Exception taxonomy for the aggregation pipeline."""


class AggregationError(Exception):
    """Base class for pipeline errors."""


class AdapterFailure(AggregationError):
    """A source adapter failed (network, parse or timeout).

    Never escapes an adapter; used to label diagnostics.
    """

    def __init__(self, source_name: str, reason: str):
        super().__init__(f"{source_name}: {reason}")
        self.source_name = source_name
        self.reason = reason


class PersistenceFailure(AggregationError):
    """The persistence gateway rejected a single write."""

    def __init__(self, community_id: int, title: str, cause: Exception):
        super().__init__(
            f"Failed to save '{title}' for community {community_id}: {cause}"
        )
        self.community_id = community_id
        self.title = title
        self.cause = cause


class ScrapingInProgressError(AggregationError):
    """A run was requested while another one is active."""

    def __init__(self) -> None:
        super().__init__("Event scraping is already in progress")


class ConfigError(AggregationError):
    """Configuration failed validation."""

    def __init__(self, problems: list[str]):
        super().__init__("; ".join(problems))
        self.problems = problems
