"""
Persistence gateway consumed by the pipeline.

The storage engine lives elsewhere; the pipeline only needs to read
communities, users and existing events, and create new events.
"""

import json
from pathlib import Path
from typing import Optional, Protocol, Union

import structlog

from .models import CommunityProfile, EventRecord, StoredEvent, UserLocation

log = structlog.get_logger(__name__)


class EventGateway(Protocol):
    """Narrow async view of the storage layer."""

    async def read_communities(self) -> list[CommunityProfile]: ...

    async def read_existing_events_for_community(self, community_id: int) -> list[StoredEvent]: ...

    async def create_event(self, record: EventRecord) -> StoredEvent: ...

    async def read_users_with_location(self) -> list[UserLocation]: ...


class InMemoryEventGateway:
    """Dict-backed gateway for the CLI and tests."""

    def __init__(
        self,
        communities: Optional[list[CommunityProfile]] = None,
        users: Optional[list[UserLocation]] = None,
        events: Optional[list[StoredEvent]] = None,
    ):
        self.communities = list(communities or [])
        self.users = list(users or [])
        self.events: list[StoredEvent] = list(events or [])
        self._next_id = max((e.id for e in self.events), default=0) + 1

    async def read_communities(self) -> list[CommunityProfile]:
        return list(self.communities)

    async def read_existing_events_for_community(self, community_id: int) -> list[StoredEvent]:
        return [e for e in self.events if e.community_id == community_id]

    async def create_event(self, record: EventRecord) -> StoredEvent:
        stored = StoredEvent(id=self._next_id, **record.model_dump())
        self._next_id += 1
        self.events.append(stored)
        return stored

    async def read_users_with_location(self) -> list[UserLocation]:
        return list(self.users)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "InMemoryEventGateway":
        """
        Seed from a JSON file.

        Expected shape:
            {"communities": [...], "users": [...], "events": [...]}
        """
        data = json.loads(Path(path).read_text())
        gateway = cls(
            communities=[CommunityProfile(**c) for c in data.get("communities", [])],
            users=[UserLocation(**u) for u in data.get("users", [])],
            events=[StoredEvent(**e) for e in data.get("events", [])],
        )
        log.info(
            "gateway_seeded",
            path=str(path),
            communities=len(gateway.communities),
            users=len(gateway.users),
            events=len(gateway.events),
        )
        return gateway
