"""
Store interfaces the matchmaker core depends on.

The core never owns persistence.  It talks to these protocols only; the
SQLite repositories in ``event_matchmaker.db.repositories`` and the cache
stores in ``event_matchmaker.cache.stores`` are reference implementations.

Implementations signal failures by raising ``StoreError`` (or
``CacheUnavailableError`` for caches).  The relationship store's ``insert``
must enforce pair uniqueness itself and raise ``DuplicateRelationshipError``
when it refuses a second record for the same unordered pair.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from event_matchmaker.models.notification import NotificationRecord
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.relationship import Relationship
from event_matchmaker.taxonomy.lead_taxonomy import (
    Priority,
    RelationshipSource,
    RelationshipStatus,
)

ProfileRow = Mapping[str, Any]


class EntityStore(Protocol):
    """Read-only profile source.  Rows are validated by ``EntityGateway``."""

    def find_by_id(self, profile_id: str) -> Optional[ProfileRow]: ...

    def find_by_category(self, category: str) -> list[ProfileRow]: ...

    def find_by_organization(self, organization: str) -> list[ProfileRow]: ...

    def count_by_industry(self, industry: str, exclude_ids: Sequence[str] = ()) -> int: ...


class RelationshipStore(Protocol):
    def exists(self, provider_id: str, seeker_id: str) -> bool: ...

    def find_pair(self, provider_id: str, seeker_id: str) -> Optional[Relationship]: ...

    def insert(self, relationship: Relationship) -> str: ...

    def get_by_id(self, relationship_id: str) -> Optional[Relationship]: ...

    def find_recent(self, since: datetime) -> list[Relationship]: ...

    def find_touching(self, profile_ids: Sequence[str], since: datetime) -> list[Relationship]: ...

    def update_status(
        self,
        relationship_id: str,
        status: RelationshipStatus,
        updated_at: datetime,
        notes: Optional[str] = None,
    ) -> bool: ...

    def list_filtered(
        self,
        provider_id: Optional[str] = None,
        seeker_id: Optional[str] = None,
        status: Optional[RelationshipStatus] = None,
        priority: Optional[Priority] = None,
        source: Optional[RelationshipSource] = None,
        limit: Optional[int] = None,
    ) -> list[Relationship]: ...


class RecommendationStore(Protocol):
    def insert(self, recommendation: Recommendation) -> str: ...

    def get_by_id(self, recommendation_id: str) -> Optional[Recommendation]: ...

    def mark_used(self, recommendation_id: str, relationship_id: str) -> bool: ...

    def list_for_subject(self, profile_id: str, limit: int = 20) -> list[Recommendation]: ...

    def list_all(self) -> list[Recommendation]: ...


class HistoryStore(Protocol):
    """Read-only activity signals per profile and lookback window."""

    def count_checkins(self, profile_id: str, since: datetime) -> int: ...

    def count_profile_views(self, profile_id: str, since: datetime) -> int: ...

    def count_shared_sessions(self, profile_a: str, profile_b: str, since: datetime) -> int: ...

    def was_active_since(self, profile_id: str, since: datetime) -> bool: ...


class CacheStore(Protocol):
    """Flat key/value store with TTL.  Keys arrive already namespaced."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> bool: ...

    def increment(self, key: str, amount: int = 1) -> int: ...

    def delete_prefix(self, prefix: str) -> int: ...


class NotificationOutbox(Protocol):
    """Write-only from the core's side."""

    def append(self, record: NotificationRecord) -> int: ...
