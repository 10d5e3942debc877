"""
Relationship repository — SQLite relationship store.

``insert`` relies on the ``uq_relationships_pair`` unique index: a second
insert for the same unordered pair raises ``DuplicateRelationshipError``
carrying the id of the record that won.  Callers treat that exactly like a
duplicate detected by the deduplicator's fast-path check.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Optional, Sequence

from event_matchmaker.db.repositories.base import BaseRepository, dump_json, load_json
from event_matchmaker.errors import DuplicateRelationshipError, IntegrityViolation
from event_matchmaker.models.relationship import PairKey, Relationship
from event_matchmaker.taxonomy.lead_taxonomy import (
    Priority,
    RelationshipSource,
    RelationshipStatus,
)
from event_matchmaker.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)


def _row_to_relationship(row: sqlite3.Row) -> Relationship:
    return Relationship(
        relationship_id=row["relationship_id"],
        provider_id=row["provider_id"],
        seeker_id=row["seeker_id"],
        score=row["score"],
        status=RelationshipStatus(row["status"]),
        priority=Priority(row["priority"]),
        source=RelationshipSource(row["source"]),
        tags=load_json(row["tags"], []),
        notes=row["notes"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


class RelationshipRepository(BaseRepository):
    """Implements ``RelationshipStore`` over the ``relationships`` table."""

    table = "relationships"

    def exists(self, provider_id: str, seeker_id: str) -> bool:
        key = PairKey(provider_id, seeker_id).canonical
        return self.fetchone(
            "SELECT 1 FROM relationships WHERE pair_key = ?;", (key,)
        ) is not None

    def find_pair(self, provider_id: str, seeker_id: str) -> Optional[Relationship]:
        key = PairKey(provider_id, seeker_id).canonical
        row = self.fetchone("SELECT * FROM relationships WHERE pair_key = ?;", (key,))
        return _row_to_relationship(row) if row is not None else None

    def insert(self, relationship: Relationship) -> str:
        """Insert a relationship.

        Returns:
            The relationship id.

        Raises:
            DuplicateRelationshipError: The unordered pair already has a record.
            StoreError: Any other store failure.
        """
        key = relationship.pair.canonical
        try:
            self.execute(
                """
                INSERT INTO relationships (
                    relationship_id, provider_id, seeker_id, pair_key, score,
                    status, priority, source, tags, notes, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    relationship.relationship_id,
                    relationship.provider_id,
                    relationship.seeker_id,
                    key,
                    relationship.score,
                    relationship.status.value,
                    relationship.priority.value,
                    relationship.source.value,
                    dump_json(relationship.tags),
                    relationship.notes,
                    to_iso(relationship.created_at),
                    to_iso(relationship.updated_at),
                ),
            )
        except IntegrityViolation as exc:
            existing = self.find_pair(relationship.provider_id, relationship.seeker_id)
            if existing is None:
                raise
            raise DuplicateRelationshipError(key, existing.relationship_id) from exc
        return relationship.relationship_id

    def get_by_id(self, relationship_id: str) -> Optional[Relationship]:
        row = self.fetchone(
            "SELECT * FROM relationships WHERE relationship_id = ?;", (relationship_id,)
        )
        return _row_to_relationship(row) if row is not None else None

    def find_recent(self, since: datetime) -> list[Relationship]:
        rows = self.fetchall(
            """
            SELECT * FROM relationships
             WHERE created_at >= ?
             ORDER BY created_at DESC, relationship_id;
            """,
            (to_iso(since),),
        )
        return [_row_to_relationship(r) for r in rows]

    def find_touching(self, profile_ids: Sequence[str], since: datetime) -> list[Relationship]:
        """Relationships created since ``since`` with either side in ``profile_ids``."""
        if not profile_ids:
            return []
        marks = ", ".join("?" for _ in profile_ids)
        rows = self.fetchall(
            f"""
            SELECT * FROM relationships
             WHERE created_at >= ?
               AND (provider_id IN ({marks}) OR seeker_id IN ({marks}))
             ORDER BY created_at DESC, relationship_id;
            """,
            (to_iso(since), *profile_ids, *profile_ids),
        )
        return [_row_to_relationship(r) for r in rows]

    def update_status(
        self,
        relationship_id: str,
        status: RelationshipStatus,
        updated_at: datetime,
        notes: Optional[str] = None,
    ) -> bool:
        """Set status (and optionally notes).  Returns ``False`` if no such id."""
        if notes is None:
            cur = self.execute(
                "UPDATE relationships SET status = ?, updated_at = ? WHERE relationship_id = ?;",
                (status.value, to_iso(updated_at), relationship_id),
            )
        else:
            cur = self.execute(
                """
                UPDATE relationships
                   SET status = ?, notes = ?, updated_at = ?
                 WHERE relationship_id = ?;
                """,
                (status.value, notes, to_iso(updated_at), relationship_id),
            )
        return cur.rowcount > 0

    def list_filtered(
        self,
        provider_id: Optional[str] = None,
        seeker_id: Optional[str] = None,
        status: Optional[RelationshipStatus] = None,
        priority: Optional[Priority] = None,
        source: Optional[RelationshipSource] = None,
        limit: Optional[int] = None,
    ) -> list[Relationship]:
        """Relationships matching every given filter, newest first."""
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("provider_id", provider_id),
            ("seeker_id", seeker_id),
            ("status", status.value if status else None),
            ("priority", priority.value if priority else None),
            ("source", source.value if source else None),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)

        sql = "SELECT * FROM relationships"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, relationship_id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self.fetchall(sql + ";", tuple(params))
        return [_row_to_relationship(r) for r in rows]
