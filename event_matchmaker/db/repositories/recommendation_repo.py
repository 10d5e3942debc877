"""
Recommendation repository — SQLite recommendation store.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from event_matchmaker.db.repositories.base import BaseRepository, dump_json, load_json
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.taxonomy.lead_taxonomy import ConfidenceBucket
from event_matchmaker.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)


def _row_to_recommendation(row: sqlite3.Row) -> Recommendation:
    return Recommendation(
        recommendation_id=row["recommendation_id"],
        provider_id=row["provider_id"],
        seeker_id=row["seeker_id"],
        score=row["score"],
        confidence=ConfidenceBucket(row["confidence"]),
        reasons=load_json(row["reasons"], []),
        used=bool(row["used"]),
        converted_relationship_id=row["converted_relationship_id"],
        created_at=from_iso(row["created_at"]),
    )


class RecommendationRepository(BaseRepository):
    """Implements ``RecommendationStore`` over the ``recommendations`` table."""

    table = "recommendations"

    def insert(self, recommendation: Recommendation) -> str:
        self.execute(
            """
            INSERT INTO recommendations (
                recommendation_id, provider_id, seeker_id, score, confidence,
                reasons, used, converted_relationship_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                recommendation.recommendation_id,
                recommendation.provider_id,
                recommendation.seeker_id,
                recommendation.score,
                recommendation.confidence.value,
                dump_json(recommendation.reasons),
                int(recommendation.used),
                recommendation.converted_relationship_id,
                to_iso(recommendation.created_at),
            ),
        )
        return recommendation.recommendation_id

    def get_by_id(self, recommendation_id: str) -> Optional[Recommendation]:
        row = self.fetchone(
            "SELECT * FROM recommendations WHERE recommendation_id = ?;",
            (recommendation_id,),
        )
        return _row_to_recommendation(row) if row is not None else None

    def mark_used(self, recommendation_id: str, relationship_id: str) -> bool:
        """Record the conversion.  Returns ``False`` if no such recommendation."""
        cur = self.execute(
            """
            UPDATE recommendations
               SET used = 1, converted_relationship_id = ?
             WHERE recommendation_id = ?;
            """,
            (relationship_id, recommendation_id),
        )
        return cur.rowcount > 0

    def list_for_subject(self, profile_id: str, limit: int = 20) -> list[Recommendation]:
        """Best unused recommendations involving ``profile_id`` on either side."""
        rows = self.fetchall(
            """
            SELECT * FROM recommendations
             WHERE (provider_id = ? OR seeker_id = ?) AND used = 0
             ORDER BY score DESC, provider_id, seeker_id
             LIMIT ?;
            """,
            (profile_id, profile_id, limit),
        )
        return [_row_to_recommendation(r) for r in rows]

    def list_all(self) -> list[Recommendation]:
        rows = self.fetchall(
            "SELECT * FROM recommendations ORDER BY score DESC, provider_id, seeker_id;"
        )
        return [_row_to_recommendation(r) for r in rows]
