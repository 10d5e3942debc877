"""
History repository — SQLite history store over ``activity_events``.

Events are written by the check-in and profile-browsing collaborators; the
``record_*`` methods exist for seeding and tests.  The matchmaker only reads
aggregate counts per profile and lookback window.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from event_matchmaker.db.repositories.base import BaseRepository
from event_matchmaker.utils.time_utils import to_iso

logger = logging.getLogger(__name__)

CHECKIN = "checkin"
PROFILE_VIEW = "profile_view"
SESSION_ATTENDANCE = "session_attendance"


class HistoryRepository(BaseRepository):
    """Implements ``HistoryStore``."""

    table = "activity_events"

    def _record(
        self,
        profile_id: str,
        event_type: str,
        occurred_at: datetime,
        session_id: Optional[str] = None,
    ) -> int:
        self.execute(
            """
            INSERT INTO activity_events (profile_id, event_type, session_id, occurred_at)
            VALUES (?, ?, ?, ?);
            """,
            (profile_id, event_type, session_id, to_iso(occurred_at)),
        )
        return self.last_insert_rowid()

    def record_checkin(self, profile_id: str, occurred_at: datetime) -> int:
        return self._record(profile_id, CHECKIN, occurred_at)

    def record_profile_view(self, viewed_profile_id: str, occurred_at: datetime) -> int:
        return self._record(viewed_profile_id, PROFILE_VIEW, occurred_at)

    def record_session_attendance(
        self, profile_id: str, session_id: str, occurred_at: datetime
    ) -> int:
        return self._record(profile_id, SESSION_ATTENDANCE, occurred_at, session_id)

    def _count(self, profile_id: str, event_type: str, since: datetime) -> int:
        return int(self.scalar(
            """
            SELECT COUNT(*) FROM activity_events
             WHERE profile_id = ? AND event_type = ? AND occurred_at >= ?;
            """,
            (profile_id, event_type, to_iso(since)),
        ))

    def count_checkins(self, profile_id: str, since: datetime) -> int:
        return self._count(profile_id, CHECKIN, since)

    def count_profile_views(self, profile_id: str, since: datetime) -> int:
        return self._count(profile_id, PROFILE_VIEW, since)

    def count_shared_sessions(self, profile_a: str, profile_b: str, since: datetime) -> int:
        """Distinct sessions both profiles attended since ``since``."""
        return int(self.scalar(
            """
            SELECT COUNT(DISTINCT a.session_id)
              FROM activity_events a
              JOIN activity_events b
                ON a.session_id = b.session_id
             WHERE a.event_type = 'session_attendance'
               AND b.event_type = 'session_attendance'
               AND a.profile_id = ? AND b.profile_id = ?
               AND a.occurred_at >= ? AND b.occurred_at >= ?;
            """,
            (profile_a, profile_b, to_iso(since), to_iso(since)),
        ))

    def was_active_since(self, profile_id: str, since: datetime) -> bool:
        """Any check-in or session attendance since ``since``."""
        row = self.fetchone(
            """
            SELECT 1 FROM activity_events
             WHERE profile_id = ?
               AND event_type IN ('checkin', 'session_attendance')
               AND occurred_at >= ?
             LIMIT 1;
            """,
            (profile_id, to_iso(since)),
        )
        return row is not None
