"""
Notification repository — SQLite outbox.

``append`` is the only call the matchmaker core makes.  The read and
maintenance methods serve the delivery subsystem and the
``cleanup-notifications`` CLI command.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from event_matchmaker.db.repositories.base import BaseRepository, dump_json, load_json
from event_matchmaker.errors import OutboxError, StoreError
from event_matchmaker.models.notification import NotificationRecord
from event_matchmaker.taxonomy.lead_taxonomy import NotificationType, Priority
from event_matchmaker.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)


def _row_to_record(row: sqlite3.Row) -> NotificationRecord:
    return NotificationRecord(
        notification_id=row["notification_id"],
        recipient_id=row["recipient_id"],
        type=NotificationType(row["type"]),
        title=row["title"],
        message=row["message"],
        payload=load_json(row["payload"], {}),
        priority=Priority(row["priority"]),
        read=bool(row["read"]),
        created_at=from_iso(row["created_at"]),
        expires_at=from_iso(row["expires_at"]),
    )


class NotificationRepository(BaseRepository):
    """Implements ``NotificationOutbox``."""

    table = "notifications"

    def append(self, record: NotificationRecord) -> int:
        """Append one record.

        Raises:
            OutboxError: The write failed (classified as a notification error).
        """
        try:
            self.execute(
                """
                INSERT INTO notifications (
                    recipient_id, type, title, message, payload,
                    priority, read, created_at, expires_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    record.recipient_id,
                    record.type.value,
                    record.title,
                    record.message,
                    dump_json(record.payload),
                    record.priority.value,
                    int(record.read),
                    to_iso(record.created_at),
                    to_iso(record.expires_at),
                ),
            )
        except StoreError as exc:
            raise OutboxError(str(exc)) from exc
        return self.last_insert_rowid()

    def list_for_recipient(
        self, recipient_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[NotificationRecord]:
        sql = "SELECT * FROM notifications WHERE recipient_id = ?"
        if unread_only:
            sql += " AND read = 0"
        sql += " ORDER BY created_at DESC, notification_id DESC LIMIT ?;"
        return [_row_to_record(r) for r in self.fetchall(sql, (recipient_id, limit))]

    def list_all(self) -> list[NotificationRecord]:
        rows = self.fetchall("SELECT * FROM notifications ORDER BY notification_id;")
        return [_row_to_record(r) for r in rows]

    def mark_read(self, notification_id: int) -> bool:
        cur = self.execute(
            "UPDATE notifications SET read = 1 WHERE notification_id = ?;", (notification_id,)
        )
        return cur.rowcount > 0

    def delete_expired(self, now: datetime) -> int:
        """Delete records whose ``expires_at`` is at or before ``now``."""
        cur = self.execute(
            "DELETE FROM notifications WHERE expires_at IS NOT NULL AND expires_at <= ?;",
            (to_iso(now),),
        )
        deleted = cur.rowcount
        logger.info("Deleted %d expired notification(s).", deleted)
        return deleted
