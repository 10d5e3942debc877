"""
Outbox record model.

The matchmaker appends ``NotificationRecord`` rows to an outbox; a separate
delivery subsystem (in-app feed, push, email) consumes them.  From the
core's side records are append-only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from event_matchmaker.taxonomy.lead_taxonomy import NotificationType, Priority


class NotificationRecord(BaseModel):
    """One outbox entry.

    Attributes:
        notification_id: Store-assigned rowid; ``None`` before append.
        recipient_id: Profile id of the recipient.
        type: Record type (drives rendering in the delivery subsystem).
        payload: Structured data for the renderer (scores, ids, reasons).
        expires_at: After this instant the record may be purged.
    """

    model_config = ConfigDict(frozen=True)

    notification_id: Optional[int] = None
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    payload: dict[str, Any] = {}
    priority: Priority = Priority.MEDIUM
    read: bool = False
    created_at: datetime
    expires_at: Optional[datetime] = None

    @field_validator("title", "message")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title and message must not be empty.")
        return v.strip()

    @model_validator(mode="after")
    def validate_expiry(self) -> "NotificationRecord":
        if self.expires_at is not None and self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at.")
        return self
