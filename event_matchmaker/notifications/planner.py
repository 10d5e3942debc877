"""
Rule-based notification planner.

Evaluates a freshly scored provider × seeker pair and appends outbox
records.  The planner never delivers anything; a separate subsystem reads
the outbox.

Trigger rules
-------------
  score >= 0.8
      high-value-lead   → provider, priority high, expires in 24 h
      team-alert        → every exhibitor/organizer colleague of the provider
      email-escalation  → provider, if opted in and a contact email exists
  0.6 <= score < 0.8
      new-lead          → provider, priority medium, expires in 72 h
  score >= 0.7 and seeker category is privileged (hosted buyer, VIP)
      high-value-match  → seeker, priority high

Failure isolation
-----------------
Each append is attempted on its own.  A failed append is recorded in the
returned ``BatchSummary`` and logged; it never raises back into the
relationship or recommendation write that triggered the evaluation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from event_matchmaker.config import NotificationConfig
from event_matchmaker.errors import StoreError
from event_matchmaker.gateway.entity_gateway import EntityGateway
from event_matchmaker.gateway.stores import NotificationOutbox
from event_matchmaker.models.batch import BatchSummary
from event_matchmaker.models.notification import NotificationRecord
from event_matchmaker.models.profile import Profile
from event_matchmaker.taxonomy.lead_taxonomy import (
    HIGH_SCORE_THRESHOLD,
    MEDIUM_SCORE_THRESHOLD,
    NotificationType,
    Priority,
)
from event_matchmaker.taxonomy.profile_taxonomy import PRIVILEGED_CATEGORIES
from event_matchmaker.utils.deadline import Deadline, resolve
from event_matchmaker.utils.time_utils import Clock, hours_from, utcnow

logger = logging.getLogger(__name__)

PRIVILEGED_MATCH_THRESHOLD = 0.7
TOP_REASONS = 3
HIGH_VALUE_ACTION = "Contact within 2 hours for best results"


def _pct(score: float) -> int:
    return round(score * 100)


@dataclass
class NotificationOutcome:
    """Records appended by one evaluation plus the per-append summary."""

    records: list[NotificationRecord] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=lambda: BatchSummary("notifications"))

    @property
    def types(self) -> list[NotificationType]:
        return [r.type for r in self.records]


class NotificationPlanner:
    """Appends notification records according to the score tier rules.

    Args:
        outbox:  Write-only notification sink.
        gateway: Profile lookups for team broadcast.
        config:  Expiry windows and the escalation switch.
        clock:   Source of ``created_at``.
    """

    def __init__(
        self,
        outbox: NotificationOutbox,
        gateway: EntityGateway,
        config: NotificationConfig = NotificationConfig(),
        clock: Clock = utcnow,
    ) -> None:
        self._outbox = outbox
        self._gateway = gateway
        self._config = config
        self._clock = clock

    # ── Public API ────────────────────────────────────────────────────────────

    def evaluate(
        self,
        provider: Profile,
        seeker: Profile,
        score: float,
        reasons: list[str],
        relationship_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> NotificationOutcome:
        """Apply every trigger rule to one scored pair.

        Returns:
            ``NotificationOutcome`` with the records that were appended and a
            summary of attempted / failed appends.
        """
        deadline = resolve(deadline)
        now = self._clock()
        outcome = NotificationOutcome()

        if score >= HIGH_SCORE_THRESHOLD:
            lead = self._high_value_lead(provider, seeker, score, reasons, relationship_id, now)
            self._append(lead, outcome, deadline)
            self._team_broadcast(provider, seeker, score, relationship_id, now, outcome, deadline)
            if self._config.escalation_enabled:
                escalation = self._email_escalation(provider, lead, now)
                if escalation is not None:
                    self._append(escalation, outcome, deadline)
        elif score >= MEDIUM_SCORE_THRESHOLD:
            self._append(
                self._standard_lead(provider, seeker, score, relationship_id, now),
                outcome, deadline,
            )

        if score >= PRIVILEGED_MATCH_THRESHOLD and seeker.category in PRIVILEGED_CATEGORIES:
            self._append(
                self._privileged_match(provider, seeker, score, reasons, now),
                outcome, deadline,
            )

        if outcome.records or not outcome.summary.ok:
            logger.info(
                "Notifications for %s/%s at %.2f: %d appended, %d failed.",
                provider.profile_id, seeker.profile_id, score,
                len(outcome.records), outcome.summary.failed,
            )
        return outcome

    def send_custom(
        self,
        recipient_id: str,
        title: str,
        message: str,
        payload: Optional[dict[str, Any]] = None,
        priority: Priority = Priority.MEDIUM,
        notification_type: NotificationType = NotificationType.CUSTOM,
    ) -> NotificationRecord:
        """Append an arbitrary record.

        Critical records expire after ``critical_expiry_hours`` (12 h),
        everything else after ``default_expiry_hours`` (72 h).

        Raises:
            StoreError: If the append fails; the caller asked for this one
                record explicitly, so the failure is surfaced.
        """
        now = self._clock()
        hours = (
            self._config.critical_expiry_hours
            if priority == Priority.CRITICAL
            else self._config.default_expiry_hours
        )
        record = NotificationRecord(
            recipient_id=recipient_id,
            type=notification_type,
            title=title,
            message=message,
            payload=payload or {},
            priority=priority,
            created_at=now,
            expires_at=hours_from(now, hours),
        )
        return self._store(record)

    def notify_workflow_update(
        self,
        recipient_id: str,
        relationship_id: str,
        step_index: int,
        step_title: str,
        status: str,
    ) -> NotificationRecord:
        """Append a workflow milestone record (``scheduled``, ``sent``, ``responded`` …)."""
        now = self._clock()
        record = NotificationRecord(
            recipient_id=recipient_id,
            type=NotificationType.WORKFLOW_UPDATE,
            title=f"Workflow Update: Step {step_index}",
            message=f"{step_title} - {status}",
            payload={
                "relationship_id": relationship_id,
                "step_index": step_index,
                "step_title": step_title,
                "status": status,
                "timestamp": now.isoformat(),
            },
            priority=Priority.LOW,
            created_at=now,
            expires_at=hours_from(now, self._config.default_expiry_hours),
        )
        return self._store(record)

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Purge expired records; returns the number removed.

        Only outboxes that expose ``delete_expired`` support purging; for
        any other outbox this is a no-op.
        """
        purge = getattr(self._outbox, "delete_expired", None)
        if purge is None:
            logger.debug("Outbox %s does not support purging.", type(self._outbox).__name__)
            return 0
        removed = purge(now or self._clock())
        logger.info("Removed %d expired notification(s).", removed)
        return removed

    # ── Record builders ───────────────────────────────────────────────────────

    def _high_value_lead(
        self,
        provider: Profile,
        seeker: Profile,
        score: float,
        reasons: list[str],
        relationship_id: Optional[str],
        now: datetime,
    ) -> NotificationRecord:
        name = seeker.display_name or "Premium Attendee"
        return NotificationRecord(
            recipient_id=provider.profile_id,
            type=NotificationType.HIGH_VALUE_LEAD,
            title="High-Value Lead Detected!",
            message=f"New high-value lead: {name} ({_pct(score)}% match)",
            payload={
                "score": score,
                "relationship_id": relationship_id,
                "counterpart_id": seeker.profile_id,
                "counterpart_name": seeker.display_name or None,
                "counterpart_organization": seeker.organization,
                "reasons": list(reasons[:TOP_REASONS]),
                "recommended_action": HIGH_VALUE_ACTION,
            },
            priority=Priority.HIGH,
            created_at=now,
            expires_at=hours_from(now, self._config.high_value_expiry_hours),
        )

    def _team_alert(
        self,
        member: Profile,
        provider: Profile,
        seeker: Profile,
        score: float,
        relationship_id: Optional[str],
        now: datetime,
    ) -> NotificationRecord:
        return NotificationRecord(
            recipient_id=member.profile_id,
            type=NotificationType.TEAM_ALERT,
            title="Team Alert: High-Value Lead",
            message=f"High-value lead generated for {provider.organization} team",
            payload={
                "score": score,
                "relationship_id": relationship_id,
                "provider_id": provider.profile_id,
                "seeker_id": seeker.profile_id,
                "organization": provider.organization,
            },
            priority=Priority.HIGH,
            created_at=now,
            expires_at=hours_from(now, self._config.high_value_expiry_hours),
        )

    def _email_escalation(
        self, provider: Profile, lead: NotificationRecord, now: datetime
    ) -> Optional[NotificationRecord]:
        """Email copy of a high-value alert, or ``None`` if not deliverable."""
        if not provider.email_notifications:
            logger.debug("%s opted out of email escalations.", provider.profile_id)
            return None
        if not provider.contact.email:
            logger.debug("%s has no contact email; escalation skipped.", provider.profile_id)
            return None
        return NotificationRecord(
            recipient_id=provider.profile_id,
            type=NotificationType.EMAIL_ESCALATION,
            title=lead.title,
            message=lead.message,
            payload={
                **lead.payload,
                "channel": "email",
                "to": provider.contact.email,
                "subject": f"Event alert: {lead.title}",
            },
            priority=Priority.HIGH,
            created_at=now,
            expires_at=hours_from(now, self._config.high_value_expiry_hours),
        )

    def _standard_lead(
        self,
        provider: Profile,
        seeker: Profile,
        score: float,
        relationship_id: Optional[str],
        now: datetime,
    ) -> NotificationRecord:
        name = seeker.display_name or "Attendee"
        return NotificationRecord(
            recipient_id=provider.profile_id,
            type=NotificationType.NEW_LEAD,
            title="New Lead Generated",
            message=f"New lead: {name} ({_pct(score)}% match)",
            payload={
                "score": score,
                "relationship_id": relationship_id,
                "counterpart_id": seeker.profile_id,
                "counterpart_name": seeker.display_name or None,
            },
            priority=Priority.MEDIUM,
            created_at=now,
            expires_at=hours_from(now, self._config.default_expiry_hours),
        )

    def _privileged_match(
        self,
        provider: Profile,
        seeker: Profile,
        score: float,
        reasons: list[str],
        now: datetime,
    ) -> NotificationRecord:
        org = provider.organization or "exhibitor"
        return NotificationRecord(
            recipient_id=seeker.profile_id,
            type=NotificationType.HIGH_VALUE_MATCH,
            title="Premium Match Found",
            message=f"High-value match with {org} ({_pct(score)}% compatibility)",
            payload={
                "score": score,
                "counterpart_id": provider.profile_id,
                "counterpart_organization": provider.organization,
                "counterpart_industry": provider.industry,
                "reasons": list(reasons[:TOP_REASONS]),
            },
            priority=Priority.HIGH,
            created_at=now,
            expires_at=hours_from(now, self._config.default_expiry_hours),
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _team_broadcast(
        self,
        provider: Profile,
        seeker: Profile,
        score: float,
        relationship_id: Optional[str],
        now: datetime,
        outcome: NotificationOutcome,
        deadline: Deadline,
    ) -> None:
        try:
            team = self._gateway.find_team_members(
                provider.organization, exclude_id=provider.profile_id, deadline=deadline
            )
        except StoreError as exc:
            outcome.summary.record_failure(f"team:{provider.organization}", exc)
            return
        for member in team:
            self._append(
                self._team_alert(member, provider, seeker, score, relationship_id, now),
                outcome, deadline,
            )

    def _append(
        self, record: NotificationRecord, outcome: NotificationOutcome, deadline: Deadline
    ) -> None:
        deadline.check("outbox.append")
        try:
            stored = self._store(record)
        except StoreError as exc:
            outcome.summary.record_failure(f"{record.type}:{record.recipient_id}", exc)
            return
        outcome.records.append(stored)
        outcome.summary.record_success()

    def _store(self, record: NotificationRecord) -> NotificationRecord:
        notification_id = self._outbox.append(record)
        return record.model_copy(update={"notification_id": notification_id})
