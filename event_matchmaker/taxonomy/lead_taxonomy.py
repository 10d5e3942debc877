"""
Relationship (lead), notification and workflow vocabularies.

``priority_for_score`` and ``confidence_for_score`` are the single mapping
from a score in [0, 1] to its coarse bucket; both are exhaustive and
non-overlapping (>= 0.8 high, >= 0.6 medium, otherwise low).

This module has NO imports from any other ``event_matchmaker`` package.
"""

from enum import StrEnum

HIGH_SCORE_THRESHOLD = 0.8
MEDIUM_SCORE_THRESHOLD = 0.6


class RelationshipStatus(StrEnum):
    """Lifecycle of a persisted relationship."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    CLOSED = "closed"


class RelationshipSource(StrEnum):
    """How the relationship was captured."""

    SCAN = "scan"
    """Badge scan at the booth."""

    MANUAL = "manual"
    """Entered by hand."""

    RECOMMENDATION = "recommendation"
    """Converted from a system recommendation."""


class Priority(StrEnum):
    """Follow-up priority.  ``CRITICAL`` is reserved for notifications and
    workflow steps; relationships only ever carry low/medium/high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConfidenceBucket(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NotificationType(StrEnum):
    """Outbox record types."""

    HIGH_VALUE_LEAD = "high-value-lead"
    TEAM_ALERT = "team-alert"
    EMAIL_ESCALATION = "email-escalation"
    NEW_LEAD = "new-lead"
    HIGH_VALUE_MATCH = "high-value-match"
    CUSTOM = "custom"
    WORKFLOW_UPDATE = "workflow-update"


class WorkflowStepType(StrEnum):
    MESSAGE = "message"
    CALL = "call"
    CONTENT = "content"


def priority_for_score(score: float) -> Priority:
    """Map a score to relationship priority (high / medium / low)."""
    if score >= HIGH_SCORE_THRESHOLD:
        return Priority.HIGH
    if score >= MEDIUM_SCORE_THRESHOLD:
        return Priority.MEDIUM
    return Priority.LOW


def confidence_for_score(score: float) -> ConfidenceBucket:
    """Map a score to a recommendation confidence bucket."""
    if score >= HIGH_SCORE_THRESHOLD:
        return ConfidenceBucket.HIGH
    if score >= MEDIUM_SCORE_THRESHOLD:
        return ConfidenceBucket.MEDIUM
    return ConfidenceBucket.LOW
