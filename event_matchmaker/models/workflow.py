"""
Nurturing-workflow step models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from event_matchmaker.taxonomy.lead_taxonomy import Priority, WorkflowStepType


class StepConditions(BaseModel):
    """Gates evaluated by whoever executes the step.  Unset means no gate."""

    model_config = ConfigDict(frozen=True)

    wait_for_response_days: Optional[int] = None
    escalate_if_no_response: bool = False
    only_if_no_recent_activity: bool = False
    check_last_interaction_days: Optional[int] = None
    only_if_no_engagement: bool = False
    min_days_since_last_contact: Optional[int] = None
    only_if_still_active: bool = False
    only_if_high_value: bool = False
    escalate_to_management: bool = False


class WorkflowStep(BaseModel):
    """One scheduled touchpoint.

    Attributes:
        step_index: 1-based position in the plan.
        day_offset: Days after the relationship's creation.
        scheduled_for: ``created_at + day_offset``.
        template_id: Message/call/content template to render.
        personalization: Renderer inputs (names, mutual interests, resources).
    """

    model_config = ConfigDict(frozen=True)

    step_index: int
    day_offset: int
    type: WorkflowStepType
    title: str
    description: str
    scheduled_for: datetime
    template_id: str
    priority: Priority
    conditions: StepConditions = StepConditions()
    personalization: dict[str, Any] = {}

    @field_validator("step_index", "day_offset")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"step_index and day_offset must be >= 1, got {v}.")
        return v
