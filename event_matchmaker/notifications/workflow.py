"""
Nurturing-workflow planner.

``plan_workflow(relationship, provider, seeker)`` turns a scored
relationship into a fixed schedule of follow-up touchpoints:

    step  day  type     template
    ────  ───  ───────  ────────────────────────────────────────────────────
      1     1  message  initial / premium / tech-focused / sustainability
      2     2  call     personal_call        (score > 0.7)
                message  value_proposition   (otherwise)
      3     4  content  educational_content  titled by interest bucket
      4     7  content  educational_content  with bucket resources
      5    10  message  exclusive_invitation (score > 0.7) / progress_check
      6    14  message  social_proof
      7    21  call     executive_outreach   (score > 0.7 only)

Interest buckets are detected by keyword in the seeker's interests.
Planning is pure: no store access, no clock.  ``scheduled_for`` is the
relationship's ``created_at`` plus the day offset.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from event_matchmaker.models.profile import Profile
from event_matchmaker.models.relationship import Relationship
from event_matchmaker.models.workflow import StepConditions, WorkflowStep
from event_matchmaker.similarity.strings import shared_tokens
from event_matchmaker.taxonomy.lead_taxonomy import Priority, WorkflowStepType
from event_matchmaker.utils.time_utils import to_iso

HIGH_VALUE_WORKFLOW_THRESHOLD = 0.7
MAX_MUTUAL_INTERESTS = 3

# Keyword buckets, checked in order; first hit wins.
OUTREACH_BUCKETS: dict[str, tuple[str, ...]] = {
    "technology":     ("technology", "innovation"),
    "sustainability": ("sustainability", "green"),
}

INSIGHT_TITLES: list[tuple[str, str, str]] = [
    ("marketing",  "Marketing Excellence Guide", "Share marketing best practices and success stories"),
    ("technology", "Technology Trends Report",   "Latest technology trends and innovation insights"),
    ("leadership", "Leadership Insights",        "Executive leadership strategies and industry perspectives"),
]

RESOURCE_BUCKETS: list[tuple[tuple[str, ...], dict[str, str]]] = [
    (("marketing", "digital"), {
        "title": "Digital Marketing Excellence Guide",
        "description": "Comprehensive guide to modern marketing strategies",
        "content_type": "guide",
    }),
    (("technology", "innovation"), {
        "title": "Technology Innovation Report",
        "description": "Latest trends in technology and innovation",
        "content_type": "report",
    }),
    (("sustainability", "green"), {
        "title": "Sustainability Best Practices",
        "description": "Guide to implementing sustainable business practices",
        "content_type": "whitepaper",
    }),
]

DEFAULT_RESOURCE = {
    "title": "Industry Insights Newsletter",
    "description": "Curated insights for your industry",
    "content_type": "newsletter",
}


def is_high_value(score: float) -> bool:
    return score > HIGH_VALUE_WORKFLOW_THRESHOLD


def mutual_interests(provider: Profile, seeker: Profile) -> list[str]:
    """Up to three tokens (len > 3) shared by provider and seeker interest text."""
    provider_text = " ".join(filter(None, [provider.industry, provider.interests]))
    return shared_tokens(provider_text, seeker.interests)[:MAX_MUTUAL_INTERESTS]


def outreach_bucket(interests: Optional[str]) -> Optional[str]:
    text = (interests or "").lower()
    for bucket, keywords in OUTREACH_BUCKETS.items():
        if any(k in text for k in keywords):
            return bucket
    return None


def insight_title(interests: Optional[str]) -> tuple[str, str]:
    text = (interests or "").lower()
    for keyword, title, description in INSIGHT_TITLES:
        if keyword in text:
            return title, description
    return "Industry Insights", "Share relevant industry insights and resources"


def personalized_resource(interests: Optional[str]) -> dict[str, str]:
    text = (interests or "").lower()
    for keywords, resource in RESOURCE_BUCKETS:
        if any(k in text for k in keywords):
            return dict(resource)
    return dict(DEFAULT_RESOURCE)


def plan_workflow(
    relationship: Relationship,
    provider: Profile,
    seeker: Profile,
) -> list[WorkflowStep]:
    """Build the nurturing schedule for one relationship.

    Args:
        relationship: Source of score and ``created_at``.
        provider:     Provider profile (organization, position, industry).
        seeker:       Seeker profile (name, interests, size band).

    Returns:
        Steps in day order; seven for score > 0.7, otherwise six.
    """
    score = relationship.score
    high = is_high_value(score)
    base: dict[str, Any] = {
        "attendee_name": seeker.display_name or None,
        "company_name": provider.organization,
        "exhibitor_title": provider.position,
        "mutual_interests": mutual_interests(provider, seeker),
    }

    def step(
        index: int,
        day: int,
        kind: WorkflowStepType,
        title: str,
        description: str,
        template_id: str,
        priority: Priority,
        conditions: StepConditions = StepConditions(),
        **extra: Any,
    ) -> WorkflowStep:
        return WorkflowStep(
            step_index=index,
            day_offset=day,
            type=kind,
            title=title,
            description=description,
            scheduled_for=relationship.created_at + timedelta(days=day),
            template_id=template_id,
            priority=priority,
            conditions=conditions,
            personalization={**base, **extra},
        )

    steps = [
        _initial_contact(step, seeker, high),
        _follow_up(step, seeker, high),
    ]

    title, description = insight_title(seeker.interests)
    steps.append(step(
        3, 4, WorkflowStepType.CONTENT, title, description,
        "educational_content", Priority.MEDIUM,
        industry=provider.industry,
        interests=seeker.interests,
        company_size=seeker.organization_size,
    ))

    resource = personalized_resource(seeker.interests)
    steps.append(step(
        4, 7, WorkflowStepType.CONTENT, resource["title"], resource["description"],
        "educational_content", Priority.MEDIUM,
        resource=resource,
    ))

    steps.append(step(
        5, 10, WorkflowStepType.MESSAGE,
        "Exclusive Invitation" if high else "Progress Check-in",
        "Extend exclusive invitation to special event or meeting" if high
        else "Check in on progress and offer additional assistance",
        "exclusive_invitation" if high else "progress_check",
        Priority.HIGH if high else Priority.MEDIUM,
        StepConditions(only_if_no_recent_activity=True, check_last_interaction_days=7),
    ))

    steps.append(step(
        6, 14, WorkflowStepType.MESSAGE,
        "Success Stories & Testimonials",
        "Share success stories and testimonials",
        "social_proof", Priority.MEDIUM,
        StepConditions(only_if_no_engagement=True, min_days_since_last_contact=10),
    ))

    if high:
        steps.append(step(
            7, 21, WorkflowStepType.CALL,
            "Executive Check-in",
            "Final executive-level check-in call",
            "executive_outreach", Priority.HIGH,
            StepConditions(
                only_if_still_active=True,
                only_if_high_value=True,
                escalate_to_management=True,
            ),
        ))
    return steps


def _initial_contact(step, seeker: Profile, high: bool) -> WorkflowStep:
    name = seeker.display_name or "there"
    if high:
        template = "premium_outreach"
        title = "VIP Introduction"
        description = f"Premium personalized outreach to {name} highlighting exclusive opportunities"
    else:
        template = "initial_outreach"
        title = "Personalized Introduction"
        description = f"Send a tailored introduction to {name}"

    bucket = outreach_bucket(seeker.interests)
    if bucket == "technology":
        template = "tech_focused_outreach"
        description += " with technology focus"
    elif bucket == "sustainability":
        template = "sustainability_outreach"
        description += " emphasizing sustainability initiatives"

    return step(
        1, 1, WorkflowStepType.MESSAGE, title, description, template,
        Priority.CRITICAL if high else Priority.HIGH,
    )


def _follow_up(step, seeker: Profile, high: bool) -> WorkflowStep:
    if high:
        kind, title, template = WorkflowStepType.CALL, "Personal Follow-up Call", "personal_call"
        description = "Schedule a personal call to discuss collaboration opportunities"
    else:
        kind, title, template = WorkflowStepType.MESSAGE, "Value Proposition Follow-up", "value_proposition"
        description = "Share detailed value proposition and case studies"
    if "networking" in (seeker.interests or "").lower():
        description += " with networking opportunities"
    return step(
        2, 2, kind, title, description, template,
        Priority.CRITICAL if high else Priority.HIGH,
        StepConditions(wait_for_response_days=3, escalate_if_no_response=True),
    )


def schedule_summary(steps: list[WorkflowStep]) -> list[dict[str, Any]]:
    """Flatten steps for display (CLI, logs)."""
    return [
        {
            "step": s.step_index,
            "day": s.day_offset,
            "type": str(s.type),
            "title": s.title,
            "template": s.template_id,
            "priority": str(s.priority),
            "scheduled_for": to_iso(s.scheduled_for),
        }
        for s in steps
    ]
