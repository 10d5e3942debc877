"""
Recommendation model.

A recommendation is a proposed, not-yet-confirmed relationship.  It is
created in batch by the recommendation generator and mutated exactly once,
when converted into a relationship (``used=True`` plus the new
relationship's id).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from event_matchmaker.models.relationship import PairKey
from event_matchmaker.taxonomy.lead_taxonomy import ConfidenceBucket


class Recommendation(BaseModel):
    """A scored provider × seeker proposal.

    Attributes:
        recommendation_id: uuid4 hex.
        score: Compatibility score in [0, 1].
        confidence: Coarse bucket of ``score``.
        reasons: Human-readable factor explanations, factor-table order.
        used: ``True`` once converted into a relationship.
        converted_relationship_id: Set together with ``used``.
    """

    model_config = ConfigDict(frozen=True)

    recommendation_id: str
    provider_id: str
    seeker_id: str
    score: float
    confidence: ConfidenceBucket
    reasons: list[str] = []
    used: bool = False
    converted_relationship_id: Optional[str] = None
    created_at: datetime

    @field_validator("score")
    @classmethod
    def validate_score(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"score must be in [0.0, 1.0], got {v}.")
        return v

    @model_validator(mode="after")
    def validate_conversion(self) -> "Recommendation":
        if self.converted_relationship_id is not None and not self.used:
            raise ValueError("converted_relationship_id requires used=True.")
        return self

    @property
    def pair(self) -> PairKey:
        return PairKey(self.provider_id, self.seeker_id)
