"""
Relationship (lead) models.

``Relationship`` is the persisted, de-duplicated link between a provider
and a seeker.  At most one exists per unordered pair: ``PairKey.canonical``
is the value the store's unique constraint is declared on, so the
application-level duplicate check and the storage guard agree on identity.

``NewRelationship`` is the creation request.  ``NewRelationship.parse``
converts pydantic's ``ValidationError`` into the classified
``RelationshipValidationError`` so callers see one error kind for every
malformed input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from event_matchmaker.errors import RelationshipValidationError
from event_matchmaker.taxonomy.lead_taxonomy import (
    Priority,
    RelationshipSource,
    RelationshipStatus,
)

MAX_NOTES_LENGTH = 2000
MAX_TAGS = 20


class PairKey(NamedTuple):
    """(provider, seeker) identity of a candidate or persisted pair."""

    provider_id: str
    seeker_id: str

    @property
    def canonical(self) -> str:
        """Order-independent key: the two ids sorted and joined with ``|``."""
        a, b = sorted((self.provider_id, self.seeker_id))
        return f"{a}|{b}"

    @property
    def is_self_pair(self) -> bool:
        return self.provider_id == self.seeker_id

    def touches(self, profile_id: str) -> bool:
        return profile_id in (self.provider_id, self.seeker_id)


class Relationship(BaseModel):
    """A persisted lead.

    Attributes:
        relationship_id: Store-assigned identity (uuid4 hex).
        provider_id: Exhibitor side of the pair.
        seeker_id: Attendee side of the pair.
        score: Compatibility score in [0, 1] at creation time.
        status: Lifecycle status.
        priority: Derived from ``score``; never ``critical``.
        source: How the lead was captured.
        tags: Free-form labels.
        notes: Free-form notes.
    """

    model_config = ConfigDict(frozen=True)

    relationship_id: str
    provider_id: str
    seeker_id: str
    score: float
    status: RelationshipStatus = RelationshipStatus.NEW
    priority: Priority = Priority.LOW
    source: RelationshipSource = RelationshipSource.MANUAL
    tags: list[str] = []
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("score")
    @classmethod
    def validate_score(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"score must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: Priority) -> Priority:
        if v == Priority.CRITICAL:
            raise ValueError("relationships carry low/medium/high priority only.")
        return v

    @model_validator(mode="after")
    def validate_pair(self) -> "Relationship":
        if self.provider_id == self.seeker_id:
            raise ValueError("provider_id and seeker_id must differ.")
        return self

    @property
    def pair(self) -> PairKey:
        return PairKey(self.provider_id, self.seeker_id)


class NewRelationship(BaseModel):
    """Creation request for a relationship."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider_id: str
    seeker_id: str
    source: RelationshipSource = RelationshipSource.MANUAL
    status: RelationshipStatus = RelationshipStatus.NEW
    tags: list[str] = []
    notes: Optional[str] = None

    @field_validator("provider_id", "seeker_id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("id must not be empty.")
        return v.strip()

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_NOTES_LENGTH:
            raise ValueError(f"notes must be at most {MAX_NOTES_LENGTH} characters.")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        if len(v) > MAX_TAGS:
            raise ValueError(f"at most {MAX_TAGS} tags allowed, got {len(v)}.")
        return [t.strip() for t in v if t and t.strip()]

    @model_validator(mode="after")
    def validate_distinct(self) -> "NewRelationship":
        if self.provider_id == self.seeker_id:
            raise ValueError("provider_id and seeker_id must differ.")
        return self

    @property
    def pair(self) -> PairKey:
        return PairKey(self.provider_id, self.seeker_id)

    @classmethod
    def parse(cls, data: dict[str, Any]) -> "NewRelationship":
        """Validate raw input, raising ``RelationshipValidationError`` on failure."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise RelationshipValidationError(problems) from exc
