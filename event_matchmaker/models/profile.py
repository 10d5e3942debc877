"""
Profile model: the strict schema for both sides of a match.

Profiles are owned by an external collaborator (registration, CRM); the
matchmaker only reads them.  Raw store rows are validated into ``Profile``
exactly once, at the entity gateway boundary, so every downstream component
works with typed, explicit-optional fields instead of loosely-shaped dicts.

Missing attributes are always ``None`` (never empty-string sentinels) so
scoring can apply its per-factor defaults.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from event_matchmaker.taxonomy.profile_taxonomy import ProfileCategory, SponsorTier

logger = logging.getLogger(__name__)

_TAG_SPLIT = re.compile(r"[,;]+")


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class ContactInfo(BaseModel):
    """Contact channels.

    Email is lower-cased on the way in.  A value that does not look like
    ``local@domain`` (``"n/a"``, ``"tbd"``) is logged and dropped to ``None``
    so one clerical entry never hides the whole profile.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        v = _blank_to_none(v)
        if v is None:
            return None
        if v.count("@") != 1 or v.startswith("@") or v.endswith("@"):
            logger.warning("Ignoring malformed email %r.", v)
            return None
        return v.lower()

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class SocialLinks(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None


class Profile(BaseModel):
    """A registered participant (exhibitor, visitor, buyer, VIP, organizer).

    Attributes:
        profile_id: Immutable identity.
        display_name: Person's name as shown on the badge.
        organization: Company / organization name.
        category: Registration category; ``None`` for placeholders.
        industry: Free-text industry, e.g. ``"Technology"``.
        organization_size: Size band, e.g. ``"51-200"``.
        interests: Free-text interest tags, comma or semicolon separated.
        budget: Budget band, e.g. ``"50k-100k"``.
        position: Job title.
        biography: Free-text bio.
        sponsor_tier: Purchased sponsorship tier (exhibitors only).
        timezone_offset_hours: UTC offset of the participant's home timezone.
        email_notifications: ``False`` opts out of email escalations.
        contact: Email / phone.
        social_links: LinkedIn / Twitter / website.
        last_active_at: Most recent activity seen by the owning system.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    profile_id: str
    display_name: str = ""
    organization: Optional[str] = None
    category: Optional[ProfileCategory] = None
    industry: Optional[str] = None
    organization_size: Optional[str] = None
    interests: Optional[str] = None
    budget: Optional[str] = None
    position: Optional[str] = None
    biography: Optional[str] = None
    sponsor_tier: Optional[SponsorTier] = None
    timezone_offset_hours: Optional[float] = None
    email_notifications: bool = True
    contact: ContactInfo = ContactInfo()
    social_links: SocialLinks = SocialLinks()
    last_active_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("profile_id")
    @classmethod
    def validate_profile_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("profile_id must not be empty.")
        return v.strip()

    @field_validator(
        "organization", "industry", "organization_size", "interests",
        "budget", "position", "biography",
    )
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)

    @field_validator("timezone_offset_hours")
    @classmethod
    def validate_timezone_offset(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not -12.0 <= v <= 14.0:
            raise ValueError(f"timezone_offset_hours must be in [-12, 14], got {v}.")
        return v

    @property
    def interest_tags(self) -> list[str]:
        """Lower-cased, de-blanked interest tags in their original order."""
        if not self.interests:
            return []
        return [t.strip().lower() for t in _TAG_SPLIT.split(self.interests) if t.strip()]

    @property
    def is_placeholder(self) -> bool:
        return self.category is None and not self.display_name

    @classmethod
    def placeholder(cls, profile_id: str) -> "Profile":
        """Id-only stand-in for a profile the entity store does not know.

        Scoring a placeholder exercises every factor's missing-data default.
        """
        return cls(profile_id=profile_id)
