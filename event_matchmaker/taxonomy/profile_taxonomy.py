"""
Profile categories and the ordinal bands used by organization scoring.

Hierarchy: ``ProfileCategory`` → matching role (provider / seeker).

Providers (exhibitors) offer; seekers (visitors, hosted buyers, VIPs) are
matched to them.  Hosted buyers and VIPs are *privileged* seekers: a strong
match triggers a reciprocal notification to them as well as to the
provider.  Organizers are neither side of a match but belong to an
organization and receive team broadcasts.

Band tables are ordinal encodings of free-text form values.  Unknown or
missing bands fall back to the middle of the scale (``DEFAULT_BAND_LEVEL``).

This module has NO imports from any other ``event_matchmaker`` package.
"""

from enum import StrEnum
from typing import Optional


class ProfileCategory(StrEnum):
    """Registration category of a profile."""

    EXHIBITOR = "exhibitor"
    """Provider side: a company presenting at the event."""

    VISITOR = "visitor"
    """Standard seeker."""

    HOSTED_BUYER = "hosted_buyer"
    """Privileged seeker whose attendance is sponsored by the organizer."""

    VIP = "vip"
    """Privileged seeker with concierge-level handling."""

    ORGANIZER = "organizer"
    """Event staff; receives team broadcasts for their organization."""


class MatchRole(StrEnum):
    PROVIDER = "provider"
    SEEKER = "seeker"


PROVIDER_CATEGORIES: frozenset[ProfileCategory] = frozenset({ProfileCategory.EXHIBITOR})

SEEKER_CATEGORIES: frozenset[ProfileCategory] = frozenset({
    ProfileCategory.VISITOR,
    ProfileCategory.HOSTED_BUYER,
    ProfileCategory.VIP,
})

PRIVILEGED_CATEGORIES: frozenset[ProfileCategory] = frozenset({
    ProfileCategory.HOSTED_BUYER,
    ProfileCategory.VIP,
})

# Categories that receive a team broadcast for their organization.
TEAM_CATEGORIES: frozenset[ProfileCategory] = frozenset({
    ProfileCategory.EXHIBITOR,
    ProfileCategory.ORGANIZER,
})


def role_of(category: Optional[ProfileCategory]) -> Optional[MatchRole]:
    """Return the matching role for ``category``, or ``None`` for organizers."""
    if category in PROVIDER_CATEGORIES:
        return MatchRole.PROVIDER
    if category in SEEKER_CATEGORIES:
        return MatchRole.SEEKER
    return None


def is_complementary(
    provider_category: Optional[ProfileCategory],
    seeker_category: Optional[ProfileCategory],
) -> bool:
    """True when the pair is a provider × seeker pairing."""
    return (
        role_of(provider_category) == MatchRole.PROVIDER
        and role_of(seeker_category) == MatchRole.SEEKER
    )


# ── Ordinal bands ─────────────────────────────────────────────────────────────

DEFAULT_BAND_LEVEL = 3

ORGANIZATION_SIZE_BANDS: dict[str, int] = {
    "1-10":      1,
    "11-50":     2,
    "51-200":    3,
    "201-500":   4,
    "501-1000":  5,
    "1000+":     6,
}

BUDGET_BANDS: dict[str, int] = {
    "under-10k":  1,
    "10k-25k":    2,
    "25k-50k":    3,
    "50k-100k":   4,
    "100k-250k":  5,
    "250k+":      6,
}


class SponsorTier(StrEnum):
    """Exhibitor sponsorship tier, compared against a seeker's budget band."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


SPONSOR_TIER_LEVELS: dict[SponsorTier, int] = {
    SponsorTier.BRONZE:   2,
    SponsorTier.SILVER:   3,
    SponsorTier.GOLD:     4,
    SponsorTier.PLATINUM: 5,
}


def size_level(band: Optional[str]) -> Optional[int]:
    """Ordinal of an organization size band, ``None`` when absent."""
    if not band:
        return None
    return ORGANIZATION_SIZE_BANDS.get(band.strip(), DEFAULT_BAND_LEVEL)


def budget_level(band: Optional[str]) -> Optional[int]:
    """Ordinal of a budget band, ``None`` when absent."""
    if not band:
        return None
    return BUDGET_BANDS.get(band.strip().lower(), DEFAULT_BAND_LEVEL)


def infer_sponsor_tier(size_band: Optional[str]) -> SponsorTier:
    """Infer a tier from organization size when none was purchased."""
    if size_band == "1000+":
        return SponsorTier.PLATINUM
    if size_band == "501-1000":
        return SponsorTier.GOLD
    if size_band == "201-500":
        return SponsorTier.SILVER
    return SponsorTier.BRONZE
