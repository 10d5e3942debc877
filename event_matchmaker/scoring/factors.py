"""
Compatibility factors: one pure function per weighted factor.

Every factor has the signature ``(provider, seeker, history) -> float`` and
returns a value in [0, 1].  Missing profile attributes never raise; each
factor falls back to the default documented below.  A factor that needs a
history signal the store failed to load raises ``SignalUnavailableError``,
which the scorer records as ``"<factor>_error"``.

Factor definitions
------------------
industry_alignment (provider.industry vs seeker.interests):
    1.0 when the industry equals an interest tag or appears verbatim in
    the interest text (case-insensitive).  Otherwise
    min(0.8, 0.3 + 0.2 × partial token matches).  0.3 if either is absent.

organization_compatibility:
    0.40 × size-band proximity     max(0, 1 − 0.15·Δ), 0.5 if a band is missing
  + 0.35 × budget/tier alignment   max(0, 1 − 0.20·Δ), 0.5 if no budget
  + 0.25 × business-model match    clamp(1.5 − 0.1·Δlean)
    The provider's tier is its purchased sponsor tier, else inferred from
    organization size.

behavioral:
    0.4 × activity compatibility   1 − |activity_p − activity_s|, 0.5 if unknown
  + 0.3 × profile completeness     mean of both sides
  + 0.3 × communication style      1 − |formality_p − formality_s|, 0.5 if no text
    activity = min(1, 0.1 × check-ins + 0.05 × profile views).

network:
    0.8 if a relationship already links the pair, else
    min(0.6, 0.2 × same-industry peers); 0.1 when the peer count is unknown.

contextual:
    +0.4 when both sides were active today, +0.3 for a provider × seeker
    pairing, + 0.3 × time-window compatibility (1.0 after a shared session,
    else 1 − |Δtz| / 12 from timezone offsets, else 0.8).  Capped at 1.0.

semantic (token overlap against the seeker's interests):
    0.4 × biography + 0.3 × organization name + 0.3 × position.
"""

from __future__ import annotations

from event_matchmaker.errors import SignalUnavailableError
from event_matchmaker.models.history import HistorySignals
from event_matchmaker.models.profile import Profile
from event_matchmaker.similarity.strings import (
    band_proximity,
    partial_token_matches,
    token_overlap,
    tokenize,
)
from event_matchmaker.taxonomy.profile_taxonomy import (
    SPONSOR_TIER_LEVELS,
    budget_level,
    infer_sponsor_tier,
    is_complementary,
    size_level,
)

MISSING_DEFAULT = 0.5

_B2B_INDICATORS = frozenset({"enterprise", "corporate", "saas", "solution", "platform"})
_B2C_INDICATORS = frozenset({"consumer", "retail", "individual", "personal", "lifestyle"})

_FORMAL_KEYWORDS = frozenset({"enterprise", "corporate", "executive", "strategic", "management"})
_CASUAL_KEYWORDS = frozenset({"startup", "innovative", "creative", "dynamic", "flexible"})

# Field → weight for profile completeness (weights sum to 1.0)
_COMPLETENESS_WEIGHTS: dict[str, float] = {
    "display_name": 0.20,
    "organization": 0.20,
    "position":     0.15,
    "industry":     0.15,
    "biography":    0.15,
    "email":        0.10,
    "social":       0.05,
}
_MIN_BIOGRAPHY_LEN = 50


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def _require(history: HistorySignals, factor: str, *signals: str) -> None:
    failure = history.first_failure(*signals)
    if failure is not None:
        signal, reason = failure
        raise SignalUnavailableError(factor, signal, reason)


# ── Industry / interest alignment ─────────────────────────────────────────────

def industry_alignment(provider: Profile, seeker: Profile, history: HistorySignals) -> float:
    if not provider.industry or not seeker.interests:
        return 0.3

    industry = provider.industry.strip().lower()
    if industry in seeker.interest_tags or industry in seeker.interests.lower():
        return 1.0

    matches = partial_token_matches(provider.industry, seeker.interests)
    return min(0.8, 0.3 + 0.2 * matches)


# ── Organization compatibility ────────────────────────────────────────────────

def _business_model_lean(profile: Profile) -> int:
    """B2B indicator hits minus B2C indicator hits across descriptive fields."""
    tokens = tokenize(" ".join(filter(None, (
        profile.industry, profile.organization, profile.biography,
    ))))
    return len(tokens & _B2B_INDICATORS) - len(tokens & _B2C_INDICATORS)


def business_model_alignment(provider: Profile, seeker: Profile) -> float:
    diff = abs(_business_model_lean(provider) - _business_model_lean(seeker))
    return _clamp(0.5 + (1.0 - diff * 0.1))


def budget_alignment(provider: Profile, seeker: Profile) -> float:
    tier = provider.sponsor_tier or infer_sponsor_tier(provider.organization_size)
    return band_proximity(budget_level(seeker.budget), SPONSOR_TIER_LEVELS[tier], step=0.2)


def organization_compatibility(provider: Profile, seeker: Profile, history: HistorySignals) -> float:
    size = band_proximity(
        size_level(provider.organization_size),
        size_level(seeker.organization_size),
        step=0.15,
    )
    budget = budget_alignment(provider, seeker)
    business = business_model_alignment(provider, seeker)
    return min(1.0, size * 0.40 + budget * 0.35 + business * 0.25)


# ── Behavioral signals ────────────────────────────────────────────────────────

def activity_level(checkins: int | None, profile_views: int | None) -> float | None:
    """Normalized engagement level, ``None`` when neither count is known."""
    if checkins is None and profile_views is None:
        return None
    return min(1.0, (checkins or 0) * 0.1 + (profile_views or 0) * 0.05)


def profile_completeness(profile: Profile) -> float:
    """Weighted share of filled-in profile fields; 0.5 for an unknown profile."""
    if profile.is_placeholder:
        return MISSING_DEFAULT
    filled = {
        "display_name": bool(profile.display_name),
        "organization": bool(profile.organization),
        "position":     bool(profile.position),
        "industry":     bool(profile.industry),
        "biography":    bool(profile.biography) and len(profile.biography or "") > _MIN_BIOGRAPHY_LEN,
        "email":        bool(profile.contact.email),
        "social":       bool(profile.social_links.linkedin or profile.social_links.website),
    }
    return sum(w for field_name, w in _COMPLETENESS_WEIGHTS.items() if filled[field_name])


def communication_formality(profile: Profile) -> float | None:
    """0.5 ± 0.1 per formal/casual keyword; ``None`` when there is no text."""
    text = " ".join(filter(None, (
        profile.biography, profile.position, profile.organization, profile.industry,
    )))
    if not text:
        return None
    tokens = tokenize(text)
    return 0.5 + 0.1 * len(tokens & _FORMAL_KEYWORDS) - 0.1 * len(tokens & _CASUAL_KEYWORDS)


def behavioral_signals(provider: Profile, seeker: Profile, history: HistorySignals) -> float:
    _require(
        history, "behavioral",
        "provider_checkins", "seeker_checkins",
        "provider_profile_views", "seeker_profile_views",
    )

    activity_p = activity_level(history.provider_checkins, history.provider_profile_views)
    activity_s = activity_level(history.seeker_checkins, history.seeker_profile_views)
    if activity_p is None or activity_s is None:
        activity = MISSING_DEFAULT
    else:
        activity = 1.0 - abs(activity_p - activity_s)

    completeness = (profile_completeness(provider) + profile_completeness(seeker)) / 2

    formality_p = communication_formality(provider)
    formality_s = communication_formality(seeker)
    if formality_p is None or formality_s is None:
        style = MISSING_DEFAULT
    else:
        style = max(0.0, 1.0 - abs(formality_p - formality_s))

    return _clamp(activity * 0.4 + completeness * 0.3 + style * 0.3)


# ── Network effect ────────────────────────────────────────────────────────────

def network_effect(provider: Profile, seeker: Profile, history: HistorySignals) -> float:
    _require(history, "network", "relationship_exists")
    if history.relationship_exists:
        return 0.8

    _require(history, "network", "industry_peer_count")
    if history.industry_peer_count is None:
        return 0.1
    return min(0.6, 0.2 * history.industry_peer_count)


# ── Contextual relevance ──────────────────────────────────────────────────────

def time_window_compatibility(provider: Profile, seeker: Profile, history: HistorySignals) -> float:
    if history.shared_sessions:
        return 1.0
    if provider.timezone_offset_hours is not None and seeker.timezone_offset_hours is not None:
        gap = abs(provider.timezone_offset_hours - seeker.timezone_offset_hours)
        return max(0.0, 1.0 - gap / 12.0)
    return 0.8


def contextual_relevance(provider: Profile, seeker: Profile, history: HistorySignals) -> float:
    _require(
        history, "contextual",
        "provider_active_today", "seeker_active_today", "shared_sessions",
    )
    value = 0.0
    if history.provider_active_today and history.seeker_active_today:
        value += 0.4
    if is_complementary(provider.category, seeker.category):
        value += 0.3
    value += 0.3 * time_window_compatibility(provider, seeker, history)
    return min(1.0, value)


# ── Semantic similarity ───────────────────────────────────────────────────────

def semantic_similarity(provider: Profile, seeker: Profile, history: HistorySignals) -> float:
    interests = seeker.interests
    return (
        token_overlap(provider.biography, interests)      * 0.4
        + token_overlap(provider.organization, interests) * 0.3
        + token_overlap(provider.position, interests)     * 0.3
    )


def historical_success(provider: Profile, seeker: Profile) -> float:
    """Heuristic success likelihood derived from both sides' completeness."""
    return (profile_completeness(provider) + profile_completeness(seeker)) / 2 * 0.8
