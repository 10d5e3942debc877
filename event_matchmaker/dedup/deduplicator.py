"""
Three-tier duplicate detection for provider × seeker relationships.

Tiers
-----
1. Exact     A relationship already keyed by the unordered pair.
             → exists=True, confidence=1.0.  Blocks creation.

2. Fuzzy     Relationships touching either id in the last 30 days.  For each
             one, the incoming counterpart is compared with the counterpart
             already linked to the shared id:
                 email similarity           × 0.30
               + organization-name sim.     × 0.25
               + display-name sim.          × 0.20
               + exact phone match          × 0.15
               + industry/interest overlap  × 0.10
             ≥ 0.8 → duplicate (exists=True, blocks creation)
             [0.5, 0.8) → non-blocking suggestion

3. Similar   Every relationship in the last 7 days, no identity overlap
             needed; profile-pair similarity:
                 provider industry sim.     × 0.30
               + provider size-band prox.   × 0.20
               + seeker interest sim.       × 0.25
               + exact seeker budget match  × 0.15
               + category pair match        × 0.10
             Top matches ≥ 0.6 are surfaced as advisory suggestions only.

Only tier 1 and high-confidence tier 2 block creation.  Detection returns a
typed ``DuplicateCheck``; it never raises for a detected duplicate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from event_matchmaker.config import DedupConfig
from event_matchmaker.gateway.entity_gateway import EntityGateway
from event_matchmaker.gateway.stores import RelationshipStore
from event_matchmaker.models.profile import Profile
from event_matchmaker.models.relationship import PairKey, Relationship
from event_matchmaker.similarity.strings import (
    band_proximity,
    comparable,
    email_similarity,
    string_similarity,
    token_overlap,
)
from event_matchmaker.taxonomy.profile_taxonomy import size_level
from event_matchmaker.utils.deadline import Deadline, resolve
from event_matchmaker.utils.time_utils import Clock, days_ago, utcnow

logger = logging.getLogger(__name__)

DuplicateTier = Literal["exact", "fuzzy", "similar", "none"]


@dataclass(frozen=True)
class DuplicateCandidate:
    """One existing relationship resembling the requested pair."""

    relationship_id: str
    similarity:      float
    tier:            DuplicateTier


@dataclass(frozen=True)
class DuplicateCheck:
    """Outcome of ``Deduplicator.check_duplicate``.

    Attributes:
        exists:      True when creation must be blocked.
        matched_id:  Relationship id of the blocking (or best) match.
        confidence:  Similarity of the best match; 1.0 for exact.
        suggestions: Human-readable advice, best first.
        tier:        Tier that produced the outcome.
        candidates:  Every candidate above its tier's reporting threshold.
    """

    exists:      bool
    matched_id:  Optional[str] = None
    confidence:  float = 0.0
    suggestions: list[str] = field(default_factory=list)
    tier:        DuplicateTier = "none"
    candidates:  list[DuplicateCandidate] = field(default_factory=list)


def identity_similarity(a: Profile, b: Profile) -> float:
    """Weighted identity resemblance used by the fuzzy tier."""
    score = 0.0
    score += 0.30 * email_similarity(a.contact.email, b.contact.email)
    if comparable(a.organization, b.organization):
        score += 0.25 * string_similarity(a.organization, b.organization)
    if comparable(a.display_name, b.display_name):
        score += 0.20 * string_similarity(a.display_name, b.display_name)
    if a.contact.phone and a.contact.phone == b.contact.phone:
        score += 0.15
    score += 0.10 * token_overlap(
        " ".join(filter(None, (a.industry, a.interests))),
        " ".join(filter(None, (b.industry, b.interests))),
    )
    return min(1.0, score)


def pair_similarity(
    provider: Profile,
    seeker: Profile,
    other_provider: Profile,
    other_seeker: Profile,
) -> float:
    """Profile-pair resemblance used by the similar-recent tier."""
    score = 0.0
    if comparable(provider.industry, other_provider.industry):
        score += 0.30 * string_similarity(provider.industry, other_provider.industry)
    score += 0.20 * band_proximity(
        size_level(provider.organization_size),
        size_level(other_provider.organization_size),
        step=0.2,
        default=0.0,
    )
    if comparable(seeker.interests, other_seeker.interests):
        score += 0.25 * string_similarity(seeker.interests, other_seeker.interests)
    if seeker.budget and seeker.budget == other_seeker.budget:
        score += 0.15
    if (
        provider.category is not None
        and seeker.category is not None
        and provider.category == other_provider.category
        and seeker.category == other_seeker.category
    ):
        score += 0.10
    return min(1.0, score)


class Deduplicator:
    """Exact + fuzzy + similar-recent duplicate detection.

    Args:
        relationships: Relationship store.
        gateway:       Entity gateway for profile lookups.
        config:        Windows and thresholds.
        clock:         Source of "now".
    """

    def __init__(
        self,
        relationships: RelationshipStore,
        gateway: EntityGateway,
        config: DedupConfig = DedupConfig(),
        clock: Clock = utcnow,
    ) -> None:
        self._relationships = relationships
        self._gateway = gateway
        self._config = config
        self._clock = clock

    # ── Tier 1 ────────────────────────────────────────────────────────────────

    def exact_match(self, pair: PairKey, deadline: Optional[Deadline] = None) -> Optional[Relationship]:
        resolve(deadline).check("relationships.find_pair")
        return self._relationships.find_pair(pair.provider_id, pair.seeker_id)

    def has_relationship(self, pair: PairKey, deadline: Optional[Deadline] = None) -> bool:
        """Fast existence check used by batch generation."""
        resolve(deadline).check("relationships.exists")
        return self._relationships.exists(pair.provider_id, pair.seeker_id)

    # ── Entry point ───────────────────────────────────────────────────────────

    def check_duplicate(
        self,
        provider_id: str,
        seeker_id: str,
        deadline: Optional[Deadline] = None,
    ) -> DuplicateCheck:
        """Run the three tiers in order, stopping at the first blocking match."""
        deadline = resolve(deadline)
        pair = PairKey(provider_id, seeker_id)

        existing = self.exact_match(pair, deadline)
        if existing is not None:
            logger.info("Exact duplicate for %s: %s", pair.canonical, existing.relationship_id)
            return DuplicateCheck(
                exists=True,
                matched_id=existing.relationship_id,
                confidence=1.0,
                suggestions=["Exact duplicate found - consider updating existing relationship instead"],
                tier="exact",
                candidates=[DuplicateCandidate(existing.relationship_id, 1.0, "exact")],
            )

        provider = self._gateway.get_profile(provider_id, deadline)
        seeker = self._gateway.get_profile(seeker_id, deadline)
        if provider is None or seeker is None:
            # Without both profiles there is nothing to compare.
            return DuplicateCheck(exists=False)

        now = self._clock()
        profiles: dict[str, Optional[Profile]] = {provider_id: provider, seeker_id: seeker}

        fuzzy = self._fuzzy_candidates(pair, provider, seeker, profiles, now, deadline)
        if fuzzy and fuzzy[0].similarity >= self._config.block_threshold:
            best = fuzzy[0]
            logger.info("Fuzzy duplicate for %s: %s (%.2f)",
                        pair.canonical, best.relationship_id, best.similarity)
            return DuplicateCheck(
                exists=True,
                matched_id=best.relationship_id,
                confidence=best.similarity,
                suggestions=[
                    f"High-confidence duplicate detected ({round(best.similarity * 100)}% match)",
                    "Consider merging relationship data or updating existing relationship",
                ],
                tier="fuzzy",
                candidates=fuzzy,
            )

        suggestions = [
            f"Possible duplicate: relationship {c.relationship_id} "
            f"({round(c.similarity * 100)}% match)"
            for c in fuzzy
        ]

        similar = self._similar_recent(pair, provider, seeker, profiles, now, deadline)
        if similar:
            suggestions.append(f"{len(similar)} similar relationships found")
            suggestions.append("Review existing relationships before creating a new one")
            for candidate, label in similar[: self._config.max_similar_suggestions]:
                suggestions.append(
                    f"Similar relationship: {label} ({round(candidate.similarity * 100)}% match)"
                )

        candidates = fuzzy + [c for c, _ in similar]
        if not candidates:
            return DuplicateCheck(exists=False)

        best = max(candidates, key=lambda c: c.similarity)
        return DuplicateCheck(
            exists=False,
            matched_id=best.relationship_id,
            confidence=best.similarity,
            suggestions=suggestions,
            tier=best.tier,
            candidates=candidates,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _profile(
        self,
        profile_id: str,
        profiles: dict[str, Optional[Profile]],
        deadline: Deadline,
    ) -> Optional[Profile]:
        if profile_id not in profiles:
            profiles[profile_id] = self._gateway.get_profile(profile_id, deadline)
        return profiles[profile_id]

    def _fuzzy_candidates(
        self,
        pair: PairKey,
        provider: Profile,
        seeker: Profile,
        profiles: dict[str, Optional[Profile]],
        now: datetime,
        deadline: Deadline,
    ) -> list[DuplicateCandidate]:
        deadline.check("relationships.find_touching")
        since = days_ago(now, self._config.fuzzy_lookback_days)
        touching = self._relationships.find_touching(
            (pair.provider_id, pair.seeker_id), since
        )

        candidates: list[DuplicateCandidate] = []
        for rel in touching:
            if rel.pair.canonical == pair.canonical:
                continue
            # Compare the incoming counterpart with the one already linked
            # to the shared id.
            if rel.pair.touches(pair.provider_id):
                incoming = seeker
                linked_id = rel.seeker_id if rel.provider_id == pair.provider_id else rel.provider_id
            else:
                incoming = provider
                linked_id = rel.provider_id if rel.seeker_id == pair.seeker_id else rel.seeker_id
            linked = self._profile(linked_id, profiles, deadline)
            if linked is None:
                continue
            similarity = identity_similarity(incoming, linked)
            if similarity >= self._config.suggest_threshold:
                candidates.append(DuplicateCandidate(rel.relationship_id, similarity, "fuzzy"))

        candidates.sort(key=lambda c: (-c.similarity, c.relationship_id))
        return candidates

    def _similar_recent(
        self,
        pair: PairKey,
        provider: Profile,
        seeker: Profile,
        profiles: dict[str, Optional[Profile]],
        now: datetime,
        deadline: Deadline,
    ) -> list[tuple[DuplicateCandidate, str]]:
        deadline.check("relationships.find_recent")
        since = days_ago(now, self._config.similar_lookback_days)

        scored: list[tuple[DuplicateCandidate, str]] = []
        for rel in self._relationships.find_recent(since):
            if rel.pair.canonical == pair.canonical:
                continue
            other_provider = self._profile(rel.provider_id, profiles, deadline)
            other_seeker = self._profile(rel.seeker_id, profiles, deadline)
            if other_provider is None or other_seeker is None:
                continue
            similarity = pair_similarity(provider, seeker, other_provider, other_seeker)
            if similarity >= self._config.similar_threshold:
                label = (
                    f"{other_provider.display_name or other_provider.profile_id} + "
                    f"{other_seeker.display_name or other_seeker.profile_id}"
                )
                scored.append((DuplicateCandidate(rel.relationship_id, similarity, "similar"), label))

        scored.sort(key=lambda item: (-item[0].similarity, item[0].relationship_id))
        return scored
