"""
Tests for event_matchmaker/dedup/deduplicator.py.

What we test
------------
check_duplicate():
  - Exact tier: an existing record for the pair (either order) → exists,
    confidence 1.0, tier "exact".
  - Fuzzy tier: a near-identical counterpart already linked to the shared
    provider → blocking duplicate (>= 0.8).
  - Fuzzy suggestion: a moderately similar counterpart (0.5-0.8) → advisory
    suggestion only, creation not blocked.
  - Similar tier: a look-alike pair with no shared ids → advisory only.
  - Fresh pair with nothing around it → exists=False, tier "none".
  - Unknown profiles → exists=False.

identity_similarity():
  - Identical identities score 1.0.
  - Non-Latin names are compared letter by letter, and fields with no
    letters or digits are skipped.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable

import pytest

from event_matchmaker.db.repositories.profile_repo import ProfileRepository
from event_matchmaker.db.repositories.relationship_repo import RelationshipRepository
from event_matchmaker.dedup.deduplicator import Deduplicator, identity_similarity
from event_matchmaker.gateway.entity_gateway import EntityGateway
from event_matchmaker.models.profile import ContactInfo
from event_matchmaker.models.relationship import Relationship


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def relationships(in_memory_db) -> RelationshipRepository:
    return RelationshipRepository(in_memory_db)


@pytest.fixture
def dedup(in_memory_db, relationships, fixed_clock) -> Deduplicator:
    gateway = EntityGateway(ProfileRepository(in_memory_db))
    return Deduplicator(relationships, gateway, clock=fixed_clock)


@pytest.fixture
def link(relationships, fixed_clock) -> Callable[..., Relationship]:
    """Insert a relationship created ``days_old`` days before the fixed clock."""

    def _link(rel_id: str, provider_id: str, seeker_id: str, days_old: int = 1) -> Relationship:
        created = fixed_clock() - timedelta(days=days_old)
        relationship = Relationship(
            relationship_id=rel_id,
            provider_id=provider_id,
            seeker_id=seeker_id,
            score=0.5,
            created_at=created,
            updated_at=created,
        )
        relationships.insert(relationship)
        return relationship

    return _link


class TestExactTier:
    def test_existing_pair_blocks(self, dedup, link, seed_profiles,
                                  sample_exhibitor, sample_visitor):
        seed_profiles(sample_exhibitor, sample_visitor)
        link("rel-1", "exh-1", "vis-1")

        check = dedup.check_duplicate("exh-1", "vis-1")
        assert check.exists
        assert check.tier == "exact"
        assert check.confidence == 1.0
        assert check.matched_id == "rel-1"
        assert check.suggestions

    def test_reversed_order_is_same_pair(self, dedup, link):
        link("rel-1", "exh-1", "vis-1")
        check = dedup.check_duplicate("vis-1", "exh-1")
        assert check.exists
        assert check.matched_id == "rel-1"


class TestFuzzyTier:
    def test_near_identical_counterpart_blocks(self, dedup, link, seed_profiles,
                                               sample_exhibitor, visitor_factory):
        original = visitor_factory("vis-1", contact=ContactInfo(email="val@globex.example", phone="555-0100"))
        twin = visitor_factory("vis-2", contact=ContactInfo(email="val@globex.example", phone="555-0100"))
        seed_profiles(sample_exhibitor, original, twin)
        link("rel-1", "exh-1", "vis-1")

        check = dedup.check_duplicate("exh-1", "vis-2")
        assert check.exists
        assert check.tier == "fuzzy"
        assert check.matched_id == "rel-1"
        assert check.confidence >= 0.8

    def test_moderate_similarity_only_suggests(self, dedup, link, seed_profiles,
                                               sample_exhibitor, visitor_factory):
        original = visitor_factory("vis-1", contact=ContactInfo(email="val@globex.example"))
        lookalike = visitor_factory("vis-2", contact=ContactInfo(email="val@initech.example"))
        seed_profiles(sample_exhibitor, original, lookalike)
        link("rel-1", "exh-1", "vis-1")

        check = dedup.check_duplicate("exh-1", "vis-2")
        assert not check.exists
        fuzzy = [c for c in check.candidates if c.tier == "fuzzy"]
        assert len(fuzzy) == 1
        assert 0.5 <= fuzzy[0].similarity < 0.8
        assert any(s.startswith("Possible duplicate: relationship rel-1") for s in check.suggestions)

    def test_outside_lookback_ignored(self, dedup, link, seed_profiles,
                                      sample_exhibitor, visitor_factory):
        original = visitor_factory("vis-1", contact=ContactInfo(email="val@globex.example"))
        twin = visitor_factory("vis-2", contact=ContactInfo(email="val@globex.example"))
        seed_profiles(sample_exhibitor, original, twin)
        link("rel-1", "exh-1", "vis-1", days_old=45)

        check = dedup.check_duplicate("exh-1", "vis-2")
        assert not check.exists
        assert check.tier == "none"


class TestSimilarTier:
    def test_lookalike_pair_is_advisory(self, dedup, link, seed_profiles,
                                        exhibitor_factory, visitor_factory):
        seed_profiles(
            exhibitor_factory("exh-1"), visitor_factory("vis-1"),
            exhibitor_factory("exh-2", display_name="Other Rep", organization="Umbrella"),
            visitor_factory("vis-2", display_name="Someone Else", organization="Hooli"),
        )
        link("rel-1", "exh-1", "vis-1")

        check = dedup.check_duplicate("exh-2", "vis-2")
        assert not check.exists
        assert check.tier == "similar"
        assert check.matched_id == "rel-1"
        assert "1 similar relationships found" in check.suggestions
        assert any(s.startswith("Similar relationship: Erin Exhibitor + Val Visitor") for s in check.suggestions)


class TestNoDuplicate:
    def test_fresh_pair(self, dedup, seed_profiles, sample_exhibitor, sample_visitor):
        seed_profiles(sample_exhibitor, sample_visitor)
        check = dedup.check_duplicate("exh-1", "vis-1")
        assert not check.exists
        assert check.tier == "none"
        assert check.suggestions == []

    def test_unknown_profiles(self, dedup):
        check = dedup.check_duplicate("ghost-1", "ghost-2")
        assert not check.exists
        assert check.matched_id is None


class TestIdentitySimilarity:
    def test_identical(self, sample_visitor):
        with_phone = sample_visitor.model_copy(
            update={"contact": ContactInfo(email="a@b.example", phone="1")}
        )
        assert identity_similarity(with_phone, with_phone) == pytest.approx(1.0)

    def test_unrelated_non_latin_identities_stay_apart(self, visitor_factory):
        a = visitor_factory(
            "vis-a", display_name="سارة الكعبي", organization="شركة قطر للتقنية",
            industry="Energy", interests="solar", contact=ContactInfo(),
        )
        b = visitor_factory(
            "vis-b", display_name="يوسف المنصوري", organization="مؤسسة الدوحة",
            industry="Logistics", interests="shipping", contact=ContactInfo(),
        )
        assert identity_similarity(a, b) < 0.45

    def test_punctuation_only_fields_are_skipped(self, visitor_factory):
        a = visitor_factory(
            "vis-a", display_name="...", organization="***",
            industry=None, interests=None, contact=ContactInfo(),
        )
        b = visitor_factory(
            "vis-b", display_name="---", organization="???",
            industry=None, interests=None, contact=ContactInfo(),
        )
        assert identity_similarity(a, b) == 0.0
