"""
Tests for event_matchmaker/recommendations/generator.py and ranker.py.

What we test
------------
RecommendationGenerator.generate():
  - 3 providers x 4 seekers, min_score=0.5, max_results=5: at most 5
    results, every score >= 0.5, sorted by score descending.
  - Pages smaller than the pair count give the same ranking.
  - Pairs that already have a relationship are skipped unless
    include_existing is set.
  - A failing existence check skips only that pair.
  - A failing recommendation store is counted per item; results are
    still returned.
  - A cancelled deadline aborts with DeadlineExceeded; one that expires
    during persistence is counted per unwritten item.
  - max_results=0 returns nothing.

ranker:
  - enumerate_pairs() skips self-pairs and repeats.
  - merge_top() breaks score ties by provider_id then seeker_id.
  - paginate() yields bounded pages.
"""

from __future__ import annotations

from typing import Optional

import pytest

from event_matchmaker.config import RecommendationConfig
from event_matchmaker.db.repositories.history_repo import HistoryRepository
from event_matchmaker.db.repositories.profile_repo import ProfileRepository
from event_matchmaker.db.repositories.recommendation_repo import RecommendationRepository
from event_matchmaker.db.repositories.relationship_repo import RelationshipRepository
from event_matchmaker.dedup.deduplicator import Deduplicator
from event_matchmaker.errors import DeadlineExceeded, ErrorKind, StoreError
from event_matchmaker.gateway.entity_gateway import EntityGateway
from event_matchmaker.gateway.history_loader import HistorySignalsLoader
from event_matchmaker.models.profile import Profile
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.relationship import PairKey, Relationship
from event_matchmaker.recommendations.generator import RecommendationGenerator
from event_matchmaker.recommendations.ranker import (
    ScoredPair,
    enumerate_pairs,
    merge_top,
    paginate,
)
from event_matchmaker.scoring.scorer import ScoreResult
from event_matchmaker.utils.deadline import Deadline


# ── Fixtures ──────────────────────────────────────────────────────────────────

class FailingRecommendationStore:
    """Rejects every other insert."""

    def __init__(self) -> None:
        self.calls = 0
        self.stored: list[Recommendation] = []

    def insert(self, recommendation: Recommendation) -> str:
        self.calls += 1
        if self.calls % 2 == 0:
            raise StoreError("recommendations: disk full")
        self.stored.append(recommendation)
        return recommendation.recommendation_id

    def get_by_id(self, recommendation_id: str) -> Optional[Recommendation]:
        return None

    def mark_used(self, recommendation_id: str, relationship_id: str) -> bool:
        return False

    def list_all(self) -> list[Recommendation]:
        return list(self.stored)


class CancellingRecommendationStore(FailingRecommendationStore):
    """Stores the first insert, then cancels the run's deadline."""

    def __init__(self, deadline: Deadline) -> None:
        super().__init__()
        self._deadline = deadline

    def insert(self, recommendation: Recommendation) -> str:
        self.stored.append(recommendation)
        self._deadline.cancel()
        return recommendation.recommendation_id


class FlakyDeduplicator(Deduplicator):
    """Existence check fails for one seeker id."""

    def __init__(self, *args, failing_seeker: str, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._failing_seeker = failing_seeker

    def has_relationship(self, pair: PairKey, deadline=None) -> bool:
        if pair.seeker_id == self._failing_seeker:
            raise StoreError("relationships: timeout")
        return super().has_relationship(pair, deadline)


@pytest.fixture
def population(seed_profiles, exhibitor_factory, visitor_factory):
    providers = [
        exhibitor_factory("exh-1"),
        exhibitor_factory("exh-2", industry="Healthcare", organization="MediCorp"),
        exhibitor_factory("exh-3", industry="Finance", organization_size="1000+"),
    ]
    seekers = [
        visitor_factory("vis-1"),
        visitor_factory("vis-2", interests="healthcare, wellness"),
        visitor_factory("vis-3", interests="finance; banking", budget="250k+"),
        visitor_factory("vis-4", interests=None, organization_size="1-10"),
    ]
    seed_profiles(*providers, *seekers)
    return providers, seekers


@pytest.fixture
def parts(in_memory_db, fixed_clock):
    gateway = EntityGateway(ProfileRepository(in_memory_db))
    relationships = RelationshipRepository(in_memory_db)
    loader = HistorySignalsLoader(
        HistoryRepository(in_memory_db), relationships, gateway, clock=fixed_clock
    )
    dedup = Deduplicator(relationships, gateway, clock=fixed_clock)
    return gateway, relationships, loader, dedup


def _generator(parts, fixed_clock, store=None, **config) -> RecommendationGenerator:
    _, _, loader, dedup = parts
    return RecommendationGenerator(
        dedup, loader, store, RecommendationConfig(**config), clock=fixed_clock
    )


def _scored(provider_id: str, seeker_id: str, score: float) -> ScoredPair:
    return ScoredPair(
        pair=PairKey(provider_id, seeker_id),
        provider=Profile.placeholder(provider_id),
        seeker=Profile.placeholder(seeker_id),
        result=ScoreResult(score=score, reasons=[], breakdown={}, errors={}),
    )


# ── Generator ─────────────────────────────────────────────────────────────────

class TestGenerate:
    def test_three_by_four(self, in_memory_db, parts, population, fixed_clock):
        providers, seekers = population
        store = RecommendationRepository(in_memory_db)
        result = _generator(parts, fixed_clock, store).generate(
            providers, seekers, min_score=0.5, max_results=5
        )

        assert result.pairs_considered == 12
        assert 0 < len(result.recommendations) <= 5
        scores = [r.score for r in result.recommendations]
        assert all(s >= 0.5 for s in scores)
        assert scores == sorted(scores, reverse=True)
        assert result.failed_writes == 0
        assert len(store.list_all()) == len(result.recommendations)

    def test_best_pair_ranked_first(self, parts, population, fixed_clock):
        providers, seekers = population
        result = _generator(parts, fixed_clock).generate(providers, seekers, min_score=0.0)
        top = result.recommendations[0]
        assert top.reasons
        assert result.scored_pairs[0].score == top.score

    def test_paging_does_not_change_ranking(self, parts, population, fixed_clock):
        providers, seekers = population
        big = _generator(parts, fixed_clock, page_size=500).generate(providers, seekers, min_score=0.0)
        small = _generator(parts, fixed_clock, page_size=3, worker_concurrency=2).generate(
            providers, seekers, min_score=0.0
        )
        assert [r.pair for r in big.recommendations] == [r.pair for r in small.recommendations]
        assert [r.score for r in big.recommendations] == [r.score for r in small.recommendations]

    def test_existing_relationship_skipped(self, parts, population, fixed_clock):
        providers, seekers = population
        _, relationships, _, _ = parts
        now = fixed_clock()
        relationships.insert(Relationship(
            relationship_id="rel-1", provider_id="exh-1", seeker_id="vis-1",
            score=0.9, created_at=now, updated_at=now,
        ))

        result = _generator(parts, fixed_clock).generate(providers, seekers, min_score=0.0)
        assert result.skipped_existing == 1
        assert PairKey("exh-1", "vis-1") not in [r.pair for r in result.recommendations]

        with_existing = _generator(parts, fixed_clock).generate(
            providers, seekers, min_score=0.0, include_existing=True
        )
        assert with_existing.skipped_existing == 0
        assert PairKey("exh-1", "vis-1") in [r.pair for r in with_existing.recommendations]

    def test_failed_existence_check_skips_pair(self, parts, population, fixed_clock):
        providers, seekers = population
        gateway, relationships, loader, _ = parts
        flaky = FlakyDeduplicator(relationships, gateway, clock=fixed_clock, failing_seeker="vis-2")
        generator = RecommendationGenerator(flaky, loader, clock=fixed_clock)

        result = generator.generate(providers, seekers, min_score=0.0)
        assert result.checks.failed == 3
        assert result.checks.by_kind() == {"store_io": 3}
        assert all(r.seeker_id != "vis-2" for r in result.recommendations)
        assert len(result.recommendations) == 9

    def test_persistence_failures_isolated(self, parts, population, fixed_clock):
        providers, seekers = population
        store = FailingRecommendationStore()
        result = _generator(parts, fixed_clock, store).generate(
            providers, seekers, min_score=0.0, max_results=4
        )

        assert len(result.recommendations) == 4
        assert result.failed_writes == 2
        assert result.persistence.succeeded == 2
        assert {f.kind for f in result.persistence.failures} == {ErrorKind.STORE_IO}
        assert len(store.stored) == 2

    def test_cancelled_deadline(self, parts, population, fixed_clock):
        providers, seekers = population
        deadline = Deadline()
        deadline.cancel()
        with pytest.raises(DeadlineExceeded):
            _generator(parts, fixed_clock).generate(providers, seekers, deadline=deadline)

    def test_deadline_during_persistence_keeps_results(self, parts, population, fixed_clock):
        providers, seekers = population
        deadline = Deadline()
        store = CancellingRecommendationStore(deadline)
        result = _generator(parts, fixed_clock, store).generate(
            providers, seekers, min_score=0.0, max_results=5, deadline=deadline
        )

        assert len(result.recommendations) == 5
        assert len(store.stored) == 1
        assert result.persistence.succeeded == 1
        assert result.failed_writes == 4
        assert result.persistence.by_kind() == {"deadline": 4}

    def test_zero_max_results(self, parts, population, fixed_clock):
        providers, seekers = population
        result = _generator(parts, fixed_clock).generate(providers, seekers, max_results=0)
        assert result.recommendations == []


# ── Ranker ────────────────────────────────────────────────────────────────────

class TestRanker:
    def test_enumerate_skips_self_and_repeats(self, exhibitor_factory, visitor_factory):
        exhibitor = exhibitor_factory("x-1")
        visitor = visitor_factory("v-1")
        pairs = list(enumerate_pairs([exhibitor, exhibitor], [visitor, exhibitor]))
        assert [p for p, _, _ in pairs] == [PairKey("x-1", "v-1")]

    def test_tie_order(self):
        ranked = merge_top(
            [_scored("p-2", "s-1", 0.7)],
            [_scored("p-1", "s-2", 0.7), _scored("p-1", "s-1", 0.7), _scored("p-3", "s-1", 0.9)],
            max_results=3,
        )
        assert [sp.pair for sp in ranked] == [
            PairKey("p-3", "s-1"),
            PairKey("p-1", "s-1"),
            PairKey("p-1", "s-2"),
        ]

    def test_paginate(self):
        assert list(paginate(range(5), 2)) == [[0, 1], [2, 3], [4]]
