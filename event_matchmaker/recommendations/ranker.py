"""
Recommendation ranker: pair enumeration, deterministic ordering, top-N
truncation and conversion into ``Recommendation`` records.

Usage flow
----------
1. enumerate_pairs(providers, seekers)
   -> iterator of (PairKey, provider, seeker); self-pairs and repeated
      pairs are skipped via a PairKey set.

2. paginate(pairs, page_size)
   -> bounded pages for the generator's fan-out.

3. merge_top(current, scored_page, max_results)
   -> running top-N; memory stays O(max_results + page_size).

4. build_recommendations(ranked, created_at)
   -> list[Recommendation] ready for persistence.

Ordering is total: score descending, then provider_id, then seeker_id
ascending, so identical inputs always produce identical output.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from itertools import islice
from typing import Callable, Iterable, Iterator, TypeVar
from uuid import uuid4

from event_matchmaker.models.profile import Profile
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.relationship import PairKey
from event_matchmaker.scoring.scorer import ScoreResult
from event_matchmaker.taxonomy.lead_taxonomy import confidence_for_score

T = TypeVar("T")


@dataclass(frozen=True)
class ScoredPair:
    """A candidate pair with its score.

    Attributes:
        pair:     Provider/seeker ids.
        provider: Provider profile used for scoring.
        seeker:   Seeker profile used for scoring.
        result:   Full scoring output (score, reasons, breakdown, errors).
    """

    pair:     PairKey
    provider: Profile
    seeker:   Profile
    result:   ScoreResult

    @property
    def score(self) -> float:
        return self.result.score


def rank_key(scored: ScoredPair) -> tuple[float, str, str]:
    return (-scored.score, scored.pair.provider_id, scored.pair.seeker_id)


def enumerate_pairs(
    providers: Iterable[Profile],
    seekers: Iterable[Profile],
) -> Iterator[tuple[PairKey, Profile, Profile]]:
    """Yield every distinct provider × seeker pair, skipping self-pairs."""
    seeker_list = list(seekers)
    seen: set[PairKey] = set()
    for provider in providers:
        for seeker in seeker_list:
            pair = PairKey(provider.profile_id, seeker.profile_id)
            if pair.is_self_pair or pair in seen:
                continue
            seen.add(pair)
            yield pair, provider, seeker


def paginate(items: Iterable[T], page_size: int) -> Iterator[list[T]]:
    """Split ``items`` into lists of at most ``page_size`` elements."""
    iterator = iter(items)
    while page := list(islice(iterator, page_size)):
        yield page


def merge_top(
    current: list[ScoredPair],
    incoming: Iterable[ScoredPair],
    max_results: int,
) -> list[ScoredPair]:
    """Merge a new page into the running top-N (both already filtered)."""
    merged = current + list(incoming)
    merged.sort(key=rank_key)
    return merged[:max_results]


def build_recommendations(
    ranked: list[ScoredPair],
    created_at: datetime,
    id_factory: Callable[[], str] = lambda: uuid4().hex,
) -> list[Recommendation]:
    """Convert ranked pairs into unpersisted ``Recommendation`` records."""
    return [
        Recommendation(
            recommendation_id=id_factory(),
            provider_id=sp.pair.provider_id,
            seeker_id=sp.pair.seeker_id,
            score=sp.score,
            confidence=confidence_for_score(sp.score),
            reasons=list(sp.result.reasons),
            created_at=created_at,
        )
        for sp in ranked
    ]
