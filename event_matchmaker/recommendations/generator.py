"""
Batch recommendation generation.

``RecommendationGenerator.generate`` walks the provider × seeker product in
bounded pages:

  Step 1 — Enumerate:  distinct pairs, self-pairs skipped (PairKey set).
  Step 2 — Filter:     unless ``include_existing``, drop pairs that already
                       have a relationship (deduplicator exact check).
  Step 3 — Pre-fetch:  history signals per surviving pair (store I/O, on
                       the calling thread).
  Step 4 — Score:      fan out ``score_pair`` over a bounded worker pool
                       (asyncio.Semaphore + to_thread); collect, then sort.
  Step 5 — Rank:       keep score >= min_score, merge into the running
                       top ``max_results`` (score desc, provider, seeker).
  Step 6 — Persist:    insert each kept recommendation; failures are
                       isolated per item and counted.

Failure isolation
-----------------
- Existence check failure:  pair skipped, recorded in ``checks``.
- History signal failure:   recorded inside HistorySignals; the affected
                            factor is zeroed and counted in ``factor_errors``.
- Persistence failure:      recorded in ``persistence``; the in-memory result
                            list is returned regardless.  A deadline that
                            expires during persistence is recorded the same
                            way for each unwritten item.
- Deadline:                 before persistence, ``DeadlineExceeded``
                            propagates; nothing after the failing call runs.

``generate`` drives its own event loop via ``asyncio.run`` and must be
called from synchronous code.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from event_matchmaker.config import RecommendationConfig
from event_matchmaker.dedup.deduplicator import Deduplicator
from event_matchmaker.errors import DeadlineExceeded, StoreError
from event_matchmaker.gateway.history_loader import HistorySignalsLoader
from event_matchmaker.gateway.stores import RecommendationStore
from event_matchmaker.models.batch import BatchSummary
from event_matchmaker.models.history import HistorySignals
from event_matchmaker.models.profile import Profile
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.relationship import PairKey
from event_matchmaker.recommendations.ranker import (
    ScoredPair,
    build_recommendations,
    enumerate_pairs,
    merge_top,
    paginate,
)
from event_matchmaker.scoring.scorer import score_pair
from event_matchmaker.utils.deadline import Deadline, resolve
from event_matchmaker.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)

_PreparedPair = tuple[PairKey, Profile, Profile, HistorySignals]


@dataclass
class GenerationResult:
    """Outcome of one ``generate`` call.

    Attributes:
        recommendations:   Ranked, truncated results (persisted or not).
        scored_pairs:      The same results with full score breakdowns.
        pairs_considered:  Distinct non-self pairs enumerated.
        skipped_existing:  Pairs dropped because a relationship exists.
        factor_errors:     Factor name → number of degraded scores.
        checks:            Existence-check failures (pairs skipped).
        persistence:       Per-recommendation write outcomes.
    """

    recommendations:  list[Recommendation] = field(default_factory=list)
    scored_pairs:     list[ScoredPair] = field(default_factory=list)
    pairs_considered: int = 0
    skipped_existing: int = 0
    factor_errors:    dict[str, int] = field(default_factory=dict)
    checks:           BatchSummary = field(default_factory=lambda: BatchSummary("existence_check"))
    persistence:      BatchSummary = field(default_factory=lambda: BatchSummary("persist_recommendations"))

    @property
    def failed_writes(self) -> int:
        return self.persistence.failed


class RecommendationGenerator:
    """Batch provider × seeker scoring, ranking and persistence.

    Args:
        deduplicator:   Exact-pair existence checks.
        history_loader: Per-pair history signal pre-fetch.
        store:          Recommendation store; ``None`` disables persistence.
        config:         Defaults for min_score / max_results / concurrency.
        clock:          Source of ``created_at``.
    """

    def __init__(
        self,
        deduplicator: Deduplicator,
        history_loader: HistorySignalsLoader,
        store: Optional[RecommendationStore] = None,
        config: RecommendationConfig = RecommendationConfig(),
        clock: Clock = utcnow,
    ) -> None:
        self._deduplicator = deduplicator
        self._history_loader = history_loader
        self._store = store
        self._config = config
        self._clock = clock

    def generate(
        self,
        providers: Iterable[Profile],
        seekers: Iterable[Profile],
        min_score: Optional[float] = None,
        max_results: Optional[int] = None,
        include_existing: Optional[bool] = None,
        deadline: Optional[Deadline] = None,
    ) -> GenerationResult:
        """Generate, rank and persist recommendations.

        Args:
            providers:        Provider-side profiles.
            seekers:          Seeker-side profiles.
            min_score:        Minimum score kept (default from config).
            max_results:      Maximum results returned (default from config).
            include_existing: Also score pairs that already have a relationship.
            deadline:         Cancellation / timeout for store calls and scoring.

        Returns:
            ``GenerationResult``; ``recommendations`` is sorted by score
            descending and never longer than ``max_results``.
        """
        deadline = resolve(deadline)
        min_score = self._config.min_score if min_score is None else min_score
        max_results = self._config.max_results if max_results is None else max_results
        if include_existing is None:
            include_existing = self._config.include_existing

        result = GenerationResult()
        top: list[ScoredPair] = []
        if max_results <= 0:
            return result

        pages = paginate(enumerate_pairs(providers, seekers), self._config.page_size)
        for page_no, page in enumerate(pages, start=1):
            prepared = self._prepare_page(page, include_existing, result, deadline)
            scored = asyncio.run(self._score_page(prepared, deadline))
            for sp in scored:
                for factor in sp.result.errors:
                    result.factor_errors[factor] = result.factor_errors.get(factor, 0) + 1
            top = merge_top(top, (sp for sp in scored if sp.score >= min_score), max_results)
            logger.debug("Page %d: %d pairs, %d scored, top=%d",
                         page_no, len(page), len(scored), len(top))

        result.scored_pairs = top
        result.recommendations = build_recommendations(top, created_at=self._clock())
        self._persist(result, deadline)

        logger.info(
            "Generated %d recommendation(s) from %d pair(s): %d existing skipped, "
            "%d check failure(s), %d failed write(s).",
            len(result.recommendations), result.pairs_considered,
            result.skipped_existing, result.checks.failed, result.failed_writes,
        )
        return result

    # ── Steps ─────────────────────────────────────────────────────────────────

    def _prepare_page(
        self,
        page: list[tuple[PairKey, Profile, Profile]],
        include_existing: bool,
        result: GenerationResult,
        deadline: Deadline,
    ) -> list[_PreparedPair]:
        prepared: list[_PreparedPair] = []
        for pair, provider, seeker in page:
            result.pairs_considered += 1
            if not include_existing:
                try:
                    if self._deduplicator.has_relationship(pair, deadline):
                        result.skipped_existing += 1
                        continue
                except StoreError as exc:
                    result.checks.record_failure(pair.canonical, exc)
                    continue
                result.checks.record_success()
            history = self._history_loader.load(provider, seeker, deadline)
            prepared.append((pair, provider, seeker, history))
        return prepared

    async def _score_page(
        self,
        prepared: list[_PreparedPair],
        deadline: Deadline,
    ) -> list[ScoredPair]:
        """Score a page concurrently; results are unordered."""
        if not prepared:
            return []
        semaphore = asyncio.Semaphore(self._config.worker_concurrency)

        async def score_one(item: _PreparedPair) -> ScoredPair:
            pair, provider, seeker, history = item
            async with semaphore:
                deadline.check("recommendations.score")
                scored = await asyncio.to_thread(score_pair, provider, seeker, history)
            return ScoredPair(pair=pair, provider=provider, seeker=seeker, result=scored)

        results: list[ScoredPair] = []
        try:
            for coro in asyncio.as_completed(
                [score_one(item) for item in prepared], timeout=deadline.remaining()
            ):
                results.append(await coro)
        except TimeoutError as exc:
            raise DeadlineExceeded("recommendations.score: deadline exceeded") from exc
        return results

    def _persist(self, result: GenerationResult, deadline: Deadline) -> None:
        if self._store is None:
            return
        for rec in result.recommendations:
            try:
                deadline.check("recommendations.insert")
                self._store.insert(rec)
            except (StoreError, DeadlineExceeded) as exc:
                result.persistence.record_failure(rec.recommendation_id, exc)
            else:
                result.persistence.record_success()
