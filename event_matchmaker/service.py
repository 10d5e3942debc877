"""
Matchmaking service: the relationship lifecycle over every core component.

``MatchmakingService`` is constructed once per process (or per request
scope) with explicit collaborators; ``build_service(conn, config)`` wires the
SQLite reference stores.  There are no module-level singletons.

Operations
----------
  create_relationship                      validate → dedup → score → insert
                                           → notify → invalidate → publish
  create_relationship_from_recommendation  same, source=recommendation, then
                                           mark the recommendation used
  update_relationship_status               update → invalidate → publish
  get_relationships                        filtered listing
  check_duplicate                          three-tier duplicate check
  get_recommendations_for                  cache-aside around the generator
  run_batch_generation                     all providers × all seekers
  plan_workflow_for                        nurturing schedule for one lead
  analytics                                cached aggregate statistics

Failure isolation
-----------------
- Validation failure:        ``RelationshipValidationError``, nothing written.
- Detected duplicate:        typed outcome (``exists=True``), nothing written.
- Lost insert race:          reported exactly like a detected duplicate.
- Notification failure:      counted on the result; the relationship stays.
- Cache outage:              every read computes, writes are skipped.
- Subscriber failure:        logged by the event bus, never re-raised.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from event_matchmaker.cache.layer import CacheLayer, CacheNamespace, PydanticCodec
from event_matchmaker.cache.stores import build_cache_store
from event_matchmaker.config import AppConfig
from event_matchmaker.db.repositories.history_repo import HistoryRepository
from event_matchmaker.db.repositories.notification_repo import NotificationRepository
from event_matchmaker.db.repositories.profile_repo import ProfileRepository
from event_matchmaker.db.repositories.recommendation_repo import RecommendationRepository
from event_matchmaker.db.repositories.relationship_repo import RelationshipRepository
from event_matchmaker.dedup.deduplicator import Deduplicator, DuplicateCheck
from event_matchmaker.errors import DeadlineExceeded, DuplicateRelationshipError, MissingEntityError
from event_matchmaker.events import (
    EventBus,
    RecommendationsGenerated,
    RelationshipCreated,
    RelationshipStatusChanged,
)
from event_matchmaker.gateway.entity_gateway import EntityGateway
from event_matchmaker.gateway.history_loader import HistorySignalsLoader
from event_matchmaker.gateway.stores import CacheStore, RecommendationStore, RelationshipStore
from event_matchmaker.models.batch import BatchSummary
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.relationship import NewRelationship, Relationship
from event_matchmaker.models.workflow import WorkflowStep
from event_matchmaker.notifications.planner import NotificationPlanner
from event_matchmaker.notifications.workflow import plan_workflow
from event_matchmaker.recommendations.generator import GenerationResult, RecommendationGenerator
from event_matchmaker.reporting.analytics import recommendation_analytics, relationship_analytics
from event_matchmaker.scoring.scorer import ScoreResult, score_pair
from event_matchmaker.taxonomy.lead_taxonomy import (
    Priority,
    RelationshipSource,
    RelationshipStatus,
    priority_for_score,
)
from event_matchmaker.taxonomy.profile_taxonomy import MatchRole, role_of
from event_matchmaker.utils.deadline import Deadline, resolve
from event_matchmaker.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)

_RECOMMENDATIONS_CODEC: PydanticCodec[list[Recommendation]] = PydanticCodec(list[Recommendation])

LOST_RACE_SUGGESTION = "Relationship was created concurrently - consider updating it instead"


# ── Result / filter types ─────────────────────────────────────────────────────

@dataclass
class CreateRelationshipResult:
    """Outcome of ``create_relationship``.

    Attributes:
        created:         True when a new record was written.
        exists:          True when creation was blocked by a duplicate.
        relationship:    The written record (``None`` unless created).
        relationship_id: Id of the new record, or of the blocking match.
        duplicate:       Full duplicate-check outcome (suggestions included).
        score:           Scoring output for the pair (``None`` if blocked).
        notifications:   Outbox append summary (empty if blocked).
    """

    created:         bool
    exists:          bool
    relationship:    Optional[Relationship] = None
    relationship_id: Optional[str] = None
    duplicate:       Optional[DuplicateCheck] = None
    score:           Optional[ScoreResult] = None
    notifications:   BatchSummary = field(default_factory=lambda: BatchSummary("notifications"))

    @property
    def suggestions(self) -> list[str]:
        return list(self.duplicate.suggestions) if self.duplicate else []


class RelationshipFilters(BaseModel):
    """Optional filters for ``get_relationships``; unset means no filter."""

    model_config = ConfigDict(frozen=True)

    provider_id: Optional[str] = None
    seeker_id: Optional[str] = None
    status: Optional[RelationshipStatus] = None
    priority: Optional[Priority] = None
    source: Optional[RelationshipSource] = None
    limit: Optional[int] = None


# ── Service ───────────────────────────────────────────────────────────────────

class MatchmakingService:
    """Relationship lifecycle, recommendations and follow-up planning.

    Args:
        gateway:         Validated profile access.
        relationships:   Relationship store (pair uniqueness enforced there).
        recommendations: Recommendation store.
        deduplicator:    Three-tier duplicate detection.
        history_loader:  History signal pre-fetch for scoring.
        generator:       Batch recommendation generator.
        cache:           Cache layer (may wrap no store).
        planner:         Notification planner.
        events:          Per-instance event bus.
        config:          Application configuration.
        clock:           Source of timestamps.
    """

    def __init__(
        self,
        gateway: EntityGateway,
        relationships: RelationshipStore,
        recommendations: RecommendationStore,
        deduplicator: Deduplicator,
        history_loader: HistorySignalsLoader,
        generator: RecommendationGenerator,
        cache: CacheLayer,
        planner: NotificationPlanner,
        events: Optional[EventBus] = None,
        config: AppConfig = AppConfig(),
        clock: Clock = utcnow,
    ) -> None:
        self.gateway = gateway
        self.relationships = relationships
        self.recommendations = recommendations
        self.deduplicator = deduplicator
        self.history_loader = history_loader
        self.generator = generator
        self.cache = cache
        self.planner = planner
        self.events = events or EventBus()
        self.config = config
        self._clock = clock

    # ── Relationships ─────────────────────────────────────────────────────────

    def create_relationship(
        self,
        request: Union[NewRelationship, dict[str, Any]],
        deadline: Optional[Deadline] = None,
    ) -> CreateRelationshipResult:
        """Create a relationship unless one already exists for the pair.

        Args:
            request:  ``NewRelationship`` or raw dict (validated here).
            deadline: Cancellation / timeout for every store call.

        Returns:
            ``CreateRelationshipResult``; ``exists=True`` (and nothing written)
            for exact or high-confidence fuzzy duplicates and for a lost
            insert race.

        Raises:
            RelationshipValidationError: Malformed input.
            DeadlineExceeded: Deadline elapsed before the insert.
            StoreError: A store read or the insert itself failed.
        """
        if not isinstance(request, NewRelationship):
            request = NewRelationship.parse(request)
        deadline = resolve(deadline)

        check = self.deduplicator.check_duplicate(request.provider_id, request.seeker_id, deadline)
        if check.exists:
            logger.info(
                "Relationship %s blocked as %s duplicate of %s.",
                request.pair.canonical, check.tier, check.matched_id,
            )
            return CreateRelationshipResult(
                created=False, exists=True, relationship_id=check.matched_id, duplicate=check,
            )

        provider = self.gateway.get_profile_or_placeholder(request.provider_id, deadline)
        seeker = self.gateway.get_profile_or_placeholder(request.seeker_id, deadline)
        history = self.history_loader.load(provider, seeker, deadline)
        scored = score_pair(provider, seeker, history)

        now = self._clock()
        relationship = Relationship(
            relationship_id=uuid4().hex,
            provider_id=request.provider_id,
            seeker_id=request.seeker_id,
            score=scored.score,
            status=request.status,
            priority=priority_for_score(scored.score),
            source=request.source,
            tags=list(request.tags),
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )

        deadline.check("relationships.insert")
        try:
            self.relationships.insert(relationship)
        except DuplicateRelationshipError as exc:
            logger.info("Lost insert race for %s; existing=%s", exc.pair_key, exc.existing_id)
            return CreateRelationshipResult(
                created=False,
                exists=True,
                relationship_id=exc.existing_id,
                duplicate=DuplicateCheck(
                    exists=True,
                    matched_id=exc.existing_id,
                    confidence=1.0,
                    suggestions=[LOST_RACE_SUGGESTION],
                    tier="exact",
                ),
            )

        result = CreateRelationshipResult(
            created=True,
            exists=False,
            relationship=relationship,
            relationship_id=relationship.relationship_id,
            duplicate=check,
            score=scored,
        )
        try:
            outcome = self.planner.evaluate(
                provider, seeker, scored.score, scored.reasons,
                relationship_id=relationship.relationship_id, deadline=deadline,
            )
            result.notifications = outcome.summary
        except DeadlineExceeded as exc:
            result.notifications.record_failure(relationship.relationship_id, exc)

        self._invalidate_for(relationship.provider_id, relationship.seeker_id)
        self.events.publish(RelationshipCreated(
            relationship_id=relationship.relationship_id,
            provider_id=relationship.provider_id,
            seeker_id=relationship.seeker_id,
            score=relationship.score,
            occurred_at=now,
        ))
        logger.info(
            "Created relationship %s (%s, score=%.3f, priority=%s).",
            relationship.relationship_id, relationship.pair.canonical,
            relationship.score, relationship.priority,
        )
        return result

    def create_relationship_from_recommendation(
        self,
        recommendation_id: str,
        deadline: Optional[Deadline] = None,
    ) -> CreateRelationshipResult:
        """Convert a recommendation into a relationship and mark it used.

        An already-used recommendation reports ``exists=True`` with the id of
        the relationship it was converted into.  When an exact duplicate
        blocks creation the recommendation is linked to that relationship.

        Raises:
            MissingEntityError: Unknown ``recommendation_id``.
        """
        deadline = resolve(deadline)
        deadline.check("recommendations.get_by_id")
        recommendation = self.recommendations.get_by_id(recommendation_id)
        if recommendation is None:
            raise MissingEntityError(f"recommendation {recommendation_id} not found")
        if recommendation.used:
            return CreateRelationshipResult(
                created=False, exists=True,
                relationship_id=recommendation.converted_relationship_id,
            )

        result = self.create_relationship(
            NewRelationship(
                provider_id=recommendation.provider_id,
                seeker_id=recommendation.seeker_id,
                source=RelationshipSource.RECOMMENDATION,
            ),
            deadline,
        )
        linked = result.created or (result.duplicate is not None and result.duplicate.tier == "exact")
        if linked and result.relationship_id:
            deadline.check("recommendations.mark_used")
            self.recommendations.mark_used(recommendation_id, result.relationship_id)
        return result

    def update_relationship_status(
        self,
        relationship_id: str,
        status: RelationshipStatus,
        notes: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> Relationship:
        """Move a relationship to ``status``; returns the updated record.

        Raises:
            MissingEntityError: Unknown ``relationship_id``.
        """
        deadline = resolve(deadline)
        deadline.check("relationships.get_by_id")
        existing = self.relationships.get_by_id(relationship_id)
        if existing is None:
            raise MissingEntityError(f"relationship {relationship_id} not found")

        now = self._clock()
        deadline.check("relationships.update_status")
        if not self.relationships.update_status(relationship_id, status, now, notes):
            raise MissingEntityError(f"relationship {relationship_id} not found")

        updated = existing.model_copy(update={
            "status": status,
            "updated_at": now,
            "notes": notes if notes is not None else existing.notes,
        })
        self.cache.invalidate(CacheNamespace.STATISTICS)
        self.events.publish(RelationshipStatusChanged(
            relationship_id=relationship_id,
            old_status=existing.status,
            new_status=status,
            occurred_at=now,
        ))
        return updated

    def get_relationships(self, filters: Optional[RelationshipFilters] = None) -> list[Relationship]:
        filters = filters or RelationshipFilters()
        return self.relationships.list_filtered(**filters.model_dump())

    def check_duplicate(
        self, provider_id: str, seeker_id: str, deadline: Optional[Deadline] = None
    ) -> DuplicateCheck:
        return self.deduplicator.check_duplicate(provider_id, seeker_id, deadline)

    def plan_workflow_for(
        self, relationship_id: str, deadline: Optional[Deadline] = None
    ) -> list[WorkflowStep]:
        """Nurturing schedule for an existing relationship.

        Raises:
            MissingEntityError: Unknown ``relationship_id``.
        """
        deadline = resolve(deadline)
        deadline.check("relationships.get_by_id")
        relationship = self.relationships.get_by_id(relationship_id)
        if relationship is None:
            raise MissingEntityError(f"relationship {relationship_id} not found")
        provider = self.gateway.get_profile_or_placeholder(relationship.provider_id, deadline)
        seeker = self.gateway.get_profile_or_placeholder(relationship.seeker_id, deadline)
        return plan_workflow(relationship, provider, seeker)

    # ── Recommendations ───────────────────────────────────────────────────────

    def get_recommendations_for(
        self,
        subject_id: str,
        limit: int = 20,
        force_refresh: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> list[Recommendation]:
        """Ranked recommendations for one profile, cache-aside.

        Providers are matched against every seeker and seekers against every
        provider.  Freshly generated (not cached) results are evaluated by the
        notification planner.

        Raises:
            MissingEntityError: Unknown ``subject_id``.
        """
        deadline = resolve(deadline)
        subject = self.gateway.get_profile(subject_id, deadline)
        if subject is None:
            raise MissingEntityError(f"profile {subject_id} not found")
        role = role_of(subject.category)
        if role is None:
            logger.info("Profile %s (%s) has no matching role.", subject_id, subject.category)
            return []

        generated: list[GenerationResult] = []

        def compute() -> list[Recommendation]:
            if role == MatchRole.PROVIDER:
                providers, seekers = [subject], self.gateway.find_seekers(deadline)
            else:
                providers, seekers = self.gateway.find_providers(deadline), [subject]
            result = self.generator.generate(
                providers, seekers, max_results=limit, deadline=deadline
            )
            generated.append(result)
            return result.recommendations

        recommendations = self.cache.get_or_compute(
            CacheNamespace.MATCHMAKING,
            f"{subject_id}:{limit}",
            compute,
            ttl_seconds=self.cache.ttl(CacheNamespace.MATCHMAKING),
            force_refresh=force_refresh,
            codec=_RECOMMENDATIONS_CODEC,
            deadline=deadline,
        )

        if generated:
            result = generated[0]
            try:
                for sp in result.scored_pairs:
                    self.planner.evaluate(
                        sp.provider, sp.seeker, sp.score, sp.result.reasons, deadline=deadline
                    )
            except DeadlineExceeded as exc:
                logger.warning("Notifications for %s cut short: %s", subject_id, exc,
                               extra={"error_kind": str(exc.kind)})
            self.events.publish(RecommendationsGenerated(
                subject_id=subject_id,
                count=len(result.recommendations),
                failed=result.failed_writes,
                occurred_at=self._clock(),
            ))
        return recommendations

    def run_batch_generation(
        self,
        min_score: Optional[float] = None,
        max_results: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> GenerationResult:
        """Score every provider against every seeker and persist the top results."""
        deadline = resolve(deadline)
        providers = self.gateway.find_providers(deadline)
        seekers = self.gateway.find_seekers(deadline)
        logger.info("Batch generation over %d provider(s) x %d seeker(s).",
                    len(providers), len(seekers))
        result = self.generator.generate(
            providers, seekers, min_score=min_score, max_results=max_results, deadline=deadline
        )
        self.cache.invalidate(CacheNamespace.MATCHMAKING)
        self.cache.invalidate(CacheNamespace.STATISTICS)
        self.events.publish(RecommendationsGenerated(
            subject_id=None,
            count=len(result.recommendations),
            failed=result.failed_writes,
            occurred_at=self._clock(),
        ))
        return result

    # ── Analytics ─────────────────────────────────────────────────────────────

    def analytics(self, force_refresh: bool = False) -> dict[str, Any]:
        """Relationship and recommendation statistics (cached, 5 min)."""
        ttl = self.cache.ttl(CacheNamespace.STATISTICS)
        return {
            "relationships": self.cache.get_or_compute(
                CacheNamespace.STATISTICS, "relationships",
                lambda: relationship_analytics(self.relationships.list_filtered()),
                ttl_seconds=ttl, force_refresh=force_refresh,
            ),
            "recommendations": self.cache.get_or_compute(
                CacheNamespace.STATISTICS, "recommendations",
                lambda: recommendation_analytics(self.recommendations.list_all()),
                ttl_seconds=ttl, force_refresh=force_refresh,
            ),
        }

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _invalidate_for(self, *profile_ids: str) -> None:
        for profile_id in profile_ids:
            self.cache.invalidate(CacheNamespace.MATCHMAKING, f"{profile_id}:")
        self.cache.invalidate(CacheNamespace.STATISTICS)


def build_service(
    conn: sqlite3.Connection,
    config: AppConfig = AppConfig(),
    cache_store: Optional[CacheStore] = None,
    events: Optional[EventBus] = None,
    clock: Clock = utcnow,
) -> MatchmakingService:
    """Wire a ``MatchmakingService`` over the SQLite reference stores.

    Args:
        conn:        Open connection with the schema applied.
        config:      Application configuration.
        cache_store: Cache backend; defaults to ``build_cache_store(config.cache)``.
        events:      Event bus; a fresh one when omitted.
        clock:       Shared clock for every component.
    """
    if cache_store is None:
        cache_store = build_cache_store(config.cache)

    gateway = EntityGateway(ProfileRepository(conn))
    relationships = RelationshipRepository(conn)
    recommendations = RecommendationRepository(conn)
    history_loader = HistorySignalsLoader(
        HistoryRepository(conn), relationships, gateway,
        lookback_days=config.scoring.activity_lookback_days, clock=clock,
    )
    deduplicator = Deduplicator(relationships, gateway, config.dedup, clock=clock)
    generator = RecommendationGenerator(
        deduplicator, history_loader, recommendations, config.recommendations, clock=clock,
    )
    planner = NotificationPlanner(
        NotificationRepository(conn), gateway, config.notifications, clock=clock,
    )
    return MatchmakingService(
        gateway=gateway,
        relationships=relationships,
        recommendations=recommendations,
        deduplicator=deduplicator,
        history_loader=history_loader,
        generator=generator,
        cache=CacheLayer(cache_store, config.cache),
        planner=planner,
        events=events,
        config=config,
        clock=clock,
    )
