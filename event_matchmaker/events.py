"""
In-process event bus for relationship lifecycle changes.

Each ``MatchmakingService`` owns one ``EventBus``; there is no module-level
registry.  Subscribers register per event class and are called
synchronously, in registration order, after the triggering write has
committed to the store.

A subscriber that raises is logged and skipped; the remaining subscribers
still run and the publishing operation is unaffected.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, TypeVar

from event_matchmaker.taxonomy.lead_taxonomy import RelationshipStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelationshipCreated:
    relationship_id: str
    provider_id:     str
    seeker_id:       str
    score:           float
    occurred_at:     datetime


@dataclass(frozen=True)
class RelationshipStatusChanged:
    relationship_id: str
    old_status:      Optional[RelationshipStatus]
    new_status:      RelationshipStatus
    occurred_at:     datetime


@dataclass(frozen=True)
class RecommendationsGenerated:
    subject_id:  Optional[str]
    count:       int
    failed:      int
    occurred_at: datetime


E = TypeVar("E")
Subscriber = Callable[[E], None]


class EventBus:
    """Callback registration keyed by event class."""

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: type[E], callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers[event_type].append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers[event_type].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, event: object) -> int:
        """Deliver ``event`` to its subscribers.

        Returns:
            Number of subscribers that failed.
        """
        failed = 0
        for callback in list(self._subscribers.get(type(event), ())):
            try:
                callback(event)
            except Exception:
                failed += 1
                logger.exception(
                    "Subscriber %r failed on %s", callback, type(event).__name__
                )
        return failed
