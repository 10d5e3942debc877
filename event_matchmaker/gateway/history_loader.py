"""
History signal pre-fetch.

``HistorySignalsLoader.load`` performs every store read the scoring engine
needs for one pair, so ``score_pair`` itself stays pure.  Each signal is
fetched independently: a ``StoreError`` on one signal is recorded in
``HistorySignals.errors`` and the rest still load.

Signals
-------
  provider_checkins / seeker_checkins            check-ins in the lookback window
  provider_profile_views / seeker_profile_views  views in the lookback window
  provider_active_today / seeker_active_today    activity since midnight UTC
  shared_sessions                                sessions both attended
  relationship_exists                            pair already linked
  industry_peer_count                            third parties in provider's industry
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from event_matchmaker.errors import StoreError
from event_matchmaker.gateway.entity_gateway import EntityGateway
from event_matchmaker.gateway.stores import HistoryStore, RelationshipStore
from event_matchmaker.models.history import HistorySignals
from event_matchmaker.models.profile import Profile
from event_matchmaker.utils.deadline import Deadline, resolve
from event_matchmaker.utils.time_utils import Clock, days_ago, start_of_day, utcnow

logger = logging.getLogger(__name__)


class HistorySignalsLoader:
    """Pre-fetches ``HistorySignals`` for provider × seeker pairs.

    Args:
        history:        History store (activity counts).
        relationships:  Relationship store (existing-link flag).
        gateway:        Entity gateway (industry peer count).
        lookback_days:  Window for check-in and profile-view counts.
        clock:          Source of "now"; injectable for tests.
    """

    def __init__(
        self,
        history: HistoryStore,
        relationships: RelationshipStore,
        gateway: EntityGateway,
        lookback_days: int = 30,
        clock: Clock = utcnow,
    ) -> None:
        self._history = history
        self._relationships = relationships
        self._gateway = gateway
        self._lookback_days = lookback_days
        self._clock = clock

    def load(
        self,
        provider: Profile,
        seeker: Profile,
        deadline: Optional[Deadline] = None,
    ) -> HistorySignals:
        deadline = resolve(deadline)
        now = self._clock()
        window_start = days_ago(now, self._lookback_days)
        today = start_of_day(now)
        p_id, s_id = provider.profile_id, seeker.profile_id

        values: dict[str, Any] = {}
        errors: dict[str, str] = {}

        def fetch(signal: str, call: Callable[[], Any]) -> None:
            deadline.check(f"history.{signal}")
            try:
                values[signal] = call()
            except StoreError as exc:
                logger.warning("History signal %s failed for %s/%s: %s",
                               signal, p_id, s_id, exc,
                               extra={"error_kind": str(exc.kind)})
                errors[signal] = str(exc)

        fetch("provider_checkins", lambda: self._history.count_checkins(p_id, window_start))
        fetch("seeker_checkins", lambda: self._history.count_checkins(s_id, window_start))
        fetch("provider_profile_views", lambda: self._history.count_profile_views(p_id, window_start))
        fetch("seeker_profile_views", lambda: self._history.count_profile_views(s_id, window_start))
        fetch("provider_active_today", lambda: self._history.was_active_since(p_id, today))
        fetch("seeker_active_today", lambda: self._history.was_active_since(s_id, today))
        fetch("shared_sessions",
              lambda: self._history.count_shared_sessions(p_id, s_id, window_start))
        fetch("relationship_exists", lambda: self._relationships.exists(p_id, s_id))
        fetch("industry_peer_count",
              lambda: self._gateway.count_industry_peers(
                  provider.industry, exclude_ids=(p_id, s_id), deadline=deadline))

        return HistorySignals(**values, errors=errors)
