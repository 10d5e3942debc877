"""
Pre-fetched history signals for one provider × seeker pair.

Scoring is a pure function of two profiles plus this object.  Every signal
is optional: ``None`` means "no data" (the factor applies its default),
while an entry in ``errors`` means "the store failed to answer" (the factor
that needs it contributes 0 and is flagged in the breakdown).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class HistorySignals(BaseModel):
    """Activity and network signals.

    Attributes:
        provider_checkins: Check-ins within the lookback window.
        provider_profile_views: Views of the provider's profile in the window.
        provider_active_today: Any check-in since midnight UTC.
        shared_sessions: Sessions both sides attended.
        relationship_exists: An existing relationship already links the pair.
        industry_peer_count: Third-party profiles sharing the provider's industry.
        errors: Signal name → failure reason, for signals the store failed on.
    """

    model_config = ConfigDict(frozen=True)

    provider_checkins: Optional[int] = None
    seeker_checkins: Optional[int] = None
    provider_profile_views: Optional[int] = None
    seeker_profile_views: Optional[int] = None
    provider_active_today: Optional[bool] = None
    seeker_active_today: Optional[bool] = None
    shared_sessions: Optional[int] = None
    relationship_exists: Optional[bool] = None
    industry_peer_count: Optional[int] = None
    errors: dict[str, str] = {}

    def first_failure(self, *signals: str) -> Optional[tuple[str, str]]:
        """Return ``(signal, reason)`` for the first failed signal, if any."""
        for signal in signals:
            if signal in self.errors:
                return signal, self.errors[signal]
        return None


EMPTY_HISTORY = HistorySignals()
