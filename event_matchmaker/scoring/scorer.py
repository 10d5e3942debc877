"""
Compatibility scoring: combines the six weighted factors of
``scoring.factors`` into one score, a reasons list and a breakdown.

Score formula
-------------
    weighted = (
        industry_alignment           * 0.25
        + organization_compatibility * 0.20
        + behavioral                 * 0.20
        + network                    * 0.15
        + contextual                 * 0.10
        + semantic                   * 0.10
    )
    score = clamp(weighted + adjustment, 0, 1)

Rule-based adjustments (summed, then clamped to ±0.1)
-----------------------------------------------------
    +0.05  industry_alignment > 0.7 AND behavioral > 0.5
    +0.04  network > 0.4 AND contextual > 0.3
    −0.03  organization_compatibility < 0.3 AND behavioral < 0.3
    +0.06  historical_success > 0.6

Reasons
-------
One string per factor above its notable threshold, in factor-table order:
industry > 0.6, organization > 0.5, behavioral > 0.4, network > 0.3,
contextual > 0.3, semantic > 0.4.

``score_pair`` is pure: history signals are pre-fetched by the caller, so
identical inputs always yield an identical ``ScoreResult``.  A factor whose
history signal failed to load contributes 0, appears in the breakdown as
``"<factor>_error": 1.0`` and in ``ScoreResult.errors`` with its
classified kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from event_matchmaker.errors import ErrorKind, SignalUnavailableError
from event_matchmaker.models.history import EMPTY_HISTORY, HistorySignals
from event_matchmaker.models.profile import Profile
from event_matchmaker.scoring import factors

logger = logging.getLogger(__name__)

FactorFn = Callable[[Profile, Profile, HistorySignals], float]

# Factor table: (name, function, weight).  Order is the reasons order.
FACTOR_TABLE: list[tuple[str, FactorFn, float]] = [
    ("industry_alignment",         factors.industry_alignment,         0.25),
    ("organization_compatibility", factors.organization_compatibility, 0.20),
    ("behavioral",                 factors.behavioral_signals,         0.20),
    ("network",                    factors.network_effect,             0.15),
    ("contextual",                 factors.contextual_relevance,       0.10),
    ("semantic",                   factors.semantic_similarity,        0.10),
]

FACTOR_WEIGHTS: dict[str, float] = {name: weight for name, _, weight in FACTOR_TABLE}

# Notable threshold and reason template per factor ({pct} = value as percent).
_NOTABLE: dict[str, tuple[float, str]] = {
    "industry_alignment":         (0.6, "Strong industry alignment ({pct}%)"),
    "organization_compatibility": (0.5, "Excellent business compatibility"),
    "behavioral":                 (0.4, "High engagement compatibility"),
    "network":                    (0.3, "Strong network connections"),
    "contextual":                 (0.3, "Perfect timing and context"),
    "semantic":                   (0.4, "Content and goals alignment"),
}

MAX_ADJUSTMENT = 0.1


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


@dataclass
class ScoreBreakdown:
    """Per-factor sub-scores for one pair.

    Attributes:
        factors:            Factor name → value in [0, 1] (0 when errored).
        historical_success: Completeness-derived heuristic feeding one adjustment.
        adjustment:         Clamped sum of rule-based adjustments.
        errors:             Factor name → classified kind, for failed factors.
    """

    factors:            dict[str, float]
    historical_success: float
    adjustment:         float = 0.0
    errors:             dict[str, ErrorKind] = field(default_factory=dict)

    @property
    def weighted_sum(self) -> float:
        return sum(self.factors[name] * weight for name, weight in FACTOR_WEIGHTS.items())

    @property
    def total(self) -> float:
        return _clamp(self.weighted_sum + self.adjustment, 0.0, 1.0)

    def as_dict(self) -> dict[str, float]:
        result = dict(self.factors)
        result["historical_success"] = self.historical_success
        result["adjustment"] = self.adjustment
        for name in self.errors:
            result[f"{name}_error"] = 1.0
        return result


@dataclass(frozen=True)
class ScoreResult:
    """Output of ``score_pair``."""

    score:     float
    reasons:   list[str]
    breakdown: dict[str, float]
    errors:    dict[str, ErrorKind]

    @property
    def degraded(self) -> bool:
        """True when at least one factor could not be computed."""
        return bool(self.errors)

    def factor(self, name: str) -> float:
        return self.breakdown.get(name, 0.0)


def compute_adjustment(values: dict[str, float], historical_success: float) -> float:
    """Sum the rule-based adjustments and clamp to ±``MAX_ADJUSTMENT``."""
    industry = values["industry_alignment"]
    organization = values["organization_compatibility"]
    behavioral = values["behavioral"]
    network = values["network"]
    contextual = values["contextual"]

    adjustment = 0.0
    if industry > 0.7 and behavioral > 0.5:
        adjustment += 0.05
    if network > 0.4 and contextual > 0.3:
        adjustment += 0.04
    if organization < 0.3 and behavioral < 0.3:
        adjustment -= 0.03
    if historical_success > 0.6:
        adjustment += 0.06
    return _clamp(adjustment, -MAX_ADJUSTMENT, MAX_ADJUSTMENT)


def build_reasons(values: dict[str, float]) -> list[str]:
    """One reason per factor above its notable threshold, factor-table order."""
    reasons: list[str] = []
    for name, _, _ in FACTOR_TABLE:
        threshold, template = _NOTABLE[name]
        value = values[name]
        if value > threshold:
            reasons.append(template.format(pct=round(value * 100)))
    return reasons


def compute_breakdown(
    provider: Profile,
    seeker: Profile,
    history: HistorySignals = EMPTY_HISTORY,
) -> ScoreBreakdown:
    """Evaluate every factor, isolating failures per factor."""
    values: dict[str, float] = {}
    errors: dict[str, ErrorKind] = {}

    for name, fn, _ in FACTOR_TABLE:
        try:
            values[name] = _clamp(fn(provider, seeker, history), 0.0, 1.0)
        except SignalUnavailableError as exc:
            logger.debug("Factor %s degraded for %s/%s: %s",
                         name, provider.profile_id, seeker.profile_id, exc)
            values[name] = 0.0
            errors[name] = exc.kind

    success = factors.historical_success(provider, seeker)
    return ScoreBreakdown(
        factors=values,
        historical_success=success,
        adjustment=compute_adjustment(values, success),
        errors=errors,
    )


def score_pair(
    provider: Profile,
    seeker: Profile,
    history: HistorySignals = EMPTY_HISTORY,
) -> ScoreResult:
    """Score one provider × seeker pair.

    Args:
        provider: Provider-side profile (placeholder if unknown).
        seeker:   Seeker-side profile (placeholder if unknown).
        history:  Pre-fetched history signals for the pair.

    Returns:
        ``ScoreResult`` with score in [0, 1] (rounded to 4 dp), reasons and
        the flattened breakdown.
    """
    breakdown = compute_breakdown(provider, seeker, history)
    return ScoreResult(
        score=round(breakdown.total, 4),
        reasons=build_reasons(breakdown.factors),
        breakdown=breakdown.as_dict(),
        errors=dict(breakdown.errors),
    )
