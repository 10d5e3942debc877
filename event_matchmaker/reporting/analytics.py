"""
Aggregate statistics over relationships and recommendations.

Both functions are pure over the lists they receive and return plain dicts
so results can be cached as JSON (namespace ``statistics``, 5 min TTL) and
echoed by the CLI without conversion.

Conversion rates are percentages rounded to one decimal:

  relationships    (qualified + converted) / total × 100
  recommendations  used / total × 100
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.models.relationship import Relationship
from event_matchmaker.taxonomy.lead_taxonomy import (
    ConfidenceBucket,
    Priority,
    RelationshipStatus,
)

TOP_REASONS = 10
TOP_PROVIDERS = 5

SCORE_BUCKETS: list[tuple[str, float, float]] = [
    ("0.0-0.2", 0.0, 0.2),
    ("0.2-0.4", 0.2, 0.4),
    ("0.4-0.6", 0.4, 0.6),
    ("0.6-0.8", 0.6, 0.8),
    ("0.8-1.0", 0.8, 1.0),
]

_CONVERTED_STATUSES = {RelationshipStatus.QUALIFIED, RelationshipStatus.CONVERTED}


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 4) if values else 0.0


def score_bucket(score: float) -> str:
    """Label of the half-open bucket containing ``score`` (1.0 falls in the last)."""
    for label, lo, hi in SCORE_BUCKETS:
        if lo <= score < hi:
            return label
    return SCORE_BUCKETS[-1][0]


def score_distribution(scores: Iterable[float]) -> dict[str, int]:
    dist = {label: 0 for label, _, _ in SCORE_BUCKETS}
    for s in scores:
        dist[score_bucket(s)] += 1
    return dist


def relationship_analytics(relationships: list[Relationship]) -> dict[str, Any]:
    """Summarise a relationship population.

    Returns:
        Dict with ``total``, ``by_status``, ``by_priority``, ``by_source``,
        ``average_score``, ``conversion_rate``, ``score_distribution`` and
        ``top_providers`` (``[{"provider_id", "count"}]``, most leads first).
    """
    total = len(relationships)
    statuses = Counter(r.status for r in relationships)
    priorities = Counter(r.priority for r in relationships)
    sources = Counter(r.source for r in relationships)
    providers = Counter(r.provider_id for r in relationships)
    converted = sum(statuses[s] for s in _CONVERTED_STATUSES)

    return {
        "total": total,
        "by_status": {str(s): statuses.get(s, 0) for s in RelationshipStatus},
        "by_priority": {
            str(p): priorities.get(p, 0) for p in Priority if p != Priority.CRITICAL
        },
        "by_source": {str(s): n for s, n in sorted(sources.items())},
        "average_score": _mean([r.score for r in relationships]),
        "conversion_rate": _pct(converted, total),
        "score_distribution": score_distribution(r.score for r in relationships),
        "top_providers": [
            {"provider_id": pid, "count": n}
            for pid, n in sorted(providers.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_PROVIDERS]
        ],
    }


def recommendation_analytics(recommendations: list[Recommendation]) -> dict[str, Any]:
    """Summarise a recommendation population.

    Returns:
        Dict with ``total``, ``average_score``, ``conversion_rate``,
        ``by_confidence`` and ``top_reasons`` (``[{"reason", "count"}]``).
    """
    total = len(recommendations)
    confidences = Counter(r.confidence for r in recommendations)
    reasons = Counter(reason for r in recommendations for reason in r.reasons)
    used = sum(1 for r in recommendations if r.used)

    return {
        "total": total,
        "average_score": _mean([r.score for r in recommendations]),
        "conversion_rate": _pct(used, total),
        "by_confidence": {str(c): confidences.get(c, 0) for c in ConfidenceBucket},
        "top_reasons": [
            {"reason": reason, "count": n}
            for reason, n in sorted(reasons.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_REASONS]
        ],
    }
