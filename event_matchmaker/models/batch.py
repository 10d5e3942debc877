"""
Structured batch outcome.

Batch operations (recommendation generation, persistence loops, outbox
fan-out) never abort on the first failure.  They record each failure here
and report the summary to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from event_matchmaker.errors import ErrorKind, MatchmakerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailureRecord:
    """One failed item.

    Attributes:
        item:   Key of the failed item (pair key, recommendation id, recipient).
        kind:   Classified error kind.
        reason: Human-readable reason.
    """

    item:   str
    kind:   ErrorKind
    reason: str


@dataclass
class BatchSummary:
    """Counts plus failed-with-reason records for one batch operation."""

    operation: str
    attempted: int = 0
    succeeded: int = 0
    failures:  list[FailureRecord] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def record_success(self) -> None:
        self.attempted += 1
        self.succeeded += 1

    def record_failure(self, item: str, exc: Exception) -> None:
        """Count a failure, classifying it from the exception type."""
        kind = exc.kind if isinstance(exc, MatchmakerError) else ErrorKind.STORE_IO
        self.attempted += 1
        self.failures.append(FailureRecord(item=item, kind=kind, reason=str(exc)))
        logger.warning(
            "%s: item %s failed (%s): %s", self.operation, item, kind, exc,
            extra={"error_kind": str(kind), "item": item},
        )

    def merge(self, other: "BatchSummary") -> None:
        self.attempted += other.attempted
        self.succeeded += other.succeeded
        self.failures.extend(other.failures)

    def by_kind(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for failure in self.failures:
            counts[str(failure.kind)] = counts.get(str(failure.kind), 0) + 1
        return counts

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [
                {"item": f.item, "kind": str(f.kind), "reason": f.reason}
                for f in self.failures
            ],
        }
