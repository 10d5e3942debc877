"""
Classified error hierarchy.

Every failure the matchmaker reports carries an ``ErrorKind`` so batch
summaries can group failures without string matching:

  validation      — malformed relationship input, rejected at creation.
  missing_entity  — a referenced profile/relationship/recommendation is absent.
  store_io        — the backing store failed a read or write.
  cache_io        — the cache backend is unreachable (never fatal).
  duplicate       — the store rejected an insert on its pair uniqueness guard.
  notification    — an outbox append failed (never rolls back the trigger).
  deadline        — the caller's deadline elapsed or was cancelled.

Duplicates *detected* by the deduplicator are a typed outcome, not an
exception; ``DuplicateRelationshipError`` is only raised by the store when
a concurrent writer wins the race past the fast-path check.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional


class ErrorKind(StrEnum):
    """Classification attached to every ``MatchmakerError``."""

    VALIDATION = "validation"
    MISSING_ENTITY = "missing_entity"
    STORE_IO = "store_io"
    CACHE_IO = "cache_io"
    DUPLICATE = "duplicate"
    NOTIFICATION = "notification"
    DEADLINE = "deadline"


class MatchmakerError(Exception):
    """Base class; ``kind`` is overridden per subclass."""

    kind: ErrorKind = ErrorKind.STORE_IO


class RelationshipValidationError(MatchmakerError, ValueError):
    """Relationship input failed validation.

    Attributes:
        problems: One message per failed rule, in rule order.
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid relationship")


class MissingEntityError(MatchmakerError, LookupError):
    kind = ErrorKind.MISSING_ENTITY


class StoreError(MatchmakerError):
    """A store read or write failed."""

    kind = ErrorKind.STORE_IO


class IntegrityViolation(StoreError):
    """The store rejected a write on a constraint (unique, FK, check)."""


class DuplicateRelationshipError(StoreError):
    """Insert refused because the pair already has a relationship."""

    kind = ErrorKind.DUPLICATE

    def __init__(self, pair_key: str, existing_id: Optional[str] = None) -> None:
        self.pair_key = pair_key
        self.existing_id = existing_id
        super().__init__(f"relationship already exists for pair {pair_key}")


class OutboxError(StoreError):
    kind = ErrorKind.NOTIFICATION


class CacheUnavailableError(MatchmakerError):
    """The cache backend could not be reached or refused the command."""

    kind = ErrorKind.CACHE_IO


class SignalUnavailableError(MatchmakerError):
    """A pre-fetched history signal needed by a scoring factor failed to load."""

    kind = ErrorKind.STORE_IO

    def __init__(self, factor: str, signal: str, reason: str) -> None:
        self.factor = factor
        self.signal = signal
        self.reason = reason
        super().__init__(f"{factor}: signal '{signal}' unavailable ({reason})")


class DeadlineExceeded(MatchmakerError):
    kind = ErrorKind.DEADLINE
