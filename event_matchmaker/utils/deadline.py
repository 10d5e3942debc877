"""
Cooperative cancellation for store and cache calls.

A ``Deadline`` is threaded through every public entry point.  Components
call ``deadline.check("operation")`` immediately before each blocking
store/cache call; once the timeout has elapsed (or ``cancel()`` was called)
the check raises ``DeadlineExceeded`` and the operation unwinds.

Usage::

    deadline = Deadline.after(5.0)
    generator.generate(providers, seekers, deadline=deadline)

``Deadline.none()`` never expires and is the default everywhere.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from event_matchmaker.errors import DeadlineExceeded


class Deadline:
    """Optional timeout on a monotonic clock plus an explicit cancel flag."""

    def __init__(
        self,
        timeout_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = None if timeout_s is None else clock() + timeout_s
        self._cancelled = False

    @classmethod
    def after(cls, timeout_s: float) -> "Deadline":
        return cls(timeout_s=timeout_s)

    @classmethod
    def none(cls) -> "Deadline":
        return cls(timeout_s=None)

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def expired(self) -> bool:
        if self._cancelled:
            return True
        return self._expires_at is not None and self._clock() >= self._expires_at

    def remaining(self) -> Optional[float]:
        """Seconds left, ``0.0`` once expired, ``None`` when unbounded."""
        if self._cancelled:
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self, operation: str) -> None:
        """Raise ``DeadlineExceeded`` if the deadline has passed.

        Args:
            operation: Name of the call about to be made, for the error message.
        """
        if self.expired:
            reason = "cancelled" if self._cancelled else "deadline exceeded"
            raise DeadlineExceeded(f"{operation}: {reason}")


def resolve(deadline: Optional[Deadline]) -> Deadline:
    """Return ``deadline`` or an unbounded one when ``None``."""
    return deadline if deadline is not None else Deadline.none()
