"""
Namespaced cache-aside layer.

Keys are ``"<namespace>:<key>"``.  The cache is advisory only: every read
failure (backend down, undecodable value) is treated as a miss, and every
write failure is logged and swallowed.  Errors raised by ``compute`` itself
always propagate.

Per-use-case TTLs come from ``CacheConfig``:

    namespace      use                          default TTL
    ───────────    ─────────────────────────    ───────────
    matchmaking    recommendation sets          30 min
    checkins       attendance / check-in state  2 h
    queues         queue snapshots              1 h
    statistics     aggregate statistics         5 min
    sessions       session data                 24 h
"""

from __future__ import annotations

import json
import logging
from enum import StrEnum
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from event_matchmaker.config import CacheConfig
from event_matchmaker.errors import CacheUnavailableError, DeadlineExceeded
from event_matchmaker.gateway.stores import CacheStore
from event_matchmaker.utils.deadline import Deadline, resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheNamespace(StrEnum):
    MATCHMAKING = "matchmaking"
    CHECKINS = "checkins"
    QUEUES = "queues"
    STATISTICS = "statistics"
    SESSIONS = "sessions"


def ttl_for(namespace: str, config: CacheConfig) -> int:
    """TTL in seconds for a namespace (``ttl_default_s`` when unlisted)."""
    return {
        CacheNamespace.MATCHMAKING: config.ttl_recommendations_s,
        CacheNamespace.CHECKINS:    config.ttl_checkin_status_s,
        CacheNamespace.QUEUES:      config.ttl_queue_snapshot_s,
        CacheNamespace.STATISTICS:  config.ttl_statistics_s,
        CacheNamespace.SESSIONS:    config.ttl_session_s,
    }.get(namespace, config.ttl_default_s)


class CacheCodec(Protocol[T]):
    def encode(self, value: T) -> str: ...

    def decode(self, raw: str) -> T: ...


class JsonCodec:
    """Plain JSON for dicts, lists and scalars."""

    def encode(self, value: Any) -> str:
        return json.dumps(value, default=str)

    def decode(self, raw: str) -> Any:
        return json.loads(raw)


class PydanticCodec(Generic[T]):
    """Round-trips any type pydantic can validate, e.g. ``list[Recommendation]``."""

    def __init__(self, type_: Any) -> None:
        self._adapter: TypeAdapter[T] = TypeAdapter(type_)

    def encode(self, value: T) -> str:
        return self._adapter.dump_json(value).decode("utf-8")

    def decode(self, raw: str) -> T:
        return self._adapter.validate_json(raw)


_JSON = JsonCodec()


class CacheLayer:
    """Cache-aside wrapper over an optional ``CacheStore``.

    Args:
        store:  Backend; ``None`` disables caching entirely.
        config: TTL table.
    """

    def __init__(self, store: Optional[CacheStore], config: CacheConfig = CacheConfig()) -> None:
        self._store = store
        self._config = config

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @staticmethod
    def make_key(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    def ttl(self, namespace: str) -> int:
        return ttl_for(namespace, self._config)

    def get(
        self,
        namespace: str,
        key: str,
        codec: CacheCodec = _JSON,
        deadline: Optional[Deadline] = None,
    ) -> Optional[Any]:
        """Return the decoded value, or ``None`` on miss or any cache fault."""
        if self._store is None:
            return None
        full_key = self.make_key(namespace, key)
        resolve(deadline).check(f"cache.get {full_key}")
        try:
            raw = self._store.get(full_key)
        except CacheUnavailableError as exc:
            logger.warning("Cache read failed for %s: %s", full_key, exc,
                           extra={"error_kind": str(exc.kind)})
            return None
        if raw is None:
            return None
        try:
            return codec.decode(raw)
        except (ValueError, ValidationError) as exc:
            logger.warning("Discarding undecodable cache entry %s: %s", full_key, exc)
            return None

    def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        codec: CacheCodec = _JSON,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """Write-through; returns ``False`` (never raises) if the write failed."""
        if self._store is None:
            return False
        full_key = self.make_key(namespace, key)
        ttl_seconds = ttl_seconds if ttl_seconds is not None else self.ttl(namespace)
        try:
            resolve(deadline).check(f"cache.set {full_key}")
            self._store.set(full_key, codec.encode(value), ttl_seconds)
        except DeadlineExceeded as exc:
            logger.info("Skipped cache write for %s: %s", full_key, exc)
            return False
        except CacheUnavailableError as exc:
            logger.warning("Cache write failed for %s: %s", full_key, exc,
                           extra={"error_kind": str(exc.kind)})
            return False
        return True

    def delete(self, namespace: str, key: str) -> bool:
        if self._store is None:
            return False
        full_key = self.make_key(namespace, key)
        try:
            return self._store.delete(full_key)
        except CacheUnavailableError as exc:
            logger.warning("Cache delete failed for %s: %s", full_key, exc)
            return False

    def increment(self, namespace: str, key: str, amount: int = 1) -> Optional[int]:
        """Atomic counter; ``None`` when the cache is unavailable."""
        if self._store is None:
            return None
        full_key = self.make_key(namespace, key)
        try:
            return self._store.increment(full_key, amount)
        except CacheUnavailableError as exc:
            logger.warning("Cache increment failed for %s: %s", full_key, exc)
            return None

    def invalidate(self, namespace: str, key_prefix: str = "") -> int:
        """Drop every key in ``namespace`` starting with ``key_prefix``."""
        if self._store is None:
            return 0
        prefix = self.make_key(namespace, key_prefix)
        try:
            return self._store.delete_prefix(prefix)
        except CacheUnavailableError as exc:
            logger.warning("Cache invalidation failed for %s*: %s", prefix, exc)
            return 0

    def get_or_compute(
        self,
        namespace: str,
        key: str,
        compute: Callable[[], T],
        ttl_seconds: Optional[int] = None,
        force_refresh: bool = False,
        codec: CacheCodec = _JSON,
        deadline: Optional[Deadline] = None,
    ) -> T:
        """Cache-aside read.

        Unless ``force_refresh``, a hit is decoded and returned.  On a miss
        (or when the cache is unreachable) ``compute()`` runs; its result is
        written through with ``ttl_seconds`` on a best-effort basis.

        Raises:
            Whatever ``compute`` raises; cache faults never surface.
        """
        if not force_refresh:
            cached = self.get(namespace, key, codec=codec, deadline=deadline)
            if cached is not None:
                logger.debug("Cache hit %s:%s", namespace, key)
                return cached

        value = compute()
        self.set(namespace, key, value, ttl_seconds=ttl_seconds, codec=codec, deadline=deadline)
        return value
