"""
Cache store backends.

InMemoryCacheStore
    Process-local dict with per-key expiry on an injectable monotonic
    clock.  Default backend; also what the tests use.

RedisCacheStore
    ``redis`` client over ``redis.Redis.from_url(url, decode_responses=True)``.
    Every ``redis.RedisError`` is re-raised as ``CacheUnavailableError`` so
    the cache layer can degrade to compute-on-every-call.

``build_cache_store(config)`` picks the backend from ``CacheConfig.backend``;
``"disabled"`` yields ``None`` and the cache layer bypasses caching.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import redis

from event_matchmaker.config import CacheConfig
from event_matchmaker.errors import CacheUnavailableError
from event_matchmaker.gateway.stores import CacheStore

logger = logging.getLogger(__name__)


class InMemoryCacheStore:
    """Thread-safe TTL dict.

    Expired entries are dropped lazily on access.  ``increment`` on a
    missing key starts from 0 and, like Redis ``INCRBY``, sets no expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry is not None else None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def increment(self, key: str, amount: int = 1) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                value, expires_at = 0, None
            else:
                value, expires_at = int(entry[0]), entry[1]
            value += amount
            self._data[key] = (str(value), expires_at)
            return value

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._data if k.startswith(prefix)]
            for key in doomed:
                del self._data[key]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for k in list(self._data) if self._live(k) is not None)


class RedisCacheStore:
    """Redis-backed cache store.

    Args:
        client: A ``redis.Redis`` created with ``decode_responses=True``.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout_s: float = 2.0) -> "RedisCacheStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout_s,
            socket_connect_timeout=socket_timeout_s,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"GET {key}: {exc}") from exc

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client.set(key, value, ex=ttl_seconds)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"SET {key}: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            return bool(self._client.delete(key))
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"DEL {key}: {exc}") from exc

    def increment(self, key: str, amount: int = 1) -> int:
        try:
            return int(self._client.incrby(key, amount))
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"INCRBY {key}: {exc}") from exc

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix`` (SCAN, not KEYS)."""
        try:
            keys = list(self._client.scan_iter(match=f"{prefix}*", count=500))
            if not keys:
                return 0
            return int(self._client.delete(*keys))
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"SCAN/DEL {prefix}*: {exc}") from exc


def build_cache_store(config: CacheConfig) -> Optional[CacheStore]:
    """Instantiate the configured backend, or ``None`` when disabled."""
    if config.backend == "disabled":
        logger.info("Cache disabled; every lookup computes.")
        return None
    if config.backend == "redis":
        logger.info("Using Redis cache at %s", config.redis_url)
        return RedisCacheStore.from_url(config.redis_url, config.socket_timeout_s)
    return InMemoryCacheStore()
