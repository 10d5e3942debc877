"""
Tests for event_matchmaker/cache/layer.py and cache/stores.py.

What we test
------------
InMemoryCacheStore:
  - set/get round trip; entries expire after their TTL (fake monotonic clock).
  - increment starts at 0; delete_prefix removes only matching keys.

CacheLayer:
  - Keys are namespaced "<namespace>:<key>"; TTLs come from CacheConfig.
  - get_or_compute: miss computes and writes through; hit skips compute;
    force_refresh recomputes; expiry recomputes.
  - Backend outage (CacheUnavailableError) degrades to compute on every
    call without raising.
  - A disabled layer (no store) always computes.
  - Errors raised by compute() propagate.
  - A deadline that expires after compute() skips the write and still
    returns the computed value.
  - PydanticCodec round-trips lists of models.

RedisCacheStore:
  - redis.RedisError is re-raised as CacheUnavailableError; TTL maps to EX.

build_cache_store():
  - "disabled" → None, "memory" → InMemoryCacheStore.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import redis

from event_matchmaker.cache.layer import CacheLayer, CacheNamespace, PydanticCodec
from event_matchmaker.cache.stores import InMemoryCacheStore, RedisCacheStore, build_cache_store
from event_matchmaker.config import CacheConfig
from event_matchmaker.errors import CacheUnavailableError
from event_matchmaker.models.recommendation import Recommendation
from event_matchmaker.taxonomy.lead_taxonomy import ConfidenceBucket
from event_matchmaker.utils.deadline import Deadline


# ── Fixtures ──────────────────────────────────────────────────────────────────

class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenCacheStore:
    """Every call fails the way an unreachable Redis does."""

    def get(self, key):
        raise CacheUnavailableError("connection refused")

    def set(self, key, value, ttl_seconds):
        raise CacheUnavailableError("connection refused")

    def delete(self, key):
        raise CacheUnavailableError("connection refused")

    def increment(self, key, amount=1):
        raise CacheUnavailableError("connection refused")

    def delete_prefix(self, prefix):
        raise CacheUnavailableError("connection refused")


class Counter:
    """compute() stand-in returning {"n": <call number>}."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return {"n": self.calls}


@pytest.fixture
def clock() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def store(clock) -> InMemoryCacheStore:
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def layer(store) -> CacheLayer:
    return CacheLayer(store, CacheConfig())


# ── Store ─────────────────────────────────────────────────────────────────────

class TestInMemoryStore:
    def test_round_trip(self, store):
        store.set("k", "v", ttl_seconds=10)
        assert store.get("k") == "v"

    def test_expiry(self, store, clock):
        store.set("k", "v", ttl_seconds=10)
        clock.advance(9)
        assert store.get("k") == "v"
        clock.advance(1)
        assert store.get("k") is None
        assert len(store) == 0

    def test_increment(self, store):
        assert store.increment("hits") == 1
        assert store.increment("hits", 4) == 5

    def test_delete_prefix(self, store):
        store.set("matchmaking:a:20", "1", 60)
        store.set("matchmaking:b:20", "1", 60)
        store.set("statistics:relationships", "1", 60)
        assert store.delete_prefix("matchmaking:a:") == 1
        assert store.get("matchmaking:b:20") == "1"
        assert store.get("statistics:relationships") == "1"


# ── Layer ─────────────────────────────────────────────────────────────────────

class TestCacheLayer:
    def test_key_format(self):
        assert CacheLayer.make_key(CacheNamespace.MATCHMAKING, "exh-1:20") == "matchmaking:exh-1:20"

    def test_namespace_ttls(self, layer):
        assert layer.ttl(CacheNamespace.MATCHMAKING) == 1800
        assert layer.ttl(CacheNamespace.CHECKINS) == 7200
        assert layer.ttl(CacheNamespace.QUEUES) == 3600
        assert layer.ttl(CacheNamespace.STATISTICS) == 300
        assert layer.ttl(CacheNamespace.SESSIONS) == 86400
        assert layer.ttl("other") == 3600

    def test_miss_then_hit(self, layer):
        compute = Counter()
        first = layer.get_or_compute(CacheNamespace.STATISTICS, "k", compute)
        second = layer.get_or_compute(CacheNamespace.STATISTICS, "k", compute)
        assert first == second == {"n": 1}
        assert compute.calls == 1

    def test_force_refresh(self, layer):
        compute = Counter()
        layer.get_or_compute(CacheNamespace.STATISTICS, "k", compute)
        refreshed = layer.get_or_compute(CacheNamespace.STATISTICS, "k", compute, force_refresh=True)
        assert refreshed == {"n": 2}
        assert layer.get(CacheNamespace.STATISTICS, "k") == {"n": 2}

    def test_expired_entry_recomputes(self, layer, clock):
        compute = Counter()
        layer.get_or_compute(CacheNamespace.STATISTICS, "k", compute, ttl_seconds=5)
        clock.advance(6)
        assert layer.get_or_compute(CacheNamespace.STATISTICS, "k", compute) == {"n": 2}

    def test_invalidate_prefix(self, layer):
        layer.set(CacheNamespace.MATCHMAKING, "exh-1:20", [1])
        layer.set(CacheNamespace.MATCHMAKING, "exh-1:5", [1])
        layer.set(CacheNamespace.MATCHMAKING, "vis-1:20", [1])
        assert layer.invalidate(CacheNamespace.MATCHMAKING, "exh-1:") == 2
        assert layer.get(CacheNamespace.MATCHMAKING, "vis-1:20") == [1]

    def test_undecodable_value_is_a_miss(self, layer, store):
        store.set("statistics:k", "{not json", 60)
        assert layer.get(CacheNamespace.STATISTICS, "k") is None

    def test_compute_errors_propagate(self, layer):
        def boom():
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            layer.get_or_compute(CacheNamespace.STATISTICS, "k", boom)


class TestDegradedCache:
    def test_outage_computes_every_call(self):
        layer = CacheLayer(BrokenCacheStore())
        compute = Counter()
        assert layer.get_or_compute(CacheNamespace.MATCHMAKING, "k", compute) == {"n": 1}
        assert layer.get_or_compute(CacheNamespace.MATCHMAKING, "k", compute) == {"n": 2}

    def test_outage_never_raises(self):
        layer = CacheLayer(BrokenCacheStore())
        assert layer.get(CacheNamespace.SESSIONS, "k") is None
        assert layer.set(CacheNamespace.SESSIONS, "k", 1) is False
        assert layer.delete(CacheNamespace.SESSIONS, "k") is False
        assert layer.increment(CacheNamespace.QUEUES, "k") is None
        assert layer.invalidate(CacheNamespace.SESSIONS) == 0

    def test_disabled_layer(self):
        layer = CacheLayer(None)
        compute = Counter()
        layer.get_or_compute(CacheNamespace.MATCHMAKING, "k", compute)
        layer.get_or_compute(CacheNamespace.MATCHMAKING, "k", compute)
        assert compute.calls == 2
        assert not layer.enabled


class TestDeadlineDuringWrite:
    def test_expired_deadline_skips_write_keeps_value(self, layer):
        deadline = Deadline()

        def compute():
            deadline.cancel()
            return {"value": 42}

        value = layer.get_or_compute(CacheNamespace.STATISTICS, "k", compute, deadline=deadline)
        assert value == {"value": 42}
        assert layer.get(CacheNamespace.STATISTICS, "k") is None

    def test_set_returns_false_when_cancelled(self, layer):
        deadline = Deadline()
        deadline.cancel()
        assert layer.set(CacheNamespace.SESSIONS, "k", 1, deadline=deadline) is False


class TestCodecs:
    def test_pydantic_codec_round_trip(self, layer):
        recs = [
            Recommendation(
                recommendation_id="r-1",
                provider_id="exh-1",
                seeker_id="vis-1",
                score=0.82,
                confidence=ConfidenceBucket.HIGH,
                reasons=["Strong industry alignment (100%)"],
                created_at=datetime(2025, 3, 10, 12, tzinfo=timezone.utc),
            )
        ]
        codec = PydanticCodec(list[Recommendation])
        layer.set(CacheNamespace.MATCHMAKING, "exh-1:20", recs, codec=codec)
        assert layer.get(CacheNamespace.MATCHMAKING, "exh-1:20", codec=codec) == recs


class TestBuildCacheStore:
    def test_disabled(self):
        assert build_cache_store(CacheConfig(backend="disabled")) is None

    def test_memory(self):
        assert isinstance(build_cache_store(CacheConfig(backend="memory")), InMemoryCacheStore)


class TestRedisCacheStore:
    class _DownClient:
        def get(self, key):
            raise redis.ConnectionError("Error 111 connecting to localhost:6379.")

        def set(self, key, value, ex=None):
            raise redis.ConnectionError("Error 111 connecting to localhost:6379.")

    class _RecordingClient:
        def __init__(self) -> None:
            self.calls = []

        def set(self, key, value, ex=None):
            self.calls.append((key, value, ex))

    def test_redis_errors_become_cache_unavailable(self):
        store = RedisCacheStore(self._DownClient())
        with pytest.raises(CacheUnavailableError):
            store.get("k")
        with pytest.raises(CacheUnavailableError):
            store.set("k", "v", 10)

    def test_set_passes_ttl_as_expiry(self):
        client = self._RecordingClient()
        RedisCacheStore(client).set("matchmaking:k", "[]", 1800)
        assert client.calls == [("matchmaking:k", "[]", 1800)]

    def test_layer_over_unreachable_redis_degrades(self):
        layer = CacheLayer(RedisCacheStore(self._DownClient()))
        compute = Counter()
        assert layer.get_or_compute(CacheNamespace.MATCHMAKING, "k", compute) == {"n": 1}
