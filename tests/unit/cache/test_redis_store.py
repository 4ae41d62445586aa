# tests/unit/cache/test_redis_store.py — v3
"""Tests for cache/redis_store.py — in-memory stand-in for the Redis client."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from brandcache.cache.errors import StorageUnavailable
from brandcache.cache.models import CacheEntry, CacheEvent
from brandcache.cache.redis_store import _INCR_IF_PRESENT

T0 = datetime(2026, 2, 16, 12, 0, tzinfo=timezone.utc)


class FakeRedisError(Exception):
    pass


class FakeRedis:
    """Just enough of redis.Redis(decode_responses=True) for the store."""

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.lists: dict[str, list[str]] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise FakeRedisError("connection refused")

    def get(self, key):
        self._check()
        return self.strings.get(key)

    def set(self, key, value):
        self._check()
        self.strings[key] = str(value)
        return True

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            for space in (self.strings, self.sets, self.lists):
                if key in space:
                    del space[key]
                    removed += 1
        return removed

    def incr(self, key):
        self._check()
        value = int(self.strings.get(key, "0")) + 1
        self.strings[key] = str(value)
        return value

    def sadd(self, key, member):
        self._check()
        members = self.sets.setdefault(key, set())
        added = member not in members
        members.add(member)
        return int(added)

    def srem(self, key, member):
        self._check()
        members = self.sets.get(key, set())
        if member in members:
            members.discard(member)
            if not members:
                self.sets.pop(key, None)
            return 1
        return 0

    def smembers(self, key):
        self._check()
        return set(self.sets.get(key, set()))

    def lpush(self, key, value):
        self._check()
        self.lists.setdefault(key, []).insert(0, value)
        return len(self.lists[key])

    def ltrim(self, key, start, end):
        self._check()
        self.lists[key] = self.lists.get(key, [])[start : end + 1]
        return True

    def lrange(self, key, start, end):
        self._check()
        return self.lists.get(key, [])[start : end + 1]

    def register_script(self, source):
        return FakeIncrIfPresent(self)

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def close(self):
        pass


class FakeIncrIfPresent:
    """Stands in for the registered INCR-if-entry-exists script."""

    def __init__(self, client: FakeRedis) -> None:
        self._client = client

    def __call__(self, keys=(), args=()):
        self._client._check()
        entry_key, hits_key = keys
        if entry_key not in self._client.strings:
            return None
        return self._client.incr(hits_key)


class FakePipeline:
    def __init__(self, client: FakeRedis) -> None:
        self._client = client
        self._calls: list = []

    def __getattr__(self, name):
        def queue(*args):
            self._calls.append((name, args))
            return self
        return queue

    def execute(self):
        self._client._check()
        return [getattr(self._client, name)(*args) for name, args in self._calls]


def _make_entry(fp: str = "a" * 64, **overrides) -> CacheEntry:
    defaults = dict(
        fingerprint=fp,
        question="q",
        response="r",
        model="gpt-4o",
        configuration_snapshot="{}",
        brand="Occident",
        created_at=T0,
        expires_at=T0 + timedelta(days=1),
    )
    defaults.update(overrides)
    return CacheEntry(**defaults)


@pytest.fixture
def fake_client():
    return FakeRedis()


@pytest.fixture
def store(fake_client):
    with patch("brandcache.cache.redis_store.RedisCacheStore.__init__", return_value=None):
        from brandcache.cache.redis_store import RedisCacheStore
        s = RedisCacheStore.__new__(RedisCacheStore)
        s._client = fake_client
        s._errors = (FakeRedisError,)
        s._incr_if_present = fake_client.register_script(_INCR_IF_PRESENT)
        s._prefix = "test:"
        s._event_log_max = 3
    return s


class TestRedisCacheStore:
    def test_import_error_without_redis(self):
        """Clear ImportError when redis is not available."""
        import sys
        redis_mod = sys.modules.get("redis")
        sys.modules["redis"] = None  # type: ignore[assignment]
        try:
            from brandcache.cache.redis_store import RedisCacheStore
            with pytest.raises(ImportError, match="redis"):
                RedisCacheStore(redis_url="redis://localhost")
        finally:
            if redis_mod is not None:
                sys.modules["redis"] = redis_mod
            else:
                sys.modules.pop("redis", None)

    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        await store.put(_make_entry(), "occident")
        result = await store.get("a" * 64)
        assert result is not None
        assert result.response == "r"
        assert result.created_at == T0
        assert result.hit_count == 0

    @pytest.mark.asyncio
    async def test_hits_and_overwrite(self, store):
        await store.put(_make_entry(response="v1"), "occident")
        await store.increment_hits("a" * 64)
        assert (await store.get("a" * 64)).hit_count == 1
        await store.put(_make_entry(response="v2"), "occident")
        result = await store.get("a" * 64)
        assert result.response == "v2"
        assert result.hit_count == 0

    @pytest.mark.asyncio
    async def test_increment_after_delete_leaves_no_counter(self, store, fake_client):
        await store.put(_make_entry(), "occident")
        assert await store.delete_all() == 1
        await store.increment_hits("a" * 64)
        assert "test:hits:" + "a" * 64 not in fake_client.strings
        assert await store.get("a" * 64) is None

    @pytest.mark.asyncio
    async def test_delete_by_brand(self, store, fake_client):
        await store.put(_make_entry("a" * 64), "occident")
        await store.put(_make_entry("b" * 64, brand="Occident Plus"), "occident plus")
        assert await store.delete_by_brand("occident") == 1
        assert await store.get("a" * 64) is None
        assert await store.get("b" * 64) is not None
        assert fake_client.smembers("test:__index__") == {"b" * 64}

    @pytest.mark.asyncio
    async def test_rebrand_moves_membership(self, store):
        await store.put(_make_entry(brand="Old"), "old")
        await store.put(_make_entry(brand="New"), "new")
        assert await store.delete_by_brand("old") == 0
        assert await store.delete_by_brand("new") == 1

    @pytest.mark.asyncio
    async def test_delete_expired_and_all(self, store):
        await store.put(_make_entry("a" * 64, expires_at=T0 + timedelta(hours=1)), "x")
        await store.put(_make_entry("b" * 64), None)
        assert await store.delete_expired(T0 + timedelta(hours=2)) == 1
        assert await store.delete_all() == 1
        assert await store.delete_all() == 0

    @pytest.mark.asyncio
    async def test_aggregate_and_top(self, store):
        await store.put(_make_entry("a" * 64, response="abc"), None)
        await store.put(_make_entry("b" * 64, response="de"), None)
        await store.put(
            _make_entry("c" * 64, expires_at=T0 + timedelta(minutes=1)), None
        )
        await store.increment_hits("b" * 64)
        now = T0 + timedelta(minutes=5)
        agg = await store.aggregate(now)
        assert agg.total_entries == 2
        assert agg.total_hits == 1
        assert agg.total_bytes == 5
        top = await store.top_entries(5, now)
        assert [e.fingerprint for e in top] == ["b" * 64, "a" * 64]

    @pytest.mark.asyncio
    async def test_event_log_is_capped(self, store):
        for i in range(5):
            await store.record_event(
                CacheEvent(event_type="miss", timestamp=T0, details={"i": i})
            )
        events = await store.list_events(10)
        assert [e.details["i"] for e in events] == [4, 3, 2]

    @pytest.mark.asyncio
    async def test_backend_error_is_storage_unavailable(self, store, fake_client):
        fake_client.fail = True
        with pytest.raises(StorageUnavailable):
            await store.get("a" * 64)
        with pytest.raises(StorageUnavailable):
            await store.put(_make_entry(), None)
        with pytest.raises(StorageUnavailable):
            await store.delete_all()
