# src/cache/redis_store.py — v3
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
An entry, its hit counter and its index memberships are written in one
MULTI/EXEC pipeline so a reader never sees half of a write.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from brandcache.cache.base_cache_store import BaseCacheStore
from brandcache.cache.errors import StorageUnavailable
from brandcache.cache.models import CacheEntry, CacheEvent, EntryAggregate

logger = logging.getLogger(__name__)

_DEFAULT_PREFIX = "brandcache:"

# KEYS[1] entry key, KEYS[2] hits key. A counter is never created for a
# deleted entry.
_INCR_IF_PRESENT = """
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("INCR", KEYS[2])
end
return false
"""


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store.

    Layout under ``prefix``:
        entry:<fp>    JSON-serialized CacheEntry (hit_count excluded)
        hits:<fp>     integer hit counter
        __index__     set of every fingerprint
        brand:<key>   set of fingerprints filed under a brand index key
        brandof:<fp>  brand index key of an entry
        events        list of JSON events, newest first, capped
    """

    def __init__(
        self,
        redis_url: str,
        prefix: str = _DEFAULT_PREFIX,
        event_log_max: int = 10_000,
    ) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._errors: tuple[type[Exception], ...] = (redis.exceptions.RedisError,)
        self._incr_if_present = self._client.register_script(_INCR_IF_PRESENT)
        self._prefix = prefix
        self._event_log_max = event_log_max

    # --- key helpers ---

    def _entry_key(self, fingerprint: str) -> str:
        return f"{self._prefix}entry:{fingerprint}"

    def _hits_key(self, fingerprint: str) -> str:
        return f"{self._prefix}hits:{fingerprint}"

    def _brand_key(self, brand_key: str) -> str:
        return f"{self._prefix}brand:{brand_key}"

    def _brand_of_key(self, fingerprint: str) -> str:
        return f"{self._prefix}brandof:{fingerprint}"

    @property
    def _index_key(self) -> str:
        return f"{self._prefix}__index__"

    @property
    def _events_key(self) -> str:
        return f"{self._prefix}events"

    def _fail(self, operation: str, error: Exception) -> StorageUnavailable:
        logger.error("Cache store %s failed: %s", operation, error)
        return StorageUnavailable(f"Cache store {operation} failed: {error}")

    # --- BaseCacheStore ---

    async def get(self, fingerprint: str) -> CacheEntry | None:
        """Retrieve cache entry by fingerprint."""
        try:
            data = self._client.get(self._entry_key(fingerprint))
            hits = self._client.get(self._hits_key(fingerprint))
        except self._errors as e:
            raise self._fail("get", e) from e
        if data is None:
            return None
        try:
            entry = CacheEntry.model_validate_json(data)
        except ValueError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", fingerprint, e)
            return None
        return entry.model_copy(update={"hit_count": int(hits or 0)})

    async def put(self, entry: CacheEntry, brand_key: str | None) -> None:
        """Store an entry (full overwrite, hit counter reset to 0)."""
        fp = entry.fingerprint
        payload = entry.model_dump_json(exclude={"hit_count"})
        try:
            previous_brand = self._client.get(self._brand_of_key(fp))
            pipe = self._client.pipeline(transaction=True)
            pipe.set(self._entry_key(fp), payload)
            pipe.set(self._hits_key(fp), 0)
            pipe.sadd(self._index_key, fp)
            if previous_brand is not None and previous_brand != brand_key:
                pipe.srem(self._brand_key(previous_brand), fp)
            if brand_key is not None:
                pipe.sadd(self._brand_key(brand_key), fp)
                pipe.set(self._brand_of_key(fp), brand_key)
            else:
                pipe.delete(self._brand_of_key(fp))
            pipe.execute()
        except self._errors as e:
            raise self._fail("put", e) from e

    async def increment_hits(self, fingerprint: str) -> None:
        try:
            self._incr_if_present(
                keys=[self._entry_key(fingerprint), self._hits_key(fingerprint)]
            )
        except self._errors as e:
            raise self._fail("increment_hits", e) from e

    async def delete_expired(self, now: datetime) -> int:
        entries = await self._load_all("delete_expired")
        expired = [entry for entry in entries if entry.is_expired(now)]
        return self._delete_entries("delete_expired", [e.fingerprint for e in expired])

    async def delete_all(self) -> int:
        try:
            fingerprints = list(self._client.smembers(self._index_key))
        except self._errors as e:
            raise self._fail("delete_all", e) from e
        return self._delete_entries("delete_all", fingerprints)

    async def delete_by_brand(self, brand_key: str) -> int:
        """Delete through the brand set (no scan over other entries)."""
        try:
            fingerprints = list(self._client.smembers(self._brand_key(brand_key)))
        except self._errors as e:
            raise self._fail("delete_by_brand", e) from e
        return self._delete_entries("delete_by_brand", fingerprints)

    async def aggregate(self, now: datetime) -> EntryAggregate:
        live = [e for e in await self._load_all("aggregate") if not e.is_expired(now)]
        if not live:
            return EntryAggregate()
        return EntryAggregate(
            total_entries=len(live),
            total_hits=sum(e.hit_count for e in live),
            total_bytes=sum(e.response_size for e in live),
            oldest_entry=min(e.created_at for e in live),
            newest_entry=max(e.created_at for e in live),
        )

    async def top_entries(self, limit: int, now: datetime) -> list[CacheEntry]:
        live = [e for e in await self._load_all("top_entries") if not e.is_expired(now)]
        live.sort(key=lambda e: (-e.hit_count, e.fingerprint))
        return live[:limit]

    async def record_event(self, event: CacheEvent) -> None:
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.lpush(self._events_key, event.model_dump_json())
            pipe.ltrim(self._events_key, 0, self._event_log_max - 1)
            pipe.execute()
        except self._errors as e:
            raise self._fail("record_event", e) from e

    async def list_events(self, limit: int) -> list[CacheEvent]:
        try:
            raw = self._client.lrange(self._events_key, 0, limit - 1)
        except self._errors as e:
            raise self._fail("list_events", e) from e
        return [CacheEvent.model_validate_json(item) for item in raw]

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()

    # --- internals ---

    async def _load_all(self, operation: str) -> list[CacheEntry]:
        try:
            fingerprints = sorted(self._client.smembers(self._index_key))
        except self._errors as e:
            raise self._fail(operation, e) from e
        entries: list[CacheEntry] = []
        for fp in fingerprints:
            entry = await self.get(fp)
            if entry is not None:
                entries.append(entry)
        return entries

    def _delete_entries(self, operation: str, fingerprints: list[str]) -> int:
        """Delete entries and every index row pointing at them; return count."""
        if not fingerprints:
            return 0
        try:
            brands = [self._client.get(self._brand_of_key(fp)) for fp in fingerprints]
            pipe = self._client.pipeline(transaction=True)
            for fp, brand in zip(fingerprints, brands):
                pipe.delete(self._entry_key(fp))
                pipe.delete(self._hits_key(fp), self._brand_of_key(fp))
                pipe.srem(self._index_key, fp)
                if brand is not None:
                    pipe.srem(self._brand_key(brand), fp)
            results = pipe.execute()
        except self._errors as e:
            raise self._fail(operation, e) from e
        # One DEL result per entry key, at the start of each entry's group.
        deleted = 0
        position = 0
        for brand in brands:
            deleted += int(results[position])
            position += 4 if brand is not None else 3
        return deleted
