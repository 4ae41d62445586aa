# src/cache/engine.py — v2
"""Response cache engine sitting between analysis runs and provider calls.

The engine never calls a provider. On a miss the caller performs the call
and populates the cache with ``set``. Expiration is enforced lazily on read;
physical removal only happens through ``clean_expired`` or invalidation,
which the host schedules as it sees fit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from brandcache.cache.base_cache_store import BaseCacheStore
from brandcache.cache.errors import InvalidArgument
from brandcache.cache.fingerprint import (
    ConfigurationLike,
    brand_index_key,
    coerce_configuration,
    compute_fingerprint,
)
from brandcache.cache.models import CacheEntry, CacheEvent, CacheEventType, CacheStats
from brandcache.cache.session_stats import SessionStats, compute_hit_rate
from brandcache.logging.context import clear_context, set_cache_context

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=7)
_PREVIEW_CHARS = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _preview(question: str) -> str:
    if len(question) <= _PREVIEW_CHARS:
        return question
    return question[:_PREVIEW_CHARS] + "..."


class ResponseCacheEngine:
    """Fingerprint-keyed cache of generative-AI responses.

    Args:
        store: Backing store. Shared handles are fine; the engine only
            touches its own tables/keys.
        default_ttl: TTL applied when ``set`` gets none.
        session_stats: Hit/miss counters. A fresh one is created if omitted.
        brand_case_sensitive: Whether ``invalidate_by_brand`` distinguishes
            letter case.
        events_enabled: Record diagnostic events in the store.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        store: BaseCacheStore,
        default_ttl: timedelta = DEFAULT_TTL,
        session_stats: SessionStats | None = None,
        brand_case_sensitive: bool = False,
        events_enabled: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if default_ttl <= timedelta(0):
            raise InvalidArgument("default_ttl must be positive")
        self._store = store
        self._default_ttl = default_ttl
        self._session = session_stats if session_stats is not None else SessionStats()
        self._brand_case_sensitive = brand_case_sensitive
        self._events_enabled = events_enabled
        self._clock = clock

    @property
    def session_stats(self) -> SessionStats:
        return self._session

    async def get(
        self, question: str, configuration: ConfigurationLike, model: str
    ) -> str | None:
        """Return the cached response, or None on a miss or expired entry."""
        fingerprint = compute_fingerprint(question, configuration, model)
        now = self._clock()
        set_cache_context("get", model=model)
        try:
            entry = await self._store.get(fingerprint)
            if entry is None or entry.is_expired(now):
                self._session.record_miss()
                logger.info("Cache miss: %s", _preview(question))
                await self._record("miss", now, question=question, model=model)
                return None

            await self._store.increment_hits(fingerprint)
            self._session.record_hit()
            hits = entry.hit_count + 1
            logger.info("Cache hit: %s (%d hits)", _preview(question), hits)
            await self._record("hit", now, question=question, model=model, hits=hits)
            return entry.response
        finally:
            clear_context()

    async def set(
        self,
        question: str,
        response: str,
        configuration: ConfigurationLike,
        model: str,
        ttl: timedelta | None = None,
    ) -> None:
        """Store a fresh response, replacing any entry with the same key.

        The stored hit count is reset to 0 and the TTL restarts, even when
        the previous entry had not expired yet.

        Raises:
            InvalidArgument: Blank question or model, or non-positive TTL.
            StorageUnavailable: Backing store failure.
        """
        if not question or not question.strip():
            raise InvalidArgument("question must not be empty")
        if not model or not model.strip():
            raise InvalidArgument("model must not be empty")
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= timedelta(0):
            raise InvalidArgument(f"ttl must be positive, got {ttl}")

        config = coerce_configuration(configuration)
        now = self._clock()
        entry = CacheEntry(
            fingerprint=compute_fingerprint(question, config, model),
            question=question,
            response=response,
            model=model,
            configuration_snapshot=config.snapshot(),
            brand=config.name,
            created_at=now,
            expires_at=now + ttl,
        )
        set_cache_context("set", model=model, brand=config.name)
        try:
            await self._store.put(
                entry, brand_index_key(config.name, self._brand_case_sensitive)
            )
            logger.info(
                "Cached response: %s (expires %s)",
                _preview(question), entry.expires_at.date().isoformat(),
            )
            await self._record(
                "set", now,
                question=question, model=model,
                expires_at=entry.expires_at.isoformat(),
            )
        finally:
            clear_context()

    async def clean_expired(self) -> int:
        """Physically remove entries whose TTL has passed."""
        deleted = await self._store.delete_expired(self._clock())
        logger.info("Cache cleanup: %d expired entries removed", deleted)
        return deleted

    async def invalidate_all(self) -> int:
        """Remove every entry. Session counters are left untouched."""
        now = self._clock()
        deleted = await self._store.delete_all()
        logger.info("Cache fully invalidated: %d entries removed", deleted)
        await self._record("invalidate_all", now, deleted=deleted)
        return deleted

    async def invalidate_by_brand(self, brand: str) -> int:
        """Remove every entry whose configuration targeted ``brand``."""
        key = brand_index_key(brand, self._brand_case_sensitive)
        if key is None:
            raise InvalidArgument("brand must not be empty")
        now = self._clock()
        set_cache_context("invalidate_brand", brand=brand)
        try:
            deleted = await self._store.delete_by_brand(key)
            logger.info("Cache invalidated for brand %s: %d entries removed", brand, deleted)
            await self._record("invalidate_brand", now, brand=brand, deleted=deleted)
        finally:
            clear_context()
        return deleted

    async def get_stats(self) -> CacheStats:
        aggregate = await self._store.aggregate(self._clock())
        hits, misses = self._session.snapshot()
        return CacheStats(
            total_entries=aggregate.total_entries,
            total_entry_hits=aggregate.total_hits,
            session_hits=hits,
            session_misses=misses,
            hit_rate=compute_hit_rate(hits, misses),
            cache_size_bytes=aggregate.total_bytes,
            oldest_entry=aggregate.oldest_entry,
            newest_entry=aggregate.newest_entry,
        )

    async def get_top_entries(self, limit: int = 10) -> list[CacheEntry]:
        """Live entries with the most hits first (ties by fingerprint)."""
        if limit < 1:
            raise InvalidArgument(f"limit must be >= 1, got {limit}")
        return await self._store.top_entries(limit, self._clock())

    async def recent_events(self, limit: int = 50) -> list[CacheEvent]:
        if limit < 1:
            raise InvalidArgument(f"limit must be >= 1, got {limit}")
        return await self._store.list_events(limit)

    def close(self) -> None:
        self._store.close()

    async def _record(
        self, event_type: CacheEventType, timestamp: datetime, **details: Any
    ) -> None:
        if not self._events_enabled:
            return
        await self._store.record_event(
            CacheEvent(event_type=event_type, timestamp=timestamp, details=details)
        )
