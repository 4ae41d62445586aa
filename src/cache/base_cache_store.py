# src/cache/base_cache_store.py — v2
"""Abstract cache store interface.

Stores know nothing about fingerprinting, TTL policy or session counters:
the engine passes fully-built entries and the current time in. Every
backend failure must surface as StorageUnavailable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from brandcache.cache.models import CacheEntry, CacheEvent, EntryAggregate


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, fingerprint: str) -> CacheEntry | None:
        """Retrieve an entry by fingerprint, expired or not."""

    @abstractmethod
    async def put(self, entry: CacheEntry, brand_key: str | None) -> None:
        """Atomically replace-or-insert an entry and its brand index row."""

    @abstractmethod
    async def increment_hits(self, fingerprint: str) -> None:
        """Add one to the stored hit count of an entry."""

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Remove entries with ``expires_at <= now``; return the count."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Remove every entry; return the count."""

    @abstractmethod
    async def delete_by_brand(self, brand_key: str) -> int:
        """Remove entries filed under a brand index key; return the count."""

    @abstractmethod
    async def aggregate(self, now: datetime) -> EntryAggregate:
        """Count, hit total, byte size and age bounds over live entries."""

    @abstractmethod
    async def top_entries(self, limit: int, now: datetime) -> list[CacheEntry]:
        """Live entries by hit count desc, then fingerprint asc."""

    @abstractmethod
    async def record_event(self, event: CacheEvent) -> None:
        """Append a diagnostic event."""

    @abstractmethod
    async def list_events(self, limit: int) -> list[CacheEvent]:
        """Most recent events first."""

    @abstractmethod
    def close(self) -> None:
        """Release the backend handle."""
