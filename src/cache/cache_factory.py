# src/cache/cache_factory.py — v3
"""Factories for cache store and engine instantiation."""

from __future__ import annotations

from brandcache.cache.base_cache_store import BaseCacheStore
from brandcache.cache.engine import ResponseCacheEngine
from brandcache.cache.session_stats import SessionStats
from brandcache.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to values from .env.

    Returns:
        Configured BaseCacheStore implementation.

    Raises:
        StorageUnavailable: If the backend cannot be opened.
    """
    if settings is None:
        settings = Settings()
    backend = settings.cache_backend

    if backend == "sqlite":
        from brandcache.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(db_path=settings.cache_db_path)

    if backend == "redis":
        from brandcache.cache.redis_store import RedisCacheStore
        return RedisCacheStore(
            redis_url=settings.cache_redis_url,
            prefix=settings.cache_redis_prefix,
            event_log_max=settings.cache_event_log_max,
        )

    raise ValueError(f"Unsupported cache backend: {backend!r}")


def create_engine(
    settings: Settings | None = None,
    session_stats: SessionStats | None = None,
) -> ResponseCacheEngine:
    """Build a ResponseCacheEngine wired to the configured store and policy."""
    if settings is None:
        settings = Settings()
    return ResponseCacheEngine(
        store=create_cache_store(settings),
        default_ttl=settings.cache_default_ttl,
        session_stats=session_stats,
        brand_case_sensitive=settings.cache_brand_case_sensitive,
        events_enabled=settings.cache_events_enabled,
    )
