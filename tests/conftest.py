# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a controllable clock, sample analysis configurations and
SQLite-backed stores/engines in temp directories. No external services.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from brandcache.cache.engine import ResponseCacheEngine
from brandcache.cache.sqlite_store import SqliteCacheStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# === FIXTURES: Sample data ===


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at 2026-02-07 14:00 UTC."""
    return FakeClock(datetime(2026, 2, 7, 14, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def sample_configuration() -> dict:
    """Configuration as sent by the analysis path."""
    return {
        "name": "Occident",
        "competitors": ["Mapfre", "AXA", "Allianz"],
        "countryCode": "ES",
        "language": "es",
    }


@pytest.fixture
def sample_question() -> str:
    return "¿Cuál es el mejor seguro de hogar?"


# === FIXTURES: Stores and engines ===


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteCacheStore(db_path=tmp_path / "analysis.db")
    yield store
    store.close()


@pytest.fixture
def engine(sqlite_store, clock) -> ResponseCacheEngine:
    """Engine on a fresh SQLite file with the frozen clock."""
    return ResponseCacheEngine(store=sqlite_store, clock=clock)
