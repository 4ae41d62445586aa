# src/cache/sqlite_store.py — v2
"""SQLite-based cache store (CACHE_BACKEND=sqlite, the default).

Uses stdlib sqlite3 — no external dependency.
The entry table may live in the same database file as unrelated
application tables. Timestamps are stored as UTC epoch seconds.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from brandcache.cache.base_cache_store import BaseCacheStore
from brandcache.cache.errors import StorageUnavailable
from brandcache.cache.models import CacheEntry, CacheEvent, EntryAggregate

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS llm_cache (
    fingerprint TEXT PRIMARY KEY,
    question TEXT NOT NULL,
    response TEXT NOT NULL,
    response_bytes INTEGER NOT NULL,
    llm_model TEXT NOT NULL,
    configuration TEXT NOT NULL,
    brand TEXT,
    created_at REAL NOT NULL,
    expires_at REAL NOT NULL,
    hits INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_llm_cache_expires ON llm_cache(expires_at);
CREATE TABLE IF NOT EXISTS llm_cache_brands (
    fingerprint TEXT PRIMARY KEY,
    brand_key TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_llm_cache_brands_key ON llm_cache_brands(brand_key);
CREATE TABLE IF NOT EXISTS cache_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    timestamp REAL NOT NULL,
    details TEXT
);
"""

_ENTRY_COLUMNS = (
    "fingerprint, question, response, llm_model, configuration, brand, "
    "created_at, expires_at, hits"
)


def _to_epoch(value: datetime) -> float:
    return value.timestamp()


def _from_epoch(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store with an explicit brand index table."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        try:
            if self._db_path != ":memory:":
                path = Path(self._db_path).expanduser()
                path.parent.mkdir(parents=True, exist_ok=True)
                self._db_path = str(path)
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as e:
            logger.error("Cannot open cache database %s: %s", self._db_path, e)
            raise StorageUnavailable(
                f"Cannot open cache database {self._db_path}: {e}"
            ) from e
        logger.debug("SQLite cache store ready at %s", self._db_path)

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Serialize access and run one operation as one transaction."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                logger.error("Cache store %s failed: %s", operation, e)
                raise StorageUnavailable(f"Cache store {operation} failed: {e}") from e

    async def get(self, fingerprint: str) -> CacheEntry | None:
        """Retrieve cache entry by fingerprint."""
        with self._transaction("get") as conn:
            row = conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM llm_cache WHERE fingerprint = ?",
                (fingerprint,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    async def put(self, entry: CacheEntry, brand_key: str | None) -> None:
        """Upsert an entry, resetting its hit count and brand index row."""
        with self._transaction("put") as conn:
            conn.execute(
                """INSERT INTO llm_cache
                   (fingerprint, question, response, response_bytes, llm_model,
                    configuration, brand, created_at, expires_at, hits)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                   ON CONFLICT(fingerprint) DO UPDATE SET
                       question = excluded.question,
                       response = excluded.response,
                       response_bytes = excluded.response_bytes,
                       llm_model = excluded.llm_model,
                       configuration = excluded.configuration,
                       brand = excluded.brand,
                       created_at = excluded.created_at,
                       expires_at = excluded.expires_at,
                       hits = 0""",
                (
                    entry.fingerprint,
                    entry.question,
                    entry.response,
                    entry.response_size,
                    entry.model,
                    entry.configuration_snapshot,
                    entry.brand,
                    _to_epoch(entry.created_at),
                    _to_epoch(entry.expires_at),
                ),
            )
            conn.execute(
                "DELETE FROM llm_cache_brands WHERE fingerprint = ?",
                (entry.fingerprint,),
            )
            if brand_key is not None:
                conn.execute(
                    "INSERT INTO llm_cache_brands (fingerprint, brand_key) VALUES (?, ?)",
                    (entry.fingerprint, brand_key),
                )

    async def increment_hits(self, fingerprint: str) -> None:
        with self._transaction("increment_hits") as conn:
            conn.execute(
                "UPDATE llm_cache SET hits = hits + 1 WHERE fingerprint = ?",
                (fingerprint,),
            )

    async def delete_expired(self, now: datetime) -> int:
        cutoff = _to_epoch(now)
        with self._transaction("delete_expired") as conn:
            conn.execute(
                """DELETE FROM llm_cache_brands WHERE fingerprint IN
                   (SELECT fingerprint FROM llm_cache WHERE expires_at <= ?)""",
                (cutoff,),
            )
            cursor = conn.execute(
                "DELETE FROM llm_cache WHERE expires_at <= ?", (cutoff,)
            )
            return cursor.rowcount

    async def delete_all(self) -> int:
        with self._transaction("delete_all") as conn:
            conn.execute("DELETE FROM llm_cache_brands")
            cursor = conn.execute("DELETE FROM llm_cache")
            return cursor.rowcount

    async def delete_by_brand(self, brand_key: str) -> int:
        """Delete through the brand index (indexed lookup, no text scan)."""
        with self._transaction("delete_by_brand") as conn:
            cursor = conn.execute(
                """DELETE FROM llm_cache WHERE fingerprint IN
                   (SELECT fingerprint FROM llm_cache_brands WHERE brand_key = ?)""",
                (brand_key,),
            )
            conn.execute(
                "DELETE FROM llm_cache_brands WHERE brand_key = ?", (brand_key,)
            )
            return cursor.rowcount

    async def aggregate(self, now: datetime) -> EntryAggregate:
        with self._transaction("aggregate") as conn:
            row = conn.execute(
                """SELECT COUNT(*) AS total_entries,
                          COALESCE(SUM(hits), 0) AS total_hits,
                          COALESCE(SUM(response_bytes), 0) AS total_bytes,
                          MIN(created_at) AS oldest_entry,
                          MAX(created_at) AS newest_entry
                   FROM llm_cache WHERE expires_at > ?""",
                (_to_epoch(now),),
            ).fetchone()
        return EntryAggregate(
            total_entries=row["total_entries"],
            total_hits=row["total_hits"],
            total_bytes=row["total_bytes"],
            oldest_entry=_from_epoch(row["oldest_entry"]),
            newest_entry=_from_epoch(row["newest_entry"]),
        )

    async def top_entries(self, limit: int, now: datetime) -> list[CacheEntry]:
        with self._transaction("top_entries") as conn:
            rows = conn.execute(
                f"""SELECT {_ENTRY_COLUMNS} FROM llm_cache
                    WHERE expires_at > ?
                    ORDER BY hits DESC, fingerprint ASC
                    LIMIT ?""",
                (_to_epoch(now), limit),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def record_event(self, event: CacheEvent) -> None:
        with self._transaction("record_event") as conn:
            conn.execute(
                "INSERT INTO cache_events (event_type, timestamp, details) VALUES (?, ?, ?)",
                (
                    event.event_type,
                    _to_epoch(event.timestamp),
                    json.dumps(event.details, ensure_ascii=False, default=str),
                ),
            )

    async def list_events(self, limit: int) -> list[CacheEvent]:
        with self._transaction("list_events") as conn:
            rows = conn.execute(
                """SELECT event_type, timestamp, details FROM cache_events
                   ORDER BY id DESC LIMIT ?""",
                (limit,),
            ).fetchall()
        return [
            CacheEvent(
                event_type=row["event_type"],
                timestamp=_from_epoch(row["timestamp"]),
                details=json.loads(row["details"]) if row["details"] else {},
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        return CacheEntry(
            fingerprint=row["fingerprint"],
            question=row["question"],
            response=row["response"],
            model=row["llm_model"],
            configuration_snapshot=row["configuration"],
            brand=row["brand"],
            created_at=_from_epoch(row["created_at"]),
            expires_at=_from_epoch(row["expires_at"]),
            hit_count=row["hits"],
        )
