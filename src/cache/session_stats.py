# src/cache/session_stats.py — v2
"""Process-lifetime hit/miss counters.

Never persisted. Owned by a ResponseCacheEngine instance so that tests and
hosts can run independent counters side by side.
"""

from __future__ import annotations

import threading


def compute_hit_rate(hits: int, misses: int) -> float:
    """Hit rate as a percentage rounded to 2 decimals, 0 with no lookups."""
    total = hits + misses
    if total == 0:
        return 0.0
    return round(hits / total * 100, 2)


class SessionStats:
    """Thread-safe running totals of lookups observed by ``get``."""

    def __init__(self) -> None:
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def snapshot(self) -> tuple[int, int]:
        """Return (hits, misses) read under the same lock."""
        with self._lock:
            return self._hits, self._misses

    @property
    def hits(self) -> int:
        return self.snapshot()[0]

    @property
    def misses(self) -> int:
        return self.snapshot()[1]

    def hit_rate(self) -> float:
        return compute_hit_rate(*self.snapshot())
