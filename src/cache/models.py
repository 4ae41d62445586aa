# src/cache/models.py — v2
"""Cache domain models: AnalysisConfiguration, CacheEntry, CacheEvent, CacheStats."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

CacheEventType = Literal["hit", "miss", "set", "invalidate_all", "invalidate_brand"]


class AnalysisConfiguration(BaseModel):
    """Analysis configuration as handed over by the caller.

    Only the target brand and the competitor list take part in the
    fingerprint. Any other key (locale, country code, ...) is kept in the
    snapshot untouched.
    """

    model_config = ConfigDict(extra="allow")

    name: str | None = Field(
        default=None, validation_alias=AliasChoices("name", "target", "brand")
    )
    competitors: list[str] = Field(default_factory=list)

    @field_validator("competitors", mode="before")
    @classmethod
    def null_competitors_as_empty(cls, v: Any) -> Any:
        """A null competitor list means no competitors."""
        return [] if v is None else v

    def snapshot(self) -> str:
        """Serialize the full configuration, extras included."""
        return self.model_dump_json()


class CacheEntry(BaseModel):
    """Single cached provider response."""

    fingerprint: str
    question: str
    response: str
    model: str
    configuration_snapshot: str
    brand: str | None = None
    created_at: datetime
    expires_at: datetime
    hit_count: int = Field(default=0, ge=0)

    def is_expired(self, now: datetime) -> bool:
        """Entries are logically absent from ``expires_at`` onwards."""
        return now >= self.expires_at

    @property
    def response_size(self) -> int:
        return len(self.response.encode("utf-8"))


class CacheEvent(BaseModel):
    """Diagnostic event appended on every cache operation."""

    event_type: CacheEventType
    timestamp: datetime
    details: dict[str, Any] = Field(default_factory=dict)


class EntryAggregate(BaseModel):
    """Storage-side aggregate over live (non-expired) entries."""

    total_entries: int = 0
    total_hits: int = 0
    total_bytes: int = 0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None


class CacheStats(BaseModel):
    """Statistics returned to administrative callers."""

    total_entries: int
    total_entry_hits: int
    session_hits: int
    session_misses: int
    hit_rate: float
    cache_size_bytes: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
