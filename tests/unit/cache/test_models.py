# tests/unit/cache/test_models.py — v2
"""Tests for cache/models.py — configuration, entry and stats models."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from brandcache.cache.models import (
    AnalysisConfiguration,
    CacheEntry,
    CacheEvent,
    EntryAggregate,
)

_T0 = datetime(2026, 2, 7, tzinfo=timezone.utc)


def _make_entry(**overrides) -> CacheEntry:
    defaults = dict(
        fingerprint="a" * 64,
        question="Best bank?",
        response="Answer",
        model="gpt-4o",
        configuration_snapshot="{}",
        created_at=_T0,
        expires_at=_T0 + timedelta(days=1),
    )
    defaults.update(overrides)
    return CacheEntry(**defaults)


class TestAnalysisConfiguration:
    def test_name_field(self):
        cfg = AnalysisConfiguration.model_validate({"name": "Occident"})
        assert cfg.name == "Occident"
        assert cfg.competitors == []

    @pytest.mark.parametrize("alias", ["target", "brand"])
    def test_brand_aliases(self, alias):
        cfg = AnalysisConfiguration.model_validate({alias: "Occident"})
        assert cfg.name == "Occident"

    def test_name_wins_over_target(self):
        cfg = AnalysisConfiguration.model_validate({"target": "B", "name": "A"})
        assert cfg.name == "A"

    def test_extras_kept_in_snapshot(self):
        cfg = AnalysisConfiguration.model_validate(
            {"name": "Occident", "competitors": ["AXA"], "countryCode": "ES"}
        )
        snapshot = json.loads(cfg.snapshot())
        assert snapshot["name"] == "Occident"
        assert snapshot["competitors"] == ["AXA"]
        assert snapshot["countryCode"] == "ES"

    def test_competitors_must_be_strings(self):
        with pytest.raises(ValidationError):
            AnalysisConfiguration.model_validate({"competitors": [{"x": 1}]})

    def test_null_competitors_become_empty(self):
        cfg = AnalysisConfiguration.model_validate({"name": "Occident", "competitors": None})
        assert cfg.competitors == []


class TestCacheEntry:
    def test_defaults(self):
        entry = _make_entry()
        assert entry.hit_count == 0
        assert entry.brand is None

    def test_negative_hit_count_rejected(self):
        with pytest.raises(ValidationError):
            _make_entry(hit_count=-1)

    def test_is_expired_boundary(self):
        entry = _make_entry()
        assert entry.is_expired(_T0 + timedelta(hours=23, minutes=59)) is False
        assert entry.is_expired(entry.expires_at) is True

    def test_response_size_counts_utf8_bytes(self):
        entry = _make_entry(response="líder")
        assert entry.response_size == 6


class TestCacheEvent:
    def test_create(self):
        event = CacheEvent(event_type="miss", timestamp=_T0, details={"model": "m"})
        assert event.details["model"] == "m"

    def test_unknown_event_type(self):
        with pytest.raises(ValidationError):
            CacheEvent(event_type="evict", timestamp=_T0)


class TestEntryAggregate:
    def test_empty_defaults(self):
        agg = EntryAggregate()
        assert agg.total_entries == 0
        assert agg.oldest_entry is None
