# src/cache/fingerprint.py — v4
"""Deterministic request fingerprinting.

Two requests that differ only by letter case or surrounding whitespace in
the question, or by the order of the competitor list, map to the same key.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from brandcache.cache.errors import InvalidArgument
from brandcache.cache.models import AnalysisConfiguration

ConfigurationLike = AnalysisConfiguration | Mapping[str, Any]


def coerce_configuration(configuration: ConfigurationLike) -> AnalysisConfiguration:
    """Accept either a mapping or an already-built AnalysisConfiguration.

    Raises:
        InvalidArgument: The mapping does not describe a valid configuration.
    """
    if isinstance(configuration, AnalysisConfiguration):
        return configuration
    try:
        return AnalysisConfiguration.model_validate(dict(configuration))
    except ValidationError as exc:
        raise InvalidArgument(f"invalid configuration: {exc}") from exc


def normalize_question(question: str) -> str:
    """Lowercase and trim surrounding whitespace."""
    return question.strip().lower()


def compute_fingerprint(
    question: str,
    configuration: ConfigurationLike,
    model: str,
) -> str:
    """Compute the cache key for a (question, configuration, model) request.

    Args:
        question: Raw question as asked by the caller.
        configuration: Analysis configuration (brand, competitors, ...).
        model: Provider/model identifier.

    Returns:
        64-char lowercase SHA-256 hex digest.
    """
    config = coerce_configuration(configuration)
    canonical = json.dumps(
        {
            "question": normalize_question(question),
            "brand": config.name,
            "competitors": sorted(config.competitors),
            "model": model,
        },
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def brand_index_key(brand: str | None, case_sensitive: bool = False) -> str | None:
    """Key under which an entry is filed in the brand secondary index.

    Returns None when there is no usable brand, so the entry is not indexed.
    """
    if brand is None:
        return None
    key = brand.strip()
    if not key:
        return None
    return key if case_sensitive else key.casefold()
