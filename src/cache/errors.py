# src/cache/errors.py — v1
"""Error taxonomy for the response cache.

A cache miss is a normal outcome and never raises.
"""

from __future__ import annotations


class CacheError(Exception):
    """Base class for response cache failures."""


class StorageUnavailable(CacheError):
    """Backing store cannot be opened or queried.

    Fatal to the calling operation. The engine does not retry.
    """


class InvalidArgument(CacheError, ValueError):
    """Caller input rejected before any storage access."""
