# src/logging/context.py — v2
"""Contextual logging support — attach operation, model and brand to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging — set per cache operation.
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_model: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "model", default=None
)
_brand: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "brand", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    operation: str | None = None
    model: str | None = None
    brand: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        operation=_operation.get(),
        model=_model.get(),
        brand=_brand.get(),
    )


def set_cache_context(
    operation: str, model: str | None = None, brand: str | None = None
) -> None:
    """Set context for the cache operation in progress."""
    _operation.set(operation)
    _model.set(model)
    _brand.set(brand)


def clear_context() -> None:
    """Reset all context variables."""
    _operation.set(None)
    _model.set(None)
    _brand.set(None)
