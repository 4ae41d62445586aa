# src/logging/logger.py — v3
"""Log routing for the cache: JSON or text records carrying the cache context.

Modules log through ``logging.getLogger(__name__)``. Everything under the
``brandcache`` namespace is routed by :func:`setup_logging`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from brandcache.logging.context import get_context
from brandcache.logging.handlers import create_rotating_handler

if TYPE_CHECKING:
    from brandcache.config.settings import Settings

ROOT_LOGGER = "brandcache"


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line. Operation, model and brand are top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **get_context().as_dict(),
        }
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """``2026-02-07 14:00:00 INFO    brandcache.cache.engine [get gpt-4o brand=Occident]: ...``"""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        head = f"{_timestamp(record):%Y-%m-%d %H:%M:%S} {record.levelname:<7} {record.name}"
        tags = [tag for tag in (ctx.operation, ctx.model) if tag]
        if ctx.brand:
            tags.append(f"brand={ctx.brand}")
        if tags:
            head += f" [{' '.join(tags)}]"
        line = f"{head}: {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _formatter(log_format: str) -> logging.Formatter:
    return JsonFormatter() if log_format == "json" else TextFormatter()


def setup_logging(
    settings: Settings,
    console_level: str | None = None,
    console_format: str | None = None,
) -> logging.Logger:
    """Route ``brandcache.*`` records to stderr and, if configured, a rotating file.

    The console handler takes ``console_level``/``console_format`` when
    given; the file handler always follows ``settings``. Calling this again
    replaces the previous handlers.

    Returns:
        The ``brandcache`` root logger.
    """
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    # stdout carries command output in the CLI
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level or settings.log_level)
    console.setFormatter(_formatter(console_format or settings.log_format))
    root.addHandler(console)

    if settings.log_file is not None:
        file_handler = create_rotating_handler(
            str(settings.log_file),
            rotation=settings.log_rotation,
            retention=settings.log_retention,
        )
        file_handler.setLevel(settings.log_level)
        file_handler.setFormatter(_formatter(settings.log_format))
        root.addHandler(file_handler)

    root.setLevel(min(handler.level for handler in root.handlers))
    return root
