# src/main.py — v3
"""CLI entry point — administrative commands for the response cache.

Usage:
    brandcache stats [--cost-per-call 0.002]
    brandcache top [--limit 10]
    brandcache clean
    brandcache invalidate-all
    brandcache invalidate-brand <brand>
    brandcache events [--limit 20]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from brandcache.version import __version__

if TYPE_CHECKING:
    from brandcache.config.settings import Settings

logger = logging.getLogger(__name__)

_RESPONSE_PREVIEW_CHARS = 200


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
        _setup_logging(settings, args.verbose)
        return asyncio.run(_run(settings, args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="brandcache",
        description=f"brandcache v{__version__} — generative-AI response cache admin",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--db-path", type=Path, default=None,
        help="SQLite database path (overrides CACHE_DB_PATH)",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_stats = subparsers.add_parser("stats", help="Show cache statistics")
    p_stats.add_argument(
        "--cost-per-call", type=float, default=0.002,
        help="Estimated provider cost per request in USD (default: 0.002)",
    )
    p_stats.set_defaults(func=_cmd_stats)

    p_top = subparsers.add_parser("top", help="Show the most hit entries")
    p_top.add_argument(
        "-n", "--limit", type=int, default=10,
        help="Number of entries to show (default: 10)",
    )
    p_top.set_defaults(func=_cmd_top)

    p_clean = subparsers.add_parser("clean", help="Remove expired entries")
    p_clean.set_defaults(func=_cmd_clean)

    p_all = subparsers.add_parser("invalidate-all", help="Remove every entry")
    p_all.set_defaults(func=_cmd_invalidate_all)

    p_brand = subparsers.add_parser(
        "invalidate-brand", help="Remove entries targeting a brand",
    )
    p_brand.add_argument("brand", help="Target brand name")
    p_brand.set_defaults(func=_cmd_invalidate_brand)

    p_events = subparsers.add_parser("events", help="Show recent cache events")
    p_events.add_argument(
        "-n", "--limit", type=int, default=20,
        help="Number of events to show (default: 20)",
    )
    p_events.set_defaults(func=_cmd_events)

    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    from brandcache.config.settings import load_settings

    overrides: dict[str, object] = {}
    if args.db_path is not None:
        overrides["cache_db_path"] = args.db_path
    return load_settings(**overrides)


async def _run(settings: Settings, args: argparse.Namespace) -> int:
    """Build the engine from settings, run the command, release the store."""
    from brandcache.cache.cache_factory import create_engine

    engine = create_engine(settings)
    try:
        return await args.func(engine, args)
    finally:
        engine.close()


async def _cmd_stats(engine, args: argparse.Namespace) -> int:
    """Print aggregate statistics."""
    stats = await engine.get_stats()
    print("\nCache statistics:")
    print(f"  Entries:        {stats.total_entries}")
    print(f"  Entry hits:     {stats.total_entry_hits}")
    print(
        f"  This process:   {stats.session_hits} hits / {stats.session_misses} misses"
        f" (hit rate {stats.hit_rate}%, not persisted across runs)"
    )
    print(f"  Size:           {stats.cache_size_bytes / 1024:.2f} KB")
    print(f"  Oldest entry:   {_format_ts(stats.oldest_entry)}")
    print(f"  Newest entry:   {_format_ts(stats.newest_entry)}")
    print(f"  Calls saved:    {stats.total_entry_hits}")
    print(f"  Cost saved:     ${stats.total_entry_hits * args.cost_per_call:.2f}")
    return 0


async def _cmd_top(engine, args: argparse.Namespace) -> int:
    """Print the most popular entries with a response preview."""
    entries = await engine.get_top_entries(args.limit)
    if not entries:
        print("\nCache is empty.")
        return 0
    print(f"\nTop {len(entries)} entries:")
    for rank, entry in enumerate(entries, start=1):
        print(f"\n  {rank}. [{entry.hit_count} hits] {entry.question}")
        print(f"     Model:   {entry.model}")
        print(f"     Created: {_format_ts(entry.created_at)}  Expires: {_format_ts(entry.expires_at)}")
        print(f"     Preview: {_preview(entry.response)}")
    return 0


async def _cmd_clean(engine, args: argparse.Namespace) -> int:
    deleted = await engine.clean_expired()
    print(f"{deleted} expired entries removed")
    return 0


async def _cmd_invalidate_all(engine, args: argparse.Namespace) -> int:
    deleted = await engine.invalidate_all()
    print(f"Cache fully invalidated ({deleted} entries removed)")
    return 0


async def _cmd_invalidate_brand(engine, args: argparse.Namespace) -> int:
    deleted = await engine.invalidate_by_brand(args.brand)
    print(f"Cache invalidated for brand {args.brand} ({deleted} entries removed)")
    return 0


async def _cmd_events(engine, args: argparse.Namespace) -> int:
    events = await engine.recent_events(args.limit)
    for event in events:
        print(f"  {_format_ts(event.timestamp)}  {event.event_type:16s} {event.details}")
    return 0


def _preview(text: str) -> str:
    """Single-line response preview for terminal output."""
    flat = " ".join(text.split())
    if len(flat) <= _RESPONSE_PREVIEW_CHARS:
        return flat
    return flat[:_RESPONSE_PREVIEW_CHARS] + "..."


def _format_ts(value) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Quiet text console for CLI usage; the log file keeps the configured level."""
    from brandcache.logging.logger import setup_logging

    setup_logging(
        settings,
        console_level="DEBUG" if verbose else "WARNING",
        console_format="text",
    )


if __name__ == "__main__":
    sys.exit(main())
