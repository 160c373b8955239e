"""Command-line entry for dashcal.

Fetches a feed through the ingestion pipeline and prints the render-ready
calendar view as JSON, once or after every periodic refresh in watch mode.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, NoReturn, Optional

from . import _init_logging
from .config_manager import ConfigManager, get_refresh_interval
from .exceptions import DashcalError
from .feed_cache import FeedCache
from .ingestion import CalendarIngestionService
from .log_config import configure_logging
from .models import CalendarPeriod, CalendarView
from .refresher import CalendarRefresher
from .storage import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from .timezone_utils import get_default_timezone

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the dashcal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="dashcal",
        description="Fetch an iCalendar feed and print the laid-out calendar view as JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m dashcal --url https://example.com/basic.ics
  python -m dashcal --period month --timezone Europe/Paris --force
  python -m dashcal --watch
        """,
    )
    parser.add_argument("--url", metavar="URL", help="Feed URL (default: DASHCAL_ICAL_URL)")
    parser.add_argument(
        "--period",
        choices=[period.value for period in CalendarPeriod],
        help="Display period (default: DASHCAL_PERIOD or week)",
    )
    parser.add_argument("--timezone", metavar="TZ", help="Display timezone (IANA name)")
    parser.add_argument(
        "--cache-db", metavar="PATH", help="SQLite cache file (default: in-memory cache)"
    )
    parser.add_argument("--force", action="store_true", help="Bypass the cache")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep refreshing every DASHCAL_REFRESH_INTERVAL seconds and print each view",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _build_store(cache_db: Optional[str]) -> KeyValueStore:
    if cache_db:
        return SqliteKeyValueStore(cache_db)
    return MemoryKeyValueStore()


def _build_service(
    args: argparse.Namespace, cfg: dict[str, Any]
) -> tuple[Any, CalendarIngestionService]:
    if args.url:
        cfg["ical_url"] = args.url
    if args.period:
        cfg["period"] = args.period

    source = ConfigManager().build_source_config(cfg)
    service = CalendarIngestionService(
        cache=FeedCache(_build_store(args.cache_db or cfg.get("cache_db"))),
        display_timezone=args.timezone or cfg.get("default_timezone") or get_default_timezone(),
    )
    return source, service


def _print_view(view: CalendarView) -> None:
    print(view.model_dump_json(indent=2), flush=True)


async def _run(args: argparse.Namespace, cfg: dict[str, Any]) -> str:
    source, service = _build_service(args, cfg)
    try:
        view = await service.get_calendar_view(source, force_refresh=args.force)
    finally:
        await service.close()
    return view.model_dump_json(indent=2)


async def _watch(args: argparse.Namespace, cfg: dict[str, Any]) -> None:
    source, service = _build_service(args, cfg)
    refresher = CalendarRefresher(
        service, source, interval=get_refresh_interval(cfg), on_update=_print_view
    )
    logger.info("Watching calendar feed every %d seconds", refresher.interval)
    refresher.start()
    try:
        await refresher.wait()
    finally:
        await refresher.stop()
        await service.close()


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the dashcal CLI."""
    args = _create_parser().parse_args(argv)

    _init_logging(os.environ.get("DASHCAL_LOG_LEVEL"))
    configure_logging(debug_mode=args.debug)

    cfg = ConfigManager().load_full_config()
    output: Optional[str] = None
    try:
        if args.watch:
            asyncio.run(_watch(args, cfg))
        else:
            output = asyncio.run(_run(args, cfg))
    except DashcalError as exc:
        logger.debug("Calendar fetch failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    if output is not None:
        print(output)
    sys.exit(0)


if __name__ == "__main__":
    main()
