"""Calendar ingestion pipeline: cache policy, fetch, parse, deduplicate, persist."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Union

from .event_merger import EventMerger
from .exceptions import UnsupportedSourceError
from .feed_cache import FeedCache
from .fetcher import FeedFetcher
from .models import (
    CalendarEvent,
    CalendarView,
    ICalSourceConfig,
    OAuthSourceConfig,
    parse_source_config,
)
from .parser import FeedParser
from .periods import events_overlap_day, filter_events_for_period
from .timezone_utils import get_default_timezone, local_today, now_utc, resolve_timezone
from .view import build_calendar_view

logger = logging.getLogger(__name__)

# Persisted entries keep occurrences that ended at most this many days ago
RETENTION_DAYS = 90


def retain_recent(
    events: list[CalendarEvent], now: datetime, tz: tzinfo, days: int = RETENTION_DAYS
) -> list[CalendarEvent]:
    """Drop occurrences that ended before local midnight ``days`` days ago."""
    today = local_today(tz, now)
    cutoff = datetime.combine(today - timedelta(days=days), datetime.min.time(), tzinfo=tz)
    return [event for event in events if event.end_instant(tz) >= cutoff]


class CalendarIngestionService:
    """Serves period-filtered occurrences for a feed using stale-while-revalidate.

    A fresh cache entry is served without network access. A stale entry that
    still has events today is served immediately while a background task
    refetches the feed. Anything else is fetched synchronously. Concurrent
    writes to one feed's entry are last-write-wins.
    """

    def __init__(
        self,
        cache: FeedCache | None = None,
        fetcher: FeedFetcher | None = None,
        parser: FeedParser | None = None,
        merger: EventMerger | None = None,
        display_timezone: Union[str, tzinfo, None] = None,
        now_provider: Callable[[], datetime] = now_utc,
    ) -> None:
        self.cache = cache or FeedCache()
        self.fetcher = fetcher or FeedFetcher()
        self.parser = parser or FeedParser()
        self.merger = merger or EventMerger()
        if display_timezone is None or isinstance(display_timezone, str):
            display_timezone = resolve_timezone(display_timezone or get_default_timezone())
        self.display_timezone: tzinfo = display_timezone
        self._now = now_provider
        self._background_tasks: dict[str, asyncio.Task[None]] = {}

    @property
    def pending_refreshes(self) -> list[asyncio.Task[None]]:
        """Background refresh tasks that have not finished yet."""
        return [task for task in self._background_tasks.values() if not task.done()]

    def _coerce_config(self, config: Any) -> ICalSourceConfig:
        if isinstance(config, dict):
            config = parse_source_config(config)
        if isinstance(config, OAuthSourceConfig):
            raise UnsupportedSourceError("Authenticated calendar sources are not supported")
        if not isinstance(config, ICalSourceConfig):
            raise UnsupportedSourceError(f"Unsupported source configuration: {type(config).__name__}")
        return config

    async def fetch_events(self, config: Any, force_refresh: bool = False) -> list[CalendarEvent]:
        """Return the occurrences of the configured feed inside its display period.

        Args:
            config: ICalSourceConfig or an untyped configuration dict
            force_refresh: Skip the cache and refetch with cache-busting

        Raises:
            DashcalError: Fetch, validation or configuration failures of a
                synchronous fetch; background refresh failures are only logged
        """
        source = self._coerce_config(config)
        now = self._now()
        tz = self.display_timezone
        today = local_today(tz, now)
        max_age = source.cache_duration_seconds or None

        if not force_refresh:
            lookup = await self.cache.get_allowing_stale(source.ical_url, max_age)
            if lookup is not None and not lookup.is_stale:
                logger.debug("Serving fresh cache entry (%d events)", len(lookup.events))
                return filter_events_for_period(lookup.events, source.period, today, tz)

            if lookup is not None and events_overlap_day(lookup.events, today, tz):
                logger.debug("Serving stale cache entry and refreshing in background")
                self._schedule_background_refresh(source.ical_url)
                return filter_events_for_period(lookup.events, source.period, today, tz)

            if lookup is not None:
                logger.debug("Stale cache entry has no events today; fetching now")

        events = await self.refresh_feed(source.ical_url, bypass_cache=force_refresh)
        return filter_events_for_period(events, source.period, today, tz)

    async def get_calendar_view(self, config: Any, force_refresh: bool = False) -> CalendarView:
        """Fetch events and assemble the render-ready view."""
        source = self._coerce_config(config)
        events = await self.fetch_events(source, force_refresh=force_refresh)
        today = local_today(self.display_timezone, self._now())
        return build_calendar_view(
            events,
            source.period,
            today,
            self.display_timezone,
            viewer_email=source.user_email,
            week_start=source.week_start,
        )

    async def refresh_feed(self, url: str, bypass_cache: bool = False) -> list[CalendarEvent]:
        """Fetch, parse and deduplicate a feed, then persist the recent part.

        Returns:
            The full deduplicated occurrence list
        """
        text = await self.fetcher.fetch(url, bypass_cache=bypass_cache)
        now = self._now()
        events = self.merger.deduplicate_overrides(self.parser.parse(text, now))

        retained = retain_recent(events, now, self.display_timezone)
        await self.cache.put(url, retained)
        logger.info("Refreshed calendar feed: %d events (%d cached)", len(events), len(retained))
        return events

    def _schedule_background_refresh(self, url: str) -> None:
        existing = self._background_tasks.get(url)
        if existing is not None and not existing.done():
            logger.debug("Background refresh already pending")
            return
        task = asyncio.create_task(self._background_refresh(url))
        self._background_tasks[url] = task
        task.add_done_callback(lambda t, key=url: self._forget_task(key, t))

    def _forget_task(self, url: str, task: asyncio.Task[None]) -> None:
        if self._background_tasks.get(url) is task:
            del self._background_tasks[url]

    async def _background_refresh(self, url: str) -> None:
        try:
            await self.refresh_feed(url, bypass_cache=True)
        except Exception:
            logger.warning("Background calendar refresh failed", exc_info=True)

    async def close(self) -> None:
        """Cancel pending background refreshes and release the HTTP client."""
        pending = self.pending_refreshes
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._background_tasks.clear()
        await self.fetcher.close()
        await self.cache.store.close()
