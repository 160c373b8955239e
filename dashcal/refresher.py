"""Periodic refresh loop for a displayed calendar."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from .exceptions import DashcalError
from .ingestion import CalendarIngestionService
from .models import CalendarView

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 5 * 60


class CalendarRefresher:
    """Keeps a CalendarView current for one source.

    The loop performs an initial refresh, then a non-forced refresh every
    ``interval`` seconds so the cache policy decides whether the network is
    used. :meth:`refresh` is the manual, forced variant.
    """

    def __init__(
        self,
        service: CalendarIngestionService,
        config: Any,
        interval: int = DEFAULT_REFRESH_INTERVAL_SECONDS,
        on_update: Optional[Callable[[CalendarView], None]] = None,
    ) -> None:
        """Initialize the refresher.

        Args:
            service: Ingestion service used for every refresh
            config: Source configuration passed to the service
            interval: Seconds between periodic refreshes
            on_update: Called with each new view
        """
        self.service = service
        self.config = config
        self.interval = interval
        self.on_update = on_update

        self.view: Optional[CalendarView] = None
        self.error: Optional[DashcalError] = None
        self.loading = False

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self, force: bool = True) -> Optional[CalendarView]:
        """Refresh now; manual refreshes bypass the cache.

        Errors are recorded on :attr:`error` and the previous view is kept.
        """
        self.loading = True
        try:
            view = await self.service.get_calendar_view(self.config, force_refresh=force)
        except DashcalError as e:
            logger.warning("Calendar refresh failed: %s", e)
            self.error = e
            return None
        finally:
            self.loading = False

        self.view = view
        self.error = None
        if self.on_update is not None:
            self.on_update(view)
        return view

    def start(self) -> None:
        """Start the background loop (no-op when already running)."""
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def wait(self) -> None:
        """Block until :meth:`stop` is called."""
        await self._stop_event.wait()

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish."""
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

    async def _run(self) -> None:
        logger.debug("Refresh loop starting with interval %d seconds", self.interval)
        try:
            await self.refresh(force=False)
        except Exception:
            logger.exception("Initial refresh failed")

        while not self._stop_event.is_set():
            try:
                await asyncio.sleep(self.interval)
                if self._stop_event.is_set():
                    break
                await self.refresh(force=False)
            except Exception:
                logger.exception("Refresh loop unexpected error")
