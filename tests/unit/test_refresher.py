"""Unit tests for dashcal.refresher.CalendarRefresher."""

import asyncio
from datetime import date, datetime, timezone

import pytest

from dashcal.exceptions import FeedNetworkError
from dashcal.models import CalendarView, ICalSourceConfig
from dashcal.refresher import CalendarRefresher

pytestmark = pytest.mark.unit

CONFIG = ICalSourceConfig(ical_url="https://example.com/basic.ics")


def _view() -> CalendarView:
    return CalendarView(
        period="week",
        time_zone="UTC",
        range_start=datetime(2025, 6, 16, tzinfo=timezone.utc),
        range_end=datetime(2025, 6, 22, 23, 59, tzinfo=timezone.utc),
        days={date(2025, 6, 16).isoformat(): []},
    )


class StubService:
    """Stands in for CalendarIngestionService and records each view request."""

    def __init__(self) -> None:
        self.calls: list[bool] = []
        self.error = None
        self.called = asyncio.Event()

    async def get_calendar_view(self, config, force_refresh: bool = False) -> CalendarView:
        self.calls.append(force_refresh)
        self.called.set()
        if self.error is not None:
            raise self.error
        return _view()


class TestCalendarRefresher:
    @pytest.mark.asyncio
    async def test_refresh_when_manual_then_forced_and_view_published(self):
        service = StubService()
        updates = []
        refresher = CalendarRefresher(service, CONFIG, on_update=updates.append)

        view = await refresher.refresh()

        assert service.calls == [True]
        assert refresher.view is view
        assert updates == [view]
        assert refresher.error is None
        assert not refresher.loading

    @pytest.mark.asyncio
    async def test_refresh_when_service_fails_then_error_recorded_and_view_kept(self):
        service = StubService()
        refresher = CalendarRefresher(service, CONFIG)
        previous = await refresher.refresh()
        service.error = FeedNetworkError("offline")

        result = await refresher.refresh()

        assert result is None
        assert isinstance(refresher.error, FeedNetworkError)
        assert refresher.view is previous
        assert not refresher.loading

    @pytest.mark.asyncio
    async def test_refresh_after_error_then_error_cleared(self):
        service = StubService()
        refresher = CalendarRefresher(service, CONFIG)
        service.error = FeedNetworkError("offline")
        await refresher.refresh()
        service.error = None

        await refresher.refresh()

        assert refresher.error is None

    @pytest.mark.asyncio
    async def test_start_runs_initial_non_forced_refresh_and_periodic_refreshes(self):
        service = StubService()
        refresher = CalendarRefresher(service, CONFIG, interval=0)

        refresher.start()
        for _ in range(50):
            if len(service.calls) >= 3:
                break
            await asyncio.sleep(0)
        await refresher.stop()

        assert len(service.calls) >= 3
        assert not any(service.calls)
        assert not refresher.running

    @pytest.mark.asyncio
    async def test_start_when_already_running_then_single_loop(self):
        service = StubService()
        refresher = CalendarRefresher(service, CONFIG, interval=3600)

        refresher.start()
        first_task = refresher._task
        refresher.start()
        await asyncio.wait_for(service.called.wait(), timeout=1)

        assert refresher._task is first_task
        assert refresher.running
        await refresher.stop()
        assert service.calls == [False]

    @pytest.mark.asyncio
    async def test_wait_returns_once_stopped(self):
        service = StubService()
        refresher = CalendarRefresher(service, CONFIG, interval=3600)
        refresher.start()
        waiter = asyncio.create_task(refresher.wait())
        await asyncio.wait_for(service.called.wait(), timeout=1)

        assert not waiter.done()
        await refresher.stop()
        await asyncio.wait_for(waiter, timeout=1)

        assert waiter.done()

    @pytest.mark.asyncio
    async def test_loop_survives_refresh_errors(self):
        service = StubService()
        service.error = FeedNetworkError("offline")
        refresher = CalendarRefresher(service, CONFIG, interval=0)

        refresher.start()
        for _ in range(50):
            if len(service.calls) >= 2:
                break
            await asyncio.sleep(0)
        await refresher.stop()

        assert len(service.calls) >= 2
        assert isinstance(refresher.error, FeedNetworkError)
