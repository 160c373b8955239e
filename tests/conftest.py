"""Shared fixtures for dashcal tests."""

from collections.abc import Generator
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

import pytest

from dashcal.models import Attendee, CalendarEvent, EventTime

# Monday, 09:00 UTC
FIXED_NOW = datetime(2025, 6, 16, 9, 0, tzinfo=timezone.utc)


def ics(*lines: str) -> str:
    """Join iCalendar lines with CRLF line endings."""
    return "\r\n".join(lines) + "\r\n"


def calendar(*event_lines: str, extra_headers: tuple[str, ...] = ()) -> str:
    return ics(
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//dashcal tests//EN",
        *extra_headers,
        *event_lines,
        "END:VCALENDAR",
    )


SINGLE_EVENT = (
    "BEGIN:VEVENT",
    "UID:single-1@example.com",
    "DTSTAMP:20250601T000000Z",
    "DTSTART:20250616T140000Z",
    "DTEND:20250616T150000Z",
    "SUMMARY:Design review",
    "LOCATION:Room 4",
    "DESCRIPTION:Quarterly review",
    "STATUS:CONFIRMED",
    "URL:https://example.com/events/1",
    "ORGANIZER;CN=Alice:mailto:alice@example.com",
    "ATTENDEE;CN=Bob;PARTSTAT=ACCEPTED;ROLE=REQ-PARTICIPANT:mailto:bob@example.com",
    "ATTENDEE;CN=Carol;PARTSTAT=DECLINED;ROLE=OPT-PARTICIPANT:mailto:carol@example.com",
    "END:VEVENT",
)

OLD_EVENT = (
    "BEGIN:VEVENT",
    "UID:old-1@example.com",
    "DTSTAMP:20200101T000000Z",
    "DTSTART:20200110T100000Z",
    "DTEND:20200110T110000Z",
    "SUMMARY:Ancient meeting",
    "END:VEVENT",
)

ALL_DAY_EVENT = (
    "BEGIN:VEVENT",
    "UID:allday-1@example.com",
    "DTSTAMP:20250601T000000Z",
    "DTSTART;VALUE=DATE:20250617",
    "DTEND;VALUE=DATE:20250620",
    "SUMMARY:Offsite",
    "END:VEVENT",
)

WEEKLY_SERIES = (
    "BEGIN:VEVENT",
    "UID:weekly-1@example.com",
    "DTSTAMP:20250601T000000Z",
    "DTSTART;TZID=Europe/Paris:20250602T100000",
    "DTEND;TZID=Europe/Paris:20250602T110000",
    "RRULE:FREQ=WEEKLY;COUNT=6",
    "EXDATE;TZID=Europe/Paris:20250609T100000",
    "SUMMARY:Team sync",
    "END:VEVENT",
)

WEEKLY_OVERRIDE = (
    "BEGIN:VEVENT",
    "UID:weekly-1@example.com",
    "DTSTAMP:20250601T000000Z",
    "RECURRENCE-ID;TZID=Europe/Paris:20250616T100000",
    "DTSTART;TZID=Europe/Paris:20250616T150000",
    "DTEND;TZID=Europe/Paris:20250616T160000",
    "SUMMARY:Team sync (moved)",
    "END:VEVENT",
)


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests without I/O")


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def build_calendar() -> Callable[..., str]:
    """Return a helper wrapping VEVENT lines in a VCALENDAR."""
    return calendar


@pytest.fixture
def simple_feed() -> str:
    """Single timed event today, one ancient event and a three-day all-day event."""
    return calendar(*SINGLE_EVENT, *OLD_EVENT, *ALL_DAY_EVENT)


@pytest.fixture
def recurring_feed() -> str:
    """Weekly series with one EXDATE and one moved occurrence."""
    return calendar(*WEEKLY_SERIES, *WEEKLY_OVERRIDE)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear dashcal environment variables so host settings never leak into tests."""
    for name in (
        "DASHCAL_TEST_TIME",
        "DASHCAL_DEBUG",
        "DASHCAL_LOG_LEVEL",
        "DASHCAL_DEFAULT_TIMEZONE",
        "DASHCAL_ICAL_URL",
        "DASHCAL_PERIOD",
        "DASHCAL_CACHE_DURATION",
        "DASHCAL_USER_EMAIL",
        "DASHCAL_WEEK_START",
        "DASHCAL_CACHE_DB",
        "DASHCAL_REFRESH_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def make_event() -> Callable[..., CalendarEvent]:
    """Factory for CalendarEvent test objects.

    Pass datetimes for timed events or dates for all-day events.
    """

    def _make(
        event_id: str,
        start: Any,
        end: Any,
        *,
        series_uid: Optional[str] = None,
        original_start: Any = None,
        is_override: bool = False,
        attendees: Optional[list[Attendee]] = None,
        summary: str = "Event",
    ) -> CalendarEvent:
        def _time(value: Any) -> EventTime:
            if isinstance(value, datetime):
                return EventTime(date_time=value, time_zone="UTC")
            assert isinstance(value, date)
            return EventTime(date=value)

        return CalendarEvent(
            id=event_id,
            summary=summary,
            start=_time(start),
            end=_time(end),
            series_uid=series_uid,
            original_start=_time(original_start) if original_start is not None else None,
            is_override=is_override,
            is_expanded_instance=series_uid is not None and not is_override,
            attendees=attendees or [],
        )

    return _make
