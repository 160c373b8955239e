"""Display periods, period filtering and per-day grouping of events."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Union

from .models import CalendarEvent, CalendarPeriod

logger = logging.getLogger(__name__)

# Days covered by the rolling periods, starting today
PERIOD_DAYS = {
    CalendarPeriod.ONE_DAY: 1,
    CalendarPeriod.THREE_DAYS: 3,
    CalendarPeriod.FIVE_DAYS: 5,
    CalendarPeriod.WEEK: 7,
}

# Month view shows the surrounding days of the adjacent months
MONTH_PADDING_DAYS = 7

# A single event is placed on at most this many days
MAX_DAYS_PER_EVENT = 366

MAX_MONTH_GRID_WEEKS = 6


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of aware datetimes."""

    start: datetime
    end: datetime


def _day_start(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _day_end(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.max, tzinfo=tz)


def _month_bounds(day: date) -> tuple[date, date]:
    first = day.replace(day=1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)


def get_date_range(period: Union[CalendarPeriod, str], today: date, tz: tzinfo) -> DateRange:
    """Return the displayed range for a period.

    Rolling periods cover ``today`` and the following days; ``month`` covers
    the calendar month of ``today`` padded by a week on each side. The start
    is local midnight and the end the last instant of the final day.
    """
    period = CalendarPeriod(period)
    if period == CalendarPeriod.MONTH:
        first, last = _month_bounds(today)
        return DateRange(
            start=_day_start(first - timedelta(days=MONTH_PADDING_DAYS), tz),
            end=_day_end(last + timedelta(days=MONTH_PADDING_DAYS), tz),
        )

    days = PERIOD_DAYS[period]
    return DateRange(
        start=_day_start(today, tz),
        end=_day_end(today + timedelta(days=days - 1), tz),
    )


def get_days_for_period(period: Union[CalendarPeriod, str], today: date) -> list[date]:
    """Return the column dates of a rolling period (one date for month)."""
    period = CalendarPeriod(period)
    count = PERIOD_DAYS.get(period, 1)
    return [today + timedelta(days=offset) for offset in range(count)]


def get_month_grid(day: date, week_starts_on_monday: bool = True) -> list[list[date]]:
    """Return the weeks (7 dates each) of the month view containing ``day``.

    The grid starts on the configured first weekday on or before the first of
    the month and spans at most six weeks.
    """
    first, last = _month_bounds(day)
    first_weekday = 0 if week_starts_on_monday else 6
    offset = (first.weekday() - first_weekday) % 7
    current = first - timedelta(days=offset)

    weeks: list[list[date]] = []
    while current <= last and len(weeks) < MAX_MONTH_GRID_WEEKS:
        weeks.append([current + timedelta(days=i) for i in range(7)])
        current += timedelta(days=7)
    return weeks


def event_overlaps_range(event: CalendarEvent, date_range: DateRange, tz: tzinfo) -> bool:
    """Whether the event's half-open interval touches the inclusive range.

    Zero-length events count when their instant falls inside the range.
    """
    start = event.start_instant(tz)
    end = event.end_instant(tz)
    if start == end:
        return date_range.start <= start <= date_range.end
    return start <= date_range.end and end > date_range.start


def sort_chronologically(events: list[CalendarEvent], tz: tzinfo) -> list[CalendarEvent]:
    return sorted(events, key=lambda event: event.start_instant(tz))


def filter_events_for_period(
    events: list[CalendarEvent],
    period: Union[CalendarPeriod, str],
    today: date,
    tz: tzinfo,
) -> list[CalendarEvent]:
    """Keep events overlapping the period's range, sorted by start."""
    date_range = get_date_range(period, today, tz)
    selected = [event for event in events if event_overlaps_range(event, date_range, tz)]
    logger.debug(
        "Period %s kept %d of %d events", CalendarPeriod(period).value, len(selected), len(events)
    )
    return sort_chronologically(selected, tz)


def event_days(event: CalendarEvent, tz: tzinfo) -> list[date]:
    """Return every local day an event occupies.

    All-day ends are exclusive. A timed event includes its end day only when
    it ends after midnight on that day. At most MAX_DAYS_PER_EVENT days are
    returned, and an event that would occupy none is placed on its start day.
    """
    if event.is_all_day:
        assert event.start.date is not None and event.end.date is not None
        first = event.start.date
        stop = event.end.date
    else:
        start = event.start_instant(tz)
        end = event.end_instant(tz)
        first = start.date()
        stop = end.date()
        if end.time() != time.min:
            stop += timedelta(days=1)

    days = []
    current = first
    while current < stop and len(days) < MAX_DAYS_PER_EVENT:
        days.append(current)
        current += timedelta(days=1)

    if not days:
        days.append(first)
    return days


def group_events_by_day(events: list[CalendarEvent], tz: tzinfo) -> dict[str, list[CalendarEvent]]:
    """Map ISO dates (YYYY-MM-DD) to the events occupying them.

    Keys are in date order; events keep their input order within a day.
    """
    grouped: dict[date, list[CalendarEvent]] = {}
    for event in events:
        for day in event_days(event, tz):
            grouped.setdefault(day, []).append(event)
    return {day.isoformat(): grouped[day] for day in sorted(grouped)}


def events_overlap_day(events: list[CalendarEvent], day: date, tz: tzinfo) -> bool:
    """Whether any event overlaps the local day ``day``."""
    day_range = DateRange(start=_day_start(day, tz), end=_day_end(day, tz))
    return any(
        event.start_instant(tz) <= day_range.end and event.end_instant(tz) >= day_range.start
        for event in events
    )
