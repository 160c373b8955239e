"""Render-ready view assembly and per-event display helpers."""

from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Union

from .datetime_utils import zone_name
from .layout import calculate_event_layout
from .models import CalendarEvent, CalendarPeriod, CalendarView, WeekStart
from .periods import (
    filter_events_for_period,
    get_date_range,
    get_month_grid,
    group_events_by_day,
)

# Timeline geometry: pixels per hour and minimum block height
HOUR_HEIGHT_PX = 60
VERTICAL_SPACING_PX = 4
MIN_EVENT_HEIGHT_PX = 30

VIEWER_RESPONSES = ("ACCEPTED", "DECLINED", "TENTATIVE")


def build_calendar_view(
    events: list[CalendarEvent],
    period: Union[CalendarPeriod, str],
    today: date,
    tz: tzinfo,
    viewer_email: Optional[str] = None,
    week_start: Union[WeekStart, str] = WeekStart.SUNDAY,
) -> CalendarView:
    """Filter, group and lay out events for display.

    Args:
        events: Occurrences from the ingestion pipeline
        period: Display period
        today: Local date the period is anchored on
        tz: Display timezone
        viewer_email: Attendee address whose responses are highlighted
        week_start: First weekday of the month grid

    Returns:
        CalendarView with every day's events, its all-day subset, the column
        layout of its timed events and, for the month period, the week grid
    """
    period = CalendarPeriod(period)
    week_start = WeekStart(week_start)
    date_range = get_date_range(period, today, tz)
    visible = filter_events_for_period(events, period, today, tz)
    days = group_events_by_day(visible, tz)

    month_grid: list[list[date]] = []
    if period == CalendarPeriod.MONTH:
        month_grid = get_month_grid(today, week_starts_on_monday=week_start == WeekStart.MONDAY)

    viewer_responses = {}
    for event in visible:
        status = get_viewer_response_status(event, viewer_email)
        if status is not None:
            viewer_responses[event.id] = status

    return CalendarView(
        period=period,
        time_zone=zone_name(tz) or "UTC",
        range_start=date_range.start,
        range_end=date_range.end,
        days=days,
        all_day={day: [e for e in day_events if e.is_all_day] for day, day_events in days.items()},
        layouts={day: calculate_event_layout(day_events) for day, day_events in days.items()},
        week_start=week_start,
        month_grid=month_grid,
        viewer_responses=viewer_responses,
    )


def get_viewer_response_status(event: CalendarEvent, viewer_email: Optional[str]) -> Optional[str]:
    """Return the viewer's ACCEPTED/DECLINED/TENTATIVE answer, if any."""
    if not viewer_email or not event.attendees:
        return None
    wanted = viewer_email.lower()
    for attendee in event.attendees:
        if attendee.email.lower() == wanted:
            status = (attendee.response_status or "").upper()
            return status if status in VIEWER_RESPONSES else None
    return None


def find_current_event(events: list[CalendarEvent], now: datetime) -> Optional[CalendarEvent]:
    """First timed event, in the given order, that has not ended yet."""
    for event in events:
        if event.is_all_day:
            continue
        if event.end_instant(now.tzinfo or timezone.utc) >= now:
            return event
    return None


def is_event_past(event: CalendarEvent, now: datetime, tz: Optional[tzinfo] = None) -> bool:
    return event.end_instant(tz or now.tzinfo or timezone.utc) < now


def get_event_position(event: CalendarEvent, tz: tzinfo) -> Optional[dict[str, float]]:
    """Vertical placement on an hour timeline, or None for all-day events."""
    if event.is_all_day:
        return None
    start = event.start_instant(tz)
    end = event.end_instant(tz)
    start_hour = start.hour + start.minute / 60
    end_hour = end.hour + end.minute / 60
    height = (end_hour - start_hour) * HOUR_HEIGHT_PX - VERTICAL_SPACING_PX
    return {"top": start_hour * HOUR_HEIGHT_PX, "height": max(height, MIN_EVENT_HEIGHT_PX)}
