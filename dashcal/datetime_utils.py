"""DateTime conversion utilities for iCalendar properties.

Turns the ``date``/``datetime`` values produced by icalendar into
:class:`~dashcal.models.EventTime` objects and formats the identifiers used
for generated occurrences.
"""

import datetime
import logging
from typing import Any, Optional

from .models import EventTime
from .timezone_utils import lookup_timezone

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc


def ensure_timezone_aware(dt: datetime.datetime, tz: Optional[datetime.tzinfo] = None) -> datetime.datetime:
    """Attach ``tz`` (UTC when omitted) to a naive datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz or UTC)
    return dt


def zone_name(tz: Optional[datetime.tzinfo]) -> Optional[str]:
    """Best-effort IANA name for a tzinfo object."""
    if tz is None:
        return None
    key = getattr(tz, "key", None)
    if key:
        return str(key)
    if tz is UTC or tz.utcoffset(None) == datetime.timedelta(0):
        return "UTC"
    return str(tz)


def to_event_time(
    value: Any,
    tzid: Optional[str] = None,
    default_tz: Optional[datetime.tzinfo] = None,
) -> EventTime:
    """Convert a decoded iCalendar DATE or DATE-TIME value.

    Args:
        value: ``datetime.date`` or ``datetime.datetime`` from icalendar
        tzid: TZID parameter of the property, if any
        default_tz: Calendar default zone applied to floating times

    Returns:
        EventTime holding a civil date or a UTC instant

    Raises:
        ValueError: If the value is neither a date nor a datetime
    """
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            zone = lookup_timezone(tzid) if tzid else None
            if zone is None:
                zone = default_tz or UTC
            value = value.replace(tzinfo=zone)
            name = tzid if tzid and lookup_timezone(tzid) else zone_name(zone)
        else:
            name = tzid or zone_name(value.tzinfo)
        return EventTime(date_time=value.astimezone(UTC), time_zone=name)

    if isinstance(value, datetime.date):
        return EventTime(date=value)

    raise ValueError(f"Unsupported date value: {value!r}")


def decode_property_time(
    component: Any, name: str, default_tz: Optional[datetime.tzinfo] = None
) -> Optional[EventTime]:
    """Read a DATE/DATE-TIME property (DTSTART, DTEND, RECURRENCE-ID) from a component."""
    prop = component.get(name)
    if prop is None:
        return None
    value = getattr(prop, "dt", prop)
    params = getattr(prop, "params", {}) or {}
    return to_event_time(value, params.get("TZID"), default_tz)


def local_zone_for(event_time: EventTime) -> datetime.tzinfo:
    """Zone in which a timed value should be stepped (recurrence, durations)."""
    return lookup_timezone(event_time.time_zone) or UTC


def add_duration(event_time: EventTime, delta: datetime.timedelta) -> EventTime:
    """Shift an EventTime by ``delta``.

    Dates move by whole days. Whole-day shifts of timed values keep the local
    wall-clock time across DST changes; other shifts are exact.
    """
    if event_time.date is not None:
        return EventTime(date=event_time.date + datetime.timedelta(days=delta.days))

    assert event_time.date_time is not None
    if delta.seconds == 0 and delta.microseconds == 0 and delta.days:
        zone = local_zone_for(event_time)
        local = event_time.date_time.astimezone(zone).replace(tzinfo=None) + delta
        shifted = local.replace(tzinfo=zone)
    else:
        shifted = event_time.date_time + delta
    return EventTime(date_time=shifted, time_zone=event_time.time_zone)


def format_occurrence_stamp(event_time: EventTime) -> str:
    """Identifier fragment for an occurrence: YYYYMMDD or YYYYMMDDTHHMMSSZ (UTC)."""
    if event_time.date is not None:
        return event_time.date.strftime("%Y%m%d")
    assert event_time.date_time is not None
    return event_time.date_time.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")
