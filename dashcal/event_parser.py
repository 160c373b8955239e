"""Conversion of VEVENT components into CalendarEvent objects."""

import datetime
import logging
from typing import Any, Optional

from .attendee_parser import AttendeeParser
from .datetime_utils import UTC, add_duration, decode_property_time
from .models import CalendarEvent, EventTime

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "No title"
DEFAULT_STATUS = "confirmed"


def _text(component: Any, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class EventComponentParser:
    """Parser for iCalendar VEVENT components into CalendarEvent objects."""

    def __init__(
        self,
        attendee_parser: Optional[AttendeeParser] = None,
        default_timezone: Optional[datetime.tzinfo] = None,
    ):
        """Initialize event component parser.

        Args:
            attendee_parser: Parser for attendee properties
            default_timezone: Zone applied to floating times (calendar X-WR-TIMEZONE)
        """
        self.attendee_parser = attendee_parser or AttendeeParser()
        self.default_timezone = default_timezone

    def parse_times(self, component: Any) -> tuple[EventTime, EventTime]:
        """Resolve DTSTART and the effective end of a component.

        The end comes from DTEND, else DTSTART + DURATION, else one day for
        all-day events and the start itself for timed events.

        Raises:
            ValueError: If DTSTART is missing or unusable
        """
        start = decode_property_time(component, "DTSTART", self.default_timezone)
        if start is None:
            raise ValueError("missing DTSTART")

        end = decode_property_time(component, "DTEND", self.default_timezone)
        if end is None:
            duration = self._decode_duration(component)
            if duration is not None:
                end = add_duration(start, duration)
            elif start.is_all_day:
                end = add_duration(start, datetime.timedelta(days=1))
            else:
                end = start

        end = self._coerce_end(start, end)
        return start, end

    def parse_recurrence_id(self, component: Any) -> Optional[EventTime]:
        return decode_property_time(component, "RECURRENCE-ID", self.default_timezone)

    def build_event(
        self,
        component: Any,
        event_id: str,
        start: EventTime,
        end: EventTime,
        *,
        series_uid: Optional[str] = None,
        original_start: Optional[EventTime] = None,
        recurrence_id: Optional[str] = None,
        is_expanded_instance: bool = False,
        is_override: bool = False,
    ) -> CalendarEvent:
        """Create a CalendarEvent from a component's descriptive properties."""
        status = _text(component, "STATUS")
        return CalendarEvent(
            id=event_id,
            summary=_text(component, "SUMMARY") or DEFAULT_SUMMARY,
            description=_text(component, "DESCRIPTION"),
            location=_text(component, "LOCATION"),
            start=start,
            end=end,
            status=status.lower() if status else DEFAULT_STATUS,
            organizer=self.attendee_parser.parse_organizer(component),
            attendees=self.attendee_parser.parse_attendees(component),
            html_link=_text(component, "URL"),
            series_uid=series_uid,
            original_start=original_start,
            recurrence_id=recurrence_id,
            is_expanded_instance=is_expanded_instance,
            is_override=is_override,
        )

    def parse_event_component(self, component: Any, event_id: str) -> Optional[CalendarEvent]:
        """Parse a single non-recurring VEVENT.

        Returns:
            Parsed CalendarEvent or None if parsing fails
        """
        try:
            start, end = self.parse_times(component)
            uid = _text(component, "UID")
            return self.build_event(component, event_id, start, end, series_uid=uid)
        except Exception:
            logger.exception("Failed to parse event component %s", event_id)
            return None

    def _decode_duration(self, component: Any) -> Optional[datetime.timedelta]:
        prop = component.get("DURATION")
        if prop is None:
            return None
        value = getattr(prop, "dt", prop)
        if isinstance(value, datetime.timedelta):
            return value
        logger.debug("Ignoring unsupported DURATION value %r", value)
        return None

    def _coerce_end(self, start: EventTime, end: EventTime) -> EventTime:
        """Make the end the same kind as the start and not earlier than it."""
        if start.is_all_day and not end.is_all_day:
            assert end.date_time is not None
            end = EventTime(date=end.date_time.date())
        elif not start.is_all_day and end.is_all_day:
            assert end.date is not None
            zone = self.default_timezone or UTC
            end = EventTime(
                date_time=datetime.datetime.combine(end.date, datetime.time.min, tzinfo=zone),
                time_zone=start.time_zone,
            )

        if start.is_all_day:
            assert start.date is not None and end.date is not None
            if end.date <= start.date:
                return add_duration(start, datetime.timedelta(days=1))
            return end

        assert start.date_time is not None and end.date_time is not None
        if end.date_time < start.date_time:
            logger.debug("Event ends before it starts; clamping end to start")
            return start
        return end
