"""iCalendar feed parser producing discrete event occurrences."""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from icalendar import Calendar

from .datetime_utils import format_occurrence_stamp
from .event_parser import EventComponentParser
from .models import CalendarEvent, EventTime
from .preprocessor import prefilter_feed_text
from .rrule_expander import RRuleExpander, RRuleExpanderConfig, expansion_window
from .timezone_utils import lookup_timezone, now_utc

logger = logging.getLogger(__name__)


@dataclass
class RecurrenceGroup:
    """All components sharing one UID: the series definition and its overrides."""

    uid: str
    main: Optional[Any] = None
    exceptions: list[Any] = field(default_factory=list)


def _component_uid(component: Any) -> str:
    uid = component.get("UID")
    if uid is not None and str(uid).strip():
        return str(uid).strip()
    digest = hashlib.sha256(component.to_ical()).hexdigest()[:16]
    return f"generated-{digest}"


def group_components(calendar: Any) -> dict[str, RecurrenceGroup]:
    """Group VEVENT components by UID.

    Components carrying RECURRENCE-ID are overrides; any other component is
    the series definition (the last one wins if a UID repeats).
    """
    groups: dict[str, RecurrenceGroup] = {}
    for component in calendar.walk("VEVENT"):
        uid = _component_uid(component)
        group = groups.setdefault(uid, RecurrenceGroup(uid=uid))
        if component.get("RECURRENCE-ID") is not None:
            group.exceptions.append(component)
        else:
            if group.main is not None:
                logger.debug("Duplicate series definition for UID %s; keeping the last", uid)
            group.main = component
    return groups


class FeedParser:
    """Parses raw iCalendar text into a flat list of CalendarEvent occurrences.

    Recurring series are expanded inside a window around the current month,
    overrides replace the occurrences they modify, and single events pass
    through unchanged. Parsing is fail-soft: malformed input yields an empty
    list and a logged diagnostic, never an exception.
    """

    def __init__(self, expander_config: Optional[RRuleExpanderConfig] = None) -> None:
        self.expander = RRuleExpander(expander_config)

    def parse(self, text: str, now: Optional[datetime] = None) -> list[CalendarEvent]:
        """Parse feed text into occurrences.

        Args:
            text: Raw iCalendar feed
            now: Reference time for the prefilter and expansion window

        Returns:
            Parsed occurrences, or an empty list on any failure
        """
        reference = now if now is not None else now_utc()
        try:
            filtered = prefilter_feed_text(text, reference)
            calendar = Calendar.from_ical(filtered)

            default_tz = lookup_timezone(self._calendar_property(calendar, "X-WR-TIMEZONE"))
            component_parser = EventComponentParser(default_timezone=default_tz)
            window = expansion_window(reference, self.expander.config)

            events: list[CalendarEvent] = []
            groups = group_components(calendar)
            for group in groups.values():
                events.extend(self._events_for_group(group, component_parser, window))

            logger.debug("Parsed %d occurrences from %d series", len(events), len(groups))
            return events

        except Exception:
            logger.exception("Failed to parse calendar feed")
            return []

    def _events_for_group(
        self,
        group: RecurrenceGroup,
        component_parser: EventComponentParser,
        window: tuple[datetime, datetime],
    ) -> list[CalendarEvent]:
        try:
            overrides = self._build_overrides(group, component_parser)
            events: list[CalendarEvent] = []

            if group.main is not None:
                if group.main.get("RRULE") is not None or group.main.get("RDATE") is not None:
                    skip = {
                        override.original_start.sort_key()
                        for override in overrides
                        if override.original_start is not None
                    }
                    events.extend(self._expand_series(group, component_parser, window, skip))
                else:
                    single = component_parser.parse_event_component(group.main, group.uid)
                    if single is not None:
                        events.append(single)

            events.extend(overrides)
            return events

        except Exception:
            logger.exception("Failed to process events for UID %s; skipping", group.uid)
            return []

    def _expand_series(
        self,
        group: RecurrenceGroup,
        component_parser: EventComponentParser,
        window: tuple[datetime, datetime],
        skip: set[tuple[int, str]],
    ) -> list[CalendarEvent]:
        start, end = component_parser.parse_times(group.main)
        occurrences = self.expander.expand(group.main, start, end, window, skip)

        logger.debug("Expanded series %s into %d occurrences", group.uid, len(occurrences))
        return [
            component_parser.build_event(
                group.main,
                f"{group.uid}_{format_occurrence_stamp(occ_start)}",
                occ_start,
                occ_end,
                series_uid=group.uid,
                original_start=occ_start,
                is_expanded_instance=True,
            )
            for occ_start, occ_end in occurrences
        ]

    def _build_overrides(
        self, group: RecurrenceGroup, component_parser: EventComponentParser
    ) -> list[CalendarEvent]:
        overrides = []
        for component in group.exceptions:
            try:
                original: Optional[EventTime] = component_parser.parse_recurrence_id(component)
                if original is None:
                    continue
                stamp = format_occurrence_stamp(original)
                start, end = component_parser.parse_times(component)
                overrides.append(
                    component_parser.build_event(
                        component,
                        f"{group.uid}_except_{stamp}",
                        start,
                        end,
                        series_uid=group.uid,
                        original_start=original,
                        recurrence_id=stamp,
                        is_override=True,
                    )
                )
            except Exception as e:
                logger.warning("Skipping unparseable override of %s: %s", group.uid, e)
        return overrides

    def _calendar_property(self, calendar: Any, name: str) -> Optional[str]:
        value = calendar.get(name)
        return str(value).strip() if value is not None else None
