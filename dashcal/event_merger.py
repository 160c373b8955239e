"""Override deduplication for expanded recurring events.

Feeds can deliver both a generated occurrence and an override describing the
same original slot of a series. The merger guarantees that each
(series UID, original start) slot is represented by at most one event, and by
the override whenever one exists.
"""

import logging
import zoneinfo
from typing import Optional

from .models import CalendarEvent, EventTime

logger = logging.getLogger(__name__)

# Slot keys are wall-clock minutes in this zone regardless of the viewer's
# zone. Two instants that differ only below the minute, or that render to the
# same wall-clock minute across a DST fold, collapse to one key.
# TODO: derive the reference zone from the display timezone once cached
# entries carry the zone they were keyed with.
REFERENCE_TIMEZONE = "Europe/Paris"


class EventMerger:
    """Removes generated occurrences that are superseded by overrides."""

    def __init__(self, reference_timezone: str = REFERENCE_TIMEZONE) -> None:
        self.reference_timezone = zoneinfo.ZoneInfo(reference_timezone)

    def slot_key(self, event: CalendarEvent) -> Optional[tuple[str, str]]:
        """Return the (series UID, original start) key of an occurrence.

        Events that are not part of a series have no key.
        """
        if event.series_uid is None or event.original_start is None:
            return None
        return (event.series_uid, self._format_original(event.original_start))

    def _format_original(self, original: EventTime) -> str:
        if original.date is not None:
            return original.date.strftime("%Y%m%d")
        assert original.date_time is not None
        return original.date_time.astimezone(self.reference_timezone).strftime("%Y%m%dT%H%M")

    def deduplicate_overrides(self, events: list[CalendarEvent]) -> list[CalendarEvent]:
        """Drop generated occurrences whose slot has an override.

        Args:
            events: Generated occurrences, single events and overrides

        Returns:
            Non-override events (first per slot, in input order) followed by
            the overrides (last delivered wins per slot)
        """
        overrides: dict[tuple[str, str], CalendarEvent] = {}
        unkeyed_overrides: list[CalendarEvent] = []
        for event in events:
            if not event.is_override:
                continue
            key = self.slot_key(event)
            if key is None:
                unkeyed_overrides.append(event)
            else:
                overrides[key] = event

        kept: list[CalendarEvent] = []
        seen: set[tuple[str, str]] = set()
        suppressed = 0
        for event in events:
            if event.is_override:
                continue
            key = self.slot_key(event)
            if key is not None:
                if key in overrides or key in seen:
                    suppressed += 1
                    continue
                seen.add(key)
            kept.append(event)

        if suppressed:
            logger.info("Suppressed %d occurrences superseded by overrides", suppressed)

        kept.extend(overrides.values())
        kept.extend(unkeyed_overrides)
        return kept
