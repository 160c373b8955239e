"""Attendee and organizer parsing for iCalendar components."""

import logging
import re
from typing import Any, Optional

from .models import Attendee, Organizer

logger = logging.getLogger(__name__)

_MAILTO = re.compile(r"^mailto:", re.IGNORECASE)


def strip_mailto(value: Any) -> str:
    """Return a calendar address without its ``mailto:`` scheme."""
    return _MAILTO.sub("", str(value).strip())


class AttendeeParser:
    """Parser for iCalendar ATTENDEE and ORGANIZER properties."""

    def parse_attendee(self, attendee_prop: Any) -> Optional[Attendee]:
        """Parse attendee from iCalendar property.

        Args:
            attendee_prop: iCalendar ATTENDEE property

        Returns:
            Parsed Attendee or None
        """
        try:
            email = strip_mailto(attendee_prop)
            if not email:
                return None

            params = getattr(attendee_prop, "params", {}) or {}
            partstat = params.get("PARTSTAT")
            role = params.get("ROLE")

            return Attendee(
                email=email,
                display_name=params.get("CN"),
                response_status=str(partstat).upper() if partstat else None,
                role=str(role).upper() if role else None,
            )

        except Exception as e:
            logger.debug("Failed to parse attendee: %s", e)
            return None

    def parse_attendees(self, component: Any) -> list[Attendee]:
        """Parse all attendees from an iCalendar component.

        Args:
            component: iCalendar component (e.g., VEVENT)

        Returns:
            List of parsed Attendee objects
        """
        attendee_props = component.get("ATTENDEE", [])
        if not isinstance(attendee_props, list):
            attendee_props = [attendee_props] if attendee_props else []

        attendees = []
        for attendee_prop in attendee_props:
            attendee = self.parse_attendee(attendee_prop)
            if attendee:
                attendees.append(attendee)
        return attendees

    def parse_organizer(self, component: Any) -> Optional[Organizer]:
        organizer_prop = component.get("ORGANIZER")
        if organizer_prop is None:
            return None

        email = strip_mailto(organizer_prop)
        if not email:
            return None
        params = getattr(organizer_prop, "params", {}) or {}
        return Organizer(email=email, display_name=params.get("CN"))
