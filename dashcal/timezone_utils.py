"""Time source and timezone resolution for dashcal."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from typing import ClassVar

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

# Display timezone used when nothing is configured
DEFAULT_DISPLAY_TIMEZONE = "UTC"

TEST_TIME_ENV = "DASHCAL_TEST_TIME"


class TimezoneResolver:
    """Maps IANA and common Windows timezone names to ZoneInfo objects."""

    # Outlook/Exchange feeds often carry Windows names in TZID parameters
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "GMT Standard Time": "Europe/London",
        "Romance Standard Time": "Europe/Paris",
        "Central European Standard Time": "Europe/Warsaw",
        "W. Europe Standard Time": "Europe/Berlin",
        "China Standard Time": "Asia/Shanghai",
        "Tokyo Standard Time": "Asia/Tokyo",
        "India Standard Time": "Asia/Kolkata",
        "AUS Eastern Standard Time": "Australia/Sydney",
    }

    def lookup(self, name: str | None) -> zoneinfo.ZoneInfo | None:
        """Return the zone for ``name`` or None when it is unknown."""
        if not name:
            return None
        candidate = self.WINDOWS_TZ_MAP.get(name, name).strip()
        try:
            return zoneinfo.ZoneInfo(candidate)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError, OSError):
            logger.debug("Unknown timezone name %r", name)
            return None

    def resolve(self, name: str | None, fallback: str = DEFAULT_DISPLAY_TIMEZONE) -> zoneinfo.ZoneInfo:
        """Return the zone for ``name``, falling back to ``fallback`` when unknown."""
        zone = self.lookup(name)
        if zone is not None:
            return zone
        if name:
            logger.warning("Invalid timezone %r, falling back to %r", name, fallback)
        return zoneinfo.ZoneInfo(fallback)


_resolver = TimezoneResolver()


def lookup_timezone(name: str | None) -> zoneinfo.ZoneInfo | None:
    """Return the zone for ``name`` or None (convenience function)."""
    return _resolver.lookup(name)


def resolve_timezone(name: str | None) -> zoneinfo.ZoneInfo:
    """Return the zone for ``name`` with a UTC fallback (convenience function)."""
    return _resolver.resolve(name)


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via the DASHCAL_TEST_TIME environment variable
    (ISO 8601, e.g. "2025-10-27T08:20:00-07:00"; naive values are taken as UTC).
    """
    test_time = os.environ.get(TEST_TIME_ENV)
    if test_time:
        try:
            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(datetime.timezone.utc)
            return dt.replace(tzinfo=datetime.timezone.utc)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

    return datetime.datetime.now(datetime.timezone.utc)


def local_today(tz: datetime.tzinfo, now: datetime.datetime | None = None) -> datetime.date:
    """Return the civil date of ``now`` (default: current time) in ``tz``."""
    current = now if now is not None else now_utc()
    return current.astimezone(tz).date()


def get_default_timezone(fallback: str = DEFAULT_DISPLAY_TIMEZONE) -> str:
    """Get the display timezone from DASHCAL_DEFAULT_TIMEZONE, validated.

    Args:
        fallback: Timezone returned when the variable is unset or invalid

    Returns:
        Valid IANA timezone string
    """
    name = os.environ.get("DASHCAL_DEFAULT_TIMEZONE", fallback)
    if _resolver.lookup(name) is not None:
        return name
    logger.warning("Invalid timezone %r, falling back to %r", name, fallback)
    return fallback
