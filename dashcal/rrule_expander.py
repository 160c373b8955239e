"""RRULE expansion for recurring calendar events."""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from dateutil.rrule import rrule, rrulestr, rruleset

from .datetime_utils import UTC, add_duration, local_zone_for
from .exceptions import DashcalError
from .models import EventTime
from .timezone_utils import lookup_timezone

logger = logging.getLogger(__name__)

_UNTIL_PATTERN = re.compile(r"(^|;)UNTIL=([0-9]{8}(?:T[0-9]{6}Z?)?)", re.IGNORECASE)


class RRuleExpansionError(DashcalError):
    """Raised when a recurrence rule cannot be interpreted."""


@dataclass
class RRuleExpanderConfig:
    """Configuration for RRULE expansion."""

    # Emitted occurrences per series
    max_occurrences: int = 2000
    # Window relative to the first day of the current month
    past_years: int = 1
    future_years: int = 2
    # Candidates examined per series, as a multiple of max_occurrences
    scan_limit_factor: int = 10


def expansion_window(
    now: datetime, config: Optional[RRuleExpanderConfig] = None
) -> tuple[datetime, datetime]:
    """Return the UTC window occurrences are generated for.

    The window runs from the first of the current month ``past_years`` back to
    the first of the current month ``future_years`` ahead.
    """
    cfg = config or RRuleExpanderConfig()
    first = now.astimezone(UTC).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return (
        first.replace(year=first.year - cfg.past_years),
        first.replace(year=first.year + cfg.future_years),
    )


def _parse_until(raw: str) -> Any:
    raw = raw.upper()
    if len(raw) == 8:
        return datetime.strptime(raw, "%Y%m%d").date()
    value = datetime.strptime(raw.rstrip("Z"), "%Y%m%dT%H%M%S")
    if raw.endswith("Z"):
        return value.replace(tzinfo=UTC)
    return value


def _collect_dates(component: Any, name: str) -> list[tuple[Any, Optional[str]]]:
    """Collect (value, TZID) pairs from EXDATE/RDATE properties."""
    props = component.get(name)
    if props is None:
        return []
    if not isinstance(props, list):
        props = [props]

    values: list[tuple[Any, Optional[str]]] = []
    for prop in props:
        params = getattr(prop, "params", {}) or {}
        tzid = params.get("TZID")
        for item in getattr(prop, "dts", []):
            value = getattr(item, "dt", None)
            # PERIOD values are (start, end) tuples; only the start matters
            if isinstance(value, tuple):
                value = value[0]
            if isinstance(value, (date, datetime)):
                values.append((value, tzid))
    return values


class RRuleExpander:
    """Expands a recurring VEVENT into bounded occurrence start/end pairs."""

    def __init__(self, config: Optional[RRuleExpanderConfig] = None):
        self.config = config or RRuleExpanderConfig()

    def build_rule_set(self, component: Any, start: EventTime) -> rruleset:
        """Build a dateutil rruleset from RRULE, RDATE and EXDATE.

        All-day series use naive midnight datetimes; timed series use aware
        datetimes in the series' own zone so wall-clock times survive DST.

        A component with RDATE but no RRULE yields its DTSTART plus the
        listed dates.

        Raises:
            RRuleExpansionError: If the component has neither RRULE nor RDATE,
                or the RRULE is malformed
        """
        rrule_prop = component.get("RRULE")
        if isinstance(rrule_prop, list):
            rrule_prop = rrule_prop[0] if rrule_prop else None
        dtstart = self._series_anchor(start)

        if rrule_prop is None:
            if component.get("RDATE") is None:
                raise RRuleExpansionError("component has no RRULE or RDATE")
            rule_set = rruleset()
            rule_set.rdate(dtstart)
        else:
            rule_set = self._rule_set_from_rrule(rrule_prop, dtstart)

        for value, tzid in _collect_dates(component, "RDATE"):
            rule_set.rdate(self._align(value, tzid, dtstart))
        for value, tzid in _collect_dates(component, "EXDATE"):
            rule_set.exdate(self._align(value, tzid, dtstart))
        return rule_set

    def _rule_set_from_rrule(self, rrule_prop: Any, dtstart: datetime) -> rruleset:
        rule_text = rrule_prop.to_ical()
        if isinstance(rule_text, bytes):
            rule_text = rule_text.decode("utf-8")

        until = None
        until_match = _UNTIL_PATTERN.search(rule_text)
        if until_match:
            until = self._align(_parse_until(until_match.group(2)), None, dtstart, inclusive_day=True)
            rule_text = _UNTIL_PATTERN.sub(lambda m: m.group(1), rule_text).strip(";")
            rule_text = rule_text.replace(";;", ";")

        try:
            parsed = rrulestr(rule_text, dtstart=dtstart)
            if until is not None and isinstance(parsed, rrule):
                parsed = parsed.replace(until=until)
        except (ValueError, TypeError) as e:
            raise RRuleExpansionError(f"Invalid RRULE {rule_text!r}: {e}") from e

        if isinstance(parsed, rruleset):
            rule_set = parsed
        else:
            rule_set = rruleset()
            rule_set.rrule(parsed)
        return rule_set

    def expand(
        self,
        component: Any,
        start: EventTime,
        end: EventTime,
        window: tuple[datetime, datetime],
        skip: Optional[set[tuple[int, str]]] = None,
    ) -> list[tuple[EventTime, EventTime]]:
        """Generate occurrences of a series inside ``window``.

        Args:
            component: Recurring VEVENT component
            start: Series DTSTART
            end: Series end (defines the occurrence duration)
            window: UTC (start, end) bounds from :func:`expansion_window`
            skip: ``EventTime.sort_key()`` values of overridden occurrences

        Returns:
            Ordered (start, end) pairs, at most ``max_occurrences`` long

        Raises:
            RRuleExpansionError: If the recurrence rule cannot be interpreted
        """
        skip = skip or set()
        rule_set = self.build_rule_set(component, start)
        window_start, window_end = window

        if start.is_all_day:
            assert start.date is not None and end.date is not None
            duration = timedelta(days=(end.date - start.date).days)
            window_start_cmp: Any = datetime.combine(window_start.date(), time.min)
            window_end_cmp: Any = datetime.combine(window_end.date(), time.min)
        else:
            assert start.date_time is not None and end.date_time is not None
            duration = end.date_time - start.date_time
            window_start_cmp = window_start
            window_end_cmp = window_end

        scan_limit = self.config.max_occurrences * self.config.scan_limit_factor
        occurrences: list[tuple[EventTime, EventTime]] = []
        scanned = 0

        # Occurrences starting before this point end before the window
        for occurrence in rule_set.xafter(window_start_cmp - duration, inc=True):
            scanned += 1
            if scanned > scan_limit:
                logger.warning(
                    "Stopped expanding series after scanning %d candidates (%d emitted)",
                    scan_limit,
                    len(occurrences),
                )
                break

            occ_start = self._to_event_time(occurrence, start)
            if occ_start.sort_key() in skip:
                continue
            if occurrence > window_end_cmp:
                break
            if occurrence + duration < window_start_cmp:
                continue

            occurrences.append((occ_start, add_duration(occ_start, duration)))
            if len(occurrences) >= self.config.max_occurrences:
                logger.debug("Occurrence cap of %d reached", self.config.max_occurrences)
                break

        return occurrences

    def _series_anchor(self, start: EventTime) -> datetime:
        if start.date is not None:
            return datetime.combine(start.date, time.min)
        assert start.date_time is not None
        return start.date_time.astimezone(local_zone_for(start))

    def _align(
        self, value: Any, tzid: Optional[str], dtstart: datetime, inclusive_day: bool = False
    ) -> datetime:
        """Convert a date value to the naive/aware form of the series anchor."""
        if dtstart.tzinfo is None:
            if isinstance(value, datetime):
                if value.tzinfo is not None and inclusive_day:
                    return value.astimezone(UTC).replace(tzinfo=None)
                return datetime.combine(value.date(), time.min)
            return datetime.combine(value, time.min)

        if isinstance(value, datetime):
            if value.tzinfo is None:
                zone = lookup_timezone(tzid) if tzid else None
                return value.replace(tzinfo=zone or dtstart.tzinfo)
            return value
        if inclusive_day:
            return datetime.combine(value, time.max, tzinfo=dtstart.tzinfo)
        return datetime.combine(value, dtstart.timetz())

    def _to_event_time(self, occurrence: datetime, start: EventTime) -> EventTime:
        if start.is_all_day:
            return EventTime(date=occurrence.date())
        return EventTime(date_time=occurrence, time_zone=start.time_zone)
