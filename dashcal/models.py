"""Data models for calendar feed processing."""

import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigurationError


class CalendarPeriod(str, Enum):
    """Time windows a calendar widget can display."""

    ONE_DAY = "1-day"
    THREE_DAYS = "3-days"
    FIVE_DAYS = "5-days"
    WEEK = "week"
    MONTH = "month"


class WeekStart(str, Enum):
    """First day of the week in month view."""

    SUNDAY = "sunday"
    MONDAY = "monday"


class EventTime(BaseModel):
    """Start or end of an event.

    Exactly one of ``date`` (all-day, civil date) or ``date_time`` (UTC instant)
    is set. ``time_zone`` records the zone the value was authored in.
    """

    model_config = ConfigDict(frozen=True)

    date: Optional[datetime.date] = None
    date_time: Optional[datetime.datetime] = None
    time_zone: Optional[str] = None

    @field_validator("date_time")
    @classmethod
    def _normalize_to_utc(cls, value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)

    @model_validator(mode="after")
    def _exactly_one_value(self) -> "EventTime":
        if (self.date is None) == (self.date_time is None):
            raise ValueError("EventTime requires exactly one of 'date' or 'date_time'")
        return self

    @property
    def is_all_day(self) -> bool:
        return self.date is not None

    def to_instant(self, tz: datetime.tzinfo) -> datetime.datetime:
        """Return the value as an aware datetime in ``tz``.

        All-day dates resolve to local midnight of that date.
        """
        if self.date_time is not None:
            return self.date_time.astimezone(tz)
        assert self.date is not None
        return datetime.datetime.combine(self.date, datetime.time.min, tzinfo=tz)

    def sort_key(self) -> tuple[int, str]:
        """Stable key identifying the original value, used for override matching."""
        if self.date_time is not None:
            return (1, self.date_time.strftime("%Y%m%dT%H%M%SZ"))
        assert self.date is not None
        return (0, self.date.strftime("%Y%m%d"))


class Attendee(BaseModel):
    """Event attendee."""

    email: str
    display_name: Optional[str] = None
    response_status: Optional[str] = None
    role: Optional[str] = None


class Organizer(BaseModel):
    """Event organizer."""

    email: str
    display_name: Optional[str] = None


class CalendarEvent(BaseModel):
    """A single displayable occurrence of a calendar event."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Identifier, unique within one result set")
    summary: str = "No title"
    description: Optional[str] = None
    location: Optional[str] = None

    start: EventTime
    end: EventTime

    status: str = "confirmed"
    organizer: Optional[Organizer] = None
    attendees: list[Attendee] = Field(default_factory=list)
    html_link: Optional[str] = None

    # Recurrence bookkeeping
    series_uid: Optional[str] = Field(default=None, description="UID shared by the series")
    recurrence_id: Optional[str] = Field(
        default=None, description="Original occurrence identifier for overrides"
    )
    original_start: Optional[EventTime] = Field(
        default=None, description="Start the occurrence had before any override"
    )
    is_expanded_instance: bool = False
    is_override: bool = False

    @model_validator(mode="after")
    def _consistent_kind(self) -> "CalendarEvent":
        if self.start.is_all_day != self.end.is_all_day:
            raise ValueError("start and end must both be dates or both be date-times")
        return self

    @property
    def is_all_day(self) -> bool:
        return self.start.is_all_day

    def start_instant(self, tz: datetime.tzinfo) -> datetime.datetime:
        return self.start.to_instant(tz)

    def end_instant(self, tz: datetime.tzinfo) -> datetime.datetime:
        return self.end.to_instant(tz)


class LayoutAssignment(BaseModel):
    """Horizontal placement of an event, as percentages of the day column width."""

    model_config = ConfigDict(frozen=True)

    left: float
    width: float


class CacheEntry(BaseModel):
    """Persisted parse result for one feed."""

    events: list[CalendarEvent] = Field(default_factory=list)
    timestamp: float = Field(..., description="Epoch seconds at write time")


class CalendarView(BaseModel):
    """Render-ready result: events grouped by local day with per-day layout."""

    period: CalendarPeriod
    time_zone: str
    range_start: datetime.datetime
    range_end: datetime.datetime
    days: dict[str, list[CalendarEvent]] = Field(default_factory=dict)
    all_day: dict[str, list[CalendarEvent]] = Field(default_factory=dict)
    layouts: dict[str, dict[str, LayoutAssignment]] = Field(default_factory=dict)
    week_start: WeekStart = WeekStart.SUNDAY
    # Month period only: weeks of the grid, each starting on week_start
    month_grid: list[list[datetime.date]] = Field(default_factory=list)
    # Event id -> ACCEPTED / DECLINED / TENTATIVE for the configured viewer
    viewer_responses: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)


def _validate_feed_url(value: str) -> str:
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"not an absolute http(s) URL: {value!r}")
    return value


class ICalSourceConfig(BaseModel):
    """Public iCalendar feed source."""

    kind: Literal["ical"] = "ical"
    ical_url: str = Field(..., description="Published iCalendar feed URL")
    period: CalendarPeriod = CalendarPeriod.WEEK
    cache_duration_seconds: int = Field(
        default=0, ge=0, description="Freshness window; 0 selects the default"
    )
    user_email: Optional[str] = Field(
        default=None, description="Viewer identity, used only for response highlighting"
    )
    week_start: WeekStart = WeekStart.SUNDAY

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("ical_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _validate_feed_url(value)


class OAuthSourceConfig(BaseModel):
    """Authenticated calendar API source (validated only, not ingested)."""

    kind: Literal["oauth"] = "oauth"
    access_token: str
    refresh_token: Optional[str] = None
    selected_calendar_ids: list[str] = Field(default_factory=list)
    period: CalendarPeriod = CalendarPeriod.WEEK
    user_email: Optional[str] = None
    week_start: WeekStart = WeekStart.SUNDAY

    model_config = ConfigDict(use_enum_values=True)


SourceConfig = Annotated[Union[ICalSourceConfig, OAuthSourceConfig], Field(discriminator="kind")]

_SOURCE_CONFIG_ADAPTER: TypeAdapter[Any] = TypeAdapter(SourceConfig)


def parse_source_config(raw: dict[str, Any]) -> Union[ICalSourceConfig, OAuthSourceConfig]:
    """Validate an untyped configuration blob into a source configuration.

    A blob without ``kind`` is treated as an OAuth source when it carries an
    access token and as an iCalendar feed otherwise.

    Raises:
        ConfigurationError: If the blob does not describe a valid source
    """
    data = dict(raw)
    if "kind" not in data:
        data["kind"] = "oauth" if data.get("access_token") else "ical"
    try:
        return _SOURCE_CONFIG_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid calendar source configuration: {e}") from e
