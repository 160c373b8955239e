"""Unit tests for dashcal.models."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from dashcal.exceptions import ConfigurationError
from dashcal.models import (
    CalendarEvent,
    CalendarPeriod,
    EventTime,
    ICalSourceConfig,
    OAuthSourceConfig,
    WeekStart,
    parse_source_config,
)

pytestmark = pytest.mark.unit


class TestEventTime:
    def test_event_time_when_aware_then_normalized_to_utc(self):
        paris = datetime(2025, 6, 16, 10, 0, tzinfo=ZoneInfo("Europe/Paris"))

        value = EventTime(date_time=paris, time_zone="Europe/Paris")

        assert value.date_time == datetime(2025, 6, 16, 8, 0, tzinfo=timezone.utc)
        assert value.date_time.utcoffset() == timedelta(0)
        assert value.time_zone == "Europe/Paris"

    def test_event_time_when_naive_then_assumed_utc(self):
        value = EventTime(date_time=datetime(2025, 6, 16, 10, 0))

        assert value.date_time == datetime(2025, 6, 16, 10, 0, tzinfo=timezone.utc)

    def test_event_time_requires_exactly_one_value(self):
        with pytest.raises(ValidationError):
            EventTime()
        with pytest.raises(ValidationError):
            EventTime(date=date(2025, 6, 16), date_time=datetime(2025, 6, 16, tzinfo=timezone.utc))

    def test_event_time_is_immutable(self):
        value = EventTime(date=date(2025, 6, 16))

        with pytest.raises(ValidationError):
            value.date = date(2025, 6, 17)

    def test_to_instant_when_all_day_then_local_midnight(self):
        tz = ZoneInfo("America/New_York")

        instant = EventTime(date=date(2025, 6, 16)).to_instant(tz)

        assert instant == datetime(2025, 6, 16, 4, 0, tzinfo=timezone.utc)

    def test_sort_key_distinguishes_dates_and_instants(self):
        assert EventTime(date=date(2025, 6, 16)).sort_key() == (0, "20250616")
        assert EventTime(
            date_time=datetime(2025, 6, 16, 8, 0, tzinfo=timezone.utc)
        ).sort_key() == (1, "20250616T080000Z")


class TestCalendarEvent:
    def test_calendar_event_defaults(self):
        start = EventTime(date=date(2025, 6, 16))
        event = CalendarEvent(id="x", start=start, end=EventTime(date=date(2025, 6, 17)))

        assert event.summary == "No title"
        assert event.status == "confirmed"
        assert event.attendees == []
        assert event.is_all_day
        assert not event.is_override

    def test_calendar_event_when_mixed_kinds_then_rejected(self):
        with pytest.raises(ValidationError):
            CalendarEvent(
                id="x",
                start=EventTime(date=date(2025, 6, 16)),
                end=EventTime(date_time=datetime(2025, 6, 16, 10, tzinfo=timezone.utc)),
            )

    def test_calendar_event_json_round_trip(self, make_event):
        event = make_event(
            "s_1",
            datetime(2025, 6, 16, 8, tzinfo=timezone.utc),
            datetime(2025, 6, 16, 9, tzinfo=timezone.utc),
            series_uid="s",
            original_start=datetime(2025, 6, 16, 8, tzinfo=timezone.utc),
        )

        assert CalendarEvent.model_validate_json(event.model_dump_json()) == event


class TestSourceConfig:
    def test_ical_config_defaults(self):
        config = ICalSourceConfig(ical_url="https://example.com/basic.ics")

        assert config.kind == "ical"
        assert config.period == CalendarPeriod.WEEK.value
        assert config.week_start == WeekStart.SUNDAY.value
        assert config.cache_duration_seconds == 0
        assert config.user_email is None

    @pytest.mark.parametrize(
        "url", ["webcal://example.com/a.ics", "example.com/a.ics", "https://", "mailto:a@b.c"]
    )
    def test_ical_config_when_url_invalid_then_rejected(self, url):
        with pytest.raises(ValidationError):
            ICalSourceConfig(ical_url=url)

    def test_ical_config_when_negative_cache_duration_then_rejected(self):
        with pytest.raises(ValidationError):
            ICalSourceConfig(ical_url="https://example.com/a.ics", cache_duration_seconds=-1)

    def test_parse_source_config_without_kind_infers_ical(self):
        config = parse_source_config({"ical_url": "https://example.com/a.ics", "period": "month"})

        assert isinstance(config, ICalSourceConfig)
        assert config.period == "month"

    def test_parse_source_config_with_access_token_infers_oauth(self):
        config = parse_source_config({"access_token": "tok", "selected_calendar_ids": ["primary"]})

        assert isinstance(config, OAuthSourceConfig)
        assert config.selected_calendar_ids == ["primary"]

    def test_parse_source_config_when_invalid_then_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_source_config({"kind": "ical"})
        with pytest.raises(ConfigurationError):
            parse_source_config({"ical_url": "https://example.com/a.ics", "period": "fortnight"})
