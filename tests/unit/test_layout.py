"""Unit tests for dashcal.layout."""

import random
from datetime import date, datetime, timedelta, timezone

import pytest

from dashcal.layout import FULL_WIDTH, calculate_event_layout, events_overlap

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 6, 16, hour, minute, tzinfo=timezone.utc)


class TestEventLayout:
    def test_layout_when_no_events_then_empty(self):
        assert calculate_event_layout([]) == {}

    def test_layout_when_single_event_then_full_width(self, make_event):
        layout = calculate_event_layout([make_event("solo", _at(9), _at(10))])

        assert layout == {"solo": FULL_WIDTH}

    def test_layout_when_events_only_touch_then_both_full_width(self, make_event):
        events = [make_event("a", _at(9), _at(10)), make_event("b", _at(10), _at(11))]

        layout = calculate_event_layout(events)

        assert layout["a"].width == 100.0
        assert layout["b"].width == 100.0

    def test_layout_when_chain_of_overlaps_then_two_columns_reused(self, make_event):
        events = [
            make_event("a", _at(9), _at(11)),
            make_event("b", _at(10), _at(12)),
            make_event("c", _at(11), _at(13)),
        ]

        layout = calculate_event_layout(events)

        assert (layout["a"].left, layout["a"].width) == (0.0, 48.0)
        assert (layout["b"].left, layout["b"].width) == (52.0, 48.0)
        assert (layout["c"].left, layout["c"].width) == (0.0, 48.0)

    def test_layout_when_three_mutual_overlaps_then_three_columns(self, make_event):
        events = [
            make_event("a", _at(9), _at(12)),
            make_event("b", _at(9, 30), _at(12)),
            make_event("c", _at(10), _at(11)),
        ]

        layout = calculate_event_layout(events)

        width = (100.0 - 8.0) / 3
        assert layout["a"].width == pytest.approx(width)
        assert layout["b"].left == pytest.approx(width + 4.0)
        assert layout["c"].left == pytest.approx(2 * (width + 4.0))

    def test_layout_when_separate_clusters_then_independent(self, make_event):
        events = [
            make_event("a", _at(9), _at(10)),
            make_event("b", _at(9, 30), _at(10, 30)),
            make_event("c", _at(14), _at(15)),
        ]

        layout = calculate_event_layout(events)

        assert layout["a"].width == 48.0
        assert layout["c"] == FULL_WIDTH

    def test_layout_ignores_all_day_events(self, make_event):
        events = [
            make_event("holiday", date(2025, 6, 16), date(2025, 6, 17)),
            make_event("meeting", _at(9), _at(10)),
        ]

        layout = calculate_event_layout(events)

        assert "holiday" not in layout
        assert layout["meeting"] == FULL_WIDTH

    def test_layout_does_not_depend_on_input_order(self, make_event):
        events = [
            make_event("a", _at(9), _at(11)),
            make_event("b", _at(10), _at(12)),
            make_event("c", _at(11), _at(13)),
        ]

        assert calculate_event_layout(events) == calculate_event_layout(list(reversed(events)))

    def test_events_overlap_is_false_for_all_day(self, make_event):
        all_day = make_event("day", date(2025, 6, 16), date(2025, 6, 17))
        timed = make_event("timed", _at(9), _at(10))

        assert not events_overlap(all_day, timed)
        assert events_overlap(timed, make_event("other", _at(9, 30), _at(9, 45)))

    @pytest.mark.parametrize("seed", range(20))
    def test_layout_when_random_batch_then_overlapping_events_never_share_space(
        self, make_event, seed
    ):
        rng = random.Random(seed)
        day_start = _at(8)
        events = []
        for i in range(rng.randint(2, 25)):
            start = day_start + timedelta(minutes=15 * rng.randint(0, 40))
            end = start + timedelta(minutes=15 * rng.randint(1, 8))
            events.append(make_event(f"e{i}", start, end))

        layout = calculate_event_layout(events)

        assert set(layout) == {event.id for event in events}
        for event in events:
            placement = layout[event.id]
            assert placement.left >= 0
            assert placement.left + placement.width <= 100.0 + 1e-9
        for i, first in enumerate(events):
            for second in events[i + 1 :]:
                if not events_overlap(first, second):
                    continue
                a, b = layout[first.id], layout[second.id]
                assert a.width == b.width
                assert a.left + a.width <= b.left + 1e-9 or b.left + b.width <= a.left + 1e-9
