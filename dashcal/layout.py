"""Side-by-side layout for overlapping timed events.

Events that overlap directly or through a chain of overlaps form a cluster.
Each cluster is split into columns by greedy interval coloring and every
event in the cluster gets the same width, so the layout of one day is a pure
function of that day's events.
"""

import logging
from datetime import datetime, timezone

from .models import CalendarEvent, LayoutAssignment

logger = logging.getLogger(__name__)

# Horizontal gap between columns, in percent of the day width
SPACING_PERCENT = 4.0

FULL_WIDTH = LayoutAssignment(left=0.0, width=100.0)


def events_overlap(first: CalendarEvent, second: CalendarEvent) -> bool:
    """Half-open interval overlap; events that only touch do not overlap."""
    if first.is_all_day or second.is_all_day:
        return False
    start1, end1 = _bounds(first)
    start2, end2 = _bounds(second)
    return start1 < end2 and start2 < end1


def _bounds(event: CalendarEvent) -> tuple[datetime, datetime]:
    return event.start_instant(timezone.utc), event.end_instant(timezone.utc)


def _connected_components(events: list[CalendarEvent]) -> list[list[int]]:
    """Group indices of mutually reachable events (iterative DFS)."""
    adjacency: list[list[int]] = [[] for _ in events]
    for i in range(len(events)):
        for j in range(i + 1, len(events)):
            if events_overlap(events[i], events[j]):
                adjacency[i].append(j)
                adjacency[j].append(i)

    visited = [False] * len(events)
    components: list[list[int]] = []
    for root in range(len(events)):
        if visited[root]:
            continue
        visited[root] = True
        stack = [root]
        component = []
        while stack:
            node = stack.pop()
            component.append(node)
            for neighbor in adjacency[node]:
                if not visited[neighbor]:
                    visited[neighbor] = True
                    stack.append(neighbor)
        components.append(component)
    return components


def _assign_columns(events: list[CalendarEvent], component: list[int]) -> dict[int, int]:
    """Greedy column assignment in start order, reusing the lowest free column."""
    ordered = sorted(component, key=lambda idx: (_bounds(events[idx])[0], idx))
    column_ends: list[datetime] = []
    columns: dict[int, int] = {}
    for idx in ordered:
        start, end = _bounds(events[idx])
        for column, column_end in enumerate(column_ends):
            if column_end <= start:
                column_ends[column] = end
                columns[idx] = column
                break
        else:
            columns[idx] = len(column_ends)
            column_ends.append(end)
    return columns


def calculate_event_layout(events: list[CalendarEvent]) -> dict[str, LayoutAssignment]:
    """Compute left/width percentages for the timed events of one day.

    All-day events are ignored. Events with no overlaps span the full width;
    a cluster with ``n`` columns gives each event a width of
    ``(100 - 4 * (n - 1)) / n`` and a left offset of ``column * (width + 4)``.

    Returns:
        Mapping of event id to its LayoutAssignment
    """
    timed = [event for event in events if not event.is_all_day]
    layout: dict[str, LayoutAssignment] = {}

    for component in _connected_components(timed):
        if len(component) == 1:
            layout[timed[component[0]].id] = FULL_WIDTH
            continue

        columns = _assign_columns(timed, component)
        column_count = max(columns.values()) + 1
        width = (100.0 - SPACING_PERCENT * (column_count - 1)) / column_count
        for idx, column in columns.items():
            layout[timed[idx].id] = LayoutAssignment(
                left=column * (width + SPACING_PERCENT), width=width
            )

    return layout
