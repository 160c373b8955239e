"""Cheap text-level prefilter for large calendar feeds.

Published calendars often carry years of history. Dropping clearly-past
single events before full iCalendar parsing keeps parse time proportional to
the relevant part of the feed. The filter works on raw text and never
interprets timezones: it compares the ``YYYYMMDD`` prefix of DTEND (falling
back to DTSTART) against a cutoff date.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from .timezone_utils import now_utc

logger = logging.getLogger(__name__)

# Single events ending before now - PREFILTER_HORIZON_DAYS are dropped
PREFILTER_HORIZON_DAYS = 6 * 30

BEGIN_MARKER = "BEGIN:VEVENT"
END_MARKER = "END:VEVENT"

# Matches "DTEND:20250101..." and "DTEND;TZID=Europe/Paris:20250101..."
_DATE_PATTERNS = {
    name: re.compile(rf"^{name}(?:;[^:\r\n]*)?:(\d{{8}})", re.MULTILINE)
    for name in ("DTEND", "DTSTART")
}
_RECURRENCE_PATTERN = re.compile(r"^(?:RRULE|RDATE)[;:]", re.MULTILINE)


def _block_date(block: str) -> Optional[str]:
    for name in ("DTEND", "DTSTART"):
        match = _DATE_PATTERNS[name].search(block)
        if match:
            return match.group(1)
    return None


def _keep_block(block: str, cutoff: str) -> bool:
    if _RECURRENCE_PATTERN.search(block):
        return True
    date = _block_date(block)
    if date is None:
        return True
    # YYYYMMDD strings order lexically like the dates they encode
    return date >= cutoff


def prefilter_feed_text(text: str, now: Optional[datetime] = None) -> str:
    """Remove single events that ended before the prefilter horizon.

    Blocks containing an RRULE or RDATE are always kept, as are blocks without a
    recognizable date. Everything outside event blocks (calendar headers,
    VTIMEZONE definitions, the closing marker) is preserved verbatim. An event
    block without a closing marker stops filtering and the remaining text is
    kept as-is.

    Args:
        text: Raw iCalendar text
        now: Reference time (defaults to the current time)

    Returns:
        Filtered iCalendar text; applying the filter again is a no-op
    """
    reference = now if now is not None else now_utc()
    cutoff = (reference - timedelta(days=PREFILTER_HORIZON_DAYS)).strftime("%Y%m%d")

    parts: list[str] = []
    pos = 0
    kept = dropped = 0

    while True:
        start = text.find(BEGIN_MARKER, pos)
        if start == -1:
            parts.append(text[pos:])
            break

        end = text.find(END_MARKER, start)
        if end == -1:
            logger.debug("Unterminated event block at offset %d; keeping remainder", start)
            parts.append(text[pos:])
            break

        end += len(END_MARKER)
        # The line break after END:VEVENT belongs to the block
        if text.startswith("\r\n", end):
            end += 2
        elif text.startswith("\n", end):
            end += 1

        parts.append(text[pos:start])
        block = text[start:end]
        if _keep_block(block, cutoff):
            parts.append(block)
            kept += 1
        else:
            dropped += 1
        pos = end

    if dropped:
        logger.debug("Prefilter kept %d event blocks, dropped %d past events", kept, dropped)
    return "".join(parts)
