"""
Time slot helpers for the time log.

A slot is written ``"HH:MM - HH:MM"`` on a 24-hour clock. Minutes since
midnight are used for all arithmetic.
"""

import re
from typing import List, Optional, Tuple

from voicelog.config.constants import DEFAULT_SLOT_DURATION_MINUTES

SLOT_SEPARATOR = " - "

_TIME_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*$")
_RANGE_RE = re.compile(
    r"(\d{1,2}(?::\d{2})?)\s*(?:baje)?\s*(?:se|to|-|–)\s*(\d{1,2}(?::\d{2})?)\s*(?:baje)?",
    re.IGNORECASE,
)


def parse_time_to_minutes(value: str) -> int:
    """Convert ``"HH:MM"`` (or a bare hour) to minutes since midnight.

    Raises:
        ValueError: If the text is not a valid clock time
    """
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time: {value!r}")
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    if hours > 24 or minutes > 59 or (hours == 24 and minutes):
        raise ValueError(f"Invalid time: {value!r}")
    return hours * 60 + minutes


def format_minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as ``"HH:MM"``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_slot(slot: str) -> Tuple[int, int]:
    """Split a slot into start and end minutes.

    Raises:
        ValueError: If the slot is malformed or does not move forward in time
    """
    parts = [part.strip() for part in (slot or "").split("-")]
    if len(parts) != 2:
        raise ValueError(f"Invalid time slot: {slot!r}")
    start = parse_time_to_minutes(parts[0])
    end = parse_time_to_minutes(parts[1])
    if start >= end:
        raise ValueError(f"Time slot must end after it starts: {slot!r}")
    return start, end


def is_valid_slot(slot: str) -> bool:
    try:
        parse_slot(slot)
    except ValueError:
        return False
    return True


def make_slot(start: int, end: int) -> str:
    return f"{format_minutes_to_time(start)}{SLOT_SEPARATOR}{format_minutes_to_time(end)}"


def generate_time_slots(
    start: str = "00:00",
    end: str = "24:00",
    duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
) -> List[str]:
    """Consecutive slots of ``duration_minutes`` covering ``start``..``end``.

    A trailing remainder shorter than the duration becomes a short last slot.
    """
    if duration_minutes <= 0:
        raise ValueError("Slot duration must be positive")
    begin = parse_time_to_minutes(start)
    finish = parse_time_to_minutes(end)
    slots = []
    current = begin
    while current < finish:
        slot_end = min(current + duration_minutes, finish)
        slots.append(make_slot(current, slot_end))
        current = slot_end
    return slots


def parse_time_range(text: str) -> Optional[Tuple[str, str]]:
    """Find a spoken time range in free text.

    Understands ``"10 to 12"``, ``"10:00 - 12:30"`` and ``"10 baje se 12 baje"``.

    Returns:
        ``("HH:MM", "HH:MM")`` or None when no valid range is present
    """
    match = _RANGE_RE.search(text or "")
    if not match:
        return None
    try:
        start = parse_time_to_minutes(match.group(1))
        end = parse_time_to_minutes(match.group(2))
    except ValueError:
        return None
    if start >= end:
        return None
    return format_minutes_to_time(start), format_minutes_to_time(end)


def format_slot_display(slot: str) -> str:
    """Render a slot on a 12-hour clock, e.g. ``"9:00 AM - 10:00 AM"``."""
    start, end = parse_slot(slot)
    return f"{_format_12h(start)}{SLOT_SEPARATOR}{_format_12h(end)}"


def _format_12h(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    period = "AM" if hours % 24 < 12 else "PM"
    display = hours % 12 or 12
    return f"{display}:{mins:02d} {period}"
