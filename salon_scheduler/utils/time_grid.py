"""
Pure clock arithmetic for the scheduling grid.

Times are wall-clock values within a single day. Internally everything is
minutes since midnight; seconds are ignored. Intervals are half-open
``[start, end)``.
"""

from datetime import time
from typing import List, NamedTuple, Union

from salon_scheduler.core.exceptions import InvalidRange

MINUTES_PER_DAY = 24 * 60


class Interval(NamedTuple):
    start: time
    end: time


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise InvalidRange(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def parse_clock(value: Union[str, time]) -> time:
    """Accept a ``time`` or an ``HH:MM[:SS]`` string."""
    if isinstance(value, time):
        return value
    try:
        parts = [int(p) for p in str(value).strip().split(":")]
    except ValueError:
        raise InvalidRange(f"Malformed time '{value}'")
    if len(parts) not in (2, 3):
        raise InvalidRange(f"Malformed time '{value}'")
    try:
        return time(*parts)
    except ValueError:
        raise InvalidRange(f"Malformed time '{value}'")


def round_to_interval(value: Union[str, time], interval_minutes: int) -> time:
    """
    Round to the nearest multiple of ``interval_minutes`` (half rounds up).

    A result of 24:00 or later does not wrap to the next day; it is
    rejected with InvalidRange.
    """
    if interval_minutes <= 0:
        raise InvalidRange("Interval must be a positive number of minutes")
    minutes = to_minutes(parse_clock(value))
    rounded = (2 * minutes + interval_minutes) // (2 * interval_minutes) * interval_minutes
    if rounded >= MINUTES_PER_DAY:
        raise InvalidRange(f"{parse_clock(value).strftime('%H:%M')} rounds past midnight")
    return from_minutes(rounded)


def minutes_between(start: time, end: time) -> int:
    return to_minutes(end) - to_minutes(start)


def generate_boundaries(start: time, end: time, interval_minutes: int) -> List[Interval]:
    """
    Contiguous ``[s, s + interval)`` steps from ``start``.

    A trailing step that would end after ``end`` is dropped.
    """
    if interval_minutes <= 0:
        raise InvalidRange("Interval must be a positive number of minutes")
    boundaries = []
    current = to_minutes(start)
    stop = to_minutes(end)
    while current + interval_minutes <= stop:
        boundaries.append(Interval(from_minutes(current), from_minutes(current + interval_minutes)))
        current += interval_minutes
    return boundaries


def overlaps(a: Interval, b: Interval) -> bool:
    return to_minutes(a.start) < to_minutes(b.end) and to_minutes(b.start) < to_minutes(a.end)


def contains(outer: Interval, inner: Interval) -> bool:
    return (
        to_minutes(outer.start) <= to_minutes(inner.start)
        and to_minutes(inner.end) <= to_minutes(outer.end)
    )
