"""
Time Window Filtering Utilities

Functions to filter record snapshots by date ranges and plant days.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional, TypeVar

from .models import day_bounds

T = TypeVar("T")


def filter_records_by_range(
    records: Iterable[T],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    timestamp_attr: str = "started_at"
) -> List[T]:
    """
    Keep records whose timestamp attribute falls inside ``[start, end]``.

    Either bound may be omitted. Records without a timestamp are dropped
    only when a bound is given.

    Example:
        >>> window = DateRange(monday, friday)
        >>> events = filter_records_by_range(takt_events, window.start, window.end)
    """
    if start is None and end is None:
        return list(records)

    filtered = []
    for record in records:
        ts = getattr(record, timestamp_attr, None)
        if ts is None:
            continue
        if start is not None and ts < start:
            continue
        if end is not None and ts > end:
            continue
        filtered.append(record)
    return filtered


def filter_records_by_day(
    records: Iterable[T],
    day: date,
    timestamp_attr: str,
    tz=None
) -> List[T]:
    """Keep records whose timestamp falls on ``day`` in the plant timezone."""
    start, end = day_bounds(day, tz)
    return filter_records_by_range(records, start, end, timestamp_attr)
