"""
Time Window Models

Date ranges and plant shift schedules used by the scoring functions:
- Reporting ranges for OEE and defect statistics
- Configured shift start/end with break and lunch allowances
- Calendar-day bounds in the plant timezone
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Mapping, Optional, Tuple

from utils.formatting import ensure_aware, get_plant_timezone, to_int

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class DateRange:
    """
    Represents a reporting period.

    Both ends are inclusive when filtering records; the length in days is
    rounded up so a partial day counts as a full planned day.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        """Normalize to aware datetimes and validate ordering"""
        object.__setattr__(self, "start", ensure_aware(self.start))
        object.__setattr__(self, "end", ensure_aware(self.end))
        if self.end < self.start:
            raise ValueError(
                f"End time ({self.end}) must not be before start time ({self.start})"
            )

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600.0

    @property
    def days(self) -> int:
        """Number of calendar days covered, rounded up."""
        return math.ceil((self.end - self.start).total_seconds() / SECONDS_PER_DAY)

    def contains(self, timestamp: Optional[datetime]) -> bool:
        """Check if timestamp falls within this range"""
        if timestamp is None:
            return False
        return self.start <= timestamp <= self.end

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def for_day(cls, day: date, tz=None) -> "DateRange":
        start, end = day_bounds(day, tz)
        return cls(start, end)

    def __repr__(self) -> str:
        return (
            f"DateRange({self.start.strftime('%Y-%m-%d %H:%M')} → "
            f"{self.end.strftime('%Y-%m-%d %H:%M')})"
        )


def _parse_clock(value: str) -> Tuple[int, int]:
    """Parse an ``HH:MM`` clock string."""
    hour_str, _, minute_str = str(value).strip().partition(":")
    hour = int(hour_str)
    minute = int(minute_str) if minute_str else 0
    if not (0 <= hour <= 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid clock time: '{value}'")
    return hour, minute


@dataclass(frozen=True)
class ShiftSchedule:
    """
    Plant time settings for a single shift.

    Mirrors the ``time_settings`` JSON stored per factory.
    """
    shift_start: str = "06:00"
    shift_end: str = "14:30"
    break_minutes: int = 30
    lunch_minutes: int = 30

    def __post_init__(self):
        """Validate clock strings"""
        _parse_clock(self.shift_start)
        _parse_clock(self.shift_end)

    @property
    def shift_minutes(self) -> int:
        start_hour, start_min = _parse_clock(self.shift_start)
        end_hour, end_min = _parse_clock(self.shift_end)
        return (end_hour * 60 + end_min) - (start_hour * 60 + start_min)

    @property
    def paid_break_minutes(self) -> int:
        return (self.break_minutes or 0) + (self.lunch_minutes or 0)

    @property
    def expected_hours_per_day(self) -> float:
        """Scheduled productive hours: shift length less break and lunch."""
        return (self.shift_minutes - self.paid_break_minutes) / 60

    @property
    def start_hour(self) -> float:
        hour, minute = _parse_clock(self.shift_start)
        return hour + minute / 60

    @classmethod
    def from_settings(cls, settings: Optional[Mapping[str, Any]], defaults: Optional[Mapping[str, Any]] = None) -> "ShiftSchedule":
        """
        Build a schedule from a stored ``time_settings`` mapping.

        Missing keys fall back to ``defaults`` and then to the class defaults;
        unparseable clock values are logged and replaced.
        """
        merged = dict(defaults or {})
        merged.update({k: v for k, v in (settings or {}).items() if v is not None})

        kwargs = {}
        for key in ("shift_start", "shift_end"):
            value = merged.get(key)
            if value is None:
                continue
            try:
                _parse_clock(value)
                kwargs[key] = str(value)
            except (ValueError, TypeError):
                logger.warning(f"Ignoring invalid {key} in plant time settings: {value!r}")

        for key in ("break_minutes", "lunch_minutes"):
            value = to_int(merged.get(key))
            if value is not None:
                kwargs[key] = value

        return cls(**kwargs)


def day_bounds(day: date, tz=None) -> Tuple[datetime, datetime]:
    """Start (00:00) and end (23:59:59.999999) of ``day`` in the plant timezone."""
    tz = tz or get_plant_timezone()
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day, time.max))
    return start, end


def local_midnight(day: date, tz=None) -> datetime:
    tz = tz or get_plant_timezone()
    return tz.localize(datetime.combine(day, time.min))


def days_until(target: Optional[date], now: datetime, tz=None) -> Optional[int]:
    """
    Whole days from ``now`` until local midnight of ``target``, rounded up.

    Negative when the target is in the past; None when there is no target.
    """
    if target is None:
        return None
    delta = local_midnight(target, tz) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def days_since(moment: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole days elapsed since ``moment``, rounded down."""
    if moment is None:
        return None
    return math.floor((now - moment) / timedelta(days=1))
