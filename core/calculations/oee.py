"""
OEE Calculator for Plant Production

Overall Equipment Effectiveness for a reporting range:
- Availability: shift hours worked / scheduled productive hours
- Performance: expected takt cycle hours / actual takt cycle hours
- Quality: passed QC inspections / total QC inspections

OEE = Availability × Performance × Quality
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from core.models.records import QCRecord, ShiftRecord, TaktEvent
from core.time_windows.filters import filter_records_by_range
from core.time_windows.models import DateRange, ShiftSchedule
from utils.formatting import hours_between, round_half_up

logger = logging.getLogger(__name__)

# Benchmark thresholds (OEE percent)
OEE_WORLD_CLASS = 85
OEE_GOOD = 75
OEE_ACCEPTABLE = 65
OEE_POOR = 50


@dataclass
class OEEResult:
    """Container for OEE calculation results"""
    availability: float  # 0.0 to 1.0
    performance: float   # 0.0 to 1.0
    quality: float       # 0.0 to 1.0
    oee: float           # 0.0 to 1.0
    breakdown: Dict[str, float] = field(default_factory=dict)
    date_range: Optional[DateRange] = None

    @property
    def oee_percent(self) -> float:
        return round_half_up(self.oee * 100, 1)

    @property
    def label(self) -> str:
        return classify_oee(self.oee_percent)

    def to_percentage_dict(self) -> Dict[str, float]:
        """Convert to percentage values for display"""
        return {
            'availability': round_half_up(self.availability * 100, 1),
            'performance': round_half_up(self.performance * 100, 1),
            'quality': round_half_up(self.quality * 100, 1),
            'oee': self.oee_percent,
        }

    def to_dict(self) -> Dict:
        return {
            'raw': {
                'availability': self.availability,
                'performance': self.performance,
                'quality': self.quality,
                'oee': self.oee,
            },
            'percent': self.to_percentage_dict(),
            'label': self.label,
            'breakdown': dict(self.breakdown),
            'date_range': self.date_range.to_dict() if self.date_range else None,
        }

    @classmethod
    def empty(cls, date_range: Optional[DateRange] = None) -> "OEEResult":
        """Zeroed result used when the inputs could not be fetched."""
        return cls(0.0, 0.0, 0.0, 0.0, {}, date_range)


def classify_oee(oee_percent: float) -> str:
    """
    Benchmark label for an OEE percentage.

    Example:
        >>> classify_oee(72.0)
        'Acceptable'
    """
    if oee_percent >= OEE_WORLD_CLASS:
        return "World Class"
    if oee_percent >= OEE_GOOD:
        return "Good"
    if oee_percent >= OEE_ACCEPTABLE:
        return "Acceptable"
    if oee_percent >= OEE_POOR:
        return "Needs Work"
    return "Critical"


def calculate_availability(actual_hours: float, expected_hours: float) -> float:
    if expected_hours <= 0:
        return 0.0
    return min(actual_hours / expected_hours, 1.0)


def calculate_performance(expected_cycle_hours: float, actual_cycle_hours: float, event_count: int) -> float:
    """
    Expected over actual cycle time, capped at 1.

    With events recorded but no actual cycle hours the factor is 1, not 0.
    Historical OEE reports depend on this; do not change it without sign-off.
    """
    if actual_cycle_hours > 0:
        return min(expected_cycle_hours / actual_cycle_hours, 1.0)
    return 1.0 if event_count > 0 else 0.0


def calculate_quality(passed: int, total: int) -> float:
    # No inspections is not evidence of bad quality
    if total <= 0:
        return 1.0
    return passed / total


def _shift_hours(shift: ShiftRecord) -> float:
    if shift.total_hours is not None:
        return shift.total_hours
    if shift.clock_in is not None and shift.clock_out is not None:
        return max(hours_between(shift.clock_in, shift.clock_out), 0.0)
    return 0.0


def calculate_oee(
    date_range: DateRange,
    shifts: Iterable[ShiftRecord],
    schedule: Optional[ShiftSchedule],
    takt_events: Iterable[TaktEvent],
    inspections: Iterable[QCRecord]
) -> OEEResult:
    """
    Calculate plant OEE over a reporting range.

    Open shifts (no clock-out) and takt events without recorded actual hours
    are ignored. Records timestamped outside the range are dropped.

    Args:
        date_range: Reporting period
        shifts: Shift records
        schedule: Plant time settings (defaults when None)
        takt_events: Production cycles with expected and actual hours
        inspections: QC inspections

    Returns:
        OEEResult with raw factors and an auditable breakdown

    Example:
        >>> result = calculate_oee(week, shifts, ShiftSchedule(), takt_events, qc_records)
        >>> print(f"OEE: {result.oee_percent}% ({result.label})")
    """
    schedule = schedule or ShiftSchedule()

    completed_shifts: List[ShiftRecord] = [
        s for s in filter_records_by_range(shifts, date_range.start, date_range.end, "clock_in")
        if not s.is_open
    ]
    recorded_events: List[TaktEvent] = [
        e for e in filter_records_by_range(takt_events, date_range.start, date_range.end, "started_at")
        if e.actual_hours is not None
    ]
    checked: List[QCRecord] = filter_records_by_range(
        inspections, date_range.start, date_range.end, "inspected_at"
    )

    actual_hours = sum(_shift_hours(s) for s in completed_shifts)
    days = date_range.days
    shift_count = len(completed_shifts)
    expected_hours = schedule.expected_hours_per_day * days * max(shift_count, 1)
    availability = calculate_availability(actual_hours, expected_hours)

    expected_cycle = sum(e.expected_hours for e in recorded_events)
    actual_cycle = sum(e.actual_hours for e in recorded_events)
    performance = calculate_performance(expected_cycle, actual_cycle, len(recorded_events))

    total_inspections = len(checked)
    passed_inspections = sum(1 for r in checked if r.passed)
    quality = calculate_quality(passed_inspections, total_inspections)

    oee = availability * performance * quality

    logger.debug(
        f"OEE {date_range}: A={availability:.3f} P={performance:.3f} Q={quality:.3f} "
        f"({shift_count} shifts, {len(recorded_events)} takt events, {total_inspections} inspections)"
    )

    return OEEResult(
        availability=availability,
        performance=performance,
        quality=quality,
        oee=oee,
        breakdown={
            'actual_hours_worked': round_half_up(actual_hours, 1),
            'expected_total_hours': round_half_up(expected_hours, 1),
            'expected_hours_per_day': round_half_up(schedule.expected_hours_per_day, 2),
            'expected_cycle_hours': round_half_up(expected_cycle, 1),
            'actual_cycle_hours': round_half_up(actual_cycle, 1),
            'takt_events': len(recorded_events),
            'total_inspections': total_inspections,
            'passed_inspections': passed_inspections,
            'days_in_range': days,
            'shift_count': shift_count,
        },
        date_range=date_range,
    )
