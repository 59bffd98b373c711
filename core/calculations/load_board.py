"""
Visual Load Board Pacing

Station queues for modules in flight and the line's pace against the daily
throughput target.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from core.models.records import Module, ModuleStatus, Station
from utils.formatting import resolve_now, round_half_up

logger = logging.getLogger(__name__)

SHIFT_START_HOUR = 6
SHIFT_HOURS = 8.5
DEFAULT_TARGET_THROUGHPUT = 2
NEXT_UP_LIMIT = 5
UNKNOWN_STATION_ORDER = 99

# Pace status thresholds
ON_TRACK_PACE = 1.0
BEHIND_PACE = 0.8
# Reported when the board could not be loaded
UNKNOWN_PACE = "unknown"

IN_FLIGHT_STATUSES = (
    ModuleStatus.IN_QUEUE.value,
    ModuleStatus.IN_PROGRESS.value,
    ModuleStatus.QC_HOLD.value,
)


@dataclass
class LoadBoardSnapshot:
    queues: Dict[str, Dict]
    totals: Dict[str, int]
    target_throughput: float
    hours_elapsed: float
    expected_by_now: int
    actual_completed: int
    pace: float
    pace_status: str
    next_up: List[Dict] = field(default_factory=list)

    @property
    def pace_percent(self) -> int:
        return round_half_up(self.pace * 100)

    def to_dict(self) -> Dict:
        return {
            'queues': {k: dict(v) for k, v in self.queues.items()},
            'totals': dict(self.totals),
            'target_throughput': self.target_throughput,
            'hours_elapsed': round_half_up(self.hours_elapsed, 2),
            'expected_by_now': self.expected_by_now,
            'actual_completed': self.actual_completed,
            'pace': self.pace_percent,
            'pace_status': self.pace_status,
            'next_up': list(self.next_up),
        }

    @classmethod
    def empty(cls, target_throughput: float = DEFAULT_TARGET_THROUGHPUT) -> "LoadBoardSnapshot":
        return cls({}, {'in_queue': 0, 'in_progress': 0, 'on_hold': 0, 'in_flight': 0, 'completed_today': 0},
                   target_throughput, 0.0, 0, 0, 0.0, UNKNOWN_PACE)


def calculate_hours_elapsed(now: datetime, shift_start_hour: float = SHIFT_START_HOUR) -> float:
    return max(0.0, now.hour - shift_start_hour + now.minute / 60)


def calculate_expected_by_now(
    hours_elapsed: float,
    target_throughput: float,
    shift_hours: float = SHIFT_HOURS
) -> int:
    """Modules that should be finished by now at an even daily rate."""
    return math.floor(hours_elapsed / shift_hours * target_throughput)


def calculate_pace(actual_completed: int, expected_by_now: int) -> float:
    if expected_by_now > 0:
        return actual_completed / expected_by_now
    return 1.0 if actual_completed > 0 else 0.0


def classify_pace(pace: float) -> str:
    """
    Example:
        >>> classify_pace(0.8)
        'behind'
    """
    if pace >= ON_TRACK_PACE:
        return "on-track"
    if pace >= BEHIND_PACE:
        return "behind"
    return "at-risk"


def _station_order(module: Module, station_order: Dict[str, int]) -> int:
    if module.current_station_order is not None:
        return module.current_station_order
    return station_order.get(module.current_station_id, UNKNOWN_STATION_ORDER)


def build_load_board(
    stations: Iterable[Station],
    modules: Iterable[Module],
    completed_today: Iterable[Module],
    now: Optional[datetime] = None,
    target_throughput: Optional[float] = DEFAULT_TARGET_THROUGHPUT
) -> LoadBoardSnapshot:
    """
    Build the load board for the current shift.

    Args:
        stations: Stations, in line order
        modules: Modules; only In Queue, In Progress and QC Hold are placed on the board
        completed_today: Modules completed today
        now: Injected current time (plant timezone)
        target_throughput: Modules per day, 2 when not configured

    Returns:
        LoadBoardSnapshot
    """
    now = resolve_now(now)
    target = target_throughput or DEFAULT_TARGET_THROUGHPUT
    stations = sorted(stations, key=lambda s: s.order_num)
    station_order = {s.id: s.order_num for s in stations}

    in_flight = [m for m in modules if m.status in IN_FLIGHT_STATUSES]

    queues: Dict[str, Dict] = {}
    for station in stations:
        at_station = [m for m in in_flight if m.current_station_id == station.id]
        queues[station.id] = {
            'name': station.name,
            'count': len(at_station),
            'in_progress': sum(1 for m in at_station if m.status == ModuleStatus.IN_PROGRESS.value),
            'waiting': sum(1 for m in at_station if m.status == ModuleStatus.IN_QUEUE.value),
            'on_hold': sum(1 for m in at_station if m.status == ModuleStatus.QC_HOLD.value),
            'modules': [m.serial_number for m in at_station],
        }

    actual = len(list(completed_today))
    totals = {
        'in_queue': sum(1 for m in in_flight if m.status == ModuleStatus.IN_QUEUE.value),
        'in_progress': sum(1 for m in in_flight if m.status == ModuleStatus.IN_PROGRESS.value),
        'on_hold': sum(1 for m in in_flight if m.status == ModuleStatus.QC_HOLD.value),
        'in_flight': len(in_flight),
        'completed_today': actual,
    }

    hours_elapsed = calculate_hours_elapsed(now)
    expected = calculate_expected_by_now(hours_elapsed, target)
    pace = calculate_pace(actual, expected)

    queued = [m for m in in_flight if m.status == ModuleStatus.IN_QUEUE.value]
    queued.sort(key=lambda m: _station_order(m, station_order))
    next_up = [
        {
            'id': m.id,
            'serial_number': m.serial_number,
            'name': m.name,
            'station_id': m.current_station_id,
            'station_order': _station_order(m, station_order),
        }
        for m in queued[:NEXT_UP_LIMIT]
    ]

    logger.debug(f"Load board: {actual}/{expected} completed (pace {pace:.2f}), {len(in_flight)} in flight")

    return LoadBoardSnapshot(
        queues=queues,
        totals=totals,
        target_throughput=target,
        hours_elapsed=hours_elapsed,
        expected_by_now=expected,
        actual_completed=actual,
        pace=pace,
        pace_status=classify_pace(pace),
        next_up=next_up,
    )
