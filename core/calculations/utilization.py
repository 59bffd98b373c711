"""
Crew Utilization Matrix

Builds the worker × station grid for a single plant day: minutes each worker
spent assigned to each station (as lead or crew) and the worker's shift.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from core.models.records import ShiftRecord, Station, StationAssignment, Worker
from core.time_windows.filters import filter_records_by_day
from utils.formatting import resolve_now, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_SHIFT_HOURS = 8


@dataclass
class UtilizationMatrix:
    workers: List[Worker]
    stations: List[Station]
    matrix: Dict[str, Dict[str, Dict]]
    shifts: Dict[str, Optional[Dict]]
    date: date

    def cell(self, worker_id: str, station_id: str) -> Dict:
        return self.matrix.get(worker_id, {}).get(station_id, {'minutes': 0, 'status': 'idle', 'assignments': 0})

    def worker_minutes(self, worker_id: str) -> int:
        return sum(c['minutes'] for c in self.matrix.get(worker_id, {}).values())

    def is_active(self, worker_id: str) -> bool:
        """True when any of the worker's cells is active, however short the assignment."""
        return any(c['status'] == 'active' for c in self.matrix.get(worker_id, {}).values())

    def to_dict(self) -> Dict:
        return {
            'date': self.date.isoformat(),
            'workers': [{'id': w.id, 'full_name': w.full_name, 'is_lead': w.is_lead} for w in self.workers],
            'stations': [{'id': s.id, 'name': s.name, 'order_num': s.order_num} for s in self.stations],
            'matrix': {w: dict(cells) for w, cells in self.matrix.items()},
            'shifts': dict(self.shifts),
        }

    @classmethod
    def empty(cls, day: date) -> "UtilizationMatrix":
        return cls([], [], {}, {}, day)


@dataclass
class UtilizationSummary:
    total_workers: int = 0
    active_workers: int = 0
    idle_workers: int = 0
    avg_utilization: int = 0

    def to_dict(self) -> Dict:
        return {
            'total_workers': self.total_workers,
            'active_workers': self.active_workers,
            'idle_workers': self.idle_workers,
            'avg_utilization': self.avg_utilization,
        }


def _assignment_minutes(assignment: StationAssignment, now: datetime) -> float:
    if assignment.start_time is None:
        return 0.0
    end = assignment.end_time or now
    return max((end - assignment.start_time).total_seconds() / 60.0, 0.0)


def _shift_summary(shift: Optional[ShiftRecord]) -> Optional[Dict]:
    if shift is None:
        return None
    return {
        'clock_in': shift.clock_in.isoformat() if shift.clock_in else None,
        'clock_out': shift.clock_out.isoformat() if shift.clock_out else None,
        'total_hours': shift.total_hours,
    }


def build_utilization_matrix(
    workers: Iterable[Worker],
    stations: Iterable[Station],
    shifts: Iterable[ShiftRecord],
    assignments: Iterable[StationAssignment],
    day: date,
    now: Optional[datetime] = None
) -> UtilizationMatrix:
    """
    Build the utilization grid for ``day``.

    Inactive workers are left out. Ongoing assignments run until ``now``.
    Shifts and assignments that did not start on ``day`` are ignored.

    Args:
        workers: Factory workers
        stations: Stations, in line order
        shifts: Shift records
        assignments: Station assignments
        day: Plant day to report
        now: Injected current time

    Returns:
        UtilizationMatrix
    """
    now = resolve_now(now)
    tz = now.tzinfo
    active_workers = [w for w in workers if w.is_active]
    stations = sorted(stations, key=lambda s: s.order_num)
    day_assignments = filter_records_by_day(assignments, day, "start_time", tz)
    day_shifts = filter_records_by_day(shifts, day, "clock_in", tz)

    shift_by_worker: Dict[str, ShiftRecord] = {}
    for shift in sorted(day_shifts, key=lambda s: s.clock_in):
        # Earliest clock-in wins when a worker has several shifts on one day
        shift_by_worker.setdefault(shift.worker_id, shift)

    matrix: Dict[str, Dict[str, Dict]] = {}
    for worker in active_workers:
        own = [a for a in day_assignments if a.involves(worker.id)]
        row = {}
        for station in stations:
            matching = [a for a in own if a.station_id == station.id]
            raw_minutes = sum(_assignment_minutes(a, now) for a in matching)
            # Status comes from the unrounded total; only the displayed minutes are rounded
            row[station.id] = {
                'minutes': round_half_up(raw_minutes),
                'status': 'active' if raw_minutes > 0 else 'idle',
                'assignments': len(matching),
            }
        matrix[worker.id] = row

    return UtilizationMatrix(
        workers=active_workers,
        stations=stations,
        matrix=matrix,
        shifts={w.id: _shift_summary(shift_by_worker.get(w.id)) for w in active_workers},
        date=day,
    )


def summarize_utilization(utilization: UtilizationMatrix) -> UtilizationSummary:
    """
    Headline numbers for the utilization grid.

    Average utilization is assigned minutes over shift minutes for workers who
    clocked in; shifts without recorded hours count as 8 hours.
    """
    total = len(utilization.workers)
    active = sum(1 for w in utilization.workers if utilization.is_active(w.id))

    assigned_minutes = 0
    shift_minutes = 0.0
    for worker in utilization.workers:
        shift = utilization.shifts.get(worker.id)
        if shift is None:
            continue
        hours = shift.get('total_hours') or DEFAULT_SHIFT_HOURS
        shift_minutes += hours * 60
        assigned_minutes += utilization.worker_minutes(worker.id)

    avg = round_half_up(assigned_minutes / shift_minutes * 100) if shift_minutes > 0 else 0
    return UtilizationSummary(
        total_workers=total,
        active_workers=active,
        idle_workers=total - active,
        avg_utilization=avg,
    )
