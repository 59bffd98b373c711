"""
Defect Fix-Cycle Tracking

Measures how long modules sit on QC hold before rework passes:
- Hold starts at the failing inspection and ends at rework completion
- Custom buildings get a 1.4× allowance (weighted hours)
- Ongoing holds are measured up to "now"
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd

from core.models.records import QCRecord
from core.time_windows.filters import filter_records_by_range
from utils.formatting import hours_between, resolve_now, round_half_up

logger = logging.getLogger(__name__)

CUSTOM_CATEGORY = "custom"
CUSTOM_CATEGORY_MULTIPLIER = 1.4
DEFAULT_FIX_THRESHOLD_HOURS = 4

# Time bands for fix duration (hours)
GOOD_FIX_HOURS = 2
WARNING_FIX_HOURS = 4


@dataclass
class DefectCycle:
    id: str
    module_id: Optional[str]
    station_id: Optional[str]
    station_name: Optional[str]
    building_category: Optional[str]
    hold_at: datetime
    pass_at: Optional[datetime]
    duration_hours: float
    weighted_hours: float

    @property
    def is_ongoing(self) -> bool:
        return self.pass_at is None

    @property
    def band(self) -> str:
        return classify_fix_duration(self.weighted_hours)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'module_id': self.module_id,
            'station_id': self.station_id,
            'station_name': self.station_name,
            'building_category': self.building_category,
            'hold_at': self.hold_at.isoformat(),
            'pass_at': self.pass_at.isoformat() if self.pass_at else None,
            'duration_hours': self.duration_hours,
            'weighted_hours': self.weighted_hours,
            'is_ongoing': self.is_ongoing,
            'band': self.band,
        }


@dataclass
class DefectFixStats:
    total: int = 0
    completed: int = 0
    ongoing: int = 0
    avg_duration_hours: float = 0.0
    avg_weighted_hours: float = 0.0
    by_station: Dict[str, Dict] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'total': self.total,
            'completed': self.completed,
            'ongoing': self.ongoing,
            'avg_duration_hours': self.avg_duration_hours,
            'avg_weighted_hours': self.avg_weighted_hours,
            'by_station': {k: dict(v) for k, v in self.by_station.items()},
        }


def classify_fix_duration(hours: float) -> str:
    """'good' under 2h, 'warning' under 4h, else 'critical'."""
    if hours < GOOD_FIX_HOURS:
        return "good"
    if hours < WARNING_FIX_HOURS:
        return "warning"
    return "critical"


def category_multiplier(building_category: Optional[str]) -> float:
    if building_category and building_category.strip().lower() == CUSTOM_CATEGORY:
        return CUSTOM_CATEGORY_MULTIPLIER
    return 1.0


def build_defect_cycles(
    qc_records: Iterable[QCRecord],
    now: Optional[datetime] = None,
    station_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: Optional[int] = None
) -> List[DefectCycle]:
    """
    Build fix cycles from QC records that required rework, newest first.

    Args:
        qc_records: QC inspections
        now: Injected current time, used as the end of ongoing holds
        station_id: Only records from this station
        start: Earliest inspected_at
        end: Latest inspected_at
        limit: Maximum number of cycles returned

    Returns:
        List of DefectCycle
    """
    now = resolve_now(now)

    flagged = []
    for record in qc_records:
        if not record.rework_required:
            continue
        if station_id is not None and record.station_id != station_id:
            continue
        if record.inspected_at is None:
            logger.warning(f"Skipping QC record {record.id}: rework flagged without inspected_at")
            continue
        flagged.append(record)

    flagged = filter_records_by_range(flagged, start, end, "inspected_at")
    flagged.sort(key=lambda r: r.inspected_at, reverse=True)
    if limit is not None:
        flagged = flagged[:limit]

    cycles = []
    for record in flagged:
        pass_at = record.rework_completed_at
        duration = hours_between(record.inspected_at, pass_at or now)
        weighted = duration / category_multiplier(record.building_category)
        cycles.append(DefectCycle(
            id=record.id,
            module_id=record.module_id,
            station_id=record.station_id,
            station_name=record.station_name,
            building_category=record.building_category,
            hold_at=record.inspected_at,
            pass_at=pass_at,
            duration_hours=round_half_up(duration, 1),
            weighted_hours=round_half_up(weighted, 1),
        ))
    return cycles


def get_defect_fix_stats(cycles: Iterable[DefectCycle]) -> DefectFixStats:
    """
    Aggregate fix-cycle statistics.

    Averages cover completed cycles only. The per-station average divides
    the station's completed hours by all of its cycles, ongoing included.
    """
    cycles = list(cycles)
    if not cycles:
        return DefectFixStats()

    df = pd.DataFrame([
        {
            'station_id': c.station_id or 'unknown',
            'station_name': c.station_name or 'Unknown',
            'duration_hours': c.duration_hours,
            'weighted_hours': c.weighted_hours,
            'is_ongoing': c.is_ongoing,
        }
        for c in cycles
    ])
    completed = df[~df['is_ongoing']]

    avg_duration = round_half_up(float(completed['duration_hours'].mean()), 1) if len(completed) else 0.0
    avg_weighted = round_half_up(float(completed['weighted_hours'].mean()), 1) if len(completed) else 0.0

    df['completed_hours'] = df['duration_hours'].where(~df['is_ongoing'], 0.0)
    grouped = df.groupby('station_id', sort=False).agg(
        name=('station_name', 'first'),
        count=('duration_hours', 'size'),
        total_hours=('completed_hours', 'sum'),
    )

    by_station = {}
    for sid, row in grouped.iterrows():
        count = int(row['count'])
        total_hours = float(row['total_hours'])
        by_station[sid] = {
            'name': row['name'],
            'count': count,
            'total_hours': round_half_up(total_hours, 1),
            'avg_hours': round_half_up(total_hours / count, 1) if count else 0.0,
        }

    return DefectFixStats(
        total=len(df),
        completed=len(completed),
        ongoing=int(df['is_ongoing'].sum()),
        avg_duration_hours=avg_duration,
        avg_weighted_hours=avg_weighted,
        by_station=by_station,
    )


def cycles_over_threshold(
    cycles: Iterable[DefectCycle],
    threshold_hours: float = DEFAULT_FIX_THRESHOLD_HOURS
) -> List[DefectCycle]:
    """Cycles whose weighted hours meet or exceed the alert threshold."""
    return [c for c in cycles if c.weighted_hours >= threshold_hours]
