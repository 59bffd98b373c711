"""
Cross-Training Matrix and Station Flex

Which active workers hold an active certification for which station, and
how much of the workforce can cover each station.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from core.models.records import CertificationRecord, Station, Worker
from utils.formatting import round_half_up

logger = logging.getLogger(__name__)

LOW_FLEX_PERCENT = 30

UNCERTIFIED = {'certified': False}


@dataclass
class CrossTrainingMatrix:
    workers: List[Worker]
    stations: List[Station]
    matrix: Dict[str, Dict[str, Dict]]
    station_flex: Dict[str, Dict]
    total_workers: int = 0
    total_certifications: int = 0

    def is_certified(self, worker_id: str, station_id: str) -> bool:
        return self.matrix.get(worker_id, {}).get(station_id, UNCERTIFIED)['certified']

    def to_dict(self) -> Dict:
        return {
            'workers': [{'id': w.id, 'full_name': w.full_name} for w in self.workers],
            'stations': [{'id': s.id, 'name': s.name, 'code': s.code} for s in self.stations],
            'matrix': {w: dict(cells) for w, cells in self.matrix.items()},
            'station_flex': {k: dict(v) for k, v in self.station_flex.items()},
            'total_workers': self.total_workers,
            'total_certifications': self.total_certifications,
        }

    @classmethod
    def empty(cls) -> "CrossTrainingMatrix":
        return cls([], [], {}, {})


@dataclass
class FlexSummary:
    avg_flex: int = 0
    low_flex_stations: List[str] = field(default_factory=list)

    @property
    def low_flex_count(self) -> int:
        return len(self.low_flex_stations)

    def to_dict(self) -> Dict:
        return {
            'avg_flex': self.avg_flex,
            'low_flex_count': self.low_flex_count,
            'low_flex_stations': list(self.low_flex_stations),
        }


def _certification_cell(cert: CertificationRecord) -> Dict:
    return {
        'certified': True,
        'level': cert.proficiency_level,
        'certified_at': cert.certified_at.isoformat() if cert.certified_at else None,
        'expires_at': cert.expires_at.isoformat() if cert.expires_at else None,
        'avg_completion_hours': cert.avg_completion_hours,
        'rework_rate': cert.rework_rate,
    }


def calculate_flex_percent(certified_count: int, total_workers: int) -> int:
    if total_workers <= 0:
        return 0
    return round_half_up(certified_count / total_workers * 100)


def build_cross_training_matrix(
    workers: Iterable[Worker],
    stations: Iterable[Station],
    certifications: Iterable[CertificationRecord]
) -> CrossTrainingMatrix:
    """
    Build the worker × station certification grid.

    Workers are ordered by name; inactive workers and inactive certifications
    are ignored. Station flex is the share of active workers certified there.
    The certification total counts every active certification supplied, including
    those held by inactive workers or for stations not on the line.

    Example:
        >>> ct = build_cross_training_matrix(workers, stations, certs)
        >>> ct.station_flex['framing']['flex_percent']
        50
    """
    active_workers = sorted((w for w in workers if w.is_active), key=lambda w: w.full_name)
    stations = sorted(stations, key=lambda s: s.order_num)

    active_certs = [cert for cert in certifications if cert.is_active]
    by_pair: Dict[tuple, CertificationRecord] = {(c.worker_id, c.station_id): c for c in active_certs}

    matrix: Dict[str, Dict[str, Dict]] = {}
    for worker in active_workers:
        row = {}
        for station in stations:
            cert = by_pair.get((worker.id, station.id))
            if cert is None:
                row[station.id] = dict(UNCERTIFIED)
            else:
                row[station.id] = _certification_cell(cert)
        matrix[worker.id] = row

    total_workers = len(active_workers)
    station_flex = {}
    for station in stations:
        count = sum(1 for w in active_workers if matrix[w.id][station.id]['certified'])
        station_flex[station.id] = {
            'certified_count': count,
            'flex_percent': calculate_flex_percent(count, total_workers),
        }

    return CrossTrainingMatrix(
        workers=active_workers,
        stations=stations,
        matrix=matrix,
        station_flex=station_flex,
        total_workers=total_workers,
        total_certifications=len(active_certs),
    )


def summarize_station_flex(matrix: CrossTrainingMatrix) -> FlexSummary:
    """Average flex across stations and the stations below 30%."""
    if not matrix.station_flex:
        return FlexSummary()
    flex_values = [entry['flex_percent'] for entry in matrix.station_flex.values()]
    avg = round_half_up(sum(flex_values) / len(flex_values))
    low = [sid for sid, entry in matrix.station_flex.items() if entry['flex_percent'] < LOW_FLEX_PERCENT]
    return FlexSummary(avg_flex=avg, low_flex_stations=low)
