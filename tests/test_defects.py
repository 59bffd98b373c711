"""
test_defects.py - Unit tests for defect fix-cycle tracking.

Tests cover:
  - build_defect_cycles: durations, custom-category weighting, ongoing holds,
    station / date / limit filters, ordering
  - get_defect_fix_stats: completed-only averages and per-station figures
  - Duration bands and the alert threshold
"""

from datetime import datetime

import pytest

from core.calculations.defects import (
    DefectFixStats,
    build_defect_cycles,
    category_multiplier,
    classify_fix_duration,
    cycles_over_threshold,
    get_defect_fix_stats,
)
from core.models.records import QCRecord
from utils.formatting import get_plant_timezone

PLANT_TZ = get_plant_timezone()


def _at(day, hour=0, minute=0):
    return PLANT_TZ.localize(datetime(2024, 3, day, hour, minute))


def _defect(rid, held, fixed=None, station="s1", category=None, rework=True):
    return QCRecord(
        id=rid,
        module_id=f"m-{rid}",
        station_id=station,
        station_name=f"Station {station}",
        inspected_at=held,
        rework_required=rework,
        rework_completed_at=fixed,
        building_category=category,
    )


@pytest.fixture
def records():
    return [
        _defect("d1", _at(12, 10), _at(12, 15, 30), category="Custom"),
        _defect("d2", _at(13, 8, 15), None),
        _defect("d3", _at(11, 9), _at(11, 10), station="s2"),
        _defect("ok", _at(12, 11), None, rework=False),
    ]


class TestBuildDefectCycles:

    def test_custom_category_hours_are_weighted(self, now):
        cycles = build_defect_cycles([_defect("d1", _at(12, 10), _at(12, 15, 30), category="Custom")], now)
        cycle = cycles[0]
        assert cycle.duration_hours == 5.5
        assert cycle.weighted_hours == 3.9
        assert cycle.band == "warning"
        assert not cycle.is_ongoing

    def test_ongoing_hold_runs_until_now(self, now):
        cycle = build_defect_cycles([_defect("d2", _at(13, 8, 15))], now)[0]
        assert cycle.is_ongoing
        assert cycle.duration_hours == 2.0
        assert cycle.to_dict()["pass_at"] is None

    def test_only_rework_records_newest_first(self, now, records):
        cycles = build_defect_cycles(records, now)
        assert [c.id for c in cycles] == ["d2", "d1", "d3"]

    def test_station_filter(self, now, records):
        assert [c.id for c in build_defect_cycles(records, now, station_id="s2")] == ["d3"]

    def test_date_filter(self, now, records):
        cycles = build_defect_cycles(records, now, start=_at(12), end=_at(12, 23, 59))
        assert [c.id for c in cycles] == ["d1"]

    def test_limit(self, now, records):
        assert len(build_defect_cycles(records, now, limit=2)) == 2

    def test_record_without_inspection_time_is_skipped(self, now):
        assert build_defect_cycles([_defect("bad", None)], now) == []

    def test_category_multiplier_is_case_insensitive(self):
        assert category_multiplier("CUSTOM") == 1.4
        assert category_multiplier(" custom ") == 1.4
        assert category_multiplier("FLEET/STOCK") == 1.0
        assert category_multiplier(None) == 1.0


class TestDefectFixStats:

    def test_averages_cover_completed_cycles(self, now, records):
        stats = get_defect_fix_stats(build_defect_cycles(records, now))
        assert stats.total == 3
        assert stats.completed == 2
        assert stats.ongoing == 1
        # (5.5 + 1.0) / 2 and (3.9 + 1.0) / 2, rounded half up
        assert stats.avg_duration_hours == 3.3
        assert stats.avg_weighted_hours == 2.5

    def test_station_average_divides_by_all_station_cycles(self, now, records):
        stats = get_defect_fix_stats(build_defect_cycles(records, now))
        assert stats.by_station["s1"] == {
            "name": "Station s1",
            "count": 2,
            "total_hours": 5.5,
            "avg_hours": 2.8,
        }
        assert stats.by_station["s2"]["avg_hours"] == 1.0

    def test_no_cycles(self):
        assert get_defect_fix_stats([]) == DefectFixStats()

    def test_only_ongoing_cycles_average_zero(self, now):
        stats = get_defect_fix_stats(build_defect_cycles([_defect("d2", _at(13, 8, 15))], now))
        assert stats.avg_duration_hours == 0.0
        assert stats.by_station["s1"]["avg_hours"] == 0.0


class TestBands:

    @pytest.mark.parametrize("hours,band", [
        (0.0, "good"),
        (1.99, "good"),
        (2.0, "warning"),
        (3.99, "warning"),
        (4.0, "critical"),
        (30.0, "critical"),
    ])
    def test_classify_fix_duration(self, hours, band):
        assert classify_fix_duration(hours) == band

    def test_cycles_over_threshold_use_weighted_hours(self, now):
        cycles = build_defect_cycles([
            _defect("custom", _at(12, 10), _at(12, 15, 30), category="Custom"),
            _defect("standard", _at(12, 10), _at(12, 15, 30)),
        ], now)
        assert [c.id for c in cycles_over_threshold(cycles)] == ["standard"]
