"""
test_time_windows.py - Unit tests for reporting ranges, shift schedules and
day arithmetic in the plant timezone.
"""

from datetime import date, datetime, timedelta

import pandas as pd
import pytest

from core.time_windows.filters import filter_records_by_day, filter_records_by_range
from core.time_windows.models import DateRange, ShiftSchedule, day_bounds, days_since, days_until
from core.models.records import TaktEvent
from ui.date_range_selector import custom_range, preset_range
from utils.formatting import (
    convert_all_datetime_to_str,
    format_currency,
    format_duration_hours,
    round_half_up,
    validate_time_range,
)


class TestDateRange:

    def test_days_round_up(self, at):
        assert DateRange(at(2024, 3, 11), at(2024, 3, 21)).days == 10
        assert DateRange(at(2024, 3, 11), at(2024, 3, 11, 12)).days == 1

    def test_end_before_start_raises(self, at):
        with pytest.raises(ValueError, match="must not be before"):
            DateRange(at(2024, 3, 12), at(2024, 3, 11))

    def test_naive_bounds_get_plant_timezone(self):
        window = DateRange(datetime(2024, 3, 11), datetime(2024, 3, 12))
        assert window.start.tzinfo is not None
        assert window.duration_hours == 24

    def test_contains_is_inclusive(self, at):
        window = DateRange(at(2024, 3, 11), at(2024, 3, 12))
        assert window.contains(at(2024, 3, 11))
        assert window.contains(at(2024, 3, 12))
        assert not window.contains(at(2024, 3, 12, 0, 1))
        assert not window.contains(None)

    def test_for_day(self):
        window = DateRange.for_day(date(2024, 3, 13))
        assert window.start.hour == 0
        assert window.end.hour == 23


class TestShiftSchedule:

    def test_default_schedule(self):
        schedule = ShiftSchedule()
        assert schedule.shift_minutes == 510
        assert schedule.expected_hours_per_day == 7.5
        assert schedule.start_hour == 6

    def test_from_settings_merges_defaults(self):
        schedule = ShiftSchedule.from_settings(
            {"shift_start": "07:00", "lunch_minutes": None},
            {"shift_end": "15:30", "break_minutes": 15, "lunch_minutes": 30},
        )
        assert schedule.shift_start == "07:00"
        assert schedule.shift_end == "15:30"
        assert schedule.expected_hours_per_day == pytest.approx(7.75)

    def test_invalid_clock_value_falls_back(self):
        schedule = ShiftSchedule.from_settings({"shift_start": "25:99"})
        assert schedule.shift_start == "06:00"

    def test_invalid_clock_in_constructor_raises(self):
        with pytest.raises(ValueError):
            ShiftSchedule(shift_start="noon")


class TestDayArithmetic:

    def test_days_until_rounds_up(self, now):
        assert days_until(date(2024, 3, 15), now) == 2
        assert days_until(date(2024, 3, 14), now) == 1

    def test_days_until_today_is_zero(self, now):
        assert days_until(date(2024, 3, 13), now) == 0

    def test_days_until_past_is_negative(self, now):
        assert days_until(date(2024, 3, 11), now) == -2

    def test_days_until_none(self, now):
        assert days_until(None, now) is None

    def test_days_since_rounds_down(self, now):
        assert days_since(now - timedelta(days=2, hours=23), now) == 2
        assert days_since(None, now) is None

    def test_day_bounds(self):
        start, end = day_bounds(date(2024, 3, 13))
        assert (start.hour, start.minute) == (0, 0)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)


class TestFilters:

    def test_range_filter_drops_missing_timestamps(self, at):
        events = [
            TaktEvent(id="a", started_at=at(2024, 3, 12, 8)),
            TaktEvent(id="b", started_at=None),
            TaktEvent(id="c", started_at=at(2024, 3, 14, 8)),
        ]
        kept = filter_records_by_range(events, at(2024, 3, 12), at(2024, 3, 13))
        assert [e.id for e in kept] == ["a"]
        assert len(filter_records_by_range(events)) == 3

    def test_day_filter(self, at):
        events = [TaktEvent(id="a", started_at=at(2024, 3, 13, 23, 30)), TaktEvent(id="b", started_at=at(2024, 3, 14))]
        assert [e.id for e in filter_records_by_day(events, date(2024, 3, 13), "started_at")] == ["a"]


class TestPresets:

    def test_last_seven_days_ends_today(self, now):
        window = preset_range("Last 7 days", now)
        assert window.start.date() == date(2024, 3, 7)
        assert window.end.date() == date(2024, 3, 13)
        assert window.days == 7

    def test_today(self, now):
        window = preset_range("Today", now)
        assert window.start.date() == window.end.date() == date(2024, 3, 13)

    def test_unknown_preset_raises(self, now):
        with pytest.raises(ValueError, match="Unknown preset"):
            preset_range("Fortnight", now)

    def test_custom_range(self):
        window = custom_range(date(2024, 3, 1), date(2024, 3, 3))
        assert window.days == 3


class TestFormatting:

    @pytest.mark.parametrize("value,digits,expected", [
        (2.5, 0, 3),
        (12.5, 0, 13),
        (3.25, 1, 3.3),
        (3.9285, 1, 3.9),
    ])
    def test_round_half_up(self, value, digits, expected):
        assert round_half_up(value, digits) == expected

    def test_round_half_up_returns_int_for_whole_digits(self):
        assert isinstance(round_half_up(2.4), int)

    @pytest.mark.parametrize("amount,text", [
        (None, "$0"),
        (950, "$950"),
        (350_000, "$350K"),
        (1_250_000, "$1.2M"),
    ])
    def test_format_currency(self, amount, text):
        assert format_currency(amount) == text

    @pytest.mark.parametrize("hours,text", [
        (0.5, "30m"),
        (5.5, "5.5h"),
        (30, "1d 6h"),
    ])
    def test_format_duration(self, hours, text):
        assert format_duration_hours(hours) == text

    def test_validate_time_range_rejects_reversed(self, at):
        errors, _, valid = validate_time_range(at(2024, 3, 13), at(2024, 3, 12))
        assert not valid
        assert errors == ["End time must be after start time"]

    def test_validate_time_range_rejects_over_a_quarter(self, at):
        _, _, valid = validate_time_range(at(2023, 1, 1), at(2023, 6, 1))
        assert not valid

    def test_datetime_columns_become_strings(self, at):
        df = pd.DataFrame({"hold_at": [at(2024, 3, 12, 10)], "hours": [5.5]})
        converted = convert_all_datetime_to_str(df)
        assert converted.loc[0, "hold_at"] == "2024-03-12 10:00:00"
        assert converted.loc[0, "hours"] == 5.5
        assert pd.api.types.is_datetime64_any_dtype(df["hold_at"])
