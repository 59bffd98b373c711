"""
Date Range Selector UI Component

Reporting-range picker for the OEE and defect views, with quick presets and
a custom start/end date.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

import streamlit as st

from core.time_windows.models import DateRange, day_bounds
from utils.formatting import resolve_now, validate_time_range

logger = logging.getLogger(__name__)

PRESETS = ("Today", "Last 7 days", "Last 30 days", "Custom")


def preset_range(preset: str, now: Optional[datetime] = None) -> DateRange:
    """
    Date range for a named preset, ending at the close of today.

    Raises:
        ValueError: If the preset is not recognized
    """
    now = resolve_now(now)
    today = now.date()
    if preset == "Today":
        first_day = today
    elif preset == "Last 7 days":
        first_day = today - timedelta(days=6)
    elif preset == "Last 30 days":
        first_day = today - timedelta(days=29)
    else:
        raise ValueError(f"Unknown preset name: {preset}")
    start, _ = day_bounds(first_day, now.tzinfo)
    _, end = day_bounds(today, now.tzinfo)
    return DateRange(start, end)


def custom_range(first_day: date, last_day: date) -> DateRange:
    start, _ = day_bounds(first_day)
    _, end = day_bounds(last_day)
    return DateRange(start, end)


def render_date_range_selector(key_prefix: str = "report_range", default: str = "Last 7 days") -> Optional[DateRange]:
    """
    Render the range picker.

    Returns:
        DateRange, or None when the custom range is invalid
    """
    preset = st.radio(
        "Reporting range",
        options=PRESETS,
        index=PRESETS.index(default),
        horizontal=True,
        key=f"{key_prefix}_preset",
    )

    if preset != "Custom":
        return preset_range(preset)

    today = resolve_now().date()
    col1, col2 = st.columns(2)
    with col1:
        first_day = st.date_input("Start date", value=today - timedelta(days=6), key=f"{key_prefix}_start")
    with col2:
        last_day = st.date_input("End date", value=today, key=f"{key_prefix}_end")

    start, _ = day_bounds(first_day)
    _, end = day_bounds(last_day)
    errors, warnings, is_valid = validate_time_range(start, end)
    for warning in warnings:
        st.warning(warning)
    if not is_valid:
        for error in errors:
            st.error(f"❌ {error}")
        logger.info(f"Rejected custom range {first_day} to {last_day}: {errors}")
        return None

    return custom_range(first_day, last_day)
