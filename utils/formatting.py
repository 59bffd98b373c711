"""
Formatting Utilities

Functions for parsing store values, normalizing timestamps, rounding and
formatting metric values for display.
"""

import logging
import math
import pandas as pd
import pytz
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, List, Optional, Tuple
from dateutil import parser as dateutil_parser

from config import Config

logger = logging.getLogger(__name__)


def get_plant_timezone(tz_name: Optional[str] = None):
    """Return the pytz timezone used to interpret naive timestamps."""
    return pytz.timezone(tz_name or Config.TIMEZONE)


def is_missing(value: Any) -> bool:
    """True for None, NaN, NaT and empty strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def ensure_aware(dt: datetime, tz=None) -> datetime:
    """
    Attach the plant timezone to a naive datetime.

    Aware datetimes are returned unchanged so absolute instants are preserved.
    """
    if dt.tzinfo is not None:
        return dt
    tz = tz or get_plant_timezone()
    return tz.localize(dt)


def resolve_now(now: Optional[datetime] = None, tz=None) -> datetime:
    """
    Return ``now`` as an aware datetime expressed in the plant timezone.

    Scoring functions accept an injected ``now`` so results are reproducible;
    when omitted the wall clock is used.
    """
    tz = tz or get_plant_timezone()
    if now is None:
        return datetime.now(tz)
    return ensure_aware(now, tz).astimezone(tz)


def parse_datetime(value: Any, tz=None) -> Optional[datetime]:
    """
    Parse an ISO string, datetime or pandas Timestamp into an aware datetime.

    Returns None for missing or unparseable values.
    """
    if is_missing(value):
        return None
    try:
        if isinstance(value, pd.Timestamp):
            dt = value.to_pydatetime()
        elif isinstance(value, datetime):
            dt = value
        elif isinstance(value, date):
            dt = datetime.combine(value, time.min)
        else:
            dt = dateutil_parser.isoparse(str(value))
    except (ValueError, TypeError, OverflowError):
        try:
            dt = dateutil_parser.parse(str(value))
        except (ValueError, TypeError, OverflowError):
            logger.warning(f"Could not parse timestamp value: {value!r}")
            return None
    return ensure_aware(dt, tz)


def parse_date(value: Any) -> Optional[date]:
    """Parse a date-like value (``YYYY-MM-DD``, datetime, Timestamp) into a date."""
    if is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return dateutil_parser.parse(str(value)).date()
    except (ValueError, TypeError, OverflowError):
        logger.warning(f"Could not parse date value: {value!r}")
        return None


def to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Convert store numerics (Decimal, str, NaN) to float."""
    if is_missing(value):
        return default
    # PostgreSQL NUMERIC columns come back as Decimal
    if isinstance(value, Decimal):
        return float(value)
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if math.isnan(result):
        return default
    return result


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    result = to_float(value, None)
    if result is None:
        return default
    return int(result)


def to_bool(value: Any, default: bool = False) -> bool:
    if is_missing(value):
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "yes", "y")
    return bool(value)


def to_text(value: Any, default: Optional[str] = None) -> Optional[str]:
    if is_missing(value):
        return default
    return str(value)


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round half away from zero (2.5 -> 3), unlike Python's banker's rounding.

    Used for displayed percentages so 12.5% shows as 13%.
    """
    try:
        quantum = Decimal(1).scaleb(-digits)
        rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return value
    if digits == 0:
        return int(rounded)
    return float(rounded)


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours between two aware datetimes."""
    return (end - start).total_seconds() / 3600.0


def format_timestamp(iso_timestamp) -> str:
    """
    Convert ISO 8601 timestamp to readable format (YYYY-MM-DD HH:MM:SS), handling potential errors.

    Args:
        iso_timestamp: ISO timestamp string, datetime object, or None

    Returns:
        Formatted timestamp string or empty string if invalid
    """
    if is_missing(iso_timestamp):
        return ""
    dt_obj = parse_datetime(iso_timestamp)
    if dt_obj is None:
        return str(iso_timestamp)
    return dt_obj.strftime("%Y-%m-%d %H:%M:%S")


def format_currency(amount: Optional[float]) -> str:
    """Compact currency: $1.2M, $350K, $900."""
    if not amount:
        return "$0"
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.0f}K"
    return f"${amount:,.0f}"


def format_duration_hours(hours: float) -> str:
    """Format a duration: minutes under an hour, hours under a day, else days + hours."""
    if hours < 1:
        return f"{round_half_up(hours * 60)}m"
    if hours < 24:
        return f"{round_half_up(hours, 1)}h"
    days = math.floor(hours / 24)
    remaining = round_half_up(hours % 24)
    return f"{days}d {remaining}h"


def convert_all_datetime_to_str(df: pd.DataFrame) -> pd.DataFrame:
    """
    Convert all datetime columns in a DataFrame to string format (YYYY-MM-DD HH:MM:SS).

    Args:
        df: DataFrame with datetime columns

    Returns:
        DataFrame with datetime columns converted to strings
    """
    try:
        df = df.copy()  # Avoid modifying original
        for col in df.columns:
            if pd.api.types.is_datetime64_any_dtype(df[col]):
                df[col] = df[col].dt.strftime("%Y-%m-%d %H:%M:%S")
        return df
    except Exception as e:
        logger.error(f"Error converting datetime columns: {e}", exc_info=True)
        return df


def validate_time_range(start_dt: datetime, end_dt: datetime) -> Tuple[List[str], List[str], bool]:
    """
    Validate time range and return validation results with warnings/errors.

    Args:
        start_dt: Start datetime
        end_dt: End datetime

    Returns:
        Tuple of (validation_errors, validation_warnings, is_valid)
    """
    validation_errors = []
    validation_warnings = []

    # Check if end time is after start time
    if end_dt <= start_dt:
        validation_errors.append("End time must be after start time")
        return validation_errors, validation_warnings, False

    time_diff = end_dt - start_dt

    # Scoring a quarter at a time is the largest window the dashboards use
    if time_diff.days > 92:
        validation_errors.append("Time range too large (> 92 days) - please select a smaller range")
        return validation_errors, validation_warnings, False

    if time_diff.days > 31:
        validation_warnings.append(f"⚠️ Large time range ({time_diff.days} days) - queries may take longer to complete")

    now_utc = datetime.now(pytz.UTC)
    start_dt_tz = ensure_aware(start_dt)
    end_dt_tz = ensure_aware(end_dt)

    if start_dt_tz > now_utc:
        validation_errors.append("Start time cannot be in the future")
        return validation_errors, validation_warnings, False

    if end_dt_tz > now_utc + timedelta(days=1):
        validation_warnings.append("⚠️ End time is in the future - current data may be incomplete")

    return validation_errors, validation_warnings, True
