"""
Data Fetching Module

Read-only fetchers for the portal's record store. Each function runs one
parameterized query and returns a DataFrame; failures are logged and raised
as RecordFetchError so callers can fall back to a default metric.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import psycopg2

from core.models.results import RecordFetchError
from .pool import get_store_connection
from .queries import WORK_ITEM_TABLES, secure_query_builder

logger = logging.getLogger(__name__)

PM_ROLE_NAMES = ("PM", "Director", "Project Manager", "Project_Manager")
SALES_ROLE_NAMES = ("Sales_Rep", "Sales_Manager")


def _run_query(source: str, query: str, parameters: List[Any]) -> pd.DataFrame:
    """Execute a query and return the rows as a DataFrame."""
    try:
        with get_store_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(query, parameters)
                data = cursor.fetchall()
                columns = [desc[0] for desc in cursor.description]
        df = pd.DataFrame(data, columns=columns)
        logger.info(f"Successfully fetched {len(df)} {source} records")
        return df

    except (psycopg2.Error, ValueError) as e:
        logger.error(f"Error fetching {source}: {e}", exc_info=True)
        raise RecordFetchError(source, e) from e


def _select(source: str, table: str, **kwargs) -> pd.DataFrame:
    query, parameters = secure_query_builder.build_select_query(table, **kwargs)
    return _run_query(source, query, parameters)


def _range_filters(column: str, start: Optional[datetime], end: Optional[datetime]) -> list:
    filters = []
    if start is not None:
        filters.append((column, ">=", start))
    if end is not None:
        filters.append((column, "<=", end))
    return filters


# ============================================================
# PROJECT MANAGEMENT
# ============================================================

def fetch_projects(statuses: Optional[Sequence[str]] = None, factory: Optional[str] = None) -> pd.DataFrame:
    filters = []
    if statuses is not None:
        filters.append(("status", "in", list(statuses)))
    if factory:
        filters.append(("factory", "=", factory))
    return _select("projects", "projects", filters=filters, order_by="delivery_date")


def fetch_work_items(kind: str, project_ids: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Fetch tasks, RFIs or submittals with their parent project embedded.

    Adds a ``kind`` column so frames for several kinds can be concatenated.
    """
    query, parameters = secure_query_builder.build_work_items_query(kind, project_ids)
    df = _run_query(WORK_ITEM_TABLES[kind][0], query, parameters)
    df["kind"] = kind
    return df


def fetch_all_work_items(project_ids: Optional[Sequence[str]] = None) -> pd.DataFrame:
    frames = [fetch_work_items(kind, project_ids) for kind in WORK_ITEM_TABLES]
    frames = [f for f in frames if not f.empty]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def fetch_team_members(roles: Sequence[str] = PM_ROLE_NAMES) -> pd.DataFrame:
    return _select(
        "team members",
        "users",
        filters=[("role", "in", list(roles)), ("is_active", "=", True)],
        order_by="full_name",
    )


def fetch_sales_reps() -> pd.DataFrame:
    return fetch_team_members(SALES_ROLE_NAMES)


# ============================================================
# FACTORY FLOOR
# ============================================================

def fetch_workers(factory_id: str, active_only: bool = True) -> pd.DataFrame:
    filters = [("factory_id", "=", factory_id)]
    if active_only:
        filters.append(("is_active", "=", True))
    return _select("workers", "workers", filters=filters, order_by="full_name")


def fetch_stations() -> pd.DataFrame:
    return _select("stations", "station_templates", order_by="order_num")


def fetch_shifts(
    factory_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    completed_only: bool = False
) -> pd.DataFrame:
    """Shifts clocked in between ``start`` and ``end``."""
    filters = [("factory_id", "=", factory_id)] + _range_filters("clock_in", start, end)
    if completed_only:
        filters.append(("clock_out", "not null", None))
    return _select("worker shifts", "worker_shifts", filters=filters, order_by="clock_in")


def fetch_station_assignments(
    factory_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> pd.DataFrame:
    filters = [("factory_id", "=", factory_id)] + _range_filters("start_time", start, end)
    return _select("station assignments", "station_assignments", filters=filters, order_by="start_time")


def fetch_takt_events(
    factory_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> pd.DataFrame:
    filters = [("factory_id", "=", factory_id), ("actual_hours", "not null", None)]
    filters += _range_filters("started_at", start, end)
    return _select("takt events", "takt_events", filters=filters, order_by="started_at")


def fetch_qc_inspections(
    factory_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> pd.DataFrame:
    filters = [("factory_id", "=", factory_id)] + _range_filters("inspected_at", start, end)
    return _select("QC inspections", "qc_records", filters=filters, order_by="inspected_at")


def fetch_defect_records(
    factory_id: str,
    station_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> pd.DataFrame:
    query, parameters = secure_query_builder.build_defect_records_query(factory_id, station_id, start, end)
    return _run_query("defect records", query, parameters)


def fetch_certifications(factory_id: str) -> pd.DataFrame:
    return _select(
        "certifications",
        "cross_training",
        filters=[("factory_id", "=", factory_id), ("is_active", "=", True)],
    )


def fetch_modules(factory_id: str, statuses: Sequence[str]) -> pd.DataFrame:
    query, parameters = secure_query_builder.build_modules_with_station_query(factory_id, statuses)
    return _run_query("modules", query, parameters)


def fetch_completed_modules(factory_id: str, start: datetime, end: datetime) -> pd.DataFrame:
    filters = [("factory_id", "=", factory_id), ("status", "=", "Completed")]
    filters += _range_filters("actual_end", start, end)
    return _select("completed modules", "modules", filters=filters, order_by="actual_end")


def _json_column(value: Any) -> Dict:
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed plant config JSON: {value[:80]!r}")
    return {}


def fetch_plant_config(factory_id: str) -> Dict[str, Dict]:
    """
    Plant time settings and line simulation defaults for a factory.

    Returns empty mappings when the factory has no plant_config row.
    """
    df = _select(
        "plant config",
        "plant_config",
        filters=[("factory_id", "=", factory_id)],
        limit=1,
    )
    if df.empty:
        logger.info(f"No plant config for factory {factory_id}, using defaults")
        return {"time_settings": {}, "line_sim_defaults": {}}
    row = df.iloc[0]
    return {
        "time_settings": _json_column(row.get("time_settings")),
        "line_sim_defaults": _json_column(row.get("line_sim_defaults")),
    }


def fetch_kaizen_suggestions(factory_id: str) -> pd.DataFrame:
    query, parameters = secure_query_builder.build_kaizen_leaderboard_query(factory_id)
    return _run_query("kaizen suggestions", query, parameters)


# ============================================================
# SALES
# ============================================================

def fetch_sales_quotes(factory: Optional[str] = None, latest_only: bool = True) -> pd.DataFrame:
    filters = []
    if latest_only:
        filters.append(("is_latest_version", "=", True))
    if factory:
        filters.append(("factory", "=", factory))
    return _select("sales quotes", "sales_quotes", filters=filters, order_by="created_at", descending=True)
