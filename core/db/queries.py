"""
Secure Query Builder Module

Builds parameterized SELECT statements against the portal's record store.
Table and column names are checked against an allow-list before they are
placed in the SQL text; every value travels as a query parameter.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Allow-listed tables and the columns that may be selected or filtered on
TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "projects": (
        "id", "name", "project_number", "status", "delivery_date", "actual_completion_date",
        "contract_value", "factory", "client_name", "owner_id", "primary_pm_id", "backup_pm_id",
    ),
    "tasks": ("id", "project_id", "title", "status", "due_date", "assignee_id", "internal_owner_id"),
    "rfis": ("id", "project_id", "subject", "status", "due_date", "internal_owner_id"),
    "submittals": ("id", "project_id", "title", "status", "due_date", "internal_owner_id"),
    "users": ("id", "full_name", "role", "is_active"),
    "workers": ("id", "full_name", "employee_id", "primary_station_id", "is_active", "is_lead", "factory_id"),
    "station_templates": ("id", "name", "code", "color", "order_num"),
    "worker_shifts": ("id", "worker_id", "factory_id", "clock_in", "clock_out", "total_hours"),
    "station_assignments": (
        "id", "station_id", "module_id", "lead_id", "crew_ids", "start_time", "end_time", "factory_id",
    ),
    "takt_events": ("id", "module_id", "station_id", "factory_id", "expected_hours", "actual_hours", "started_at"),
    "qc_records": (
        "id", "module_id", "station_id", "factory_id", "inspected_at", "rework_required",
        "rework_completed_at", "passed", "defects_found", "notes",
    ),
    "cross_training": (
        "id", "worker_id", "station_id", "factory_id", "proficiency_level", "certified_at",
        "expires_at", "is_active", "avg_completion_hours", "rework_rate",
    ),
    "modules": (
        "id", "serial_number", "name", "project_id", "factory_id", "status",
        "current_station_id", "actual_end", "building_category",
    ),
    "plant_config": ("factory_id", "time_settings", "line_sim_defaults"),
    "sales_quotes": (
        "id", "quote_number", "project_name", "status", "total_price", "outlook_percentage",
        "expected_close_timeframe", "expected_close_date", "pm_flagged", "converted_at",
        "converted_to_project_id", "created_at", "assigned_to", "building_type", "factory",
        "praxis_source_factory", "is_latest_version",
    ),
    "kaizen_suggestions": ("id", "worker_id", "user_id", "factory_id", "status", "is_anonymous", "created_at"),
}

# Work-item tables and the column holding their display title
WORK_ITEM_TABLES = {
    "task": ("tasks", "title"),
    "rfi": ("rfis", "subject"),
    "submittal": ("submittals", "title"),
}

COMPARISON_OPERATORS = ("=", "!=", ">", ">=", "<", "<=")
SET_OPERATORS = ("in",)
NULL_OPERATORS = ("is null", "not null")

# (column, operator, value); value is ignored for the null checks
Filter = Tuple[str, str, Any]


class SecureQueryBuilder:
    """Secure query builder with parameterized queries and input validation."""

    IDENTIFIER_PATTERN = re.compile(r'^[a-z_][a-z0-9_]*$')

    def validate_table(self, table: str) -> str:
        if table not in TABLE_COLUMNS:
            raise ValueError(f"Table not allowed: '{table}'")
        return table

    def validate_column(self, table: str, column: str) -> str:
        if not self.IDENTIFIER_PATTERN.match(column or "") or column not in TABLE_COLUMNS[table]:
            raise ValueError(f"Column not allowed on {table}: '{column}'")
        return column

    def _build_where(self, table: str, alias: str, filters: Optional[Sequence[Filter]]) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        parameters: List[Any] = []
        for column, operator, value in filters or []:
            column = self.validate_column(table, column)
            op = operator.lower()
            qualified = f"{alias}.{column}"
            if op in COMPARISON_OPERATORS:
                if value is None:
                    raise ValueError(f"Comparison on {column} needs a value; use 'is null' instead")
                clauses.append(f"{qualified} {op} %s")
                parameters.append(value)
            elif op in SET_OPERATORS:
                values = list(value or [])
                if not values:
                    # Empty IN list matches nothing
                    clauses.append("1=0")
                    continue
                clauses.append(f"{qualified} = ANY(%s)")
                parameters.append(values)
            elif op == "is null":
                clauses.append(f"{qualified} IS NULL")
            elif op == "not null":
                clauses.append(f"{qualified} IS NOT NULL")
            else:
                raise ValueError(f"Unsupported filter operator: '{operator}'")
        if not clauses:
            return "", parameters
        return " WHERE " + " AND ".join(clauses), parameters

    def build_select_query(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> Tuple[str, List[Any]]:
        """
        Build a parameterized single-table SELECT.

        Args:
            table: Allow-listed table name
            columns: Columns to select (all allow-listed columns when None)
            filters: (column, operator, value) triples joined with AND
            order_by: Column to order by
            descending: Sort direction
            limit: Maximum row count

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)

        Example:
            >>> builder.build_select_query("workers", filters=[("factory_id", "=", fid), ("is_active", "=", True)],
            ...                            order_by="full_name")
        """
        table = self.validate_table(table)
        selected = [self.validate_column(table, c) for c in (columns or TABLE_COLUMNS[table])]
        alias = "t"
        select_list = ", ".join(f"{alias}.{c}" for c in selected)
        where, parameters = self._build_where(table, alias, filters)

        query = f"SELECT {select_list} FROM {table} {alias}{where}"
        query += self._order_and_limit(table, alias, order_by, descending, limit, parameters)

        logger.debug(f"Built select on {table} with {len(parameters)} parameters")
        return query + ";", parameters

    def _order_and_limit(
        self,
        table: str,
        alias: str,
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
        parameters: List[Any]
    ) -> str:
        suffix = ""
        if order_by:
            column = self.validate_column(table, order_by)
            suffix += f" ORDER BY {alias}.{column} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            if int(limit) < 0:
                raise ValueError("limit must not be negative")
            suffix += " LIMIT %s"
            parameters.append(int(limit))
        return suffix

    def build_defect_records_query(
        self,
        factory_id: str,
        station_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        rework_only: bool = True
    ) -> Tuple[str, List[Any]]:
        """
        QC records with their module's building category and station name embedded.

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)
        """
        filters: List[Filter] = [("factory_id", "=", factory_id)]
        if rework_only:
            filters.append(("rework_required", "=", True))
        if station_id:
            filters.append(("station_id", "=", station_id))
        if start is not None:
            filters.append(("inspected_at", ">=", start))
        if end is not None:
            filters.append(("inspected_at", "<=", end))

        where, parameters = self._build_where("qc_records", "q", filters)
        query = f"""
            SELECT
                q.id, q.module_id, q.station_id, q.inspected_at, q.rework_required,
                q.rework_completed_at, q.passed, q.defects_found, q.notes,
                m.serial_number AS module_serial,
                m.building_category,
                s.name AS station_name
            FROM qc_records q
            LEFT JOIN modules m ON m.id = q.module_id
            LEFT JOIN station_templates s ON s.id = q.station_id
            {where.strip()}
            ORDER BY q.inspected_at DESC;
        """
        return query, parameters

    def build_modules_with_station_query(
        self,
        factory_id: str,
        statuses: Sequence[str]
    ) -> Tuple[str, List[Any]]:
        """Modules in the given statuses with their current station's line order embedded."""
        where, parameters = self._build_where(
            "modules", "m", [("factory_id", "=", factory_id), ("status", "in", list(statuses))]
        )
        query = f"""
            SELECT
                m.id, m.serial_number, m.name, m.project_id, m.status,
                m.current_station_id, m.actual_end,
                s.order_num AS current_station_order
            FROM modules m
            LEFT JOIN station_templates s ON s.id = m.current_station_id
            {where.strip()}
            ORDER BY m.serial_number ASC;
        """
        return query, parameters

    def build_work_items_query(
        self,
        kind: str,
        project_ids: Optional[Sequence[str]] = None
    ) -> Tuple[str, List[Any]]:
        """
        Tasks, RFIs or submittals with the parent project's name and number embedded.

        Args:
            kind: 'task', 'rfi' or 'submittal'
            project_ids: Restrict to these projects (all when None)
        """
        if kind not in WORK_ITEM_TABLES:
            raise ValueError(
                f"Unknown work item kind: '{kind}'. "
                f"Valid options: {', '.join(WORK_ITEM_TABLES)}"
            )
        table, title_column = WORK_ITEM_TABLES[kind]
        filters: List[Filter] = []
        if project_ids is not None:
            filters.append(("project_id", "in", list(project_ids)))
        where, parameters = self._build_where(table, "w", filters)

        assignee = "w.assignee_id" if "assignee_id" in TABLE_COLUMNS[table] else "NULL"
        query = f"""
            SELECT
                w.id, w.project_id, w.status, w.due_date,
                w.{title_column} AS title,
                {assignee} AS assignee_id,
                w.internal_owner_id,
                p.name AS project_name,
                p.project_number
            FROM {table} w
            LEFT JOIN projects p ON p.id = w.project_id
            {where.strip()}
            ORDER BY w.due_date ASC NULLS LAST;
        """
        return query, parameters

    def build_kaizen_leaderboard_query(self, factory_id: str) -> Tuple[str, List[Any]]:
        """Approved, non-anonymous suggestions with the submitter's name embedded."""
        where, parameters = self._build_where("kaizen_suggestions", "k", [
            ("factory_id", "=", factory_id),
            ("status", "=", "Approved"),
            ("is_anonymous", "=", False),
        ])
        query = f"""
            SELECT
                k.id, k.worker_id, k.user_id, k.status, k.is_anonymous,
                COALESCE(w.full_name, u.full_name) AS submitter_name
            FROM kaizen_suggestions k
            LEFT JOIN workers w ON w.id = k.worker_id
            LEFT JOIN users u ON u.id = k.user_id
            {where.strip()};
        """
        return query, parameters


# Global instance for convenience
secure_query_builder = SecureQueryBuilder()
