"""
Record Snapshot Models

Immutable snapshots of the rows the scoring functions consume. Every model
has a ``from_record`` constructor that accepts a store row (dict or pandas
row) and substitutes safe defaults for missing or malformed fields, so one bad
row never stops a whole dashboard from scoring.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple, Type, TypeVar

import pandas as pd

from utils.formatting import (
    is_missing,
    parse_date,
    parse_datetime,
    to_bool,
    to_float,
    to_text,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")


# ============================================================
# STATUS VOCABULARY
# ============================================================

class ProjectStatus(str, Enum):
    PLANNING = "Planning"
    PRE_PM = "Pre-PM"
    PM_HANDOFF = "PM Handoff"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    WARRANTY = "Warranty"


ACTIVE_PROJECT_STATUSES = frozenset({
    ProjectStatus.PLANNING.value,
    ProjectStatus.PRE_PM.value,
    ProjectStatus.PM_HANDOFF.value,
    ProjectStatus.IN_PROGRESS.value,
})


class WorkItemKind(str, Enum):
    TASK = "task"
    RFI = "rfi"
    SUBMITTAL = "submittal"


# Statuses after which a work item can no longer be overdue
TERMINAL_WORK_ITEM_STATUSES = {
    WorkItemKind.TASK: frozenset({"Completed", "Cancelled"}),
    WorkItemKind.RFI: frozenset({"Answered", "Closed"}),
    WorkItemKind.SUBMITTAL: frozenset({"Rejected"}),
}

# "Approved", "Approved as Noted", "Approved with Comments", ...
APPROVED_FAMILY_PREFIX = "Approved"


class ModuleStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_QUEUE = "In Queue"
    IN_PROGRESS = "In Progress"
    QC_HOLD = "QC Hold"
    REWORK = "Rework"
    COMPLETED = "Completed"
    STAGED = "Staged"
    SHIPPED = "Shipped"


class ProficiencyLevel(str, Enum):
    BASIC = "Basic"
    INTERMEDIATE = "Intermediate"
    EXPERT = "Expert"


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    NEGOTIATING = "negotiating"
    AWAITING_PO = "awaiting_po"
    PO_RECEIVED = "po_received"
    WON = "won"
    LOST = "lost"
    EXPIRED = "expired"
    CONVERTED = "converted"


def _get(row: Mapping[str, Any], *keys: str) -> Any:
    """First non-missing value among ``keys``."""
    for key in keys:
        value = row.get(key)
        if not is_missing(value):
            return value
    return None


def _id(value: Any) -> Optional[str]:
    return None if is_missing(value) else str(value)


def _id_tuple(value: Any) -> Tuple[str, ...]:
    """Normalize a store array column (list, tuple, ``{a,b}`` literal) to a tuple of ids."""
    if value is None:
        return ()
    if isinstance(value, str):
        stripped = value.strip().strip("{}")
        return tuple(part.strip().strip('"') for part in stripped.split(",") if part.strip())
    if isinstance(value, (list, tuple, set)):
        return tuple(str(v) for v in value if not is_missing(v))
    return ()


# ============================================================
# PROJECT MANAGEMENT RECORDS
# ============================================================

@dataclass(frozen=True)
class Project:
    id: str
    name: str = ""
    project_number: Optional[str] = None
    status: str = ProjectStatus.PLANNING.value
    delivery_date: Optional[date] = None
    actual_completion_date: Optional[date] = None
    contract_value: float = 0.0
    factory: Optional[str] = None
    client_name: Optional[str] = None
    owner_id: Optional[str] = None
    primary_pm_id: Optional[str] = None
    backup_pm_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_PROJECT_STATUSES

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Project":
        return cls(
            id=str(row.get("id")),
            name=to_text(row.get("name"), ""),
            project_number=to_text(row.get("project_number")),
            status=to_text(row.get("status"), ProjectStatus.PLANNING.value),
            delivery_date=parse_date(row.get("delivery_date")),
            actual_completion_date=parse_date(row.get("actual_completion_date")),
            contract_value=to_float(row.get("contract_value")),
            factory=to_text(row.get("factory")),
            client_name=to_text(row.get("client_name")),
            owner_id=_id(row.get("owner_id")),
            primary_pm_id=_id(row.get("primary_pm_id")),
            backup_pm_id=_id(row.get("backup_pm_id")),
        )


@dataclass(frozen=True)
class WorkItem:
    """A task, RFI or submittal attached to a project."""
    id: str
    kind: WorkItemKind
    project_id: Optional[str] = None
    status: str = ""
    due_date: Optional[date] = None
    title: str = ""
    assignee_id: Optional[str] = None
    internal_owner_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        if self.kind == WorkItemKind.SUBMITTAL and self.status.startswith(APPROVED_FAMILY_PREFIX):
            return True
        return self.status in TERMINAL_WORK_ITEM_STATUSES[self.kind]

    @property
    def is_open(self) -> bool:
        return not self.is_terminal

    def is_overdue(self, today: date) -> bool:
        """Open, has a due date, and that date is strictly before ``today``."""
        return self.due_date is not None and self.due_date < today and self.is_open

    @classmethod
    def from_record(cls, row: Mapping[str, Any], kind: Optional[WorkItemKind] = None) -> "WorkItem":
        kind = WorkItemKind(kind or row.get("kind") or WorkItemKind.TASK)
        return cls(
            id=str(row.get("id")),
            kind=kind,
            project_id=_id(row.get("project_id")),
            status=to_text(row.get("status"), ""),
            due_date=parse_date(row.get("due_date")),
            title=to_text(_get(row, "title", "subject", "name"), ""),
            assignee_id=_id(row.get("assignee_id")),
            internal_owner_id=_id(row.get("internal_owner_id")),
        )


@dataclass(frozen=True)
class TeamMember:
    id: str
    full_name: str = ""
    role: str = ""

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "TeamMember":
        return cls(
            id=str(row.get("id")),
            full_name=to_text(_get(row, "full_name", "name"), ""),
            role=to_text(row.get("role"), ""),
        )


# ============================================================
# FACTORY FLOOR RECORDS
# ============================================================

@dataclass(frozen=True)
class Station:
    id: str
    name: str = ""
    code: str = ""
    order_num: int = 99
    color: Optional[str] = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Station":
        order = to_float(row.get("order_num"), None)
        return cls(
            id=str(row.get("id")),
            name=to_text(row.get("name"), ""),
            code=to_text(row.get("code"), ""),
            order_num=int(order) if order is not None else 99,
            color=to_text(row.get("color")),
        )


@dataclass(frozen=True)
class Worker:
    id: str
    full_name: str = ""
    employee_id: Optional[str] = None
    primary_station_id: Optional[str] = None
    is_active: bool = True
    is_lead: bool = False
    factory_id: Optional[str] = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Worker":
        return cls(
            id=str(row.get("id")),
            full_name=to_text(row.get("full_name"), ""),
            employee_id=to_text(row.get("employee_id")),
            primary_station_id=_id(row.get("primary_station_id")),
            is_active=to_bool(row.get("is_active"), True),
            is_lead=to_bool(row.get("is_lead"), False),
            factory_id=_id(row.get("factory_id")),
        )


@dataclass(frozen=True)
class ShiftRecord:
    id: str
    worker_id: Optional[str] = None
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    total_hours: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.clock_out is None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "ShiftRecord":
        return cls(
            id=str(row.get("id")),
            worker_id=_id(row.get("worker_id")),
            clock_in=parse_datetime(row.get("clock_in")),
            clock_out=parse_datetime(row.get("clock_out")),
            total_hours=to_float(row.get("total_hours"), None),
        )


@dataclass(frozen=True)
class StationAssignment:
    id: str
    station_id: Optional[str] = None
    module_id: Optional[str] = None
    lead_id: Optional[str] = None
    crew_ids: Tuple[str, ...] = ()
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def involves(self, worker_id: str) -> bool:
        return self.lead_id == worker_id or worker_id in self.crew_ids

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "StationAssignment":
        return cls(
            id=str(row.get("id")),
            station_id=_id(row.get("station_id")),
            module_id=_id(row.get("module_id")),
            lead_id=_id(row.get("lead_id")),
            crew_ids=_id_tuple(row.get("crew_ids")),
            start_time=parse_datetime(row.get("start_time")),
            end_time=parse_datetime(row.get("end_time")),
        )


@dataclass(frozen=True)
class TaktEvent:
    id: str
    module_id: Optional[str] = None
    station_id: Optional[str] = None
    expected_hours: float = 0.0
    actual_hours: Optional[float] = None
    started_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "TaktEvent":
        return cls(
            id=str(row.get("id")),
            module_id=_id(row.get("module_id")),
            station_id=_id(row.get("station_id")),
            expected_hours=to_float(row.get("expected_hours")),
            actual_hours=to_float(row.get("actual_hours"), None),
            started_at=parse_datetime(row.get("started_at")),
        )


@dataclass(frozen=True)
class QCRecord:
    """A QC inspection; doubles as a defect record when rework was required."""
    id: str
    module_id: Optional[str] = None
    station_id: Optional[str] = None
    station_name: Optional[str] = None
    inspected_at: Optional[datetime] = None
    rework_required: bool = False
    rework_completed_at: Optional[datetime] = None
    passed: bool = False
    building_category: Optional[str] = None
    defects: Tuple[Any, ...] = ()
    notes: Optional[str] = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "QCRecord":
        defects = row.get("defects_found")
        return cls(
            id=str(row.get("id")),
            module_id=_id(row.get("module_id")),
            station_id=_id(row.get("station_id")),
            station_name=to_text(row.get("station_name")),
            inspected_at=parse_datetime(row.get("inspected_at")),
            rework_required=to_bool(row.get("rework_required")),
            rework_completed_at=parse_datetime(row.get("rework_completed_at")),
            passed=to_bool(row.get("passed")),
            building_category=to_text(_get(row, "building_category", "module_building_category")),
            defects=tuple(defects) if isinstance(defects, (list, tuple)) else (),
            notes=to_text(row.get("notes")),
        )


@dataclass(frozen=True)
class CertificationRecord:
    worker_id: str
    station_id: str
    proficiency_level: str = ProficiencyLevel.BASIC.value
    certified_at: Optional[date] = None
    expires_at: Optional[date] = None
    is_active: bool = True
    avg_completion_hours: Optional[float] = None
    rework_rate: Optional[float] = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "CertificationRecord":
        return cls(
            worker_id=str(row.get("worker_id")),
            station_id=str(row.get("station_id")),
            proficiency_level=to_text(row.get("proficiency_level"), ProficiencyLevel.BASIC.value),
            certified_at=parse_date(row.get("certified_at")),
            expires_at=parse_date(row.get("expires_at")),
            is_active=to_bool(row.get("is_active"), True),
            avg_completion_hours=to_float(row.get("avg_completion_hours"), None),
            rework_rate=to_float(row.get("rework_rate"), None),
        )


@dataclass(frozen=True)
class Module:
    id: str
    serial_number: str = ""
    name: Optional[str] = None
    project_id: Optional[str] = None
    status: str = ModuleStatus.NOT_STARTED.value
    current_station_id: Optional[str] = None
    current_station_order: Optional[int] = None
    actual_end: Optional[datetime] = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Module":
        order = to_float(row.get("current_station_order"), None)
        return cls(
            id=str(row.get("id")),
            serial_number=to_text(row.get("serial_number"), ""),
            name=to_text(row.get("name")),
            project_id=_id(row.get("project_id")),
            status=to_text(row.get("status"), ModuleStatus.NOT_STARTED.value),
            current_station_id=_id(row.get("current_station_id")),
            current_station_order=int(order) if order is not None else None,
            actual_end=parse_datetime(row.get("actual_end")),
        )


@dataclass(frozen=True)
class KaizenSuggestion:
    id: str
    worker_id: Optional[str] = None
    user_id: Optional[str] = None
    submitter_name: Optional[str] = None
    status: str = "Submitted"
    is_anonymous: bool = False

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "KaizenSuggestion":
        return cls(
            id=str(row.get("id")),
            worker_id=_id(row.get("worker_id")),
            user_id=_id(row.get("user_id")),
            submitter_name=to_text(_get(row, "worker_name", "user_name", "submitter_name")),
            status=to_text(row.get("status"), "Submitted"),
            is_anonymous=to_bool(row.get("is_anonymous")),
        )


# ============================================================
# SALES RECORDS
# ============================================================

@dataclass(frozen=True)
class SalesQuote:
    id: str
    quote_number: Optional[str] = None
    project_name: Optional[str] = None
    status: str = QuoteStatus.DRAFT.value
    total_price: float = 0.0
    outlook_percentage: Optional[float] = None
    expected_close_timeframe: Optional[str] = None
    expected_close_date: Optional[date] = None
    pm_flagged: bool = False
    converted_at: Optional[datetime] = None
    converted_to_project_id: Optional[str] = None
    created_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    building_type: Optional[str] = None
    factory: Optional[str] = None
    is_latest_version: bool = True

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "SalesQuote":
        return cls(
            id=str(row.get("id")),
            quote_number=to_text(row.get("quote_number")),
            project_name=to_text(row.get("project_name")),
            status=to_text(row.get("status"), QuoteStatus.DRAFT.value).lower(),
            total_price=to_float(row.get("total_price")),
            outlook_percentage=to_float(row.get("outlook_percentage"), None),
            expected_close_timeframe=to_text(row.get("expected_close_timeframe")),
            expected_close_date=parse_date(row.get("expected_close_date")),
            pm_flagged=to_bool(row.get("pm_flagged")),
            converted_at=parse_datetime(row.get("converted_at")),
            converted_to_project_id=_id(row.get("converted_to_project_id")),
            created_at=parse_datetime(row.get("created_at")),
            assigned_to=_id(row.get("assigned_to")),
            building_type=to_text(row.get("building_type")),
            factory=to_text(_get(row, "factory", "praxis_source_factory")),
            is_latest_version=to_bool(row.get("is_latest_version"), True),
        )


# ============================================================
# CONVERSION HELPERS
# ============================================================

def records_from_rows(rows, model: Type[R], **kwargs) -> List[R]:
    """Build snapshots from an iterable of mappings, skipping rows without an id."""
    records = []
    for row in rows:
        try:
            records.append(model.from_record(row, **kwargs))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed {model.__name__} row {row.get('id')!r}: {e}")
    return records


def records_from_dataframe(df: pd.DataFrame, model: Type[R], **kwargs) -> List[R]:
    """
    Convert a fetched DataFrame into immutable snapshots.

    NaN/NaT cells are treated as missing values.

    Example:
        >>> workers = records_from_dataframe(fetch_workers(factory_id), Worker)
    """
    if df is None or df.empty:
        return []
    rows = df.astype(object).where(pd.notna(df), None).to_dict("records")
    return records_from_rows(rows, model, **kwargs)
