"""
Project Health Scoring

Scores individual projects from their overdue work items and delivery-date
proximity, and rolls the results up into a portfolio summary:
- Overdue tasks, RFIs and submittals per project
- Days until delivery (may be negative)
- Upcoming deadlines and deliveries
- On-time delivery rate and per-factory breakdown
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from core.calculations.thresholds import CRITICAL_DEADLINE_DAYS, HealthState, classify
from core.models.records import Project, ProjectStatus, WorkItem, WorkItemKind
from core.time_windows.models import days_until
from utils.formatting import resolve_now, round_half_up

logger = logging.getLogger(__name__)

UPCOMING_DEADLINE_DAYS = 7
UPCOMING_DEADLINE_LIMIT = 10
UPCOMING_DELIVERY_DAYS = 60
UPCOMING_DELIVERY_LIMIT = 8


@dataclass
class HealthAssessment:
    project_id: str
    project_name: str
    overdue_tasks: int
    overdue_rfis: int
    overdue_submittals: int
    total_overdue: int
    days_until_deadline: Optional[int]
    health: HealthState

    @property
    def is_delivery_critical(self) -> bool:
        """Delivery is today or within the critical window, regardless of overdue items."""
        return self.days_until_deadline is not None and 0 <= self.days_until_deadline <= CRITICAL_DEADLINE_DAYS

    def to_dict(self) -> Dict:
        result = asdict(self)
        result["health"] = self.health.value
        result["is_delivery_critical"] = self.is_delivery_critical
        return result


@dataclass
class PortfolioHealth:
    """Roll-up of project health across the active portfolio."""
    assessments: List[HealthAssessment] = field(default_factory=list)
    health_counts: Dict[str, int] = field(default_factory=dict)
    total_overdue: int = 0
    critical_projects: List[HealthAssessment] = field(default_factory=list)
    upcoming_deadlines: List[Dict] = field(default_factory=list)
    upcoming_deliveries: List[Dict] = field(default_factory=list)
    on_time_rate: int = 100
    factory_breakdown: Dict[str, Dict] = field(default_factory=dict)

    @property
    def active_projects(self) -> int:
        return len(self.assessments)

    def to_dict(self) -> Dict:
        return {
            "active_projects": self.active_projects,
            "assessments": [a.to_dict() for a in self.assessments],
            "health_counts": dict(self.health_counts),
            "total_overdue": self.total_overdue,
            "critical_projects": [a.to_dict() for a in self.critical_projects],
            "upcoming_deadlines": list(self.upcoming_deadlines),
            "upcoming_deliveries": list(self.upcoming_deliveries),
            "on_time_rate": self.on_time_rate,
            "factory_breakdown": {k: dict(v) for k, v in self.factory_breakdown.items()},
        }


def count_overdue(work_items: Iterable[WorkItem], today) -> Dict[WorkItemKind, int]:
    """Overdue count per work-item kind."""
    counts = {kind: 0 for kind in WorkItemKind}
    for item in work_items:
        if item.is_overdue(today):
            counts[item.kind] += 1
    return counts


def assess_project_health(
    project: Project,
    work_items: Iterable[WorkItem],
    now: Optional[datetime] = None
) -> HealthAssessment:
    """
    Score a single project.

    Only work items whose ``project_id`` matches the project are counted, so
    callers may pass the portfolio-wide item list.

    Args:
        project: Project snapshot
        work_items: Tasks, RFIs and submittals
        now: Injected current time (plant timezone when naive)

    Returns:
        HealthAssessment
    """
    now = resolve_now(now)
    today = now.date()

    own_items = [item for item in work_items if item.project_id == project.id]
    counts = count_overdue(own_items, today)
    total_overdue = sum(counts.values())
    days = days_until(project.delivery_date, now, now.tzinfo)

    return HealthAssessment(
        project_id=project.id,
        project_name=project.name,
        overdue_tasks=counts[WorkItemKind.TASK],
        overdue_rfis=counts[WorkItemKind.RFI],
        overdue_submittals=counts[WorkItemKind.SUBMITTAL],
        total_overdue=total_overdue,
        days_until_deadline=days,
        health=classify(total_overdue, days),
    )


def calculate_on_time_rate(projects: Iterable[Project]) -> int:
    """
    Percentage of completed projects delivered on or before their delivery date.

    Returns 100 when no completed project has both dates.
    """
    delivered = [
        p for p in projects
        if p.status == ProjectStatus.COMPLETED.value
        and p.delivery_date is not None
        and p.actual_completion_date is not None
    ]
    if not delivered:
        return 100
    on_time = sum(1 for p in delivered if p.actual_completion_date <= p.delivery_date)
    return round_half_up(on_time / len(delivered) * 100)


def find_upcoming_deadlines(
    work_items: Iterable[WorkItem],
    projects_by_id: Dict[str, Project],
    now: datetime,
    window_days: int = UPCOMING_DEADLINE_DAYS,
    limit: int = UPCOMING_DEADLINE_LIMIT
) -> List[Dict]:
    """Open work items due within ``window_days`` (today included), soonest first."""
    upcoming = []
    for item in work_items:
        if item.is_terminal:
            continue
        days = days_until(item.due_date, now, now.tzinfo)
        if days is None or not (0 <= days <= window_days):
            continue
        project = projects_by_id.get(item.project_id)
        upcoming.append({
            "id": item.id,
            "kind": item.kind.value,
            "title": item.title,
            "due_date": item.due_date.isoformat(),
            "days_until": days,
            "project_id": item.project_id,
            "project_name": project.name if project else None,
        })
    upcoming.sort(key=lambda entry: (entry["due_date"], entry["kind"], entry["id"]))
    return upcoming[:limit]


def find_upcoming_deliveries(
    projects: Iterable[Project],
    now: datetime,
    window_days: int = UPCOMING_DELIVERY_DAYS,
    limit: int = UPCOMING_DELIVERY_LIMIT
) -> List[Dict]:
    """Active projects delivering within ``window_days``, soonest first."""
    upcoming = []
    for project in projects:
        if not project.is_active:
            continue
        days = days_until(project.delivery_date, now, now.tzinfo)
        if days is None or not (0 <= days <= window_days):
            continue
        upcoming.append({
            "project_id": project.id,
            "project_name": project.name,
            "project_number": project.project_number,
            "factory": project.factory,
            "delivery_date": project.delivery_date.isoformat(),
            "days_until": days,
        })
    upcoming.sort(key=lambda entry: (entry["days_until"], entry["project_id"]))
    return upcoming[:limit]


def summarize_portfolio(
    projects: Iterable[Project],
    work_items: Iterable[WorkItem],
    now: Optional[datetime] = None
) -> PortfolioHealth:
    """
    Build the portfolio health roll-up.

    Active projects (Planning, Pre-PM, PM Handoff, In Progress) are scored;
    completed projects only feed the on-time rate and factory breakdown.
    """
    now = resolve_now(now)
    projects = list(projects)
    work_items = list(work_items)
    projects_by_id = {p.id: p for p in projects}

    items_by_project: Dict[str, List[WorkItem]] = {}
    for item in work_items:
        items_by_project.setdefault(item.project_id, []).append(item)

    active = [p for p in projects if p.is_active]
    assessments = [
        assess_project_health(p, items_by_project.get(p.id, []), now)
        for p in active
    ]

    state_counts = Counter(a.health for a in assessments)
    health_counts = {state.value: state_counts.get(state, 0) for state in HealthState}

    factory_breakdown: Dict[str, Dict] = {}
    assessment_by_id = {a.project_id: a for a in assessments}
    for project in projects:
        factory = project.factory or "Unassigned"
        entry = factory_breakdown.setdefault(factory, {
            "active": 0,
            "completed": 0,
            "active_value": 0.0,
            "not_on_track": 0,
        })
        if project.is_active:
            entry["active"] += 1
            entry["active_value"] += project.contract_value
            if assessment_by_id[project.id].health != HealthState.ON_TRACK:
                entry["not_on_track"] += 1
        elif project.status == ProjectStatus.COMPLETED.value:
            entry["completed"] += 1

    summary = PortfolioHealth(
        assessments=assessments,
        health_counts=health_counts,
        total_overdue=sum(a.total_overdue for a in assessments),
        critical_projects=[a for a in assessments if a.health == HealthState.CRITICAL],
        upcoming_deadlines=find_upcoming_deadlines(work_items, projects_by_id, now),
        upcoming_deliveries=find_upcoming_deliveries(active, now),
        on_time_rate=calculate_on_time_rate(projects),
        factory_breakdown=factory_breakdown,
    )
    logger.debug(
        f"Portfolio health: {summary.active_projects} active, "
        f"{health_counts[HealthState.CRITICAL.value]} critical, {summary.total_overdue} overdue items"
    )
    return summary
