"""
PM Capacity Scoring

A linear penalty heuristic estimating how much bandwidth a project manager
has left:

    score = clamp(100 − projects × 15 − open_tasks × 2 − overdue × 10, 0, 100)

The weights are hand-tuned, not calibrated, and can be overridden through
configuration (CAPACITY_*_WEIGHT).
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import numpy as np

from core.models.records import Project, TeamMember, WorkItem, WorkItemKind
from utils.config import get_capacity_weights
from utils.formatting import resolve_now, round_half_up

logger = logging.getLogger(__name__)

PM_ROLES = frozenset({"PM", "Director", "Project Manager", "Project_Manager"})

AVAILABLE_SCORE = 60
BUSY_SCORE = 30

TASK_IN_PROGRESS = "In Progress"
TASK_AWAITING = "Awaiting Response"

SORT_KEYS = {
    "projects": "active_projects",
    "tasks": "open_tasks",
    "overdue": "total_overdue",
}


@dataclass(frozen=True)
class CapacityWeights:
    project_weight: float = 15
    task_weight: float = 2
    overdue_weight: float = 10

    @classmethod
    def from_config(cls) -> "CapacityWeights":
        return cls(**get_capacity_weights())


@dataclass
class CapacityScore:
    member_id: str
    full_name: str
    role: str
    total_projects: int
    active_projects: int
    open_tasks: int
    in_progress_tasks: int
    awaiting_tasks: int
    overdue_tasks: int
    open_rfis: int
    overdue_rfis: int
    open_submittals: int
    overdue_submittals: int
    total_overdue: int
    score: int
    label: str

    def to_dict(self) -> Dict:
        return asdict(self)


def capacity_label(score: float) -> str:
    if score >= AVAILABLE_SCORE:
        return "Available"
    if score >= BUSY_SCORE:
        return "Busy"
    return "Overloaded"


def calculate_capacity_score(
    project_count: int,
    task_count: int,
    overdue_count: int,
    weights: Optional[CapacityWeights] = None
) -> int:
    """
    Capacity score in [0, 100].

    Example:
        >>> calculate_capacity_score(3, 10, 2)
        15
    """
    weights = weights or CapacityWeights.from_config()
    raw = (
        100
        - project_count * weights.project_weight
        - task_count * weights.task_weight
        - overdue_count * weights.overdue_weight
    )
    return round_half_up(float(np.clip(raw, 0, 100)))


def _is_pm(member: TeamMember) -> bool:
    return member.role in PM_ROLES


def _member_projects(member_id: str, projects: List[Project], include_backup: bool) -> List[Project]:
    owned = []
    for project in projects:
        if project.owner_id == member_id or project.primary_pm_id == member_id:
            owned.append(project)
        elif include_backup and project.backup_pm_id == member_id:
            owned.append(project)
    return owned


def score_member_capacity(
    member: TeamMember,
    projects: Iterable[Project],
    work_items: Iterable[WorkItem],
    now: Optional[datetime] = None,
    include_backup: bool = True,
    weights: Optional[CapacityWeights] = None
) -> CapacityScore:
    """
    Score one team member.

    Tasks count when the member is assignee or internal owner. RFIs and
    submittals count when they belong to one of the member's projects.
    """
    now = resolve_now(now)
    today = now.date()
    projects = list(projects)
    work_items = list(work_items)

    own_projects = _member_projects(member.id, projects, include_backup)
    project_ids = {p.id for p in own_projects}
    active_projects = [p for p in own_projects if p.is_active]

    tasks = [
        item for item in work_items
        if item.kind == WorkItemKind.TASK
        and member.id in (item.assignee_id, item.internal_owner_id)
    ]
    open_tasks = [t for t in tasks if t.is_open]
    rfis = [i for i in work_items if i.kind == WorkItemKind.RFI and i.project_id in project_ids]
    submittals = [i for i in work_items if i.kind == WorkItemKind.SUBMITTAL and i.project_id in project_ids]

    overdue_tasks = sum(1 for t in tasks if t.is_overdue(today))
    overdue_rfis = sum(1 for r in rfis if r.is_overdue(today))
    overdue_submittals = sum(1 for s in submittals if s.is_overdue(today))
    total_overdue = overdue_tasks + overdue_rfis + overdue_submittals

    score = calculate_capacity_score(len(active_projects), len(open_tasks), total_overdue, weights)

    return CapacityScore(
        member_id=member.id,
        full_name=member.full_name,
        role=member.role,
        total_projects=len(own_projects),
        active_projects=len(active_projects),
        open_tasks=len(open_tasks),
        in_progress_tasks=sum(1 for t in open_tasks if t.status == TASK_IN_PROGRESS),
        awaiting_tasks=sum(1 for t in open_tasks if t.status == TASK_AWAITING),
        overdue_tasks=overdue_tasks,
        open_rfis=sum(1 for r in rfis if r.is_open),
        overdue_rfis=overdue_rfis,
        open_submittals=sum(1 for s in submittals if s.is_open),
        overdue_submittals=overdue_submittals,
        total_overdue=total_overdue,
        score=score,
        label=capacity_label(score),
    )


def score_team_capacity(
    members: Iterable[TeamMember],
    projects: Iterable[Project],
    work_items: Iterable[WorkItem],
    now: Optional[datetime] = None,
    include_backup: bool = True,
    weights: Optional[CapacityWeights] = None,
    sort_by: str = "projects"
) -> List[CapacityScore]:
    """
    Score every PM and Director on the team.

    Args:
        members: Team members; roles outside PM/Director are skipped
        projects: All projects
        work_items: Tasks, RFIs and submittals
        now: Injected current time
        include_backup: Count projects where the member is backup PM
        weights: Penalty weights, from configuration when None
        sort_by: 'projects', 'tasks' or 'overdue' (descending)

    Returns:
        List of CapacityScore

    Raises:
        ValueError: If sort_by is not recognized
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(
            f"Unknown sort key: '{sort_by}'. "
            f"Valid options: {', '.join(SORT_KEYS)}"
        )
    now = resolve_now(now)
    weights = weights or CapacityWeights.from_config()
    projects = list(projects)
    work_items = list(work_items)

    scores = [
        score_member_capacity(m, projects, work_items, now, include_backup, weights)
        for m in members
        if _is_pm(m)
    ]
    attr = SORT_KEYS[sort_by]
    scores.sort(key=lambda s: (-getattr(s, attr), s.full_name))
    logger.debug(f"Scored capacity for {len(scores)} PMs (include_backup={include_backup})")
    return scores
