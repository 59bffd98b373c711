"""
test_capacity.py - Unit tests for the PM capacity heuristic.

Tests cover:
  - calculate_capacity_score: default and overridden weights, clamping
  - capacity_label boundaries
  - score_member_capacity: owned/primary/backup projects, task ownership,
    RFIs and submittals on the member's projects
  - score_team_capacity: role filter, sort keys, unknown sort key
"""

from datetime import date, timedelta

import pytest
from hypothesis import given, strategies as st

from core.calculations.capacity import (
    CapacityWeights,
    calculate_capacity_score,
    capacity_label,
    score_member_capacity,
    score_team_capacity,
)
from core.models.records import Project, TeamMember, WorkItem, WorkItemKind

DEFAULT_WEIGHTS = CapacityWeights()
TODAY = date(2024, 3, 13)
PAST = TODAY - timedelta(days=4)


class TestCapacityScore:

    def test_three_projects_ten_tasks_two_overdue(self):
        score = calculate_capacity_score(3, 10, 2, DEFAULT_WEIGHTS)
        assert score == 15
        assert capacity_label(score) == "Overloaded"

    def test_idle_member_scores_100(self):
        assert calculate_capacity_score(0, 0, 0, DEFAULT_WEIGHTS) == 100

    def test_score_is_clamped_at_zero(self):
        assert calculate_capacity_score(10, 40, 5, DEFAULT_WEIGHTS) == 0

    def test_custom_weights(self):
        weights = CapacityWeights(project_weight=10, task_weight=1, overdue_weight=5)
        assert calculate_capacity_score(3, 10, 2, weights) == 50

    @pytest.mark.parametrize("score,label", [
        (100, "Available"),
        (60, "Available"),
        (59, "Busy"),
        (30, "Busy"),
        (29, "Overloaded"),
        (0, "Overloaded"),
    ])
    def test_labels(self, score, label):
        assert capacity_label(score) == label

    @given(
        projects=st.integers(min_value=0, max_value=50),
        tasks=st.integers(min_value=0, max_value=500),
        overdue=st.integers(min_value=0, max_value=200),
    )
    def test_score_always_within_bounds(self, projects, tasks, overdue):
        assert 0 <= calculate_capacity_score(projects, tasks, overdue, DEFAULT_WEIGHTS) <= 100

    @given(
        projects=st.integers(min_value=0, max_value=20),
        tasks=st.integers(min_value=0, max_value=100),
        overdue=st.integers(min_value=0, max_value=50),
    )
    def test_more_work_never_raises_score(self, projects, tasks, overdue):
        base = calculate_capacity_score(projects, tasks, overdue, DEFAULT_WEIGHTS)
        assert calculate_capacity_score(projects + 1, tasks, overdue, DEFAULT_WEIGHTS) <= base
        assert calculate_capacity_score(projects, tasks + 1, overdue, DEFAULT_WEIGHTS) <= base
        assert calculate_capacity_score(projects, tasks, overdue + 1, DEFAULT_WEIGHTS) <= base


@pytest.fixture
def team():
    members = [
        TeamMember(id="pm1", full_name="Dana Diaz", role="PM"),
        TeamMember(id="pm2", full_name="Avery Ash", role="Director"),
        TeamMember(id="pm3", full_name="Blake Bell", role="Project Manager"),
        TeamMember(id="rep", full_name="Sam Sales", role="Sales_Rep"),
    ]
    projects = [
        Project(id="p1", status="In Progress", owner_id="pm1"),
        Project(id="p2", status="Completed", primary_pm_id="pm1"),
        Project(id="p3", status="Planning", primary_pm_id="pm2", backup_pm_id="pm1"),
        Project(id="p4", status="PM Handoff", primary_pm_id="pm3"),
    ]
    items = [
        WorkItem(id="t1", kind=WorkItemKind.TASK, project_id="p1", status="In Progress",
                 due_date=PAST, assignee_id="pm1"),
        WorkItem(id="t2", kind=WorkItemKind.TASK, project_id="p1", status="Completed",
                 due_date=PAST, internal_owner_id="pm1"),
        WorkItem(id="t3", kind=WorkItemKind.TASK, project_id="p3", status="Awaiting Response",
                 internal_owner_id="pm1"),
        WorkItem(id="t4", kind=WorkItemKind.TASK, project_id="p4", status="Open", assignee_id="pm3"),
        WorkItem(id="r1", kind=WorkItemKind.RFI, project_id="p2", status="Open", due_date=PAST),
        WorkItem(id="s1", kind=WorkItemKind.SUBMITTAL, project_id="p1", status="Approved as Noted",
                 due_date=PAST),
        WorkItem(id="s2", kind=WorkItemKind.SUBMITTAL, project_id="p3", status="Submitted",
                 due_date=TODAY + timedelta(days=3)),
    ]
    return members, projects, items


class TestScoreMemberCapacity:

    def test_counts_with_backup_projects(self, now, team):
        members, projects, items = team
        score = score_member_capacity(members[0], projects, items, now, True, DEFAULT_WEIGHTS)

        assert score.total_projects == 3
        assert score.active_projects == 2
        assert score.open_tasks == 2
        assert score.in_progress_tasks == 1
        assert score.awaiting_tasks == 1
        assert score.overdue_tasks == 1
        # RFIs count on every owned project, completed ones included
        assert score.overdue_rfis == 1
        assert score.open_submittals == 1
        assert score.overdue_submittals == 0
        assert score.total_overdue == 2
        # 100 - 2*15 - 2*2 - 2*10
        assert score.score == 46
        assert score.label == "Busy"

    def test_backup_projects_can_be_excluded(self, now, team):
        members, projects, items = team
        score = score_member_capacity(members[0], projects, items, now, False, DEFAULT_WEIGHTS)
        assert score.total_projects == 2
        assert score.active_projects == 1
        assert score.open_submittals == 0


class TestScoreTeamCapacity:

    def test_only_pm_roles_are_scored(self, now, team):
        scores = score_team_capacity(*team, now=now, weights=DEFAULT_WEIGHTS)
        assert {s.member_id for s in scores} == {"pm1", "pm2", "pm3"}

    def test_sorted_by_active_projects_then_name(self, now, team):
        scores = score_team_capacity(*team, now=now, weights=DEFAULT_WEIGHTS, sort_by="projects")
        assert [s.member_id for s in scores] == ["pm1", "pm2", "pm3"]

    def test_sorted_by_open_tasks(self, now, team):
        scores = score_team_capacity(*team, now=now, weights=DEFAULT_WEIGHTS, sort_by="tasks")
        assert [s.member_id for s in scores] == ["pm1", "pm3", "pm2"]

    def test_sorted_by_overdue(self, now, team):
        scores = score_team_capacity(*team, now=now, weights=DEFAULT_WEIGHTS, sort_by="overdue")
        assert scores[0].member_id == "pm1"

    def test_unknown_sort_key_raises(self, now, team):
        with pytest.raises(ValueError, match="Unknown sort key"):
            score_team_capacity(*team, now=now, weights=DEFAULT_WEIGHTS, sort_by="happiness")

    def test_same_inputs_give_same_scores(self, now, team):
        first = [s.to_dict() for s in score_team_capacity(*team, now=now, weights=DEFAULT_WEIGHTS)]
        second = [s.to_dict() for s in score_team_capacity(*team, now=now, weights=DEFAULT_WEIGHTS)]
        assert first == second
