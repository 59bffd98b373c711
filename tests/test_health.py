"""
test_health.py - Unit tests for project and portfolio health scoring.

Tests cover:
  - assess_project_health: overdue counting per kind, terminal statuses,
    deadline proximity, items from other projects
  - calculate_on_time_rate
  - summarize_portfolio: state counts, critical list, upcoming deadlines and
    deliveries, factory breakdown
"""

from datetime import date, timedelta

import pytest

from core.calculations.health import (
    assess_project_health,
    calculate_on_time_rate,
    find_upcoming_deadlines,
    summarize_portfolio,
)
from core.calculations.thresholds import HealthState
from core.models.records import Project, WorkItem, WorkItemKind

TODAY = date(2024, 3, 13)


def _project(pid, status="In Progress", delivery=None, **kwargs):
    return Project(id=pid, name=f"Project {pid}", status=status, delivery_date=delivery, **kwargs)


def _item(iid, kind, project_id, status="Open", due=None, title=""):
    return WorkItem(id=iid, kind=kind, project_id=project_id, status=status, due_date=due, title=title)


class TestAssessProjectHealth:

    def test_deadline_in_two_days_with_one_overdue_task_is_critical(self, now):
        project = _project("p1", delivery=TODAY + timedelta(days=2))
        items = [_item("t1", WorkItemKind.TASK, "p1", "Not Started", TODAY - timedelta(days=1))]

        result = assess_project_health(project, items, now)

        assert result.overdue_tasks == 1
        assert result.total_overdue == 1
        assert result.days_until_deadline == 2
        assert result.health == HealthState.CRITICAL
        assert result.is_delivery_critical

    def test_counts_each_kind_separately(self, now):
        project = _project("p1", delivery=TODAY + timedelta(days=30))
        past = TODAY - timedelta(days=3)
        items = [
            _item("t1", WorkItemKind.TASK, "p1", "In Progress", past),
            _item("r1", WorkItemKind.RFI, "p1", "Open", past),
            _item("r2", WorkItemKind.RFI, "p1", "Pending", past),
            _item("s1", WorkItemKind.SUBMITTAL, "p1", "Submitted", past),
        ]

        result = assess_project_health(project, items, now)

        assert (result.overdue_tasks, result.overdue_rfis, result.overdue_submittals) == (1, 2, 1)
        assert result.total_overdue == 4
        assert result.health == HealthState.CRITICAL

    def test_terminal_items_are_never_overdue(self, now):
        project = _project("p1", delivery=TODAY + timedelta(days=30))
        past = TODAY - timedelta(days=10)
        items = [
            _item("t1", WorkItemKind.TASK, "p1", "Completed", past),
            _item("t2", WorkItemKind.TASK, "p1", "Cancelled", past),
            _item("r1", WorkItemKind.RFI, "p1", "Answered", past),
            _item("r2", WorkItemKind.RFI, "p1", "Closed", past),
            _item("s1", WorkItemKind.SUBMITTAL, "p1", "Approved", past),
            _item("s2", WorkItemKind.SUBMITTAL, "p1", "Approved as Noted", past),
            _item("s3", WorkItemKind.SUBMITTAL, "p1", "Rejected", past),
        ]

        result = assess_project_health(project, items, now)

        assert result.total_overdue == 0
        assert result.health == HealthState.ON_TRACK

    def test_item_due_today_is_not_overdue(self, now):
        project = _project("p1")
        items = [_item("t1", WorkItemKind.TASK, "p1", "Open", TODAY)]
        assert assess_project_health(project, items, now).total_overdue == 0

    def test_items_of_other_projects_are_ignored(self, now):
        project = _project("p1")
        items = [_item("t1", WorkItemKind.TASK, "p2", "Open", TODAY - timedelta(days=5))]
        result = assess_project_health(project, items, now)
        assert result.total_overdue == 0
        assert result.health == HealthState.ON_TRACK

    def test_no_delivery_date_gives_no_days(self, now):
        result = assess_project_health(_project("p1"), [], now)
        assert result.days_until_deadline is None
        assert not result.is_delivery_critical

    def test_to_dict_serializes_health_value(self, now):
        result = assess_project_health(_project("p1", delivery=TODAY + timedelta(days=5)), [], now)
        data = result.to_dict()
        assert data["health"] == "at-risk"
        assert data["is_delivery_critical"] is False


class TestOnTimeRate:

    def test_no_completed_projects_is_100(self):
        assert calculate_on_time_rate([_project("p1")]) == 100

    def test_completed_without_dates_are_excluded(self):
        assert calculate_on_time_rate([_project("p1", status="Completed")]) == 100

    def test_two_of_three_on_time_rounds_to_67(self):
        due = date(2024, 1, 31)
        projects = [
            _project("p1", "Completed", due, actual_completion_date=due),
            _project("p2", "Completed", due, actual_completion_date=due - timedelta(days=3)),
            _project("p3", "Completed", due, actual_completion_date=due + timedelta(days=1)),
        ]
        assert calculate_on_time_rate(projects) == 67


class TestPortfolio:

    @pytest.fixture
    def portfolio_inputs(self):
        projects = [
            _project("p1", delivery=TODAY + timedelta(days=2), factory="PMI", contract_value=500_000.0),
            _project("p2", status="Planning", delivery=TODAY + timedelta(days=45), factory="PMI",
                     contract_value=250_000.0),
            _project("p3", status="Pre-PM", delivery=None, factory=None),
            _project("p4", status="Completed", delivery=date(2024, 2, 1), factory="PMI",
                     actual_completion_date=date(2024, 2, 5)),
            _project("p5", status="On Hold", delivery=TODAY + timedelta(days=1), factory="SMM"),
        ]
        items = [
            _item("t1", WorkItemKind.TASK, "p2", "Open", TODAY - timedelta(days=1), "Order windows"),
            _item("t2", WorkItemKind.TASK, "p2", "Open", TODAY + timedelta(days=3), "Sign drawings"),
            _item("r1", WorkItemKind.RFI, "p3", "Open", TODAY, "Roof pitch"),
            _item("s1", WorkItemKind.SUBMITTAL, "p1", "Approved", TODAY + timedelta(days=1), "Trusses"),
            _item("r2", WorkItemKind.RFI, "p4", "Open", TODAY + timedelta(days=6), "Closeout"),
        ]
        return projects, items

    def test_only_active_projects_are_assessed(self, now, portfolio_inputs):
        summary = summarize_portfolio(*portfolio_inputs, now=now)
        assert summary.active_projects == 3
        assert {a.project_id for a in summary.assessments} == {"p1", "p2", "p3"}

    def test_health_counts_cover_every_state(self, now, portfolio_inputs):
        summary = summarize_portfolio(*portfolio_inputs, now=now)
        assert summary.health_counts == {"on-track": 1, "at-risk": 1, "critical": 1}
        assert [a.project_id for a in summary.critical_projects] == ["p1"]
        assert summary.total_overdue == 1

    def test_on_time_rate_uses_completed_projects(self, now, portfolio_inputs):
        assert summarize_portfolio(*portfolio_inputs, now=now).on_time_rate == 0

    def test_upcoming_deadlines_are_open_items_soonest_first(self, now, portfolio_inputs):
        deadlines = summarize_portfolio(*portfolio_inputs, now=now).upcoming_deadlines
        assert [d["id"] for d in deadlines] == ["r1", "t2", "r2"]
        assert deadlines[0]["days_until"] == 0
        assert deadlines[1]["project_name"] == "Project p2"

    def test_upcoming_deliveries_are_active_projects_within_60_days(self, now, portfolio_inputs):
        deliveries = summarize_portfolio(*portfolio_inputs, now=now).upcoming_deliveries
        assert [d["project_id"] for d in deliveries] == ["p1", "p2"]

    def test_factory_breakdown(self, now, portfolio_inputs):
        breakdown = summarize_portfolio(*portfolio_inputs, now=now).factory_breakdown
        assert breakdown["PMI"] == {
            "active": 2,
            "completed": 1,
            "active_value": 750_000.0,
            "not_on_track": 2,
        }
        assert breakdown["Unassigned"]["active"] == 1
        assert breakdown["SMM"]["active"] == 0

    def test_empty_portfolio(self, now):
        summary = summarize_portfolio([], [], now)
        assert summary.active_projects == 0
        assert summary.health_counts == {"on-track": 0, "at-risk": 0, "critical": 0}
        assert summary.on_time_rate == 100

    def test_same_inputs_give_same_result(self, now, portfolio_inputs):
        first = summarize_portfolio(*portfolio_inputs, now=now).to_dict()
        second = summarize_portfolio(*portfolio_inputs, now=now).to_dict()
        assert first == second

    def test_deadline_limit(self, now):
        items = [
            _item(f"t{i}", WorkItemKind.TASK, "p1", "Open", TODAY + timedelta(days=i % 7))
            for i in range(15)
        ]
        assert len(find_upcoming_deadlines(items, {}, now)) == 10
