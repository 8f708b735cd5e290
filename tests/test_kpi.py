import datetime as dt

import pytest

from src.portfolio.kpi import (
    duration_kpis,
    operational_kpis,
    performance_kpis,
    portfolio_kpis,
    timeline_kpis,
)
from src.portfolio.schemas import Milestone, Project, Task

TODAY = dt.date(2024, 1, 10)


@pytest.fixture
def projects():
    return [
        Project(
            id="p1",
            title="Platform",
            department="Engineering",
            total_days=100,
            working_days=70,
            total_days_remaining=80,
            working_days_remaining=56,
            milestones=[
                Milestone(
                    milestone="Design",
                    date=dt.date(2024, 1, 5),
                    completion=40,
                    tasks=[Task(description="Spec", completion=100), Task(description="Review")],
                ),
                Milestone(milestone="Build", date=dt.date(2024, 1, 15), completion=60),
            ],
        ),
        Project(
            id="p2",
            title="Website",
            status="completed",
            department="Engineering",
            total_days=20,
            working_days=14,
            total_days_remaining=0,
            working_days_remaining=0,
            milestones=[
                Milestone(milestone="Launch", date=dt.date(2024, 1, 1), completion=100),
                Milestone(milestone="Retro", date=dt.date(2024, 1, 2), completion=100),
            ],
        ),
        Project(
            id="p3",
            title="Mobile",
            status="cancelled",
            milestones=[Milestone(milestone="Kickoff", completion=0)],
        ),
    ]


def test_performance_kpis(projects):
    kpis = performance_kpis(projects)

    assert kpis["overall_completion"] == 50
    assert kpis["total_milestones"] == 5
    assert kpis["completed_milestones"] == 2
    assert kpis["milestone_completion_rate"] == 40
    health = {item["health"]: item["count"] for item in kpis["health_distribution"]}
    assert health == {"green": 2, "cancelled": 1}


def test_operational_kpis(projects):
    kpis = operational_kpis(projects)

    assert kpis["active_projects"] == 1
    assert kpis["completed_projects"] == 1
    assert kpis["cancelled_projects"] == 1
    assert kpis["draft_projects"] == 0
    assert kpis["projects_with_duration"] == 2
    assert kpis["average_project_duration"] == 60
    assert kpis["average_working_days"] == 42
    assert kpis["total_tasks"] == 2
    assert kpis["task_completion_rate"] == 50


def test_duration_kpis(projects):
    kpis = duration_kpis(projects)

    assert kpis["short_projects"] == 1
    assert kpis["medium_projects"] == 0
    assert kpis["long_projects"] == 1
    assert kpis["duration_coverage"] == 67
    assert kpis["duration_efficiency"] == 70
    assert kpis["longest_project"]["title"] == "Platform"
    assert kpis["shortest_project"]["title"] == "Website"
    assert kpis["department_durations"] == [
        {"department": "Engineering", "avg_total_days": 60, "avg_working_days": 42, "project_count": 2}
    ]


def test_duration_kpis_without_durations():
    kpis = duration_kpis([Project(title="Empty")])

    assert kpis["projects_with_duration"] == 0
    assert kpis["projects_without_duration"] == 1
    assert kpis["longest_project"] is None


def test_timeline_kpis(projects):
    kpis = timeline_kpis(projects, today=TODAY, window_days=30)

    assert [(m["milestone"], m["days_until_due"]) for m in kpis["upcoming_milestones"]] == [("Build", 5)]
    # Completed milestones are never overdue
    assert [(m["milestone"], m["days_overdue"]) for m in kpis["overdue_milestones"]] == [("Design", 5)]


def test_timeline_window_comes_from_environment(monkeypatch, projects):
    monkeypatch.delenv("KPI_UPCOMING_WINDOW_DAYS", raising=False)
    projects[0].milestones.append(Milestone(milestone="Rollout", date=dt.date(2024, 2, 20)))

    assert len(timeline_kpis(projects, today=TODAY)["upcoming_milestones"]) == 1

    monkeypatch.setenv("KPI_UPCOMING_WINDOW_DAYS", "45")
    assert len(timeline_kpis(projects, today=TODAY)["upcoming_milestones"]) == 2


def test_portfolio_kpis_for_empty_portfolio():
    kpis = portfolio_kpis([], today=TODAY)

    assert kpis["project_count"] == 0
    assert kpis["performance"]["overall_completion"] == 0
    assert kpis["timeline"] == {"upcoming_milestones": [], "overdue_milestones": []}
