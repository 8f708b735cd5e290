"""Portfolio-level KPI roll-ups across many projects."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, Iterable, List

import pandas as pd

from .config import get_upcoming_window_days
from .health import compute_health, reported_completion
from .schemas import Project, ProjectStatus

logger = logging.getLogger(__name__)

_TOP_MILESTONES = 10
_SHORT_PROJECT_DAYS = 30
_LONG_PROJECT_DAYS = 90
_UNKNOWN = "Unknown"

_FRAME_COLUMNS = [
    "id",
    "title",
    "status",
    "department",
    "project_manager",
    "completion",
    "health",
    "total_days",
    "working_days",
    "total_days_remaining",
    "working_days_remaining",
    "milestones",
    "milestones_completed",
    "tasks",
    "tasks_completed",
]
_DURATION_COLUMNS = ["total_days", "working_days", "total_days_remaining", "working_days_remaining"]


def _pct(part: float, whole: float) -> int:
    return int(round(part / whole * 100)) if whole else 0


def _distribution(series: pd.Series, key: str) -> List[Dict[str, Any]]:
    counts = series.value_counts()
    total = int(counts.sum())
    return [
        {key: str(value), "count": int(count), "percentage": _pct(count, total)}
        for value, count in counts.items()
    ]


def projects_frame(projects: Iterable[Project]) -> pd.DataFrame:
    """One row per project with completion, health and duration columns."""

    records = []
    for project in projects:
        health = compute_health(project)
        tasks = [task for milestone in project.milestones for task in milestone.tasks]
        records.append(
            {
                "id": project.id,
                "title": project.title,
                "status": project.status.value,
                "department": project.department or _UNKNOWN,
                "project_manager": (project.project_manager or "").strip() or _UNKNOWN,
                "completion": reported_completion(project),
                "health": health.color.value if health.color else ProjectStatus.CANCELLED.value,
                "total_days": project.total_days,
                "working_days": project.working_days,
                "total_days_remaining": project.total_days_remaining,
                "working_days_remaining": project.working_days_remaining,
                "milestones": len(project.milestones),
                "milestones_completed": sum(1 for m in project.milestones if m.completion >= 100),
                "tasks": len(tasks),
                "tasks_completed": sum(1 for t in tasks if t.completion >= 100),
            }
        )

    df = pd.DataFrame.from_records(records, columns=_FRAME_COLUMNS)
    for col in _DURATION_COLUMNS + ["completion"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def performance_kpis(projects: Iterable[Project]) -> Dict[str, Any]:
    df = projects_frame(projects)
    total_milestones = int(df["milestones"].sum())
    completed_milestones = int(df["milestones_completed"].sum())
    overall = int(round(df["completion"].mean())) if not df.empty else 0

    return {
        "overall_completion": overall,
        "status_distribution": _distribution(df["status"], "status"),
        "health_distribution": _distribution(df["health"], "health"),
        "milestone_completion_rate": _pct(completed_milestones, total_milestones),
        "completed_milestones": completed_milestones,
        "total_milestones": total_milestones,
    }


def operational_kpis(projects: Iterable[Project]) -> Dict[str, Any]:
    df = projects_frame(projects)
    status_counts = df["status"].value_counts()
    with_duration = df[df["total_days"] > 0]
    total_tasks = int(df["tasks"].sum())
    completed_tasks = int(df["tasks_completed"].sum())

    return {
        "active_projects": int(status_counts.get(ProjectStatus.ACTIVE.value, 0)),
        "completed_projects": int(status_counts.get(ProjectStatus.COMPLETED.value, 0)),
        "on_hold_projects": int(status_counts.get(ProjectStatus.ON_HOLD.value, 0)),
        "cancelled_projects": int(status_counts.get(ProjectStatus.CANCELLED.value, 0)),
        "draft_projects": int(status_counts.get(ProjectStatus.DRAFT.value, 0)),
        "projects_with_duration": len(with_duration),
        "average_project_duration": int(round(with_duration["total_days"].mean())) if not with_duration.empty else 0,
        "average_working_days": int(round(with_duration["working_days"].fillna(0).mean())) if not with_duration.empty else 0,
        "tasks_completed": completed_tasks,
        "total_tasks": total_tasks,
        "task_completion_rate": _pct(completed_tasks, total_tasks),
    }


def _median(series: pd.Series) -> int:
    series = series.dropna()
    return int(round(series.median())) if not series.empty else 0


def _project_extreme(row: pd.Series) -> Dict[str, Any]:
    return {
        "title": row["title"],
        "total_days": int(row["total_days"]),
        "working_days": int(row["working_days"]) if pd.notna(row["working_days"]) else 0,
    }


def duration_kpis(projects: Iterable[Project]) -> Dict[str, Any]:
    """Duration averages, medians, size buckets and per-department figures."""

    df = projects_frame(projects)
    with_duration = df[df["total_days"] > 0].copy()
    count = len(with_duration)

    if with_duration.empty:
        return {
            "average_total_days": 0,
            "average_working_days": 0,
            "median_total_days": 0,
            "median_working_days": 0,
            "median_total_days_remaining": 0,
            "median_working_days_remaining": 0,
            "projects_with_duration": 0,
            "projects_without_duration": len(df),
            "duration_coverage": 0,
            "short_projects": 0,
            "medium_projects": 0,
            "long_projects": 0,
            "duration_distribution": [],
            "department_durations": [],
            "duration_efficiency": 0,
            "longest_project": None,
            "shortest_project": None,
        }

    with_duration["working_days"] = with_duration["working_days"].fillna(0)
    total_days = with_duration["total_days"]
    short = int((total_days < _SHORT_PROJECT_DAYS).sum())
    long_ = int((total_days > _LONG_PROJECT_DAYS).sum())
    medium = count - short - long_

    department_durations = (
        with_duration.groupby("department")
        .agg(
            avg_total_days=("total_days", "mean"),
            avg_working_days=("working_days", "mean"),
            project_count=("id", "size"),
        )
        .reset_index()
    )

    return {
        "average_total_days": int(round(total_days.mean())),
        "average_working_days": int(round(with_duration["working_days"].mean())),
        "median_total_days": _median(total_days),
        "median_working_days": _median(with_duration["working_days"]),
        "median_total_days_remaining": _median(with_duration["total_days_remaining"]),
        "median_working_days_remaining": _median(with_duration["working_days_remaining"]),
        "projects_with_duration": count,
        "projects_without_duration": len(df) - count,
        "duration_coverage": _pct(count, len(df)),
        "short_projects": short,
        "medium_projects": medium,
        "long_projects": long_,
        "duration_distribution": [
            {"range": f"Short (< {_SHORT_PROJECT_DAYS} days)", "count": short, "percentage": _pct(short, count)},
            {
                "range": f"Medium ({_SHORT_PROJECT_DAYS}-{_LONG_PROJECT_DAYS} days)",
                "count": medium,
                "percentage": _pct(medium, count),
            },
            {"range": f"Long (> {_LONG_PROJECT_DAYS} days)", "count": long_, "percentage": _pct(long_, count)},
        ],
        "department_durations": [
            {
                "department": row.department,
                "avg_total_days": int(round(row.avg_total_days)),
                "avg_working_days": int(round(row.avg_working_days)),
                "project_count": int(row.project_count),
            }
            for row in department_durations.itertuples(index=False)
        ],
        "duration_efficiency": _pct(with_duration["working_days"].sum(), total_days.sum()),
        "longest_project": _project_extreme(with_duration.loc[total_days.idxmax()]),
        "shortest_project": _project_extreme(with_duration.loc[total_days.idxmin()]),
    }


def _milestones_frame(projects: Iterable[Project]) -> pd.DataFrame:
    records = [
        {
            "project_title": project.title,
            "milestone": milestone.milestone,
            "date": milestone.date,
            "completion": milestone.completion,
            "status": milestone.status.value if milestone.status else None,
        }
        for project in projects
        for milestone in project.milestones
        if milestone.date is not None
    ]
    df = pd.DataFrame.from_records(
        records, columns=["project_title", "milestone", "date", "completion", "status"]
    )
    df["date"] = pd.to_datetime(df["date"])
    return df


def _milestone_records(df: pd.DataFrame, days_column: str) -> List[Dict[str, Any]]:
    return [
        {
            "project_title": row.project_title,
            "milestone": row.milestone,
            "date": row.date.strftime("%Y-%m-%d"),
            days_column: int(getattr(row, days_column)),
            "completion": float(row.completion),
            "status": row.status,
        }
        for row in df.itertuples(index=False)
    ]


def timeline_kpis(
    projects: Iterable[Project],
    today: dt.date | None = None,
    window_days: int | None = None,
) -> Dict[str, Any]:
    """Incomplete milestones due soon and those already past their date."""

    if today is None:
        today = dt.date.today()
    if window_days is None:
        window_days = get_upcoming_window_days()

    df = _milestones_frame(projects)
    df["days_until_due"] = (df["date"] - pd.Timestamp(today)).dt.days
    df["days_overdue"] = -df["days_until_due"]
    incomplete = df[df["completion"] < 100]

    upcoming = incomplete[
        (incomplete["days_until_due"] >= 0) & (incomplete["days_until_due"] <= window_days)
    ].sort_values("days_until_due", kind="stable")
    overdue = incomplete[incomplete["days_overdue"] > 0].sort_values(
        "days_overdue", ascending=False, kind="stable"
    )

    return {
        "upcoming_milestones": _milestone_records(upcoming.head(_TOP_MILESTONES), "days_until_due"),
        "overdue_milestones": _milestone_records(overdue.head(_TOP_MILESTONES), "days_overdue"),
    }


def portfolio_kpis(
    projects: Iterable[Project],
    today: dt.date | None = None,
    window_days: int | None = None,
) -> Dict[str, Any]:
    projects = list(projects)
    result = {
        "project_count": len(projects),
        "performance": performance_kpis(projects),
        "operational": operational_kpis(projects),
        "duration": duration_kpis(projects),
        "timeline": timeline_kpis(projects, today, window_days),
    }
    logger.info("Computed portfolio KPIs for %s projects", len(projects))
    return result
