"""Export utilities for the projects overview table."""

from pathlib import Path
from typing import Iterable

import pandas as pd

from .health import compute_health
from .schemas import Project

OVERVIEW_COLUMNS = [
    "id",
    "title",
    "status",
    "department",
    "health",
    "completion",
    "time_remaining",
    "total_days",
    "total_days_remaining",
]


def overview_rows(projects: Iterable[Project]) -> list[dict]:
    rows = []
    for project in projects:
        health = compute_health(project)
        time_remaining = health.time_remaining_percent
        rows.append(
            {
                "id": project.id,
                "title": project.title,
                "status": project.status.value,
                "department": project.department,
                "health": health.label,
                "completion": round(health.completion_percent),
                "time_remaining": round(time_remaining) if time_remaining is not None else None,
                "total_days": project.total_days,
                "total_days_remaining": project.total_days_remaining,
            }
        )
    return rows


def export_overview_to_csv(projects: Iterable[Project], path: Path) -> None:
    df = pd.DataFrame(overview_rows(projects), columns=OVERVIEW_COLUMNS)
    df.to_csv(path, index=False)
