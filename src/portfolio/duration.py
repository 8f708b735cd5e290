"""Project duration fields derived from milestone dates."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable

import numpy as np

from .schemas import Milestone, Project, ProjectDuration

logger = logging.getLogger(__name__)


def count_working_days(start: dt.date, end: dt.date) -> int:
    """Count Monday-Friday days between ``start`` and ``end`` inclusive."""

    if end < start:
        return 0
    # busday_count's end bound is exclusive
    return int(np.busday_count(start, np.datetime64(end, "D") + 1))


def calculate_project_duration(milestones: Iterable[Milestone], today: dt.date | None = None) -> ProjectDuration:
    """Derive the schedule span of a project from its milestone start dates.

    Remaining counts go negative once the last milestone is in the past.
    """

    dates = sorted(milestone.date for milestone in milestones if milestone.date is not None)
    if not dates:
        logger.debug("No dated milestones; duration is undetermined")
        return ProjectDuration()

    if today is None:
        today = dt.date.today()

    start, end = dates[0], dates[-1]
    remaining_working = count_working_days(min(today, end), max(today, end))
    if end < today:
        remaining_working = -remaining_working

    duration = ProjectDuration(
        start_date=start,
        end_date=end,
        total_days=(end - start).days,
        working_days=count_working_days(start, end),
        total_days_remaining=(end - today).days,
        working_days_remaining=remaining_working,
    )
    logger.debug("Calculated duration %s", duration.model_dump())
    return duration


def apply_duration(project: Project, today: dt.date | None = None) -> Project:
    """Return a copy of ``project`` with its duration fields recalculated."""

    duration = calculate_project_duration(project.milestones, today)
    logger.info("Recalculated duration for project %s (total_days=%s)", project.id, duration.total_days)
    return project.model_copy(
        update={
            "calculated_start_date": duration.start_date,
            "calculated_end_date": duration.end_date,
            "total_days": duration.total_days,
            "working_days": duration.working_days,
            "total_days_remaining": duration.total_days_remaining,
            "working_days_remaining": duration.working_days_remaining,
        }
    )
