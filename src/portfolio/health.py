"""Time-aware project health calculation."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, NamedTuple

from .schemas import (
    HealthCalculationType,
    HealthColor,
    HealthResult,
    Milestone,
    Project,
    ProjectStatus,
)

logger = logging.getLogger(__name__)

CANCELLED_LABEL = "Cancelled"
HEALTH_LABELS = {
    HealthColor.GREEN: "On Track",
    HealthColor.YELLOW: "At Risk",
    HealthColor.RED: "Critical",
}


class TimeBand(NamedTuple):
    name: str
    min_time_remaining: float | None
    green_cutoff: float
    yellow_cutoff: float


# Evaluated top to bottom; the last band has no lower bound and also catches
# projects whose schedule is unknown.
TIME_BANDS: tuple[TimeBand, ...] = (
    TimeBand("substantial", 70, 5, 1),
    TimeBand("plenty", 40, 15, 5),
    TimeBand("moderate", 20, 30, 15),
    TimeBand("little", None, 70, 50),
)


def weighted_completion(milestones: Iterable[Milestone]) -> float:
    """Return the mean completion of ``milestones``, or 0 when there are none."""

    values = [milestone.completion for milestone in milestones]
    if not values:
        return 0
    return sum(values) / len(values)


def time_remaining_percent(total_days: int | None, total_days_remaining: int | None) -> float | None:
    """Return the share of the schedule still ahead, clamped to [0, 100].

    ``None`` means the schedule is undetermined. Overdue projects report 0.
    """

    if total_days is None or total_days_remaining is None or total_days <= 0:
        return None
    if total_days_remaining < 0:
        return 0.0
    return max(0.0, min(100.0, total_days_remaining / total_days * 100))


def select_band(time_remaining: float | None) -> TimeBand:
    if time_remaining is not None:
        for band in TIME_BANDS:
            if band.min_time_remaining is not None and time_remaining > band.min_time_remaining:
                return band
    return TIME_BANDS[-1]


def classify(completion: float, time_remaining: float | None) -> HealthColor:
    """Map a completion percentage to a color using the time band it falls in."""

    band = select_band(time_remaining)
    if completion >= band.green_cutoff:
        return HealthColor.GREEN
    if completion >= band.yellow_cutoff:
        return HealthColor.YELLOW
    return HealthColor.RED


def health_label(result: HealthResult) -> str:
    if result.excluded or result.color is None:
        return CANCELLED_LABEL
    return HEALTH_LABELS[result.color]


def reported_completion(project: Project) -> float:
    if project.health_calculation_type == HealthCalculationType.MANUAL:
        return float(project.manual_health_percentage or 0)
    return weighted_completion(project.milestones)


def compute_health(project: Project | Mapping) -> HealthResult:
    """Derive the health color and completion percentage for ``project``.

    Cancelled projects are excluded from health and carry no color. Completed
    projects are always green at 100%, drafts and projects on hold are yellow.
    Everything else is classified against the time band selected by how much of
    the schedule remains.
    """

    if not isinstance(project, Project):
        project = Project.model_validate(project)

    time_remaining = time_remaining_percent(project.total_days, project.total_days_remaining)

    if project.status == ProjectStatus.CANCELLED:
        logger.debug("Project %s is cancelled; excluded from health", project.id)
        return HealthResult(
            color=None,
            completion_percent=reported_completion(project),
            excluded=True,
            label=CANCELLED_LABEL,
            time_remaining_percent=time_remaining,
        )

    if project.status == ProjectStatus.COMPLETED:
        color = HealthColor.GREEN
        completion = 100.0
    elif project.status in (ProjectStatus.DRAFT, ProjectStatus.ON_HOLD):
        color = HealthColor.YELLOW
        completion = reported_completion(project)
    else:
        completion = reported_completion(project)
        color = classify(completion, time_remaining)

    logger.debug(
        "Project %s health: %s (completion=%s, time_remaining=%s)",
        project.id,
        color.value,
        completion,
        time_remaining,
    )
    return HealthResult(
        color=color,
        completion_percent=completion,
        excluded=False,
        label=HEALTH_LABELS[color],
        time_remaining_percent=time_remaining,
    )
