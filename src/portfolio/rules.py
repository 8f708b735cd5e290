"""Consistency rules for stored project duration fields."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .schemas import Project, ProjectStatus

logger = logging.getLogger(__name__)


class RuleViolation(Exception):
    """Raised when a project's duration fields contradict each other."""


def ensure_consistent_dates(project: Project) -> None:
    if (project.calculated_start_date is None) != (project.calculated_end_date is None):
        raise RuleViolation("Inconsistent start/end dates")


def ensure_consistent_day_counts(project: Project) -> None:
    if (project.total_days is None) != (project.working_days is None):
        raise RuleViolation("Inconsistent total/working days")


def ensure_dates_match_day_counts(project: Project) -> None:
    has_dates = project.calculated_start_date is not None and project.calculated_end_date is not None
    has_counts = project.total_days is not None and project.working_days is not None
    if has_dates != has_counts:
        raise RuleViolation("Inconsistent date and duration data")


def ensure_total_days_match_dates(project: Project) -> None:
    if project.calculated_start_date is None or project.calculated_end_date is None or project.total_days is None:
        return
    actual = (project.calculated_end_date - project.calculated_start_date).days
    if abs(actual - project.total_days) > 1:
        raise RuleViolation(f"Total days mismatch: calculated {actual}, stored {project.total_days}")


def ensure_remaining_within_total(project: Project) -> None:
    if project.total_days is None or project.total_days_remaining is None:
        return
    if project.total_days_remaining > project.total_days:
        raise RuleViolation(
            f"Remaining days exceed total: {project.total_days_remaining} > {project.total_days}"
        )


def validate_project(project: Project, rules: Iterable) -> None:
    for rule in rules:
        rule(project)


def default_rules() -> list:
    return [
        ensure_consistent_dates,
        ensure_consistent_day_counts,
        ensure_dates_match_day_counts,
        ensure_total_days_match_dates,
        ensure_remaining_within_total,
    ]


def find_inconsistencies(projects: Iterable[Project], rules: Iterable | None = None) -> dict:
    """Run every rule against every non-cancelled project and collect the failures."""

    rules = list(rules) if rules is not None else default_rules()
    inconsistencies: list[dict] = []
    checked = 0
    valid = 0

    for project in projects:
        if project.status == ProjectStatus.CANCELLED:
            continue
        checked += 1
        issues = []
        for rule in rules:
            try:
                rule(project)
            except RuleViolation as exc:
                issues.append({"project_id": project.id, "issue": str(exc)})
        if issues:
            inconsistencies.extend(issues)
        else:
            valid += 1

    logger.info("Validated %s projects (%s with issues)", checked, checked - valid)
    return {
        "valid_projects": valid,
        "invalid_projects": checked - valid,
        "inconsistencies": inconsistencies,
    }
