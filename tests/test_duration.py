import datetime as dt

from src.portfolio.duration import apply_duration, calculate_project_duration, count_working_days
from src.portfolio.health import compute_health
from src.portfolio.schemas import Milestone, Project


def milestones(*dates):
    return [Milestone(milestone=f"M{i}", date=dt.date.fromisoformat(value)) for i, value in enumerate(dates)]


def test_count_working_days_is_inclusive():
    # Monday 1 Jan to Friday 12 Jan 2024
    assert count_working_days(dt.date(2024, 1, 1), dt.date(2024, 1, 12)) == 10
    assert count_working_days(dt.date(2024, 1, 6), dt.date(2024, 1, 7)) == 0
    assert count_working_days(dt.date(2024, 1, 12), dt.date(2024, 1, 1)) == 0


def test_count_working_days_up_to_last_representable_date():
    # Friday 31 Dec 9999 is counted
    assert count_working_days(dt.date(9999, 12, 27), dt.date.max) == 5


def test_duration_spans_first_to_last_milestone():
    duration = calculate_project_duration(
        milestones("2024-01-12", "2024-01-01", "2024-01-08"), today=dt.date(2024, 1, 5)
    )

    assert duration.start_date == dt.date(2024, 1, 1)
    assert duration.end_date == dt.date(2024, 1, 12)
    assert duration.total_days == 11
    assert duration.working_days == 10
    assert duration.total_days_remaining == 7
    assert duration.working_days_remaining == 6


def test_remaining_days_go_negative_when_overdue():
    duration = calculate_project_duration(milestones("2024-01-01", "2024-01-12"), today=dt.date(2024, 1, 15))

    assert duration.total_days_remaining == -3
    assert duration.working_days_remaining == -2


def test_undated_milestones_leave_duration_undetermined():
    duration = calculate_project_duration([Milestone(milestone="Someday")])

    assert duration.total_days is None
    assert duration.working_days_remaining is None


def test_apply_duration_feeds_health():
    project = Project(
        id="p1",
        title="Launch",
        milestones=[
            Milestone(milestone="Start", date=dt.date(2024, 1, 1), completion=100),
            Milestone(milestone="End", date=dt.date(2024, 4, 10), completion=0),
        ],
    )
    updated = apply_duration(project, today=dt.date(2024, 1, 11))

    assert project.total_days is None
    assert updated.calculated_start_date == dt.date(2024, 1, 1)
    assert updated.total_days == 100
    assert updated.total_days_remaining == 90
    # 50% complete with 90% of the schedule ahead
    assert compute_health(updated).time_remaining_percent == 90
    assert compute_health(updated).color.value == "green"
