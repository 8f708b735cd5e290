import pytest

from src.portfolio.health import (
    TIME_BANDS,
    classify,
    compute_health,
    health_label,
    select_band,
    time_remaining_percent,
    weighted_completion,
)
from src.portfolio.schemas import HealthColor, Milestone, Project


def make_project(completions=(), **fields):
    fields.setdefault("total_days", 100)
    fields.setdefault("total_days_remaining", 80)
    milestones = [Milestone(milestone=f"M{i}", completion=c) for i, c in enumerate(completions)]
    return Project(title="Test", milestones=milestones, **fields)


# ----------------------------------------------------------------
# 1. STATUS PRECEDENCE
# ----------------------------------------------------------------
def test_cancelled_project_is_excluded_from_health():
    result = compute_health(make_project([100], status="cancelled"))

    assert result.excluded is True
    assert result.color is None
    assert result.label == "Cancelled"
    assert health_label(result) == "Cancelled"


def test_completed_project_is_green_at_full_completion():
    result = compute_health(make_project([0, 10], status="completed", total_days_remaining=-30))

    assert result.color == HealthColor.GREEN
    assert result.completion_percent == 100
    assert result.label == "On Track"


@pytest.mark.parametrize("status", ["draft", "on_hold"])
def test_draft_and_on_hold_are_yellow_regardless_of_completion(status):
    for completions in ([0], [100], []):
        result = compute_health(make_project(completions, status=status))
        assert result.color == HealthColor.YELLOW
        assert result.label == "At Risk"


def test_manual_projects_use_manual_percentage_with_time_bands():
    # 50% of the schedule remains: green needs 15, yellow needs 5
    project = make_project(
        [100, 100],
        health_calculation_type="manual",
        manual_health_percentage=10,
        total_days_remaining=50,
    )
    result = compute_health(project)

    assert result.completion_percent == 10
    assert result.color == HealthColor.YELLOW


def test_manual_project_without_percentage_counts_as_zero():
    result = compute_health(make_project(health_calculation_type="manual"))

    assert result.completion_percent == 0
    assert result.color == HealthColor.RED


# ----------------------------------------------------------------
# 2. TIME-AWARE THRESHOLDS
# ----------------------------------------------------------------
@pytest.mark.parametrize(
    "completion, expected",
    [
        (6, HealthColor.GREEN),
        (3, HealthColor.YELLOW),
        (0, HealthColor.RED),
    ],
)
def test_substantial_time_remaining(completion, expected):
    result = compute_health(make_project([completion]))

    assert result.time_remaining_percent == 80
    assert result.color == expected


def test_overdue_project_uses_strictest_band():
    result = compute_health(make_project([60], total_days_remaining=-5))

    assert result.time_remaining_percent == 0
    assert result.color == HealthColor.YELLOW


def test_band_boundaries_are_exclusive():
    # Exactly 70% remaining falls into the next band down
    assert compute_health(make_project([10], total_days_remaining=70)).color == HealthColor.YELLOW
    assert compute_health(make_project([10], total_days_remaining=71)).color == HealthColor.GREEN


def test_unknown_schedule_falls_back_to_strictest_band():
    no_total = make_project([60], total_days=None)
    no_remaining = make_project([75], total_days_remaining=None)

    assert compute_health(no_total).time_remaining_percent is None
    assert compute_health(no_total).color == HealthColor.YELLOW
    assert compute_health(no_remaining).color == HealthColor.GREEN


def test_zero_total_days_is_treated_as_unknown():
    assert time_remaining_percent(0, 10) is None
    assert select_band(time_remaining_percent(0, 10)) == TIME_BANDS[-1]


def test_remaining_greater_than_total_is_clamped():
    assert time_remaining_percent(100, 250) == 100
    assert compute_health(make_project([5], total_days_remaining=250)).color == HealthColor.GREEN


def test_color_is_monotonic_in_completion_within_each_band():
    rank = {HealthColor.RED: 0, HealthColor.YELLOW: 1, HealthColor.GREEN: 2}
    for time_remaining in (95, 71, 55, 41, 30, 21, 10, 0, None):
        colors = [rank[classify(completion, time_remaining)] for completion in range(0, 101)]
        assert colors == sorted(colors)


def test_no_milestones_means_zero_completion():
    result = compute_health(make_project([]))

    assert result.completion_percent == 0
    assert result.color == HealthColor.RED


# ----------------------------------------------------------------
# 3. HELPERS
# ----------------------------------------------------------------
def test_weighted_completion_is_plain_mean():
    milestones = [Milestone(completion=c) for c in (10, 20, 60)]

    assert weighted_completion(milestones) == 30
    assert weighted_completion([]) == 0


def test_missing_milestone_completion_counts_as_zero():
    assert Milestone.model_validate({"milestone": "x", "completion": None}).completion == 0


def test_compute_health_accepts_mappings():
    result = compute_health(
        {
            "status": "active",
            "total_days": 100,
            "total_days_remaining": 80,
            "milestones": [{"milestone": "Kickoff", "completion": 6}],
        }
    )

    assert result.color == HealthColor.GREEN
