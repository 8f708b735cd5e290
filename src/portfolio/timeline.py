"""Gantt-style timeline geometry for a project's milestones and tasks."""

from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Mapping, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from .schemas import (
    Diagnostic,
    Milestone,
    ProjectBar,
    Task,
    TaskBar,
    Tick,
    TimelineLayout,
    TimelineRow,
    VisibleRow,
    Zoom,
)

logger = logging.getLogger(__name__)

DiagnosticsSink = Callable[[Diagnostic], None]

DAY_WIDTHS = {
    Zoom.WEEKLY: 24.0,
    Zoom.MONTHLY: 8.0,
    Zoom.QUARTERLY: 3.0,
    Zoom.YEARLY: 1.5,
}

BUFFER_DAYS = 2
MIN_GRID_WIDTH = 320
MIN_PRIMARY_SPACING = 80
MIN_SECONDARY_SPACING = 50
MIN_PROJECT_BAR_WIDTH = 8
TASK_ICON_OFFSET = 10
DEFAULT_BAR_COLOR = "default"
TASK_BAR_COLOR = "task"

MAX_LABEL_CHARS = 45
_CHAR_WIDTH = 8
_LABEL_PADDING = 80
_MIN_LABEL_COLUMN = 260
_MAX_LABEL_COLUMN = 600

_QUARTER_MONTHS = (1, 4, 7, 10)
_date_adapter = TypeAdapter(Optional[dt.date])


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def shift_days(day: dt.date, days: int) -> dt.date:
    """Add ``days`` to ``day``, saturating at ``date.min``/``date.max``."""

    try:
        return day + dt.timedelta(days=days)
    except OverflowError:
        return dt.date.max if days > 0 else dt.date.min


def iter_days(start: dt.date, end: dt.date) -> Iterator[dt.date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""

    for ordinal in range(start.toordinal(), end.toordinal() + 1):
        yield dt.date.fromordinal(ordinal)


def week_of_year(day: dt.date) -> int:
    """Return the week number with weeks starting on Sunday and week 1 holding Jan 1."""

    sunday = shift_days(day, -((day.weekday() + 1) % 7))
    week_year = shift_days(sunday, 6).year
    jan_first = dt.date(week_year, 1, 1)
    first_sunday = shift_days(jan_first, -((jan_first.weekday() + 1) % 7))
    return (sunday - first_sunday).days // 7 + 1


def truncate_label(label: str, limit: int = MAX_LABEL_CHARS) -> str:
    if len(label) > limit:
        return f"{label[: limit - 1]}…"
    return label


def _resolve_zoom(zoom: Zoom | str) -> Zoom:
    try:
        return Zoom(zoom)
    except ValueError as exc:
        raise ValueError(f"Unknown zoom level: {zoom!r}") from exc


@dataclass(frozen=True)
class _Scale:
    buffered_start: dt.date
    buffered_end: dt.date
    day_width: float
    grid_width: int

    @classmethod
    def for_range(cls, start: dt.date, end: dt.date, day_width: float) -> "_Scale":
        buffered_start = shift_days(start, -BUFFER_DAYS)
        buffered_end = shift_days(end, BUFFER_DAYS)
        grid_days = (buffered_end - buffered_start).days + 1
        grid_width = max(
            MIN_GRID_WIDTH, math.ceil(grid_days * day_width) + math.ceil(day_width)
        )
        return cls(buffered_start, buffered_end, day_width, grid_width)

    def x(self, day: dt.date) -> float:
        days = max(0, (day - self.buffered_start).days)
        return _clamp(days * self.day_width, 0, self.grid_width)

    def span(self, start: dt.date, end_exclusive: dt.date, min_width: float) -> tuple[float, float]:
        left = self.x(start)
        right = self.x(end_exclusive)
        return left, max(min_width, right - left)

    def contains(self, day: dt.date) -> bool:
        return self.buffered_start <= day <= self.buffered_end


def _progress_width(width: float, completion: float) -> int:
    return max(0, math.floor(width * _clamp(completion / 100, 0, 1)))


class _Reporter:
    def __init__(self, sink: DiagnosticsSink | None) -> None:
        self.sink = sink

    def __call__(self, kind: str, index: int, message: str) -> None:
        logger.warning("Excluding %s %s from timeline: %s", kind, index, message)
        if self.sink is not None:
            self.sink(Diagnostic(kind=kind, index=index, message=message))


def _coerce_date(value, name: str, report: _Reporter) -> dt.date | None:
    if isinstance(value, dt.datetime):
        return value.date()
    try:
        return _date_adapter.validate_python(value)
    except ValidationError as exc:
        report(name, 0, f"unparseable date {value!r}: {exc.errors()[0]['msg']}")
        return None


def _coerce_tasks(raw_tasks, milestone_index: int, report: _Reporter) -> list[Task]:
    tasks: list[Task] = []
    if raw_tasks is None:
        return tasks
    if not isinstance(raw_tasks, (list, tuple)):
        report("task", 0, f"tasks on milestone {milestone_index} must be a list, got {type(raw_tasks).__name__}")
        return tasks
    for index, raw in enumerate(raw_tasks):
        if isinstance(raw, Task):
            tasks.append(raw)
            continue
        try:
            tasks.append(Task.model_validate(raw))
        except ValidationError as exc:
            report("task", index, f"invalid task on milestone {milestone_index}: {exc.errors()[0]['msg']}")
    return tasks


def _coerce_milestone(raw, index: int, report: _Reporter) -> Milestone | None:
    if isinstance(raw, Milestone):
        return raw
    if not isinstance(raw, Mapping):
        report("milestone", index, f"unsupported milestone value {type(raw).__name__}")
        return None

    data = dict(raw)
    raw_tasks = data.pop("tasks", None)
    try:
        milestone = Milestone.model_validate(data)
    except ValidationError as exc:
        report("milestone", index, exc.errors()[0]["msg"])
        return None
    return milestone.model_copy(update={"tasks": _coerce_tasks(raw_tasks, index, report)})


def _valid_milestones(milestones: Iterable, report: _Reporter) -> list[Milestone]:
    valid: list[Milestone] = []
    for index, raw in enumerate(milestones or []):
        milestone = _coerce_milestone(raw, index, report)
        if milestone is None:
            continue
        if milestone.date is None:
            report("milestone", index, "milestone has no start date")
            continue
        valid.append(milestone)
    # sorted() is stable, so same-day milestones keep their entry order
    return sorted(valid, key=lambda milestone: milestone.date)


def _tick_candidates(day: dt.date, zoom: Zoom, first_day: dt.date) -> tuple[str | None, str | None, bool]:
    is_first_of_month = day.day == 1
    is_quarter_start = is_first_of_month and day.month in _QUARTER_MONTHS

    if zoom == Zoom.WEEKLY:
        primary = None
        if day.weekday() == 0 or day == first_day:
            primary = f"Week of {day:%b} {day.day}"
        return primary, f"{day:%a} {day.day}", False

    if zoom == Zoom.MONTHLY:
        primary = f"{day:%b %Y}" if is_first_of_month else None
        secondary = f"Wk {week_of_year(day)}" if day.weekday() == 0 else None
        return primary, secondary, False

    secondary = f"{day:%b}" if is_first_of_month else None
    if zoom == Zoom.QUARTERLY:
        primary = None
        if is_quarter_start:
            primary = f"Q{(day.month - 1) // 3 + 1} {day.year}"
        return primary, secondary, False

    primary = str(day.year) if is_first_of_month and day.month == 1 else None
    return primary, secondary, is_quarter_start


def generate_ticks(scale: _Scale, zoom: Zoom) -> tuple[list[Tick], list[Tick], list[float]]:
    """Walk the buffered range day by day and emit primary/secondary ticks.

    A candidate is kept only when it sits strictly further than the minimum
    spacing from the previously emitted tick of the same tier.
    """

    primary: list[Tick] = []
    secondary: list[Tick] = []
    quarter_lines: list[float] = []
    last_primary = -math.inf
    last_secondary = -math.inf

    for day in iter_days(scale.buffered_start, scale.buffered_end):
        left = scale.x(day)
        primary_label, secondary_label, quarter_line = _tick_candidates(day, zoom, scale.buffered_start)

        if primary_label is not None and left - last_primary > MIN_PRIMARY_SPACING:
            primary.append(Tick(left=left, label=primary_label))
            last_primary = left
        if secondary_label is not None and left - last_secondary > MIN_SECONDARY_SPACING:
            secondary.append(Tick(left=left, label=secondary_label))
            last_secondary = left
        if quarter_line:
            quarter_lines.append(left)

    return primary, secondary, quarter_lines


def _task_bars(tasks: Sequence[Task], scale: _Scale, min_bar: float) -> list[TaskBar]:
    bars: list[TaskBar] = []
    for task in tasks:
        if task.date is None:
            logger.debug("Skipping undated task %r", task.description)
            continue
        duration = max(1, task.duration_days or 1)
        end = shift_days(task.date, duration)
        left, width = scale.span(task.date, end, min_bar)
        bars.append(
            TaskBar(
                description=task.description,
                assignee=task.assignee,
                start=task.date,
                end=end,
                duration_days=duration,
                completion=task.completion,
                left=left,
                icon_left=left - TASK_ICON_OFFSET,
                width=width,
                progress_width=_progress_width(width, task.completion),
            )
        )
    return bars


def _rows(milestones: Sequence[Milestone], project_end: dt.date, scale: _Scale) -> list[TimelineRow]:
    min_bar = max(10.0, scale.day_width)
    rows: list[TimelineRow] = []
    for index, milestone in enumerate(milestones):
        start = milestone.date
        following = milestones[index + 1].date if index + 1 < len(milestones) else None
        end = milestone.end_date or following or project_end or start
        if end < start:
            end = start

        left, width = scale.span(start, shift_days(end, 1), min_bar)
        label = milestone.milestone
        rows.append(
            TimelineRow(
                index=index,
                label=label,
                display_label=truncate_label(label),
                start=start,
                end=end,
                duration_days=(end - start).days + 1,
                status=milestone.status,
                color=milestone.status.value if milestone.status else DEFAULT_BAR_COLOR,
                completion=milestone.completion,
                owner=milestone.owner,
                left=left,
                width=width,
                progress_width=_progress_width(width, milestone.completion),
                tasks=_task_bars(milestone.tasks, scale, min_bar),
            )
        )
    return rows


def label_column_width(rows: Sequence[TimelineRow]) -> int:
    longest = max((len(row.label) for row in rows), default=0)
    visible = min(longest, MAX_LABEL_CHARS)
    return int(_clamp(visible * _CHAR_WIDTH + _LABEL_PADDING, _MIN_LABEL_COLUMN, _MAX_LABEL_COLUMN))


def layout(
    project_start,
    project_end,
    milestones: Iterable,
    zoom: Zoom | str = Zoom.WEEKLY,
    today: dt.date | None = None,
    diagnostics: DiagnosticsSink | None = None,
) -> TimelineLayout:
    """Compute timeline geometry for a project.

    ``project_start``/``project_end`` may be dates, datetimes, ISO strings or
    ``None``. Milestones may be ``Milestone`` models or mappings; any that
    cannot be interpreted are left out and reported to ``diagnostics``. When no
    date can be resolved at all the result has ``has_schedule=False``.
    """

    zoom = _resolve_zoom(zoom)
    day_width = DAY_WIDTHS[zoom]
    report = _Reporter(diagnostics)
    valid = _valid_milestones(milestones, report)

    start = _coerce_date(project_start, "project_start", report)
    end = _coerce_date(project_end, "project_end", report)
    if start is None and valid:
        start = valid[0].date
    if end is None and valid:
        end = max(milestone.end_date or milestone.date for milestone in valid)

    if start is None and end is None:
        logger.info("No schedule data available for timeline")
        return TimelineLayout(has_schedule=False, zoom=zoom, day_width=day_width)

    if end is None:
        end = start
    if start is None:
        start = end
    if start > end:
        start, end = end, start

    scale = _Scale.for_range(start, end, day_width)
    primary, secondary, quarter_lines = generate_ticks(scale, zoom)
    rows = _rows(valid, end, scale)

    bar_left, bar_width = scale.span(start, shift_days(end, 1), MIN_PROJECT_BAR_WIDTH)

    if today is None:
        today = dt.date.today()
    today_left = scale.x(today) if scale.contains(today) else None

    logger.info(
        "Built %s timeline %s..%s (rows=%s, ticks=%s/%s)",
        zoom.value,
        start,
        end,
        len(rows),
        len(primary),
        len(secondary),
    )
    return TimelineLayout(
        has_schedule=True,
        zoom=zoom,
        day_width=day_width,
        start=start,
        end=end,
        buffered_start=scale.buffered_start,
        buffered_end=scale.buffered_end,
        total_days=(end - start).days + 1,
        grid_width=scale.grid_width,
        primary_ticks=primary,
        secondary_ticks=secondary,
        quarter_lines=quarter_lines,
        rows=rows,
        project_bar=ProjectBar(left=bar_left, width=bar_width),
        today_left=today_left,
        label_column_width=label_column_width(rows),
    )


def rows_with_tasks(timeline: TimelineLayout) -> set[int]:
    return {row.index for row in timeline.rows if row.tasks}


def toggle_all(timeline: TimelineLayout, expanded: set[int]) -> set[int]:
    """Collapse everything if every row with tasks is open, otherwise open them all."""

    expandable = rows_with_tasks(timeline)
    if not expandable:
        return set(expanded)
    if expandable <= expanded:
        return set()
    return expandable


def visible_rows(timeline: TimelineLayout, expanded: Iterable[int] = ()) -> list[VisibleRow]:
    """Flatten milestone rows, inserting task sub-rows under expanded milestones."""

    expanded = set(expanded)
    emitted: list[VisibleRow] = []
    for row in timeline.rows:
        is_open = row.index in expanded and bool(row.tasks)
        emitted.append(
            VisibleRow(
                kind="milestone",
                row_index=row.index,
                label=row.display_label,
                left=row.left,
                width=row.width,
                progress_width=row.progress_width,
                color=row.color,
                has_tasks=bool(row.tasks),
                expanded=is_open,
            )
        )
        if not is_open:
            continue
        for task in row.tasks:
            emitted.append(
                VisibleRow(
                    kind="task",
                    row_index=row.index,
                    label=truncate_label(task.description or "Untitled task", MAX_LABEL_CHARS - 4),
                    left=task.left,
                    width=task.width,
                    progress_width=task.progress_width,
                    color=TASK_BAR_COLOR,
                )
            )
    return emitted
