"""Pydantic schemas for status sheet projects and their derived views."""

import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DRAFT = "draft"


class HealthCalculationType(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class HealthColor(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class Zoom(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


def _none_to_zero(value):
    return 0 if value is None else value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Task(BaseModel):
    """A sub-row of a milestone."""

    description: str = ""
    assignee: Optional[str] = None
    date: Optional[dt.date] = None
    completion: float = 0
    duration_days: Optional[int] = None

    @field_validator("completion", mode="before")
    @classmethod
    def missing_completion_is_zero(cls, value):
        return _none_to_zero(value)

    @field_validator("date", mode="before")
    @classmethod
    def blank_date_is_none(cls, value):
        return _blank_to_none(value)


class Milestone(BaseModel):
    """A dated milestone on a project's status sheet."""

    model_config = ConfigDict(populate_by_name=True)

    milestone: str = ""
    date: Optional[dt.date] = None
    end_date: Optional[dt.date] = Field(
        default=None, validation_alias=AliasChoices("end_date", "endDate")
    )
    status: Optional[HealthColor] = None
    completion: float = 0
    owner: Optional[str] = None
    tasks: List[Task] = Field(default_factory=list)

    @field_validator("completion", mode="before")
    @classmethod
    def missing_completion_is_zero(cls, value):
        return _none_to_zero(value)

    @field_validator("date", "end_date", "status", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        return _blank_to_none(value)


class Project(BaseModel):
    """A project record as loaded from the backing store."""

    id: Optional[str] = None
    title: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    health_calculation_type: HealthCalculationType = HealthCalculationType.AUTOMATIC
    manual_health_percentage: Optional[int] = None
    department: Optional[str] = None
    project_manager: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    calculated_start_date: Optional[dt.date] = None
    calculated_end_date: Optional[dt.date] = None
    total_days: Optional[int] = None
    working_days: Optional[int] = None
    total_days_remaining: Optional[int] = None
    working_days_remaining: Optional[int] = None
    milestones: List[Milestone] = Field(default_factory=list)


class HealthResult(BaseModel):
    """Health status derived for a single project."""

    color: Optional[HealthColor] = None
    completion_percent: float = 0
    excluded: bool = False
    label: str
    time_remaining_percent: Optional[float] = None


class ProjectDuration(BaseModel):
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    total_days: Optional[int] = None
    working_days: Optional[int] = None
    total_days_remaining: Optional[int] = None
    working_days_remaining: Optional[int] = None


class Diagnostic(BaseModel):
    """A record that was excluded from a computation, and why."""

    kind: str
    index: int
    message: str


class Tick(BaseModel):
    left: float
    label: str


class TaskBar(BaseModel):
    description: str
    assignee: Optional[str] = None
    start: dt.date
    end: dt.date
    duration_days: int
    completion: float
    left: float
    icon_left: float
    width: float
    progress_width: int


class TimelineRow(BaseModel):
    index: int
    label: str
    display_label: str
    start: dt.date
    end: dt.date
    duration_days: int
    status: Optional[HealthColor] = None
    color: str
    completion: float
    owner: Optional[str] = None
    left: float
    width: float
    progress_width: int
    tasks: List[TaskBar] = Field(default_factory=list)


class ProjectBar(BaseModel):
    left: float
    width: float


class TimelineLayout(BaseModel):
    """Pixel geometry for a Gantt-style project timeline."""

    has_schedule: bool
    zoom: Zoom
    day_width: float
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None
    buffered_start: Optional[dt.date] = None
    buffered_end: Optional[dt.date] = None
    total_days: int = 0
    grid_width: int = 0
    primary_ticks: List[Tick] = Field(default_factory=list)
    secondary_ticks: List[Tick] = Field(default_factory=list)
    quarter_lines: List[float] = Field(default_factory=list)
    rows: List[TimelineRow] = Field(default_factory=list)
    project_bar: Optional[ProjectBar] = None
    today_left: Optional[float] = None
    label_column_width: int = 0


class VisibleRow(BaseModel):
    """One emitted timeline row once expand/collapse state is applied."""

    kind: str
    row_index: int
    label: str
    left: float
    width: float
    progress_width: int
    color: str
    has_tasks: bool = False
    expanded: bool = False
