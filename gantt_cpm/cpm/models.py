"""
Data models for CPM calculations.

Defines dataclasses for activities, precedence links, constraints,
baseline snapshots and scheduling results.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from gantt_cpm.config.settings import settings


LINK_TYPES = ('FS', 'SS', 'FF', 'SF')
CONSTRAINT_TYPES = ('SNET', 'SNLT', 'MSO', 'MFO', 'FNET', 'FNLT')
ACTIVITY_KINDS = ('task', 'milestone', 'summary')


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


@dataclass
class Link:
    """Represents a predecessor link on the successor activity."""

    predecessor_id: str
    link_type: str = 'FS'      # FS, SS, FF, SF
    lag: int = 0               # working days, may be negative

    def __post_init__(self):
        self.link_type = self.link_type.upper()
        if self.link_type not in LINK_TYPES:
            raise ValueError(f"Unknown link type {self.link_type!r}")

    def is_finish_to_start(self) -> bool:
        return self.link_type == 'FS'

    def is_start_to_start(self) -> bool:
        return self.link_type == 'SS'

    def is_finish_to_finish(self) -> bool:
        return self.link_type == 'FF'

    def is_start_to_finish(self) -> bool:
        return self.link_type == 'SF'

    def __str__(self) -> str:
        text = self.predecessor_id
        if self.link_type != 'FS':
            text += f' {self.link_type}'
        if self.lag:
            text += f'{self.lag:+d}'
        return text


@dataclass
class Constraint:
    """Date constraint on an activity.

    Finish constraint dates use the exclusive finish convention of the
    scheduler: the first working day after the last day of work.
    """

    constraint_type: str       # SNET, SNLT, MSO, MFO, FNET, FNLT
    date: date

    def __post_init__(self):
        self.constraint_type = self.constraint_type.upper()
        if self.constraint_type not in CONSTRAINT_TYPES:
            raise ValueError(f"Unknown constraint type {self.constraint_type!r}")

    def is_start_constraint(self) -> bool:
        return self.constraint_type in ('SNET', 'SNLT', 'MSO')

    def is_hard(self) -> bool:
        return self.constraint_type in ('MSO', 'MFO')


@dataclass
class ResourceAssignment:
    """A resource assigned to an activity. Tracked, never levelled."""

    resource: str
    units: float = 100.0       # percent of availability
    work: float = 0.0          # hours


@dataclass(frozen=True)
class BaselineEntry:
    """Immutable snapshot of one activity at baseline save time."""

    duration: int
    start: Optional[date]
    finish: Optional[date]
    calendar_id: Optional[str] = None
    percent_complete: float = 0.0
    status_date: Optional[date] = None
    work: float = 0.0
    weight: Optional[float] = None
    saved_at: Optional[datetime] = None
    name: str = ''
    description: str = ''


@dataclass
class Activity:
    """Represents a schedule activity (task, milestone or WBS summary)."""

    activity_id: str
    name: str = ''
    kind: str = 'task'                     # task, milestone, summary
    level: int = 1                         # WBS outline level (0 = project root)
    duration: int = 0                      # working days
    remaining_duration: Optional[int] = None
    calendar_id: Optional[str] = None      # None -> project default
    percent_complete: float = 0.0
    predecessors: list[Link] = field(default_factory=list)
    constraint: Optional[Constraint] = None

    # Actuals
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None

    resources: list[ResourceAssignment] = field(default_factory=list)
    work: float = 0.0                      # hours
    weight: Optional[float] = None
    notes: str = ''
    baselines: list[Optional[BaselineEntry]] = field(default_factory=list)

    # CPM Results (calculated by engine)
    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None
    total_float: Optional[int] = None
    free_float: Optional[int] = None
    is_critical: bool = False
    constraint_violated: bool = False
    remaining_start: Optional[date] = None
    driving_predecessor_id: Optional[str] = None
    planned_percent: Optional[float] = None

    def __post_init__(self):
        if self.kind not in ACTIVITY_KINDS:
            raise ValueError(f"Unknown activity kind {self.kind!r}")
        if self.kind == 'milestone':
            self.duration = 0
        self.percent_complete = min(100.0, max(0.0, float(self.percent_complete)))

    def is_summary(self) -> bool:
        return self.kind == 'summary'

    def is_milestone(self) -> bool:
        """Check if activity is a milestone (zero duration)."""
        return self.kind == 'milestone' or (self.kind == 'task' and self.duration == 0)

    def is_completed(self) -> bool:
        return self.percent_complete >= 100

    def is_in_progress(self) -> bool:
        return 0 < self.percent_complete < 100

    def is_not_started(self) -> bool:
        return self.percent_complete <= 0

    def get_remaining_duration(self) -> int:
        """Remaining working days: explicit value, else derived from percent complete."""
        if self.is_completed():
            return 0
        if self.remaining_duration is not None:
            return max(0, int(self.remaining_duration))
        return round_half_up(self.duration * (100 - self.percent_complete) / 100)

    def get_baseline(self, index: int) -> Optional[BaselineEntry]:
        if 0 <= index < len(self.baselines):
            return self.baselines[index]
        return None

    def clear_derived(self) -> None:
        """Reset every field the scheduler computes."""
        self.early_start = None
        self.early_finish = None
        self.late_start = None
        self.late_finish = None
        self.total_float = None
        self.free_float = None
        self.is_critical = False
        self.constraint_violated = False
        self.remaining_start = None
        self.driving_predecessor_id = None


@dataclass
class Project:
    """Project-level scheduling settings."""

    start: date
    name: str = 'Project'
    default_calendar_id: str = field(default_factory=lambda: settings.DEFAULT_CALENDAR)
    status_date: Optional[date] = None
    active_baseline: int = 0


@dataclass
class ScheduleResult:
    """Results from a CPM calculation."""

    network: 'ActivityNetwork'           # noqa: F821
    root: Activity                       # project summary row
    critical_path: list[str]             # activity ids in topological order
    project_start: date
    project_finish: Optional[date]
    project_duration: int                # working days, default calendar
    status_date: Optional[date] = None
    errors: list[str] = field(default_factory=list)
    unscheduled_ids: set[str] = field(default_factory=set)

    @property
    def activities(self) -> dict[str, Activity]:
        return self.network.activities

    @property
    def ok(self) -> bool:
        return not self.errors

    def get_critical_activities(self) -> list[Activity]:
        """Get Activity objects on the critical path."""
        return [self.activities[aid] for aid in self.critical_path if aid in self.activities]

    def get_tasks_by_float(self, max_float: int = None) -> list[Activity]:
        """Get non-summary activities sorted by total float (ascending)."""
        tasks = [a for a in self.activities.values()
                 if not a.is_summary() and a.total_float is not None]
        if max_float is not None:
            tasks = [a for a in tasks if a.total_float <= max_float]
        return sorted(tasks, key=lambda a: a.total_float)

    def get_constraint_violations(self) -> list[Activity]:
        return [a for a in self.activities.values() if a.constraint_violated]


@dataclass
class TaskImpactResult:
    """Results from single activity what-if analysis."""

    activity_id: str
    activity_name: str
    duration_delta: int
    original_finish: date
    new_finish: date
    slip_days: int                       # working days, default calendar
    affected_activity_ids: list[str]
    original_critical_path: list[str]
    new_critical_path: list[str]
    critical_path_changed: bool

    def get_slip_summary(self) -> str:
        """Get human-readable slip summary."""
        if self.slip_days <= 0:
            return "No impact on project finish"
        return f"{self.slip_days} working days slip ({self.original_finish} -> {self.new_finish})"


@dataclass
class CriticalPathResult:
    """Results from critical path analysis."""

    critical_path: list[Activity]
    near_critical_tasks: list[Activity]
    float_distribution: dict[str, int]   # float bucket -> count
    project_finish: Optional[date]
    near_critical_threshold: int         # working days
    total_tasks: int
    by_parent: dict[str, list[str]] = field(default_factory=dict)

    def get_critical_path_length(self) -> int:
        """Number of activities on critical path."""
        return len(self.critical_path)

    def get_risk_summary(self) -> str:
        """Get summary of schedule risk."""
        critical = len(self.critical_path)
        near_critical = len(self.near_critical_tasks)
        return (f"{critical} critical tasks, {near_critical} near-critical "
                f"(<= {self.near_critical_threshold} days float)")


@dataclass
class ScenarioDelta:
    """Per-activity difference between a base and a what-if schedule."""

    activity_id: str
    name: str
    start_delta: int                     # calendar days
    finish_delta: int
    float_delta: int
    became_critical: bool
    left_critical: bool
