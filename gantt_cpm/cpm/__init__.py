"""
CPM scheduling package.

Usage:
    from gantt_cpm.cpm import ActivityNetwork, Activity, Link, Project, schedule

    network = ActivityNetwork([Activity('A', duration=5),
                               Activity('B', duration=3, predecessors=[Link('A')])])
    result = schedule(network, default_calendars(), Project(start=date(2025, 1, 6)))
"""

from .calendar import WorkCalendar, default_calendars, resolve_calendar
from .models import (
    Activity,
    BaselineEntry,
    Constraint,
    Link,
    Project,
    ResourceAssignment,
    ScheduleResult,
    round_half_up,
)
from .network import ActivityNetwork, Dependency, GraphCycleError, SchedulingError
from .engine import CPMEngine, PROJECT_ROOT_ID, schedule

__all__ = [
    'Activity',
    'ActivityNetwork',
    'BaselineEntry',
    'CPMEngine',
    'Constraint',
    'Dependency',
    'GraphCycleError',
    'Link',
    'PROJECT_ROOT_ID',
    'Project',
    'ResourceAssignment',
    'ScheduleResult',
    'SchedulingError',
    'WorkCalendar',
    'default_calendars',
    'resolve_calendar',
    'round_half_up',
    'schedule',
]
