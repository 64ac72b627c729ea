"""
What-if analysis.

Impact of changing a single activity's duration, sensitivity sweeps and
comparison of a scenario schedule against the master schedule.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..cpm.calendar import WorkCalendar, resolve_calendar
from ..cpm.engine import schedule
from ..cpm.models import Project, ScenarioDelta, ScheduleResult, TaskImpactResult
from ..cpm.network import ActivityNetwork, SchedulingError

logger = logging.getLogger(__name__)


def analyze_task_impact(
    network: ActivityNetwork,
    calendars: dict[str, WorkCalendar],
    project: Project,
    activity_id: str,
    duration_delta: int,
) -> TaskImpactResult:
    """
    Calculate impact of changing one activity's duration.

    Args:
        network: Activity network (will not be modified)
        calendars: Calendar lookup dict
        project: Project settings
        activity_id: ID of activity to modify
        duration_delta: Change in duration in working days (positive = increase)

    Returns:
        TaskImpactResult with original vs new finish dates and affected activities
    """
    activity = network.get_required(activity_id)

    baseline_result = schedule(network, calendars, project)

    modified_network = network.clone()
    modified_network.modify_duration(activity_id, max(0, activity.duration + duration_delta))
    modified_result = schedule(modified_network, calendars, project)

    affected = [
        aid for aid, modified in modified_result.activities.items()
        if not modified.is_summary()
        and modified.early_finish != baseline_result.activities[aid].early_finish
    ]

    calendar = resolve_calendar(calendars, project.default_calendar_id)
    slip = calendar.workdays_between(baseline_result.project_finish, modified_result.project_finish)

    return TaskImpactResult(
        activity_id=activity_id,
        activity_name=activity.name,
        duration_delta=duration_delta,
        original_finish=baseline_result.project_finish,
        new_finish=modified_result.project_finish,
        slip_days=slip,
        affected_activity_ids=affected,
        original_critical_path=baseline_result.critical_path,
        new_critical_path=modified_result.critical_path,
        critical_path_changed=set(baseline_result.critical_path) != set(modified_result.critical_path),
    )


def analyze_task_sensitivity(
    network: ActivityNetwork,
    calendars: dict[str, WorkCalendar],
    project: Project,
    activity_ids: Optional[list[str]] = None,
    duration_delta: int = 5,
) -> list[TaskImpactResult]:
    """
    Test the impact of increasing each activity's duration by the same amount.

    Args:
        activity_ids: Activities to test (default: all incomplete tasks with duration)
        duration_delta: Duration increase to test (working days)

    Returns:
        List of TaskImpactResult sorted by slip (descending)
    """
    if activity_ids is None:
        activity_ids = [
            a.activity_id for a in network
            if not a.is_summary() and not a.is_completed() and a.duration > 0
        ]

    results = []
    for activity_id in activity_ids:
        try:
            results.append(analyze_task_impact(network, calendars, project,
                                               activity_id, duration_delta))
        except SchedulingError as e:
            logger.warning(f"Skipping {activity_id}: {e}")

    results.sort(key=lambda r: r.slip_days, reverse=True)
    return results


@dataclass
class ScenarioImpactSummary:
    """Project-level effect of a scenario."""

    project_end_delta: int                   # calendar days
    master_project_end: Optional[date]
    scenario_project_end: Optional[date]
    new_critical: list[str] = field(default_factory=list)
    removed_critical: list[str] = field(default_factory=list)
    avg_float_change: float = 0.0
    total_affected: int = 0


def _day_delta(before: Optional[date], after: Optional[date]) -> int:
    if before is None or after is None:
        return 0
    return (after - before).days


def compare_scenario(master: ScheduleResult, scenario: ScheduleResult) -> list[ScenarioDelta]:
    """
    Per-activity differences between two scheduled networks.

    Only activities present in both and with a changed date, float or
    critical flag are returned.
    """
    deltas = []
    for activity_id, changed in scenario.activities.items():
        original = master.activities.get(activity_id)
        if original is None or changed.is_summary():
            continue

        start_delta = _day_delta(original.early_start, changed.early_start)
        finish_delta = _day_delta(original.early_finish, changed.early_finish)
        float_delta = (changed.total_float or 0) - (original.total_float or 0)
        if (start_delta or finish_delta or float_delta
                or original.is_critical != changed.is_critical):
            deltas.append(ScenarioDelta(
                activity_id=activity_id,
                name=changed.name,
                start_delta=start_delta,
                finish_delta=finish_delta,
                float_delta=float_delta,
                became_critical=changed.is_critical and not original.is_critical,
                left_critical=original.is_critical and not changed.is_critical,
            ))
    return deltas


def scenario_impact_summary(master: ScheduleResult, scenario: ScheduleResult) -> ScenarioImpactSummary:
    """Summarize how a scenario moves the project end and the critical set."""
    deltas = compare_scenario(master, scenario)
    float_changes = [d.float_delta for d in deltas]
    return ScenarioImpactSummary(
        project_end_delta=_day_delta(master.project_finish, scenario.project_finish),
        master_project_end=master.project_finish,
        scenario_project_end=scenario.project_finish,
        new_critical=[d.activity_id for d in deltas if d.became_critical],
        removed_critical=[d.activity_id for d in deltas if d.left_critical],
        avg_float_change=round(sum(float_changes) / len(float_changes), 1) if float_changes else 0.0,
        total_affected=len(deltas),
    )
