"""
Critical Path Analysis.

Identifies critical and near-critical activities, analyzes float
distribution, and identifies schedule risk areas.
"""

from collections import defaultdict
from datetime import date

from ..cpm.calendar import WorkCalendar
from ..cpm.engine import schedule
from ..cpm.models import Activity, CriticalPathResult, Project, ScheduleResult
from ..cpm.network import ActivityNetwork

FLOAT_BUCKETS = (
    (0, '0 (critical)'),
    (5, '1-5 days'),
    (10, '6-10 days'),
    (20, '11-20 days'),
)


def _bucket(total_float: int) -> str:
    for limit, label in FLOAT_BUCKETS:
        if total_float <= limit:
            return label
    return '> 20 days'


def analyze_critical_path(
    network: ActivityNetwork,
    calendars: dict[str, WorkCalendar],
    project: Project,
    near_critical_threshold: int = 5,
) -> CriticalPathResult:
    """
    Analyze critical path and near-critical activities.

    Args:
        network: Activity network to analyze (not modified)
        calendars: Calendar lookup dict
        project: Project start, default calendar and status date
        near_critical_threshold: Float (working days) up to which a
            non-critical activity counts as near-critical

    Returns:
        CriticalPathResult with critical path, near-critical activities and statistics
    """
    result = schedule(network, calendars, project, strict=False)
    return summarize_critical_path(result, near_critical_threshold)


def summarize_critical_path(result: ScheduleResult,
                            near_critical_threshold: int = 5) -> CriticalPathResult:
    """Build a CriticalPathResult from an existing schedule."""
    scheduled = result.network

    critical = []
    near_critical = []
    float_buckets = defaultdict(int)
    tasks = [a for a in scheduled if not a.is_summary()]

    for activity in tasks:
        if activity.total_float is None:
            float_buckets['unknown'] += 1
            continue

        float_buckets[_bucket(activity.total_float)] += 1
        if activity.is_critical:
            critical.append(activity)
        elif 0 < activity.total_float <= near_critical_threshold and not activity.is_completed():
            near_critical.append(activity)

    critical.sort(key=lambda a: a.early_start or date.max)
    near_critical.sort(key=lambda a: a.total_float)

    by_parent = defaultdict(list)
    for activity in critical:
        parent = scheduled.get_parent(activity.activity_id) or result.root.activity_id
        by_parent[parent].append(activity.activity_id)

    return CriticalPathResult(
        critical_path=critical,
        near_critical_tasks=near_critical,
        float_distribution=dict(float_buckets),
        project_finish=result.project_finish,
        near_critical_threshold=near_critical_threshold,
        total_tasks=len(tasks),
        by_parent=dict(by_parent),
    )


def identify_risk_tasks(
    result: ScheduleResult,
    float_threshold: int = 5,
    min_duration: int = 5,
) -> list[Activity]:
    """
    Identify activities that could become critical.

    Criteria:
    - Near-critical (0 < float <= threshold)
    - Significant duration (duration >= min_duration)
    - Not already completed

    Returns:
        List of activities sorted by (float, duration desc)
    """
    risk_tasks = [
        a for a in result.network
        if not a.is_summary() and not a.is_completed()
        and a.total_float is not None and 0 < a.total_float <= float_threshold
        and a.duration >= min_duration
    ]
    risk_tasks.sort(key=lambda a: (a.total_float, -a.duration))
    return risk_tasks


def format_critical_path_report(result: CriticalPathResult) -> str:
    """Format a critical path report as text."""
    lines = [
        "=" * 80,
        "CRITICAL PATH ANALYSIS REPORT",
        "=" * 80,
        f"\nProject Finish: {result.project_finish}",
        f"Total Tasks: {result.total_tasks}",
        f"Critical Tasks: {len(result.critical_path)}",
        f"Near-Critical Tasks (<= {result.near_critical_threshold} days float): "
        f"{len(result.near_critical_tasks)}",
        "\n--- Float Distribution ---",
    ]
    for bucket, count in sorted(result.float_distribution.items()):
        pct = count / result.total_tasks * 100 if result.total_tasks else 0
        bar = '#' * int(pct / 2)
        lines.append(f"  {bucket:15s}: {count:5d} ({pct:5.1f}%) {bar}")

    lines.append("\n--- Critical Path (first 20 tasks) ---")
    for i, activity in enumerate(result.critical_path[:20]):
        flag = ' !' if activity.constraint_violated else ''
        lines.append(f"  {i+1:3d}. {activity.activity_id:12s} | {activity.name[:40]:40s} | "
                     f"{activity.duration}d | TF {activity.total_float}{flag}")
    if len(result.critical_path) > 20:
        lines.append(f"  ... and {len(result.critical_path) - 20} more critical tasks")

    lines.append("\n--- Near-Critical Tasks (first 10) ---")
    for i, activity in enumerate(result.near_critical_tasks[:10]):
        lines.append(f"  {i+1:3d}. {activity.activity_id:12s} | Float: {activity.total_float:3d}d | "
                     f"{activity.name[:35]:35s}")

    lines.append("\n" + "=" * 80)
    return "\n".join(lines)
