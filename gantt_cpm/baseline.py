"""
Baseline snapshots and planned-progress interpolation.

Baselines are frozen copies of each activity's scheduled dates stored in
numbered slots (BL0..BL10). Planned percent complete is interpolated over
working days from the active baseline, re-based at the percent complete
recorded when the baseline was saved.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from gantt_cpm.config.settings import settings
from gantt_cpm.cpm.calendar import WorkCalendar, resolve_calendar
from gantt_cpm.cpm.models import Activity, BaselineEntry, Project
from gantt_cpm.cpm.network import ActivityNetwork

logger = logging.getLogger(__name__)


def _check_index(index: int) -> None:
    if not 0 <= index < settings.MAX_BASELINES:
        raise ValueError(
            f"Baseline index {index} out of range (0..{settings.MAX_BASELINES - 1})"
        )


def save_baseline(
    network: ActivityNetwork,
    index: int = 0,
    name: str = '',
    description: str = '',
    status_date: Optional[date] = None,
    saved_at: Optional[datetime] = None,
) -> ActivityNetwork:
    """
    Snapshot the scheduled dates of every activity into a baseline slot.

    Args:
        network: Scheduled network (early dates populated)
        index: Baseline slot, 0..MAX_BASELINES-1
        name: Baseline label
        description: Free text
        status_date: Project status date at save time
        saved_at: Timestamp of the save (defaults to now)

    Returns:
        New network holding the baseline; the input network is unchanged
    """
    _check_index(index)
    saved_at = saved_at or datetime.now()
    result = network.clone()

    for activity in result.activities.values():
        entry = BaselineEntry(
            duration=activity.duration,
            start=activity.early_start,
            finish=activity.early_finish,
            calendar_id=activity.calendar_id,
            percent_complete=activity.percent_complete,
            status_date=status_date,
            work=activity.work,
            weight=activity.weight,
            saved_at=saved_at,
            name=name or f'BL{index}',
            description=description,
        )
        _set_slot(activity, index, entry)

    logger.info(f"Saved baseline BL{index} for {len(result)} activities")
    return result


def clear_baseline(network: ActivityNetwork, index: int) -> ActivityNetwork:
    """Return a new network with the given baseline slot emptied."""
    _check_index(index)
    result = network.clone()
    for activity in result.activities.values():
        if index < len(activity.baselines):
            activity.baselines[index] = None
    logger.info(f"Cleared baseline BL{index}")
    return result


def _set_slot(activity: Activity, index: int, entry: Optional[BaselineEntry]) -> None:
    if len(activity.baselines) <= index:
        activity.baselines.extend([None] * (index + 1 - len(activity.baselines)))
    activity.baselines[index] = entry


def planned_percent_at(
    activity: Activity,
    target: date,
    calendar: WorkCalendar,
    baseline_index: int = 0,
) -> float:
    """
    Planned percent complete of an activity at a target date.

    Uses the baseline in ``baseline_index`` when present, otherwise the
    current early dates. 0 at or before the start, 100 at or after the finish.
    When the baseline recorded progress and a status date, the curve is two
    linear segments over working days: start..status maps to 0..pct and
    status..finish maps to pct..100. Otherwise one segment covers the span.
    """
    baseline = activity.get_baseline(baseline_index)
    if baseline is not None and baseline.start is not None and baseline.finish is not None:
        start, end = baseline.start, baseline.finish
        baseline_pct = baseline.percent_complete
        baseline_status = baseline.status_date
    else:
        start, end = activity.early_start, activity.early_finish
        baseline_pct, baseline_status = 0.0, None

    if start is None or end is None:
        return 0.0
    if target <= start:
        return 0.0
    if target >= end:
        return 100.0

    if baseline_pct > 0 and baseline_status is not None:
        boundary = min(max(baseline_status, start), end)
        if target <= boundary:
            total = calendar.workdays_between(start, boundary)
            ratio = calendar.workdays_between(start, target) / total if total > 0 else 1.0
            return ratio * baseline_pct
        total = calendar.workdays_between(boundary, end)
        ratio = calendar.workdays_between(boundary, target) / total if total > 0 else 1.0
        return baseline_pct + ratio * (100 - baseline_pct)

    return calendar.elapsed_working_ratio(start, end, target) * 100


@dataclass
class ProgressRow:
    """Planned versus actual progress for one activity."""

    activity_id: str
    name: str
    level: int
    planned_percent: float
    actual_percent: float

    @property
    def variance(self) -> float:
        return round(self.actual_percent - self.planned_percent, 1)


@dataclass
class ProgressReport:
    """Progress of every activity plus weighted project totals at a date."""

    target: date
    baseline_index: int
    rows: list[ProgressRow] = field(default_factory=list)
    project_planned: float = 0.0
    project_actual: float = 0.0

    @property
    def project_variance(self) -> float:
        return round(self.project_actual - self.project_planned, 1)

    def behind_schedule(self, tolerance: float = 0.0) -> list[ProgressRow]:
        return [r for r in self.rows if r.variance < -tolerance]


def _weighted(children: list[Activity]) -> tuple[float, float, float]:
    """
    Weighted (actual, planned, work) of a set of rows.

    Weight is the explicit weight, else work hours; when every weight is
    zero the durations (minimum 1) are used instead.
    """
    work = sum(c.work or 0 for c in children)
    weights = [c.weight if c.weight is not None and c.weight > 0 else (c.work or 0)
               for c in children]
    if sum(weights) <= 0:
        weights = [c.duration or 1 for c in children]
    total = sum(weights)
    if total <= 0:
        return 0.0, 0.0, work

    actual = sum(w * c.percent_complete for w, c in zip(weights, children)) / total
    planned = sum(w * (c.planned_percent or 0) for w, c in zip(weights, children)) / total
    return round(actual, 1), round(planned, 1), round(work, 2)


def apply_planned_percent(
    network: ActivityNetwork,
    calendars: dict[str, WorkCalendar],
    project: Project,
    target: Optional[date] = None,
    baseline_index: Optional[int] = None,
) -> ActivityNetwork:
    """
    Fill planned_percent on a copy of the network.

    Tasks are interpolated with planned_percent_at; summaries (deepest first)
    take the weighted average of their direct children for both planned and
    actual percent and the sum of their work.
    """
    target = target or project.status_date or date.today()
    if baseline_index is None:
        baseline_index = project.active_baseline
    result = network.clone()

    for activity in result.activities.values():
        if activity.is_summary():
            continue
        calendar = resolve_calendar(calendars, activity.calendar_id, project.default_calendar_id)
        activity.planned_percent = round(
            planned_percent_at(activity, target, calendar, baseline_index), 1
        )

    for activity_id in reversed(list(result.activities)):
        summary = result.activities[activity_id]
        if not summary.is_summary():
            continue
        children = [result.activities[cid] for cid in result.get_direct_children(activity_id)]
        if not children:
            summary.planned_percent = 0.0
            continue
        summary.percent_complete, summary.planned_percent, summary.work = _weighted(children)

    return result


def progress_snapshot(
    network: ActivityNetwork,
    calendars: dict[str, WorkCalendar],
    project: Project,
    target: Optional[date] = None,
    baseline_index: Optional[int] = None,
) -> ProgressReport:
    """Planned vs actual percent for every activity and for the whole project."""
    target = target or project.status_date or date.today()
    if baseline_index is None:
        baseline_index = project.active_baseline
    progressed = apply_planned_percent(network, calendars, project, target, baseline_index)

    report = ProgressReport(target=target, baseline_index=baseline_index)
    for activity in progressed.activities.values():
        report.rows.append(ProgressRow(
            activity_id=activity.activity_id,
            name=activity.name,
            level=activity.level,
            planned_percent=activity.planned_percent or 0.0,
            actual_percent=activity.percent_complete,
        ))

    if len(progressed):
        top_level = min(a.level for a in progressed.activities.values())
        top = [a for a in progressed.activities.values() if a.level == top_level]
        report.project_actual, report.project_planned, _ = _weighted(top)

    return report
