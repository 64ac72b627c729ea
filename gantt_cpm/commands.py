"""
Interactive editing session over a project schedule.

ScheduleSession owns the live network, calendars and project settings and
exposes discrete edit commands. Every command reschedules synchronously in
non-strict mode, so a cycle introduced by an edit is reported on the
latest result instead of aborting the session.

Usage:
    session = ScheduleSession(network, calendars, project)
    session.add_link('B', 'A', 'SS', 2)
    session.set_percent_complete('A', 40)
    print(session.result.project_finish, session.errors)
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

from .baseline import ProgressReport, clear_baseline, progress_snapshot, save_baseline
from .config.settings import settings
from .cpm.calendar import WorkCalendar, resolve_calendar
from .cpm.engine import schedule
from .cpm.models import ACTIVITY_KINDS, Activity, Constraint, Link, Project, ScheduleResult
from .cpm.network import ActivityNetwork

logger = logging.getLogger(__name__)

# Input fields that update_activity may change
EDITABLE_FIELDS = {
    'name', 'kind', 'level', 'duration', 'remaining_duration', 'calendar_id',
    'constraint', 'actual_start', 'actual_finish', 'work', 'weight', 'notes',
}


class ScheduleSession:
    """Holds one project and keeps its schedule current after every edit."""

    def __init__(self, network: ActivityNetwork, calendars: dict[str, WorkCalendar],
                 project: Project):
        self.network = network
        self.calendars = calendars
        self.project = project
        self.result: Optional[ScheduleResult] = None
        self.reschedule()

    @property
    def errors(self) -> list[str]:
        return self.result.errors if self.result else []

    def reschedule(self) -> ScheduleResult:
        """Recompute the schedule from the live network."""
        self.result = schedule(self.network, self.calendars, self.project, strict=False)
        for error in self.result.errors:
            logger.warning(error)
        return self.result

    def _scheduled(self, activity_id: str) -> Optional[Activity]:
        return self.result.network.get_activity(activity_id) if self.result else None

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    def add_activity(self, activity: Activity) -> ScheduleResult:
        self.network.add_activity(activity)
        logger.debug(f"Added activity {activity.activity_id}")
        return self.reschedule()

    def update_activity(self, activity_id: str, **changes) -> ScheduleResult:
        """
        Change input fields of an activity.

        The changes are checked on a copy first; a rejected edit leaves the
        activity untouched.

        Raises:
            ValueError: Unknown activity, a field that is not editable or an
                invalid value
        """
        activity = self.network.get_required(activity_id)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")
        if 'kind' in changes and changes['kind'] not in ACTIVITY_KINDS:
            raise ValueError(f"Invalid activity kind: {changes['kind']}")

        candidate = replace(activity, **changes)
        if candidate.is_milestone():
            candidate.duration = 0
            candidate.remaining_duration = None
        if candidate.duration < 0:
            raise ValueError(f"Activity {activity_id}: duration must not be negative")
        if candidate.remaining_duration is not None and candidate.remaining_duration < 0:
            raise ValueError(f"Activity {activity_id}: remaining duration must not be negative")

        fields = set(changes) | {'duration', 'remaining_duration'}
        previous = {key: getattr(activity, key) for key in fields}
        try:
            for key in fields:
                setattr(activity, key, getattr(candidate, key))
            if 'kind' in changes or 'level' in changes:
                # summaries drop out of the precedence graph
                self.network.rebuild_index()
        except Exception:
            for key, value in previous.items():
                setattr(activity, key, value)
            self.network.rebuild_index()
            raise
        return self.reschedule()

    def remove_activity(self, activity_id: str) -> ScheduleResult:
        self.network.remove_activity(activity_id)
        logger.debug(f"Removed activity {activity_id}")
        return self.reschedule()

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def add_link(self, succ_id: str, pred_id: str, link_type: str = 'FS',
                 lag: int = 0) -> ScheduleResult:
        self.network.add_link(succ_id, Link(pred_id, link_type, lag))
        return self.reschedule()

    def remove_link(self, succ_id: str, pred_id: str) -> ScheduleResult:
        if not self.network.remove_link(succ_id, pred_id):
            logger.info(f"No link {pred_id} -> {succ_id} to remove")
        return self.reschedule()

    def set_predecessors(self, activity_id: str, links: list[Link]) -> ScheduleResult:
        """Replace the whole predecessor list of an activity."""
        activity = self.network.get_required(activity_id)
        activity.predecessors = list(links)
        self.network.rebuild_index()
        return self.reschedule()

    # ------------------------------------------------------------------
    # Dates and progress
    # ------------------------------------------------------------------

    def set_start_date(self, activity_id: str, start: Optional[date]) -> ScheduleResult:
        """
        Pin an activity to a start date.

        A typed start date becomes a Must Start On constraint; clearing it
        removes the constraint. A started activity also moves its actual start.
        """
        activity = self.network.get_required(activity_id)
        if start is None:
            activity.constraint = None
        else:
            activity.constraint = Constraint('MSO', start)
            if activity.percent_complete > 0:
                activity.actual_start = start
        return self.reschedule()

    def set_percent_complete(self, activity_id: str, percent: float) -> ScheduleResult:
        """
        Record progress on an activity.

        Starting progress stamps the actual start from the current early
        start; reaching 100 stamps the actual finish on the last working day;
        going back to 0 clears both. Remaining duration follows the percent.
        """
        activity = self.network.get_required(activity_id)
        if activity.is_summary():
            raise ValueError(f"Progress on summary {activity_id} is rolled up from its children")
        old = activity.percent_complete
        percent = min(100.0, max(0.0, float(percent)))
        scheduled = self._scheduled(activity_id)

        activity.percent_complete = percent
        if old == 0 and percent > 0 and activity.actual_start is None:
            if scheduled is not None and scheduled.early_start is not None:
                activity.actual_start = scheduled.early_start
            elif activity.constraint is not None:
                activity.actual_start = activity.constraint.date
        if percent == 0:
            activity.actual_start = None
            activity.actual_finish = None
        if percent == 100 and activity.actual_finish is None:
            if scheduled is not None and scheduled.early_finish is not None:
                calendar = resolve_calendar(self.calendars, activity.calendar_id,
                                            self.project.default_calendar_id)
                activity.actual_finish = calendar.add_workdays(scheduled.early_finish, -1)
        if percent < 100:
            activity.actual_finish = None
        activity.remaining_duration = None
        return self.reschedule()

    def set_status_date(self, status_date: Optional[date]) -> ScheduleResult:
        self.project = replace(self.project, status_date=status_date)
        return self.reschedule()

    def set_project_start(self, start: date) -> ScheduleResult:
        self.project = replace(self.project, start=start)
        return self.reschedule()

    # ------------------------------------------------------------------
    # Baselines
    # ------------------------------------------------------------------

    def _adopt_baselines(self, source: ActivityNetwork) -> None:
        for activity in self.network:
            activity.baselines = list(source.activities[activity.activity_id].baselines)

    def save_baseline(self, index: int = 0, name: str = '', description: str = '',
                      saved_at: Optional[datetime] = None) -> ScheduleResult:
        """Snapshot the current schedule into a baseline slot."""
        saved = save_baseline(self.result.network, index, name, description,
                              status_date=self.project.status_date, saved_at=saved_at)
        self._adopt_baselines(saved)
        return self.reschedule()

    def clear_baseline(self, index: int) -> ScheduleResult:
        self._adopt_baselines(clear_baseline(self.network, index))
        return self.reschedule()

    def set_active_baseline(self, index: int) -> ScheduleResult:
        if not 0 <= index < settings.MAX_BASELINES:
            raise ValueError(
                f"Baseline index {index} out of range (0..{settings.MAX_BASELINES - 1})"
            )
        self.project = replace(self.project, active_baseline=index)
        return self.reschedule()

    def progress(self, target: Optional[date] = None) -> ProgressReport:
        """Planned vs actual progress of the current schedule."""
        return progress_snapshot(self.result.network, self.calendars, self.project, target)
