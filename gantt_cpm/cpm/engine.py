"""
CPM (Critical Path Method) Engine.

Implements forward and backward pass calculations at working-day
granularity with per-activity calendars, typed links with lag, date
constraints and status-date progress reflow.

Date convention: early/late finish dates are exclusive, i.e. the first
working day after the last day of work, so EF = add_workdays(ES, duration)
and a milestone has EF == ES.
"""

import logging
from datetime import date
from typing import Optional

from .calendar import WorkCalendar, resolve_calendar
from .models import Activity, Project, ScheduleResult
from .network import ActivityNetwork, Dependency

logger = logging.getLogger(__name__)

PROJECT_ROOT_ID = '__project__'


class CPMEngine:
    """
    CPM calculation engine.

    Performs forward pass (early dates), status-date reflow, backward pass
    (late dates), float calculation, summary roll-up and critical path
    identification. The engine writes derived fields into the network it
    is given; use schedule() for a copy-on-write run.
    """

    def __init__(self, network: ActivityNetwork, calendars: dict[str, WorkCalendar],
                 project: Project):
        """
        Initialize CPM engine.

        Args:
            network: Activity network to calculate (mutated in place)
            calendars: Dict mapping calendar_id to WorkCalendar
            project: Project start, default calendar and status date
        """
        self.network = network
        self.calendars = calendars
        self.project = project

    def get_calendar(self, calendar_id: Optional[str]) -> WorkCalendar:
        """Get calendar by ID, falling back to the project default."""
        return resolve_calendar(self.calendars, calendar_id, self.project.default_calendar_id)

    def calendar_for(self, activity: Activity) -> WorkCalendar:
        return self.get_calendar(activity.calendar_id)

    @property
    def default_calendar(self) -> WorkCalendar:
        return self.get_calendar(self.project.default_calendar_id)

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def forward_pass(self, order: list[str], project_start: date) -> None:
        """
        Calculate early start and early finish, ignoring the status date.

        Processes activities in topological order. For each activity:
        - Completed activities: use actual dates where recorded
        - Started activities: early_start = actual_start
        - Otherwise: early_start = max(predecessor-driven dates), then constraints
        """
        for activity_id in order:
            activity = self.network.activities[activity_id]
            calendar = self.calendar_for(activity)
            duration = activity.duration

            early_start, driving, violated = self._logic_start(
                activity, calendar, duration, project_start, apply_constraints=True
            )
            activity.driving_predecessor_id = driving

            if activity.actual_start and not activity.is_not_started():
                early_start = activity.actual_start
                violated = False

            activity.early_start = early_start
            activity.constraint_violated = violated

            if activity.is_completed() and activity.actual_finish:
                activity.early_finish = calendar.add_workdays(activity.actual_finish, 1)
                if not activity.actual_start:
                    activity.early_start = min(
                        early_start, calendar.add_workdays(activity.early_finish, -duration)
                    )
            else:
                activity.early_finish = calendar.add_workdays(early_start, duration)

    def status_reflow(self, order: list[str], status_date: date) -> None:
        """
        Reschedule unfinished work so none of it lies before the status date.

        Runs after forward_pass and reuses its early dates:
        - Completed activities keep their dates
        - In-progress activities keep their early start and schedule the
          remaining duration from the later of the status date and the
          predecessor-driven date
        - Not-started activities cannot start before the status date
        """
        floor = max(status_date, self.project.start)

        for activity_id in order:
            activity = self.network.activities[activity_id]
            if activity.is_completed():
                continue

            calendar = self.calendar_for(activity)

            if activity.is_in_progress():
                remaining = activity.get_remaining_duration()
                restart, _, _ = self._logic_start(
                    activity, calendar, remaining, floor, apply_constraints=False
                )
                restart = max(restart, activity.early_start)
                activity.remaining_start = restart
                activity.early_finish = calendar.add_workdays(restart, remaining)
                continue

            early_start, driving, violated = self._logic_start(
                activity, calendar, activity.duration, floor, apply_constraints=True
            )
            activity.driving_predecessor_id = driving
            activity.constraint_violated = violated
            activity.early_start = early_start
            activity.early_finish = calendar.add_workdays(early_start, activity.duration)

    def _logic_start(self, activity: Activity, calendar: WorkCalendar, duration: int,
                     floor: date, apply_constraints: bool) -> tuple[date, Optional[str], bool]:
        """
        Early start implied by the floor date, predecessor links and constraints.

        Returns:
            Tuple of (early start, driving predecessor id, hard constraint violated)
        """
        early_start = calendar.next_workday(floor)
        driving = None

        for dep in self.network.get_predecessors(activity.activity_id):
            pred = self.network.activities[dep.pred_id]
            driven = self._get_driven_early_start(pred, dep, calendar, duration)
            if driven is not None and driven > early_start:
                early_start = driven
                driving = pred.activity_id

        early_start = calendar.next_workday(early_start)

        constraint = activity.constraint
        if not apply_constraints or constraint is None:
            return early_start, driving, False

        ctype = constraint.constraint_type
        violated = False
        if ctype == 'SNET':
            early_start = max(early_start, calendar.next_workday(constraint.date))
        elif ctype == 'FNET':
            bound = calendar.next_workday(calendar.add_workdays(constraint.date, -duration))
            early_start = max(early_start, bound)
        elif ctype == 'MSO':
            pinned = calendar.next_workday(constraint.date)
            violated = pinned < early_start
            early_start = pinned
        elif ctype == 'MFO':
            pinned = calendar.next_workday(calendar.add_workdays(constraint.date, -duration))
            violated = pinned < early_start
            early_start = pinned
        # SNLT/FNLT only bound the late dates

        return early_start, driving, violated

    @staticmethod
    def lagged(calendar: WorkCalendar, anchor: date, lag: int) -> date:
        """Move a predecessor date by a lag in the successor's calendar."""
        if lag > 0:
            anchor = calendar.next_workday(anchor)
        return calendar.add_workdays(anchor, lag)

    def _get_driven_early_start(self, pred: Activity, dep: Dependency,
                                calendar: WorkCalendar, duration: int) -> Optional[date]:
        """
        Calculate the early start driven by a predecessor relationship.

        Handles FS, SS, FF, SF relationship types with lag, measured in the
        successor's calendar. A positive lag starts counting from the first
        successor working day at or after the predecessor date, so a lag day
        is never absorbed by a day the successor does not work.
        """
        if pred.early_finish is None or pred.early_start is None:
            return None

        if dep.link.is_finish_to_start():
            # FS: successor starts after predecessor finishes + lag
            return self.lagged(calendar, pred.early_finish, dep.lag)

        elif dep.link.is_start_to_start():
            # SS: successor starts after predecessor starts + lag
            return self.lagged(calendar, pred.early_start, dep.lag)

        elif dep.link.is_finish_to_finish():
            # FF: successor start = (pred finish + lag) - successor duration
            target_finish = self.lagged(calendar, pred.early_finish, dep.lag)
            return calendar.add_workdays(target_finish, -duration)

        # SF: successor start = (pred start + lag) - successor duration
        target_finish = self.lagged(calendar, pred.early_start, dep.lag)
        return calendar.add_workdays(target_finish, -duration)

    # ------------------------------------------------------------------
    # Backward pass
    # ------------------------------------------------------------------

    def effective_duration(self, activity: Activity) -> int:
        """Working days spanned by the scheduled early dates."""
        if activity.early_start is None or activity.early_finish is None:
            return activity.duration
        return max(0, self.calendar_for(activity).workdays_between(
            activity.early_start, activity.early_finish
        ))

    def backward_pass(self, order: list[str], project_end: date) -> None:
        """
        Calculate late start and late finish for all activities.

        Processes activities in reverse topological order. Sinks are seeded at
        the project end; finish-side constraints cap the late finish.
        """
        for activity_id in reversed(order):
            activity = self.network.activities[activity_id]
            calendar = self.calendar_for(activity)
            duration = self.effective_duration(activity)

            late_finish = project_end
            for dep in self.network.get_successors(activity_id):
                succ = self.network.activities[dep.succ_id]
                driven = self._get_driven_late_finish(succ, dep, calendar, duration)
                if driven is not None and driven < late_finish:
                    late_finish = driven

            constraint = activity.constraint
            if constraint is not None:
                ctype = constraint.constraint_type
                if ctype in ('FNLT', 'MFO'):
                    late_finish = min(late_finish, constraint.date)
                elif ctype in ('SNLT', 'MSO'):
                    bound = calendar.add_workdays(calendar.next_workday(constraint.date), duration)
                    late_finish = min(late_finish, bound)

            activity.late_finish = late_finish
            activity.late_start = calendar.add_workdays(late_finish, -duration)

    def _get_driven_late_finish(self, succ: Activity, dep: Dependency,
                                calendar: WorkCalendar, pred_duration: int) -> Optional[date]:
        """
        Calculate the late finish driven by a successor relationship.

        This is the reverse of _get_driven_early_start, measured in the
        predecessor's calendar.
        """
        if succ.late_start is None or succ.late_finish is None:
            return None

        lag = dep.lag

        if dep.link.is_finish_to_start():
            # FS: pred finishes before successor starts - lag
            return calendar.add_workdays(succ.late_start, -lag)

        elif dep.link.is_start_to_start():
            # SS: pred finish = (succ late start - lag) + pred duration
            target_start = calendar.add_workdays(succ.late_start, -lag)
            return calendar.add_workdays(target_start, pred_duration)

        elif dep.link.is_finish_to_finish():
            # FF: pred finishes before successor finishes - lag
            return calendar.add_workdays(succ.late_finish, -lag)

        # SF: pred finish = (succ late finish - lag) + pred duration
        target_start = calendar.add_workdays(succ.late_finish, -lag)
        return calendar.add_workdays(target_start, pred_duration)

    def _get_project_end(self, order: list[str]) -> Optional[date]:
        """Get the latest early finish as project end."""
        finishes = [self.network.activities[aid].early_finish for aid in order]
        finishes = [f for f in finishes if f is not None]
        return max(finishes) if finishes else None

    # ------------------------------------------------------------------
    # Float, roll-ups, critical path
    # ------------------------------------------------------------------

    def calculate_float(self, order: list[str]) -> None:
        """
        Calculate total float and free float for all activities.

        Total Float = working days from early finish to late finish (may be
        negative when a constraint cannot be met).
        Free Float = smallest relationship float over successor links.
        """
        for activity_id in order:
            activity = self.network.activities[activity_id]
            calendar = self.calendar_for(activity)

            activity.total_float = calendar.workdays_between(
                activity.early_finish, activity.late_finish
            )
            activity.is_critical = activity.total_float <= 0 and not activity.is_completed()

            constraint = activity.constraint
            if constraint is not None:
                if constraint.constraint_type == 'SNLT':
                    activity.constraint_violated = (
                        activity.early_start > calendar.next_workday(constraint.date)
                    )
                elif constraint.constraint_type == 'FNLT':
                    activity.constraint_violated = activity.early_finish > constraint.date

            successors = self.network.get_successors(activity_id)
            if not successors:
                activity.free_float = max(0, activity.total_float)
                continue

            activity.free_float = max(0, min(
                self.relationship_float(activity, self.network.activities[dep.succ_id], dep)
                for dep in successors
            ))

    def relationship_float(self, pred: Activity, succ: Activity, dep: Dependency) -> int:
        """Working days a link could slip before it moves the successor."""
        calendar = self.calendar_for(succ)
        if dep.link.is_finish_to_start():
            implied, actual = self.lagged(calendar, pred.early_finish, dep.lag), succ.early_start
        elif dep.link.is_start_to_start():
            implied, actual = self.lagged(calendar, pred.early_start, dep.lag), succ.early_start
        elif dep.link.is_finish_to_finish():
            implied, actual = self.lagged(calendar, pred.early_finish, dep.lag), succ.early_finish
        else:
            implied, actual = self.lagged(calendar, pred.early_start, dep.lag), succ.early_finish
        return calendar.workdays_between(implied, actual)

    def roll_up_summaries(self) -> None:
        """
        Roll child dates up into WBS summaries, deepest summaries first.

        A summary spans min(ES) to max(EF) of its scheduled descendants.
        """
        ids = list(self.network.activities)
        for activity_id in reversed(ids):
            summary = self.network.activities[activity_id]
            if not summary.is_summary():
                continue
            children = [self.network.activities[cid]
                        for cid in self.network.get_children(activity_id)]
            self._roll_up(summary, children)

    def _roll_up(self, summary: Activity, children: list[Activity]) -> None:
        summary.clear_derived()
        scheduled = [c for c in children
                     if not c.is_summary() and c.early_start is not None]
        if not scheduled:
            return

        calendar = self.calendar_for(summary)
        summary.early_start = min(c.early_start for c in scheduled)
        summary.early_finish = max(c.early_finish for c in scheduled)
        summary.late_start = min(c.late_start for c in scheduled)
        summary.late_finish = max(c.late_finish for c in scheduled)
        summary.total_float = min(c.total_float for c in scheduled)
        summary.is_critical = any(c.is_critical for c in scheduled)
        summary.constraint_violated = any(c.constraint_violated for c in scheduled)
        summary.duration = calendar.workdays_between(summary.early_start, summary.early_finish)

    def build_root(self) -> Activity:
        """Project summary row spanning every scheduled activity."""
        root = Activity(activity_id=PROJECT_ROOT_ID, name=self.project.name,
                        kind='summary', level=0)
        self._roll_up(root, list(self.network.activities.values()))
        return root

    def get_critical_path(self, order: list[str]) -> list[str]:
        """
        Return activity IDs on the critical path in execution order.

        Critical activities are those with total_float <= 0.
        """
        return [aid for aid in order if self.network.activities[aid].is_critical]

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, strict: bool = True) -> ScheduleResult:
        """
        Execute full CPM calculation.

        Args:
            strict: Raise GraphCycleError on a cyclic network. When False the
                acyclic components are scheduled, the cyclic ones are left
                without derived fields and the error is reported on the result.

        Returns:
            ScheduleResult with all calculated values
        """
        for activity in self.network.activities.values():
            activity.clear_derived()

        order, cycle_error = self.network.partition_cycles()
        errors = []
        unscheduled = set()
        if cycle_error is not None:
            if strict:
                raise cycle_error
            logger.warning(f"Scheduling without cyclic components: {cycle_error}")
            errors.append(str(cycle_error))
            unscheduled = set(cycle_error.component_ids)

        project_start = self.project.start
        status_date = self.project.status_date

        self.forward_pass(order, project_start)
        if status_date is not None:
            self.status_reflow(order, status_date)

        project_finish = self._get_project_end(order)
        if project_finish is not None:
            self.backward_pass(order, project_finish)
            self.calculate_float(order)
        self.roll_up_summaries()
        root = self.build_root()

        project_duration = 0
        if project_finish is not None:
            project_duration = self.default_calendar.workdays_between(project_start, project_finish)

        return ScheduleResult(
            network=self.network,
            root=root,
            critical_path=self.get_critical_path(order),
            project_start=project_start,
            project_finish=project_finish,
            project_duration=project_duration,
            status_date=status_date,
            errors=errors,
            unscheduled_ids=unscheduled,
        )


def schedule(network: ActivityNetwork, calendars: dict[str, WorkCalendar],
             project: Project, strict: bool = True) -> ScheduleResult:
    """
    Schedule a network without touching it.

    The network is cloned and the clone receives the derived dates, so the
    caller's network and any concurrently scheduled copies stay unchanged.
    """
    engine = CPMEngine(network.clone(), calendars, project)
    return engine.run(strict=strict)
