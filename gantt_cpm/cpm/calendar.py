"""
Work calendar handling for CPM calculations.

Calendars are evaluated at day granularity: a date either is or is not a
working day. Durations, lags and float are all expressed in working days
of the calendar that owns the activity.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional


WEEKDAY_NAMES = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')

# Weekly masks (Monday first) for the built-in calendars
STANDARD_WEEKS = {
    5: (True, True, True, True, True, False, False),
    6: (True, True, True, True, True, True, False),
    7: (True, True, True, True, True, True, True),
}

ONE_DAY = timedelta(days=1)


@dataclass
class WorkCalendar:
    """
    Day-level work calendar.

    Attributes:
        calendar_id: Unique calendar identifier
        name: Display name
        work_week: Seven flags, Monday first, marking working weekdays
        hours_per_day: Seven hour counts, Monday first; 0 hours is non-working
        exceptions: Specific non-working dates (holidays)
    """
    calendar_id: str
    name: str = ''
    work_week: tuple = STANDARD_WEEKS[5]
    hours_per_day: tuple = (8.0, 8.0, 8.0, 8.0, 8.0, 0.0, 0.0)
    exceptions: set[date] = field(default_factory=set)

    def __post_init__(self):
        if len(self.work_week) != 7 or len(self.hours_per_day) != 7:
            raise ValueError(
                f"Calendar {self.calendar_id}: work_week and hours_per_day need 7 entries"
            )
        self.work_week = tuple(bool(d) for d in self.work_week)
        self.hours_per_day = tuple(float(h) for h in self.hours_per_day)
        self.exceptions = set(self.exceptions)

    @classmethod
    def standard(cls, days_per_week: int) -> 'WorkCalendar':
        """Build one of the built-in 5, 6 or 7-day calendars."""
        if days_per_week not in STANDARD_WEEKS:
            raise ValueError(f"No standard calendar with {days_per_week} work days")
        mask = STANDARD_WEEKS[days_per_week]
        return cls(
            calendar_id=str(days_per_week),
            name=f'{days_per_week}-day week',
            work_week=mask,
            hours_per_day=tuple(8.0 if on else 0.0 for on in mask),
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'WorkCalendar':
        """
        Build a calendar from the exported custom calendar format.

        The exported arrays are Sunday first; they are rotated to Monday first.
        """
        work_days = list(data.get('workDays') or [False, True, True, True, True, True, False])
        hours = data.get('hoursPerDay')
        if hours is None or not isinstance(hours, (list, tuple)):
            per_day = float(hours) if hours is not None else 8.0
            hours = [per_day if on else 0.0 for on in work_days]
        hours = list(hours)
        return cls(
            calendar_id=str(data['id']),
            name=data.get('name', ''),
            work_week=tuple(work_days[1:] + work_days[:1]),
            hours_per_day=tuple(hours[1:] + hours[:1]),
            exceptions={date.fromisoformat(d) for d in data.get('exceptions', [])},
        )

    def to_dict(self) -> dict:
        """Inverse of from_dict (Sunday-first arrays)."""
        return {
            'id': self.calendar_id,
            'name': self.name,
            'workDays': [self.work_week[6]] + list(self.work_week[:6]),
            'hoursPerDay': [self.hours_per_day[6]] + list(self.hours_per_day[:6]),
            'exceptions': sorted(d.isoformat() for d in self.exceptions),
        }

    @property
    def work_days_per_week(self) -> int:
        return sum(1 for i in range(7) if self._weekday_works(i))

    def _weekday_works(self, weekday: int) -> bool:
        return self.work_week[weekday] and self.hours_per_day[weekday] > 0

    def is_workday(self, day: date) -> bool:
        """Check if a date is a working day (exceptions override the week)."""
        if day in self.exceptions:
            return False
        return self._weekday_works(day.weekday())

    def next_workday(self, day: date) -> date:
        """Return day itself if it is a working day, else the next one."""
        self._require_work_days()
        while not self.is_workday(day):
            day += ONE_DAY
        return day

    def previous_workday(self, day: date) -> date:
        """Return day itself if it is a working day, else the previous one."""
        self._require_work_days()
        while not self.is_workday(day):
            day -= ONE_DAY
        return day

    def add_workdays(self, start: date, days: int) -> date:
        """
        Move a date by a number of working days.

        Steps one calendar day at a time in the direction of the sign and
        counts each working day landed on. Zero returns start unchanged,
        even when start is not a working day.

        Args:
            start: Starting date
            days: Working days to move (negative walks backwards)

        Returns:
            The date reached
        """
        days = int(round(days))
        if days == 0:
            return start
        self._require_work_days()

        step = ONE_DAY if days > 0 else -ONE_DAY
        remaining = abs(days)
        current = start
        while remaining > 0:
            current += step
            if self.is_workday(current):
                remaining -= 1
        return current

    def workdays_between(self, start: date, end: date) -> int:
        """
        Count working days in the half-open interval [start, end).

        Returns a negative count when end is before start.
        """
        if end < start:
            return -self.workdays_between(end, start)

        count = 0
        current = start
        while current < end:
            if self.is_workday(current):
                count += 1
            current += ONE_DAY
        return count

    def elapsed_working_ratio(self, start: date, end: date, target: date) -> float:
        """
        Fraction of the working days of [start, end) elapsed at target.

        Returns 0 at or before start and 1 at or after end. When the span
        holds no working days the plain calendar-day ratio is used.
        """
        if target <= start:
            return 0.0
        if target >= end:
            return 1.0

        total = self.workdays_between(start, end)
        if total <= 0:
            return (target - start).days / (end - start).days
        return self.workdays_between(start, target) / total

    def _require_work_days(self) -> None:
        if self.work_days_per_week == 0:
            raise ValueError(f"Calendar {self.calendar_id} has no working weekdays")

    def __repr__(self) -> str:
        return (f"WorkCalendar({self.calendar_id}, {self.work_days_per_week}-day week, "
                f"{len(self.exceptions)} exceptions)")


def default_calendars() -> dict[str, WorkCalendar]:
    """The built-in 5, 6 and 7-day calendars keyed by id."""
    return {str(n): WorkCalendar.standard(n) for n in STANDARD_WEEKS}


def resolve_calendar(calendars: dict[str, WorkCalendar], calendar_id: Optional[str],
                     default_calendar_id: Optional[str] = None) -> WorkCalendar:
    """Look up a calendar by id, falling back to the default calendar."""
    if calendar_id is not None and str(calendar_id) in calendars:
        return calendars[str(calendar_id)]
    if default_calendar_id is not None and str(default_calendar_id) in calendars:
        return calendars[str(default_calendar_id)]
    raise ValueError(f"Calendar {calendar_id} not found and no default available")
