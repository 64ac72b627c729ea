"""
Project import schemas.

Describes the JSON project snapshot handed over by the surrounding
application: project settings, custom calendars and the activity table.
Field aliases follow the exported camelCase / short names.
"""

from datetime import date
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


LinkType = Literal['FS', 'SS', 'FF', 'SF']
ConstraintType = Literal['', 'SNET', 'SNLT', 'MSO', 'MFO', 'FNET', 'FNLT']


def settings_default(name: str):
    """Default factory that reads an application setting when a model is built."""
    def factory():
        from gantt_cpm.config.settings import settings
        value = getattr(settings, name)
        return list(value) if isinstance(value, list) else value
    return factory


class PredecessorLinkInput(BaseModel):
    """One predecessor link as stored on the successor."""
    model_config = {'populate_by_name': True}

    predecessor_id: str = Field(alias='id', description="ID of the predecessor activity")
    link_type: LinkType = Field(default='FS', alias='type', description="Link type")
    lag: int = Field(default=0, description="Lag in working days (may be negative)")


class ResourceInput(BaseModel):
    """Resource assignment on an activity."""
    model_config = {'populate_by_name': True}

    name: str = Field(description="Resource name")
    work: float = Field(default=0.0, description="Assigned work hours")
    units: Union[str, float] = Field(default='100%', description="Assignment units, e.g. '100%'")

    def units_percent(self) -> float:
        if isinstance(self.units, str):
            text = self.units.strip().rstrip('%')
            return float(text) if text else 100.0
        return float(self.units)


class BaselineInput(BaseModel):
    """Stored baseline snapshot of one activity."""
    model_config = {'populate_by_name': True}

    duration: int = Field(alias='dur', description="Baseline duration (working days)")
    start: Optional[date] = Field(default=None, alias='ES', description="Baseline start")
    finish: Optional[date] = Field(default=None, alias='EF', description="Baseline finish (exclusive)")
    calendar_id: Optional[str] = Field(default=None, alias='cal', description="Baseline calendar")
    percent_complete: float = Field(default=0.0, alias='pct', description="Percent complete at save")
    status_date: Optional[date] = Field(default=None, alias='statusDate', description="Status date at save")
    work: float = Field(default=0.0, description="Work hours at save")
    weight: Optional[float] = Field(default=None, description="Weight at save")
    name: str = Field(default='', description="Baseline label")
    description: str = Field(default='', description="Baseline notes")

    @field_validator('calendar_id', mode='before')
    @classmethod
    def _calendar_to_str(cls, value):
        return None if value in (None, '') else str(value)

    @field_validator('start', 'finish', 'status_date', mode='before')
    @classmethod
    def _trim_timestamp(cls, value):
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value or None


class ActivityInput(BaseModel):
    """
    Activity row of the project snapshot.

    Predecessors may be given as a list of links or as text ("A; B SS+2").
    """
    model_config = {'populate_by_name': True}

    activity_id: str = Field(alias='id', description="Unique activity ID")
    name: str = Field(default='', description="Activity name")
    kind: Literal['task', 'milestone', 'summary'] = Field(default='task', alias='type')
    level: int = Field(default=1, alias='lv', ge=0, description="WBS outline level")
    duration: int = Field(default=0, alias='dur', ge=0, description="Duration in working days")
    remaining_duration: Optional[int] = Field(default=None, alias='remDur', ge=0)
    calendar_id: Optional[str] = Field(default=None, alias='cal', description="Calendar ID")
    percent_complete: float = Field(default=0.0, alias='pct', ge=0, le=100)
    predecessors: Union[list[PredecessorLinkInput], str] = Field(default_factory=list, alias='preds')
    constraint: ConstraintType = Field(default='', description="Constraint type")
    constraint_date: Optional[date] = Field(default=None, alias='constraintDate')
    actual_start: Optional[date] = Field(default=None, alias='actualStart')
    actual_finish: Optional[date] = Field(default=None, alias='actualFinish')
    work: float = Field(default=0.0, description="Total work hours")
    weight: Optional[float] = Field(default=None, description="Weight for percent roll-up")
    resources: list[ResourceInput] = Field(default_factory=list)
    baselines: list[Optional[BaselineInput]] = Field(default_factory=list)
    notes: str = Field(default='')

    @field_validator('calendar_id', mode='before')
    @classmethod
    def _calendar_to_str(cls, value):
        return None if value in (None, '') else str(value)

    @field_validator('constraint_date', 'actual_start', 'actual_finish', mode='before')
    @classmethod
    def _blank_date(cls, value):
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value or None


class CalendarInput(BaseModel):
    """Custom calendar (weekday arrays are Sunday first)."""
    model_config = {'populate_by_name': True}

    id: str = Field(description="Calendar ID")
    name: str = Field(default='', description="Display name")
    work_days: list[bool] = Field(alias='workDays', min_length=7, max_length=7)
    hours_per_day: Union[list[float], float] = Field(default=8.0, alias='hoursPerDay')
    exceptions: list[date] = Field(default_factory=list, description="Non-working dates")

    @field_validator('id', mode='before')
    @classmethod
    def _id_to_str(cls, value):
        return str(value)


class ProjectFile(BaseModel):
    """
    Complete project snapshot.

    File: project JSON export
    """
    model_config = {'populate_by_name': True}

    name: str = Field(default='Project', alias='projName')
    start: date = Field(alias='projStart', description="Project start date")
    default_calendar: str = Field(default_factory=settings_default('DEFAULT_CALENDAR'), alias='defCal',
                                  description="Default calendar ID")
    status_date: Optional[date] = Field(default=None, alias='statusDate')
    active_baseline: int = Field(default=0, alias='activeBaselineIdx', ge=0, le=10)
    calendars: list[CalendarInput] = Field(default_factory=list, alias='customCalendars')
    activities: list[ActivityInput] = Field(default_factory=list)

    @field_validator('default_calendar', mode='before')
    @classmethod
    def _calendar_to_str(cls, value):
        return str(value)

    @field_validator('start', 'status_date', mode='before')
    @classmethod
    def _trim_timestamp(cls, value):
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        return value or None
