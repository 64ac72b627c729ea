"""
Schedule and simulation export table schemas.

Output Location: {GANTT_OUTPUT_DIR}/
"""

from typing import Optional
from pydantic import BaseModel, Field


class ScheduleRow(BaseModel):
    """
    Scheduled activity table.

    File: schedule.csv
    """
    activity_id: str = Field(description="Activity ID")
    name: str = Field(description="Activity name")
    kind: str = Field(description="task, milestone or summary")
    level: int = Field(description="WBS outline level")
    duration: int = Field(description="Duration (working days)")
    remaining_duration: Optional[int] = Field(default=None, description="Remaining duration (working days)")
    calendar_id: str = Field(description="Calendar used")
    percent_complete: float = Field(description="Actual percent complete")
    predecessors: Optional[str] = Field(default=None, description="Predecessors as text, e.g. 'A; B SS+2'")
    constraint: Optional[str] = Field(default=None, description="Constraint type")
    constraint_date: Optional[str] = Field(default=None, description="Constraint date (ISO)")
    early_start: Optional[str] = Field(default=None, description="Early start (ISO)")
    early_finish: Optional[str] = Field(default=None, description="Early finish, exclusive (ISO)")
    late_start: Optional[str] = Field(default=None, description="Late start (ISO)")
    late_finish: Optional[str] = Field(default=None, description="Late finish, exclusive (ISO)")
    total_float: Optional[int] = Field(default=None, description="Total float (working days)")
    free_float: Optional[int] = Field(default=None, description="Free float (working days)")
    is_critical: bool = Field(description="On the critical path")
    constraint_violated: bool = Field(description="Constraint cannot be met")
    planned_percent: Optional[float] = Field(default=None, description="Planned percent at status date")


class ActivityRiskRow(BaseModel):
    """
    Per-activity Monte Carlo indices.

    File: activity_risk.csv
    """
    activity_id: str = Field(description="Activity ID")
    name: str = Field(description="Activity name")
    deterministic_duration: int = Field(description="Duration without uncertainty")
    criticality_index: float = Field(description="% of iterations on the critical path")
    sensitivity_index: Optional[float] = Field(default=None, description="Spearman rho vs project duration")


class IterationRow(BaseModel):
    """
    One Monte Carlo iteration.

    File: iterations.csv
    """
    iteration: int = Field(description="Iteration index")
    finish_date: str = Field(description="Project finish (ISO)")
    project_duration: int = Field(description="Project duration (working days)")
    critical_count: int = Field(description="Number of critical activities")
    risk_cost: float = Field(description="Sampled risk cost")
