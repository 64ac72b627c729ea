"""
Construction schedule CPM engine with Monte Carlo risk analysis.

Modules:
    cpm: calendars, activity network and the CPM scheduler
    baseline: baseline snapshots and planned progress
    risk: duration sampling, risk events and Monte Carlo simulation
    analysis: critical path and what-if reports
    commands: editing session that reschedules after every change
"""

__version__ = '0.1.0'

from .cpm import (
    Activity,
    ActivityNetwork,
    CPMEngine,
    GraphCycleError,
    Link,
    Project,
    ScheduleResult,
    SchedulingError,
    WorkCalendar,
    schedule,
)
from .commands import ScheduleSession
from .data_loader import load_project, load_project_json, load_risk_config
from .risk import MonteCarloEngine, SimulationJob

__all__ = [
    # Models
    'Activity',
    'Link',
    'Project',
    'ScheduleResult',
    # Core
    'WorkCalendar',
    'ActivityNetwork',
    'CPMEngine',
    'schedule',
    'SchedulingError',
    'GraphCycleError',
    'ScheduleSession',
    # Risk
    'MonteCarloEngine',
    'SimulationJob',
    # Loading
    'load_project',
    'load_project_json',
    'load_risk_config',
]
