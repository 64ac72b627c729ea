"""
Data Loader for project snapshots.

Loads activities, calendars and risk configuration from JSON or CSV
exports and constructs ActivityNetwork objects for CPM analysis; also
turns scheduling and simulation results back into export tables.
"""

import json
import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd

from schemas.project import ActivityInput, ProjectFile
from schemas.risk import RiskAnalysisConfig, SimulationResult

from .config.settings import settings
from .cpm.calendar import WorkCalendar, default_calendars
from .cpm.models import (
    Activity,
    BaselineEntry,
    Constraint,
    Link,
    Project,
    ResourceAssignment,
    ScheduleResult,
)
from .cpm.network import ActivityNetwork
from .risk.statistics import IterationRecord

logger = logging.getLogger(__name__)

PREDECESSOR_PATTERN = re.compile(r'^(\S+?)(?:\s+(FS|SS|FF|SF))?([+-]\d+)?$', re.IGNORECASE)

# CSV header aliases -> ActivityInput field names
CSV_COLUMNS = {
    'ID': 'activity_id',
    'Nombre': 'name', 'Name': 'name',
    'Tipo': 'kind', 'Type': 'kind',
    'Duracion': 'duration', 'Duration': 'duration',
    'DurRestante': 'remaining_duration', 'RemainingDuration': 'remaining_duration',
    'Calendario': 'calendar_id', 'Calendar': 'calendar_id',
    'Avance%': 'percent_complete', 'PercentComplete': 'percent_complete',
    'Predecesoras': 'predecessors', 'Predecessors': 'predecessors',
    'Nivel': 'level', 'Level': 'level',
    'Restriccion': 'constraint', 'Constraint': 'constraint',
    'FechaRestriccion': 'constraint_date', 'ConstraintDate': 'constraint_date',
    'InicioReal': 'actual_start', 'ActualStart': 'actual_start',
    'FinReal': 'actual_finish', 'ActualFinish': 'actual_finish',
    'Trabajo': 'work', 'Work': 'work',
    'Peso': 'weight', 'Weight': 'weight',
    'Notas': 'notes', 'Notes': 'notes',
}
NUMERIC_FIELDS = {'duration', 'remaining_duration', 'percent_complete', 'level', 'work', 'weight'}
KIND_LABELS = {'tarea': 'task', 'hito': 'milestone', 'resumen': 'summary'}


def parse_predecessors(text: str) -> list[Link]:
    """
    Parse predecessor text such as "A1; A2 SS+3, A3 FF-1".

    Entries that do not match the "<id>[ <type>][<+/-lag>]" pattern are
    skipped with a warning.
    """
    links = []
    if not text or not str(text).strip():
        return links
    for token in re.split(r'[;,]', str(text)):
        token = token.strip()
        if not token:
            continue
        match = PREDECESSOR_PATTERN.match(token)
        if not match:
            logger.warning(f"Ignoring unparseable predecessor {token!r}")
            continue
        links.append(Link(
            predecessor_id=match.group(1),
            link_type=(match.group(2) or 'FS').upper(),
            lag=int(match.group(3) or 0),
        ))
    return links


def format_predecessors(links: list[Link]) -> str:
    """Inverse of parse_predecessors."""
    return '; '.join(str(link) for link in links)


def activity_from_input(data: ActivityInput) -> Activity:
    """Build an Activity from a validated import row."""
    if isinstance(data.predecessors, str):
        links = parse_predecessors(data.predecessors)
    else:
        links = [Link(p.predecessor_id, p.link_type, p.lag) for p in data.predecessors]

    constraint = None
    if data.constraint:
        if data.constraint_date is None:
            logger.warning(f"Activity {data.activity_id}: {data.constraint} without a date ignored")
        else:
            constraint = Constraint(data.constraint, data.constraint_date)

    baselines = [
        None if bl is None else BaselineEntry(
            duration=bl.duration, start=bl.start, finish=bl.finish,
            calendar_id=bl.calendar_id, percent_complete=bl.percent_complete,
            status_date=bl.status_date, work=bl.work, weight=bl.weight,
            name=bl.name, description=bl.description,
        )
        for bl in data.baselines
    ]

    return Activity(
        activity_id=data.activity_id,
        name=data.name,
        kind=data.kind,
        level=data.level,
        duration=data.duration,
        remaining_duration=data.remaining_duration,
        calendar_id=data.calendar_id,
        percent_complete=data.percent_complete,
        predecessors=links,
        constraint=constraint,
        actual_start=data.actual_start,
        actual_finish=data.actual_finish,
        resources=[ResourceAssignment(r.name, r.units_percent(), r.work) for r in data.resources],
        work=data.work,
        weight=data.weight,
        notes=data.notes,
        baselines=baselines,
    )


def project_from_file(
    data: ProjectFile,
) -> tuple[ActivityNetwork, dict[str, WorkCalendar], Project]:
    """
    Convert a validated project snapshot into engine objects.

    Returns:
        Tuple of (network, calendars, project). Calendars hold the built-in
        5/6/7-day calendars plus every custom calendar.
    """
    calendars = default_calendars()
    for cal in data.calendars:
        calendars[cal.id] = WorkCalendar.from_dict(cal.model_dump(by_alias=True, mode='json'))

    network = ActivityNetwork([activity_from_input(a) for a in data.activities])
    for issue in network.validate():
        logger.warning(issue)

    project = Project(
        start=data.start,
        name=data.name,
        default_calendar_id=data.default_calendar,
        status_date=data.status_date,
        active_baseline=data.active_baseline,
    )
    return network, calendars, project


def load_project_json(path: Path) -> tuple[ActivityNetwork, dict[str, WorkCalendar], Project]:
    """Load a project snapshot JSON file."""
    path = Path(path)
    data = ProjectFile.model_validate_json(path.read_text(encoding='utf-8'))
    logger.info(f"Loaded {len(data.activities)} activities from {path}")
    return project_from_file(data)


def load_activities_csv(path: Path) -> list[Activity]:
    """
    Load activities from a CSV export.

    Both the Spanish headers of the scheduling application and English
    headers are accepted; unknown columns are ignored.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding='utf-8-sig')
    df = df.rename(columns={c: CSV_COLUMNS[c.strip()] for c in df.columns if c.strip() in CSV_COLUMNS})
    if 'activity_id' not in df.columns:
        raise ValueError(f"{path}: CSV needs an ID column")

    activities = []
    for _, row in df.iterrows():
        values = {}
        for column in set(CSV_COLUMNS.values()) & set(df.columns):
            value = str(row[column]).strip()
            if value == '':
                continue
            if column in NUMERIC_FIELDS:
                value = float(value.rstrip('%'))
                if column in ('duration', 'remaining_duration', 'level'):
                    value = int(value)
            values[column] = value
        if 'kind' in values:
            values['kind'] = KIND_LABELS.get(values['kind'].lower(), values['kind'].lower())
        if not values.get('activity_id'):
            continue
        activities.append(activity_from_input(ActivityInput.model_validate(values)))

    logger.info(f"Loaded {len(activities)} activities from {path}")
    return activities


def load_project_csv(
    path: Path,
    start: date,
    default_calendar: Optional[str] = None,
    status_date: Optional[date] = None,
    name: str = 'Project',
) -> tuple[ActivityNetwork, dict[str, WorkCalendar], Project]:
    """Load a CSV activity table with project settings supplied by the caller."""
    network = ActivityNetwork(load_activities_csv(path))
    for issue in network.validate():
        logger.warning(issue)
    default_calendar = str(default_calendar or settings.DEFAULT_CALENDAR)
    project = Project(start=start, name=name, default_calendar_id=default_calendar,
                      status_date=status_date)
    return network, default_calendars(), project


def load_project(path: Path, start: Optional[date] = None, **kwargs):
    """
    Load a project from JSON or CSV depending on the file extension.

    A JSON snapshot carries its own settings; a start date or any of
    load_project_csv's keyword settings passed here override them.
    """
    path = Path(path)
    if path.suffix.lower() == '.json':
        network, calendars, project = load_project_json(path)
        if start is not None:
            project.start = start
        if kwargs.get('default_calendar'):
            project.default_calendar_id = str(kwargs['default_calendar'])
        if kwargs.get('status_date'):
            project.status_date = kwargs['status_date']
        if kwargs.get('name'):
            project.name = kwargs['name']
        return network, calendars, project
    if start is None:
        raise ValueError("A project start date is required for CSV input")
    return load_project_csv(path, start, **kwargs)


def load_risk_config(path: Path) -> RiskAnalysisConfig:
    """Load a risk analysis configuration JSON file."""
    path = Path(path)
    return RiskAnalysisConfig.model_validate(json.loads(path.read_text(encoding='utf-8')))


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def schedule_to_dataframe(result: ScheduleResult,
                          default_calendar_id: Optional[str] = None) -> pd.DataFrame:
    """Flatten a ScheduleResult into the schedule.csv table."""
    default_calendar_id = default_calendar_id or settings.DEFAULT_CALENDAR
    rows = []
    for a in result.network:
        rows.append({
            'activity_id': a.activity_id,
            'name': a.name,
            'kind': a.kind,
            'level': a.level,
            'duration': a.duration,
            'remaining_duration': a.get_remaining_duration() if not a.is_summary() else None,
            'calendar_id': a.calendar_id or default_calendar_id,
            'percent_complete': float(a.percent_complete),
            'predecessors': format_predecessors(a.predecessors),
            'constraint': a.constraint.constraint_type if a.constraint else None,
            'constraint_date': _iso(a.constraint.date) if a.constraint else None,
            'early_start': _iso(a.early_start),
            'early_finish': _iso(a.early_finish),
            'late_start': _iso(a.late_start),
            'late_finish': _iso(a.late_finish),
            'total_float': a.total_float,
            'free_float': a.free_float,
            'is_critical': bool(a.is_critical),
            'constraint_violated': bool(a.constraint_violated),
            'planned_percent': a.planned_percent,
        })
    df = pd.DataFrame(rows)
    for column in ('remaining_duration', 'total_float', 'free_float'):
        if column in df:
            df[column] = df[column].astype('Int64')
    return df


def activity_risk_to_dataframe(result: SimulationResult, network: ActivityNetwork) -> pd.DataFrame:
    """Per-activity criticality and sensitivity table (activity_risk.csv)."""
    rows = []
    for activity in network:
        if activity.is_summary():
            continue
        rows.append({
            'activity_id': activity.activity_id,
            'name': activity.name,
            'deterministic_duration': activity.duration,
            'criticality_index': result.criticality_index.get(activity.activity_id, 0.0),
            'sensitivity_index': result.sensitivity_index.get(activity.activity_id),
        })
    df = pd.DataFrame(rows, columns=['activity_id', 'name', 'deterministic_duration',
                                     'criticality_index', 'sensitivity_index'])
    df['sensitivity_index'] = df['sensitivity_index'].astype(float)
    return df.sort_values('criticality_index', ascending=False, kind='stable')


def iterations_to_dataframe(records: list[IterationRecord]) -> pd.DataFrame:
    """One row per completed Monte Carlo iteration (iterations.csv)."""
    return pd.DataFrame(
        [
            {
                'iteration': r.index,
                'finish_date': r.finish_date.isoformat(),
                'project_duration': r.project_duration,
                'critical_count': len(r.critical_ids),
                'risk_cost': float(r.risk_cost),
            }
            for r in records
        ],
        columns=['iteration', 'finish_date', 'project_duration', 'critical_count', 'risk_cost'],
    )
