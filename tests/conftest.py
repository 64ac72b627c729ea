"""Pytest configuration and fixtures."""
from datetime import date

import pytest

from gantt_cpm.cpm import Activity, ActivityNetwork, Link, Project, WorkCalendar, default_calendars
from schemas.risk import DurationDistribution

# Monday
PROJECT_START = date(2025, 3, 3)


@pytest.fixture
def calendars() -> dict[str, WorkCalendar]:
    """Built-in 5, 6 and 7-day calendars."""
    return default_calendars()


@pytest.fixture
def project() -> Project:
    """Project starting Monday 2025-03-03 on the 5-day calendar."""
    return Project(start=PROJECT_START, name='Test Project')


@pytest.fixture
def chain_network() -> ActivityNetwork:
    """Three-activity chain A(5) -> B(3) -> C(2)."""
    return ActivityNetwork([
        Activity('A', name='Excavation', duration=5),
        Activity('B', name='Foundations', duration=3, predecessors=[Link('A')]),
        Activity('C', name='Backfill', duration=2, predecessors=[Link('B')]),
    ])


@pytest.fixture
def wbs_network() -> ActivityNetwork:
    """Two WBS summaries with a parallel branch that carries float."""
    return ActivityNetwork([
        Activity('S1', name='Civil works', kind='summary', level=1),
        Activity('A', name='Excavation', duration=5, level=2),
        Activity('B', name='Foundations', duration=3, level=2, predecessors=[Link('A')]),
        Activity('S2', name='Services', kind='summary', level=1),
        Activity('D', name='Drainage', duration=2, level=2, predecessors=[Link('A')]),
        Activity('M', name='Handover', kind='milestone', level=2,
                 predecessors=[Link('B'), Link('D')]),
    ])


@pytest.fixture
def triangular_b() -> dict[str, DurationDistribution]:
    """Triangular uncertainty on activity B of the chain."""
    return {'B': DurationDistribution(type='triangular', min=2, most_likely=3, max=6)}
