"""
Unit tests for project import and result export.
"""

import json
from datetime import date

import pytest
from pydantic import ValidationError

from gantt_cpm.cpm.engine import schedule
from gantt_cpm.cpm.models import Link
from gantt_cpm.data_loader import (
    activity_risk_to_dataframe,
    format_predecessors,
    iterations_to_dataframe,
    load_activities_csv,
    load_project,
    load_project_json,
    load_risk_config,
    parse_predecessors,
    schedule_to_dataframe,
)
from gantt_cpm.risk.monte_carlo import MonteCarloEngine
from schemas.risk import SimulationParams
from schemas.validator import validate_dataframe
from schemas.schedule import ActivityRiskRow, IterationRow, ScheduleRow


PROJECT_JSON = {
    'projName': 'Tower A',
    'projStart': '2025-03-03T00:00:00.000Z',
    'defCal': 5,
    'statusDate': None,
    'activeBaselineIdx': 0,
    'customCalendars': [
        {'id': 9, 'name': 'Sun-Thu', 'workDays': [True, True, True, True, True, False, False],
         'hoursPerDay': 9},
    ],
    'activities': [
        {'id': 'S', 'name': 'Structure', 'type': 'summary', 'lv': 1},
        {'id': 'A', 'name': 'Excavation', 'lv': 2, 'dur': 5, 'preds': []},
        {'id': 'B', 'name': 'Foundations', 'lv': 2, 'dur': 3,
         'preds': [{'id': 'A', 'type': 'FS', 'lag': 0}],
         'resources': [{'name': 'Crew 1', 'units': '50%', 'work': 24}]},
        {'id': 'C', 'name': 'Backfill', 'lv': 2, 'dur': 2, 'preds': 'B SS+1',
         'constraint': 'SNET', 'constraintDate': '2025-03-12', 'cal': 5,
         'baselines': [{'dur': 2, 'ES': '2025-03-11', 'EF': '2025-03-13', 'pct': 0}]},
    ],
}


@pytest.fixture
def project_file(tmp_path):
    path = tmp_path / 'project.json'
    path.write_text(json.dumps(PROJECT_JSON), encoding='utf-8')
    return path


class TestPredecessorText:
    """'A; B SS+2' style predecessor strings."""

    def test_parse(self):
        assert parse_predecessors('A; B SS+2, C ff-1, D+3') == [
            Link('A'), Link('B', 'SS', 2), Link('C', 'FF', -1), Link('D', 'FS', 3),
        ]

    @pytest.mark.parametrize("text", ['', '   ', None])
    def test_empty(self, text):
        assert parse_predecessors(text) == []

    def test_bad_token_skipped(self):
        assert parse_predecessors('A; not a link; B') == [Link('A'), Link('B')]

    def test_format_is_inverse(self):
        text = 'A; B SS+2; C FF-1'
        assert format_predecessors(parse_predecessors(text)) == text


class TestProjectJson:
    """Project snapshot import."""

    def test_project_settings(self, project_file):
        network, calendars, project = load_project_json(project_file)
        assert project.name == 'Tower A'
        assert project.start == date(2025, 3, 3)
        assert project.default_calendar_id == '5'
        assert project.status_date is None
        assert {'5', '6', '7', '9'} <= set(calendars)

    def test_activities(self, project_file):
        network, _, _ = load_project_json(project_file)
        assert list(network.activities) == ['S', 'A', 'B', 'C']
        c = network.get_required('C')
        assert c.predecessors == [Link('B', 'SS', 1)]
        assert c.constraint.constraint_type == 'SNET'
        assert c.get_baseline(0).finish == date(2025, 3, 13)
        assert network.get_required('B').resources[0].units == 50.0
        assert network.get_children('S') == ['A', 'B', 'C']

    def test_loaded_project_schedules(self, project_file):
        network, calendars, project = load_project_json(project_file)
        result = schedule(network, calendars, project)
        c = result.activities['C']
        assert (c.early_start, c.early_finish) == (date(2025, 3, 12), date(2025, 3, 14))
        assert result.activities['S'].early_finish == date(2025, 3, 14)

    def test_custom_calendar(self, project_file):
        _, calendars, _ = load_project_json(project_file)
        assert calendars['9'].is_workday(date(2025, 3, 2))

    def test_invalid_file(self, tmp_path):
        path = tmp_path / 'bad.json'
        path.write_text(json.dumps({'activities': []}), encoding='utf-8')
        with pytest.raises(ValidationError):
            load_project_json(path)

    def test_load_project_dispatch(self, project_file, tmp_path):
        network, _, _ = load_project(project_file)
        assert len(network) == 4
        with pytest.raises(ValueError):
            load_project(tmp_path / 'activities.csv')

    def test_json_settings_overridden(self, project_file):
        _, _, project = load_project(project_file, start=date(2025, 3, 10), default_calendar='7',
                                     status_date=date(2025, 3, 12))
        assert project.start == date(2025, 3, 10)
        assert project.default_calendar_id == '7'
        assert project.status_date == date(2025, 3, 12)


class TestActivitiesCsv:
    """CSV activity tables with Spanish or English headers."""

    def test_spanish_headers(self, tmp_path):
        path = tmp_path / 'acts.csv'
        path.write_text(
            'ID,Nombre,Tipo,Nivel,Duracion,Avance%,Predecesoras\n'
            'S,"Obra gruesa, torre A",Resumen,1,,,\n'
            'A,Excavacion,Tarea,2,5,40%,\n'
            'B,Fundaciones,Tarea,2,3,0,A\n'
            'M,Entrega,Hito,2,,0,B FF+1\n',
            encoding='utf-8',
        )
        activities = load_activities_csv(path)
        by_id = {a.activity_id: a for a in activities}
        assert by_id['S'].is_summary()
        assert by_id['S'].name == 'Obra gruesa, torre A'
        assert by_id['A'].percent_complete == 40.0
        assert by_id['M'].kind == 'milestone'
        assert by_id['M'].predecessors == [Link('B', 'FF', 1)]

    def test_english_headers_with_bom(self, tmp_path):
        path = tmp_path / 'acts.csv'
        path.write_bytes(
            '\ufeffID,Name,Duration,Predecessors,Calendar\nA,Dig,4,,6\nB,Pour,2,A SS+1,\n'.encode('utf-8')
        )
        activities = load_activities_csv(path)
        assert [a.activity_id for a in activities] == ['A', 'B']
        assert activities[0].calendar_id == '6'
        assert activities[1].calendar_id is None

    def test_missing_id_column(self, tmp_path):
        path = tmp_path / 'acts.csv'
        path.write_text('Name,Duration\nDig,4\n', encoding='utf-8')
        with pytest.raises(ValueError):
            load_activities_csv(path)

    def test_load_project_csv(self, tmp_path):
        path = tmp_path / 'acts.csv'
        path.write_text('ID,Duration,Predecessors\nA,5,\nB,3,A\n', encoding='utf-8')
        network, calendars, project = load_project(path, start=date(2025, 3, 3))
        assert schedule(network, calendars, project).project_duration == 8


class TestRiskConfig:
    """Risk configuration import."""

    def test_load(self, tmp_path):
        path = tmp_path / 'risk.json'
        path.write_text(json.dumps({
            'distributions': {'A': {'type': 'triangular', 'min': 4, 'mostLikely': 5, 'max': 9}},
            'riskEvents': [{'id': 'R1', 'probability': 30, 'quantified': True,
                            'taskImpacts': [{'taskId': 'A', 'scheduleShape': 'uniform',
                                             'scheduleMin': 1, 'scheduleMax': 3}]}],
            'params': {'iterations': 500, 'seed': 1, 'useMitigated': True},
        }), encoding='utf-8')
        config = load_risk_config(path)
        assert config.distributions['A'].most_likely == 5
        assert config.risk_events[0].task_impacts[0].schedule_max == 3
        assert config.params.use_mitigated


class TestExportTables:
    """Result tables match their registered schemas."""

    def test_schedule_table(self, wbs_network, calendars, project):
        df = schedule_to_dataframe(schedule(wbs_network, calendars, project))
        assert validate_dataframe(df, ScheduleRow, strict=True) == []
        row = df.set_index('activity_id').loc['D']
        assert row['total_float'] == 1
        assert row['early_finish'] == '2025-03-12'
        assert row['predecessors'] == 'A'

    def test_risk_tables(self, chain_network, calendars, project, triangular_b):
        engine = MonteCarloEngine(chain_network, calendars, project, triangular_b)
        result = engine.run(SimulationParams(iterations=50, seed=1))

        risk_df = activity_risk_to_dataframe(result, chain_network)
        assert validate_dataframe(risk_df, ActivityRiskRow, strict=True) == []
        assert list(risk_df['criticality_index']) == [100.0, 100.0, 100.0]

        iterations_df = iterations_to_dataframe(engine.records)
        assert validate_dataframe(iterations_df, IterationRow, strict=True) == []
        assert len(iterations_df) == 50
