"""
Unit tests for schema definitions.

Tests schema structure and validation logic without requiring actual data files.
"""

import warnings
from datetime import date, datetime

import pandas as pd
import pytest
from pydantic import BaseModel, ValidationError

from schemas.project import ActivityInput, ProjectFile
from schemas.registry import SCHEMA_REGISTRY, get_schema_for_file, list_registered_files
from schemas.risk import DurationDistribution, SimulationParams, SimulationResult
from schemas.schedule import ActivityRiskRow, IterationRow, ScheduleRow
from schemas.validator import (
    SchemaValidationError,
    pandas_dtype_to_python_type,
    pydantic_type_to_string,
    types_compatible,
    validate_dataframe,
    validate_output_file,
    validated_df_to_csv,
)


class TestSchemaDefinitions:
    """Test that schema definitions are valid Pydantic models."""

    @pytest.mark.parametrize("schema", [ScheduleRow, ActivityRiskRow, IterationRow])
    def test_schema_is_pydantic_model(self, schema):
        """Each schema should be a valid Pydantic BaseModel."""
        assert issubclass(schema, BaseModel)

    @pytest.mark.parametrize("schema", [ScheduleRow, ActivityRiskRow])
    def test_activity_tables_keyed_by_activity(self, schema):
        assert 'activity_id' in schema.model_fields


class TestSchemaRegistry:
    """Test schema registry functionality."""

    def test_all_registered_schemas_are_valid(self):
        for filename, schema in SCHEMA_REGISTRY.items():
            assert issubclass(schema, BaseModel), f"Schema for {filename} is not a Pydantic model"

    def test_get_schema_for_file_with_path(self):
        assert get_schema_for_file('/some/output/schedule.csv') == ScheduleRow

    def test_get_schema_for_unknown_file(self):
        assert get_schema_for_file('unknown.csv') is None

    def test_list_registered_files(self):
        assert list_registered_files() == ['activity_risk.csv', 'iterations.csv', 'schedule.csv']


class TestTypeMapping:
    """Dtype and annotation conversions."""

    @pytest.mark.parametrize("dtype,expected", [
        ('int64', 'int'),
        ('Int64', 'int'),
        ('float64', 'float'),
        ('object', 'str'),
        ('bool', 'bool'),
        ('datetime64[ns]', 'datetime'),
    ])
    def test_pandas_dtype(self, dtype, expected):
        assert pandas_dtype_to_python_type(dtype) == expected

    def test_optional_unwrapped(self):
        assert pydantic_type_to_string(ScheduleRow.model_fields['total_float'].annotation) == 'int'

    @pytest.mark.parametrize("pandas_type,pydantic_type,ok", [
        ('int', 'float', True),
        ('float', 'int', True),
        ('float', 'str', True),
        ('bool', 'str', False),
    ])
    def test_compatibility(self, pandas_type, pydantic_type, ok):
        assert types_compatible(pandas_type, pydantic_type) is ok


class TestValidateDataFrame:
    """DataFrame checks before export."""

    @pytest.fixture
    def iterations_df(self) -> pd.DataFrame:
        return pd.DataFrame({
            'iteration': [0, 1],
            'finish_date': ['2025-03-17', '2025-03-18'],
            'project_duration': [10, 11],
            'critical_count': [3, 3],
            'risk_cost': [0.0, 150.0],
        })

    def test_valid(self, iterations_df):
        assert validate_dataframe(iterations_df, IterationRow) == []

    def test_missing_column(self, iterations_df):
        errors = validate_dataframe(iterations_df.drop(columns=['risk_cost']), IterationRow)
        assert any('risk_cost' in e for e in errors)

    def test_extra_column_strict(self, iterations_df):
        iterations_df['extra'] = 1
        assert validate_dataframe(iterations_df, IterationRow) == []
        assert validate_dataframe(iterations_df, IterationRow, strict=True)

    def test_type_mismatch(self, iterations_df):
        iterations_df['project_duration'] = [True, False]
        errors = validate_dataframe(iterations_df, IterationRow)
        assert any('project_duration' in e for e in errors)

    def test_write_validated(self, iterations_df, tmp_path):
        path = tmp_path / 'out' / 'iterations.csv'
        validated_df_to_csv(iterations_df, path, index=False)
        assert validate_output_file(path, IterationRow) == []

    def test_write_invalid_raises(self, iterations_df, tmp_path):
        with pytest.raises(SchemaValidationError) as exc_info:
            validated_df_to_csv(iterations_df.drop(columns=['iteration']),
                                tmp_path / 'iterations.csv')
        assert exc_info.value.missing_columns == ['iteration']

    def test_unregistered_file_warns(self, iterations_df, tmp_path):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            validated_df_to_csv(iterations_df, tmp_path / 'other.csv', index=False)
        assert caught and 'No schema registered' in str(caught[0].message)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            validate_output_file(tmp_path / 'none.csv', IterationRow)


class TestInputSchemas:
    """Aliases and coercions of the import formats."""

    def test_activity_aliases(self):
        activity = ActivityInput.model_validate({
            'id': 'A1', 'type': 'milestone', 'lv': 3, 'dur': 0, 'cal': 6,
            'actualStart': '2025-03-03T08:00:00.000Z', 'constraint': '',
        })
        assert activity.activity_id == 'A1'
        assert activity.kind == 'milestone'
        assert activity.calendar_id == '6'
        assert activity.actual_start == date(2025, 3, 3)

    def test_rejects_unknown_constraint(self):
        with pytest.raises(ValidationError):
            ActivityInput.model_validate({'id': 'A1', 'constraint': 'ALAP'})

    def test_rejects_percent_over_100(self):
        with pytest.raises(ValidationError):
            ActivityInput.model_validate({'id': 'A1', 'pct': 120})

    def test_project_defaults(self):
        project = ProjectFile.model_validate({'projStart': '2025-03-03'})
        assert project.default_calendar == '5'
        assert project.activities == []


class TestRiskSchemas:
    """Distribution and result models."""

    def test_distribution_alias(self):
        dist = DurationDistribution.model_validate({'type': 'betaPERT', 'min': 1, 'mostLikely': 2, 'max': 5})
        assert dist.most_likely == 2
        assert not dist.is_deterministic()

    def test_default_params(self):
        params = SimulationParams()
        assert params.iterations == 1000
        assert params.confidence_levels == [10, 25, 50, 75, 80, 90]

    def test_result_is_frozen(self):
        result = SimulationResult(
            id='run_1', name='r', run_at=datetime(2025, 3, 1), params=SimulationParams(),
            requested_iterations=1, completed_iterations=1,
            duration_percentiles={50: 10}, date_percentiles={50: date(2025, 3, 17)},
            deterministic_duration=10, deterministic_finish=date(2025, 3, 17),
            mean_duration=10, std_dev_duration=0, criticality_index={}, sensitivity_index={},
            histogram=[], distributions_snapshot={}, risk_events_snapshot=[],
        )
        assert result.p(50) == 10
        assert result.p(95) is None
        with pytest.raises(ValidationError):
            result.name = 'changed'
        assert '"durationPercentiles"' in result.model_dump_json(by_alias=True)
