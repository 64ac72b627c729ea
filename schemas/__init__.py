"""
Data schemas for the scheduling engine.

Pydantic models for the project snapshot consumed by the engine, the risk
analysis configuration, the SimulationResult record and the exported
tables, plus validation of tables before they are written.

Usage:
    from schemas import ProjectFile, RiskAnalysisConfig, validated_df_to_csv

    project = ProjectFile.model_validate_json(path.read_text())
    validated_df_to_csv(df, output_dir / 'schedule.csv', index=False)
"""

from .project import ActivityInput, CalendarInput, PredecessorLinkInput, ProjectFile
from .risk import (
    DurationDistribution,
    HistogramBin,
    RiskAnalysisConfig,
    RiskEvent,
    RiskTaskImpact,
    SimulationParams,
    SimulationResult,
)
from .schedule import ActivityRiskRow, IterationRow, ScheduleRow
from .validator import (
    validate_output_file,
    validate_dataframe,
    validated_df_to_csv,
    SchemaValidationError,
)
from .registry import SCHEMA_REGISTRY, get_schema_for_file

__all__ = [
    'ActivityInput',
    'ActivityRiskRow',
    'CalendarInput',
    'DurationDistribution',
    'HistogramBin',
    'IterationRow',
    'PredecessorLinkInput',
    'ProjectFile',
    'RiskAnalysisConfig',
    'RiskEvent',
    'RiskTaskImpact',
    'ScheduleRow',
    'SimulationParams',
    'SimulationResult',
    'validate_output_file',
    'validate_dataframe',
    'validated_df_to_csv',
    'SchemaValidationError',
    'SCHEMA_REGISTRY',
    'get_schema_for_file',
]
