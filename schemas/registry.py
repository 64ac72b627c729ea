"""
Schema registry mapping export file names to their Pydantic schemas.

Lets writers look up the schema of an export by its file name so every
table leaving the engine is checked before it is written.
"""

from pathlib import Path
from typing import Dict, Optional, Type

from pydantic import BaseModel

from .schedule import ActivityRiskRow, IterationRow, ScheduleRow


# Keys are file names (without path), values are Pydantic model classes
SCHEMA_REGISTRY: Dict[str, Type[BaseModel]] = {
    'schedule.csv': ScheduleRow,
    'activity_risk.csv': ActivityRiskRow,
    'iterations.csv': IterationRow,
}


def get_schema_for_file(file_path: str) -> Optional[Type[BaseModel]]:
    """
    Get the schema for a file based on its name.

    Args:
        file_path: Path to the file (can be full path or just filename)

    Returns:
        Pydantic model class or None if no schema registered
    """
    filename = Path(file_path).name
    return SCHEMA_REGISTRY.get(filename)


def list_registered_files() -> list:
    """Return list of all registered file names."""
    return sorted(SCHEMA_REGISTRY.keys())
