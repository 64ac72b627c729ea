"""
Schema validation for exported tables.

Checks a DataFrame's columns and dtypes against a Pydantic model before
it is written, so consumers of the exports can rely on a stable layout.

Rules:
  - Every schema column must be present
  - Column dtypes must be compatible with the annotated field types
  - Extra columns are allowed unless strict
"""

import typing
import warnings
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type

import pandas as pd
from pydantic import BaseModel


class SchemaValidationError(Exception):
    """Raised when schema validation fails."""

    def __init__(
        self,
        message: str,
        missing_columns: Optional[List[str]] = None,
        type_mismatches: Optional[Dict[str, Tuple[str, str]]] = None,
        extra_columns: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.missing_columns = missing_columns or []
        self.type_mismatches = type_mismatches or {}
        self.extra_columns = extra_columns or []


def pandas_dtype_to_python_type(dtype) -> str:
    """Convert pandas dtype to a simplified type string."""
    dtype_str = str(dtype)

    if dtype_str.startswith(('int', 'Int', 'uint')):
        return 'int'
    elif dtype_str.startswith(('float', 'Float')):
        return 'float'
    elif dtype_str in ('object', 'string', 'str'):
        return 'str'
    elif dtype_str.startswith('datetime'):
        return 'datetime'
    elif dtype_str in ('bool', 'boolean'):
        return 'bool'
    return dtype_str


def pydantic_type_to_string(field_type) -> str:
    """Convert a field annotation (Optional unwrapped) to a simplified type string."""
    args = [a for a in typing.get_args(field_type) if a is not type(None)]
    if typing.get_origin(field_type) is typing.Union and len(args) == 1:
        field_type = args[0]

    for candidate, name in ((bool, 'bool'), (int, 'int'), (float, 'float'), (str, 'str')):
        if field_type is candidate:
            return name
    return str(field_type)


def types_compatible(pandas_type: str, pydantic_type: str) -> bool:
    """
    Check if pandas type is compatible with pydantic type.

    Lenient because an all-missing column is read back as float or object
    whatever its declared type.
    """
    if pandas_type == pydantic_type:
        return True

    # Numeric columns mix freely; float also carries nullable ints and all-NaN columns
    if pandas_type in ('int', 'float') and pydantic_type in ('int', 'float'):
        return True
    if pandas_type == 'float' and pydantic_type == 'str':
        return True

    # object columns holding only None
    if pandas_type == 'str' and pydantic_type in ('int', 'float', 'bool'):
        return True

    return False


def validate_dataframe(
    df: pd.DataFrame,
    schema: Type[BaseModel],
    strict: bool = False,
) -> List[str]:
    """
    Validate a DataFrame against a Pydantic schema.

    Args:
        df: DataFrame to validate
        schema: Pydantic model class defining expected columns
        strict: If True, fail on extra columns not in schema

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    fields = schema.model_fields
    columns = {info.alias or name: info for name, info in fields.items()}
    expected = set(columns)
    actual = set(df.columns)

    missing = expected - actual
    if missing:
        errors.append(f"Missing required columns: {sorted(missing)}")

    extra = actual - expected
    if extra and strict:
        errors.append(f"Unexpected columns (strict mode): {sorted(extra)}")

    mismatches = {}
    for col in sorted(expected & actual):
        got = pandas_dtype_to_python_type(df[col].dtype)
        wanted = pydantic_type_to_string(columns[col].annotation)
        if not types_compatible(got, wanted):
            mismatches[col] = (got, wanted)

    if mismatches:
        detail = '; '.join(f"{col}: got {got}, expected {wanted}"
                           for col, (got, wanted) in mismatches.items())
        errors.append(f"Type mismatches: {detail}")

    return errors


def validate_output_file(
    file_path: Path,
    schema: Type[BaseModel],
    strict: bool = False,
    sample_rows: int = 100,
) -> List[str]:
    """
    Validate a written CSV file against a schema.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    df = pd.read_csv(file_path, nrows=sample_rows)
    return validate_dataframe(df, schema, strict=strict)


def validated_df_to_csv(
    df: pd.DataFrame,
    file_path: Path,
    strict: bool = False,
    **to_csv_kwargs,
) -> None:
    """
    Validate a DataFrame against its registered schema and write to CSV.

    Args:
        df: DataFrame to write
        file_path: Output path (filename determines schema via registry)
        strict: If True, fail on extra columns not in schema
        **to_csv_kwargs: Additional arguments passed to df.to_csv()

    Raises:
        SchemaValidationError: If validation fails
    """
    from .registry import get_schema_for_file

    file_path = Path(file_path)
    schema = get_schema_for_file(file_path.name)
    if schema is None:
        warnings.warn(
            f"No schema registered for '{file_path.name}'; writing without validation.",
            UserWarning,
        )
        df.to_csv(file_path, **to_csv_kwargs)
        return

    errors = validate_dataframe(df, schema, strict=strict)
    if errors:
        columns = {info.alias or name for name, info in schema.model_fields.items()}
        raise SchemaValidationError(
            f"Schema validation failed for '{file_path.name}':\n"
            + "\n".join(f"  - {e}" for e in errors),
            missing_columns=sorted(columns - set(df.columns)),
            extra_columns=sorted(set(df.columns) - columns) if strict else [],
        )

    file_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(file_path, **to_csv_kwargs)
