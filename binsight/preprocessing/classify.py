"""Column type classification shared by both backends.

A column is binned according to one of three semantic types. The array
backend classifies polars dtypes, the query-engine backend classifies the
DuckDB type name returned by ``typeof()``. Both paths must agree for the same
logical data.
"""

import re
from enum import Enum
from typing import Optional

import polars as pl


class BinType(str, Enum):
    """Semantic column type driving the binning rule."""

    CONTINUOUS = "continuous"
    DATE = "date"
    ORDINAL = "ordinal"


# DuckDB type names, upper-cased, grouped by family.
_INTEGER_TYPES = {
    "TINYINT",
    "SMALLINT",
    "INTEGER",
    "BIGINT",
    "HUGEINT",
    "UTINYINT",
    "USMALLINT",
    "UINTEGER",
    "UBIGINT",
    "UHUGEINT",
    "INT1",
    "INT2",
    "INT4",
    "INT8",
    "INT",
    "LONG",
}
_FLOAT_TYPES = {"FLOAT", "DOUBLE", "REAL", "FLOAT4", "FLOAT8"}
_DATE_TYPES = {
    "DATE",
    "TIMESTAMP",
    "DATETIME",
    "TIMESTAMP_S",
    "TIMESTAMP_MS",
    "TIMESTAMP_NS",
    "TIMESTAMP WITH TIME ZONE",
    "TIMESTAMPTZ",
}
_DECIMAL_RE = re.compile(r"^(DECIMAL|NUMERIC)(\(.*\))?$")


def classify_dtype(dtype: pl.DataType) -> BinType:
    """
    Classify a polars dtype.

    Args:
        dtype: Column dtype from a polars schema

    Returns:
        CONTINUOUS for numeric dtypes, DATE for Date/Datetime, ORDINAL
        otherwise (Boolean, String, Categorical, Null, ...)
    """
    if dtype == pl.Date or dtype == pl.Datetime:
        return BinType.DATE
    if dtype.is_numeric():
        return BinType.CONTINUOUS
    return BinType.ORDINAL


def classify_sql_type(type_name: Optional[str]) -> BinType:
    """
    Classify a DuckDB type name as returned by ``typeof()``.

    Args:
        type_name: Type name such as 'INTEGER', 'DECIMAL(18,3)' or
            'TIMESTAMP WITH TIME ZONE'. None means no non-null value exists.

    Returns:
        The BinType for the type name
    """
    if not type_name:
        return BinType.ORDINAL
    name = type_name.strip().upper()
    if name in _INTEGER_TYPES or name in _FLOAT_TYPES or _DECIMAL_RE.match(name):
        return BinType.CONTINUOUS
    if name in _DATE_TYPES:
        return BinType.DATE
    return BinType.ORDINAL


def sql_type_family(type_name: Optional[str]) -> str:
    """
    Map a DuckDB type name onto a logical value family.

    Returns one of 'bigint', 'integer', 'number', 'boolean', 'date',
    'string' or 'other'. Wide integers are reported as 'bigint' because they
    may not fit a float without loss.
    """
    name = (type_name or "").strip().upper()
    if name in ("BIGINT", "HUGEINT", "UBIGINT", "UHUGEINT", "INT8", "LONG"):
        return "bigint"
    if name in _FLOAT_TYPES:
        return "number"
    if name in _INTEGER_TYPES:
        return "integer"
    if _DECIMAL_RE.match(name):
        return "integer" if name.endswith(",0)") else "number"
    if name in ("BOOLEAN", "BOOL"):
        return "boolean"
    if name in _DATE_TYPES:
        return "date"
    if name in ("VARCHAR", "UUID", "TEXT", "STRING"):
        return "string"
    return "other"
