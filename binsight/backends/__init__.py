"""Analytic backends holding the dataset."""

from .array import ArrayBackend
from .base import Backend
from .query_engine import ColumnInfo, QueryEngineBackend, default_table_name

__all__ = [
    "Backend",
    "ArrayBackend",
    "QueryEngineBackend",
    "ColumnInfo",
    "default_table_name",
]
