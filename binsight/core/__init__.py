"""Core infrastructure for binsight: configuration, selection state, events and errors."""

from .errors import (
    BinningError,
    ConfigurationError,
    DataLoadError,
    EmptyColumnError,
    EmptyLoadError,
    HistogramError,
    InitializationError,
    QueryError,
    UnsupportedSourceError,
    UnsupportedTypeError,
)

__all__ = [
    "HistogramError",
    "ConfigurationError",
    "InitializationError",
    "DataLoadError",
    "UnsupportedSourceError",
    "EmptyLoadError",
    "EmptyColumnError",
    "UnsupportedTypeError",
    "BinningError",
    "QueryError",
]
