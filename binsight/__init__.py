"""
binsight - Interactive histogram binning and selection engine.

This package bins one column of a dataset held in memory (polars) or in an
embedded analytic database (DuckDB), tracks a selection of bins driven by
click and brush gestures, and notifies listeners with the selected records.
"""

from .backends.array import ArrayBackend
from .backends.base import Backend
from .backends.query_engine import ColumnInfo, QueryEngineBackend
from .components.histogram import Histogram, HistogramSnapshot
from .core.config import HistogramConfig, Margin
from .core.errors import (
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
from .core.selection import SelectionMode, SelectionState
from .preprocessing.binning import Bin, BinningConfig
from .preprocessing.classify import BinType
from .rendering.bridge import HistogramView, format_bin_label, prepare_render_payload
from .utils.logging import configure_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    # Components
    "Histogram",
    "HistogramSnapshot",
    "HistogramConfig",
    "Margin",
    # Binning
    "Bin",
    "BinType",
    "BinningConfig",
    "SelectionMode",
    "SelectionState",
    # Backends
    "Backend",
    "ArrayBackend",
    "QueryEngineBackend",
    "ColumnInfo",
    # Rendering
    "HistogramView",
    "prepare_render_payload",
    "format_bin_label",
    # Errors
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
    # Utilities
    "configure_logging",
    "get_logger",
]
