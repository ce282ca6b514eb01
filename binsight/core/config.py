"""Histogram configuration.

Options can be passed in snake_case or in the camelCase spelling used by the
JavaScript histogram widgets (``maxOrdinalBins``, ``selectionMode``, ...).
Unspecified options take the defaults below.
"""

import numbers
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from ..preprocessing.binning import (
    DEFAULT_MAX_ORDINAL_BINS,
    BinningConfig,
    ThresholdSpec,
)
from .errors import ConfigurationError
from .selection import SelectionMode

SUPPORTED_FORMATS = ("parquet", "csv", "json")

_ALIASES = {
    "binThreshold": "bin_threshold",
    "maxOrdinalBins": "max_ordinal_bins",
    "selectionMode": "selection_mode",
    "showLabelsBelow": "show_labels_below",
    "dataSource": "data_source",
    "dataFormat": "data_format",
    "dateBinDays": "date_bin_days",
    "memoryLimit": "memory_limit",
    "fetchTimeout": "fetch_timeout",
}


@dataclass(frozen=True)
class Margin:
    """Space around the plot area in pixels."""

    top: float = 20
    right: float = 20
    bottom: float = 40
    left: float = 40

    @classmethod
    def from_value(cls, value: Any) -> "Margin":
        if value is None:
            return cls()
        if isinstance(value, Margin):
            return value
        if isinstance(value, dict):
            unknown = set(value) - {"top", "right", "bottom", "left"}
            if unknown:
                raise ConfigurationError(f"Unknown margin keys: {sorted(unknown)}")
            return cls(**value)
        raise ConfigurationError(f"margin must be a dict or Margin, got {value!r}")


@dataclass(frozen=True)
class HistogramConfig:
    """
    Validated histogram options.

    Attributes:
        column: Name of the column to bin (required)
        width: Plot width in pixels
        height: Plot height in pixels
        margin: Space around the plot area
        bin_threshold: Continuous binning strategy (see BinningConfig)
        colors: (unselected, selected) fill colors
        max_ordinal_bins: Cap on ordinal bins including "Other"
        selection_mode: 'single', 'multiple' or 'drag'
        axis: Whether the view draws axes
        show_labels_below: Whether the view draws bin labels under the bars
        data_source: Records, DataFrame, file-like object, path or URL that
            initialize() loads into the query engine
        data_format: 'parquet', 'csv' or 'json' for file and URL sources
        date_bin_days: Width of date bins in days
        memory_limit: DuckDB memory limit
        threads: DuckDB worker threads
        fetch_timeout: Timeout in seconds for URL sources
    """

    column: Optional[str] = None
    width: float = 600
    height: float = 400
    margin: Margin = field(default_factory=Margin)
    bin_threshold: ThresholdSpec = None
    colors: Tuple[str, str] = ("steelblue", "orange")
    max_ordinal_bins: int = DEFAULT_MAX_ORDINAL_BINS
    selection_mode: SelectionMode = SelectionMode.SINGLE
    axis: bool = False
    show_labels_below: bool = False
    data_source: Any = field(default=None, compare=False)
    data_format: Optional[str] = None
    date_bin_days: int = 1
    memory_limit: str = "1GB"
    threads: int = 4
    fetch_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.column or not isinstance(self.column, str):
            raise ConfigurationError("'column' is required and must be a string")
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real) or value <= 0:
                raise ConfigurationError(f"'{name}' must be a positive number, got {value!r}")
        if len(self.colors) != 2:
            raise ConfigurationError(
                f"'colors' must hold two colors (unselected, selected), got {self.colors!r}"
            )
        if self.data_format is not None and self.data_format not in SUPPORTED_FORMATS:
            raise ConfigurationError(
                f"Unsupported data format '{self.data_format}'. "
                f"Supported formats: {list(SUPPORTED_FORMATS)}"
            )
        if isinstance(self.threads, bool) or not isinstance(self.threads, int) or self.threads < 1:
            raise ConfigurationError(f"'threads' must be a positive integer, got {self.threads!r}")
        if self.fetch_timeout <= 0:
            raise ConfigurationError("'fetch_timeout' must be positive")
        # binning options are validated by BinningConfig
        _ = self.binning

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "HistogramConfig":
        """
        Build a config from a dict of options and/or keyword arguments.

        Keyword arguments take precedence over ``options``. camelCase keys
        are mapped onto their snake_case field names.

        Raises:
            ConfigurationError: On unknown or invalid options
        """
        merged: Dict[str, Any] = {}
        for key, value in {**(options or {}), **kwargs}.items():
            merged[_ALIASES.get(key, key)] = value

        known = {f.name for f in fields(cls)}
        unknown = set(merged) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration options: {sorted(unknown)}")

        if "margin" in merged:
            merged["margin"] = Margin.from_value(merged["margin"])
        if "selection_mode" in merged:
            merged["selection_mode"] = SelectionMode.parse(merged["selection_mode"])
        if "colors" in merged:
            merged["colors"] = tuple(merged["colors"])
        if isinstance(merged.get("bin_threshold"), list):
            merged["bin_threshold"] = tuple(merged["bin_threshold"])
        return cls(**merged)

    def with_options(self, **kwargs: Any) -> "HistogramConfig":
        """Return a copy with some options replaced."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        return type(self).from_dict(current, **kwargs)

    @property
    def binning(self) -> BinningConfig:
        return BinningConfig(
            bin_threshold=self.bin_threshold,
            max_ordinal_bins=self.max_ordinal_bins,
            date_bin_days=self.date_bin_days,
        )

    @property
    def unselected_color(self) -> str:
        return self.colors[0]

    @property
    def selected_color(self) -> str:
        return self.colors[1]
