"""Column classification and binning rules."""

from .binning import (
    OTHER_KEY,
    Bin,
    BinningConfig,
    ColumnStats,
    bins_from_counts,
    collapse_ordinal,
    date_edges,
    ordinal_bins_from_top,
    resolve_edges,
)
from .classify import BinType, classify_dtype, classify_sql_type

__all__ = [
    "OTHER_KEY",
    "Bin",
    "BinType",
    "BinningConfig",
    "ColumnStats",
    "resolve_edges",
    "date_edges",
    "bins_from_counts",
    "collapse_ordinal",
    "ordinal_bins_from_top",
    "classify_dtype",
    "classify_sql_type",
]
