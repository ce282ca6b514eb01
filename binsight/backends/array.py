"""In-memory backend over a polars DataFrame."""

import datetime
from functools import reduce
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import polars as pl

from ..core.errors import (
    DataLoadError,
    EmptyColumnError,
    QueryError,
    UnsupportedSourceError,
    UnsupportedTypeError,
)
from ..preprocessing.binning import (
    Bin,
    BinningConfig,
    ColumnStats,
    as_datetime,
    bins_from_counts,
    check_partition,
    collapse_ordinal,
    date_edges,
    resolve_edges,
)
from ..preprocessing.classify import BinType, classify_dtype
from ..query.loader import SourceKind, records_from_source, resolve_source
from ..utils.logging import get_logger
from .base import Backend

logger = get_logger(__name__)

_EPOCH = datetime.datetime(1970, 1, 1)
_MICROSECOND = datetime.timedelta(microseconds=1)
_LENGTH = "__binsight_length"


def _to_micros(moment: datetime.datetime) -> int:
    return (as_datetime(moment) - _EPOCH) // _MICROSECOND


def _count_intervals(edges: Sequence[float], values: np.ndarray) -> np.ndarray:
    """
    Count ``values`` per interval of ``edges``.

    Intervals are half-open; values equal to the last edge land in the last
    interval.
    """
    n_bins = len(edges) - 1
    idx = np.searchsorted(np.asarray(edges), values, side="right") - 1
    idx = np.clip(idx, 0, n_bins - 1)
    return np.bincount(idx, minlength=n_bins)


class ArrayBackend(Backend):
    """
    Backend holding the dataset as a polars DataFrame.

    Accepts a list of records, a polars DataFrame/LazyFrame or a pandas
    DataFrame. Binning follows the same rules as the query-engine backend
    (see binsight.preprocessing.binning); filtering is synchronous but
    exposed as a coroutine.
    """

    def __init__(self):
        super().__init__()
        self._frame: Optional[pl.DataFrame] = None

    @property
    def frame(self) -> Optional[pl.DataFrame]:
        return self._frame

    async def load(self, source: Any, data_format: Optional[str] = None) -> int:
        resolved = resolve_source(source, data_format)
        if resolved.kind == SourceKind.POLARS:
            frame = resolved.data
        elif resolved.kind in (SourceKind.RECORDS, SourceKind.PANDAS):
            try:
                frame = pl.from_dicts(records_from_source(resolved), infer_schema_length=None)
            except (pl.exceptions.PolarsError, TypeError, ValueError) as exc:
                raise DataLoadError(f"Failed to build a DataFrame from records: {exc}") from exc
        else:
            raise UnsupportedSourceError(
                f"The array backend only accepts in-memory data, got a {resolved.kind.value} source"
            )

        self._frame = frame
        self._row_count = frame.height
        logger.debug("Array backend loaded %d rows, %d columns", frame.height, frame.width)
        return self._row_count

    def _dtype(self, column: str) -> pl.DataType:
        if self._frame is None:
            raise DataLoadError("No data loaded")
        dtype = self._frame.schema.get(column)
        if dtype is None:
            raise QueryError(f"Column '{column}' not found. Available: {self._frame.columns}")
        return dtype

    async def type_of(self, column: str) -> BinType:
        dtype = self._dtype(column)
        if dtype.is_nested() or dtype == pl.Object:
            raise UnsupportedTypeError(f"Column '{column}' has unsupported type {dtype}")
        return classify_dtype(dtype)

    def _value_expr(self, column: str, bin_type: BinType) -> pl.Expr:
        """Expression mapping ``column`` onto comparable bin values."""
        expr = pl.col(column)
        if bin_type == BinType.CONTINUOUS:
            value = expr.cast(pl.Float64)
            # NaN and infinities are treated as missing
            return pl.when(value.is_finite()).then(value)
        # DATE: naive microsecond datetimes, aware values converted to UTC
        dtype = self._dtype(column)
        if dtype == pl.Datetime:
            if getattr(dtype, "time_zone", None):
                expr = expr.dt.convert_time_zone("UTC").dt.replace_time_zone(None)
            return expr.dt.cast_time_unit("us")
        return expr.cast(pl.Datetime("us"))

    def _values(self, column: str, bin_type: BinType) -> pl.Series:
        return (
            self._frame.lazy()
            .select(self._value_expr(column, bin_type).alias("value"))
            .drop_nulls()
            .collect()
            .get_column("value")
        )

    async def bin(self, column: str, bin_type: BinType, config: BinningConfig) -> List[Bin]:
        self._dtype(column)
        if bin_type == BinType.CONTINUOUS:
            return self._bin_continuous(column, config)
        if bin_type == BinType.DATE:
            return self._bin_dates(column, config)
        if bin_type == BinType.ORDINAL:
            return self._bin_ordinal(column, config)
        raise UnsupportedTypeError(f"No binning rule for type {bin_type!r}")

    def _bin_continuous(self, column: str, config: BinningConfig) -> List[Bin]:
        values = self._values(column, BinType.CONTINUOUS)
        stats = ColumnStats(
            count=values.len(),
            min=values.min(),
            max=values.max(),
            q1=values.quantile(0.25, interpolation="linear"),
            q3=values.quantile(0.75, interpolation="linear"),
            std=values.std(),
        )
        edges = resolve_edges(config.bin_threshold, stats)
        counts = _count_intervals(edges, values.to_numpy())
        bins = bins_from_counts(edges, counts, close_last=True)
        check_partition(bins, stats.count)
        return bins

    def _bin_dates(self, column: str, config: BinningConfig) -> List[Bin]:
        values = self._values(column, BinType.DATE)
        if values.len() == 0:
            raise EmptyColumnError(f"Column '{column}' has no non-null values")
        edges = date_edges(values.min(), values.max(), config.date_bin_days)
        micros = values.dt.epoch("us").to_numpy()
        counts = _count_intervals([_to_micros(edge) for edge in edges], micros)
        bins = bins_from_counts(edges, counts, close_last=False)
        check_partition(bins, values.len())
        return bins

    def _bin_ordinal(self, column: str, config: BinningConfig) -> List[Bin]:
        counts = (
            self._frame.lazy()
            .select(pl.col(column))
            .drop_nulls()
            .group_by(column, maintain_order=True)
            .agg(pl.len().alias(_LENGTH))
            .sort(_LENGTH, descending=True, maintain_order=True)
            .collect()
        )
        pairs = list(zip(counts.get_column(column).to_list(), counts.get_column(_LENGTH).to_list()))
        if not pairs:
            raise EmptyColumnError(f"Column '{column}' has no non-null values")
        return collapse_ordinal(pairs, config.max_ordinal_bins)

    def _selection_expr(
        self,
        column: str,
        bin_type: BinType,
        selected: Sequence[Bin],
        bins: Sequence[Bin],
    ) -> pl.Expr:
        clauses: List[pl.Expr] = []
        if bin_type == BinType.ORDINAL:
            keys = [b.key for b in selected if not b.is_other]
            if keys:
                clauses.append(pl.col(column).is_in(keys))
            if any(b.is_other for b in selected):
                kept = [b.key for b in bins if not b.is_other]
                clauses.append(pl.col(column).is_not_null() & ~pl.col(column).is_in(kept))
        else:
            value = self._value_expr(column, bin_type)
            for b in selected:
                x0, x1 = b.x0, b.x1
                if bin_type == BinType.DATE:
                    x0, x1 = as_datetime(x0), as_datetime(x1)
                upper = value <= x1 if b.closed else value < x1
                clauses.append((value >= x0) & upper)
        return reduce(lambda left, right: left | right, clauses)

    async def records_matching(
        self,
        column: str,
        bin_type: BinType,
        selected: Sequence[Bin],
        bins: Sequence[Bin],
    ) -> List[Dict[str, Any]]:
        if not selected:
            return []
        self._dtype(column)
        matched = self._frame.filter(self._selection_expr(column, bin_type, selected, bins))
        return matched.to_dicts()

    async def close(self) -> None:
        self._frame = None
        await super().close()
