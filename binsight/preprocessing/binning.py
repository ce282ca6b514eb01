"""Binning rules shared by the array and query-engine backends.

Each backend computes the raw ingredients (column statistics, per-interval
counts, ordered value counts) in its own way; the rules that turn those
ingredients into bins live here so both backends produce identical results:

- resolve_edges: continuous bin edges from a threshold strategy
- date_edges: calendar-day edges covering a date range
- bins_from_counts: contiguous range bins from edges and counts
- collapse_ordinal / ordinal_bins_from_top: Top-K + "Other" ordinal bins
"""

import datetime
import math
import numbers
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..core.errors import BinningError, ConfigurationError, EmptyColumnError

OTHER_KEY = "Other"
DEFAULT_MAX_ORDINAL_BINS = 20
DEFAULT_STRATEGY = "fd"

# Upper bound for rule-derived bin counts (heavy outliers can make the
# Freedman-Diaconis width tiny)
MAX_BIN_COUNT = 1000

ThresholdSpec = Union[None, str, int, Sequence[float]]


@dataclass(frozen=True)
class Bin:
    """
    One histogram bin.

    Range bins cover ``[x0, x1)``; the last continuous bin is closed on the
    right (``closed=True``) so the column maximum is counted. Ordinal bins
    have ``x0 == x1 == key``; the aggregate bin has ``is_other=True``.
    """

    x0: Any
    x1: Any
    length: int
    key: Any = None
    closed: bool = False
    is_other: bool = False

    @property
    def ident(self) -> Tuple[Any, Any]:
        """Structural key that survives rebinning."""
        if self.key is not None or self.is_other:
            return (self.key, self.is_other)
        return (self.x0, self.x1)

    @property
    def is_range(self) -> bool:
        return self.key is None and not self.is_other

    def contains(self, value: Any) -> bool:
        """Return True if ``value`` falls inside this range bin."""
        if value is None:
            return False
        if self.closed:
            return self.x0 <= value <= self.x1
        return self.x0 <= value < self.x1

    def to_dict(self) -> Dict[str, Any]:
        data = {"x0": self.x0, "x1": self.x1, "length": self.length}
        if not self.is_range:
            data["key"] = self.key
        return data


@dataclass(frozen=True)
class ColumnStats:
    """Aggregate statistics over the non-null values of a column."""

    count: int
    min: Any
    max: Any
    q1: Optional[float] = None
    q3: Optional[float] = None
    std: Optional[float] = None


@dataclass(frozen=True)
class BinningConfig:
    """
    Options for one binning pass.

    Attributes:
        bin_threshold: Continuous strategy. None uses Freedman-Diaconis; a
            rule name ('fd', 'sturges', 'scott', 'sqrt'); a positive int for
            a fixed number of equal-width bins; or a sequence of explicit
            thresholds.
        max_ordinal_bins: Maximum number of ordinal bins including "Other".
        date_bin_days: Width of a date bin in calendar days.
    """

    bin_threshold: ThresholdSpec = None
    max_ordinal_bins: int = DEFAULT_MAX_ORDINAL_BINS
    date_bin_days: int = 1

    def __post_init__(self) -> None:
        validate_threshold(self.bin_threshold)
        if (
            isinstance(self.max_ordinal_bins, bool)
            or not isinstance(self.max_ordinal_bins, numbers.Integral)
            or self.max_ordinal_bins < 1
        ):
            raise ConfigurationError(
                f"max_ordinal_bins must be a positive integer, got {self.max_ordinal_bins!r}"
            )
        if (
            isinstance(self.date_bin_days, bool)
            or not isinstance(self.date_bin_days, numbers.Integral)
            or self.date_bin_days < 1
        ):
            raise ConfigurationError(
                f"date_bin_days must be a positive integer, got {self.date_bin_days!r}"
            )


def validate_threshold(threshold: ThresholdSpec) -> None:
    """Raise ConfigurationError if ``threshold`` is not a known strategy."""
    if threshold is None:
        return
    if isinstance(threshold, str):
        if threshold not in _RULES:
            raise ConfigurationError(
                f"Unknown binning rule '{threshold}'. Available rules: {sorted(_RULES)}"
            )
        return
    if isinstance(threshold, bool):
        raise ConfigurationError("bin_threshold cannot be a boolean")
    if isinstance(threshold, numbers.Integral):
        if threshold < 1:
            raise ConfigurationError(
                f"bin_threshold must be a positive bin count, got {threshold}"
            )
        return
    if isinstance(threshold, Sequence):
        for value in threshold:
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigurationError(
                    f"Explicit thresholds must be numbers, got {value!r}"
                )
        return
    raise ConfigurationError(f"Unsupported bin_threshold: {threshold!r}")


def _freedman_diaconis(stats: ColumnStats) -> int:
    if stats.q1 is None or stats.q3 is None:
        return 1
    width = 2 * (stats.q3 - stats.q1) * stats.count ** (-1 / 3)
    if width <= 0:
        return 1
    return math.ceil((stats.max - stats.min) / width)


def _sturges(stats: ColumnStats) -> int:
    return math.ceil(math.log2(stats.count)) + 1


def _scott(stats: ColumnStats) -> int:
    if not stats.std:
        return 1
    width = 3.49 * stats.std * stats.count ** (-1 / 3)
    return math.ceil((stats.max - stats.min) / width)


def _sqrt(stats: ColumnStats) -> int:
    return math.ceil(math.sqrt(stats.count))


_RULES = {
    "fd": _freedman_diaconis,
    "sturges": _sturges,
    "scott": _scott,
    "sqrt": _sqrt,
}


def equal_width_edges(lo: float, hi: float, count: int) -> List[float]:
    """
    Split ``[lo, hi]`` into ``count`` equal-width intervals.

    The last edge is exactly ``hi`` so rounding never drops the maximum.
    """
    width = (hi - lo) / count
    return [lo + i * width for i in range(count)] + [hi]


def resolve_edges(threshold: ThresholdSpec, stats: ColumnStats) -> List[float]:
    """
    Compute continuous bin edges for a column.

    Args:
        threshold: Strategy (see BinningConfig.bin_threshold)
        stats: Statistics of the non-null values

    Returns:
        Increasing list of edges; ``len(edges) - 1`` bins. A constant column
        yields the single interval ``[v, v]``.

    Raises:
        EmptyColumnError: If the column has no non-null values
        BinningError: If the extent is not finite
    """
    if stats.count == 0 or stats.min is None:
        raise EmptyColumnError("Cannot bin a column without non-null values")

    lo, hi = float(stats.min), float(stats.max)
    if not (math.isfinite(lo) and math.isfinite(hi)):
        raise BinningError(f"Cannot bin a column spanning [{lo}, {hi}]")
    if lo == hi:
        return [lo, hi]

    if threshold is None:
        threshold = DEFAULT_STRATEGY

    if isinstance(threshold, str):
        count = _RULES[threshold](stats)
    elif isinstance(threshold, numbers.Integral) and not isinstance(threshold, bool):
        count = int(threshold)
    else:
        inner = sorted({float(t) for t in threshold if lo < float(t) < hi})
        return [lo, *inner, hi]

    count = max(1, min(MAX_BIN_COUNT, count))
    return equal_width_edges(lo, hi, count)


def as_datetime(value: Any) -> datetime.datetime:
    """Coerce a date or datetime to a naive datetime."""
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    raise BinningError(f"Expected a date value, got {value!r}")


def date_edges(first: Any, last: Any, days: int = 1) -> List[datetime.datetime]:
    """
    Calendar-day edges covering ``[first, last]``.

    The first edge is ``first`` truncated to midnight; edges advance by
    ``days`` until one lies strictly after ``last``.
    """
    start = as_datetime(first).replace(hour=0, minute=0, second=0, microsecond=0)
    end = as_datetime(last)
    step = datetime.timedelta(days=days)
    n_bins = (end - start) // step + 1
    return [start + i * step for i in range(n_bins + 1)]


def bins_from_counts(
    edges: Sequence[Any], counts: Sequence[Any], close_last: bool = True
) -> List[Bin]:
    """
    Build contiguous range bins from edges and per-interval counts.

    Args:
        edges: ``n + 1`` increasing edges
        counts: ``n`` counts, one per interval
        close_last: Close the last interval on the right (continuous bins)

    Returns:
        List of n Bins ordered by lower bound
    """
    if len(counts) != len(edges) - 1:
        raise BinningError(
            f"Expected {len(edges) - 1} counts for {len(edges)} edges, got {len(counts)}"
        )
    last = len(counts) - 1
    return [
        Bin(
            x0=edges[i],
            x1=edges[i + 1],
            length=int(counts[i] or 0),
            closed=close_last and i == last,
        )
        for i in range(len(counts))
    ]


def _other_bin(length: int) -> Bin:
    return Bin(x0=OTHER_KEY, x1=OTHER_KEY, length=length, key=OTHER_KEY, is_other=True)


def _ordinal_bin(key: Any, length: Any) -> Bin:
    return Bin(x0=key, x1=key, length=int(length), key=key)


def ordinal_bins_from_top(
    top: Sequence[Tuple[Any, Any]],
    max_bins: int,
    n_distinct: int,
    other_length: Any,
    total: Any,
) -> List[Bin]:
    """
    Build ordinal bins from the highest-count values.

    Args:
        top: (value, count) pairs ordered by descending count, at least
            ``min(max_bins, n_distinct)`` long
        max_bins: Bin cap including the "Other" bin
        n_distinct: Number of distinct non-null values
        other_length: Sum of counts beyond the first ``max_bins - 1`` values
        total: Number of non-null values

    Returns:
        At most ``max_bins`` Bins; the last one is "Other" when the distinct
        count exceeds the cap

    Raises:
        EmptyColumnError: If there are no non-null values
        BinningError: If the "Other" count disagrees with the totals
    """
    if n_distinct == 0:
        raise EmptyColumnError("Cannot bin a column without non-null values")

    if n_distinct <= max_bins:
        return [_ordinal_bin(key, length) for key, length in top[:n_distinct]]

    kept = [_ordinal_bin(key, length) for key, length in top[: max_bins - 1]]
    other_length = int(other_length or 0)
    expected = int(total) - sum(b.length for b in kept)
    if other_length < 0 or other_length != expected:
        raise BinningError(
            f"'Other' bin count {other_length} does not match the remaining "
            f"{expected} values"
        )
    return kept + [_other_bin(other_length)]


def collapse_ordinal(counts: Sequence[Tuple[Any, Any]], max_bins: int) -> List[Bin]:
    """
    Apply the Top-K + "Other" rule to a complete list of value counts.

    Args:
        counts: (value, count) pairs for every distinct value, already
            ordered by descending count with ties in first-seen order
        max_bins: Bin cap including the "Other" bin
    """
    total = sum(int(length) for _, length in counts)
    other = sum(int(length) for _, length in counts[max_bins - 1 :])
    return ordinal_bins_from_top(counts, max_bins, len(counts), other, total)


def check_partition(bins: Sequence[Bin], total: int) -> None:
    """Raise BinningError unless range bins are contiguous and sum to ``total``."""
    for left, right in zip(bins, bins[1:]):
        if left.x1 != right.x0:
            raise BinningError(f"Gap or overlap between bins at {left.x1!r} / {right.x0!r}")
    counted = sum(b.length for b in bins)
    if counted != total:
        raise BinningError(f"Bins count {counted} values, expected {total}")
