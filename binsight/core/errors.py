"""Exception hierarchy for the histogram engine.

Every error raised by binsight derives from HistogramError so callers can
catch the whole family at once. The message of each error names the stage
that failed (initialization, load, binning, query).
"""


class HistogramError(Exception):
    """Base class for all binsight errors."""

    pass


class ConfigurationError(HistogramError, ValueError):
    """Raised when a configuration option is missing or invalid."""

    pass


class InitializationError(HistogramError):
    """Raised when the analytic backend fails to start.

    Any resource acquired before the failure (connection, table) has already
    been released when this error reaches the caller.
    """

    pass


class DataLoadError(HistogramError):
    """Raised when a data source cannot be loaded into a backend."""

    pass


class UnsupportedSourceError(DataLoadError):
    """Raised when the source kind or format is not supported.

    This error is raised before any backend interaction takes place.
    """

    pass


class EmptyLoadError(DataLoadError):
    """Raised when a load produces zero rows.

    The target table is dropped before the error propagates, so a retry
    starts from a clean slate.
    """

    pass


class EmptyColumnError(HistogramError):
    """Raised when the binning target column contains only nulls."""

    pass


class UnsupportedTypeError(HistogramError):
    """Raised when a column type has no binning rule."""

    pass


class BinningError(HistogramError):
    """Raised when a binning pass violates one of its invariants."""

    pass


class QueryError(HistogramError):
    """Raised when a backend query is malformed or fails."""

    pass
