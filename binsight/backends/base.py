"""Base class for analytic backends."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..preprocessing.binning import Bin, BinningConfig
from ..preprocessing.classify import BinType


class Backend(ABC):
    """
    Abstract base class for the engines that hold a dataset.

    A backend owns one dataset snapshot at a time. It classifies columns,
    computes bins and returns the records that fall inside selected bins.
    All operations are coroutines so that the histogram engine can treat the
    in-memory and the query-engine backend the same way.

    Subclasses must implement:
    - load(): Replace the dataset
    - type_of(): Classify a column
    - bin(): Compute the bins of a column
    - records_matching(): Records that fall inside selected bins
    """

    def __init__(self):
        self._row_count = 0

    @property
    def row_count(self) -> int:
        """Number of rows in the current dataset."""
        return self._row_count

    @property
    def is_loaded(self) -> bool:
        return self._row_count > 0

    async def open(self) -> None:
        """Acquire backend resources. Backends without resources do nothing."""

    @abstractmethod
    async def load(self, source: Any, data_format: Optional[str] = None) -> int:
        """
        Replace the dataset with ``source``.

        Args:
            source: Data source (see binsight.query.loader)
            data_format: Format of file-backed sources

        Returns:
            Number of loaded rows
        """
        pass

    @abstractmethod
    async def type_of(self, column: str) -> BinType:
        """Classify ``column`` of the current dataset."""
        pass

    @abstractmethod
    async def bin(self, column: str, bin_type: BinType, config: BinningConfig) -> List[Bin]:
        """
        Compute the bins of ``column``.

        Args:
            column: Column name
            bin_type: Type returned by type_of()
            config: Binning options

        Returns:
            Bins ordered by lower bound (range bins) or by descending count
            (ordinal bins)
        """
        pass

    @abstractmethod
    async def records_matching(
        self,
        column: str,
        bin_type: BinType,
        selected: Sequence[Bin],
        bins: Sequence[Bin],
    ) -> List[Dict[str, Any]]:
        """
        Records whose ``column`` value falls inside one of ``selected``.

        Args:
            column: Column name
            bin_type: Type the bins were computed for
            selected: Selected bins
            bins: Every current bin (needed to resolve the "Other" bin)

        Returns:
            Matching records in load order
        """
        pass

    async def close(self) -> None:
        """Release the dataset and any backend resources."""
        self._row_count = 0
