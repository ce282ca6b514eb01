"""Histogram component: binning, selection and notification engine."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..backends.array import ArrayBackend
from ..backends.base import Backend
from ..backends.query_engine import QueryEngineBackend
from ..core.config import HistogramConfig
from ..core.errors import DataLoadError, HistogramError, InitializationError
from ..core.events import EventDispatcher, Handler
from ..core.selection import SelectionMode, SelectionState
from ..preprocessing.binning import Bin
from ..preprocessing.classify import BinType
from ..rendering.bridge import HistogramView
from ..rendering.scales import Scales, bin_extent, build_scales
from ..utils.logging import get_logger

logger = get_logger(__name__)

# Modifier keys that toggle membership in multiple selection mode
MULTI_SELECT_MODIFIERS = frozenset({"ctrl", "control", "meta"})

EVENTS = ("selectionChanged", "rendered")


@dataclass(frozen=True)
class HistogramSnapshot:
    """
    Read-only view of the engine state handed to renderers.

    Attributes:
        bins: Current bins
        bin_type: Type the bins were computed for (None before the first
            binning pass)
        scales: X and Y scales for the bins
        selected: Selected bins, in bin order
        mode: Selection mode
        hovered: Bin under the pointer, if any
    """

    bins: Tuple[Bin, ...] = ()
    bin_type: Optional[BinType] = None
    scales: Optional[Scales] = None
    selected: Tuple[Bin, ...] = ()
    mode: SelectionMode = SelectionMode.SINGLE
    hovered: Optional[Bin] = None


class Histogram:
    """
    Interactive histogram over one column of a dataset.

    The histogram loads a dataset into an analytic backend, bins the
    configured column, keeps a selection of bins and notifies listeners with
    the records of the selected bins. Drawing is delegated to an optional
    view (see binsight.rendering.bridge.HistogramView).

    Two backends are used:
    - the query-engine backend (DuckDB) holds data passed as ``data_source``
      or to load()
    - the array backend (polars) holds data passed explicitly to update()

    Load, update and reset are serialized by one lock. Every selection
    transition is numbered; when the records of an older transition arrive
    after a newer transition started, they are discarded.

    Example:
        histogram = Histogram(column="age", bin_threshold=10)
        histogram.on("selectionChanged", print)
        await histogram.initialize()
        await histogram.update(records)
        await histogram.click(histogram.snapshot().bins[0])
    """

    def __init__(
        self,
        config: Optional[Any] = None,
        *,
        view: Optional[HistogramView] = None,
        table_name_factory: Optional[Callable[[], str]] = None,
        backend: Optional[Backend] = None,
        **options: Any,
    ):
        """
        Create a histogram.

        Args:
            config: HistogramConfig or dict of options (snake_case or
                camelCase keys)
            view: View that receives a snapshot after every state change
            table_name_factory: Callable naming the query-engine table
            backend: Backend to use instead of the default DuckDB backend
            **options: Options overriding ``config``

        Raises:
            ConfigurationError: On missing or invalid options
        """
        if isinstance(config, HistogramConfig):
            self._config = config.with_options(**options) if options else config
        else:
            self._config = HistogramConfig.from_dict(config, **options)

        self._view = view
        self._table_name_factory = table_name_factory
        self._query_backend: Optional[Backend] = backend
        self._array_backend: Optional[ArrayBackend] = None
        # backend the current bins were computed from
        self._active_backend: Optional[Backend] = None

        self._dispatcher = EventDispatcher(*EVENTS)
        self._data_lock = asyncio.Lock()
        self._initialized = False

        self._bins: List[Bin] = []
        self._bin_type: Optional[BinType] = None
        self._scales: Optional[Scales] = None
        self._type_cache: Dict[str, BinType] = {}
        self._selection = SelectionState(mode=self._config.selection_mode)
        self._hovered: Optional[Bin] = None

        # Counter-based conflict resolution for selection fetches
        self._transition_seq = 0

    @property
    def config(self) -> HistogramConfig:
        return self._config

    @property
    def bins(self) -> List[Bin]:
        return list(self._bins)

    @property
    def bin_type(self) -> Optional[BinType]:
        return self._bin_type

    @property
    def selection(self) -> SelectionState:
        return self._selection

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def query_backend(self) -> Optional[Backend]:
        return self._query_backend

    def snapshot(self) -> HistogramSnapshot:
        return HistogramSnapshot(
            bins=tuple(self._bins),
            bin_type=self._bin_type,
            scales=self._scales,
            selected=tuple(self._selection.resolve(self._bins)),
            mode=self._config.selection_mode,
            hovered=self._hovered,
        )

    def on(self, typename: str, handler: Optional[Handler]) -> "Histogram":
        """
        Register a handler.

        Args:
            typename: ``'selectionChanged'`` (called with the list of
                selected records) or ``'rendered'`` (called with the
                snapshot), optionally followed by ``.namespace``
            handler: Callable or coroutine function; None removes it

        Returns:
            self, for chaining
        """
        self._dispatcher.on(typename, handler)
        return self

    # Lifecycle

    def _create_query_backend(self) -> Backend:
        return QueryEngineBackend(
            table_name_factory=self._table_name_factory,
            memory_limit=self._config.memory_limit,
            threads=self._config.threads,
            fetch_timeout=self._config.fetch_timeout,
        )

    async def _open(self) -> None:
        """Open the query-engine backend. Caller holds the data lock."""
        if self._initialized:
            return
        backend = self._query_backend or self._create_query_backend()
        try:
            await backend.open()
        except Exception as exc:
            await backend.close()
            if isinstance(exc, InitializationError):
                raise
            raise InitializationError(f"Failed to initialize the query engine: {exc}") from exc
        self._query_backend = backend
        self._initialized = True
        logger.info("Histogram on column '%s' initialized", self._config.column)

    async def initialize(self) -> None:
        """
        Open the query engine and load ``data_source`` when configured.

        Calling initialize() again after success does nothing.

        Raises:
            InitializationError: If the query engine cannot start; anything
                acquired before the failure has been released
            DataLoadError: If ``data_source`` cannot be loaded. The engine
                stays initialized so load() can be retried.
        """
        async with self._data_lock:
            if self._initialized:
                return
            await self._open()
            if self._config.data_source is not None:
                await self._load(self._config.data_source, self._config.data_format)

    async def load(self, source: Any, data_format: Optional[str] = None) -> int:
        """
        Load ``source`` into the query engine and rebin.

        Args:
            source: Records, DataFrame, file-like object, bytes, path or URL
            data_format: 'parquet', 'csv' or 'json' for file-backed sources

        Returns:
            Number of loaded rows
        """
        async with self._data_lock:
            await self._open()
            return await self._load(source, data_format or self._config.data_format)

    async def _load(self, source: Any, data_format: Optional[str]) -> int:
        count = await self._query_backend.load(source, data_format)
        self._type_cache.clear()
        self._active_backend = self._query_backend
        await self._rebin()
        return count

    async def update(self, data: Optional[Any] = None) -> None:
        """
        Rebin and redraw.

        Args:
            data: Records or DataFrame to bin with the array backend. When
                omitted, the data loaded into the query engine is rebinned.

        Raises:
            DataLoadError: If no data is available
        """
        async with self._data_lock:
            if data is not None:
                if self._array_backend is None:
                    self._array_backend = ArrayBackend()
                await self._array_backend.load(data)
                self._type_cache.clear()
                self._active_backend = self._array_backend
            elif self._query_backend is not None and self._query_backend.is_loaded:
                self._active_backend = self._query_backend
            else:
                raise DataLoadError("No data to bin: pass data or load a data source first")
            await self._rebin()

    async def reset(self) -> None:
        """
        Clear the selection, drop cached column types and rebin from scratch.

        Emits ``selectionChanged`` with ``[]`` when a selection was cleared.
        """
        async with self._data_lock:
            had_selection = not self._selection.is_empty
            self._selection = self._selection.clear()
            self._hovered = None
            self._type_cache.clear()
            if self._active_backend is not None and self._active_backend.is_loaded:
                await self._rebin()
            else:
                await self._render()
            if had_selection:
                await self._emit_selection(self._selection)

    async def destroy(self) -> None:
        """Release every backend resource. Safe after a partial initialize()."""
        async with self._data_lock:
            for backend in (self._query_backend, self._array_backend):
                if backend is not None:
                    await backend.close()
            self._query_backend = None
            self._array_backend = None
            self._active_backend = None
            self._initialized = False
            self._bins = []
            self._bin_type = None
            self._scales = None
            self._type_cache.clear()
            self._selection = self._selection.clear()
            self._hovered = None
            self._transition_seq += 1
            if self._view is not None:
                self._view.clear()
            logger.info("Histogram on column '%s' destroyed", self._config.column)

    # Binning

    async def _rebin(self) -> None:
        """Recompute bins and scales, revalidate the selection. Caller holds the lock."""
        backend = self._active_backend
        column = self._config.column
        bin_type = self._type_cache.get(column)
        if bin_type is None:
            bin_type = await backend.type_of(column)
            self._type_cache[column] = bin_type

        bins = await backend.bin(column, bin_type, self._config.binning)
        self._bins = bins
        self._bin_type = bin_type
        self._scales = build_scales(bins, bin_type, self._config.width, self._config.height)
        logger.debug("Column '%s' (%s) binned into %d bins", column, bin_type.value, len(bins))

        previous = self._selection
        self._selection = previous.revalidate(bins)
        if self._hovered is not None and self._hovered.ident not in {b.ident for b in bins}:
            self._hovered = None
        await self._render()
        if self._selection != previous:
            await self._emit_selection(self._selection)

    async def _render(self) -> None:
        snapshot = self.snapshot()
        if self._view is not None:
            self._view.render(snapshot, self._config)
        await self._dispatcher.emit("rendered", snapshot)

    # Selection

    async def _emit_selection(self, state: SelectionState, seq: Optional[int] = None) -> None:
        """
        Fetch the records of ``state`` and notify listeners.

        ``seq`` is the number of the transition that produced ``state``; a
        new number is taken when omitted. If a newer transition started
        while fetching, the result is discarded.
        """
        if seq is None:
            self._transition_seq += 1
            seq = self._transition_seq
        selected = state.resolve(self._bins)
        records: List[Dict[str, Any]] = []
        if selected:
            records = await self._active_backend.records_matching(
                self._config.column, self._bin_type, selected, self._bins
            )
        if seq != self._transition_seq:
            logger.debug("Discarding stale selection result %d (current %d)", seq, self._transition_seq)
            return
        await self._dispatcher.emit("selectionChanged", records)

    async def _transition(self, state: SelectionState) -> None:
        self._transition_seq += 1
        seq = self._transition_seq
        self._selection = state
        await self._render()
        await self._emit_selection(state, seq)

    def _current_bin(self, bin_: Bin) -> Bin:
        for b in self._bins:
            if b.ident == bin_.ident:
                return b
        raise HistogramError(f"Bin {bin_.ident!r} is not part of the current histogram")

    async def click(self, bin_: Bin, modifiers: Iterable[str] = ()) -> None:
        """
        Handle a click on a bar.

        Args:
            bin_: Clicked bin
            modifiers: Names of the modifier keys held ('ctrl', 'meta', ...)
        """
        bin_ = self._current_bin(bin_)
        multi = bool(MULTI_SELECT_MODIFIERS & {m.lower() for m in modifiers})
        await self._transition(self._selection.click(bin_, multi=multi))

    def bins_in_range(self, pixel_range: Sequence[float]) -> List[Bin]:
        """Bins whose pixel extent overlaps ``pixel_range`` (inclusive)."""
        if self._scales is None:
            return []
        lo, hi = sorted(pixel_range)
        hits = []
        for b in self._bins:
            left, right = bin_extent(b, self._scales, self._bin_type)
            if left <= hi and right >= lo:
                hits.append(b)
        return hits

    async def brush_end(self, pixel_range: Optional[Sequence[float]]) -> None:
        """
        Handle the end of a brush gesture.

        Args:
            pixel_range: (start, end) in plot pixels, or None when the brush
                was cleared. An empty brush always emits ``[]``.
        """
        if pixel_range is None:
            await self._transition(self._selection.brush(None))
            return
        await self._transition(self._selection.brush(self.bins_in_range(pixel_range)))

    async def clear_selection(self) -> None:
        """Clear the selection and emit ``[]``."""
        await self._transition(self._selection.clear())

    async def click_background(self) -> None:
        """Clear the selection; does nothing when the selection is already empty."""
        if self._selection.is_empty:
            return
        await self._transition(self._selection.clear())

    def hover(self, bin_: Optional[Bin]) -> None:
        """Set or clear the hovered bin and redraw the attached view."""
        self._hovered = self._current_bin(bin_) if bin_ is not None else None
        if self._view is not None:
            self._view.render(self.snapshot(), self._config)
