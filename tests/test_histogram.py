"""Tests for the Histogram engine: binning, selection and notifications."""

import asyncio
import math

import pytest

from binsight import Histogram, HistogramView
from binsight.backends.array import ArrayBackend
from binsight.core.errors import (
    ConfigurationError,
    DataLoadError,
    HistogramError,
    InitializationError,
)
from binsight.core.selection import SelectionMode
from binsight.preprocessing.classify import BinType


class Recorder:
    """Collects the payloads of selectionChanged events."""

    def __init__(self):
        self.calls = []

    def __call__(self, records):
        self.calls.append(records)

    def field(self, index, name):
        return [r[name] for r in self.calls[index]]


class GatedBackend(ArrayBackend):
    """Array backend whose first records_matching call waits for a gate."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.calls = 0

    async def records_matching(self, column, bin_type, selected, bins):
        self.calls += 1
        if self.calls == 1:
            await self.gate.wait()
        return await super().records_matching(column, bin_type, selected, bins)


async def _histogram(records, **options):
    recorder = Recorder()
    histogram = Histogram(**options)
    histogram.on("selectionChanged", recorder)
    await histogram.update(records)
    return histogram, recorder


class TestConstruction:
    """Configuration handling."""

    def test_column_required(self):
        with pytest.raises(ConfigurationError):
            Histogram()

    def test_camel_case_options(self):
        histogram = Histogram({"column": "age", "selectionMode": "drag", "binThreshold": 10})
        assert histogram.config.selection_mode == SelectionMode.DRAG
        assert histogram.config.bin_threshold == 10

    def test_unknown_event(self):
        with pytest.raises(ConfigurationError):
            Histogram(column="age").on("clicked", print)

    @pytest.mark.asyncio
    async def test_update_without_data(self):
        with pytest.raises(DataLoadError):
            await Histogram(column="age").update()


class TestBinning:
    """Binning through the engine."""

    @pytest.mark.asyncio
    async def test_update_with_records(self, people_records):
        histogram, recorder = await _histogram(people_records, column="age", bin_threshold=10)
        assert histogram.bin_type == BinType.CONTINUOUS
        assert [b.length for b in histogram.bins] == [1, 1, 1, 2, 1, 1, 1, 1, 0, 1]
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_infinite_values_are_not_binned(self):
        records = [{"v": 1.0}, {"v": 2.0}, {"v": math.inf}, {"v": 3.0}]
        histogram, _ = await _histogram(records, column="v", bin_threshold=2)
        assert histogram.bin_type == BinType.CONTINUOUS
        assert [(b.x0, b.x1, b.length) for b in histogram.bins] == [(1.0, 2.0, 1), (2.0, 3.0, 2)]

    @pytest.mark.asyncio
    async def test_snapshot(self, people_records):
        histogram, _ = await _histogram(people_records, column="education", max_ordinal_bins=3)
        snapshot = histogram.snapshot()
        assert [b.key for b in snapshot.bins][:2] == ["Bachelor", "Master"]
        assert snapshot.bins[-1].is_other
        assert snapshot.scales.x.domain == [b.key for b in snapshot.bins]
        assert snapshot.selected == ()


class TestSelection:
    """Selection gestures and the records they emit."""

    @pytest.mark.asyncio
    async def test_drag_over_two_bins(self, people_records):
        histogram, recorder = await _histogram(
            people_records, column="age", bin_threshold=10, selection_mode="drag"
        )
        snapshot = histogram.snapshot()
        left = snapshot.scales.x(snapshot.bins[3].x0)
        right = snapshot.scales.x(snapshot.bins[4].x1)
        await histogram.brush_end((left + 0.5, right - 0.5))
        assert len(recorder.calls) == 1
        assert recorder.field(0, "age") == [29, 32, 35]
        assert len(histogram.selection) == 2

    @pytest.mark.asyncio
    async def test_empty_brush_emits_empty_list(self, people_records):
        histogram, recorder = await _histogram(people_records, column="age", selection_mode="drag")
        await histogram.brush_end(None)
        assert recorder.calls == [[]]

    @pytest.mark.asyncio
    async def test_single_click_toggles(self, people_records):
        histogram, recorder = await _histogram(people_records, column="education")
        bachelor = histogram.bins[0]
        await histogram.click(bachelor)
        await histogram.click(bachelor)
        assert recorder.field(0, "id") == [1, 3, 6, 9]
        assert recorder.calls[1] == []
        assert histogram.selection.is_empty

    @pytest.mark.asyncio
    async def test_single_click_replaces(self, people_records):
        histogram, _ = await _histogram(people_records, column="education")
        await histogram.click(histogram.bins[0])
        await histogram.click(histogram.bins[1], modifiers=("ctrl",))
        assert histogram.snapshot().selected == (histogram.bins[1],)

    @pytest.mark.asyncio
    async def test_multiple_mode_toggle(self, people_records):
        histogram, recorder = await _histogram(
            people_records, column="education", selection_mode="multiple"
        )
        bachelor, master, phd = histogram.bins[:3]
        await histogram.click(bachelor)
        await histogram.click(master, modifiers=("Meta",))
        assert len(histogram.selection) == 2
        assert recorder.field(1, "id") == [1, 2, 3, 5, 6, 8, 9, 10]

        await histogram.click(master, modifiers=("ctrl",))
        assert histogram.snapshot().selected == (bachelor,)

        await histogram.click(phd)
        assert histogram.snapshot().selected == (phd,)

    @pytest.mark.asyncio
    async def test_background_click(self, people_records):
        histogram, recorder = await _histogram(people_records, column="education")
        await histogram.click_background()
        assert recorder.calls == []
        await histogram.click(histogram.bins[0])
        await histogram.click_background()
        assert recorder.calls[-1] == []

    @pytest.mark.asyncio
    async def test_programmatic_clear_always_emits(self, people_records):
        histogram, recorder = await _histogram(people_records, column="education")
        await histogram.clear_selection()
        await histogram.click(histogram.bins[0])
        await histogram.clear_selection()
        assert recorder.calls[0] == []
        assert recorder.calls[-1] == []
        assert len(recorder.calls) == 3

    @pytest.mark.asyncio
    async def test_unknown_bin(self, people_records):
        histogram, _ = await _histogram(people_records, column="age")
        other, _ = await _histogram(people_records, column="education")
        with pytest.raises(HistogramError):
            await histogram.click(other.bins[0])

    @pytest.mark.asyncio
    async def test_async_handler(self, people_records):
        received = []

        async def handler(records):
            await asyncio.sleep(0)
            received.append(len(records))

        histogram = Histogram(column="education")
        histogram.on("selectionChanged", handler)
        await histogram.update(people_records)
        await histogram.click(histogram.bins[0])
        assert received == [4]

    @pytest.mark.asyncio
    async def test_stale_result_is_discarded(self, people_records):
        backend = GatedBackend()
        recorder = Recorder()
        histogram = Histogram(column="education", backend=backend)
        histogram.on("selectionChanged", recorder)
        await histogram.initialize()
        await histogram.load(people_records)

        first = asyncio.ensure_future(histogram.click(histogram.bins[0]))
        while backend.calls == 0:
            await asyncio.sleep(0)
        await histogram.click(histogram.bins[2])
        backend.gate.set()
        await first

        assert len(recorder.calls) == 1
        assert recorder.field(0, "education") == ["PhD"]


class TestRebinning:
    """Selection revalidation, reset and teardown."""

    @pytest.mark.asyncio
    async def test_selection_survives_identical_update(self, people_records):
        histogram, recorder = await _histogram(people_records, column="education")
        await histogram.click(histogram.bins[0])
        await histogram.update(people_records)
        assert len(recorder.calls) == 1
        assert len(histogram.selection) == 1

    @pytest.mark.asyncio
    async def test_vanished_bin_is_dropped(self, people_records):
        histogram, recorder = await _histogram(people_records, column="education")
        phd = [b for b in histogram.bins if b.key == "PhD"][0]
        await histogram.click(phd)
        await histogram.update([r for r in people_records if r["education"] != "PhD"])
        assert recorder.calls[-1] == []
        assert histogram.selection.is_empty

    @pytest.mark.asyncio
    async def test_reset_is_idempotent(self, people_records):
        histogram, recorder = await _histogram(people_records, column="age", bin_threshold=10)
        bins = histogram.bins
        await histogram.click(bins[0])
        await histogram.reset()
        await histogram.reset()
        assert recorder.calls[1:] == [[]]
        assert histogram.bins == bins

    @pytest.mark.asyncio
    async def test_destroy_after_failed_initialize(self):
        histogram = Histogram(column="age", memory_limit="not a size")
        with pytest.raises(InitializationError):
            await histogram.initialize()
        assert not histogram.is_initialized
        await histogram.destroy()
        await histogram.destroy()

    @pytest.mark.asyncio
    async def test_destroy_clears_state(self, people_records):
        histogram, _ = await _histogram(people_records, column="age")
        await histogram.destroy()
        assert histogram.bins == []
        assert histogram.bin_type is None
        with pytest.raises(DataLoadError):
            await histogram.update()


class TestQueryEngine:
    """The engine driven by the DuckDB backend."""

    @pytest.mark.asyncio
    async def test_initialize_loads_data_source(self, people_records, table_name_factory):
        recorder = Recorder()
        histogram = Histogram(
            column="education",
            data_source=people_records,
            max_ordinal_bins=3,
            table_name_factory=table_name_factory,
        )
        histogram.on("selectionChanged", recorder)
        try:
            await histogram.initialize()
            assert histogram.query_backend.table_name == "t_1"
            assert [(b.key, b.length) for b in histogram.bins][:2] == [("Bachelor", 4), ("Master", 4)]

            await histogram.click(histogram.bins[-1])
            assert recorder.field(0, "id") == [4, 7]

            await histogram.update()
            assert len(histogram.selection) == 1
        finally:
            await histogram.destroy()
        assert histogram.query_backend is None

    @pytest.mark.asyncio
    async def test_failed_data_source_keeps_engine(self, temp_data_dir, people_records):
        histogram = Histogram(column="age", data_source=temp_data_dir / "missing.csv")
        try:
            with pytest.raises(DataLoadError):
                await histogram.initialize()
            assert histogram.is_initialized
            assert await histogram.load(people_records) == 10
            assert len(histogram.bins) > 0
        finally:
            await histogram.destroy()


class TestView:
    """Rendering notifications."""

    @pytest.mark.asyncio
    async def test_rendered_event_and_view(self, people_records):
        view = HistogramView()
        snapshots = []
        histogram = Histogram(column="age", bin_threshold=10, view=view)
        histogram.on("rendered", snapshots.append)
        await histogram.update(people_records)

        assert len(snapshots) == 1
        assert len(view.payload["bars"]) == 10
        assert view.render_count == 1

        await histogram.update(people_records)
        assert len(snapshots) == 2
        assert view.render_count == 1

    @pytest.mark.asyncio
    async def test_hover_redraws_view(self, people_records):
        view = HistogramView()
        histogram = Histogram(column="education", view=view)
        await histogram.update(people_records)
        histogram.hover(histogram.bins[0])
        assert view.payload["tooltip"] == {"category": "Bachelor", "count": 4}
        assert view.payload["bars"][0]["fill"] == "orange"
        histogram.hover(None)
        assert "tooltip" not in view.payload
        assert view.render_count == 3

    @pytest.mark.asyncio
    async def test_selection_is_drawn(self, people_records):
        view = HistogramView()
        histogram = Histogram(column="education", view=view)
        await histogram.update(people_records)
        await histogram.click(histogram.bins[1])
        assert [bar["selected"] for bar in view.payload["bars"]] == [False, True, False, False]
