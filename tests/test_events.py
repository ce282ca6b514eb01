"""Tests for the event dispatcher."""

import pytest

from binsight.core.errors import ConfigurationError
from binsight.core.events import EventDispatcher


class TestEventDispatcher:
    """Tests for EventDispatcher registration and dispatch."""

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self):
        dispatcher = EventDispatcher("changed")
        calls = []

        async def async_handler(value):
            calls.append(("async", value))

        dispatcher.on("changed", lambda value: calls.append(("sync", value)))
        dispatcher.on("changed.other", async_handler)
        await dispatcher.emit("changed", 1)

        assert calls == [("sync", 1), ("async", 1)]

    @pytest.mark.asyncio
    async def test_same_typename_replaces(self):
        dispatcher = EventDispatcher("changed")
        calls = []
        dispatcher.on("changed", lambda v: calls.append("first"))
        dispatcher.on("changed", lambda v: calls.append("second"))
        await dispatcher.emit("changed", None)
        assert calls == ["second"]

    @pytest.mark.asyncio
    async def test_none_removes(self):
        dispatcher = EventDispatcher("changed")
        calls = []
        dispatcher.on("changed.ns", lambda v: calls.append(v))
        dispatcher.on("changed.ns", None)
        await dispatcher.emit("changed", 1)
        assert calls == []

    def test_unknown_event(self):
        dispatcher = EventDispatcher("changed")
        with pytest.raises(ConfigurationError):
            dispatcher.on("clicked", print)

    def test_event_names(self):
        assert EventDispatcher("b", "a").event_names == ("a", "b")

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self):
        dispatcher = EventDispatcher("changed")

        def failing(value):
            raise RuntimeError("boom")

        dispatcher.on("changed", failing)
        with pytest.raises(RuntimeError):
            await dispatcher.emit("changed", 1)
