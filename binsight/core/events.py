"""Named event dispatch for engine notifications.

Handlers are registered per typename: an event name optionally followed by a
namespace (``"selectionChanged.table"``). Registering a second handler under
the same typename replaces the first; registering None removes it. Handlers
may be plain callables or coroutine functions.
"""

import inspect
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from ..utils.logging import get_logger
from .errors import ConfigurationError

logger = get_logger(__name__)

Handler = Callable[..., Any]


class EventDispatcher:
    """Dispatches named events to registered handlers."""

    def __init__(self, *event_names: str):
        self._names = set(event_names)
        # event name -> {namespace -> handler}, in registration order
        self._handlers: Dict[str, Dict[str, Handler]] = {name: {} for name in event_names}

    @property
    def event_names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._names))

    def _parse(self, typename: str) -> Tuple[str, str]:
        name, _, namespace = typename.partition(".")
        if name not in self._names:
            raise ConfigurationError(
                f"Unknown event '{name}'. Available events: {sorted(self._names)}"
            )
        return name, namespace

    def on(self, typename: str, handler: Optional[Handler]) -> None:
        """
        Register, replace or remove a handler.

        Args:
            typename: Event name with optional ``.namespace`` suffix
            handler: Callable or coroutine function; None removes the
                handler registered under ``typename``
        """
        name, namespace = self._parse(typename)
        if handler is None:
            self._handlers[name].pop(namespace, None)
        else:
            self._handlers[name][namespace] = handler

    def handlers(self, name: str) -> Iterable[Handler]:
        self._parse(name)
        return list(self._handlers[name].values())

    async def emit(self, name: str, *args: Any) -> None:
        """Call every handler of ``name`` in registration order, awaiting coroutines."""
        for handler in self.handlers(name):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        logger.debug("Dispatched '%s' to %d handler(s)", name, len(self._handlers[name]))
