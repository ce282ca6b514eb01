"""Selection state machine for histogram bins.

A SelectionState is an immutable value: every transition returns a new
state. Members are stored as structural bin idents (see Bin.ident), not as
Bin objects, so a selection can be checked against any bin sequence and
revalidated after rebinning.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Optional, Sequence

from ..preprocessing.binning import Bin
from .errors import ConfigurationError


class SelectionMode(str, Enum):
    """How user gestures change the selection."""

    SINGLE = "single"
    MULTIPLE = "multiple"
    DRAG = "drag"

    @classmethod
    def parse(cls, value: Any) -> "SelectionMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown selection mode '{value}'. "
                f"Available modes: {[m.value for m in cls]}"
            ) from None


@dataclass(frozen=True)
class SelectionState:
    """
    Immutable set of selected bin idents.

    Attributes:
        mode: Selection mode the engine is configured with
        idents: Idents of the selected bins (empty means no selection)
    """

    mode: SelectionMode = SelectionMode.SINGLE
    idents: FrozenSet[Any] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.idents

    def __contains__(self, bin_: Bin) -> bool:
        return bin_.ident in self.idents

    def __len__(self) -> int:
        return len(self.idents)

    def _with(self, idents: Iterable[Any]) -> "SelectionState":
        return SelectionState(mode=self.mode, idents=frozenset(idents))

    def click(self, bin_: Bin, multi: bool = False) -> "SelectionState":
        """
        Apply a click on ``bin_``.

        With ``multi`` (modifier held) in multiple mode the bin's membership
        is toggled. Otherwise clicking the sole selected bin clears the
        selection and clicking anything else replaces it with ``{bin_}``.
        """
        ident = bin_.ident
        if multi and self.mode == SelectionMode.MULTIPLE:
            if ident in self.idents:
                return self._with(self.idents - {ident})
            return self._with(self.idents | {ident})
        if self.idents == {ident}:
            return self.clear()
        return self._with([ident])

    def brush(self, bins: Optional[Iterable[Bin]]) -> "SelectionState":
        """Replace the selection with ``bins``; None clears it."""
        if bins is None:
            return self.clear()
        return self._with(b.ident for b in bins)

    def clear(self) -> "SelectionState":
        return self._with(())

    def revalidate(self, bins: Sequence[Bin]) -> "SelectionState":
        """Drop idents that have no counterpart in ``bins``."""
        current = {b.ident for b in bins}
        return self._with(self.idents & current)

    def resolve(self, bins: Sequence[Bin]) -> List[Bin]:
        """Selected bins from ``bins``, in bin order."""
        return [b for b in bins if b.ident in self.idents]
