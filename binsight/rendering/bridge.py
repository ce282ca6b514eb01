"""Bridge between the histogram engine and a drawing frontend.

The engine never draws. After every state change it hands a
HistogramSnapshot to the attached view, which turns it into a plain,
JSON-serializable payload (one entry per bar plus optional axes, labels and
tooltip) that a frontend can draw without recomputing any layout.
"""

import datetime
import hashlib
import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..core.selection import SelectionMode
from ..preprocessing.binning import Bin
from ..preprocessing.classify import BinType
from .scales import BandScale, bar_width, bin_extent

if TYPE_CHECKING:
    from ..components.histogram import HistogramSnapshot
    from ..core.config import HistogramConfig

DATE_FORMAT = "%Y-%m-%d"
LABEL_OFFSET = 25


def _format_date(value: Any) -> str:
    return value.strftime(DATE_FORMAT)


def format_bin_label(bin_: Bin, bin_type: BinType) -> str:
    """
    Label text for a bin.

    Returns ``'key: n'`` for ordinal bins, ``'YYYY-MM-DD: n'`` (lower bound)
    for date bins and ``'a.a-b.b: n'`` for continuous bins.
    """
    if bin_type == BinType.ORDINAL:
        return f"{bin_.key}: {bin_.length}"
    if bin_type == BinType.DATE:
        return f"{_format_date(bin_.x0)}: {bin_.length}"
    return f"{float(bin_.x0):.1f}-{float(bin_.x1):.1f}: {bin_.length}"


def format_tooltip(bin_: Bin, bin_type: BinType) -> Dict[str, Any]:
    """Category and count shown for the hovered bin."""
    if bin_type == BinType.ORDINAL:
        category = bin_.key
    elif bin_type == BinType.DATE:
        category = _format_date(bin_.x0)
    else:
        category = bin_.x0
    return {"category": category, "count": bin_.length}


def _tick_label(value: Any, bin_type: BinType) -> Any:
    if bin_type == BinType.DATE:
        return _format_date(value)
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return str(value)


def prepare_render_payload(snapshot: "HistogramSnapshot", config: "HistogramConfig") -> Dict[str, Any]:
    """
    Lay out a snapshot for drawing.

    Args:
        snapshot: Engine state to draw
        config: Histogram configuration (size, margins, colors, flags)

    Returns:
        Dict with the outer size, the plot offset, one entry per bar and,
        depending on the configuration, axis ticks, bin labels, the hovered
        bin's tooltip and whether a brush overlay is active
    """
    margin = config.margin
    payload: Dict[str, Any] = {
        "width": config.width + margin.left + margin.right,
        "height": config.height + margin.top + margin.bottom,
        "offset": (margin.left, margin.top),
        "bin_type": snapshot.bin_type.value if snapshot.bin_type else None,
        "bars": [],
        "brush": snapshot.mode == SelectionMode.DRAG,
    }
    if snapshot.scales is None or snapshot.bin_type is None:
        return payload

    scales, bin_type = snapshot.scales, snapshot.bin_type
    selected = {b.ident for b in snapshot.selected}
    hovered = snapshot.hovered.ident if snapshot.hovered is not None else None

    bars: List[Dict[str, Any]] = []
    for b in snapshot.bins:
        left, _ = bin_extent(b, scales, bin_type)
        y = scales.y(b.length)
        highlighted = b.ident in selected or b.ident == hovered
        bars.append(
            {
                "x": left,
                "y": y,
                "width": bar_width(b, scales, bin_type),
                "height": config.height - y,
                "fill": config.selected_color if highlighted else config.unselected_color,
                "selected": b.ident in selected,
                "label": format_bin_label(b, bin_type),
            }
        )
    payload["bars"] = bars

    if config.axis:
        if isinstance(scales.x, BandScale):
            x_ticks = [{"value": key, "position": scales.x(key) + scales.x.bandwidth() / 2}
                       for key in scales.x.domain]
        else:
            x_ticks = [{"value": _tick_label(t, bin_type), "position": scales.x(t)}
                       for t in scales.x.ticks()]
        payload["axes"] = {
            "x": {"offset": config.height, "ticks": x_ticks},
            "y": {"ticks": [{"value": t, "position": scales.y(t)} for t in scales.y.ticks()]},
        }

    if config.show_labels_below:
        payload["labels"] = {
            "offset": config.height + LABEL_OFFSET,
            "items": [
                {"x": bar["x"] + bar["width"] / 2, "text": bar["label"]} for bar in bars
            ],
        }

    if snapshot.hovered is not None:
        payload["tooltip"] = format_tooltip(snapshot.hovered, bin_type)

    return payload


def payload_hash(payload: Dict[str, Any]) -> str:
    """Stable hash of a payload, used to skip redundant redraws."""
    encoded = json.dumps(payload, sort_keys=True, default=_json_default)
    return hashlib.sha256(encoded.encode()).hexdigest()


class HistogramView:
    """
    Minimal view that keeps the last render payload.

    Frontends subclass it and override draw() to push the payload to a
    canvas, a browser or a notebook widget. draw() is only called when the
    payload actually changed.
    """

    def __init__(self):
        self._payload: Optional[Dict[str, Any]] = None
        self._hash: Optional[str] = None
        self.render_count = 0

    @property
    def payload(self) -> Optional[Dict[str, Any]]:
        return self._payload

    def render(self, snapshot: "HistogramSnapshot", config: "HistogramConfig") -> Dict[str, Any]:
        payload = prepare_render_payload(snapshot, config)
        digest = payload_hash(payload)
        if digest != self._hash:
            self._payload = payload
            self._hash = digest
            self.render_count += 1
            self.draw(payload)
        return payload

    def draw(self, payload: Dict[str, Any]) -> None:
        """Hook for subclasses; the base view only stores the payload."""
        pass

    def clear(self) -> None:
        self._payload = None
        self._hash = None
