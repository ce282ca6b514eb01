"""Scales and render payloads for drawing frontends."""

from .bridge import HistogramView, format_bin_label, prepare_render_payload
from .scales import BandScale, LinearScale, Scales, TimeScale, build_scales

__all__ = [
    "HistogramView",
    "prepare_render_payload",
    "format_bin_label",
    "BandScale",
    "LinearScale",
    "TimeScale",
    "Scales",
    "build_scales",
]
