"""Histogram component."""

from .histogram import Histogram, HistogramSnapshot

__all__ = ["Histogram", "HistogramSnapshot"]
