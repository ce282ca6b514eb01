"""Positional scales derived from bin boundaries.

The scales mirror the behaviour of d3's band, linear and time scales closely
enough that a frontend drawing with d3 and this module agree on every pixel
position:

- BandScale: discrete keys onto equal bands with inner/outer padding
- LinearScale: numeric domain onto a pixel range, with nice() and ticks()
- TimeScale: LinearScale over datetimes
"""

import datetime
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from ..preprocessing.binning import Bin, as_datetime
from ..preprocessing.classify import BinType

BAND_PADDING = 0.1

_E10 = math.sqrt(50)
_E5 = math.sqrt(10)
_E2 = math.sqrt(2)

_SECONDS_PER_DAY = 86400


def tick_increment(start: float, stop: float, count: int) -> float:
    """
    Step between nicely rounded ticks.

    Positive results are the step itself; negative results are the inverse
    of the step (for steps below 1), as in d3-array.
    """
    step = (stop - start) / max(0, count)
    if step <= 0 or not math.isfinite(step):
        return 0.0
    power = math.floor(math.log10(step))
    error = step / 10**power
    if error >= _E10:
        factor = 10
    elif error >= _E5:
        factor = 5
    elif error >= _E2:
        factor = 2
    else:
        factor = 1
    if power >= 0:
        return factor * 10**power
    return -(10 ** (-power)) / factor


class BandScale:
    """Discrete scale mapping keys onto equal-width bands."""

    def __init__(
        self,
        domain: Sequence[Any],
        range_: Tuple[float, float],
        padding: float = BAND_PADDING,
    ):
        self._domain = list(domain)
        self._index = {self._hashable(key): i for i, key in enumerate(self._domain)}
        self._range = (float(range_[0]), float(range_[1]))
        self._padding_inner = padding
        self._padding_outer = padding
        self._rescale()

    @staticmethod
    def _hashable(key: Any) -> Any:
        try:
            hash(key)
            return key
        except TypeError:
            return repr(key)

    def _rescale(self) -> None:
        n = len(self._domain)
        r0, r1 = self._range
        reverse = r1 < r0
        start, stop = (r1, r0) if reverse else (r0, r1)
        self._step = (stop - start) / max(
            1, n - self._padding_inner + self._padding_outer * 2
        )
        self._bandwidth = self._step * (1 - self._padding_inner)
        start += (stop - start - self._step * (n - self._padding_inner)) * 0.5
        self._positions = [start + self._step * i for i in range(n)]
        if reverse:
            self._positions.reverse()

    @property
    def domain(self) -> List[Any]:
        return list(self._domain)

    @property
    def range(self) -> Tuple[float, float]:
        return self._range

    def bandwidth(self) -> float:
        return self._bandwidth

    def step(self) -> float:
        return self._step

    def __call__(self, key: Any) -> Optional[float]:
        index = self._index.get(self._hashable(key))
        if index is None:
            return None
        return self._positions[index]

    def __repr__(self) -> str:
        return f"BandScale(domain={self._domain!r}, range={self._range!r})"


class LinearScale:
    """Continuous linear mapping from a numeric domain onto a pixel range."""

    def __init__(self, domain: Tuple[float, float], range_: Tuple[float, float]):
        self._domain = (float(domain[0]), float(domain[1]))
        self._range = (float(range_[0]), float(range_[1]))

    @property
    def domain(self) -> Tuple[float, float]:
        return self._domain

    @property
    def range(self) -> Tuple[float, float]:
        return self._range

    def _to_number(self, value: Any) -> float:
        return float(value)

    def _from_number(self, value: float) -> Any:
        return value

    def __call__(self, value: Any) -> float:
        if value is None:
            return math.nan
        d0, d1 = self._domain
        r0, r1 = self._range
        x = self._to_number(value)
        if d1 == d0:
            # degenerate domain maps to the middle of the range
            t = 0.5
        else:
            t = (x - d0) / (d1 - d0)
        return r0 + t * (r1 - r0)

    def invert(self, position: float) -> Any:
        d0, d1 = self._domain
        r0, r1 = self._range
        if r1 == r0:
            t = 0.5
        else:
            t = (position - r0) / (r1 - r0)
        return self._from_number(d0 + t * (d1 - d0))

    def nice(self, count: int = 10) -> "LinearScale":
        """Extend the domain to round values, in place."""
        d0, d1 = self._domain
        reverse = d1 < d0
        start, stop = (d1, d0) if reverse else (d0, d1)
        previous = None
        for _ in range(10):
            step = tick_increment(start, stop, count)
            if step == previous:
                break
            if step > 0:
                start = math.floor(start / step) * step
                stop = math.ceil(stop / step) * step
            elif step < 0:
                start = math.ceil(start * step) / step
                stop = math.floor(stop * step) / step
            else:
                break
            previous = step
        self._domain = (stop, start) if reverse else (start, stop)
        return self

    def ticks(self, count: int = 10) -> List[float]:
        d0, d1 = self._domain
        lo, hi = min(d0, d1), max(d0, d1)
        step = tick_increment(lo, hi, count)
        if step == 0:
            return [lo] if lo == hi else []
        if step > 0:
            first, last = math.ceil(lo / step), math.floor(hi / step)
            return [i * step for i in range(first, last + 1)]
        inverse = -step
        first, last = math.ceil(lo * inverse), math.floor(hi * inverse)
        return [i / inverse for i in range(first, last + 1)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(domain={self.domain!r}, range={self._range!r})"


class TimeScale(LinearScale):
    """Linear scale over datetimes (positions are computed from POSIX seconds)."""

    def __init__(
        self,
        domain: Tuple[datetime.datetime, datetime.datetime],
        range_: Tuple[float, float],
    ):
        super().__init__(
            (self._seconds(domain[0]), self._seconds(domain[1])), range_
        )

    @staticmethod
    def _seconds(value: Any) -> float:
        moment = as_datetime(value)
        return moment.replace(tzinfo=datetime.timezone.utc).timestamp()

    def _to_number(self, value: Any) -> float:
        return self._seconds(value)

    def _from_number(self, value: float) -> datetime.datetime:
        moment = datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
        return moment.replace(tzinfo=None)

    @property
    def domain(self) -> Tuple[datetime.datetime, datetime.datetime]:
        d0, d1 = self._domain
        return (self._from_number(d0), self._from_number(d1))

    def ticks(self, count: int = 10) -> List[datetime.datetime]:
        """Midnight ticks spaced by a whole number of days."""
        lo, hi = (s / _SECONDS_PER_DAY for s in sorted(self._domain))
        step = tick_increment(lo, hi, count)
        if step == 0 and lo != hi:
            return []
        step = max(1, step)
        first, last = math.ceil(lo / step), math.floor(hi / step)
        return [
            self._from_number(i * step * _SECONDS_PER_DAY) for i in range(first, last + 1)
        ]


XScale = Union[BandScale, LinearScale, TimeScale]


@dataclass(frozen=True)
class Scales:
    """X and Y scales for one bin sequence."""

    x: XScale
    y: LinearScale


def build_scales(bins: Sequence[Bin], bin_type: BinType, width: float, height: float) -> Scales:
    """
    Build the x and y scales for a bin sequence.

    Args:
        bins: Current bins
        bin_type: Type the bins were computed for
        width: Plot width in pixels
        height: Plot height in pixels

    Returns:
        Scales with a band (ordinal), time (date) or linear (continuous) x
        scale over ``[0, width]`` and a niced linear y scale over
        ``[height, 0]``
    """
    if bin_type == BinType.ORDINAL:
        x_scale: XScale = BandScale([b.key for b in bins], (0, width))
    else:
        lows = [b.x0 for b in bins]
        highs = [b.x1 for b in bins]
        if bin_type == BinType.DATE:
            x_scale = TimeScale((min(lows), max(highs)), (0, width))
        else:
            x_scale = LinearScale((min(lows), max(highs)), (0, width))

    max_length = max((int(b.length) for b in bins), default=0)
    y_scale = LinearScale((0, max_length), (height, 0)).nice()
    return Scales(x=x_scale, y=y_scale)


def bin_extent(bin_: Bin, scales: Scales, bin_type: BinType) -> Tuple[float, float]:
    """Pixel extent (left, right) of a bin on the x axis."""
    if bin_type == BinType.ORDINAL:
        left = scales.x(bin_.key)
        if left is None:
            return (math.nan, math.nan)
        return (left, left + scales.x.bandwidth())
    return (scales.x(bin_.x0), scales.x(bin_.x1))


def bar_width(bin_: Bin, scales: Scales, bin_type: BinType) -> float:
    """Bar width in pixels; at least 1 for range bins, 0 for malformed bins."""
    if bin_type == BinType.ORDINAL:
        return scales.x.bandwidth()
    width = scales.x(bin_.x1) - scales.x(bin_.x0)
    return 0.0 if math.isnan(width) else max(1.0, width)
