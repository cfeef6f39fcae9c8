"""
Linear and time scales with tick generation.

Both scales map a data domain onto a pixel range and back. A zero-width
domain maps every value to the middle of the range instead of dividing by
zero.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

_E10 = math.sqrt(50)
_E5 = math.sqrt(10)
_E2 = math.sqrt(2)


def tick_step(start: float, stop: float, count: int) -> float:
    """Round tick step (1, 2 or 5 times a power of ten) for ~count ticks."""
    span = abs(stop - start)
    if span == 0 or count <= 0:
        return 0.0
    step = span / count
    power = math.floor(math.log10(step))
    error = step / 10 ** power
    if error >= _E10:
        factor = 10
    elif error >= _E5:
        factor = 5
    elif error >= _E2:
        factor = 2
    else:
        factor = 1
    return factor * 10 ** power


@dataclass(frozen=True)
class LinearScale:
    """Maps numbers in `domain` to pixels in `range`."""
    domain: tuple[float, float]
    range: tuple[float, float]

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d1 == d0:
            return (r0 + r1) / 2
        return r0 + (value - d0) / (d1 - d0) * (r1 - r0)

    def invert(self, pixel: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if r1 == r0:
            return d0
        return d0 + (pixel - r0) / (r1 - r0) * (d1 - d0)

    def ticks(self, count: int = 5) -> list[float]:
        """Evenly spaced round values inside the domain."""
        d0, d1 = sorted(self.domain)
        step = tick_step(d0, d1, count)
        if step == 0:
            return [d0]
        first = math.ceil(d0 / step)
        last = math.floor(d1 / step)
        return [round(i * step, 10) for i in range(first, last + 1)]

    def nice(self, count: int = 5) -> "LinearScale":
        """Extend the domain outward to round tick values."""
        d0, d1 = self.domain
        step = tick_step(d0, d1, count)
        if step == 0:
            return self
        return LinearScale(
            domain=(math.floor(d0 / step) * step, math.ceil(d1 / step) * step),
            range=self.range,
        )


# Candidate tick intervals, smallest first
_TIME_STEPS = [
    timedelta(hours=1),
    timedelta(hours=3),
    timedelta(hours=6),
    timedelta(hours=12),
    timedelta(days=1),
    timedelta(days=2),
    timedelta(days=7),
    timedelta(days=14),
    timedelta(days=30),
    timedelta(days=91),
    timedelta(days=365),
]


@dataclass(frozen=True)
class TimeScale:
    """Maps datetimes in `domain` to pixels in `range`."""
    domain: tuple[datetime, datetime]
    range: tuple[float, float]

    @property
    def span(self) -> timedelta:
        return self.domain[1] - self.domain[0]

    def __call__(self, value: datetime) -> float:
        r0, r1 = self.range
        span = self.span.total_seconds()
        if span == 0:
            return (r0 + r1) / 2
        offset = (value - self.domain[0]).total_seconds()
        return r0 + offset / span * (r1 - r0)

    def invert(self, pixel: float) -> datetime:
        r0, r1 = self.range
        if r1 == r0:
            return self.domain[0]
        fraction = (pixel - r0) / (r1 - r0)
        return self.domain[0] + self.span * fraction

    def ticks(self, count: int = 6) -> list[datetime]:
        """Tick datetimes aligned to whole hours or days."""
        d0, d1 = self.domain
        if d0 == d1:
            return [d0]
        step = next((s for s in _TIME_STEPS if self.span / s <= count), _TIME_STEPS[-1])
        if step < timedelta(days=1):
            hours = int(step.total_seconds() // 3600)
            tick = d0.replace(minute=0, second=0, microsecond=0)
            tick = tick.replace(hour=tick.hour - tick.hour % hours)
        else:
            tick = d0.replace(hour=0, minute=0, second=0, microsecond=0)
        ticks = []
        while tick <= d1:
            if tick >= d0:
                ticks.append(tick)
            tick += step
        return ticks
