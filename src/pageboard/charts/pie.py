"""
Donut chart for part-of-whole breakdowns (devices, browsers, operating systems).
"""
import math

from pydantic import BaseModel

from ..core.models import CategoricalItem
from ..core.series import sort_desc
from .base import DEFAULT_COLORS, render_svg

INNER_RADIUS_RATIO = 0.6


class Slice(BaseModel):
    name: str
    value: float
    fraction: float
    start_angle: float
    end_angle: float
    color: str
    path: str

    @property
    def percentage(self) -> float:
        return round(self.fraction * 100, 1)


class PieLayout(BaseModel):
    size: float
    total: float
    slices: list[Slice]

    @property
    def empty(self) -> bool:
        return not self.slices


def _point(cx: float, cy: float, r: float, angle: float) -> tuple[float, float]:
    # Angles are measured clockwise from 12 o'clock
    return cx + r * math.sin(angle), cy - r * math.cos(angle)


def _arc_path(cx: float, cy: float, outer: float, inner: float, start: float, end: float) -> str:
    """Closed donut segment between two angles (radians)."""
    large = 1 if end - start > math.pi else 0
    ox0, oy0 = _point(cx, cy, outer, start)
    ox1, oy1 = _point(cx, cy, outer, end)
    ix1, iy1 = _point(cx, cy, inner, end)
    ix0, iy0 = _point(cx, cy, inner, start)
    return (
        f"M{ox0:.2f},{oy0:.2f}"
        f"A{outer:.2f},{outer:.2f} 0 {large} 1 {ox1:.2f},{oy1:.2f}"
        f"L{ix1:.2f},{iy1:.2f}"
        f"A{inner:.2f},{inner:.2f} 0 {large} 0 {ix0:.2f},{iy0:.2f}Z"
    )


def _slice_path(cx: float, cy: float, outer: float, inner: float, start: float, end: float) -> str:
    # An SVG arc cannot start and end on the same point, so a full circle
    # is drawn as two halves
    if end - start >= 2 * math.pi - 1e-9:
        mid = start + math.pi
        return _arc_path(cx, cy, outer, inner, start, mid) + _arc_path(cx, cy, outer, inner, mid, end)
    return _arc_path(cx, cy, outer, inner, start, end)


def layout(
    items: list[CategoricalItem],
    size: float = 200,
    colors: list[str] | None = None,
) -> PieLayout:
    """
    Compute donut slices proportional to value / total.

    Zero-valued items are skipped. A zero or empty total produces an empty
    layout rather than NaN angles.
    """
    colors = colors or DEFAULT_COLORS
    ordered = [item for item in sort_desc(items) if item.value > 0]
    total = sum(item.value for item in ordered)
    if total <= 0:
        return PieLayout(size=size, total=0, slices=[])

    cx = cy = size / 2
    outer = size / 2
    inner = outer * INNER_RADIUS_RATIO

    slices = []
    angle = 0.0
    for idx, item in enumerate(ordered):
        fraction = item.value / total
        end = angle + fraction * 2 * math.pi
        slices.append(Slice(
            name=item.name,
            value=item.value,
            fraction=fraction,
            start_angle=angle,
            end_angle=end,
            color=colors[idx % len(colors)],
            path=_slice_path(cx, cy, outer, inner, angle, end),
        ))
        angle = end

    return PieLayout(size=size, total=total, slices=slices)


def render(items: list[CategoricalItem], title: str = "", **kwargs) -> str:
    """Render a categorical series as an SVG donut chart with a legend."""
    chart = layout(items, **kwargs)
    return render_svg("pie.svg", chart=chart, title=title)
