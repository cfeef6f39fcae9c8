"""
Time-series line chart.

The value axis always starts at zero and leaves 10% headroom above the peak
so the highest point is never clipped. Hover resolves to the data point
closest in time to the pointer, not the closest pixel.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ..core.models import Granularity, TimeBucket
from ..formatting import format_bucket_label
from .base import Margin, render_svg
from .scales import LinearScale, TimeScale

HEADROOM = 1.1


class LinePoint(BaseModel):
    x: float
    y: float
    bucket_start: datetime
    value: int
    label: str


class Tick(BaseModel):
    position: float
    label: str


class LineLayout(BaseModel):
    """Computed geometry for one line chart."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    width: float
    height: float
    margin: Margin
    points: list[LinePoint]
    path: str
    area_path: str
    x_ticks: list[Tick]
    y_ticks: list[Tick]
    x_scale: TimeScale | None = None
    y_scale: LinearScale

    @property
    def empty(self) -> bool:
        return not self.points

    @property
    def inner_width(self) -> float:
        return self.width - self.margin.left - self.margin.right

    @property
    def inner_height(self) -> float:
        return self.height - self.margin.top - self.margin.bottom


def value_domain(values: list[int]) -> tuple[float, float]:
    """Zero-based domain with headroom; [0, 1] when there is nothing to show."""
    peak = max(values, default=0)
    if peak <= 0:
        return 0.0, 1.0
    return 0.0, peak * HEADROOM


def layout(
    series: list[TimeBucket],
    width: float = 800,
    height: float = 320,
    margin: Margin | None = None,
    granularity: Granularity = Granularity.DAY,
) -> LineLayout:
    """Compute scales, path and markers for a series."""
    margin = margin or Margin()
    inner_w = width - margin.left - margin.right
    inner_h = height - margin.top - margin.bottom

    y_scale = LinearScale(domain=value_domain([b.value for b in series]), range=(inner_h, 0))
    y_ticks = [Tick(position=y_scale(v), label=f"{v:g}") for v in y_scale.ticks(5)]

    if not series:
        return LineLayout(
            width=width, height=height, margin=margin, points=[], path="", area_path="",
            x_ticks=[], y_ticks=y_ticks, x_scale=None, y_scale=y_scale,
        )

    ordered = sorted(series, key=lambda b: b.bucket_start)
    x_scale = TimeScale(domain=(ordered[0].bucket_start, ordered[-1].bucket_start), range=(0, inner_w))

    points = [
        LinePoint(
            x=x_scale(b.bucket_start),
            y=y_scale(b.value),
            bucket_start=b.bucket_start,
            value=b.value,
            label=format_bucket_label(b.bucket_start, granularity),
        )
        for b in ordered
    ]
    path = "M" + "L".join(f"{p.x:.2f},{p.y:.2f}" for p in points)
    area_path = f"{path}L{points[-1].x:.2f},{inner_h:.2f}L{points[0].x:.2f},{inner_h:.2f}Z"
    x_ticks = [
        Tick(position=x_scale(t), label=format_bucket_label(t, granularity))
        for t in x_scale.ticks(6)
    ]

    return LineLayout(
        width=width, height=height, margin=margin, points=points, path=path,
        area_path=area_path, x_ticks=x_ticks, y_ticks=y_ticks,
        x_scale=x_scale, y_scale=y_scale,
    )


def nearest_point(chart: LineLayout, pixel_x: float) -> LinePoint | None:
    """
    Data point nearest in time to a pointer position.

    Args:
        chart: Layout returned by layout()
        pixel_x: Pointer X relative to the left edge of the SVG

    Returns:
        The point with the smallest time distance, or None when the pointer
        is outside the plot area or the chart is empty.
    """
    if chart.empty or chart.x_scale is None:
        return None
    x = pixel_x - chart.margin.left
    if x < 0 or x > chart.inner_width:
        return None
    at = chart.x_scale.invert(x)
    return min(chart.points, key=lambda p: abs((p.bucket_start - at).total_seconds()))


def render(
    series: list[TimeBucket],
    color: str = "#3b82f6",
    title: str = "",
    granularity: Granularity = Granularity.DAY,
    **kwargs,
) -> str:
    """Render the series as an SVG line chart."""
    chart = layout(series, granularity=granularity, **kwargs)
    return render_svg("line.svg", chart=chart, color=color, title=title)
