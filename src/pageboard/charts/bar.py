"""
Bar charts for categorical series, plus a stacked variant for bounce trends.
"""
from pydantic import BaseModel

from ..core.models import BounceBucket, CategoricalItem, Granularity
from ..core.series import sort_desc
from ..formatting import format_bucket_label
from .base import render_svg
from .scales import LinearScale

# Bars never shrink below this many pixels, so tiny values stay visible
MIN_BAR_PX = 3.0


def value_domain(values: list[float]) -> tuple[float, float]:
    """
    Value-axis domain for a bar chart.

    The lower bound is always 0. When every value is zero (or there are no
    values) the domain is [0, 1] so the scale never divides by zero.
    """
    if not values:
        return 0.0, 1.0
    high = max(values)
    low = min(min(values), 0.0)
    if high == low == 0:
        return 0.0, 1.0
    return 0.0, float(high)


class Bar(BaseModel):
    name: str
    value: float
    x: float
    y: float
    width: float
    height: float


class BarLayout(BaseModel):
    width: float
    height: float
    horizontal: bool
    domain: tuple[float, float]
    ticks: list[float]
    bars: list[Bar]

    @property
    def empty(self) -> bool:
        return not self.bars


def _bar_length(scale: LinearScale, value: float, available: float) -> float:
    return min(max(scale(value), MIN_BAR_PX), available)


def layout(
    items: list[CategoricalItem],
    width: float = 480,
    height: float = 240,
    horizontal: bool = False,
    gap: float = 8,
    limit: int | None = None,
) -> BarLayout:
    """Compute bar geometry. Items are sorted by descending value first."""
    ordered = sort_desc(items)
    if limit is not None:
        ordered = ordered[:limit]
    domain = value_domain([i.value for i in ordered])
    length = width if horizontal else height
    scale = LinearScale(domain=domain, range=(0, length))

    bars = []
    n = len(ordered)
    if n:
        band = max(((height if horizontal else width) - gap * (n - 1)) / n, 1.0)
        for idx, item in enumerate(ordered):
            size = _bar_length(scale, item.value, length)
            offset = idx * (band + gap)
            if horizontal:
                bars.append(Bar(name=item.name, value=item.value, x=0, y=offset, width=size, height=band))
            else:
                bars.append(Bar(name=item.name, value=item.value, x=offset, y=height - size, width=band, height=size))

    return BarLayout(
        width=width, height=height, horizontal=horizontal, domain=domain,
        ticks=scale.ticks(4), bars=bars,
    )


def render(items: list[CategoricalItem], color: str = "#3b82f6", title: str = "", **kwargs) -> str:
    """Render a categorical series as an SVG bar chart."""
    chart = layout(items, **kwargs)
    return render_svg("bar.svg", chart=chart, color=color, title=title)


# =============================================================================
# STACKED (bounce vs. non-bounce)
# =============================================================================

class StackedBar(BaseModel):
    label: str
    x: float
    width: float
    bounce_y: float
    bounce_height: float
    rest_y: float
    rest_height: float
    bounce: int
    non_bounce: int


class StackedLayout(BaseModel):
    width: float
    height: float
    domain: tuple[float, float]
    bars: list[StackedBar]

    @property
    def empty(self) -> bool:
        return not self.bars


def stacked_layout(
    rows: list[BounceBucket],
    width: float = 800,
    height: float = 240,
    gap: float = 2,
    granularity: Granularity = Granularity.DAY,
) -> StackedLayout:
    """Stacked columns: bounced sessions at the bottom, engaged on top."""
    domain = value_domain([r.bounce + r.non_bounce for r in rows])
    scale = LinearScale(domain=domain, range=(0, height))
    bars = []
    n = len(rows)
    if n:
        band = max((width - gap * (n - 1)) / n, 1.0)
        for idx, row in enumerate(rows):
            bounce_h = scale(row.bounce) if row.bounce else 0.0
            rest_h = scale(row.non_bounce) if row.non_bounce else 0.0
            if row.bounce + row.non_bounce > 0 and bounce_h + rest_h < MIN_BAR_PX:
                # Keep non-empty columns visible
                if row.bounce:
                    bounce_h = MIN_BAR_PX - rest_h
                else:
                    rest_h = MIN_BAR_PX
            bars.append(StackedBar(
                label=format_bucket_label(row.bucket_start, granularity),
                x=idx * (band + gap),
                width=band,
                bounce_y=height - bounce_h,
                bounce_height=bounce_h,
                rest_y=height - bounce_h - rest_h,
                rest_height=rest_h,
                bounce=row.bounce,
                non_bounce=row.non_bounce,
            ))
    return StackedLayout(width=width, height=height, domain=domain, bars=bars)


def render_stacked(
    rows: list[BounceBucket],
    colors: tuple[str, str] = ("#ef4444", "#3b82f6"),
    title: str = "",
    **kwargs,
) -> str:
    """Render bounce trend rows as an SVG stacked bar chart."""
    chart = stacked_layout(rows, **kwargs)
    return render_svg("stacked_bar.svg", chart=chart, colors=colors, title=title)
