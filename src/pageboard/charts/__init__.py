"""
Chart primitives.

Each module turns already-aggregated data into a layout model and renders
that layout to inline SVG. None of them fetch data.
"""

from . import bar, choropleth, line, pie
from .base import DEFAULT_COLORS, Margin, render_svg
from .scales import LinearScale, TimeScale

__all__ = [
    "bar",
    "choropleth",
    "line",
    "pie",
    "DEFAULT_COLORS",
    "Margin",
    "render_svg",
    "LinearScale",
    "TimeScale",
]
