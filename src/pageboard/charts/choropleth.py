"""
World choropleth keyed by ISO alpha-3 codes.

Regions are drawn as markers at each country's approximate centroid on an
equirectangular projection. Fill is a linear interpolation from FILL_LOW to
FILL_HIGH over 0..max(visitors); countries without data get FILL_EMPTY.

The map holds no selection state. It renders from the Selection it is given
and reports pointer intents through callbacks as RegionEvents.
"""
from typing import Callable, Literal

from pydantic import BaseModel

from ..core.countries import ALL_COUNTRIES
from ..core.selection import Selection
from .base import render_svg

FILL_LOW = "#f3ebff"
FILL_HIGH = "#6366f1"
FILL_EMPTY = "#e5e7eb"

STROKE = "#ffffff"
STROKE_HOVER = "#4338ca"
STROKE_SELECTED = "#312e81"
STROKE_WIDTH = 0.5
STROKE_WIDTH_HOVER = 1.5
STROKE_WIDTH_SELECTED = 2.5


class RegionEvent(BaseModel):
    """Pointer intent on a map region. iso_code is None for 'left the map'."""
    kind: Literal["hover", "select", "clear"]
    iso_code: str | None = None


class Region(BaseModel):
    iso_code: str
    name: str
    x: float
    y: float
    radius: float
    value: int | None
    fill: str
    stroke: str
    stroke_width: float
    hovered: bool = False
    selected: bool = False


class MapLayout(BaseModel):
    width: float
    height: float
    max_value: int
    regions: list[Region]

    @property
    def has_data(self) -> bool:
        return any(r.value for r in self.regions)


def _hex_to_rgb(color: str) -> tuple[int, int, int]:
    color = color.lstrip("#")
    return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16)


def interpolate_color(low: str, high: str, t: float) -> str:
    """Linear RGB interpolation, t clamped to [0, 1]."""
    t = min(max(t, 0.0), 1.0)
    lo = _hex_to_rgb(low)
    hi = _hex_to_rgb(high)
    mixed = (round(a + (b - a) * t) for a, b in zip(lo, hi))
    return "#{:02x}{:02x}{:02x}".format(*mixed)


def fill_for(value: int | None, max_value: int, low: str = FILL_LOW, high: str = FILL_HIGH) -> str:
    """Fill colour for a region. Regions absent from the data get the neutral fill."""
    if value is None:
        return FILL_EMPTY
    return interpolate_color(low, high, value / (max_value or 1))


def project(lat: float, lon: float, width: float, height: float) -> tuple[float, float]:
    """Equirectangular projection onto a width x height canvas."""
    return (lon + 180) / 360 * width, (90 - lat) / 180 * height


def layout(
    map_data: dict[str, int],
    selection: Selection | None = None,
    width: float = 800,
    height: float = 400,
    radius: float = 6,
    low: str = FILL_LOW,
    high: str = FILL_HIGH,
) -> MapLayout:
    """
    Place every known country and shade it by its visitor count.

    Args:
        map_data: Visitor counts keyed by alpha-3 (see build_map_data)
        selection: Current hover/selection owned by the caller
    """
    selection = selection or Selection()
    max_value = max(map_data.values(), default=0)
    regions = []
    for country in ALL_COUNTRIES:
        value = map_data.get(country.alpha3)
        x, y = project(country.lat, country.lon, width, height)
        hovered = selection.is_hovered(country.alpha3)
        selected = selection.is_selected(country.alpha3)
        if selected:
            stroke, stroke_width = STROKE_SELECTED, STROKE_WIDTH_SELECTED
        elif hovered:
            stroke, stroke_width = STROKE_HOVER, STROKE_WIDTH_HOVER
        else:
            stroke, stroke_width = STROKE, STROKE_WIDTH
        regions.append(Region(
            iso_code=country.alpha3,
            name=country.name,
            x=x,
            y=y,
            radius=radius,
            value=value,
            fill=fill_for(value, max_value, low, high),
            stroke=stroke,
            stroke_width=stroke_width,
            hovered=hovered,
            selected=selected,
        ))
    return MapLayout(width=width, height=height, max_value=max_value, regions=regions)


def dispatch(
    event: RegionEvent,
    on_hover: Callable[[str | None], None] | None = None,
    on_select: Callable[[str | None], None] | None = None,
    on_clear: Callable[[], None] | None = None,
) -> None:
    """Forward a region event to the caller's handlers."""
    if event.kind == "hover":
        if on_hover:
            on_hover(event.iso_code)
    elif event.kind == "select":
        if on_select:
            on_select(event.iso_code)
    elif on_clear:
        on_clear()


def render(
    map_data: dict[str, int],
    selection: Selection | None = None,
    title: str = "Visitors by country",
    base_url: str = "",
    query: str = "",
    **kwargs,
) -> str:
    """Render the map as SVG. Regions link back to the countries partial."""
    chart = layout(map_data, selection, **kwargs)
    return render_svg(
        "choropleth.svg",
        chart=chart,
        title=title,
        base_url=base_url,
        query=query,
        fill_low=kwargs.get("low", FILL_LOW),
        fill_high=kwargs.get("high", FILL_HIGH),
    )
