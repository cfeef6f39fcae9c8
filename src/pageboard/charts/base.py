"""
Shared chart plumbing: SVG template environment and margins.
"""
from dataclasses import dataclass
from functools import lru_cache

from jinja2 import Environment, PackageLoader, select_autoescape

from ..formatting import format_value

DEFAULT_COLORS = [
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#06b6d4",
    "#84cc16",
    "#f97316",
]


@dataclass(frozen=True)
class Margin:
    top: float = 20
    right: float = 20
    bottom: float = 40
    left: float = 60


def _num(value: float) -> str:
    """Compact SVG coordinate."""
    return f"{value:.2f}".rstrip("0").rstrip(".")


@lru_cache(maxsize=1)
def svg_environment() -> Environment:
    """Jinja2 environment for chart templates under templates/charts."""
    env = Environment(
        loader=PackageLoader("pageboard", "templates"),
        autoescape=select_autoescape(["html", "svg"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["num"] = _num
    env.filters["compact"] = format_value
    return env


def render_svg(template: str, **context) -> str:
    """Render a chart template to an SVG string."""
    return svg_environment().get_template(f"charts/{template}").render(**context)
