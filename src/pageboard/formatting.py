"""
Display formatting for metric values.

Every formatter accepts the degenerate values the math layer produces
(None for "no baseline") and renders a placeholder instead of NaN or inf.
"""
import math
from datetime import datetime

from .core.models import Granularity

PLACEHOLDER = "—"


def format_change(value: float | None) -> str:
    """Signed percentage with one decimal, or a dash when there is no baseline."""
    if value is None or not math.isfinite(value):
        return PLACEHOLDER
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.1f}%"


def format_duration(seconds: float | None) -> str:
    """Format duration in seconds to human readable string."""
    if seconds is None:
        return PLACEHOLDER
    seconds = int(round(seconds))
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m {secs:02d}s"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"


def format_value(value: float | None) -> str:
    """Compact number: 1.2K, 3.4M."""
    if value is None:
        return PLACEHOLDER
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.1f}"


def format_percent(value: float | None) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:.1f}%"


def format_bucket_label(ts: datetime, granularity: Granularity) -> str:
    """Axis/tooltip label for a bucket start."""
    if granularity is Granularity.HOUR:
        return ts.strftime("%H:00")
    if granularity is Granularity.MONTH:
        return ts.strftime("%b %Y")
    if granularity is Granularity.WEEK:
        return f"Week of {ts.strftime('%b')} {ts.day}"
    return f"{ts.strftime('%b')} {ts.day}"
