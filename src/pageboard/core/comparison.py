"""
Comparison-period math.

The comparison period is the equal-length window that ends one tick before
the selected range starts, so the two never overlap and never leave a gap.
"""

from datetime import timedelta

from .models import ComparisonPair, DateRange

# Smallest representable datetime step
TICK = timedelta(microseconds=1)


def previous_period(date_range: DateRange) -> DateRange:
    """Return the immediately preceding window of the same length."""
    span = date_range.end - date_range.start
    end = date_range.start - TICK
    return DateRange(start=end - span, end=end)


def percent_change(current: float, previous: float | None) -> float | None:
    """Percentage change from previous to current.

    Returns None when there is no baseline (previous is 0 or missing).
    """
    if previous is None or previous == 0:
        return None
    return ((current - previous) / previous) * 100


def compare(current: float, previous: float | None) -> ComparisonPair:
    """Build a ComparisonPair for a metric."""
    return ComparisonPair(
        current=current,
        previous=previous,
        percent_change=percent_change(current, previous),
    )
