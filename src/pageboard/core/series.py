"""
Categorical series helpers (pages, referrers, browsers, OS, devices).
"""
from typing import Any, Iterable

from .models import CategoricalItem


def to_categorical(
    rows: Iterable[dict[str, Any]],
    key: str,
    total: int | None = None,
    unknown: str = "Unknown",
) -> list[CategoricalItem]:
    """Convert `{<key>: name, _count: {id}}` rows into a sorted series.

    Args:
        rows: API rows
        key: Field holding the name (path, referrer, browser, os, device)
        total: Denominator for percentages; None leaves percentage unset
        unknown: Label for rows with an empty name

    Returns:
        Items sorted by descending value
    """
    items = []
    for row in rows:
        value = (row.get("_count") or {}).get("id", 0)
        percentage = None
        if total:
            percentage = round(value / total * 100, 1)
        items.append(CategoricalItem(name=row.get(key) or unknown, value=value, percentage=percentage))
    return sort_desc(items)


def sort_desc(items: Iterable[CategoricalItem]) -> list[CategoricalItem]:
    """Sort descending by value; ties keep their received order."""
    return sorted(items, key=lambda i: i.value, reverse=True)


def filter_by_query(items: Iterable[CategoricalItem], query: str | None) -> list[CategoricalItem]:
    """Case-insensitive substring search on item names."""
    if not query:
        return list(items)
    needle = query.lower()
    return [i for i in items if needle in i.name.lower()]
