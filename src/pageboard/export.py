"""
CSV export of categorical tables.
"""
import csv
import io
from datetime import date
from typing import Any, Iterable

EXPORT_KINDS = ("top-pages", "referrers", "countries", "browsers")


def export_filename(kind: str, today: date | None = None) -> str:
    """`{kind}-{YYYY-MM-DD}.csv`"""
    return f"{kind}-{(today or date.today()).isoformat()}.csv"


def to_csv(rows: Iterable[dict[str, Any]]) -> str | None:
    """Render rows as CSV with a header taken from the first row's keys.

    Returns None when there are no rows, so callers can skip the download.
    """
    rows = list(rows)
    if not rows:
        return None
    output = io.StringIO()
    writer = csv.writer(output)
    header = list(rows[0].keys())
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if row.get(key) is None else row.get(key) for key in header])
    return output.getvalue()
