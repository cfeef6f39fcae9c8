"""
Dashboard state carried in the URL query string.

Parameters: from, to (ISO dates), comparison ("true" or absent),
density ("compact" or "detailed"), device, country. Empty values are left
out of the URL.
"""
import logging
from datetime import date
from typing import Literal, Mapping, Protocol
from urllib.parse import parse_qsl, urlencode

from pydantic import BaseModel, ConfigDict

from .core.models import DateRange

logger = logging.getLogger(__name__)

Density = Literal["compact", "detailed"]


class UrlState(BaseModel):
    """The shareable subset of dashboard state."""
    model_config = ConfigDict(frozen=True)

    date_from: date | None = None
    date_to: date | None = None
    comparison: bool = False
    density: Density = "detailed"
    device: str = ""
    country: str = ""

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "UrlState":
        """Parse query parameters, ignoring values that do not parse.

        Dates are only used as a pair; a lone or reversed bound is dropped.
        """
        start = _parse_date(params.get("from"))
        end = _parse_date(params.get("to"))
        if start is None or end is None or end < start:
            start = end = None
        density = params.get("density")
        return cls(
            date_from=start,
            date_to=end,
            comparison=params.get("comparison") == "true",
            density=density if density in ("compact", "detailed") else "detailed",
            device=params.get("device") or "",
            country=params.get("country") or "",
        )

    @classmethod
    def from_query_string(cls, query: str) -> "UrlState":
        return cls.from_params(dict(parse_qsl(query.lstrip("?"))))

    def to_params(self) -> dict[str, str]:
        """Query parameters, with empty values removed."""
        params = {
            "from": self.date_from.isoformat() if self.date_from else "",
            "to": self.date_to.isoformat() if self.date_to else "",
            "comparison": "true" if self.comparison else "",
            "density": self.density,
            "device": self.device,
            "country": self.country,
        }
        return {k: v for k, v in params.items() if v}

    def to_query_string(self) -> str:
        return urlencode(self.to_params())

    @property
    def date_range(self) -> DateRange | None:
        if self.date_from and self.date_to:
            return DateRange.from_dates(self.date_from, self.date_to)
        return None

    def with_range(self, date_range: DateRange) -> "UrlState":
        return self.model_copy(update={
            "date_from": date_range.start.date(),
            "date_to": date_range.end.date(),
        })


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        logger.debug(f"Ignoring malformed date parameter {value!r}")
        return None


class NavigationState(Protocol):
    """Where the dashboard reads and writes its URL state."""

    def read(self) -> UrlState: ...

    def write(self, state: UrlState) -> None: ...


class QueryStringNavigation:
    """NavigationState over a plain query string.

    The HTTP layer seeds it from the request URL and reads `query_string`
    back to build links and redirects.
    """

    def __init__(self, query_string: str = ""):
        self.query_string = query_string.lstrip("?")

    def read(self) -> UrlState:
        return UrlState.from_query_string(self.query_string)

    def write(self, state: UrlState) -> None:
        self.query_string = state.to_query_string()
