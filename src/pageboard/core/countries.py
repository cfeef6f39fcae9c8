"""
Country name resolution for flags and the world map.

The analytics API reports countries as free-text names ("United States",
"USA", "Germany"). Two consumers need codes:

- Flag icons want an ISO alpha-2 code. A wrong guess only costs a broken
  image, so unknown names fall back to the first two letters of the name.
- The choropleth map is keyed by ISO alpha-3. A wrong key would shade the
  wrong region, so unknown names resolve to None and the entry is left off
  the map while staying in ranked lists.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from .models import CountryAggregate

logger = logging.getLogger(__name__)

FLAG_URL_TEMPLATE = "https://hatscripts.github.io/circle-flags/flags/{code}.svg"

# Minimum bar width (percent) so small countries stay visible in the list
MIN_BAR_PERCENT = 3.0


@dataclass(frozen=True)
class CountryCode:
    """
    Resolved country identity.

    Attributes:
        name: Canonical display name
        alpha2: ISO 3166-1 alpha-2 code (lowercase, as used by flag sets)
        alpha3: ISO 3166-1 alpha-3 code (uppercase, map key)
        lat: Approximate centroid latitude
        lon: Approximate centroid longitude
    """
    name: str
    alpha2: str
    alpha3: str
    lat: float
    lon: float


# =============================================================================
# COUNTRY DATABASE
# =============================================================================

# (name, alpha2, alpha3, lat, lon, aliases)
_COUNTRIES: list[tuple[str, str, str, float, float, tuple[str, ...]]] = [
    ("United States", "us", "USA", 39.8, -98.6, ("usa", "us", "america", "united states of america", "u.s.", "u.s.a.")),
    ("Canada", "ca", "CAN", 56.1, -106.3, ()),
    ("Mexico", "mx", "MEX", 23.6, -102.6, ()),
    ("Brazil", "br", "BRA", -14.2, -51.9, ("brasil",)),
    ("Argentina", "ar", "ARG", -38.4, -63.6, ()),
    ("Chile", "cl", "CHL", -35.7, -71.5, ()),
    ("Colombia", "co", "COL", 4.6, -74.3, ()),
    ("Peru", "pe", "PER", -9.2, -75.0, ()),
    ("Venezuela", "ve", "VEN", 6.4, -66.6, ()),
    ("United Kingdom", "gb", "GBR", 55.4, -3.4, ("uk", "great britain", "britain", "england", "scotland", "wales")),
    ("Ireland", "ie", "IRL", 53.4, -8.2, ()),
    ("France", "fr", "FRA", 46.2, 2.2, ()),
    ("Germany", "de", "DEU", 51.2, 10.5, ("deutschland",)),
    ("Italy", "it", "ITA", 41.9, 12.6, ()),
    ("Spain", "es", "ESP", 40.5, -3.7, ("espana",)),
    ("Portugal", "pt", "PRT", 39.4, -8.2, ()),
    ("Netherlands", "nl", "NLD", 52.1, 5.3, ("the netherlands", "holland")),
    ("Belgium", "be", "BEL", 50.5, 4.5, ()),
    ("Luxembourg", "lu", "LUX", 49.8, 6.1, ()),
    ("Switzerland", "ch", "CHE", 46.8, 8.2, ()),
    ("Austria", "at", "AUT", 47.5, 14.6, ()),
    ("Sweden", "se", "SWE", 60.1, 18.6, ()),
    ("Norway", "no", "NOR", 60.5, 8.5, ()),
    ("Denmark", "dk", "DNK", 56.3, 9.5, ()),
    ("Finland", "fi", "FIN", 61.9, 25.7, ()),
    ("Iceland", "is", "ISL", 64.9, -19.0, ()),
    ("Poland", "pl", "POL", 51.9, 19.1, ()),
    ("Czech Republic", "cz", "CZE", 49.8, 15.5, ("czechia",)),
    ("Slovakia", "sk", "SVK", 48.7, 19.7, ()),
    ("Hungary", "hu", "HUN", 47.2, 19.5, ()),
    ("Romania", "ro", "ROU", 45.9, 25.0, ()),
    ("Bulgaria", "bg", "BGR", 42.7, 25.5, ()),
    ("Greece", "gr", "GRC", 39.1, 21.8, ()),
    ("Croatia", "hr", "HRV", 45.1, 15.2, ()),
    ("Slovenia", "si", "SVN", 46.2, 15.0, ()),
    ("Serbia", "rs", "SRB", 44.0, 21.0, ()),
    ("Estonia", "ee", "EST", 58.6, 25.0, ()),
    ("Latvia", "lv", "LVA", 56.9, 24.6, ()),
    ("Lithuania", "lt", "LTU", 55.2, 23.9, ()),
    ("Ukraine", "ua", "UKR", 48.4, 31.2, ()),
    ("Russia", "ru", "RUS", 61.5, 105.3, ("russian federation",)),
    ("Turkey", "tr", "TUR", 39.0, 35.2, ("turkiye",)),
    ("Malta", "mt", "MLT", 35.9, 14.4, ()),
    ("Cyprus", "cy", "CYP", 35.1, 33.4, ()),
    ("Israel", "il", "ISR", 31.0, 34.9, ()),
    ("Egypt", "eg", "EGY", 26.8, 30.8, ()),
    ("Saudi Arabia", "sa", "SAU", 23.9, 45.1, ()),
    ("United Arab Emirates", "ae", "ARE", 23.4, 53.8, ("uae",)),
    ("South Africa", "za", "ZAF", -30.6, 22.9, ()),
    ("Nigeria", "ng", "NGA", 9.1, 8.7, ()),
    ("Kenya", "ke", "KEN", -0.0, 37.9, ()),
    ("Morocco", "ma", "MAR", 31.8, -7.1, ()),
    ("India", "in", "IND", 20.6, 79.0, ()),
    ("Pakistan", "pk", "PAK", 30.4, 69.3, ()),
    ("Bangladesh", "bd", "BGD", 23.7, 90.4, ()),
    ("China", "cn", "CHN", 35.9, 104.2, ("prc", "people's republic of china")),
    ("Japan", "jp", "JPN", 36.2, 138.3, ()),
    ("South Korea", "kr", "KOR", 35.9, 127.8, ("korea", "republic of korea")),
    ("Taiwan", "tw", "TWN", 23.7, 121.0, ()),
    ("Hong Kong", "hk", "HKG", 22.4, 114.1, ()),
    ("Singapore", "sg", "SGP", 1.4, 103.8, ()),
    ("Malaysia", "my", "MYS", 4.2, 102.0, ()),
    ("Thailand", "th", "THA", 15.9, 100.9, ()),
    ("Vietnam", "vn", "VNM", 14.1, 108.3, ("viet nam",)),
    ("Indonesia", "id", "IDN", -0.8, 113.9, ()),
    ("Philippines", "ph", "PHL", 12.9, 121.8, ()),
    ("Australia", "au", "AUS", -25.3, 133.8, ()),
    ("New Zealand", "nz", "NZL", -40.9, 174.9, ()),
]


def _build_indexes() -> tuple[dict[str, CountryCode], list[CountryCode]]:
    lookup: dict[str, CountryCode] = {}
    countries = []
    for name, alpha2, alpha3, lat, lon, aliases in _COUNTRIES:
        code = CountryCode(name=name, alpha2=alpha2, alpha3=alpha3, lat=lat, lon=lon)
        countries.append(code)
        for key in (name, alpha2, alpha3, *aliases):
            lookup.setdefault(key.lower(), code)
    return lookup, countries


_LOOKUP, ALL_COUNTRIES = _build_indexes()


# =============================================================================
# RESOLUTION
# =============================================================================

def resolve(country_name: str | None) -> CountryCode | None:
    """
    Look up a country by name, alias, or ISO code (case-insensitive).

    Args:
        country_name: Free-text country name from the API

    Returns:
        CountryCode, or None when the name is not in the table
    """
    if not country_name:
        return None
    return _LOOKUP.get(country_name.strip().lower())


def map_key(country_name: str | None) -> str | None:
    """ISO alpha-3 key for the choropleth, or None for unknown names."""
    code = resolve(country_name)
    return code.alpha3 if code else None


def flag_code(country_name: str | None) -> str:
    """Alpha-2 flag code, falling back to the name's first two letters."""
    code = resolve(country_name)
    if code:
        return code.alpha2
    return (country_name or "").strip()[:2].lower()


def flag_url(country_name: str | None) -> str:
    """Circle-flag icon URL. May 404 for unknown names."""
    return FLAG_URL_TEMPLATE.format(code=flag_code(country_name) or "xx")


def by_alpha3(alpha3: str) -> CountryCode | None:
    """Reverse lookup used by the map to place and label regions."""
    code = _LOOKUP.get(alpha3.lower())
    return code if code and code.alpha3 == alpha3.upper() else None


# =============================================================================
# AGGREGATION
# =============================================================================

def aggregate_countries(rows: Iterable[dict[str, Any]]) -> list[CountryAggregate]:
    """Convert API rows `{country, _count: {id}}` into CountryAggregates."""
    result = []
    unresolved = 0
    for row in rows:
        name = row.get("country") or "Unknown"
        count = (row.get("_count") or {}).get("id", 0)
        key = map_key(name)
        if key is None:
            unresolved += 1
        result.append(
            CountryAggregate(
                country_name=name,
                count=count,
                iso_code=key,
                flag_code=flag_code(name),
            )
        )
    if unresolved:
        logger.debug(f"{unresolved} country names have no map code")
    return result


def build_map_data(aggregates: Iterable[CountryAggregate]) -> dict[str, int]:
    """Visitor counts keyed by alpha-3 code.

    Entries without a code are dropped; aliases of the same country
    ("USA" and "United States") are merged.
    """
    data: dict[str, int] = {}
    for agg in aggregates:
        if agg.iso_code is None:
            continue
        data[agg.iso_code] = data.get(agg.iso_code, 0) + agg.count
    return data


@dataclass(frozen=True)
class RankedCountry:
    """A row in the ranked country list."""
    name: str
    value: int
    iso_code: str | None
    flag_url: str
    percentage: float
    bar_percent: float


@dataclass(frozen=True)
class CountrySummary:
    """Footer totals for the ranked country list."""
    total_visitors: int
    total_countries: int
    avg_per_country: int


def build_ranked_list(
    aggregates: Iterable[CountryAggregate],
    total_pageviews: int | None = None,
) -> tuple[list[RankedCountry], CountrySummary]:
    """
    Rank every country, including ones the map cannot show.

    Args:
        aggregates: Country counts
        total_pageviews: Denominator for percentages. Defaults to the sum of
            the country counts.

    Returns:
        (rows sorted by descending count, summary)
    """
    ordered = sorted(aggregates, key=lambda a: a.count, reverse=True)
    total = sum(a.count for a in ordered)
    denominator = total_pageviews or total
    max_value = ordered[0].count if ordered and ordered[0].count > 0 else 1

    rows = [
        RankedCountry(
            name=a.country_name,
            value=a.count,
            iso_code=a.iso_code,
            flag_url=FLAG_URL_TEMPLATE.format(code=a.flag_code or "xx"),
            percentage=round(a.count / denominator * 100, 1) if denominator else 0.0,
            bar_percent=max(a.count / max_value * 100, MIN_BAR_PERCENT),
        )
        for a in ordered
    ]
    summary = CountrySummary(
        total_visitors=total,
        total_countries=len(ordered),
        avg_per_country=round(total / len(ordered)) if ordered else 0,
    )
    return rows, summary
