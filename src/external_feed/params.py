"""Coerce loosely typed request maps (query strings, JSON bodies) into SearchParams."""

from __future__ import annotations

from typing import Any, Mapping

from .models import ListingType, SearchParams, SortOrder

INT_KEYS = (
    "min_price",
    "max_price",
    "min_bedrooms",
    "max_bedrooms",
    "min_bathrooms",
    "max_bathrooms",
    "min_area",
    "max_area",
    "page",
    "per_page",
    "limit",
)

LIST_KEYS = ("property_types", "features")

KNOWN_KEYS = frozenset(INT_KEYS + LIST_KEYS + ("listing_type", "locale", "location", "sort", "new_developments_only"))


def _to_int(value: Any) -> int | None:
    """'3' -> 3, '' / None / garbage -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return int(float(s))
    except (ValueError, OverflowError):
        return None


def _to_list(value: Any) -> tuple[str, ...]:
    """'a, b' -> ('a', 'b'); lists pass through with blanks dropped."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    return tuple(str(i).strip() for i in items if i is not None and str(i).strip())


def parse_listing_type(value: Any) -> ListingType:
    """Anything other than a recognizable rental marker is a sale."""
    if isinstance(value, ListingType):
        return value
    s = str(value or "").strip().lower()
    if s in ("rental", "rent", "rentals"):
        return ListingType.RENTAL
    return ListingType.SALE


def parse_sort(value: Any) -> SortOrder | None:
    """Unrecognized sort values fall back to price ascending; blank means unsorted."""
    if value is None or isinstance(value, SortOrder):
        return value
    s = str(value).strip().lower()
    if not s:
        return None
    try:
        return SortOrder(s)
    except ValueError:
        return SortOrder.PRICE_ASC


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def build_search_params(
    raw: Mapping[str, Any] | SearchParams | None = None,
    default_per_page: int | None = None,
    default_locale: str = "en",
) -> SearchParams:
    """
    Build SearchParams from a loose mapping. Never raises for bad values:
    unparseable numbers are dropped, unknown keys land in `extras`.
    """
    if isinstance(raw, SearchParams):
        return raw
    data = dict(raw or {})

    ints = {k: _to_int(data.get(k)) for k in INT_KEYS}
    page = ints.pop("page")
    if page is None or page < 1:
        page = 1
    per_page = ints.pop("per_page")
    if per_page is None or per_page < 1:
        per_page = default_per_page

    location = data.get("location")
    location = str(location).strip() if location is not None else None

    return SearchParams(
        listing_type=parse_listing_type(data.get("listing_type")),
        locale=str(data.get("locale") or default_locale),
        location=location or None,
        property_types=_to_list(data.get("property_types")),
        features=_to_list(data.get("features")),
        sort=parse_sort(data.get("sort")),
        page=page,
        per_page=per_page,
        new_developments_only=_to_bool(data.get("new_developments_only")),
        extras={k: v for k, v in data.items() if k not in KNOWN_KEYS},
        **ints,
    )
