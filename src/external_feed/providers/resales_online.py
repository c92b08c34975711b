"""Resales Online Web API provider (Spanish resale market, Costa del Sol).

Sales search uses WebApi V6, rentals the V5-2 endpoint; property details always V6.
Responses are JSON with a transaction.status envelope, a Property key holding an
object or an array, and QueryInfo pagination metadata.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from urllib.parse import urlencode

from ..config import ResalesOnlineConfig
from ..errors import InvalidResponseError, PropertyNotFoundError, ProviderError
from ..models import (
    DEFAULT_PER_PAGE,
    NO_PRICE,
    ListingType,
    NormalizedProperty,
    NormalizedSearchResult,
    PropertyImage,
    PropertyStatus,
    PropertyType,
    ProviderName,
    SearchParams,
    SortOrder,
)
from ..transport import get_json
from .base import BaseProvider

SEARCH_URL_V6 = "https://webapi.resales-online.com/WebApi/V6/SearchProperties.php"
SEARCH_URL_V5 = "https://webapi.resales-online.com/WebApi/V5-2/SearchProperties.php"
DETAILS_URL = "https://webapi.resales-online.com/WebApi/V6/PropertyDetails.php"

SORT_CODES = {
    SortOrder.PRICE_ASC: "0",
    SortOrder.PRICE_DESC: "1",
    SortOrder.LOCATION: "2",
    SortOrder.NEWEST: "3",
    SortOrder.OLDEST: "4",
    SortOrder.LISTED_NEWEST: "5",
    SortOrder.LISTED_OLDEST: "6",
    SortOrder.UPDATED: "3",
}

# API IDs that need agency filter "1"; everything else uses "2".
AGENCY_FILTER_ONE_IDS = frozenset({"4069"})

# Ordered: first match wins ("penthouse" must beat the generic apartment rule).
TYPE_RULES: tuple[tuple[re.Pattern[str], PropertyType], ...] = (
    (re.compile(r"penthouse"), PropertyType.PENTHOUSE),
    (re.compile(r"top floor|top-floor"), PropertyType.APARTMENT_TOP),
    (re.compile(r"ground floor|ground-floor"), PropertyType.APARTMENT_GROUND),
    (re.compile(r"middle floor|middle-floor"), PropertyType.APARTMENT_MIDDLE),
    (re.compile(r"apartment|flat|duplex"), PropertyType.APARTMENT),
    (re.compile(r"villa|detached"), PropertyType.VILLA),
    (re.compile(r"townhouse|town house|town-house|terraced"), PropertyType.TOWNHOUSE),
    (re.compile(r"semi-detached|semi detached|semidetached"), PropertyType.SEMI_DETACHED),
    (re.compile(r"bungalow"), PropertyType.BUNGALOW),
    (re.compile(r"finca|cortijo|country"), PropertyType.FINCA),
    (re.compile(r"plot|land"), PropertyType.LAND),
    (re.compile(r"commercial|office|retail|shop"), PropertyType.COMMERCIAL),
)

STATUS_MAP = {
    "Available": PropertyStatus.AVAILABLE,
    "Reserved": PropertyStatus.RESERVED,
    "Sold": PropertyStatus.SOLD,
    "Off Market": PropertyStatus.UNAVAILABLE,
}

DEFAULT_LOCATIONS = [
    {"value": "Marbella", "label": "Marbella"},
    {"value": "Estepona", "label": "Estepona"},
    {"value": "Benahavis", "label": "Benahavís"},
    {"value": "Mijas", "label": "Mijas"},
    {"value": "Fuengirola", "label": "Fuengirola"},
    {"value": "Benalmadena", "label": "Benalmádena"},
    {"value": "Torremolinos", "label": "Torremolinos"},
    {"value": "Malaga", "label": "Málaga"},
    {"value": "Nerja", "label": "Nerja"},
    {"value": "Casares", "label": "Casares"},
    {"value": "Manilva", "label": "Manilva"},
    {"value": "Sotogrande", "label": "Sotogrande"},
    {"value": "Puerto Banus", "label": "Puerto Banús"},
    {"value": "Nueva Andalucia", "label": "Nueva Andalucía"},
    {"value": "San Pedro de Alcantara", "label": "San Pedro de Alcántara"},
    {"value": "La Cala de Mijas", "label": "La Cala de Mijas"},
    {"value": "Mijas Costa", "label": "Mijas Costa"},
    {"value": "Mijas Pueblo", "label": "Mijas Pueblo"},
    {"value": "Calahonda", "label": "Calahonda"},
    {"value": "Riviera del Sol", "label": "Riviera del Sol"},
]

DEFAULT_PROPERTY_TYPES = [
    {
        "value": "1-1",
        "label": "Apartment",
        "subtypes": [
            {"value": "1-2", "label": "Ground Floor Apartment"},
            {"value": "1-4", "label": "Middle Floor Apartment"},
            {"value": "1-5", "label": "Top Floor Apartment"},
            {"value": "1-6", "label": "Penthouse"},
            {"value": "1-7", "label": "Duplex"},
        ],
    },
    {
        "value": "2-1",
        "label": "House",
        "subtypes": [
            {"value": "2-2", "label": "Detached Villa"},
            {"value": "2-4", "label": "Semi-Detached House"},
            {"value": "2-5", "label": "Townhouse"},
            {"value": "2-6", "label": "Finca / Country House"},
        ],
    },
    {"value": "3-1", "label": "Plot / Land"},
    {"value": "4-1", "label": "Commercial"},
]


# --- Field normalization (pure functions) ---


def normalize_type(raw: Any) -> PropertyType:
    """Free-text vendor type -> PropertyType, by ordered case-insensitive substring rules."""
    text = str(raw or "").strip().lower()
    if not text:
        return PropertyType.OTHER
    for pattern, ptype in TYPE_RULES:
        if pattern.search(text):
            return ptype
    return PropertyType.OTHER


def normalize_status(raw: Any) -> PropertyStatus:
    """Unrecognized statuses stay available so a listing is never hidden by a new label."""
    return STATUS_MAP.get(str(raw or "").strip(), PropertyStatus.AVAILABLE)


def to_cents(value: Any) -> int:
    """'1234.5' -> 123450. Absent, blank or unparseable -> 0 (no usable price)."""
    if value is None or isinstance(value, bool):
        return NO_PRICE
    s = re.sub(r"[^\d.]", "", str(value))
    if not s:
        return NO_PRICE
    try:
        return int(Decimal(s) * 100)
    except InvalidOperation:
        return NO_PRICE


def optional_cents(value: Any) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    return to_cents(value)


def _to_int(value: Any) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0


def _optional_float(value: Any) -> float | None:
    if value is None or str(value).strip() == "":
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _as_list(value: Any) -> list[Any]:
    """The API sends one item as an object and several as an array."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def build_title(data: Mapping[str, Any]) -> str:
    """'{N} Bedroom {Type} in {Location}', dropping empty clauses."""
    ptype = str(data.get("Type") or "Property")
    location = str(data.get("Location") or "").strip()
    bedrooms = _to_int(data.get("Bedrooms"))
    parts = []
    if bedrooms > 0:
        parts.append(f"{bedrooms} Bedroom")
    parts.append(ptype)
    if location:
        parts.append(f"in {location}")
    return " ".join(parts)


def extract_features(data: Mapping[str, Any]) -> tuple[str, ...]:
    features: list[str] = []
    for category in _as_list(_dig(data, "PropertyFeatures", "Category")):
        if isinstance(category, Mapping):
            features.extend(str(v) for v in _as_list(category.get("Value")) if v is not None)
    return tuple(features)


def extract_features_by_category(data: Mapping[str, Any]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for category in _as_list(_dig(data, "PropertyFeatures", "Category")):
        if not isinstance(category, Mapping):
            continue
        name = _dig(category, "@attributes", "Type") or category.get("Type") or "Other"
        values = [str(v) for v in _as_list(category.get("Value")) if v is not None]
        grouped.setdefault(str(name), []).extend(values)
    return grouped


def normalize_images(data: Mapping[str, Any]) -> tuple[PropertyImage, ...]:
    """Position is the picture's index in the vendor's order; entries without a URL are skipped."""
    images = []
    for idx, pic in enumerate(_as_list(_dig(data, "Pictures", "Picture"))):
        url = pic.get("PictureURL") if isinstance(pic, Mapping) else None
        if url:
            images.append(PropertyImage(url=str(url), position=idx))
    return tuple(images)


class ResalesOnlineProvider(BaseProvider):
    """
    Provider for the Resales Online Web API.
    https://webapi.resales-online.com

    Sale and rental listings live behind different API IDs; the listing type
    in the request params picks the endpoint and the ID.
    """

    name = ProviderName.RESALES_ONLINE
    display_name = "Resales Online"
    config_class = ResalesOnlineConfig

    config: ResalesOnlineConfig

    # --- Contract ---

    def search(self, params: SearchParams | Mapping[str, Any] | None = None) -> NormalizedSearchResult:
        p = self.search_params(params)
        self.ensure_configured()
        rental = p.listing_type == ListingType.RENTAL
        url = SEARCH_URL_V5 if rental else SEARCH_URL_V6
        full_url = f"{url}?{self.build_search_query(p)}"
        self.log(logging.DEBUG, f"Search URL: {full_url}")

        try:
            response = get_json(self.client, full_url, self.label())
        except PropertyNotFoundError:
            return self._empty_result(p)
        return self.normalize_search_results(response, p)

    def find(
        self,
        reference: str,
        params: SearchParams | Mapping[str, Any] | None = None,
    ) -> NormalizedProperty | None:
        p = self.search_params(params)
        self.ensure_configured()
        api_id = self.config.api_id_for(p.listing_type == ListingType.RENTAL)
        query = urlencode({
            "p1": self.config.p1_constant,
            "p2": self.config.api_key,
            "P_Lang": self.config.lang_code_for(p.locale),
            "p_agency_filterid": self.agency_filter_id(api_id),
            "p_apiid": api_id,
            "P_RefId": reference,
        })
        full_url = f"{DETAILS_URL}?{query}"
        self.log(logging.DEBUG, f"Details URL: {full_url}")

        try:
            response = get_json(self.client, full_url, self.label())
        except PropertyNotFoundError:
            return None

        data = response.get("Property") if isinstance(response, Mapping) else None
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, Mapping) or not data.get("Reference"):
            return None
        return self.normalize_property(data, p)

    def similar(
        self,
        property: NormalizedProperty,
        params: SearchParams | Mapping[str, Any] | None = None,
    ) -> list[NormalizedProperty]:
        p = self.search_params(params)
        limit = self.similar_limit(p)

        min_price = max_price = None
        if property.has_price:
            # 70%-130% of the seed price; cents -> whole units.
            min_price = property.price * 7 // 1000
            max_price = property.price * 13 // 1000

        search_params = SearchParams(
            listing_type=property.listing_type,
            locale=p.locale,
            property_types=(property.property_type_raw,) if property.property_type_raw else (),
            location=property.city or None,
            min_price=min_price,
            max_price=max_price,
            min_bedrooms=property.bedrooms or None,
            sort=SortOrder.NEWEST,
            per_page=limit + 1,  # room for the seed itself
        )
        result = self.search(search_params)
        return [prop for prop in result.properties if prop.reference != property.reference][:limit]

    def locations(self, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        # No locations endpoint; configured list or the Costa del Sol defaults.
        return list(self.config.locations or DEFAULT_LOCATIONS)

    def property_types(self, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        return list(self.config.property_types or DEFAULT_PROPERTY_TYPES)

    def ping(self) -> bool:
        query = urlencode({
            "p1": self.config.p1_constant,
            "p2": self.config.api_key,
            "p_apiid": self.config.api_id_sales,
            "p_PageSize": "1",
        })
        response = get_json(self.client, f"{SEARCH_URL_V6}?{query}", self.label())
        return _dig(response, "transaction", "status") == "success"

    # --- Query building ---

    @staticmethod
    def agency_filter_id(api_id: str) -> str:
        return "1" if api_id in AGENCY_FILTER_ONE_IDS else "2"

    def build_search_query(self, p: SearchParams) -> str:
        """Flat, form-encoded query string in the order the API documents it."""
        api_id = self.config.api_id_for(p.listing_type == ListingType.RENTAL)
        query: dict[str, Any] = {
            "p1": self.config.p1_constant,
            "p2": self.config.api_key,
            "p_apiid": api_id,
            "p_PageSize": p.per_page or self.config.results_per_page or DEFAULT_PER_PAGE,
            "P_Lang": self.config.lang_code_for(p.locale),
            "P_Country": self.config.default_country,
            "P_Images": self.config.image_count,
            "p_MustHaveFeatures": "2",
            "p_new_devs": "only" if p.new_developments_only else "include",
        }

        # An explicit page 1 is not the same as no page to the API.
        if p.page > 1:
            query["p_PageNo"] = p.page
        if p.sort is not None:
            query["p_SortType"] = SORT_CODES.get(p.sort, "0")
        if p.property_types:
            query["p_PropertyTypes"] = ",".join(p.property_types)
        if p.location:
            query["p_Location"] = p.location
        # "Nx" means "at least N"
        if p.min_bedrooms is not None:
            query["p_Beds"] = f"{p.min_bedrooms}x"
        if p.min_bathrooms is not None:
            query["p_Baths"] = f"{p.min_bathrooms}x"
        if p.min_price is not None:
            query["p_Min"] = p.min_price
        if p.max_price is not None:
            query["p_Max"] = p.max_price
        for feature in p.features:
            query[self.config.features.get(feature, feature)] = "1"

        return urlencode(query)

    # --- Response normalization ---

    def _empty_result(self, p: SearchParams) -> NormalizedSearchResult:
        return NormalizedSearchResult(
            properties=(),
            total_count=0,
            page=p.page,
            per_page=p.per_page or DEFAULT_PER_PAGE,
            provider=self.name,
            query_params=p.to_dict(),
        )

    def normalize_search_results(self, response: Any, p: SearchParams) -> NormalizedSearchResult:
        if not isinstance(response, Mapping):
            raise InvalidResponseError(f"Unexpected search payload from {self.label()}: {type(response).__name__}")
        if _dig(response, "transaction", "status") != "success":
            message = _dig(response, "transaction", "message") or "Search failed"
            raise ProviderError(f"Resales API error: {message}")

        properties = tuple(
            self.normalize_property(item, p)
            for item in _as_list(response.get("Property"))
            if isinstance(item, Mapping) and item.get("Reference")
        )
        current_page = _to_int(_dig(response, "QueryInfo", "CurrentPage"))
        per_page = _to_int(_dig(response, "QueryInfo", "PropertiesPerPage"))

        return NormalizedSearchResult(
            properties=properties,
            total_count=_to_int(_dig(response, "QueryInfo", "PropertyCount")),
            page=current_page or p.page or 1,
            per_page=per_page or p.per_page or DEFAULT_PER_PAGE,
            provider=self.name,
            query_params=p.to_dict(),
        )

    def normalize_property(self, data: Mapping[str, Any], p: SearchParams) -> NormalizedProperty:
        """Map one vendor Property object to NormalizedProperty (search and find share this)."""
        price = data.get("Price")
        return NormalizedProperty(
            reference=str(data.get("Reference")),
            provider=self.name,
            listing_type=p.listing_type,
            title=_optional_str(data.get("Title")) or build_title(data),
            description=str(data.get("Description") or ""),
            property_type=normalize_type(data.get("Type")),
            property_type_raw=_optional_str(_dig(data, "PropertyType", "SubtypeId1") or data.get("TypeId")),
            property_subtype=_optional_str(_dig(data, "PropertyType", "Subtype1") or data.get("Type")),
            country=_optional_str(data.get("Country")),
            region=_optional_str(data.get("Province")),
            area=_optional_str(data.get("Area")),
            city=_optional_str(data.get("Location")),
            latitude=_optional_float(_dig(data, "GeoData", "Latitude") or data.get("Latitude")),
            longitude=_optional_float(_dig(data, "GeoData", "Longitude") or data.get("Longitude")),
            status=normalize_status(_dig(data, "Status", "system")),
            price=to_cents(price),
            price_raw=None if price is None else str(price),
            original_price=optional_cents(data.get("OriginalPrice")),
            currency=_optional_str(data.get("Currency")) or "EUR",
            bedrooms=_to_int(data.get("Bedrooms")),
            bathrooms=_to_float(data.get("Bathrooms")),
            built_area=_to_int(data.get("Built")),
            plot_area=_to_int(data.get("GardenPlot")),
            terrace_area=_to_int(data.get("Terrace")),
            features=extract_features(data),
            features_by_category=extract_features_by_category(data),
            energy_rating=_optional_str(_dig(data, "EnergyRating", "EnergyRated")),
            energy_value=_optional_float(_dig(data, "EnergyRating", "EnergyValue")),
            co2_rating=_optional_str(_dig(data, "EnergyRating", "CO2Rated")),
            images=normalize_images(data),
            virtual_tour_url=_optional_str(data.get("VirtualTour")),
            community_fees=optional_cents(data.get("Community_Fees_Year")),
            ibi_tax=optional_cents(data.get("IBI_Fees_Year")),
        )
