"""Data models for normalized external listings and search results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

# Vendors emit 0 for "price on application"; a zero price means "no usable price".
NO_PRICE = 0

DEFAULT_PER_PAGE = 24


class ProviderName(str, Enum):
    """Backends that can produce normalized properties."""

    RESALES_ONLINE = "resales_online"


class ListingType(str, Enum):
    SALE = "sale"
    RENTAL = "rental"


class PropertyStatus(str, Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    UNAVAILABLE = "unavailable"


class PropertyType(str, Enum):
    """Normalized property type buckets."""

    APARTMENT = "apartment"
    APARTMENT_TOP = "apartment_top"
    APARTMENT_GROUND = "apartment_ground"
    APARTMENT_MIDDLE = "apartment_middle"
    PENTHOUSE = "penthouse"
    VILLA = "villa"
    TOWNHOUSE = "townhouse"
    SEMI_DETACHED = "semi_detached"
    BUNGALOW = "bungalow"
    FINCA = "finca"
    LAND = "land"
    COMMERCIAL = "commercial"
    OTHER = "other"


class SortOrder(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    LOCATION = "location"
    NEWEST = "newest"
    OLDEST = "oldest"
    LISTED_NEWEST = "listed_newest"
    LISTED_OLDEST = "listed_oldest"
    UPDATED = "updated"


@dataclass(frozen=True)
class PropertyImage:
    url: str
    position: int
    caption: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "caption": self.caption, "position": self.position}


@dataclass(frozen=True)
class SearchParams:
    """
    Typed search request understood by every provider.
    Prices are whole currency units (not cents), as vendors expect them.
    Keys a caller sent that are not recognized are kept in `extras`.
    """

    listing_type: ListingType = ListingType.SALE
    locale: str = "en"
    location: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    min_bedrooms: int | None = None
    max_bedrooms: int | None = None
    min_bathrooms: int | None = None
    max_bathrooms: int | None = None
    min_area: int | None = None
    max_area: int | None = None
    property_types: tuple[str, ...] = ()
    features: tuple[str, ...] = ()
    sort: SortOrder | None = None
    page: int = 1
    per_page: int | None = None
    new_developments_only: bool = False
    limit: int | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Compact dict of the parameters that were actually set."""
        data: dict[str, Any] = {
            "listing_type": self.listing_type.value,
            "locale": self.locale,
            "page": self.page,
        }
        optional = {
            "location": self.location,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "min_bedrooms": self.min_bedrooms,
            "max_bedrooms": self.max_bedrooms,
            "min_bathrooms": self.min_bathrooms,
            "max_bathrooms": self.max_bathrooms,
            "min_area": self.min_area,
            "max_area": self.max_area,
            "per_page": self.per_page,
            "limit": self.limit,
            "sort": self.sort.value if self.sort else None,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.property_types:
            data["property_types"] = list(self.property_types)
        if self.features:
            data["features"] = list(self.features)
        if self.new_developments_only:
            data["new_developments_only"] = True
        if self.extras:
            data["extras"] = dict(self.extras)
        return data


@dataclass(frozen=True)
class NormalizedProperty:
    """Canonical listing (provider-agnostic). Money fields are integer cents."""

    reference: str
    provider: ProviderName
    listing_type: ListingType = ListingType.SALE
    title: str = ""
    description: str = ""
    property_type: PropertyType = PropertyType.OTHER
    property_type_raw: str | None = None
    property_subtype: str | None = None
    provider_url: str | None = None

    country: str | None = None
    region: str | None = None
    area: str | None = None
    city: str | None = None
    address: str | None = None
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    status: PropertyStatus = PropertyStatus.AVAILABLE
    price: int = NO_PRICE
    price_raw: str | None = None
    price_qualifier: str | None = None
    original_price: int | None = None
    currency: str = "EUR"

    bedrooms: int = 0
    bathrooms: float = 0.0
    built_area: int = 0
    plot_area: int = 0
    terrace_area: int = 0
    year_built: int | None = None
    floor_level: int | None = None
    orientation: str | None = None

    features: tuple[str, ...] = ()
    features_by_category: dict[str, list[str]] = field(default_factory=dict)

    energy_rating: str | None = None
    energy_value: float | None = None
    co2_rating: str | None = None

    images: tuple[PropertyImage, ...] = ()
    virtual_tour_url: str | None = None
    video_url: str | None = None
    floor_plan_urls: tuple[str, ...] = ()

    community_fees: int | None = None
    ibi_tax: int | None = None

    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.reference:
            raise ValueError("NormalizedProperty.reference must be non-empty")
        if self.price < 0:
            raise ValueError(f"Negative price for {self.reference}: {self.price}")

    def __hash__(self) -> int:
        return hash(self.identity_key)

    @property
    def identity_key(self) -> tuple[str, str]:
        """(provider, reference) - unique across providers, used for dedupe."""
        return (self.provider.value, self.reference)

    # --- Price ---

    @property
    def has_price(self) -> bool:
        return self.price != NO_PRICE

    @property
    def formatted_price(self) -> str | None:
        """e.g. 'EUR 350,000'. None when there is no usable price."""
        if not self.has_price:
            return None
        return f"{self.currency or 'EUR'} {round(self.price / 100):,}"

    @property
    def price_reduced(self) -> bool:
        return self.original_price is not None and self.has_price and self.price < self.original_price

    @property
    def price_reduction_amount(self) -> int | None:
        if not self.price_reduced:
            return None
        return self.original_price - self.price

    @property
    def price_reduction_percent(self) -> float | None:
        if not self.price_reduced:
            return None
        return round((self.original_price - self.price) / self.original_price * 100, 1)

    # --- Status / listing type ---

    @property
    def is_available(self) -> bool:
        return self.status == PropertyStatus.AVAILABLE

    @property
    def is_reserved(self) -> bool:
        return self.status == PropertyStatus.RESERVED

    @property
    def is_sold(self) -> bool:
        return self.status == PropertyStatus.SOLD

    @property
    def for_sale(self) -> bool:
        return self.listing_type == ListingType.SALE

    @property
    def for_rent(self) -> bool:
        return self.listing_type == ListingType.RENTAL

    # --- Location ---

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def full_location(self) -> str:
        return ", ".join(p for p in (self.city, self.area, self.region, self.country) if p)

    @property
    def short_location(self) -> str:
        return ", ".join(p for p in (self.city, self.region) if p)

    # --- Media ---

    @property
    def primary_image_url(self) -> str | None:
        return self.images[0].url if self.images else None

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    @property
    def image_count(self) -> int:
        return len(self.images)

    def image_urls(self, limit: int | None = None) -> list[str]:
        urls = [img.url for img in self.images if img.url]
        return urls[:limit] if limit is not None else urls

    # --- Features ---

    def has_feature(self, feature: str) -> bool:
        """Case-insensitive substring match over the flat feature list."""
        needle = feature.lower()
        return any(needle in f.lower() for f in self.features)

    def features_for(self, category: str) -> list[str]:
        return list(self.features_by_category.get(category, []))

    def summary(self) -> dict[str, Any]:
        """Compact dict for list views."""
        return {
            "reference": self.reference,
            "title": self.title,
            "property_type": self.property_type.value,
            "location": self.short_location,
            "price": self.formatted_price,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "built_area": self.built_area,
            "image_url": self.primary_image_url,
            "status": self.status.value,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "reference": self.reference,
            "provider": self.provider.value,
            "listing_type": self.listing_type.value,
            "title": self.title,
            "description": self.description,
            "property_type": self.property_type.value,
            "property_type_raw": self.property_type_raw,
            "property_subtype": self.property_subtype,
            "provider_url": self.provider_url,
            "country": self.country,
            "region": self.region,
            "area": self.area,
            "city": self.city,
            "address": self.address,
            "postal_code": self.postal_code,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "status": self.status.value,
            "price": self.price,
            "price_raw": self.price_raw,
            "price_qualifier": self.price_qualifier,
            "original_price": self.original_price,
            "currency": self.currency,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "built_area": self.built_area,
            "plot_area": self.plot_area,
            "terrace_area": self.terrace_area,
            "year_built": self.year_built,
            "floor_level": self.floor_level,
            "orientation": self.orientation,
            "features": list(self.features),
            "features_by_category": {k: list(v) for k, v in self.features_by_category.items()},
            "energy_rating": self.energy_rating,
            "energy_value": self.energy_value,
            "co2_rating": self.co2_rating,
            "images": [img.to_dict() for img in self.images],
            "virtual_tour_url": self.virtual_tour_url,
            "video_url": self.video_url,
            "floor_plan_urls": list(self.floor_plan_urls),
            "community_fees": self.community_fees,
            "ibi_tax": self.ibi_tax,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NormalizedProperty:
        """Inverse of to_dict (used to rehydrate cached payloads)."""
        d = dict(data)
        d["provider"] = ProviderName(d["provider"])
        d["listing_type"] = ListingType(d.get("listing_type") or ListingType.SALE.value)
        d["property_type"] = PropertyType(d.get("property_type") or PropertyType.OTHER.value)
        d["status"] = PropertyStatus(d.get("status") or PropertyStatus.AVAILABLE.value)
        d["features"] = tuple(d.get("features") or ())
        d["features_by_category"] = {k: list(v) for k, v in (d.get("features_by_category") or {}).items()}
        d["images"] = tuple(
            PropertyImage(url=img["url"], position=img["position"], caption=img.get("caption"))
            for img in d.get("images") or ()
        )
        d["floor_plan_urls"] = tuple(d.get("floor_plan_urls") or ())
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass(frozen=True)
class NormalizedSearchResult:
    """
    One page of normalized properties.
    total_count is the server-reported total across all pages; page/per_page echo
    what was requested (or the server's defaults).
    """

    properties: tuple[NormalizedProperty, ...] = ()
    total_count: int = 0
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    provider: ProviderName | None = None
    query_params: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def __iter__(self) -> Iterator[NormalizedProperty]:
        return iter(self.properties)

    def __len__(self) -> int:
        return len(self.properties)

    @property
    def is_empty(self) -> bool:
        return not self.properties

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0 or self.total_count <= 0:
            return 0
        return math.ceil(self.total_count / self.per_page)

    @property
    def next_page(self) -> int | None:
        return self.page + 1 if self.page < self.total_pages else None

    @property
    def prev_page(self) -> int | None:
        return self.page - 1 if self.page > 1 else None

    @property
    def results_range(self) -> str:
        """e.g. '21-40 of 100'."""
        if self.total_count <= 0:
            return "0 of 0"
        first = (self.page - 1) * self.per_page + 1
        last = min(self.page * self.per_page, self.total_count)
        return f"{first}-{last} of {self.total_count}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "properties": [p.to_dict() for p in self.properties],
            "total_count": self.total_count,
            "page": self.page,
            "per_page": self.per_page,
            "total_pages": self.total_pages,
            "provider": self.provider.value if self.provider else None,
            "query_params": dict(self.query_params),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NormalizedSearchResult:
        provider = data.get("provider")
        return cls(
            properties=tuple(NormalizedProperty.from_dict(p) for p in data.get("properties") or ()),
            total_count=int(data.get("total_count") or 0),
            page=int(data.get("page") or 1),
            per_page=int(data.get("per_page") or DEFAULT_PER_PAGE),
            provider=ProviderName(provider) if provider else None,
            query_params=dict(data.get("query_params") or {}),
            error=data.get("error"),
        )
