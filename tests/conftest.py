"""Pytest fixtures."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from external_feed.models import ListingType, NormalizedProperty, PropertyType, ProviderName
from external_feed.providers import ResalesOnlineProvider


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode("utf-8"),
                          headers={"Content-Type": "application/json"})


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def resales_config() -> dict[str, Any]:
    return {
        "api_key": "test_api_key_123",
        "api_id_sales": "4069",
        "api_id_rentals": "4070",
        "p1_constant": "1014359",
    }


@pytest.fixture
def search_payload() -> dict[str, Any]:
    """Two-property search response."""
    return {
        "transaction": {"status": "success"},
        "QueryInfo": {"PropertyCount": 2, "CurrentPage": 1, "PropertiesPerPage": 20},
        "Property": [
            {
                "Reference": "R123",
                "Type": "Apartment",
                "PropertyType": {"Type": "Apartment", "SubtypeId1": "1-1", "Subtype1": "Apartment"},
                "Location": "Marbella",
                "Province": "Malaga",
                "Country": "Spain",
                "Price": 350000,
                "Currency": "EUR",
                "Bedrooms": 2,
                "Bathrooms": 1,
                "Built": 85,
                "Description": "Lovely apartment",
                "Pictures": {"Count": 1, "Picture": [{"PictureURL": "http://example.com/img.jpg"}]},
            },
            {
                "Reference": "R456",
                "Type": "Villa",
                "PropertyType": {"Type": "Villa"},
                "Location": "Estepona",
                "Province": "Malaga",
                "Country": "Spain",
                "Price": 750000,
                "Currency": "EUR",
                "Bedrooms": 4,
                "Bathrooms": 3,
                "Built": 250,
                "Description": "Beautiful villa",
            },
        ],
    }


@pytest.fixture
def make_provider(resales_config: dict[str, Any]) -> Callable[..., tuple[ResalesOnlineProvider, RecordingTransport]]:
    """Build a provider whose HTTP goes through a recording mock transport."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        config: dict[str, Any] | None = None,
    ) -> tuple[ResalesOnlineProvider, RecordingTransport]:
        transport = RecordingTransport(handler)
        client = httpx.Client(transport=transport, follow_redirects=False)
        provider = ResalesOnlineProvider(config if config is not None else resales_config, client=client)
        return provider, transport

    return factory


@pytest.fixture
def seed_property() -> NormalizedProperty:
    return NormalizedProperty(
        reference="R123",
        provider=ProviderName.RESALES_ONLINE,
        listing_type=ListingType.SALE,
        city="Marbella",
        property_type=PropertyType.APARTMENT,
        property_type_raw="1-1",
        bedrooms=2,
        price=35_000_000,
    )
