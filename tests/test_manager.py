"""Tests for FeedManager."""

import logging
from typing import Any

import httpx
import pytest

from external_feed.config import FeedSettings, get_feed_settings
from external_feed.manager import UNEXPECTED_ERROR, FeedManager
from external_feed.models import ProviderName
from external_feed.storage import FeedCache
from tests.conftest import RecordingTransport, json_response


def _settings(resales_config: dict[str, Any], **overrides: Any) -> FeedSettings:
    section = {
        "enabled": True,
        "provider": "resales_online",
        "namespace": "tenant-1",
        "providers": {"resales_online": resales_config},
    }
    section.update(overrides)
    return get_feed_settings({"external_feed": section})


@pytest.fixture
def make_manager(resales_config):
    managers = []

    def factory(handler, cache: FeedCache | None = None, **overrides: Any):
        transport = RecordingTransport(handler)
        client = httpx.Client(transport=transport, follow_redirects=False)
        manager = FeedManager(_settings(resales_config, **overrides), cache=cache, client=client)
        managers.append((manager, client))
        return manager, transport

    yield factory
    for manager, client in managers:
        manager.close()
        client.close()


def _never(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request {request.url}")


class TestConfiguration:
    def test_disabled_feed_does_nothing(self, make_manager) -> None:
        manager, transport = make_manager(_never, enabled=False)
        assert not manager.is_configured()
        assert manager.provider_display_name == "Not Configured"
        assert manager.search({"location": "Marbella"}).is_empty
        assert manager.find("R1") is None
        assert manager.locations() == []
        assert transport.requests == []

    def test_display_name(self, make_manager) -> None:
        manager, _ = make_manager(_never)
        assert manager.provider_name == "resales_online"
        assert manager.provider_display_name == "Resales Online"

    def test_unknown_provider_is_contained(self, make_manager) -> None:
        manager, _ = make_manager(_never, provider="nope")
        result = manager.search({})
        assert result.is_empty
        assert "nope" in result.error
        assert result.provider is None

    def test_missing_credentials_are_contained(self, make_manager, monkeypatch) -> None:
        monkeypatch.delenv("RESALES_ONLINE_API_KEY", raising=False)
        manager, transport = make_manager(_never, providers={"resales_online": {"api_id_sales": "4069"}})
        result = manager.search({})
        assert result.has_error
        assert "api_key" in result.error
        assert transport.requests == []


class TestSearch:
    def test_search(self, make_manager, search_payload) -> None:
        manager, _ = make_manager(lambda r: json_response(search_payload))
        result = manager.search({"location": "Marbella", "min_bedrooms": "2"})
        assert [p.reference for p in result] == ["R123", "R456"]
        assert result.provider == ProviderName.RESALES_ONLINE
        assert not result.has_error

    def test_provider_failure_becomes_error_result(self, make_manager) -> None:
        manager, _ = make_manager(lambda r: httpx.Response(500))
        result = manager.search({"page": "2"})
        assert result.is_empty
        assert result.has_error
        assert result.page == 2
        assert result.provider == ProviderName.RESALES_ONLINE

    def test_results_are_cached(self, make_manager, search_payload) -> None:
        cache = FeedCache(namespace="tenant-1", provider="resales_online")
        manager, transport = make_manager(lambda r: json_response(search_payload), cache=cache)
        first = manager.search({"location": "Marbella"})
        second = manager.search({"location": "Marbella"})
        assert first == second
        assert len(transport.requests) == 1

        manager.invalidate_cache()
        manager.search({"location": "Marbella"})
        assert len(transport.requests) == 2

    def test_errors_are_not_cached(self, make_manager, search_payload) -> None:
        responses = [httpx.Response(503), json_response(search_payload)]
        cache = FeedCache(namespace="tenant-1", provider="resales_online")
        manager, _ = make_manager(lambda r: responses.pop(0), cache=cache)
        assert manager.search({}).has_error
        assert len(manager.search({})) == 2


class TestFind:
    def test_find(self, make_manager, search_payload) -> None:
        payload = {"transaction": {"status": "success"}, "Property": search_payload["Property"][0]}
        manager, _ = make_manager(lambda r: json_response(payload))
        prop = manager.find("R123")
        assert prop.reference == "R123"
        assert prop.price == 35_000_000

    def test_failure_returns_none(self, make_manager) -> None:
        manager, _ = make_manager(lambda r: httpx.Response(401))
        assert manager.find("R123") is None


class TestSimilar:
    def test_similar(self, make_manager, search_payload, seed_property) -> None:
        manager, _ = make_manager(lambda r: json_response(search_payload))
        assert [p.reference for p in manager.similar(seed_property)] == ["R456"]

    def test_no_seed(self, make_manager) -> None:
        manager, _ = make_manager(_never)
        assert manager.similar(None) == []

    def test_failure_returns_empty(self, make_manager, seed_property) -> None:
        manager, _ = make_manager(lambda r: httpx.Response(429))
        assert manager.similar(seed_property) == []


def test_filter_options(make_manager) -> None:
    manager, transport = make_manager(_never)
    options = manager.filter_options()
    assert options["locations"]
    assert options["property_types"]
    assert [o["value"] for o in options["listing_types"]] == ["sale", "rental"]
    assert options["bedrooms"][0] == {"value": "1", "label": "1+"}
    assert len(options["bedrooms"]) == 6
    assert len(options["bathrooms"]) == 4
    assert transport.requests == []


class TestAvailability:
    def test_enabled_when_ping_succeeds(self, make_manager) -> None:
        manager, _ = make_manager(lambda r: json_response({"transaction": {"status": "success"}}))
        assert manager.is_enabled()

    def test_disabled_when_ping_fails(self, make_manager) -> None:
        manager, _ = make_manager(lambda r: httpx.Response(503))
        assert not manager.is_enabled()

    def test_unknown_provider_is_not_enabled(self, make_manager) -> None:
        manager, _ = make_manager(_never, provider="nope")
        assert not manager.is_enabled()


class TestUnexpectedErrors:
    @pytest.fixture
    def broken_config(self, resales_config):
        return {"resales_online": {**resales_config, "results_per_page": "abc"}}

    def test_operations_are_contained(self, make_manager, broken_config, seed_property) -> None:
        manager, transport = make_manager(_never, providers=broken_config)
        result = manager.search({"page": 3})
        assert result.is_empty
        assert result.error == UNEXPECTED_ERROR
        assert result.page == 3
        assert manager.find("R1") is None
        assert manager.similar(seed_property) == []
        assert manager.locations() == []
        assert manager.property_types() == []
        assert not manager.is_enabled()
        assert transport.requests == []

    def test_unexpected_error_is_logged(self, make_manager, broken_config, caplog) -> None:
        manager, _ = make_manager(_never, providers=broken_config)
        with caplog.at_level(logging.ERROR, logger="external_feed.manager"):
            manager.find("R1")
        assert "Unexpected find error for R1" in caplog.text

    def test_broken_cache_is_bypassed(self, make_manager, search_payload, tmp_path) -> None:
        (tmp_path / "blocker").write_text("")
        cache = FeedCache(tmp_path / "blocker" / "sub" / "cache.duckdb", namespace="tenant-1", provider="resales_online")
        manager, transport = make_manager(lambda r: json_response(search_payload), cache=cache)
        first = manager.search({"location": "Marbella"})
        second = manager.search({"location": "Marbella"})
        assert not first.has_error
        assert [p.reference for p in first] == ["R123", "R456"]
        assert first == second
        assert len(transport.requests) == 2


class TestDefaultLocale:
    @pytest.fixture
    def spanish(self, resales_config):
        return {"resales_online": {**resales_config, "default_locale": "es"}}

    def test_search_uses_configured_locale(self, make_manager, search_payload, spanish) -> None:
        manager, transport = make_manager(lambda r: json_response(search_payload), providers=spanish)
        result = manager.search({})
        assert transport.requests[0].url.params["P_Lang"] == "2"
        assert result.query_params["locale"] == "es"

    def test_explicit_locale_wins(self, make_manager, search_payload, spanish) -> None:
        manager, transport = make_manager(lambda r: json_response(search_payload), providers=spanish)
        manager.search({"locale": "de"})
        assert transport.requests[0].url.params["P_Lang"] == "3"

    def test_find_and_similar_use_configured_locale(self, make_manager, search_payload, spanish, seed_property) -> None:
        payload = {"transaction": {"status": "success"}, "Property": search_payload["Property"][0]}
        manager, transport = make_manager(lambda r: json_response(payload), providers=spanish)
        manager.find("R123")
        manager.similar(seed_property)
        assert [r.url.params["P_Lang"] for r in transport.requests] == ["2", "2"]
