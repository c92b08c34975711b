"""Tests for config loading and provider config records."""

import pytest

from external_feed.config import (
    DEFAULT_CACHE_TTLS,
    RESALES_LANG_CODES,
    ProviderConfig,
    ResalesOnlineConfig,
    get_feed_settings,
    get_provider_config,
    load_config,
)


def test_load_config_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_load_config_empty_file(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == {}


def test_load_config_reads_yaml(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("external_feed:\n  enabled: true\n  provider: resales_online\n")
    assert load_config(path)["external_feed"]["provider"] == "resales_online"


class TestResalesOnlineConfig:
    def test_from_mapping_coerces_values(self) -> None:
        config = ResalesOnlineConfig.from_mapping(
            {"api_key": " key ", "api_id_sales": 4069, "image_count": "3", "supported_locales": ["en", "es"]}
        )
        assert config.api_key == "key"
        assert config.api_id_sales == "4069"
        assert config.image_count == 3
        assert config.supported_locales == ("en", "es")

    def test_unknown_keys_are_kept(self) -> None:
        config = ResalesOnlineConfig.from_mapping({"api_key": "k", "api_id_sales": "1", "mystery": True})
        assert config.extras == {"mystery": True}

    def test_missing_keys(self) -> None:
        config = ResalesOnlineConfig.from_mapping({"api_key": "k", "api_id_sales": "  "})
        assert config.missing_keys() == ["api_id_sales"]
        assert not config.is_configured()
        assert ResalesOnlineConfig.from_mapping({"api_key": "k", "api_id_sales": "1"}).is_configured()

    def test_rental_id_falls_back_to_sales(self) -> None:
        config = ResalesOnlineConfig.from_mapping({"api_id_sales": "4069"})
        assert config.api_id_for(rental=True) == "4069"
        config = ResalesOnlineConfig.from_mapping({"api_id_sales": "4069", "api_id_rentals": "4070"})
        assert config.api_id_for(rental=True) == "4070"
        assert config.api_id_for(rental=False) == "4069"

    @pytest.mark.parametrize(
        "locale,code",
        [("en", "1"), ("es", "2"), ("de-DE", "3"), ("fr_FR", "4"), ("xx", "1"), (None, "1")],
    )
    def test_lang_codes(self, locale, code) -> None:
        assert ResalesOnlineConfig().lang_code_for(locale) == code

    def test_lang_code_overrides_merge(self) -> None:
        config = ResalesOnlineConfig.from_mapping({"lang_codes": {"es": "12"}})
        assert config.lang_code_for("es") == "12"
        assert config.lang_code_for("de") == "3"

    def test_feature_table_shapes(self) -> None:
        config = ResalesOnlineConfig.from_mapping(
            {"features": {"pool": "1Pool1", "garden": {"param": "1Garden1"}, "broken": {"other": 1}}}
        )
        assert config.features == {"pool": "1Pool1", "garden": "1Garden1"}


def test_resales_supports_every_vendor_language_by_default() -> None:
    assert set(ResalesOnlineConfig().supported_locales) == set(RESALES_LANG_CODES)
    assert ProviderConfig().supported_locales == ("en",)


def test_base_config_has_no_required_keys() -> None:
    assert ProviderConfig.from_mapping(None).is_configured()


def test_env_fallback_fills_blank_credentials(monkeypatch) -> None:
    monkeypatch.setenv("RESALES_ONLINE_API_KEY", "from-env")
    monkeypatch.setenv("RESALES_ONLINE_API_ID_SALES", "9999")
    config = {"external_feed": {"providers": {"resales_online": {"api_key": "", "api_id_sales": "4069"}}}}
    raw = get_provider_config(config, "resales_online")
    assert raw["api_key"] == "from-env"
    assert raw["api_id_sales"] == "4069"


def test_feed_settings(monkeypatch) -> None:
    monkeypatch.delenv("RESALES_ONLINE_API_KEY", raising=False)
    settings = get_feed_settings({
        "external_feed": {
            "enabled": True,
            "provider": "resales_online",
            "namespace": "tenant-1",
            "cache": {"path": "cache.duckdb", "ttl": {"search": 60}},
            "providers": {"resales_online": {"api_key": "k", "api_id_sales": "1"}},
        }
    })
    assert settings.enabled
    assert settings.provider == "resales_online"
    assert settings.namespace == "tenant-1"
    assert settings.cache_path == "cache.duckdb"
    assert settings.cache_ttls["search"] == 60
    assert settings.cache_ttls["property"] == DEFAULT_CACHE_TTLS["property"]
    assert settings.provider_config["api_key"] == "k"


def test_feed_settings_defaults() -> None:
    settings = get_feed_settings({})
    assert not settings.enabled
    assert settings.provider is None
    assert settings.namespace == "default"
    assert settings.provider_config == {}
    assert settings.cache_path is None
