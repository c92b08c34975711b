"""Configuration loader and typed provider configuration records."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar, Mapping

import yaml

from .models import DEFAULT_PER_PAGE

# Resales Online language codes keyed by locale.
RESALES_LANG_CODES = {
    "en": "1",
    "es": "2",
    "de": "3",
    "fr": "4",
    "nl": "5",
    "da": "6",
    "ru": "7",
    "sv": "8",
    "pl": "9",
    "no": "10",
    "tr": "11",
}

DEFAULT_CACHE_TTLS = {
    "search": 3600,
    "property": 86400,
    "similar": 21600,
    "locations": 604800,
    "property_types": 604800,
}

# Provider name -> {config key: env var}
ENV_FALLBACKS = {
    "resales_online": {
        "api_key": "RESALES_ONLINE_API_KEY",
        "api_id_sales": "RESALES_ONLINE_API_ID_SALES",
        "api_id_rentals": "RESALES_ONLINE_API_ID_RENTALS",
    },
}


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load config from YAML file."""
    path = Path(config_path) if config_path else Path(__file__).parent.parent.parent / "config.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    with open(path) as f:
        return yaml.safe_load(f) or {}


@dataclass(frozen=True)
class ProviderConfig:
    """Settings every provider understands. Subclasses add their own keys."""

    required_keys: ClassVar[tuple[str, ...]] = ()

    default_locale: str = "en"
    supported_locales: tuple[str, ...] = ("en",)
    results_per_page: int = DEFAULT_PER_PAGE
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ProviderConfig:
        """Build from a loose mapping; unknown keys are kept in `extras`, never rejected."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)} - {"extras"}
        kwargs: dict[str, Any] = {}
        for name in known:
            if name in data and data[name] is not None:
                kwargs[name] = data[name]
        if "supported_locales" in kwargs:
            kwargs["supported_locales"] = tuple(str(l) for l in kwargs["supported_locales"])
        if "results_per_page" in kwargs:
            kwargs["results_per_page"] = int(kwargs["results_per_page"])
        kwargs["extras"] = {k: v for k, v in data.items() if k not in known}
        return cls(**cls._coerce(kwargs))

    @classmethod
    def _coerce(cls, kwargs: dict[str, Any]) -> dict[str, Any]:
        return kwargs

    def missing_keys(self) -> list[str]:
        """Required keys that are absent or blank."""
        return [k for k in self.required_keys if not str(getattr(self, k, "") or "").strip()]

    def is_configured(self) -> bool:
        return not self.missing_keys()


@dataclass(frozen=True)
class ResalesOnlineConfig(ProviderConfig):
    """Resales Online credentials and tenant-level tables."""

    required_keys: ClassVar[tuple[str, ...]] = ("api_key", "api_id_sales")

    supported_locales: tuple[str, ...] = tuple(RESALES_LANG_CODES)

    api_key: str = ""
    api_id_sales: str = ""
    api_id_rentals: str = ""
    p1_constant: str = "1014359"
    default_country: str = "Spain"
    image_count: int = 0  # 0 = all images
    lang_codes: dict[str, str] = field(default_factory=lambda: dict(RESALES_LANG_CODES))
    features: dict[str, str] = field(default_factory=dict)
    locations: list[dict[str, Any]] | None = None
    property_types: list[dict[str, Any]] | None = None

    @classmethod
    def _coerce(cls, kwargs: dict[str, Any]) -> dict[str, Any]:
        for key in ("api_key", "api_id_sales", "api_id_rentals", "p1_constant"):
            if key in kwargs:
                kwargs[key] = str(kwargs[key]).strip()
        if "image_count" in kwargs:
            kwargs["image_count"] = int(kwargs["image_count"])
        if "lang_codes" in kwargs:
            kwargs["lang_codes"] = {**RESALES_LANG_CODES, **{str(k): str(v) for k, v in kwargs["lang_codes"].items()}}
        if "features" in kwargs:
            kwargs["features"] = _feature_table(kwargs["features"])
        return kwargs

    def api_id_for(self, rental: bool) -> str:
        """Rental lookups use the rentals ID, falling back to the sales ID."""
        if rental:
            return self.api_id_rentals or self.api_id_sales
        return self.api_id_sales

    def lang_code_for(self, locale: str | None) -> str:
        key = (locale or "").split("-")[0].split("_")[0].lower()
        return self.lang_codes.get(key) or self.lang_codes.get("en", "1")


def _feature_table(raw: Any) -> dict[str, str]:
    """Accept {feature: param} or {feature: {param: ...}}."""
    table: dict[str, str] = {}
    if not isinstance(raw, Mapping):
        return table
    for feature, mapping in raw.items():
        if isinstance(mapping, Mapping):
            param = mapping.get("param")
        else:
            param = mapping
        if param:
            table[str(feature)] = str(param)
    return table


@dataclass(frozen=True)
class FeedSettings:
    """Top-level external feed settings for one tenant."""

    enabled: bool
    provider: str | None
    namespace: str
    provider_config: dict[str, Any]
    cache_path: str | None
    cache_ttls: dict[str, int]


def get_provider_config(config: dict[str, Any], provider: str) -> dict[str, Any]:
    """Raw provider section, with blank credentials filled from the environment."""
    section = config.get("external_feed", {}) or {}
    raw = dict((section.get("providers", {}) or {}).get(provider, {}) or {})
    for key, env_var in ENV_FALLBACKS.get(provider, {}).items():
        if not str(raw.get(key) or "").strip():
            env_value = os.environ.get(env_var, "")
            if env_value:
                raw[key] = env_value
    return raw


def get_feed_settings(config: dict[str, Any]) -> FeedSettings:
    """Extract external feed settings from config."""
    section = config.get("external_feed", {}) or {}
    provider = section.get("provider") or None
    cache = section.get("cache", {}) or {}
    ttls = dict(DEFAULT_CACHE_TTLS)
    ttls.update({str(k): int(v) for k, v in (cache.get("ttl", {}) or {}).items()})
    return FeedSettings(
        enabled=bool(section.get("enabled", False)),
        provider=str(provider) if provider else None,
        namespace=str(section.get("namespace", "default")),
        provider_config=get_provider_config(config, str(provider)) if provider else {},
        cache_path=cache.get("path"),
        cache_ttls=ttls,
    )
