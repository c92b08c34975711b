"""Base provider interface for external listing feeds."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, ClassVar, Mapping

import httpx

from ..config import ProviderConfig
from ..errors import ConfigurationError, attempt
from ..models import NormalizedProperty, NormalizedSearchResult, ProviderName, SearchParams
from ..params import build_search_params
from ..transport import new_client

logger = logging.getLogger(__name__)

SIMILAR_DEFAULT_LIMIT = 8
SIMILAR_MAX_LIMIT = 20


class BaseProvider(ABC):
    """
    Abstract interface for external feed providers.
    Implementations: Resales Online.

    Every call is an independent request/response round trip; the only state
    is the read-only config and the injected HTTP client.
    """

    name: ClassVar[ProviderName]
    display_name: ClassVar[str] = ""
    config_class: ClassVar[type[ProviderConfig]] = ProviderConfig

    def __init__(
        self,
        config: ProviderConfig | Mapping[str, Any] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if isinstance(config, ProviderConfig):
            self.config = config
        else:
            self.config = self.config_class.from_mapping(config)
        self._owns_client = client is None
        self.client = client if client is not None else new_client()

    @classmethod
    def label(cls) -> str:
        return cls.display_name or cls.name.value.replace("_", " ").title()

    # --- Contract ---

    @abstractmethod
    def search(self, params: SearchParams | Mapping[str, Any] | None = None) -> NormalizedSearchResult:
        """Search listings. Returns an empty result (never None) when nothing matches."""
        ...

    @abstractmethod
    def find(
        self,
        reference: str,
        params: SearchParams | Mapping[str, Any] | None = None,
    ) -> NormalizedProperty | None:
        """Single listing by provider reference; None when the provider reports not found."""
        ...

    @abstractmethod
    def similar(
        self,
        property: NormalizedProperty,
        params: SearchParams | Mapping[str, Any] | None = None,
    ) -> list[NormalizedProperty]:
        """Listings resembling `property`, never including it, at most params.limit."""
        ...

    @abstractmethod
    def locations(self, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Location options ({value, label}). Never raises."""
        ...

    @abstractmethod
    def property_types(self, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Property type options ({value, label, subtypes?}). Never raises."""
        ...

    @abstractmethod
    def ping(self) -> bool:
        """Minimal live request; True when the provider answered successfully. May raise."""
        ...

    # --- Shared behaviour ---

    def is_configured(self) -> bool:
        return self.config.is_configured()

    def ensure_configured(self) -> None:
        """Raise ConfigurationError before any network call if credentials are missing."""
        missing = self.config.missing_keys()
        if missing:
            raise ConfigurationError(
                f"Missing required configuration for {self.name.value}: {', '.join(missing)}"
            )

    def is_available(self) -> bool:
        """Health check: collapses any failure to False, never raises."""
        result = attempt(self._check_availability)
        if not result.is_ok:
            self.log(logging.WARNING, f"Availability check failed: {result.error}")
            return False
        return bool(result.value)

    def _check_availability(self) -> bool:
        self.ensure_configured()
        return self.ping()

    def search_params(self, params: SearchParams | Mapping[str, Any] | None) -> SearchParams:
        """Typed params with provider defaults; unsupported locales fall back to default_locale."""
        p = build_search_params(
            params,
            default_per_page=self.config.results_per_page,
            default_locale=self.config.default_locale,
        )
        if not self.locale_supported(p.locale):
            self.log(logging.DEBUG, f"Locale {p.locale!r} not supported, using {self.config.default_locale!r}")
            p = replace(p, locale=self.config.default_locale)
        return p

    @staticmethod
    def similar_limit(params: SearchParams) -> int:
        """Caller's limit, clamped to [1, SIMILAR_MAX_LIMIT]."""
        limit = params.limit if params.limit is not None else SIMILAR_DEFAULT_LIMIT
        return max(1, min(limit, SIMILAR_MAX_LIMIT))

    def locale_supported(self, locale: str | None) -> bool:
        """Exact match, or match on the language part ("es-ES" -> "es")."""
        supported = self.config.supported_locales
        language = (locale or "").split("-")[0].split("_")[0].lower()
        return locale in supported or language in supported

    def log(self, level: int, message: str) -> None:
        logger.log(level, "[ExternalFeed::%s] %s", self.name.value, message)

    def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> BaseProvider:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
