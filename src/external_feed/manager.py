"""Consumer-facing entry point: provider construction, caching and error containment."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from .config import FeedSettings
from .errors import FeedError
from .models import DEFAULT_PER_PAGE, NormalizedProperty, NormalizedSearchResult, ProviderName, SearchParams
from .params import build_search_params
from .providers import BaseProvider, get_provider_class
from .storage import FeedCache

logger = logging.getLogger(__name__)

LISTING_TYPE_OPTIONS = [
    {"value": "sale", "label": "For Sale"},
    {"value": "rental", "label": "For Rent"},
]

UNEXPECTED_ERROR = "An unexpected error occurred"

SORT_OPTIONS = [
    {"value": "price_asc", "label": "Price (Low to High)"},
    {"value": "price_desc", "label": "Price (High to Low)"},
    {"value": "newest", "label": "Newest First"},
    {"value": "updated", "label": "Recently Updated"},
]


class FeedManager:
    """
    Wraps the configured provider for one tenant.

    Unlike providers, the manager never raises at callers: search returns an
    empty result carrying `error`, find returns None, list lookups return [].
    Feed errors are logged with their message, anything else with a traceback.
    """

    def __init__(
        self,
        settings: FeedSettings,
        cache: FeedCache | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self._client = client
        self._provider: BaseProvider | None = None

    @property
    def provider(self) -> BaseProvider:
        """Provider instance for the configured name. Raises ConfigurationError if unknown."""
        if self._provider is None:
            provider_class = get_provider_class(self.settings.provider or "")
            self._provider = provider_class(self.settings.provider_config, client=self._client)
        return self._provider

    @property
    def provider_name(self) -> str | None:
        return self.settings.provider

    @property
    def provider_display_name(self) -> str:
        if not self.is_configured():
            return "Not Configured"
        try:
            return get_provider_class(self.provider_name).label()
        except FeedError:
            return self.provider_name.replace("_", " ").title()

    def is_configured(self) -> bool:
        """Feed switched on and a provider named (credentials are checked by the provider)."""
        return self.settings.enabled and bool(self.settings.provider)

    def is_enabled(self) -> bool:
        """Configured and the provider passes its health check."""
        if not self.is_configured():
            return False
        try:
            return self.provider.is_available()
        except Exception as e:
            logger.warning("[ExternalFeed::Manager] Provider availability check failed: %s", e)
            return False

    # --- Operations ---

    def search(self, params: Mapping[str, Any] | SearchParams | None = None) -> NormalizedSearchResult:
        search_params = build_search_params(
            params,
            default_per_page=self._default_per_page(),
            default_locale=self._default_locale(),
        )
        if not self.is_configured():
            return self._empty_result(search_params)
        try:
            payload = self._cached(
                "search",
                search_params.to_dict(),
                lambda: self.provider.search(search_params).to_dict(),
            )
            return NormalizedSearchResult.from_dict(payload)
        except FeedError as e:
            logger.error("[ExternalFeed::Manager] Search error: %s", e)
            return self._empty_result(search_params, error=str(e))
        except Exception:
            logger.exception("[ExternalFeed::Manager] Unexpected search error")
            return self._empty_result(search_params, error=UNEXPECTED_ERROR)

    def find(
        self,
        reference: str,
        params: Mapping[str, Any] | SearchParams | None = None,
    ) -> NormalizedProperty | None:
        if not self.is_configured():
            return None
        find_params = build_search_params(params, default_locale=self._default_locale())

        def load() -> dict[str, Any] | None:
            prop = self.provider.find(reference, find_params)
            return prop.to_dict() if prop else None

        try:
            payload = self._cached("property", {"reference": reference, **find_params.to_dict()}, load)
        except FeedError as e:
            logger.error("[ExternalFeed::Manager] Find error for %s: %s", reference, e)
            return None
        except Exception:
            logger.exception("[ExternalFeed::Manager] Unexpected find error for %s", reference)
            return None
        return NormalizedProperty.from_dict(payload) if payload else None

    def similar(
        self,
        property: NormalizedProperty | None,
        params: Mapping[str, Any] | SearchParams | None = None,
    ) -> list[NormalizedProperty]:
        if not self.is_configured() or property is None:
            return []
        similar_params = build_search_params(params, default_locale=self._default_locale())
        try:
            payload = self._cached(
                "similar",
                {"reference": property.reference, **similar_params.to_dict()},
                lambda: [p.to_dict() for p in self.provider.similar(property, similar_params)],
            )
        except FeedError as e:
            logger.error("[ExternalFeed::Manager] Similar error: %s", e)
            return []
        except Exception:
            logger.exception("[ExternalFeed::Manager] Unexpected similar error")
            return []
        return [NormalizedProperty.from_dict(p) for p in payload or []]

    def locations(self, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        if not self.is_configured():
            return []
        try:
            return self._cached("locations", params, lambda: self.provider.locations(params)) or []
        except FeedError as e:
            logger.error("[ExternalFeed::Manager] Locations error: %s", e)
            return []
        except Exception:
            logger.exception("[ExternalFeed::Manager] Unexpected locations error")
            return []

    def property_types(self, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        if not self.is_configured():
            return []
        try:
            return self._cached("property_types", params, lambda: self.provider.property_types(params)) or []
        except FeedError as e:
            logger.error("[ExternalFeed::Manager] Property types error: %s", e)
            return []
        except Exception:
            logger.exception("[ExternalFeed::Manager] Unexpected property types error")
            return []

    def filter_options(self, params: Mapping[str, Any] | None = None) -> dict[str, list[dict[str, Any]]]:
        """Everything a search form needs, grouped by filter."""
        return {
            "locations": self.locations(params),
            "property_types": self.property_types(params),
            "listing_types": [dict(o) for o in LISTING_TYPE_OPTIONS],
            "sort_options": [dict(o) for o in SORT_OPTIONS],
            "bedrooms": [{"value": str(n), "label": f"{n}+"} for n in range(1, 7)],
            "bathrooms": [{"value": str(n), "label": f"{n}+"} for n in range(1, 5)],
        }

    def invalidate_cache(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_all()

    def close(self) -> None:
        if self._provider is not None:
            self._provider.close()
        if self.cache is not None:
            self.cache.close()

    # --- Helpers ---

    def _cached(self, operation: str, params: Mapping[str, Any] | None, loader: Any) -> Any:
        if self.cache is None:
            return loader()
        return self.cache.fetch(operation, params, loader)

    def _default_per_page(self) -> int:
        per_page = self.settings.provider_config.get("results_per_page")
        try:
            return int(per_page) if per_page else DEFAULT_PER_PAGE
        except (TypeError, ValueError):
            return DEFAULT_PER_PAGE

    def _default_locale(self) -> str:
        return str(self.settings.provider_config.get("default_locale") or "en")

    def _empty_result(self, params: SearchParams, error: str | None = None) -> NormalizedSearchResult:
        provider = None
        if self.provider_name in {p.value for p in ProviderName}:
            provider = ProviderName(self.provider_name)
        return NormalizedSearchResult(
            properties=(),
            total_count=0,
            page=params.page,
            per_page=params.per_page or DEFAULT_PER_PAGE,
            provider=provider,
            query_params=params.to_dict(),
            error=error,
        )
