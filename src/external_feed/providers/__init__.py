"""Feed providers and the name -> class registry."""

from __future__ import annotations

from ..errors import ConfigurationError
from .base import BaseProvider
from .resales_online import ResalesOnlineProvider

PROVIDERS: dict[str, type[BaseProvider]] = {
    ResalesOnlineProvider.name.value: ResalesOnlineProvider,
}


def available_providers() -> list[str]:
    return sorted(PROVIDERS)


def get_provider_class(name: str) -> type[BaseProvider]:
    """Look up a provider class by name; unknown names are a configuration error."""
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown external feed provider: {name}. Available: {', '.join(available_providers())}"
        ) from None


__all__ = [
    "BaseProvider",
    "ResalesOnlineProvider",
    "PROVIDERS",
    "available_providers",
    "get_provider_class",
]
