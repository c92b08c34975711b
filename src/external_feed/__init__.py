"""Normalized access to external real-estate listing feeds."""

from .errors import (
    AuthenticationError,
    ConfigurationError,
    FeedError,
    InvalidResponseError,
    NotFoundError,
    PropertyNotFoundError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    TooManyRedirectsError,
)
from .manager import FeedManager
from .models import (
    ListingType,
    NormalizedProperty,
    NormalizedSearchResult,
    PropertyStatus,
    PropertyType,
    SearchParams,
    SortOrder,
)
from .providers import BaseProvider, ResalesOnlineProvider, get_provider_class

__all__ = [
    "AuthenticationError",
    "BaseProvider",
    "ConfigurationError",
    "FeedError",
    "FeedManager",
    "InvalidResponseError",
    "ListingType",
    "NormalizedProperty",
    "NormalizedSearchResult",
    "NotFoundError",
    "PropertyNotFoundError",
    "PropertyStatus",
    "PropertyType",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "ResalesOnlineProvider",
    "SearchParams",
    "SortOrder",
    "TooManyRedirectsError",
    "get_provider_class",
]
