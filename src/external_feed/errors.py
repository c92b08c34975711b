"""Error taxonomy shared by all feed providers, plus a tagged call result."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")


class FeedError(Exception):
    """Base class for every external feed failure."""

    retryable = False


class ConfigurationError(FeedError):
    """Required provider configuration is missing or invalid. Raised before any request."""


class ProviderError(FeedError):
    """Generic provider failure. Carries the raw HTTP status when there was one."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ProviderError):
    """Provider rejected the credentials (401/403)."""


class RateLimitError(ProviderError):
    """Provider is throttling us (429)."""

    retryable = True


class PropertyNotFoundError(ProviderError):
    """Provider reported the requested resource does not exist (404)."""


NotFoundError = PropertyNotFoundError


class InvalidResponseError(ProviderError):
    """Response body could not be parsed or lacks the expected envelope."""


class ProviderUnavailableError(ProviderError):
    """5xx, timeout or network-level failure: retry later."""

    retryable = True


class TooManyRedirectsError(ProviderUnavailableError):
    """The server redirected again after the one redirect we follow."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: FeedError

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def attempt(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
    """
    Run a provider call and return Ok(value) or Err(error).
    Unexpected exceptions are wrapped in ProviderError so the Err arm always holds a FeedError.
    """
    try:
        return Ok(fn(*args, **kwargs))
    except FeedError as e:
        return Err(e)
    except Exception as e:
        wrapped = ProviderError(f"{type(e).__name__}: {e}")
        wrapped.__cause__ = e
        return Err(wrapped)
