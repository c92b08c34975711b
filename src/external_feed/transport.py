"""Synchronous JSON GET with bounded timeouts, one redirect, and status classification."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .errors import (
    AuthenticationError,
    InvalidResponseError,
    PropertyNotFoundError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    TooManyRedirectsError,
)

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0
READ_TIMEOUT = 30.0
DEFAULT_TIMEOUT = httpx.Timeout(READ_TIMEOUT, connect=CONNECT_TIMEOUT)

# Characters left alone by the final escaping pass: URL delimiters and existing escapes.
_URL_SAFE = ":/?#[]@!$&'()*+,;=%~"


def new_client() -> httpx.Client:
    """HTTP client with the feed timeouts; redirects are handled by get_json."""
    return httpx.Client(timeout=DEFAULT_TIMEOUT, follow_redirects=False)


def escape_url(url: str) -> str:
    """
    General URI-escaping pass over an assembled URL.
    Anything form encoding left unescaped (raw accented characters, spaces)
    is percent-encoded as UTF-8; existing %XX escapes are kept.
    """
    return quote(url, safe=_URL_SAFE)


def classify_status(status_code: int, label: str = "Provider") -> ProviderError:
    """Map an HTTP error status to the matching error kind."""
    if status_code in (401, 403):
        return AuthenticationError(f"{label} authentication failed ({status_code})", status_code)
    if status_code == 429:
        return RateLimitError(f"{label} rate limit exceeded", status_code)
    if status_code == 404:
        return PropertyNotFoundError("Property not found", status_code)
    if 500 <= status_code <= 599:
        return ProviderUnavailableError(f"{label} server error ({status_code})", status_code)
    return ProviderError(f"{label} HTTP error: {status_code}", status_code)


def get_json(client: httpx.Client, url: str, label: str = "Provider") -> Any:
    """
    GET url and parse the body as JSON.
    Follows at most one redirect; a second redirect raises TooManyRedirectsError.
    """
    try:
        resp = client.get(escape_url(url), timeout=DEFAULT_TIMEOUT)
        if resp.is_redirect:
            logger.debug("%s redirected to %s", label, resp.headers.get("location"))
            resp = client.get(resp.url.join(resp.headers["location"]), timeout=DEFAULT_TIMEOUT)
            if resp.is_redirect:
                raise TooManyRedirectsError(f"{label} redirected more than once", resp.status_code)
    except httpx.TimeoutException as e:
        raise ProviderUnavailableError(f"{label} request timed out") from e
    except httpx.HTTPError as e:
        logger.error("%s fetch error: %s - %s", label, type(e).__name__, e)
        raise ProviderUnavailableError(f"Failed to fetch from {label}: {e}") from e

    if resp.status_code >= 400:
        raise classify_status(resp.status_code, label)

    try:
        return json.loads(resp.text)
    except ValueError as e:
        raise InvalidResponseError(f"Invalid JSON from {label}: {e}", resp.status_code) from e
