"""DuckDB-backed cache for external feed responses."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Mapping

import duckdb

from ..config import DEFAULT_CACHE_TTLS

logger = logging.getLogger(__name__)

KEY_PREFIX = "external_feed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _canonical_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop None / empty values and sort keys so equal requests share a key."""
    if not params:
        return {}
    cleaned = {}
    for key in sorted(params, key=str):
        value = params[key]
        if value is None:
            continue
        if isinstance(value, (str, list, tuple, dict, set)) and len(value) == 0:
            continue
        cleaned[str(key)] = value
    return cleaned


class FeedCache:
    """
    Per-tenant cache of feed payloads in a DuckDB table.
    Payloads are JSON documents; expired rows count as misses.
    """

    def __init__(
        self,
        db_path: Path | str = ":memory:",
        namespace: str = "default",
        provider: str = "",
        ttls: Mapping[str, int] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db_path = str(db_path)
        self.namespace = namespace
        self.provider = provider
        self.ttls = {**DEFAULT_CACHE_TTLS, **dict(ttls or {})}
        self._clock = clock
        self._conn: duckdb.DuckDBPyConnection | None = None

    def _connect(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(self.db_path)
            self._init_schema()
        return self._conn

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS feed_cache (
                key TEXT PRIMARY KEY,
                namespace TEXT,
                provider TEXT,
                operation TEXT,
                payload JSON,
                cached_at TIMESTAMP,
                expires_at TIMESTAMP
            )
        """)

    def cache_key(self, operation: str, params: Mapping[str, Any] | None) -> str:
        digest = hashlib.md5(
            json.dumps(_canonical_params(params), sort_keys=True, default=str).encode("utf-8")
        ).hexdigest()
        return f"{KEY_PREFIX}:{self.namespace}:{self.provider}:{operation}:{digest}"

    def ttl_for(self, operation: str) -> int:
        return int(self.ttls.get(operation, self.ttls["search"]))

    def read(self, operation: str, params: Mapping[str, Any] | None) -> Any | None:
        """Cached payload, or None on a miss or an expired row."""
        row = self._connect().execute(
            "SELECT payload FROM feed_cache WHERE key = ? AND expires_at > ?",
            [self.cache_key(operation, params), self._clock()],
        ).fetchone()
        if row is None:
            return None
        payload = row[0]
        return json.loads(payload) if isinstance(payload, str) else payload

    def write(self, operation: str, params: Mapping[str, Any] | None, data: Any, ttl: int | None = None) -> None:
        now = self._clock()
        expires = now + timedelta(seconds=ttl if ttl is not None else self.ttl_for(operation))
        self._connect().execute(
            """
            INSERT OR REPLACE INTO feed_cache
            (key, namespace, provider, operation, payload, cached_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                self.cache_key(operation, params),
                self.namespace,
                self.provider,
                operation,
                json.dumps(data, default=str),
                now,
                expires,
            ],
        )

    def fetch(
        self,
        operation: str,
        params: Mapping[str, Any] | None,
        loader: Callable[[], Any],
        ttl: int | None = None,
    ) -> Any:
        """
        Return the cached payload or call loader() and cache its (non-None) result.
        A failing cache backend is logged and bypassed; loader errors propagate.
        """
        try:
            cached = self.read(operation, params)
        except (duckdb.Error, OSError) as e:
            logger.warning("Cache read failed for %s, bypassing cache: %s", operation, e)
            return loader()
        if cached is not None:
            logger.debug("Cache hit: %s %s", operation, self.cache_key(operation, params))
            return cached
        data = loader()
        if data is not None:
            try:
                self.write(operation, params, data, ttl=ttl)
            except (duckdb.Error, OSError) as e:
                logger.warning("Cache write failed for %s: %s", operation, e)
        return data

    def is_cached(self, operation: str, params: Mapping[str, Any] | None) -> bool:
        return self.read(operation, params) is not None

    def invalidate(self, operation: str, params: Mapping[str, Any] | None) -> None:
        self._connect().execute("DELETE FROM feed_cache WHERE key = ?", [self.cache_key(operation, params)])

    def invalidate_operation(self, operation: str) -> None:
        self._connect().execute(
            "DELETE FROM feed_cache WHERE namespace = ? AND provider = ? AND operation = ?",
            [self.namespace, self.provider, operation],
        )

    def invalidate_all(self) -> None:
        """Drop every entry for this namespace, whatever the provider."""
        self._connect().execute("DELETE FROM feed_cache WHERE namespace = ?", [self.namespace])

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
