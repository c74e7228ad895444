"""Configuration types for resilient HTTP clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from .env import optional_env_var, optional_positive_int

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

HTTP_CACHE_TTL_ENV_VAR = "MIRRORSYNC_HTTP_CACHE_TTL"
HTTP_CACHE_PATH_ENV_VAR = "MIRRORSYNC_HTTP_CACHE_PATH"


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    respect_retry_after_header: bool = True
    # No POST: creates are not idempotent.
    allowed_methods: frozenset[str] = field(
        default_factory=lambda: frozenset({"DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "PUT"})
    )
    status_forcelist: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 500, 502, 503, 504})
    )
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    backoff_jitter: float = 1.0


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """SQLite-backed cache for successful ``GET`` responses.

    Cached collection reads do not see writes made by other clients until
    ``ttl_seconds`` have passed. ``sqlite_path`` defaults to the data dir.
    """

    ttl_seconds: float
    sqlite_path: Path | str | None = None
    refresh_ttl_on_access: bool = False


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    # Opt-in; reads must reflect the live collection.
    cache: CacheConfig | None = None
    default_headers: Mapping[str, str] | None = None


def get_http_cache_config() -> CacheConfig | None:
    """Return the HTTP cache settings, or ``None`` when no TTL is configured."""

    ttl = optional_positive_int(HTTP_CACHE_TTL_ENV_VAR)
    if ttl is None:
        return None
    return CacheConfig(ttl_seconds=ttl, sqlite_path=optional_env_var(HTTP_CACHE_PATH_ENV_VAR))
