"""TMDB configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_TIMEOUT_SECONDS = 15.0
TMDB_CERTIFICATION_COUNTRY = "IN"


@dataclass(frozen=True, slots=True)
class TmdbConfig:
    """Holds TMDB API configuration values."""

    api_key: str
    resilience: ResilienceConfig
    language: str = "en-US"
    certification_country: str = TMDB_CERTIFICATION_COUNTRY


def get_tmdb_config(
    *,
    resilience: ResilienceConfig | None = None,
    cache_path: str | None = None,
) -> TmdbConfig:
    values = require_env_vars(("TMDB_API_KEY",))
    cache = (
        CacheConfig(backend="sqlite", sqlite_path=cache_path, default_ttl_seconds=86_400.0)
        if cache_path
        else CacheConfig(backend="memory")
    )
    return TmdbConfig(
        api_key=values["TMDB_API_KEY"],
        resilience=resilience
        or ResilienceConfig(
            name="tmdb",
            base_url=TMDB_BASE_URL,
            timeout_seconds=TMDB_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=40, per_seconds=10.0),
            retry=RetryPolicy(total=4),
            cache=cache,
        ),
    )
