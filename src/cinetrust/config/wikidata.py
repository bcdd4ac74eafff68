"""Wikidata configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    ResponseHook,
    RetryPolicy,
)

DEFAULT_WIKIDATA_BASE_URL = "https://www.wikidata.org"
DEFAULT_WIKIDATA_LANGUAGES = ("en", "te")


@dataclass(frozen=True, slots=True)
class WikidataConfig:
    resilience: ResilienceConfig
    languages: tuple[str, ...] = DEFAULT_WIKIDATA_LANGUAGES


def get_wikidata_config(*, response_hooks: tuple[ResponseHook, ...] = ()) -> WikidataConfig:
    values = require_env_vars(("WIKIDATA_USER_AGENT",))
    resilience = ResilienceConfig(
        name="wikidata",
        base_url=DEFAULT_WIKIDATA_BASE_URL,
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        retry=RetryPolicy(total=4),
        cache=CacheConfig(enabled=True, backend="memory"),
        user_agent=values["WIKIDATA_USER_AGENT"],
        response_hooks=response_hooks,
    )
    return WikidataConfig(resilience=resilience)
