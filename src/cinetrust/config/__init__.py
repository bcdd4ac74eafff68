"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_int_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .policy import PolicyConfig, get_policy_config, load_policy_file, parse_policy
from .resolution import ResolutionRunConfig, get_resolution_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .tmdb import TmdbConfig, get_tmdb_config
from .wikidata import WikidataConfig, get_wikidata_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "PolicyConfig",
    "RateLimit",
    "ResilienceConfig",
    "ResolutionRunConfig",
    "RetryPolicy",
    "StorageConfig",
    "TmdbConfig",
    "WikidataConfig",
    "configure_logging",
    "get_database_config",
    "get_policy_config",
    "get_resolution_config",
    "get_storage_config",
    "get_tmdb_config",
    "get_wikidata_config",
    "load_policy_file",
    "optional_int_env",
    "parse_policy",
    "require_env_vars",
]
