"""TMDB API client."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from cinetrust.adapters.http_resilience import ResilientClient

from .schema import TmdbMovie

if TYPE_CHECKING:
    from collections.abc import Callable

    from cinetrust.config.http_resilience import ResilienceConfig
    from cinetrust.config.tmdb import TmdbConfig

log = getLogger(__name__)

MOVIE_APPENDS = ("credits", "release_dates")


class TmdbAPIError(RuntimeError):
    """Raised when the TMDB API returns an unexpected response."""


class TmdbClient:
    """Low-level HTTP client for the TMDB v3 API."""

    def __init__(
        self,
        *,
        config: TmdbConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient

    def fetch_movie(self, movie_id: str) -> TmdbMovie:
        return asyncio.run(self._fetch_movie_async(movie_id))

    async def _fetch_movie_async(self, movie_id: str) -> TmdbMovie:
        if self._resilience.base_url is None:
            raise TmdbAPIError("Missing TMDB base_url in resilience configuration")
        params = {
            "api_key": self._config.api_key,
            "language": self._config.language,
            "append_to_response": ",".join(MOVIE_APPENDS),
        }
        async with self._client_factory(self._resilience) as client:
            payload = await client.get_json(f"movie/{movie_id}", params=params)
        if payload is None:
            raise TmdbAPIError(f"TMDB has no movie {movie_id}")
        if not isinstance(payload, dict):
            raise TmdbAPIError("Unexpected TMDB response payload")
        log.debug("Fetched TMDB movie %s", movie_id)
        return TmdbMovie.model_validate(payload)
