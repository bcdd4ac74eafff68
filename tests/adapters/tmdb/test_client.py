from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from cinetrust.adapters.http_resilience import ResilientClient
from cinetrust.adapters.tmdb.client import TmdbAPIError, TmdbClient
from cinetrust.config.http_resilience import ResilienceConfig
from cinetrust.config.tmdb import TmdbConfig

if TYPE_CHECKING:
    from collections.abc import Callable


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001
            base_url=resilience.base_url or "",
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def test_fetch_movie_requests_credits_and_release_dates(
    tmdb_config: TmdbConfig, movie_payload: dict[str, object]
) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=movie_payload)

    client = TmdbClient(config=tmdb_config, client_factory=_make_client_factory(handler))

    movie = client.fetch_movie("579974")

    assert movie.id == 579974
    assert movie.imdb_id == "tt8178634"
    assert len(seen) == 1
    request = seen[0]
    assert request.url.path == "/movie/579974"
    assert request.url.params["api_key"] == "test-key"
    assert request.url.params["language"] == "en-US"
    assert request.url.params["append_to_response"] == "credits,release_dates"


def test_missing_movie_raises(tmdb_config: TmdbConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"status_code": 34}, request=request)

    client = TmdbClient(config=tmdb_config, client_factory=_make_client_factory(handler))

    with pytest.raises(TmdbAPIError, match="no movie 1"):
        client.fetch_movie("1")


def test_server_errors_propagate_as_http_errors(tmdb_config: TmdbConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, request=request)

    client = TmdbClient(config=tmdb_config, client_factory=_make_client_factory(handler))

    with pytest.raises(httpx.HTTPStatusError):
        client.fetch_movie("579974")


def test_unexpected_payload_raises(tmdb_config: TmdbConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "a", "movie"])

    client = TmdbClient(config=tmdb_config, client_factory=_make_client_factory(handler))

    with pytest.raises(TmdbAPIError, match="Unexpected"):
        client.fetch_movie("579974")


def test_missing_base_url_raises() -> None:
    config = TmdbConfig(
        api_key="test-key", resilience=ResilienceConfig(name="tmdb", base_url=None, cache=None)
    )

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = TmdbClient(config=config, client_factory=_make_client_factory(handler))

    with pytest.raises(TmdbAPIError, match="base_url"):
        client.fetch_movie("579974")
