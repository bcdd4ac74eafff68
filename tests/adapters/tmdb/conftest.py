"""Shared fixtures for TMDB adapter tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cinetrust.adapters.tmdb.schema import TmdbMovie
from cinetrust.config.http_resilience import ResilienceConfig
from cinetrust.config.tmdb import TmdbConfig

TmdbPayload = dict[str, object]
FIXTURES = Path("tests/data/tmdb")


@pytest.fixture
def movie_payload() -> TmdbPayload:
    return json.loads((FIXTURES / "movie_rrr.json").read_text(encoding="utf-8"))


@pytest.fixture
def movie(movie_payload: TmdbPayload) -> TmdbMovie:
    return TmdbMovie.model_validate(movie_payload)


@pytest.fixture
def tmdb_config() -> TmdbConfig:
    return TmdbConfig(
        api_key="test-key",
        resilience=ResilienceConfig(name="tmdb", base_url="http://example.com", cache=None),
    )
