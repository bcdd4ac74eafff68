"""Shared fixtures for Wikidata adapter tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cinetrust.adapters.wikidata.schema import EntityDataResponse, WikidataEntity
from cinetrust.config.http_resilience import ResilienceConfig
from cinetrust.config.wikidata import WikidataConfig

WikidataPayload = dict[str, object]
FIXTURES = Path("tests/data/wikidata")


def _load(name: str) -> WikidataPayload:
    return json.loads((FIXTURES / name).read_text(encoding="utf-8"))


def _entity(payload: WikidataPayload) -> WikidataEntity:
    return next(iter(EntityDataResponse.model_validate(payload).entities.values()))


@pytest.fixture
def movie_payload() -> WikidataPayload:
    return _load("entity_rrr.json")


@pytest.fixture
def labels_payload() -> WikidataPayload:
    return _load("labels_rrr.json")


@pytest.fixture
def movie_entity(movie_payload: WikidataPayload) -> WikidataEntity:
    return _entity(movie_payload)


@pytest.fixture
def celebrity_entity() -> WikidataEntity:
    return _entity(_load("entity_ntr.json"))


@pytest.fixture
def movie_labels() -> dict[str, str]:
    return {
        "Q3530": "S. S. Rajamouli",
        "Q3595437": "N. T. Rama Rao Jr.",
        "Q3595440": "Ram Charan",
        "Q188473": "action film",
    }


@pytest.fixture
def wikidata_config() -> WikidataConfig:
    return WikidataConfig(
        resilience=ResilienceConfig(name="wikidata", base_url="http://example.com", cache=None)
    )
