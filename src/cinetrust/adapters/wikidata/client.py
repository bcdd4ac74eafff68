"""Wikidata API client."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from cinetrust.adapters.http_resilience import ResilientClient
from cinetrust.config.http_resilience import RetryablePayloadError

from .schema import EntityDataResponse, LabelsResponse, WikidataEntity

if TYPE_CHECKING:
    from collections.abc import Callable

    from cinetrust.config.http_resilience import ResilienceConfig
    from cinetrust.config.wikidata import WikidataConfig

log = getLogger(__name__)

LABEL_BATCH_SIZE = 50


class WikidataAPIError(RuntimeError):
    """Raised when Wikidata returns an unexpected or error payload."""


async def raise_on_maxlag(response: httpx.Response) -> None:
    """Response hook: ``maxlag`` errors arrive as HTTP 200 and must be retried."""

    if response.request.url.params.get("action") != "wbgetentities":
        return
    await response.aread()
    try:
        payload = response.json()
    except ValueError:
        return
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("code") == "maxlag":
        raise RetryablePayloadError("Wikidata replication lag", response=response)


class WikidataClient:
    """Low-level HTTP client for Wikidata entity data."""

    def __init__(
        self,
        *,
        config: WikidataConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient

    def fetch_entity_with_labels(self, qid: str) -> tuple[WikidataEntity, dict[str, str]]:
        """Fetch ``qid`` and the labels of every entity its statements point to."""

        return asyncio.run(self._fetch_entity_with_labels_async(qid))

    async def _fetch_entity_with_labels_async(
        self, qid: str
    ) -> tuple[WikidataEntity, dict[str, str]]:
        async with self._client_factory(self._resilience) as client:
            entity = await self._fetch_entity(client, qid)
            labels = await self._fetch_labels(client, _referenced_ids(entity))
        return entity, labels

    async def _fetch_entity(self, client: ResilientClient, qid: str) -> WikidataEntity:
        raw = await client.get_json(f"wiki/Special:EntityData/{qid}.json")
        if raw is None:
            raise WikidataAPIError(f"Wikidata has no entity {qid}")
        payload = EntityDataResponse.model_validate(raw)
        # Redirected items are keyed by their new id.
        entity = payload.entities.get(qid) or next(iter(payload.entities.values()), None)
        if entity is None:
            raise WikidataAPIError(f"Wikidata returned no entity for {qid}")
        return entity

    async def _fetch_labels(self, client: ResilientClient, ids: list[str]) -> dict[str, str]:
        labels: dict[str, str] = {}
        languages = self._config.languages
        for start in range(0, len(ids), LABEL_BATCH_SIZE):
            batch = ids[start : start + LABEL_BATCH_SIZE]
            payload = await client.get_json(
                "w/api.php",
                params={
                    "action": "wbgetentities",
                    "ids": "|".join(batch),
                    "props": "labels",
                    "languages": "|".join(languages),
                    "format": "json",
                    "maxlag": "5",
                },
            )
            if not isinstance(payload, dict):
                raise WikidataAPIError("Unexpected wbgetentities response payload")
            if "error" in payload:
                raise WikidataAPIError(f"wbgetentities failed: {payload['error']}")
            for entity in LabelsResponse.model_validate(payload).entities.values():
                for language in languages:
                    entry = entity.labels.get(language)
                    if entry is not None:
                        labels[entity.id] = entry.value
                        break
        return labels


def _referenced_ids(entity: WikidataEntity) -> list[str]:
    ids: dict[str, None] = {}
    for statements in entity.claims.values():
        for statement in statements:
            datavalue = statement.mainsnak.datavalue
            if datavalue is None or datavalue.type != "wikibase-entityid":
                continue
            value = datavalue.value
            if isinstance(value, dict) and isinstance(value.get("id"), str):
                ids[value["id"]] = None
    return list(ids)

