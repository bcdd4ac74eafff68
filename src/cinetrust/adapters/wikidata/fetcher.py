"""Wikidata fetcher feeding the resolution pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import ValidationError

from cinetrust.domain.errors import SourceUnavailable
from cinetrust.domain.model import Provider

from .client import WikidataAPIError, WikidataClient
from .translator import translate_entity

if TYPE_CHECKING:
    from collections.abc import Callable

    from cinetrust.config.wikidata import WikidataConfig
    from cinetrust.domain.model import Entity, SourceRecord

    from .schema import WikidataEntity

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class EntityLookupClient(Protocol):
    def fetch_entity_with_labels(self, qid: str) -> tuple[WikidataEntity, dict[str, str]]: ...


@dataclass(slots=True)
class WikidataFetcher:
    """Fetch claims for movies and celebrities that carry a ``wikidata`` QID."""

    config: WikidataConfig
    source_trust_tier: int
    client: EntityLookupClient | None = None
    clock: Callable[[], datetime] = field(default=_utcnow)

    @property
    def source_id(self) -> str:
        return Provider.WIKIDATA

    def __call__(self, entity: Entity) -> list[SourceRecord]:
        qid = entity.external_id(Provider.WIKIDATA)
        if qid is None:
            return []
        client = self.client or WikidataClient(config=self.config)
        try:
            payload, labels = client.fetch_entity_with_labels(qid)
        except (httpx.HTTPError, ValidationError, WikidataAPIError) as exc:
            raise SourceUnavailable(Provider.WIKIDATA, str(exc)) from exc
        records = translate_entity(
            payload,
            entity_id=entity.entity_id,
            kind=entity.kind,
            labels=labels,
            retrieved_at=self.clock(),
            source_trust_tier=self.source_trust_tier,
            languages=self.config.languages,
        )
        log.info("Wikidata returned %s claims for %s", len(records), entity.entity_id)
        return records
