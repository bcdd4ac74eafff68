"""Load JSON or JSONL batches and normalize them into source records."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cinetrust.adapters.tmdb.translator import translate_movie
from cinetrust.adapters.wikidata.translator import translate_entity
from cinetrust.domain.errors import MalformedRecordError
from cinetrust.domain.model import Provider, SourceRecord

from .schema import BATCH_ITEM_ADAPTER, FieldClaimItem, TmdbMovieItem

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from cinetrust.domain.reconciliation.policy import ResolutionPolicy

    from .schema import BatchItem, WikidataEntityItem

log = getLogger(__name__)


@dataclass(slots=True)
class BatchError:
    position: int
    entity_id: str | None
    message: str


@dataclass(slots=True)
class LoadedBatch:
    """Records grouped for ingestion; entities with any malformed item are excluded."""

    records: list[SourceRecord] = field(default_factory=list)
    errors: list[BatchError] = field(default_factory=list)

    @property
    def rejected_entities(self) -> set[str]:
        return {error.entity_id for error in self.errors if error.entity_id is not None}


def _raw_items(text: str) -> Iterator[tuple[int, object]]:
    stripped = text.lstrip()
    if stripped.startswith("["):
        try:
            items = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise MalformedRecordError(f"Batch is not valid JSON: {exc}") from exc
        yield from enumerate(items, start=1)
        return
    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            yield number, json.loads(line)
        except json.JSONDecodeError as exc:
            yield number, MalformedRecordError(f"line {number} is not valid JSON: {exc.msg}")


def _field_records(item: FieldClaimItem, policy: ResolutionPolicy) -> list[SourceRecord]:
    tier = item.source_trust_tier or policy.profile(item.source_name).tier
    return [
        SourceRecord(
            entity_id=item.entity_id,
            field_name=item.field_name,
            value=item.value,
            source_id=item.source_name,
            retrieved_at=item.retrieved_at,
            source_trust_tier=tier,
        )
    ]


def _wikidata_records(item: WikidataEntityItem, policy: ResolutionPolicy) -> list[SourceRecord]:
    return translate_entity(
        item.payload,
        entity_id=item.entity_id,
        kind=item.entity_kind,
        labels=item.labels,
        retrieved_at=item.retrieved_at,
        source_trust_tier=policy.profile(Provider.WIKIDATA).tier,
    )


def to_records(item: BatchItem, policy: ResolutionPolicy) -> list[SourceRecord]:
    if isinstance(item, FieldClaimItem):
        return _field_records(item, policy)
    if isinstance(item, TmdbMovieItem):
        return translate_movie(
            item.payload,
            entity_id=item.entity_id,
            retrieved_at=item.retrieved_at,
            source_trust_tier=policy.profile(Provider.TMDB).tier,
            certification_country=item.certification_country,
        )
    return _wikidata_records(item, policy)


def _entity_hint(raw: object) -> str | None:
    if isinstance(raw, dict):
        value = raw.get("entity_id")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_batch(text: str, *, policy: ResolutionPolicy) -> LoadedBatch:
    batch = LoadedBatch()
    for position, raw in _raw_items(text):
        if isinstance(raw, MalformedRecordError):
            batch.errors.append(BatchError(position=position, entity_id=None, message=str(raw)))
            continue
        try:
            item = BATCH_ITEM_ADAPTER.validate_python(raw)
            batch.records.extend(to_records(item, policy))
        except (ValidationError, ValueError) as exc:
            entity_id = _entity_hint(raw)
            log.warning("Malformed batch item %s (%s): %s", position, entity_id, exc)
            batch.errors.append(
                BatchError(position=position, entity_id=entity_id, message=str(exc))
            )
    rejected = batch.rejected_entities
    if rejected:
        batch.records = [record for record in batch.records if record.entity_id not in rejected]
    return batch


def load_batch(path: Path, *, policy: ResolutionPolicy) -> LoadedBatch:
    return parse_batch(path.read_text(encoding="utf-8"), policy=policy)


def load_batches(paths: Iterable[Path], *, policy: ResolutionPolicy) -> LoadedBatch:
    combined = LoadedBatch()
    for path in paths:
        loaded = load_batch(path, policy=policy)
        combined.records.extend(loaded.records)
        combined.errors.extend(loaded.errors)
    rejected = combined.rejected_entities
    combined.records = [record for record in combined.records if record.entity_id not in rejected]
    return combined
