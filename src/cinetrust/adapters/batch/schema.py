"""Batch input items: flat field claims or raw provider documents, tagged by ``kind``."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from cinetrust.adapters.tmdb.schema import TmdbMovie  # noqa: TC001
from cinetrust.adapters.wikidata.schema import WikidataEntity  # noqa: TC001
from cinetrust.domain.model import EntityKind


class BatchModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    entity_id: str = Field(min_length=1)
    retrieved_at: datetime

    @field_validator("entity_id")
    @classmethod
    def _strip_entity_id(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("entity_id must not be blank")
        return stripped


class FieldClaimItem(BatchModel):
    kind: Literal["field"]
    field_name: str = Field(alias="field", min_length=1)
    value: Any
    source_name: str = Field(min_length=1)
    source_trust_tier: int | None = Field(default=None, ge=1)


class TmdbMovieItem(BatchModel):
    kind: Literal["tmdb_movie"]
    payload: TmdbMovie
    certification_country: str = "IN"


class WikidataEntityItem(BatchModel):
    kind: Literal["wikidata_entity"]
    entity_kind: EntityKind = EntityKind.MOVIE
    payload: WikidataEntity
    labels: dict[str, str] = Field(default_factory=dict)


BatchItem = Annotated[
    FieldClaimItem | TmdbMovieItem | WikidataEntityItem,
    Field(discriminator="kind"),
]

BATCH_ITEM_ADAPTER: TypeAdapter[BatchItem] = TypeAdapter(BatchItem)
