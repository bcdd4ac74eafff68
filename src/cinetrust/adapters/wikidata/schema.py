"""Wikidata entity JSON schemas (``Special:EntityData`` and ``wbgetentities``)."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

type QId = str


class WikidataProperty(StrEnum):
    TITLE = "P1476"
    PUBLICATION_DATE = "P577"
    DURATION = "P2047"
    DIRECTOR = "P57"
    CAST_MEMBER = "P161"
    GENRE = "P136"
    BOX_OFFICE = "P2142"
    BIRTH_DATE = "P569"
    BIRTH_PLACE = "P19"
    OCCUPATION = "P106"


# Units of quantity values.
MINUTE_UNIT = "Q7727"
INDIAN_RUPEE_UNIT = "Q80524"

# Time value precision codes.
PRECISION_DAY = 11
PRECISION_YEAR = 9


class WikidataBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LanguageValue(WikidataBaseModel):
    language: str
    value: str


class DataValue(WikidataBaseModel):
    type: str
    value: Any


class Snak(WikidataBaseModel):
    snaktype: str
    property: str
    datavalue: DataValue | None = None


class Statement(WikidataBaseModel):
    mainsnak: Snak
    rank: str = "normal"


class WikidataEntity(WikidataBaseModel):
    id: QId
    labels: dict[str, LanguageValue] = Field(default_factory=dict)
    descriptions: dict[str, LanguageValue] = Field(default_factory=dict)
    claims: dict[str, list[Statement]] = Field(default_factory=dict)

    def label(self, languages: tuple[str, ...]) -> str | None:
        for language in languages:
            entry = self.labels.get(language)
            if entry is not None and entry.value.strip():
                return entry.value
        return None

    def statements(self, prop: WikidataProperty) -> list[Statement]:
        """Usable statements for ``prop``: preferred rank first, deprecated dropped."""

        usable = [
            statement
            for statement in self.claims.get(prop, [])
            if statement.rank != "deprecated"
            and statement.mainsnak.snaktype == "value"
            and statement.mainsnak.datavalue is not None
        ]
        return sorted(usable, key=lambda statement: statement.rank != "preferred")


class EntityDataResponse(WikidataBaseModel):
    entities: dict[QId, WikidataEntity]


class LabelEntity(WikidataBaseModel):
    id: QId
    labels: dict[str, LanguageValue] = Field(default_factory=dict)


class LabelsResponse(WikidataBaseModel):
    entities: dict[QId, LabelEntity] = Field(default_factory=dict)
