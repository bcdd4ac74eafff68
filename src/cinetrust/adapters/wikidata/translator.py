"""Translate Wikidata entities into source records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cinetrust.domain.model import EntityKind, Provider, SourceRecord

from .schema import (
    INDIAN_RUPEE_UNIT,
    MINUTE_UNIT,
    PRECISION_DAY,
    PRECISION_YEAR,
    WikidataProperty,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from cinetrust.domain.model import FieldValue

    from .schema import WikidataEntity


def _values(entity: WikidataEntity, prop: WikidataProperty) -> list[Any]:
    return [
        statement.mainsnak.datavalue.value
        for statement in entity.statements(prop)
        if statement.mainsnak.datavalue is not None
    ]


def _split_time(value: Any) -> tuple[str, int] | None:
    if not isinstance(value, dict):
        return None
    raw = value.get("time")
    precision = value.get("precision")
    if not isinstance(raw, str) or not isinstance(precision, int):
        return None
    date_part = raw.lstrip("+").split("T", 1)[0]
    if date_part.startswith("-"):
        return None
    return date_part, precision


def _earliest_date(entity: WikidataEntity, prop: WikidataProperty) -> str | None:
    dates = [
        parts[0]
        for parts in map(_split_time, _values(entity, prop))
        if parts is not None and parts[1] >= PRECISION_DAY
    ]
    return min(dates) if dates else None


def _earliest_year(entity: WikidataEntity, prop: WikidataProperty) -> int | None:
    years = [
        int(parts[0][:4])
        for parts in map(_split_time, _values(entity, prop))
        if parts is not None and parts[1] >= PRECISION_YEAR
    ]
    return min(years) if years else None


def _quantity(entity: WikidataEntity, prop: WikidataProperty, unit: str) -> float | None:
    for value in _values(entity, prop):
        if not isinstance(value, dict):
            continue
        if not str(value.get("unit", "")).endswith(f"/{unit}"):
            continue
        try:
            return float(str(value.get("amount")))
        except ValueError:
            continue
    return None


def _labels_for(
    entity: WikidataEntity, prop: WikidataProperty, labels: Mapping[str, str]
) -> list[str]:
    names: list[str] = []
    for value in _values(entity, prop):
        if isinstance(value, dict) and value.get("id") in labels:
            name = labels[value["id"]]
            if name not in names:
                names.append(name)
    return names


def _title(entity: WikidataEntity, languages: tuple[str, ...]) -> str | None:
    label = entity.label(languages)
    if label is not None:
        return label
    for value in _values(entity, WikidataProperty.TITLE):
        if isinstance(value, dict) and isinstance(value.get("text"), str):
            return value["text"]
    return None


def movie_fields(
    entity: WikidataEntity, *, labels: Mapping[str, str], languages: tuple[str, ...]
) -> dict[str, FieldValue]:
    runtime = _quantity(entity, WikidataProperty.DURATION, MINUTE_UNIT)
    directors = _labels_for(entity, WikidataProperty.DIRECTOR, labels)
    return {
        "title": _title(entity, languages),
        "release_date": _earliest_date(entity, WikidataProperty.PUBLICATION_DATE),
        "release_year": _earliest_year(entity, WikidataProperty.PUBLICATION_DATE),
        "runtime_minutes": int(runtime) if runtime is not None else None,
        "director": directors[0] if directors else None,
        "cast": _labels_for(entity, WikidataProperty.CAST_MEMBER, labels),
        "genres": _labels_for(entity, WikidataProperty.GENRE, labels),
        "box_office_gross_inr": _quantity(entity, WikidataProperty.BOX_OFFICE, INDIAN_RUPEE_UNIT),
    }


def celebrity_fields(
    entity: WikidataEntity, *, labels: Mapping[str, str], languages: tuple[str, ...]
) -> dict[str, FieldValue]:
    places = _labels_for(entity, WikidataProperty.BIRTH_PLACE, labels)
    return {
        "name": entity.label(languages),
        "birth_date": _earliest_date(entity, WikidataProperty.BIRTH_DATE),
        "birth_place": places[0] if places else None,
        "occupations": _labels_for(entity, WikidataProperty.OCCUPATION, labels),
    }


def translate_entity(
    entity: WikidataEntity,
    *,
    entity_id: str,
    kind: EntityKind,
    labels: Mapping[str, str],
    retrieved_at: datetime,
    source_trust_tier: int,
    languages: tuple[str, ...] = ("en", "te"),
) -> list[SourceRecord]:
    if kind is EntityKind.MOVIE:
        fields = movie_fields(entity, labels=labels, languages=languages)
    else:
        fields = celebrity_fields(entity, labels=labels, languages=languages)
    return [
        SourceRecord(
            entity_id=entity_id,
            field_name=name,
            value=value,
            source_id=Provider.WIKIDATA,
            retrieved_at=retrieved_at,
            source_trust_tier=source_trust_tier,
        )
        for name, value in fields.items()
        if value not in (None, "", [])
    ]
