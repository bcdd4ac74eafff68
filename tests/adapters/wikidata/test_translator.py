from __future__ import annotations

from typing import TYPE_CHECKING

from cinetrust.adapters.wikidata.schema import WikidataEntity
from cinetrust.adapters.wikidata.translator import translate_entity
from cinetrust.domain.model import EntityKind, Provider
from tests.helpers.records import RETRIEVED_AT

if TYPE_CHECKING:
    from collections.abc import Mapping


def _translate(
    entity: WikidataEntity,
    kind: EntityKind,
    labels: Mapping[str, str],
    languages: tuple[str, ...] = ("en", "te"),
) -> dict[str, object]:
    records = translate_entity(
        entity,
        entity_id="movie-rrr" if kind is EntityKind.MOVIE else "person-ntr",
        kind=kind,
        labels=labels,
        retrieved_at=RETRIEVED_AT,
        source_trust_tier=2,
        languages=languages,
    )
    assert {record.source_id for record in records} <= {Provider.WIKIDATA}
    return {record.field_name: record.value for record in records}


def test_movie_statements_become_claims(
    movie_entity: WikidataEntity, movie_labels: dict[str, str]
) -> None:
    values = _translate(movie_entity, EntityKind.MOVIE, movie_labels)

    assert values == {
        "title": "RRR",
        "release_date": "2022-03-24",
        "release_year": 2022,
        "runtime_minutes": 187,
        "director": "S. S. Rajamouli",
        "cast": ("N. T. Rama Rao Jr.", "Ram Charan"),
        "genres": ("action film",),
        "box_office_gross_inr": 12_000_000_000.0,
    }


def test_deprecated_statements_are_ignored(
    movie_entity: WikidataEntity, movie_labels: dict[str, str]
) -> None:
    values = _translate(movie_entity, EntityKind.MOVIE, movie_labels)

    assert values["release_year"] == 2022


def test_label_language_preference(
    movie_entity: WikidataEntity, movie_labels: dict[str, str]
) -> None:
    values = _translate(movie_entity, EntityKind.MOVIE, movie_labels, languages=("te", "en"))

    assert values["title"] == "ఆర్ఆర్ఆర్"


def test_unlabelled_references_are_dropped(movie_entity: WikidataEntity) -> None:
    values = _translate(movie_entity, EntityKind.MOVIE, {"Q3595437": "N. T. Rama Rao Jr."})

    assert values["cast"] == ("N. T. Rama Rao Jr.",)
    assert "director" not in values
    assert "genres" not in values


def test_year_precision_dates_only_give_a_year() -> None:
    entity = WikidataEntity.model_validate(
        {
            "id": "Q1",
            "labels": {"en": {"language": "en", "value": "Magadheera"}},
            "claims": {
                "P577": [
                    {
                        "mainsnak": {
                            "snaktype": "value",
                            "property": "P577",
                            "datavalue": {
                                "type": "time",
                                "value": {"time": "+2009-00-00T00:00:00Z", "precision": 9},
                            },
                        }
                    }
                ]
            },
        }
    )

    values = _translate(entity, EntityKind.MOVIE, {})

    assert values == {"title": "Magadheera", "release_year": 2009}


def test_celebrity_statements_become_claims(celebrity_entity: WikidataEntity) -> None:
    labels = {"Q1361": "Hyderabad", "Q33999": "actor", "Q177220": "singer"}

    values = _translate(celebrity_entity, EntityKind.CELEBRITY, labels)

    assert values == {
        "name": "N. T. Rama Rao Jr.",
        "birth_date": "1983-05-20",
        "birth_place": "Hyderabad",
        "occupations": ("actor", "singer"),
    }
