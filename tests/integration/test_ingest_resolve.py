from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from cinetrust.app import (
    add_entity,
    explain_entity,
    ingest_files,
    list_reviews,
    resolve_review,
    show_entity,
)
from cinetrust.domain.model import (
    ConsensusDecision,
    EntityKind,
    GovernanceState,
    ReviewReason,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from cinetrust.adapters.sqlalchemy.unit_of_work import SqlAlchemyResolutionUnitOfWork

    type UowFactory = Callable[[], SqlAlchemyResolutionUnitOfWork]


def _claim(entity_id: str, field: str, value: object, source: str) -> dict[str, object]:
    retrieved_at = datetime.now(tz=UTC) - timedelta(days=1)
    return {
        "kind": "field",
        "entity_id": entity_id,
        "field": field,
        "value": value,
        "source_name": source,
        "retrieved_at": retrieved_at.isoformat(),
    }


def _write_batch(path: Path) -> Path:
    items = [
        _claim("movie-rrr", "title", "RRR", "official"),
        _claim("movie-rrr", "title", "RRR", "tmdb"),
        _claim("movie-rrr", "title", "RRR", "imdb"),
        _claim("movie-rrr", "release_year", 2022, "official"),
        _claim("movie-rrr", "release_year", 2022, "regional"),
        _claim("movie-rrr", "release_year", 2022, "wikidata"),
        _claim("movie-rrr", "synopsis", "A fictional tale of two revolutionaries.", "tmdb"),
        _claim("movie-eega", "title", "Eega", "official"),
        _claim("movie-unknown", "title", "Untitled", "tmdb"),
    ]
    path.write_text("\n".join(json.dumps(item) for item in items) + "\n", encoding="utf-8")
    return path


def test_ingest_resolve_and_review(threaded_unit_of_work: UowFactory, tmp_path: Path) -> None:
    uow = threaded_unit_of_work
    add_entity("movie-rrr", EntityKind.MOVIE, display_name="RRR", unit_of_work_factory=uow)
    add_entity("movie-eega", EntityKind.MOVIE, display_name="Eega", unit_of_work_factory=uow)

    summary = ingest_files(
        [_write_batch(tmp_path / "claims.jsonl")], unit_of_work_factory=uow, workers=2
    )

    assert summary.loaded.errors == []
    assert summary.stored.stored == 8
    assert set(summary.stored.rejected) == {"movie-unknown"}
    assert summary.resolution is not None
    assert summary.resolution.ok
    states = {
        resolution.entity.entity_id: resolution.entity.state
        for resolution in summary.resolution.resolved
    }
    assert states == {
        "movie-rrr": GovernanceState.VALIDATED,
        "movie-eega": GovernanceState.BLOCKED,
    }

    queued = list_reviews(entity_id="movie-rrr", unit_of_work_factory=uow)
    assert [(item.field_name, item.reason) for item in queued] == [
        ("synopsis", ReviewReason.OPINION_REQUIRES_AUTHOR)
    ]

    reviewed = resolve_review(
        "movie-rrr",
        "synopsis",
        reviewer="asha",
        value="Two revolutionaries in 1920s India.",
        unit_of_work_factory=uow,
    )
    assert reviewed.values["synopsis"].decision is ConsensusDecision.HUMAN_APPROVED
    assert list_reviews(entity_id="movie-rrr", unit_of_work_factory=uow) == []

    snapshot = show_entity("movie-rrr", unit_of_work_factory=uow)
    assert snapshot.entity.state is GovernanceState.VALIDATED
    assert snapshot.fields["release_decade"].value.value == "2020s"
    assert snapshot.fields["synopsis"].value.value == "Two revolutionaries in 1920s India."
    assert snapshot.trust is not None
    assert len(snapshot.history) == 2

    blocked = explain_entity("movie-eega", unit_of_work_factory=uow)
    assert blocked is not None
    assert not blocked.breakdown_by_rule["required-fields"].passed
