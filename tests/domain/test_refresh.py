from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from cinetrust.domain.errors import SourceUnavailable
from cinetrust.domain.fact_resolution import audit_trail, resolve_entity
from cinetrust.domain.model import GovernanceState, OutcomeKind
from cinetrust.domain.ports.fetching import SourceFetcher
from cinetrust.domain.refresh import refresh_entities, select_refresh_targets
from tests.helpers.records import (
    NOW,
    complete_movie_records,
    default_engine,
    make_movie,
    make_record,
    register,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from cinetrust.adapters.sqlalchemy.unit_of_work import SqlAlchemyResolutionUnitOfWork
    from cinetrust.domain.model import Entity, SourceRecord

    type UowFactory = Callable[[], SqlAlchemyResolutionUnitOfWork]

ENGINE = default_engine()


@dataclass
class FakeFetcher:
    source_id: str
    build: Callable[[Entity], list[SourceRecord]]
    calls: list[str] = field(default_factory=list)

    def __call__(self, entity: Entity) -> list[SourceRecord]:
        self.calls.append(entity.entity_id)
        return self.build(entity)


@dataclass
class DownFetcher:
    source_id: str = "tmdb"

    def __call__(self, entity: Entity) -> list[SourceRecord]:
        raise SourceUnavailable(self.source_id, "timed out")


def _official_titles(entity: Entity) -> list[SourceRecord]:
    return [
        record
        for record in complete_movie_records(entity.entity_id, retrieved_at=NOW)
        if record.source_id == "official"
    ]


def _fresh_box_office(entity: Entity) -> list[SourceRecord]:
    return [
        make_record(
            "box_office_gross_inr",
            12_000_000_000,
            "official",
            entity_id=entity.entity_id,
            retrieved_at=NOW,
        )
    ]


def test_fakes_satisfy_the_fetcher_port() -> None:
    assert isinstance(FakeFetcher("official", _official_titles), SourceFetcher)
    assert isinstance(DownFetcher(), SourceFetcher)


def test_refresh_stores_claims_and_resolves(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(), complete_movie_records())
    fetcher = FakeFetcher("official", _official_titles)

    result = refresh_entities(
        ["movie-rrr"],
        fetchers=[fetcher],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        workers=2,
        now=NOW,
    )

    assert result.fetched == 2
    assert result.failed == {}
    assert fetcher.calls == ["movie-rrr"]
    [resolution] = result.resolution.resolved
    assert resolution.entity.state is GovernanceState.VALIDATED
    assert resolution.values["title"].as_of == NOW


def test_unavailable_source_keeps_last_values(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(), complete_movie_records())

    result = refresh_entities(
        ["movie-rrr"],
        fetchers=[DownFetcher()],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        now=NOW,
    )

    assert result.unavailable == {"movie-rrr": ["tmdb"]}
    [resolution] = result.resolution.resolved
    assert resolution.values["title"].value == "RRR"
    [latest] = audit_trail("movie-rrr", unit_of_work_factory=threaded_unit_of_work)
    assert [outcome.kind for outcome in latest.outcomes] == [OutcomeKind.SOURCE_UNAVAILABLE]
    assert latest.outcomes[0].source_id == "tmdb"


def test_default_targets_are_entities_awaiting_refetch(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(state=GovernanceState.REQUEUED))
    register(threaded_unit_of_work, make_movie("movie-eega", state=GovernanceState.VALIDATED))
    register(threaded_unit_of_work, make_movie("movie-magadheera", state=GovernanceState.STALE))
    fetcher = FakeFetcher("official", _official_titles)

    assert select_refresh_targets(unit_of_work_factory=threaded_unit_of_work) == [
        "movie-magadheera",
        "movie-rrr",
    ]

    refresh_entities(
        None,
        fetchers=[fetcher],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        now=NOW,
    )

    assert sorted(fetcher.calls) == ["movie-magadheera", "movie-rrr"]


def test_refetch_recovers_a_stale_entity(threaded_unit_of_work: UowFactory) -> None:
    stale_box_office = make_record(
        "box_office_gross_inr",
        12_000_000_000,
        "official",
        retrieved_at=NOW - timedelta(days=400),
    )
    register(threaded_unit_of_work, make_movie(), [*complete_movie_records(), stale_box_office])
    first = resolve_entity(
        "movie-rrr", engine=ENGINE, unit_of_work_factory=threaded_unit_of_work, now=NOW
    )
    assert first.entity.state is GovernanceState.REQUEUED

    result = refresh_entities(
        None,
        fetchers=[FakeFetcher("official", _fresh_box_office)],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        now=NOW,
    )

    [resolution] = result.resolution.resolved
    assert resolution.entity.state is GovernanceState.VALIDATED
    assert [(t.previous, t.current) for t in resolution.audit.transitions] == [
        (GovernanceState.REQUEUED, GovernanceState.VALIDATED)
    ]


def test_foreign_records_fail_only_that_entity(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(), complete_movie_records())
    register(threaded_unit_of_work, make_movie("movie-eega"), complete_movie_records("movie-eega"))

    def _leaky(entity: Entity) -> list[SourceRecord]:
        if entity.entity_id == "movie-eega":
            return [make_record("title", "RRR", "official", entity_id="movie-rrr")]
        return []

    result = refresh_entities(
        ["movie-eega", "movie-rrr", "movie-unknown"],
        fetchers=[FakeFetcher("official", _leaky)],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        now=NOW,
    )

    assert set(result.failed) == {"movie-eega", "movie-unknown"}
    assert result.resolution.resolved_ids == ["movie-rrr"]
    assert result.fetched == 0


def test_refresh_honours_should_stop(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(), complete_movie_records())
    fetcher = FakeFetcher("official", _official_titles)

    result = refresh_entities(
        ["movie-rrr"],
        fetchers=[fetcher],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        now=NOW,
        should_stop=lambda: True,
    )

    assert fetcher.calls == []
    assert result.resolution.skipped == ["movie-rrr"]
