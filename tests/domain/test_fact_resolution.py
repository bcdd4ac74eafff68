from __future__ import annotations

import threading
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from cinetrust.domain.errors import (
    GovernanceViolation,
    InsufficientData,
    ReviewPending,
    StaleData,
    UnknownEntityError,
)
from cinetrust.domain.fact_resolution import (
    EntityLockRegistry,
    audit_trail,
    explain_trust,
    get_field_view,
    pending_reviews,
    require_publishable,
    resolve_batch,
    resolve_entity,
)
from cinetrust.domain.model import GovernanceState, OutcomeKind, ReviewReason, RunOutcome
from cinetrust.domain.reconciliation import DEFAULT_POLICY
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
    from cinetrust.domain.resolution_engine import EntityResolution

    type UowFactory = Callable[[], SqlAlchemyResolutionUnitOfWork]

ENGINE = default_engine()


def _resolve(
    uow_factory: UowFactory, entity_id: str = "movie-rrr", run_id: str = "run-1"
) -> EntityResolution:
    return resolve_entity(
        entity_id, engine=ENGINE, unit_of_work_factory=uow_factory, now=NOW, run_id=run_id
    )


def test_resolve_entity_persists_the_run(sqlite_unit_of_work: UowFactory) -> None:
    register(sqlite_unit_of_work, make_movie(), complete_movie_records())

    result = _resolve(sqlite_unit_of_work)

    assert result.entity.revision == 1
    with sqlite_unit_of_work() as uow:
        entity = uow.repositories.entities.get("movie-rrr")
        values = uow.repositories.resolved_values.for_entity("movie-rrr")
    assert entity is not None
    assert entity.state is GovernanceState.VALIDATED
    assert values == result.values
    score = explain_trust("movie-rrr", unit_of_work_factory=sqlite_unit_of_work)
    assert score == result.governance.trust_score


def test_each_run_bumps_the_revision_and_appends_audit(sqlite_unit_of_work: UowFactory) -> None:
    register(sqlite_unit_of_work, make_movie(), complete_movie_records())

    _resolve(sqlite_unit_of_work, run_id="run-1")
    second = _resolve(sqlite_unit_of_work, run_id="run-2")

    assert second.entity.revision == 2
    trail = audit_trail("movie-rrr", unit_of_work_factory=sqlite_unit_of_work)
    assert [record.run_id for record in trail] == ["run-2", "run-1"]
    assert trail[0].transitions == ()


def test_unknown_entity_is_rejected(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(UnknownEntityError):
        _resolve(sqlite_unit_of_work, entity_id="movie-unknown")


def test_queries_reject_unknown_entities(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(UnknownEntityError):
        explain_trust("movie-unknown", unit_of_work_factory=sqlite_unit_of_work)
    with pytest.raises(UnknownEntityError):
        audit_trail("movie-unknown", unit_of_work_factory=sqlite_unit_of_work)
    with pytest.raises(UnknownEntityError):
        pending_reviews(unit_of_work_factory=sqlite_unit_of_work, entity_id="movie-unknown")


def test_require_publishable_returns_approved_values(sqlite_unit_of_work: UowFactory) -> None:
    register(sqlite_unit_of_work, make_movie(), complete_movie_records())
    _resolve(sqlite_unit_of_work)

    value = require_publishable(
        "movie-rrr",
        "title",
        unit_of_work_factory=sqlite_unit_of_work,
        policy=DEFAULT_POLICY,
        now=NOW,
    )

    assert value.value == "RRR"


def test_blocked_entities_are_never_published(sqlite_unit_of_work: UowFactory) -> None:
    register(sqlite_unit_of_work, make_movie(), [make_record("title", "RRR", "official")])
    _resolve(sqlite_unit_of_work)

    with pytest.raises(GovernanceViolation) as excinfo:
        require_publishable(
            "movie-rrr",
            "title",
            unit_of_work_factory=sqlite_unit_of_work,
            policy=DEFAULT_POLICY,
            now=NOW,
        )

    assert excinfo.value.reasons


def test_unresolved_field_is_insufficient_data(sqlite_unit_of_work: UowFactory) -> None:
    register(sqlite_unit_of_work, make_movie(), complete_movie_records())
    _resolve(sqlite_unit_of_work)

    with pytest.raises(InsufficientData):
        require_publishable(
            "movie-rrr",
            "director",
            unit_of_work_factory=sqlite_unit_of_work,
            policy=DEFAULT_POLICY,
            now=NOW,
        )


def test_queued_value_is_pending_review(sqlite_unit_of_work: UowFactory) -> None:
    records = [*complete_movie_records(), make_record("synopsis", "Two revolutionaries.", "tmdb")]
    register(sqlite_unit_of_work, make_movie(), records)
    _resolve(sqlite_unit_of_work)

    with pytest.raises(ReviewPending):
        require_publishable(
            "movie-rrr",
            "synopsis",
            unit_of_work_factory=sqlite_unit_of_work,
            policy=DEFAULT_POLICY,
            now=NOW,
        )
    [item] = pending_reviews(unit_of_work_factory=sqlite_unit_of_work, entity_id="movie-rrr")
    assert item.reason is ReviewReason.OPINION_REQUIRES_AUTHOR


def test_decayed_value_is_stale(sqlite_unit_of_work: UowFactory) -> None:
    records = [
        *complete_movie_records(),
        make_record(
            "box_office_gross_inr",
            12_000_000_000,
            "official",
            retrieved_at=NOW - timedelta(days=400),
        ),
    ]
    register(sqlite_unit_of_work, make_movie(), records)
    _resolve(sqlite_unit_of_work)

    view = get_field_view(
        "movie-rrr",
        "box_office_gross_inr",
        unit_of_work_factory=sqlite_unit_of_work,
        policy=DEFAULT_POLICY,
        now=NOW,
    )
    assert view is not None
    assert view.effective_confidence < view.value.confidence

    with pytest.raises(StaleData) as excinfo:
        require_publishable(
            "movie-rrr",
            "box_office_gross_inr",
            unit_of_work_factory=sqlite_unit_of_work,
            policy=DEFAULT_POLICY,
            now=NOW,
        )
    assert excinfo.value.effective_confidence == pytest.approx(view.effective_confidence)


def test_batch_isolates_failures(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(), complete_movie_records())
    broken = [
        *complete_movie_records("movie-eega"),
        make_record("rating", "excellent", "imdb", entity_id="movie-eega"),
        make_record("rating", 8.0, "tmdb", entity_id="movie-eega"),
    ]
    register(threaded_unit_of_work, make_movie("movie-eega"), broken)

    result = resolve_batch(
        ["movie-rrr", "movie-eega", "movie-unknown", "movie-rrr"],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        workers=3,
        now=NOW,
    )

    assert not result.ok
    assert result.resolved_ids == ["movie-rrr"]
    assert set(result.failed) == {"movie-eega", "movie-unknown"}
    [failure] = audit_trail("movie-eega", unit_of_work_factory=threaded_unit_of_work)
    assert [outcome.kind for outcome in failure.outcomes] == [OutcomeKind.FAILED]
    with threaded_unit_of_work() as uow:
        entity = uow.repositories.entities.get("movie-eega")
    assert entity is not None
    assert entity.revision == 0


def test_batch_honours_should_stop(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(), complete_movie_records())

    result = resolve_batch(
        ["movie-rrr"],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        now=NOW,
        should_stop=lambda: True,
    )

    assert result.skipped == ["movie-rrr"]
    assert result.resolved == []
    assert result.ok


def test_batch_attaches_caller_outcomes(threaded_unit_of_work: UowFactory) -> None:
    register(threaded_unit_of_work, make_movie(), complete_movie_records())
    unavailable = RunOutcome(
        kind=OutcomeKind.SOURCE_UNAVAILABLE, message="tmdb unavailable", source_id="tmdb"
    )

    result = resolve_batch(
        ["movie-rrr"],
        engine=ENGINE,
        unit_of_work_factory=threaded_unit_of_work,
        now=NOW,
        outcomes_by_entity={"movie-rrr": [unavailable]},
    )

    assert result.resolved[0].outcomes == (unavailable,)


def test_lock_registry_serializes_one_entity_and_forgets_released_locks() -> None:
    registry = EntityLockRegistry()

    with registry.hold("movie-rrr"):
        assert registry.is_held("movie-rrr")
        assert not registry.is_held("movie-eega")
        assert registry.active_count() == 1

    assert not registry.is_held("movie-rrr")
    assert registry.active_count() == 0


def test_lock_registry_keeps_the_lock_while_another_thread_waits() -> None:
    registry = EntityLockRegistry()
    entered = threading.Event()
    order: list[str] = []

    def _second() -> None:
        entered.set()
        with registry.hold("movie-rrr"):
            order.append("second")

    with registry.hold("movie-rrr"):
        worker = threading.Thread(target=_second)
        worker.start()
        entered.wait(timeout=5)
        order.append("first")
    worker.join(timeout=5)

    assert order == ["first", "second"]
    assert registry.active_count() == 0
