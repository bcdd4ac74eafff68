"""Re-fetch provider claims for entities and re-resolve them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cinetrust.domain.errors import MalformedRecordError, SourceUnavailable, UnknownEntityError
from cinetrust.domain.fact_resolution import DEFAULT_WORKERS, BatchResolutionResult, resolve_batch
from cinetrust.domain.model import GovernanceState, OutcomeKind, RunOutcome

REFETCH_STATES = (GovernanceState.STALE, GovernanceState.REQUEUED)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from cinetrust.domain.fact_resolution import EntityLockRegistry
    from cinetrust.domain.model import Entity, SourceRecord
    from cinetrust.domain.ports.fetching import SourceFetcher
    from cinetrust.domain.ports.unit_of_work import ResolutionUnitOfWork
    from cinetrust.domain.resolution_engine import ResolutionEngine

    type UnitOfWorkFactory = Callable[[], ResolutionUnitOfWork]

log = logging.getLogger(__name__)


@dataclass(slots=True)
class RefreshResult:
    fetched: int = 0
    unavailable: dict[str, list[str]] = field(default_factory=dict)
    resolution: BatchResolutionResult = field(default_factory=BatchResolutionResult)

    @property
    def failed(self) -> dict[str, str]:
        return self.resolution.failed


def select_refresh_targets(*, unit_of_work_factory: UnitOfWorkFactory) -> list[str]:
    """Entities whose governance state asks for a re-fetch."""

    with unit_of_work_factory() as uow:
        return uow.repositories.entities.list_ids(states=REFETCH_STATES)


def fetch_claims(
    entity: Entity, fetchers: Sequence[SourceFetcher]
) -> tuple[list[SourceRecord], list[RunOutcome]]:
    """Ask every provider for claims; an unavailable provider is recorded, not raised."""

    records: list[SourceRecord] = []
    outcomes: list[RunOutcome] = []
    for fetcher in fetchers:
        try:
            fetched = fetcher(entity)
        except SourceUnavailable as exc:
            log.warning("Keeping last values of %s: %s", entity.entity_id, exc)
            outcomes.append(
                RunOutcome(
                    kind=OutcomeKind.SOURCE_UNAVAILABLE,
                    message=exc.reason,
                    source_id=exc.source_id,
                )
            )
            continue
        for record in fetched:
            if record.entity_id != entity.entity_id:
                raise MalformedRecordError(
                    f"{fetcher.source_id} returned a record for {record.entity_id} "
                    f"while fetching {entity.entity_id}"
                )
        records.extend(fetched)
    return records, outcomes


def refresh_entities(
    entity_ids: Iterable[str] | None,
    *,
    fetchers: Sequence[SourceFetcher],
    engine: ResolutionEngine,
    unit_of_work_factory: UnitOfWorkFactory,
    workers: int = DEFAULT_WORKERS,
    now: datetime | None = None,
    locks: EntityLockRegistry | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> RefreshResult:
    """Fetch fresh claims for ``entity_ids`` (default: stale entities) and re-resolve them."""

    now = now or datetime.now(tz=UTC)
    targets = (
        list(entity_ids)
        if entity_ids is not None
        else select_refresh_targets(unit_of_work_factory=unit_of_work_factory)
    )
    result = RefreshResult()
    outcomes_by_entity: dict[str, list[RunOutcome]] = {}
    ready: list[str] = []

    for entity_id in targets:
        if should_stop is not None and should_stop():
            result.resolution.skipped.append(entity_id)
            continue
        try:
            with unit_of_work_factory() as uow:
                entity = uow.repositories.entities.get(entity_id)
                if entity is None:
                    raise UnknownEntityError(entity_id)
                records, outcomes = fetch_claims(entity, fetchers)
                uow.repositories.source_records.add_many(records)
                uow.commit()
        except (UnknownEntityError, MalformedRecordError) as exc:
            log.warning("Skipping refresh of %s: %s", entity_id, exc)
            result.resolution.failed[entity_id] = str(exc)
            continue
        result.fetched += len(records)
        unavailable = [outcome.source_id or "" for outcome in outcomes]
        if unavailable:
            result.unavailable[entity_id] = unavailable
        outcomes_by_entity[entity_id] = outcomes
        ready.append(entity_id)

    batch = resolve_batch(
        ready,
        engine=engine,
        unit_of_work_factory=unit_of_work_factory,
        workers=workers,
        now=now,
        outcomes_by_entity=dict(outcomes_by_entity),
        locks=locks,
        should_stop=should_stop,
    )
    result.resolution.resolved.extend(batch.resolved)
    result.resolution.failed.update(batch.failed)
    result.resolution.skipped.extend(batch.skipped)
    return result
