"""Curation and ingestion services: everything that writes claims goes through here."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cinetrust.domain.errors import (
    MalformedRecordError,
    ReviewItemNotFoundError,
    UnknownEntityError,
)
from cinetrust.domain.fact_resolution import resolve_entity
from cinetrust.domain.model import Entity, ReviewStatus, SourceRecord, is_empty_claim

MANUAL_SOURCE = "manual"

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from cinetrust.domain.fact_resolution import EntityLockRegistry
    from cinetrust.domain.model import EntityKind, FieldValue, ReviewItem
    from cinetrust.domain.ports.unit_of_work import ResolutionUnitOfWork
    from cinetrust.domain.reconciliation.policy import ResolutionPolicy
    from cinetrust.domain.resolution_engine import EntityResolution, ResolutionEngine

    type UnitOfWorkFactory = Callable[[], ResolutionUnitOfWork]

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def register_entity(
    entity_id: str,
    kind: EntityKind,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    display_name: str | None = None,
    external_ids: Mapping[str, str] | None = None,
) -> Entity:
    """Create an entity, or merge names and external ids into an existing one."""

    with unit_of_work_factory() as uow:
        entities = uow.repositories.entities
        existing = entities.get(entity_id)
        if existing is None:
            entity = Entity(
                entity_id=entity_id,
                kind=kind,
                display_name=display_name,
                external_ids=dict(external_ids or {}),
            )
            entities.add(entity)
            uow.commit()
            log.info("Registered %s %s", kind, entity_id)
            return entity

        if existing.kind is not kind:
            raise ValueError(
                f"Entity {entity_id} is already registered as a {existing.kind}, not a {kind}"
            )
        merged = replace(
            existing,
            display_name=display_name or existing.display_name,
            external_ids={**existing.external_ids, **(external_ids or {})},
        )
        if merged == existing:
            return existing
        saved = entities.save(merged, expected_revision=existing.revision)
        uow.commit()
        return saved


@dataclass(slots=True)
class IngestResult:
    stored: int = 0
    entity_ids: list[str] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)


def ingest_records(
    records: Iterable[SourceRecord],
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    policy: ResolutionPolicy,
) -> IngestResult:
    """Append source claims; records for unknown entities are rejected per entity.

    Records whose tier contradicts the policy's source profile are rejected too,
    so that a provider cannot promote itself by claiming a better tier.
    """

    by_entity: dict[str, list[SourceRecord]] = defaultdict(list)
    for record in records:
        by_entity[record.entity_id].append(record)

    result = IngestResult()
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        for entity_id in sorted(by_entity):
            if repositories.entities.get(entity_id) is None:
                error = UnknownEntityError(entity_id)
                log.warning("Rejected %s records: %s", len(by_entity[entity_id]), error)
                result.rejected[entity_id] = str(error)
                continue
            try:
                _check_tiers(by_entity[entity_id], policy)
            except MalformedRecordError as exc:
                log.warning("Rejected records for %s: %s", entity_id, exc)
                result.rejected[entity_id] = str(exc)
                continue
            result.stored += repositories.source_records.add_many(by_entity[entity_id])
            result.entity_ids.append(entity_id)
        uow.commit()
    log.info("Stored %s source records for %s entities", result.stored, len(result.entity_ids))
    return result


def _check_tiers(records: Iterable[SourceRecord], policy: ResolutionPolicy) -> None:
    for record in records:
        if record.source_id not in policy.sources:
            continue
        expected = policy.profile(record.source_id).tier
        if record.source_trust_tier < expected:
            raise MalformedRecordError(
                f"{record.source_id} claims tier {record.source_trust_tier}, "
                f"policy allows {expected}"
            )


def manual_record(
    entity_id: str,
    field_name: str,
    value: FieldValue,
    *,
    policy: ResolutionPolicy,
    retrieved_at: datetime,
) -> SourceRecord:
    if is_empty_claim(value):
        raise MalformedRecordError(f"Manual value for {entity_id}.{field_name} is empty")
    return SourceRecord(
        entity_id=entity_id,
        field_name=field_name,
        value=value,
        source_id=MANUAL_SOURCE,
        retrieved_at=retrieved_at,
        source_trust_tier=policy.profile(MANUAL_SOURCE).tier,
    )


def submit_manual_value(
    entity_id: str,
    field_name: str,
    value: FieldValue,
    *,
    engine: ResolutionEngine,
    unit_of_work_factory: UnitOfWorkFactory,
    now: datetime | None = None,
    locks: EntityLockRegistry | None = None,
) -> EntityResolution:
    """Record a curator-authored value and re-run the pipeline for the entity."""

    now = now or _utcnow()
    record = manual_record(entity_id, field_name, value, policy=engine.policy, retrieved_at=now)
    with unit_of_work_factory() as uow:
        if uow.repositories.entities.get(entity_id) is None:
            raise UnknownEntityError(entity_id)
        uow.repositories.source_records.add(record)
        uow.commit()
    return resolve_entity(
        entity_id,
        engine=engine,
        unit_of_work_factory=unit_of_work_factory,
        now=now,
        locks=locks,
    )


def resolve_review_item(
    entity_id: str,
    field_name: str,
    *,
    reviewer: str,
    engine: ResolutionEngine,
    unit_of_work_factory: UnitOfWorkFactory,
    value: FieldValue = None,
    note: str | None = None,
    now: datetime | None = None,
    locks: EntityLockRegistry | None = None,
) -> EntityResolution:
    """Close an open review item with a human decision and re-resolve the entity.

    Without an explicit ``value`` the reviewer accepts the proposed value.
    Rule sign-offs carry no value; closing one only records the reviewer.
    """

    now = now or _utcnow()
    with unit_of_work_factory() as uow:
        queue = uow.repositories.review_queue
        item = queue.get_open(entity_id, field_name)
        if item is None:
            raise ReviewItemNotFoundError(entity_id, field_name)
        if item.is_rule_review:
            if value is not None:
                raise MalformedRecordError(f"{field_name} is a rule sign-off and takes no value")
        else:
            chosen = item.proposed_value if value is None else value
            record = manual_record(
                entity_id, field_name, chosen, policy=engine.policy, retrieved_at=now
            )
            uow.repositories.source_records.add(record)
        queue.close(
            entity_id,
            field_name,
            status=ReviewStatus.RESOLVED,
            resolved_by=reviewer,
            note=note,
            closed_at=now,
        )
        uow.commit()
    log.info("%s resolved review of %s.%s", reviewer, entity_id, field_name)
    return resolve_entity(
        entity_id,
        engine=engine,
        unit_of_work_factory=unit_of_work_factory,
        now=now,
        locks=locks,
    )


def dismiss_review_item(
    entity_id: str,
    field_name: str,
    *,
    reviewer: str,
    unit_of_work_factory: UnitOfWorkFactory,
    note: str | None = None,
    now: datetime | None = None,
) -> ReviewItem:
    """Close an open review item without publishing anything.

    The value stays unpublished; a later run raises a new item if the condition persists.
    """

    with unit_of_work_factory() as uow:
        queue = uow.repositories.review_queue
        if queue.get_open(entity_id, field_name) is None:
            raise ReviewItemNotFoundError(entity_id, field_name)
        closed = queue.close(
            entity_id,
            field_name,
            status=ReviewStatus.DISMISSED,
            resolved_by=reviewer,
            note=note,
            closed_at=now or _utcnow(),
        )
        uow.commit()
    log.info("%s dismissed review of %s.%s", reviewer, entity_id, field_name)
    return closed
