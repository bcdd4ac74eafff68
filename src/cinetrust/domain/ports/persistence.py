"""Ports for persisting entities, claims and resolution results."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cinetrust.domain.model import (
    AuditRecord,
    Entity,
    SourceRecord,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime

    from cinetrust.domain.model import (
        Discrepancy,
        EntityKind,
        GovernanceState,
        ResolvedValue,
        ReviewItem,
        ReviewStatus,
        TrustScore,
    )


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class EntityRepository(Repository[Entity], Protocol):
    """Persistence contract for entities and their governance state."""

    def get(self, entity_id: str) -> Entity | None: ...

    def list_ids(
        self,
        *,
        kind: EntityKind | None = None,
        states: Iterable[GovernanceState] | None = None,
    ) -> list[str]: ...

    def save(self, entity: Entity, *, expected_revision: int) -> Entity:
        """Store ``entity`` if its revision is still ``expected_revision``.

        Returns the entity with its revision bumped; raises
        ``ConcurrentResolutionError`` when another run committed first.
        """
        ...


@runtime_checkable
class SourceRecordRepository(Repository[SourceRecord], Protocol):
    """Append-only store of raw source claims."""

    def add_many(self, records: Iterable[SourceRecord]) -> int: ...

    def for_entity(self, entity_id: str) -> list[SourceRecord]: ...


@runtime_checkable
class ResolvedValueRepository(Protocol):
    def get(self, entity_id: str, field_name: str) -> ResolvedValue | None: ...

    def for_entity(self, entity_id: str) -> dict[str, ResolvedValue]: ...

    def replace_for_entity(self, entity_id: str, values: Mapping[str, ResolvedValue]) -> None:
        """Atomically swap the entity's resolved values for ``values``."""
        ...


@runtime_checkable
class DiscrepancyRepository(Protocol):
    def for_entity(self, entity_id: str) -> list[Discrepancy]: ...

    def replace_for_entity(self, entity_id: str, discrepancies: Sequence[Discrepancy]) -> None: ...


@runtime_checkable
class ReviewQueueRepository(Protocol):
    def pending(
        self, *, entity_id: str | None = None, limit: int | None = None
    ) -> list[ReviewItem]: ...

    def get_open(self, entity_id: str, field_name: str) -> ReviewItem | None: ...

    def replace_open_for_entity(self, entity_id: str, items: Sequence[ReviewItem]) -> None:
        """Replace the entity's open items; closed items are kept as history."""
        ...

    def close(
        self,
        entity_id: str,
        field_name: str,
        *,
        status: ReviewStatus,
        resolved_by: str,
        note: str | None,
        closed_at: datetime,
    ) -> ReviewItem: ...


@runtime_checkable
class TrustScoreRepository(Protocol):
    def get(self, entity_id: str) -> TrustScore | None: ...

    def replace(self, score: TrustScore) -> None: ...


@runtime_checkable
class AuditRepository(Repository[AuditRecord], Protocol):
    """Append-only audit trail."""

    def for_entity(self, entity_id: str, *, limit: int | None = None) -> list[AuditRecord]: ...
