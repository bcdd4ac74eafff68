"""Transaction boundary around the resolution repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from cinetrust.domain.ports.persistence import (
        AuditRepository,
        DiscrepancyRepository,
        EntityRepository,
        ResolvedValueRepository,
        ReviewQueueRepository,
        SourceRecordRepository,
        TrustScoreRepository,
    )


@dataclass(slots=True)
class ResolutionRepositories:
    """Repositories touched by ingestion, resolution and review."""

    entities: EntityRepository
    source_records: SourceRecordRepository
    resolved_values: ResolvedValueRepository
    discrepancies: DiscrepancyRepository
    review_queue: ReviewQueueRepository
    trust_scores: TrustScoreRepository
    audit: AuditRepository


@runtime_checkable
class ResolutionUnitOfWork(Protocol):
    """One transaction; nothing is persisted unless :meth:`commit` is called.

    Leaving the ``with`` block on an exception rolls back.
    """

    @property
    def repositories(self) -> ResolutionRepositories: ...

    def __enter__(self) -> ResolutionUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
