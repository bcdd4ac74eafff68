"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import SourceFetcher
from .persistence import (
    AuditRepository,
    DiscrepancyRepository,
    EntityRepository,
    Repository,
    ResolvedValueRepository,
    ReviewQueueRepository,
    SourceRecordRepository,
    TrustScoreRepository,
)
from .unit_of_work import ResolutionRepositories, ResolutionUnitOfWork

__all__ = [
    "AuditRepository",
    "DiscrepancyRepository",
    "EntityRepository",
    "Repository",
    "ResolutionRepositories",
    "ResolutionUnitOfWork",
    "ResolvedValueRepository",
    "ReviewQueueRepository",
    "SourceFetcher",
    "SourceRecordRepository",
    "TrustScoreRepository",
]
