"""SQLAlchemy adapter package for CineTrust."""

from __future__ import annotations

from .repositories import (
    SqlAlchemyAuditRepository,
    SqlAlchemyDiscrepancyRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyResolvedValueRepository,
    SqlAlchemyReviewQueueRepository,
    SqlAlchemySourceRecordRepository,
    SqlAlchemyTrustScoreRepository,
)
from .tables import create_all_tables, metadata
from .unit_of_work import (
    SqlAlchemyResolutionUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAuditRepository",
    "SqlAlchemyDiscrepancyRepository",
    "SqlAlchemyEntityRepository",
    "SqlAlchemyResolutionUnitOfWork",
    "SqlAlchemyResolvedValueRepository",
    "SqlAlchemyReviewQueueRepository",
    "SqlAlchemySourceRecordRepository",
    "SqlAlchemyTrustScoreRepository",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
