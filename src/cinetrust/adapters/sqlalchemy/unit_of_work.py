"""SQLAlchemy-backed unit of work for resolution runs.

The adapter owns one process-wide engine. Batch resolution opens a unit of
work per entity from worker threads, so SQLite connections are switched to
WAL with a busy timeout: readers never block the writer and concurrent
writers wait instead of failing with ``database is locked``.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from cinetrust.adapters.sqlalchemy.migrations import upgrade_head
from cinetrust.adapters.sqlalchemy.repositories import (
    SqlAlchemyAuditRepository,
    SqlAlchemyDiscrepancyRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyResolvedValueRepository,
    SqlAlchemyReviewQueueRepository,
    SqlAlchemySourceRecordRepository,
    SqlAlchemyTrustScoreRepository,
)
from cinetrust.config import get_database_config
from cinetrust.domain.ports.unit_of_work import ResolutionRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 30_000


class StartupError(RuntimeError):
    """Raised when a unit of work is requested before :func:`startup` (or after shutdown)."""


def _configure_sqlite_connection(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
    finally:
        cursor.close()


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None
    session_factory: sessionmaker[Session] | None = None

    def require_session_factory(self) -> sessionmaker[Session]:
        if self.session_factory is None:
            raise StartupError(
                "Database not initialised; call "
                "cinetrust.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        return self.session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Create (or adopt) the engine, migrate the schema to head and prepare sessions."""

    if _STATE.engine is not None and not force:
        raise StartupError("Database already initialised. Pass force=True to reconfigure.")

    resolved_engine = engine or create_engine(
        database_uri or get_database_config().uri, future=True
    )
    if resolved_engine.dialect.name == "sqlite" and not event.contains(
        resolved_engine, "connect", _configure_sqlite_connection
    ):
        event.listen(resolved_engine, "connect", _configure_sqlite_connection)
    upgrade_head(engine=resolved_engine)
    _STATE.engine = resolved_engine
    _STATE.session_factory = sessionmaker(bind=resolved_engine, expire_on_commit=False)
    log.debug("Database ready at %s", resolved_engine.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None
    _STATE.session_factory = None


class SqlAlchemyResolutionUnitOfWork:
    """Session-per-transaction unit of work spanning ingestion, resolution and review."""

    def __init__(self) -> None:
        self._session_factory = _STATE.require_session_factory()
        self._session: Session | None = None
        self._repositories: ResolutionRepositories | None = None

    def __enter__(self) -> SqlAlchemyResolutionUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        session = self._session_factory()
        self._session = session
        self._repositories = ResolutionRepositories(
            entities=SqlAlchemyEntityRepository(session),
            source_records=SqlAlchemySourceRecordRepository(session),
            resolved_values=SqlAlchemyResolvedValueRepository(session),
            discrepancies=SqlAlchemyDiscrepancyRepository(session),
            review_queue=SqlAlchemyReviewQueueRepository(session),
            trust_scores=SqlAlchemyTrustScoreRepository(session),
            audit=SqlAlchemyAuditRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @property
    def repositories(self) -> ResolutionRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from cinetrust.domain.ports.unit_of_work import ResolutionUnitOfWork

    _uow_check: ResolutionUnitOfWork = SqlAlchemyResolutionUnitOfWork()
