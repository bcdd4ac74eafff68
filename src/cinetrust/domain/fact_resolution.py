"""Application services for resolving entities and querying the results."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from cinetrust.domain.errors import (
    GovernanceViolation,
    InsufficientData,
    ReviewPending,
    StaleData,
    UnknownEntityError,
)
from cinetrust.domain.model import (
    AuditRecord,
    FieldCategory,
    GovernanceState,
    OutcomeKind,
    RuleSeverity,
    RunOutcome,
)
from cinetrust.domain.reconciliation.freshness import assess_freshness

DEFAULT_WORKERS = 4

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence

    from cinetrust.domain.model import Entity, ResolvedValue, ReviewItem, TrustScore
    from cinetrust.domain.ports.unit_of_work import ResolutionRepositories, ResolutionUnitOfWork
    from cinetrust.domain.reconciliation.freshness import FreshnessReport
    from cinetrust.domain.reconciliation.policy import ResolutionPolicy
    from cinetrust.domain.resolution_engine import EntityResolution, ResolutionEngine

    type UnitOfWorkFactory = Callable[[], ResolutionUnitOfWork]

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def new_run_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class _LockSlot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


@dataclass(slots=True)
class EntityLockRegistry:
    """In-process mutual exclusion per entity id.

    A lock lives only while some thread holds or waits for it, so long batches do not
    accumulate one lock per entity ever seen. Cross-process races are caught by the
    revision check in ``EntityRepository.save``.
    """

    _guard: threading.Lock = field(default_factory=threading.Lock)
    _slots: dict[str, _LockSlot] = field(default_factory=dict)

    def active_count(self) -> int:
        with self._guard:
            return len(self._slots)

    def is_held(self, entity_id: str) -> bool:
        with self._guard:
            slot = self._slots.get(entity_id)
            return slot is not None and slot.lock.locked()

    @contextmanager
    def hold(self, entity_id: str) -> Iterator[None]:
        with self._guard:
            slot = self._slots.setdefault(entity_id, _LockSlot())
            slot.holders += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._guard:
                slot.holders -= 1
                if slot.holders == 0:
                    del self._slots[entity_id]


_DEFAULT_LOCKS = EntityLockRegistry()


def persist_resolution(
    repositories: ResolutionRepositories,
    result: EntityResolution,
    *,
    expected_revision: int,
) -> Entity:
    """Replace everything a run produced for one entity; returns the saved entity."""

    entity_id = result.entity.entity_id
    saved = repositories.entities.save(result.entity, expected_revision=expected_revision)
    repositories.resolved_values.replace_for_entity(entity_id, result.values)
    repositories.discrepancies.replace_for_entity(entity_id, result.discrepancies)
    repositories.review_queue.replace_open_for_entity(entity_id, result.review_items)
    repositories.trust_scores.replace(result.governance.trust_score)
    repositories.audit.add(result.audit)
    return saved


def resolve_entity(
    entity_id: str,
    *,
    engine: ResolutionEngine,
    unit_of_work_factory: UnitOfWorkFactory,
    now: datetime | None = None,
    run_id: str | None = None,
    outcomes: Sequence[RunOutcome] = (),
    locks: EntityLockRegistry | None = None,
) -> EntityResolution:
    """Run the resolution pipeline for one entity and commit the result atomically."""

    now = now or _utcnow()
    run_id = run_id or new_run_id()
    registry = locks or _DEFAULT_LOCKS

    with registry.hold(entity_id), unit_of_work_factory() as uow:
        repositories = uow.repositories
        entity = repositories.entities.get(entity_id)
        if entity is None:
            raise UnknownEntityError(entity_id)
        records = repositories.source_records.for_entity(entity_id)
        previous = repositories.resolved_values.for_entity(entity_id)
        result = engine.run(
            entity,
            records,
            previous=previous,
            now=now,
            run_id=run_id,
            outcomes=outcomes,
        )
        saved = persist_resolution(repositories, result, expected_revision=entity.revision)
        uow.commit()

    log.info(
        "Resolved %s (%s fields, %s queued, state %s)",
        entity_id,
        len(result.values),
        len(result.review_items),
        saved.state,
    )
    return replace(result, entity=saved)


@dataclass(slots=True)
class BatchResolutionResult:
    """Outcome of resolving several entities."""

    resolved: list[EntityResolution] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def resolved_ids(self) -> list[str]:
        return [result.entity.entity_id for result in self.resolved]

    @property
    def ok(self) -> bool:
        return not self.failed


def _record_failure(
    entity_id: str,
    exc: BaseException,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    now: datetime,
    run_id: str,
) -> None:
    with unit_of_work_factory() as uow:
        uow.repositories.audit.add(
            AuditRecord(
                entity_id=entity_id,
                run_id=run_id,
                timestamp=now,
                fields_touched=(),
                outcomes=(RunOutcome(kind=OutcomeKind.FAILED, message=str(exc)),),
            )
        )
        uow.commit()


def resolve_batch(
    entity_ids: Iterable[str],
    *,
    engine: ResolutionEngine,
    unit_of_work_factory: UnitOfWorkFactory,
    workers: int = DEFAULT_WORKERS,
    now: datetime | None = None,
    outcomes_by_entity: dict[str, Sequence[RunOutcome]] | None = None,
    locks: EntityLockRegistry | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> BatchResolutionResult:
    """Resolve many entities in parallel; one entity's failure never aborts the batch.

    Entities not yet started when ``should_stop`` returns true are reported as skipped.
    """

    now = now or _utcnow()
    registry = locks or _DEFAULT_LOCKS
    ordered = list(dict.fromkeys(entity_ids))
    extra = outcomes_by_entity or {}
    result = BatchResolutionResult()
    result_lock = threading.Lock()

    def _work(entity_id: str) -> None:
        if should_stop is not None and should_stop():
            with result_lock:
                result.skipped.append(entity_id)
            return
        run_id = new_run_id()
        try:
            resolution = resolve_entity(
                entity_id,
                engine=engine,
                unit_of_work_factory=unit_of_work_factory,
                now=now,
                run_id=run_id,
                outcomes=extra.get(entity_id, ()),
                locks=registry,
            )
        except UnknownEntityError as exc:
            log.warning("Skipping %s: %s", entity_id, exc)
            with result_lock:
                result.failed[entity_id] = str(exc)
            return
        except Exception as exc:
            # Per-entity isolation: record the failure and keep going.
            log.exception("Resolution failed for %s", entity_id)
            with result_lock:
                result.failed[entity_id] = str(exc)
            _record_failure(
                entity_id,
                exc,
                unit_of_work_factory=unit_of_work_factory,
                now=now,
                run_id=run_id,
            )
            return
        with result_lock:
            result.resolved.append(resolution)

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        for future in [pool.submit(_work, entity_id) for entity_id in ordered]:
            future.result()

    position = {entity_id: index for index, entity_id in enumerate(ordered)}
    result.resolved.sort(key=lambda item: position[item.entity.entity_id])
    result.skipped.sort(key=position.__getitem__)
    log.info(
        "Batch finished: %s resolved, %s failed, %s skipped",
        len(result.resolved),
        len(result.failed),
        len(result.skipped),
    )
    return result


# Queries ---------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FieldView:
    """A stored value together with its freshness-adjusted confidence."""

    value: ResolvedValue
    freshness: FreshnessReport

    @property
    def effective_confidence(self) -> float:
        return self.freshness.effective_confidence


def _require_entity(repositories: ResolutionRepositories, entity_id: str) -> Entity:
    entity = repositories.entities.get(entity_id)
    if entity is None:
        raise UnknownEntityError(entity_id)
    return entity


def get_field_view(
    entity_id: str,
    field_name: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    policy: ResolutionPolicy,
    now: datetime | None = None,
) -> FieldView | None:
    """Return the stored value for (entity, field) and its effective confidence."""

    with unit_of_work_factory() as uow:
        _require_entity(uow.repositories, entity_id)
        value = uow.repositories.resolved_values.get(entity_id, field_name)
    if value is None:
        return None
    spec = policy.field_spec(field_name)
    category = spec.category if spec is not None else FieldCategory.EDITORIAL
    report = assess_freshness(value, category=category, decay=policy.decay, now=now or _utcnow())
    return FieldView(value=value, freshness=report)


def require_publishable(
    entity_id: str,
    field_name: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    policy: ResolutionPolicy,
    now: datetime | None = None,
) -> ResolvedValue:
    """Return the value only if it may be shown to readers; raise otherwise."""

    with unit_of_work_factory() as uow:
        entity = _require_entity(uow.repositories, entity_id)
        score = uow.repositories.trust_scores.get(entity_id)
    if entity.state is GovernanceState.BLOCKED:
        reasons = (
            tuple(
                contribution.explanation
                for contribution in score.breakdown_by_rule.values()
                if not contribution.passed and contribution.severity is RuleSeverity.CRITICAL
            )
            if score is not None
            else ()
        )
        raise GovernanceViolation(entity_id, reasons)
    view = get_field_view(
        entity_id,
        field_name,
        unit_of_work_factory=unit_of_work_factory,
        policy=policy,
        now=now,
    )
    if view is None:
        raise InsufficientData(entity_id, field_name)
    if not view.value.publishable:
        raise ReviewPending(entity_id, field_name)
    if view.freshness.decayed and view.effective_confidence < policy.thresholds.auto_approve:
        raise StaleData(entity_id, field_name, view.effective_confidence)
    return view.value


def pending_reviews(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    entity_id: str | None = None,
    limit: int | None = None,
) -> list[ReviewItem]:
    with unit_of_work_factory() as uow:
        if entity_id is not None:
            _require_entity(uow.repositories, entity_id)
        return uow.repositories.review_queue.pending(entity_id=entity_id, limit=limit)


def explain_trust(
    entity_id: str, *, unit_of_work_factory: UnitOfWorkFactory
) -> TrustScore | None:
    """Return the latest trust score with its per-rule breakdown, if the entity was ever scored."""

    with unit_of_work_factory() as uow:
        _require_entity(uow.repositories, entity_id)
        return uow.repositories.trust_scores.get(entity_id)


def audit_trail(
    entity_id: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    limit: int | None = None,
) -> list[AuditRecord]:
    with unit_of_work_factory() as uow:
        _require_entity(uow.repositories, entity_id)
        return uow.repositories.audit.for_entity(entity_id, limit=limit)


__all__ = [
    "BatchResolutionResult",
    "EntityLockRegistry",
    "FieldView",
    "audit_trail",
    "explain_trust",
    "get_field_view",
    "new_run_id",
    "pending_reviews",
    "persist_resolution",
    "require_publishable",
    "resolve_batch",
    "resolve_entity",
]
