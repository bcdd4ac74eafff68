from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from cinetrust.domain.governance import DEFAULT_GOVERNANCE_POLICY
from cinetrust.domain.model import (
    ClaimKind,
    ConsensusDecision,
    Entity,
    EntityKind,
    GovernanceState,
    ResolutionMethod,
    ResolvedValue,
    SourceRecord,
)
from cinetrust.domain.reconciliation import DEFAULT_POLICY, PolicyClaimClassifier, cross_validate
from cinetrust.domain.resolution_engine import ResolutionEngine

if TYPE_CHECKING:
    from collections.abc import Callable

    from cinetrust.adapters.sqlalchemy.unit_of_work import SqlAlchemyResolutionUnitOfWork
    from cinetrust.domain.model import FieldValue
    from cinetrust.domain.reconciliation import CrossValidation, ResolutionPolicy

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
RETRIEVED_AT = NOW - timedelta(days=2)


def make_record(
    field_name: str,
    value: FieldValue,
    source_id: str,
    *,
    entity_id: str = "movie-rrr",
    retrieved_at: datetime = RETRIEVED_AT,
    tier: int | None = None,
    policy: ResolutionPolicy = DEFAULT_POLICY,
) -> SourceRecord:
    return SourceRecord(
        entity_id=entity_id,
        field_name=field_name,
        value=value,
        source_id=source_id,
        retrieved_at=retrieved_at,
        source_trust_tier=tier if tier is not None else policy.profile(source_id).tier,
    )


def make_movie(
    entity_id: str = "movie-rrr",
    *,
    external_ids: dict[str, str] | None = None,
    state: GovernanceState = GovernanceState.PENDING,
) -> Entity:
    return Entity(
        entity_id=entity_id,
        kind=EntityKind.MOVIE,
        display_name="RRR",
        external_ids=dict(external_ids or {}),
        state=state,
    )


def make_celebrity(
    entity_id: str = "person-ntr", *, external_ids: dict[str, str] | None = None
) -> Entity:
    return Entity(
        entity_id=entity_id,
        kind=EntityKind.CELEBRITY,
        display_name="N. T. Rama Rao Jr.",
        external_ids=dict(external_ids or {}),
    )


def validate(
    records: list[SourceRecord], *, policy: ResolutionPolicy = DEFAULT_POLICY
) -> CrossValidation:
    field_names = {record.field_name for record in records}
    assert len(field_names) == 1
    classification = PolicyClaimClassifier(policy)(field_names.pop())
    return cross_validate(records, classification=classification, policy=policy)


def default_engine(policy: ResolutionPolicy = DEFAULT_POLICY) -> ResolutionEngine:
    return ResolutionEngine.from_policies(policy, DEFAULT_GOVERNANCE_POLICY)


def complete_movie_records(
    entity_id: str = "movie-rrr", *, retrieved_at: datetime = RETRIEVED_AT
) -> list[SourceRecord]:
    """Claims that let a movie pass every critical rule."""

    return [
        make_record("title", "RRR", "official", entity_id=entity_id, retrieved_at=retrieved_at),
        make_record("title", "RRR", "tmdb", entity_id=entity_id, retrieved_at=retrieved_at),
        make_record("title", "RRR", "imdb", entity_id=entity_id, retrieved_at=retrieved_at),
        make_record(
            "release_year", 2022, "official", entity_id=entity_id, retrieved_at=retrieved_at
        ),
        make_record(
            "release_year", 2022, "regional", entity_id=entity_id, retrieved_at=retrieved_at
        ),
        make_record(
            "release_year", 2022, "wikidata", entity_id=entity_id, retrieved_at=retrieved_at
        ),
    ]


def register(
    unit_of_work_factory: Callable[[], SqlAlchemyResolutionUnitOfWork],
    entity: Entity,
    records: list[SourceRecord] | None = None,
) -> None:
    with unit_of_work_factory() as uow:
        uow.repositories.entities.add(entity)
        if records:
            uow.repositories.source_records.add_many(records)
        uow.commit()


def make_value(
    field_name: str,
    value: FieldValue,
    *,
    entity_id: str = "movie-rrr",
    confidence: float = 0.95,
    sources: tuple[str, ...] = ("official",),
    method: ResolutionMethod = ResolutionMethod.SINGLE_SOURCE,
    claim_kind: ClaimKind = ClaimKind.FACT,
    decision: ConsensusDecision = ConsensusDecision.AUTO_APPROVE,
    as_of: datetime = RETRIEVED_AT,
) -> ResolvedValue:
    return ResolvedValue(
        entity_id=entity_id,
        field_name=field_name,
        value=value,
        confidence=confidence,
        contributing_sources=sources,
        method=method,
        claim_kind=claim_kind,
        decision=decision,
        as_of=as_of,
        resolved_at=NOW,
    )
