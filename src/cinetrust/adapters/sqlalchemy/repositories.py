"""Repository implementations backed by SQLAlchemy sessions.

Domain objects are frozen dataclasses, so rows are translated explicitly in both
directions instead of being mapped imperatively.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import delete, insert, select, update

from cinetrust.adapters.sqlalchemy.tables import (
    audit_record_table,
    discrepancy_table,
    entity_table,
    resolved_value_table,
    review_item_table,
    source_record_table,
    trust_score_table,
)
from cinetrust.domain.errors import ConcurrentResolutionError, ReviewItemNotFoundError
from cinetrust.domain.model import (
    AuditRecord,
    ClaimKind,
    ConflictingValue,
    ConsensusDecision,
    Discrepancy,
    DiscrepancySeverity,
    DiscrepancyStatus,
    Entity,
    FieldDecision,
    GovernanceState,
    OutcomeKind,
    ResolutionMethod,
    ResolvedValue,
    ReviewItem,
    ReviewStatus,
    RuleContribution,
    RuleSeverity,
    RunOutcome,
    SourceRecord,
    StateTransition,
    TrustScore,
    freeze_value,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime

    from sqlalchemy import Row
    from sqlalchemy.orm import Session

    from cinetrust.domain.model import EntityKind

type JsonObject = dict[str, Any]


class SqlAlchemyEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Entity) -> None:
        self.session.execute(
            insert(entity_table).values(
                entity_id=entity.entity_id,
                kind=entity.kind,
                display_name=entity.display_name,
                external_ids=dict(entity.external_ids),
                state=entity.state,
                revision=entity.revision,
                evaluated_at=entity.evaluated_at,
            )
        )

    def get(self, entity_id: str) -> Entity | None:
        row = self.session.execute(
            select(entity_table).where(entity_table.c.entity_id == entity_id)
        ).one_or_none()
        return None if row is None else self._to_entity(row)

    def list_ids(
        self,
        *,
        kind: EntityKind | None = None,
        states: Iterable[GovernanceState] | None = None,
    ) -> list[str]:
        stmt = select(entity_table.c.entity_id).order_by(entity_table.c.entity_id)
        if kind is not None:
            stmt = stmt.where(entity_table.c.kind == kind)
        if states is not None:
            stmt = stmt.where(entity_table.c.state.in_(list(states)))
        return list(self.session.execute(stmt).scalars())

    def save(self, entity: Entity, *, expected_revision: int) -> Entity:
        new_revision = expected_revision + 1
        result = self.session.execute(
            update(entity_table)
            .where(entity_table.c.entity_id == entity.entity_id)
            .where(entity_table.c.revision == expected_revision)
            .values(
                kind=entity.kind,
                display_name=entity.display_name,
                external_ids=dict(entity.external_ids),
                state=entity.state,
                revision=new_revision,
                evaluated_at=entity.evaluated_at,
            )
        )
        if result.rowcount == 0:  # pyright: ignore[reportAttributeAccessIssue]
            actual = self.session.execute(
                select(entity_table.c.revision).where(
                    entity_table.c.entity_id == entity.entity_id
                )
            ).scalar_one_or_none()
            raise ConcurrentResolutionError(
                entity.entity_id, expected=expected_revision, actual=actual or -1
            )
        return replace(entity, revision=new_revision)

    @staticmethod
    def _to_entity(row: Row[Any]) -> Entity:
        return Entity(
            entity_id=row.entity_id,
            kind=row.kind,
            display_name=row.display_name,
            external_ids=dict(row.external_ids or {}),
            state=row.state,
            revision=row.revision,
            evaluated_at=row.evaluated_at,
        )


class SqlAlchemySourceRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SourceRecord) -> None:
        self.add_many((entity,))

    def add_many(self, records: Iterable[SourceRecord]) -> int:
        rows = [
            {
                "entity_id": record.entity_id,
                "field_name": record.field_name,
                "value": record.value,
                "source_id": record.source_id,
                "retrieved_at": record.retrieved_at,
                "source_trust_tier": record.source_trust_tier,
            }
            for record in records
        ]
        if rows:
            self.session.execute(insert(source_record_table), rows)
        return len(rows)

    def for_entity(self, entity_id: str) -> list[SourceRecord]:
        stmt = (
            select(source_record_table)
            .where(source_record_table.c.entity_id == entity_id)
            .order_by(source_record_table.c.retrieved_at, source_record_table.c.id)
        )
        return [
            SourceRecord(
                entity_id=row.entity_id,
                field_name=row.field_name,
                value=row.value,
                source_id=row.source_id,
                retrieved_at=row.retrieved_at,
                source_trust_tier=row.source_trust_tier,
            )
            for row in self.session.execute(stmt)
        ]


class SqlAlchemyResolvedValueRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, entity_id: str, field_name: str) -> ResolvedValue | None:
        row = self.session.execute(
            select(resolved_value_table)
            .where(resolved_value_table.c.entity_id == entity_id)
            .where(resolved_value_table.c.field_name == field_name)
        ).one_or_none()
        return None if row is None else self._to_value(row)

    def for_entity(self, entity_id: str) -> dict[str, ResolvedValue]:
        stmt = (
            select(resolved_value_table)
            .where(resolved_value_table.c.entity_id == entity_id)
            .order_by(resolved_value_table.c.field_name)
        )
        return {row.field_name: self._to_value(row) for row in self.session.execute(stmt)}

    def replace_for_entity(self, entity_id: str, values: Mapping[str, ResolvedValue]) -> None:
        self.session.execute(
            delete(resolved_value_table).where(resolved_value_table.c.entity_id == entity_id)
        )
        rows = [
            {
                "entity_id": entity_id,
                "field_name": field_name,
                "value": value.value,
                "confidence": value.confidence,
                "contributing_sources": list(value.contributing_sources),
                "method": value.method,
                "claim_kind": value.claim_kind,
                "decision": value.decision,
                "as_of": value.as_of,
                "resolved_at": value.resolved_at,
            }
            for field_name, value in values.items()
        ]
        if rows:
            self.session.execute(insert(resolved_value_table), rows)

    @staticmethod
    def _to_value(row: Row[Any]) -> ResolvedValue:
        return ResolvedValue(
            entity_id=row.entity_id,
            field_name=row.field_name,
            value=freeze_value(row.value),
            confidence=row.confidence,
            contributing_sources=tuple(row.contributing_sources),
            method=row.method,
            claim_kind=row.claim_kind,
            decision=row.decision,
            as_of=row.as_of,
            resolved_at=row.resolved_at,
        )


def _conflicts_to_json(discrepancy: Discrepancy) -> list[JsonObject]:
    return [
        {
            "value": conflict.value,
            "normalized": conflict.normalized,
            "sources": list(conflict.sources),
            "total_trust": conflict.total_trust,
        }
        for conflict in discrepancy.conflicting_values
    ]


def _conflicts_from_json(data: Iterable[JsonObject]) -> tuple[ConflictingValue, ...]:
    return tuple(
        ConflictingValue(
            value=freeze_value(item["value"]),
            normalized=item["normalized"],
            sources=tuple(item["sources"]),
            total_trust=item["total_trust"],
        )
        for item in data
    )


def _discrepancy_to_json(discrepancy: Discrepancy) -> JsonObject:
    return {
        "entity_id": discrepancy.entity_id,
        "field_name": discrepancy.field_name,
        "conflicting_values": _conflicts_to_json(discrepancy),
        "severity": discrepancy.severity.value,
        "status": discrepancy.status.value,
    }


def _discrepancy_from_json(data: JsonObject) -> Discrepancy:
    return Discrepancy(
        entity_id=data["entity_id"],
        field_name=data["field_name"],
        conflicting_values=_conflicts_from_json(data["conflicting_values"]),
        severity=DiscrepancySeverity(data["severity"]),
        status=DiscrepancyStatus(data["status"]),
    )


class SqlAlchemyDiscrepancyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def for_entity(self, entity_id: str) -> list[Discrepancy]:
        stmt = (
            select(discrepancy_table)
            .where(discrepancy_table.c.entity_id == entity_id)
            .order_by(discrepancy_table.c.field_name)
        )
        return [
            Discrepancy(
                entity_id=row.entity_id,
                field_name=row.field_name,
                conflicting_values=_conflicts_from_json(row.conflicting_values),
                severity=row.severity,
                status=row.status,
            )
            for row in self.session.execute(stmt)
        ]

    def replace_for_entity(self, entity_id: str, discrepancies: Sequence[Discrepancy]) -> None:
        self.session.execute(
            delete(discrepancy_table).where(discrepancy_table.c.entity_id == entity_id)
        )
        rows = [
            {
                "entity_id": entity_id,
                "field_name": discrepancy.field_name,
                "conflicting_values": _conflicts_to_json(discrepancy),
                "severity": discrepancy.severity,
                "status": discrepancy.status,
            }
            for discrepancy in discrepancies
        ]
        if rows:
            self.session.execute(insert(discrepancy_table), rows)


class SqlAlchemyReviewQueueRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def pending(
        self, *, entity_id: str | None = None, limit: int | None = None
    ) -> list[ReviewItem]:
        stmt = (
            select(review_item_table)
            .where(review_item_table.c.status == ReviewStatus.OPEN)
            .order_by(review_item_table.c.created_at, review_item_table.c.id)
        )
        if entity_id is not None:
            stmt = stmt.where(review_item_table.c.entity_id == entity_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._to_item(row) for row in self.session.execute(stmt)]

    def get_open(self, entity_id: str, field_name: str) -> ReviewItem | None:
        row = self._open_row(entity_id, field_name)
        return None if row is None else self._to_item(row)

    def replace_open_for_entity(self, entity_id: str, items: Sequence[ReviewItem]) -> None:
        self.session.execute(
            delete(review_item_table)
            .where(review_item_table.c.entity_id == entity_id)
            .where(review_item_table.c.status == ReviewStatus.OPEN)
        )
        rows = [
            {
                "entity_id": entity_id,
                "field_name": item.field_name,
                "reason": item.reason,
                "explanation": item.explanation,
                "proposed_value": item.proposed_value,
                "confidence": item.confidence,
                "discrepancy": (
                    _discrepancy_to_json(item.discrepancy)
                    if item.discrepancy is not None
                    else None
                ),
                "status": ReviewStatus.OPEN,
                "created_at": item.created_at,
            }
            for item in items
        ]
        if rows:
            self.session.execute(insert(review_item_table), rows)

    def close(
        self,
        entity_id: str,
        field_name: str,
        *,
        status: ReviewStatus,
        resolved_by: str,
        note: str | None,
        closed_at: datetime,
    ) -> ReviewItem:
        row = self._open_row(entity_id, field_name)
        if row is None:
            raise ReviewItemNotFoundError(entity_id, field_name)
        self.session.execute(
            update(review_item_table)
            .where(review_item_table.c.id == row.id)
            .values(
                status=status,
                resolved_by=resolved_by,
                resolution_note=note,
                closed_at=closed_at,
            )
        )
        return replace(
            self._to_item(row), status=status, resolved_by=resolved_by, resolution_note=note
        )

    def _open_row(self, entity_id: str, field_name: str) -> Row[Any] | None:
        return self.session.execute(
            select(review_item_table)
            .where(review_item_table.c.entity_id == entity_id)
            .where(review_item_table.c.field_name == field_name)
            .where(review_item_table.c.status == ReviewStatus.OPEN)
            .order_by(review_item_table.c.id.desc())
            .limit(1)
        ).one_or_none()

    @staticmethod
    def _to_item(row: Row[Any]) -> ReviewItem:
        return ReviewItem(
            entity_id=row.entity_id,
            field_name=row.field_name,
            reason=row.reason,
            explanation=row.explanation,
            proposed_value=freeze_value(row.proposed_value),
            confidence=row.confidence,
            created_at=row.created_at,
            discrepancy=(
                _discrepancy_from_json(row.discrepancy) if row.discrepancy is not None else None
            ),
            status=row.status,
            resolved_by=row.resolved_by,
            resolution_note=row.resolution_note,
        )


def _contribution_from_json(data: JsonObject) -> RuleContribution:
    return RuleContribution(
        rule_id=data["rule_id"],
        rule_version=data["rule_version"],
        passed=data["passed"],
        severity=RuleSeverity(data["severity"]),
        trust_delta=data["trust_delta"],
        explanation=data["explanation"],
    )


class SqlAlchemyTrustScoreRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, entity_id: str) -> TrustScore | None:
        row = self.session.execute(
            select(trust_score_table).where(trust_score_table.c.entity_id == entity_id)
        ).one_or_none()
        if row is None:
            return None
        return TrustScore(
            entity_id=row.entity_id,
            score=row.score,
            overall_level=row.overall_level,
            components=dict(row.components),
            breakdown_by_rule={
                rule_id: _contribution_from_json(contribution)
                for rule_id, contribution in row.breakdown_by_rule.items()
            },
            explanation=row.explanation,
            key_factors=tuple(row.key_factors),
            warnings=tuple(row.warnings),
            improvements=tuple(row.improvements),
            computed_at=row.computed_at,
        )

    def replace(self, score: TrustScore) -> None:
        self.session.execute(
            delete(trust_score_table).where(trust_score_table.c.entity_id == score.entity_id)
        )
        self.session.execute(
            insert(trust_score_table).values(
                entity_id=score.entity_id,
                score=score.score,
                overall_level=score.overall_level,
                components=dict(score.components),
                breakdown_by_rule={
                    rule_id: {
                        "rule_id": contribution.rule_id,
                        "rule_version": contribution.rule_version,
                        "passed": contribution.passed,
                        "severity": contribution.severity.value,
                        "trust_delta": contribution.trust_delta,
                        "explanation": contribution.explanation,
                    }
                    for rule_id, contribution in score.breakdown_by_rule.items()
                },
                explanation=score.explanation,
                key_factors=list(score.key_factors),
                warnings=list(score.warnings),
                improvements=list(score.improvements),
                computed_at=score.computed_at,
            )
        )


class SqlAlchemyAuditRepository:
    """Append-only: records are never updated or deleted."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AuditRecord) -> None:
        self.session.execute(
            insert(audit_record_table).values(
                entity_id=entity.entity_id,
                run_id=entity.run_id,
                timestamp=entity.timestamp,
                fields_touched=list(entity.fields_touched),
                decisions=[
                    {
                        "field_name": decision.field_name,
                        "claim_kind": decision.claim_kind.value,
                        "method": decision.method.value if decision.method else None,
                        "value": decision.value,
                        "confidence": decision.confidence,
                        "decision": decision.decision.value if decision.decision else None,
                        "reason": decision.reason,
                    }
                    for decision in entity.decisions
                ],
                outcomes=[
                    {
                        "kind": outcome.kind.value,
                        "message": outcome.message,
                        "field_name": outcome.field_name,
                        "source_id": outcome.source_id,
                    }
                    for outcome in entity.outcomes
                ],
                transitions=[
                    {
                        "previous": transition.previous.value,
                        "current": transition.current.value,
                        "reason": transition.reason,
                    }
                    for transition in entity.transitions
                ],
            )
        )

    def for_entity(self, entity_id: str, *, limit: int | None = None) -> list[AuditRecord]:
        """Newest first."""

        stmt = (
            select(audit_record_table)
            .where(audit_record_table.c.entity_id == entity_id)
            .order_by(audit_record_table.c.timestamp.desc(), audit_record_table.c.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._to_record(row) for row in self.session.execute(stmt)]

    @staticmethod
    def _to_record(row: Row[Any]) -> AuditRecord:
        return AuditRecord(
            entity_id=row.entity_id,
            run_id=row.run_id,
            timestamp=row.timestamp,
            fields_touched=tuple(row.fields_touched),
            decisions=tuple(
                FieldDecision(
                    field_name=item["field_name"],
                    claim_kind=ClaimKind(item["claim_kind"]),
                    method=ResolutionMethod(item["method"]) if item["method"] else None,
                    value=freeze_value(item["value"]),
                    confidence=item["confidence"],
                    decision=(
                        ConsensusDecision(item["decision"]) if item["decision"] else None
                    ),
                    reason=item["reason"],
                )
                for item in row.decisions
            ),
            outcomes=tuple(
                RunOutcome(
                    kind=OutcomeKind(item["kind"]),
                    message=item["message"],
                    field_name=item["field_name"],
                    source_id=item["source_id"],
                )
                for item in row.outcomes
            ),
            transitions=tuple(
                StateTransition(
                    previous=GovernanceState(item["previous"]),
                    current=GovernanceState(item["current"]),
                    reason=item["reason"],
                )
                for item in row.transitions
            ),
        )


if TYPE_CHECKING:
    from cinetrust.domain.ports.persistence import (
        AuditRepository,
        DiscrepancyRepository,
        EntityRepository,
        ResolvedValueRepository,
        ReviewQueueRepository,
        SourceRecordRepository,
        TrustScoreRepository,
    )

    _session_stub = cast("Session", object())
    _entity_repo: EntityRepository = SqlAlchemyEntityRepository(_session_stub)
    _source_repo: SourceRecordRepository = SqlAlchemySourceRecordRepository(_session_stub)
    _value_repo: ResolvedValueRepository = SqlAlchemyResolvedValueRepository(_session_stub)
    _discrepancy_repo: DiscrepancyRepository = SqlAlchemyDiscrepancyRepository(_session_stub)
    _review_repo: ReviewQueueRepository = SqlAlchemyReviewQueueRepository(_session_stub)
    _trust_repo: TrustScoreRepository = SqlAlchemyTrustScoreRepository(_session_stub)
    _audit_repo: AuditRepository = SqlAlchemyAuditRepository(_session_stub)
    _entities: EntityRepository = SqlAlchemyEntityRepository(_session_stub)
    _records: SourceRecordRepository = SqlAlchemySourceRecordRepository(_session_stub)
    _values: ResolvedValueRepository = SqlAlchemyResolvedValueRepository(_session_stub)
    _discrepancies: DiscrepancyRepository = SqlAlchemyDiscrepancyRepository(_session_stub)
    _reviews: ReviewQueueRepository = SqlAlchemyReviewQueueRepository(_session_stub)
    _scores: TrustScoreRepository = SqlAlchemyTrustScoreRepository(_session_stub)
    _audit: AuditRepository = SqlAlchemyAuditRepository(_session_stub)
