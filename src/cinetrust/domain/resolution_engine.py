"""Per-entity resolution pipeline.

The engine runs the stages for one entity strictly in order:

classify -> cross-validate -> resolve -> consensus -> derive -> governance

It is pure: given the entity, its source records, the previously stored values
and a clock reading it returns everything that must be persisted for the run.
Persistence and locking belong to the caller (see ``cinetrust.domain.fact_resolution``).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from cinetrust.domain.errors import MalformedRecordError
from cinetrust.domain.governance.validator import GovernanceValidator
from cinetrust.domain.model import (
    AuditRecord,
    ClaimKind,
    ConsensusDecision,
    DiscrepancyStatus,
    FieldDecision,
    OutcomeKind,
    ResolvedValue,
    ReviewItem,
    ReviewReason,
    RunOutcome,
    rule_review_field,
)
from cinetrust.domain.reconciliation import (
    ConsensusGate,
    PolicyClaimClassifier,
    PolicyCrossValidator,
    TrustWeightedResolver,
    derive_field,
    resolve_opinion,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime

    from cinetrust.domain.governance.policy import GovernancePolicy
    from cinetrust.domain.governance.validator import GovernanceEvaluation
    from cinetrust.domain.model import Discrepancy, Entity, SourceRecord
    from cinetrust.domain.reconciliation import (
        Classification,
        ClassifyField,
        ConsensusOutcome,
        CrossValidateField,
        CrossValidation,
        DecideConsensus,
        FieldResolution,
        FieldSpec,
        ResolutionPolicy,
        ResolveField,
    )

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class EntityResolution:
    """Everything produced by one resolution run for one entity."""

    entity: Entity
    run_id: str
    values: dict[str, ResolvedValue]
    discrepancies: tuple[Discrepancy, ...]
    review_items: tuple[ReviewItem, ...]
    governance: GovernanceEvaluation
    audit: AuditRecord

    @property
    def outcomes(self) -> tuple[RunOutcome, ...]:
        return self.audit.outcomes


@dataclass(slots=True)
class _RunState:
    values: dict[str, ResolvedValue] = field(default_factory=dict)
    discrepancies: list[Discrepancy] = field(default_factory=list)
    review_items: dict[str, ReviewItem] = field(default_factory=dict)
    decisions: list[FieldDecision] = field(default_factory=list)
    outcomes: list[RunOutcome] = field(default_factory=list)


@dataclass(slots=True)
class ResolutionEngine:
    """Compose the resolution stages for a single entity."""

    policy: ResolutionPolicy
    classify: ClassifyField
    cross_validate: CrossValidateField
    resolve: ResolveField
    consensus: DecideConsensus
    governance: GovernanceValidator

    @classmethod
    def from_policies(
        cls, policy: ResolutionPolicy, governance_policy: GovernancePolicy
    ) -> ResolutionEngine:
        return cls(
            policy=policy,
            classify=PolicyClaimClassifier(policy),
            cross_validate=PolicyCrossValidator(policy),
            resolve=TrustWeightedResolver(policy),
            consensus=ConsensusGate(policy),
            governance=GovernanceValidator(policy=governance_policy, resolution_policy=policy),
        )

    def run(
        self,
        entity: Entity,
        records: Iterable[SourceRecord],
        *,
        previous: Mapping[str, ResolvedValue],
        now: datetime,
        run_id: str,
        outcomes: Sequence[RunOutcome] = (),
    ) -> EntityResolution:
        """Resolve every field of ``entity`` from ``records``."""

        by_field = self._group_records(entity, records)
        state = _RunState(outcomes=list(outcomes))

        derived: list[FieldSpec] = []
        for field_name in sorted(by_field):
            classification = self.classify(field_name)
            if classification.kind is ClaimKind.DERIVED:
                state.decisions.append(
                    FieldDecision(
                        field_name=field_name,
                        claim_kind=classification.kind,
                        method=None,
                        value=None,
                        confidence=None,
                        decision=None,
                        reason="derived fields are recomputed; source claims ignored",
                    )
                )
                continue
            self._resolve_field(entity, classification, by_field[field_name], state, now)

        for spec in self.policy.fields.values():
            if spec.kind is ClaimKind.DERIVED:
                derived.append(spec)
        self._derive(derived, state, now)
        self._report_missing(entity, state)

        evaluation = self.governance.evaluate(
            entity,
            state.values,
            previous=previous,
            discrepancies=state.discrepancies,
            pending_review_count=len(state.review_items),
            now=now,
        )
        self._queue_stale(evaluation, state, now)
        self._queue_rule_reviews(entity, evaluation, state, now)
        for outcome in evaluation.outcomes:
            if outcome.blocks_publish:
                state.outcomes.append(
                    RunOutcome(kind=OutcomeKind.GOVERNANCE_VIOLATION, message=outcome.explanation)
                )

        updated = replace(entity, state=evaluation.state, evaluated_at=now)
        audit = AuditRecord(
            entity_id=entity.entity_id,
            run_id=run_id,
            timestamp=now,
            fields_touched=tuple(sorted(set(by_field) | set(state.values))),
            decisions=tuple(state.decisions),
            outcomes=tuple(state.outcomes),
            transitions=evaluation.transitions,
        )
        log.debug(
            "Resolved %s: fields=%s, queued=%s, state=%s",
            entity.entity_id,
            len(state.values),
            len(state.review_items),
            evaluation.state,
        )
        return EntityResolution(
            entity=updated,
            run_id=run_id,
            values=state.values,
            discrepancies=tuple(state.discrepancies),
            review_items=tuple(state.review_items[name] for name in sorted(state.review_items)),
            governance=evaluation,
            audit=audit,
        )

    @staticmethod
    def _group_records(
        entity: Entity, records: Iterable[SourceRecord]
    ) -> dict[str, list[SourceRecord]]:
        by_field: dict[str, list[SourceRecord]] = defaultdict(list)
        for record in records:
            if record.entity_id != entity.entity_id:
                raise MalformedRecordError(
                    f"Record for {record.entity_id} passed to run for {entity.entity_id}"
                )
            by_field[record.field_name].append(record)
        return by_field

    def _resolve_field(
        self,
        entity: Entity,
        classification: Classification,
        records: Sequence[SourceRecord],
        state: _RunState,
        now: datetime,
    ) -> None:
        validation: CrossValidation | None = None
        if classification.kind is ClaimKind.FACT:
            validation = self.cross_validate(records, classification=classification)
            resolution = self.resolve(validation)
        else:
            resolution = resolve_opinion(
                records,
                field_name=classification.field_name,
                category=classification.category,
                policy=self.policy,
            )
        if resolution is None:
            return

        outcome = self.consensus(
            resolution, classification=classification, validation=validation
        )
        value = ResolvedValue(
            entity_id=entity.entity_id,
            field_name=classification.field_name,
            value=resolution.value,
            confidence=resolution.confidence,
            contributing_sources=resolution.contributing_sources,
            method=resolution.method,
            claim_kind=classification.kind,
            decision=outcome.decision,
            as_of=resolution.as_of,
            resolved_at=now,
        )
        state.values[classification.field_name] = value
        state.decisions.append(
            FieldDecision(
                field_name=classification.field_name,
                claim_kind=classification.kind,
                method=resolution.method,
                value=resolution.value,
                confidence=resolution.confidence,
                decision=outcome.decision,
                reason=self._decision_reason(validation, resolution, outcome),
            )
        )
        self._track_discrepancy(validation, outcome, state)
        if outcome.decision is ConsensusDecision.QUEUE_FOR_REVIEW:
            self._enqueue(value, resolution, outcome, state, now)

    @staticmethod
    def _decision_reason(
        validation: CrossValidation | None,
        resolution: FieldResolution,
        outcome: ConsensusOutcome,
    ) -> str:
        parts = [resolution.reason]
        if validation is not None and validation.agreement_confidence is not None:
            agreement = validation.agreement_confidence
            parts.append(f"sources agree (cross-check confidence {agreement:.2f})")
        parts.append(outcome.reason)
        return "; ".join(parts)

    @staticmethod
    def _track_discrepancy(
        validation: CrossValidation | None,
        outcome: ConsensusOutcome,
        state: _RunState,
    ) -> None:
        if validation is None or validation.discrepancy is None:
            return
        status = (
            DiscrepancyStatus.RESOLVED
            if outcome.decision.publishable
            else DiscrepancyStatus.ESCALATED
        )
        discrepancy = validation.discrepancy.with_status(status)
        state.discrepancies.append(discrepancy)
        if discrepancy.is_critical and status is DiscrepancyStatus.ESCALATED:
            state.outcomes.append(
                RunOutcome(
                    kind=OutcomeKind.CRITICAL_DISCREPANCY,
                    message=discrepancy.describe(),
                    field_name=discrepancy.field_name,
                )
            )

    @staticmethod
    def _enqueue(
        value: ResolvedValue,
        resolution: FieldResolution,
        outcome: ConsensusOutcome,
        state: _RunState,
        now: datetime,
    ) -> None:
        state.review_items[value.field_name] = ReviewItem(
            entity_id=value.entity_id,
            field_name=value.field_name,
            reason=outcome.review_reason or ReviewReason.LOW_CONFIDENCE,
            explanation=outcome.reason,
            proposed_value=resolution.value,
            confidence=resolution.confidence,
            discrepancy=outcome.discrepancy,
            created_at=now,
        )

    def _derive(self, specs: Sequence[FieldSpec], state: _RunState, now: datetime) -> None:
        pending = list(specs)
        # Derived fields may depend on each other; stop once a pass makes no progress.
        while pending:
            remaining: list[FieldSpec] = []
            for spec in pending:
                if any(
                    name in {other.name for other in pending} for name in spec.derived_from
                ):
                    remaining.append(spec)
                    continue
                value = derive_field(spec, state.values, policy=self.policy, resolved_at=now)
                if value is None:
                    continue
                state.values[spec.name] = value
                state.decisions.append(
                    FieldDecision(
                        field_name=spec.name,
                        claim_kind=ClaimKind.DERIVED,
                        method=value.method,
                        value=value.value,
                        confidence=value.confidence,
                        decision=value.decision,
                        reason=f"recomputed from {', '.join(spec.derived_from)}",
                    )
                )
                if value.decision is ConsensusDecision.QUEUE_FOR_REVIEW:
                    state.review_items[spec.name] = ReviewItem(
                        entity_id=value.entity_id,
                        field_name=spec.name,
                        reason=ReviewReason.DERIVED_INPUT_PENDING,
                        explanation="inputs are still waiting for review",
                        proposed_value=value.value,
                        confidence=value.confidence,
                        created_at=now,
                    )
            if len(remaining) == len(pending):
                log.warning(
                    "Circular derived fields skipped: %s",
                    ", ".join(spec.name for spec in remaining),
                )
                return
            pending = remaining

    def _report_missing(self, entity: Entity, state: _RunState) -> None:
        for name in self.policy.required_fields(entity.kind):
            if name not in state.values:
                state.outcomes.append(
                    RunOutcome(
                        kind=OutcomeKind.INSUFFICIENT_DATA,
                        message=f"No source provides required field {name}",
                        field_name=name,
                    )
                )

    @staticmethod
    def _queue_stale(evaluation: GovernanceEvaluation, state: _RunState, now: datetime) -> None:
        for name in evaluation.stale_fields:
            report = evaluation.freshness[name]
            value = state.values[name]
            state.outcomes.append(
                RunOutcome(
                    kind=OutcomeKind.STALE_DATA,
                    message=(
                        f"{name} confidence decayed to {report.effective_confidence:.2f} "
                        f"after {report.age_days:.0f} days"
                    ),
                    field_name=name,
                )
            )
            if name in state.review_items:
                continue
            state.review_items[name] = ReviewItem(
                entity_id=value.entity_id,
                field_name=name,
                reason=ReviewReason.STALE,
                explanation=(
                    f"confidence decayed from {report.base_confidence:.2f} to "
                    f"{report.effective_confidence:.2f}"
                ),
                proposed_value=value.value,
                confidence=report.effective_confidence,
                created_at=now,
            )

    @staticmethod
    def _queue_rule_reviews(
        entity: Entity, evaluation: GovernanceEvaluation, state: _RunState, now: datetime
    ) -> None:
        for outcome in evaluation.outcomes:
            if outcome.passed or not outcome.requires_review:
                continue
            key = rule_review_field(outcome.rule_id)
            state.review_items[key] = ReviewItem(
                entity_id=entity.entity_id,
                field_name=key,
                reason=ReviewReason.GOVERNANCE_RULE,
                explanation=outcome.explanation,
                proposed_value=None,
                confidence=evaluation.trust_score.score,
                created_at=now,
            )
