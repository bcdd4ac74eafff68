"""Governance validation: rule evaluation, trust scoring and the entity state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from statistics import fmean
from typing import TYPE_CHECKING

from cinetrust.domain.model import (
    ClaimKind,
    DiscrepancyStatus,
    FieldCategory,
    GovernanceState,
    RuleCategory,
    StateTransition,
)
from cinetrust.domain.reconciliation.freshness import assess_freshness
from cinetrust.domain.reconciliation.normalize import normalize_text

from .trust import base_score, build_trust_score

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from cinetrust.domain.model import Discrepancy, Entity, ResolvedValue, TrustScore
    from cinetrust.domain.reconciliation.freshness import FreshnessReport
    from cinetrust.domain.reconciliation.policy import ResolutionPolicy

    from .policy import GovernancePolicy
    from .rules import EvaluationContext, RuleOutcome

log = logging.getLogger(__name__)

BOX_OFFICE_FIELD = "box_office_gross_inr"
AGE_RATING_FIELD = "age_rating"


@dataclass(frozen=True, slots=True, kw_only=True)
class GovernanceEvaluation:
    entity_id: str
    state: GovernanceState
    outcomes: tuple[RuleOutcome, ...]
    trust_score: TrustScore
    freshness: Mapping[str, FreshnessReport]
    stale_fields: tuple[str, ...] = ()
    transitions: tuple[StateTransition, ...] = field(default_factory=tuple)

    @property
    def blocked(self) -> bool:
        return self.state is GovernanceState.BLOCKED

    @property
    def requires_refetch(self) -> bool:
        return self.state is GovernanceState.REQUEUED

    @property
    def failed_rules(self) -> tuple[RuleOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.passed)


def next_state(
    current: GovernanceState, *, blocked: bool, stale: bool
) -> tuple[GovernanceState, tuple[StateTransition, ...]]:
    """Deterministic state transition for one evaluation.

    Stale entities are immediately re-queued for a re-fetch; an entity already
    re-queued stays there until fresh data arrives.
    """

    if blocked:
        target = GovernanceState.BLOCKED
        reason = "critical governance rule failed"
    elif stale:
        if current is GovernanceState.REQUEUED:
            return current, ()
        transitions: list[StateTransition] = []
        if current is not GovernanceState.STALE:
            transitions.append(
                StateTransition(
                    previous=current,
                    current=GovernanceState.STALE,
                    reason="freshness rule failed",
                )
            )
        transitions.append(
            StateTransition(
                previous=GovernanceState.STALE,
                current=GovernanceState.REQUEUED,
                reason="re-fetch requested for stale data",
            )
        )
        return GovernanceState.REQUEUED, tuple(transitions)
    else:
        target = GovernanceState.VALIDATED
        reason = "all critical rules passed"

    if target is current:
        return current, ()
    return target, (StateTransition(previous=current, current=target, reason=reason),)


def _age_rating_downgrade(
    current: ResolvedValue | None,
    previous: ResolvedValue | None,
    *,
    resolution_policy: ResolutionPolicy,
    policy: GovernancePolicy,
) -> bool:
    if current is None or previous is None or not previous.publishable:
        return False
    if not isinstance(current.value, str) or not isinstance(previous.value, str):
        return False
    aliases = resolution_policy.aliases.get(FieldCategory.CERTIFICATION, {})
    new_text = normalize_text(current.value)
    old_text = normalize_text(previous.value)
    new_rank = policy.age_rating_rank(aliases.get(new_text, new_text))
    old_rank = policy.age_rating_rank(aliases.get(old_text, old_text))
    if new_rank is None or old_rank is None:
        return False
    return new_rank < old_rank


@dataclass(slots=True)
class GovernanceValidator:
    policy: GovernancePolicy
    resolution_policy: ResolutionPolicy

    def _category(self, field_name: str) -> FieldCategory:
        spec = self.resolution_policy.field_spec(field_name)
        return spec.category if spec is not None else FieldCategory.EDITORIAL

    def evaluate(
        self,
        entity: Entity,
        values: Mapping[str, ResolvedValue],
        *,
        previous: Mapping[str, ResolvedValue],
        discrepancies: Sequence[Discrepancy],
        pending_review_count: int,
        now: datetime,
    ) -> GovernanceEvaluation:
        thresholds = self.resolution_policy.thresholds
        freshness = {
            name: assess_freshness(
                value,
                category=self._category(name),
                decay=self.resolution_policy.decay,
                now=now,
            )
            for name, value in sorted(values.items())
        }
        stale_fields = tuple(
            name
            for name, report in freshness.items()
            if report.decayed
            and report.effective_confidence < thresholds.auto_approve
            and values[name].publishable
        )

        required = self.resolution_policy.required_fields(entity.kind)
        missing = tuple(name for name in required if name not in values)
        fact_values = [value for value in values.values() if value.claim_kind is ClaimKind.FACT]
        critical = [
            discrepancy
            for discrepancy in discrepancies
            if discrepancy.is_critical and discrepancy.status is not DiscrepancyStatus.RESOLVED
        ]
        tiers = [
            self.resolution_policy.profile(source).tier
            for value in values.values()
            for source in value.contributing_sources
        ]
        box_office = values.get(BOX_OFFICE_FIELD)

        components = {
            "confidence": (
                fmean(freshness[value.field_name].effective_confidence for value in fact_values)
                if fact_values
                else 0.0
            ),
            "completeness": (len(required) - len(missing)) / len(required) if required else 1.0,
            "agreement": 1.0 - len(critical) / max(1, len(fact_values)) if fact_values else 1.0,
            "freshness": (
                fmean(report.factor for report in freshness.values()) if freshness else 1.0
            ),
        }
        components["agreement"] = max(0.0, components["agreement"])

        context: dict[str, object] = {
            "kind": entity.kind.value,
            "missing_required": missing,
            "missing_required_count": len(missing),
            "days_since_refresh": (
                min(report.age_days for report in freshness.values()) if freshness else None
            ),
            "stale_fields": stale_fields,
            "stale_field_count": len(stale_fields),
            "best_source_tier": min(tiers) if tiers else None,
            "critical_discrepancy_count": len(critical),
            "has_box_office": box_office is not None,
            "box_office_source_count": (
                len(box_office.contributing_sources) if box_office is not None else 0
            ),
            "age_rating_downgrade": _age_rating_downgrade(
                values.get(AGE_RATING_FIELD),
                previous.get(AGE_RATING_FIELD),
                resolution_policy=self.resolution_policy,
                policy=self.policy,
            ),
            "pending_review_count": pending_review_count,
            "base_trust": round(base_score(components, self.policy), 6),
        }
        for name, value in values.items():
            context[f"field.{name}"] = value.value

        outcomes = self.evaluate_rules(entity, context)
        blocked = any(outcome.blocks_publish for outcome in outcomes)
        stale = any(
            not outcome.passed and outcome.category is RuleCategory.FRESHNESS
            for outcome in outcomes
        )
        state, transitions = next_state(entity.state, blocked=blocked, stale=stale)
        for outcome in outcomes:
            if outcome.blocks_publish:
                log.warning("Entity %s blocked: %s", entity.entity_id, outcome.explanation)

        trust_score = build_trust_score(
            entity.entity_id,
            components=components,
            outcomes=outcomes,
            policy=self.policy,
            computed_at=now,
        )
        return GovernanceEvaluation(
            entity_id=entity.entity_id,
            state=state,
            outcomes=outcomes,
            trust_score=trust_score,
            freshness=freshness,
            stale_fields=stale_fields,
            transitions=transitions,
        )

    def evaluate_rules(
        self, entity: Entity, context: EvaluationContext
    ) -> tuple[RuleOutcome, ...]:
        return tuple(
            rule.evaluate(context) for rule in self.policy.rules if rule.applies(entity.kind)
        )
