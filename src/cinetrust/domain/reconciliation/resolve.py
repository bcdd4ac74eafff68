"""Conflict resolution: one resolved value per field from competing claims.

Rules, applied in order:

1. no claims: nothing is produced (the field stays null)
2. a manual curation record: the curator's latest value wins outright
3. a single source: its value, confidence equal to its trust for the field category
4. numeric fields with blend weights: weighted average of the weighted sources
5. full agreement: the agreed value with an agreement bonus per extra source
6. disagreement: the strongest group wins, penalized by the trust of the losers;
   near-ties are capped below the auto-approval threshold
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cinetrust.domain.model import ResolutionMethod

from .cross_validate import latest_claims_per_source
from .normalize import NUMERIC_CATEGORIES, coerce_number, display_value

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from cinetrust.domain.model import FieldCategory, FieldValue, SourceRecord

    from .cross_validate import CrossValidation, ValueGroup
    from .policy import ResolutionPolicy


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldResolution:
    """Outcome of resolving one field, before the consensus decision."""

    field_name: str
    value: FieldValue
    confidence: float
    method: ResolutionMethod
    contributing_sources: tuple[str, ...]
    as_of: datetime
    winner: ValueGroup | None = None
    tie: bool = False
    reason: str = ""

    @property
    def support(self) -> int:
        return len(self.contributing_sources)


def _clamp(value: float, upper: float = 1.0) -> float:
    return round(min(max(value, 0.0), upper), 6)


def _latest(records: Iterable[SourceRecord]) -> datetime:
    return max(record.retrieved_at for record in records)


def _override_resolution(
    validation: CrossValidation, policy: ResolutionPolicy
) -> FieldResolution | None:
    overrides = [
        record for record in validation.records if policy.profile(record.source_id).override
    ]
    if not overrides:
        return None
    record = max(overrides, key=lambda rec: (rec.retrieved_at, rec.source_id))
    return FieldResolution(
        field_name=validation.field_name,
        value=display_value(record.value, validation.category),
        confidence=_clamp(policy.trust_for(record.source_id, validation.category)),
        method=ResolutionMethod.MANUAL_OVERRIDE,
        contributing_sources=(record.source_id,),
        as_of=record.retrieved_at,
        reason=f"manual value from {record.source_id} overrides automated sources",
    )


def _single_source(validation: CrossValidation, policy: ResolutionPolicy) -> FieldResolution:
    group = validation.groups[0]
    record = group.representative
    trust = policy.trust_for(record.source_id, validation.category)
    return FieldResolution(
        field_name=validation.field_name,
        value=display_value(record.value, validation.category),
        confidence=_clamp(trust),
        method=ResolutionMethod.SINGLE_SOURCE,
        contributing_sources=(record.source_id,),
        as_of=record.retrieved_at,
        winner=group,
        reason=f"only {record.source_id} makes a claim (trust {trust:.2f})",
    )


def _blend(
    validation: CrossValidation,
    weights: Mapping[str, float],
    policy: ResolutionPolicy,
) -> FieldResolution | None:
    weighted = [
        (record, weights[record.source_id])
        for record in validation.records
        if weights.get(record.source_id, 0.0) > 0.0
    ]
    if len(weighted) < 2:  # noqa: PLR2004
        return None
    total_weight = sum(weight for _, weight in weighted)
    value = sum(coerce_number(record.value) * weight for record, weight in weighted) / total_weight
    confidence = (
        sum(
            weight * policy.trust_for(record.source_id, validation.category)
            for record, weight in weighted
        )
        / total_weight
    )
    groups = validation.groups
    contested = validation.discrepancy is not None and validation.discrepancy.is_critical
    tie = contested and _is_tie(groups[0], groups[1], policy.thresholds.near_tie_margin)
    if tie:
        confidence = min(confidence, policy.thresholds.tie_ceiling)
    sources = tuple(record.source_id for record, _ in weighted)
    shares = ", ".join(
        f"{record.source_id}={weight / total_weight:.2f}" for record, weight in weighted
    )
    return FieldResolution(
        field_name=validation.field_name,
        value=display_value(round(value, 2), validation.category),
        confidence=_clamp(confidence),
        method=ResolutionMethod.WEIGHTED_BLEND,
        contributing_sources=sources,
        as_of=_latest(record for record, _ in weighted),
        tie=tie,
        reason=f"weighted blend ({shares})",
    )


def _agreement(validation: CrossValidation, policy: ResolutionPolicy) -> FieldResolution:
    group = validation.groups[0]
    bonus = policy.thresholds.agreement_bonus * (group.size - 1)
    return FieldResolution(
        field_name=validation.field_name,
        value=display_value(group.representative.value, validation.category),
        confidence=_clamp(group.top_trust + bonus),
        method=ResolutionMethod.AGREEMENT,
        contributing_sources=group.sources,
        as_of=_latest(group.records),
        winner=group,
        reason=f"{group.size} sources agree",
    )


def _is_tie(winner: ValueGroup, runner_up: ValueGroup, margin: float) -> bool:
    if winner.best_tier == runner_up.best_tier and winner.size == runner_up.size:
        return True
    if winner.total_trust <= 0.0:
        return True
    return (winner.total_trust - runner_up.total_trust) / winner.total_trust < margin


def _hierarchy(validation: CrossValidation, policy: ResolutionPolicy) -> FieldResolution:
    thresholds = policy.thresholds
    winner, runner_up = validation.groups[0], validation.groups[1]
    losing_trust = sum(group.total_trust for group in validation.groups[1:])
    total_trust = winner.total_trust + losing_trust
    penalty = thresholds.conflict_penalty * (losing_trust / total_trust if total_trust else 1.0)
    confidence = winner.top_trust + thresholds.agreement_bonus * (winner.size - 1) - penalty
    confidence = min(confidence, thresholds.contested_ceiling)
    tie = _is_tie(winner, runner_up, thresholds.near_tie_margin)
    if tie:
        confidence = min(confidence, thresholds.tie_ceiling)
        reason = (
            f"near-tie between {', '.join(winner.sources)} and {', '.join(runner_up.sources)}; "
            "needs review"
        )
    else:
        reason = (
            f"{', '.join(winner.sources)} outweigh {', '.join(runner_up.sources)} "
            f"({winner.total_trust:.2f} vs {runner_up.total_trust:.2f})"
        )
    return FieldResolution(
        field_name=validation.field_name,
        value=display_value(winner.representative.value, validation.category),
        confidence=_clamp(confidence),
        method=ResolutionMethod.TRUST_HIERARCHY,
        contributing_sources=winner.sources,
        as_of=_latest(winner.records),
        winner=winner,
        tie=tie,
        reason=reason,
    )


def resolve_field(
    validation: CrossValidation, *, policy: ResolutionPolicy
) -> FieldResolution | None:
    """Pick one value (and its confidence) for the field described by ``validation``."""

    if not validation.has_claims:
        return None

    override = _override_resolution(validation, policy)
    if override is not None:
        return override

    if validation.source_count == 1:
        return _single_source(validation, policy)

    if validation.category in NUMERIC_CATEGORIES:
        weights = policy.blend_weights_for(validation.field_name)
        if weights:
            blended = _blend(validation, weights, policy)
            if blended is not None:
                return blended

    if validation.in_agreement:
        return _agreement(validation, policy)
    return _hierarchy(validation, policy)


@dataclass(slots=True)
class TrustWeightedResolver:
    """Resolver stage bound to a policy."""

    policy: ResolutionPolicy

    def __call__(self, validation: CrossValidation) -> FieldResolution | None:
        return resolve_field(validation, policy=self.policy)


def resolve_opinion(
    records: Iterable[SourceRecord],
    *,
    field_name: str,
    category: FieldCategory,
    policy: ResolutionPolicy,
) -> FieldResolution | None:
    """Propose a value for an opinion field without any cross-source consensus.

    Human-authored records win; otherwise the most trusted automated claim is
    carried forward as a proposal for a reviewer.
    """

    claims = latest_claims_per_source(records)
    if not claims:
        return None
    authored = [record for record in claims if not policy.profile(record.source_id).automated]
    if authored:
        record = max(authored, key=lambda rec: (rec.retrieved_at, rec.source_id))
        return FieldResolution(
            field_name=field_name,
            value=display_value(record.value, category),
            confidence=_clamp(policy.trust_for(record.source_id, category)),
            method=ResolutionMethod.MANUAL_OVERRIDE,
            contributing_sources=(record.source_id,),
            as_of=record.retrieved_at,
            reason=f"authored by {record.source_id}",
        )
    record = min(
        claims,
        key=lambda rec: (
            -policy.trust_for(rec.source_id, category),
            policy.hierarchy_rank(rec.source_id, category),
            rec.source_id,
        ),
    )
    return FieldResolution(
        field_name=field_name,
        value=display_value(record.value, category),
        confidence=_clamp(policy.trust_for(record.source_id, category)),
        method=(
            ResolutionMethod.SINGLE_SOURCE if len(claims) == 1 else ResolutionMethod.TRUST_HIERARCHY
        ),
        contributing_sources=(record.source_id,),
        as_of=record.retrieved_at,
        reason=f"proposed from automated source {record.source_id}",
    )


@runtime_checkable
class ResolveField(Protocol):
    """Stage protocol: turn a cross-validated field into a resolution."""

    def __call__(self, validation: CrossValidation) -> FieldResolution | None: ...
