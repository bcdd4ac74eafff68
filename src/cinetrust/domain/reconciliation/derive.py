"""Recomputation of derived fields from other resolved fields."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Final

from cinetrust.domain.model import (
    ClaimKind,
    ConsensusDecision,
    ResolutionMethod,
    ResolvedValue,
)

from .normalize import coerce_number, coerce_year

if TYPE_CHECKING:
    from datetime import datetime

    from cinetrust.domain.model import FieldValue

    from .policy import FieldSpec, ResolutionPolicy

type Derivation = Callable[[Mapping[str, FieldValue], ResolutionPolicy], FieldValue]


def box_office_verdict(inputs: Mapping[str, FieldValue], policy: ResolutionPolicy) -> FieldValue:
    gross = coerce_number(inputs["box_office_gross_inr"])
    for label, minimum in policy.verdict_thresholds:
        if gross >= minimum:
            return label
    return None


def release_decade(inputs: Mapping[str, FieldValue], policy: ResolutionPolicy) -> FieldValue:
    _ = policy
    year = coerce_year(inputs["release_year"])
    return f"{year // 10 * 10}s"


DERIVATIONS: Final[Mapping[str, Derivation]] = {
    "box_office_verdict": box_office_verdict,
    "release_decade": release_decade,
}


def derive_field(
    spec: FieldSpec,
    resolved: Mapping[str, ResolvedValue],
    *,
    policy: ResolutionPolicy,
    resolved_at: datetime,
    derivations: Mapping[str, Derivation] = DERIVATIONS,
) -> ResolvedValue | None:
    """Recompute ``spec`` from its inputs; ``None`` when any input is unresolved."""

    if spec.kind is not ClaimKind.DERIVED:
        raise ValueError(f"{spec.name} is not a derived field")
    derivation = derivations.get(spec.name)
    if derivation is None:
        raise LookupError(f"No derivation registered for {spec.name}")

    inputs = [resolved.get(name) for name in spec.derived_from]
    present = [value for value in inputs if value is not None]
    if len(present) != len(inputs):
        return None

    value = derivation({item.field_name: item.value for item in present}, policy)
    if value is None:
        return None

    decision = (
        ConsensusDecision.AUTO_APPROVE
        if all(item.publishable for item in present)
        else ConsensusDecision.QUEUE_FOR_REVIEW
    )
    sources = sorted({source for item in present for source in item.contributing_sources})
    return ResolvedValue(
        entity_id=present[0].entity_id,
        field_name=spec.name,
        value=value,
        confidence=min(item.confidence for item in present),
        contributing_sources=tuple(sources),
        method=ResolutionMethod.DERIVED,
        claim_kind=ClaimKind.DERIVED,
        decision=decision,
        as_of=min(item.as_of for item in present),
        resolved_at=resolved_at,
    )
