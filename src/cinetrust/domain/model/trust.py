"""Explainable per-entity trust scores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003

from .enums import RuleSeverity, TrustLevel


@dataclass(frozen=True, slots=True, kw_only=True)
class RuleContribution:
    """How one governance rule moved an entity's trust score."""

    rule_id: str
    rule_version: int
    passed: bool
    severity: RuleSeverity
    trust_delta: float
    explanation: str


@dataclass(frozen=True, slots=True, kw_only=True)
class TrustScore:
    """Aggregate trust for an entity, always stored together with its breakdown."""

    entity_id: str
    score: float
    overall_level: TrustLevel
    components: dict[str, float]
    breakdown_by_rule: dict[str, RuleContribution]
    explanation: str
    key_factors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    computed_at: datetime = field(compare=False)

    def __post_init__(self) -> None:
        if not self.components:
            raise ValueError("TrustScore requires a component breakdown")
        if not self.explanation.strip():
            raise ValueError("TrustScore requires an explanation")
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Trust score out of range: {self.score}")
