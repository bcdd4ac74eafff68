"""Governance policy: rule set, trust weighting and level thresholds."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from cinetrust.domain.model import TrustLevel

from .rules import DEFAULT_RULES, GovernanceRule

if TYPE_CHECKING:
    from collections.abc import Mapping

TRUST_COMPONENTS: Final[tuple[str, ...]] = ("confidence", "completeness", "agreement", "freshness")

DEFAULT_TRUST_WEIGHTS: Final[Mapping[str, float]] = MappingProxyType(
    {"confidence": 0.4, "completeness": 0.2, "agreement": 0.2, "freshness": 0.2}
)

# Least to most restrictive.
DEFAULT_AGE_RATINGS: Final[tuple[str, ...]] = ("u", "u/a", "a", "s")


@dataclass(frozen=True, slots=True, kw_only=True)
class GovernancePolicy:
    version: str = "default-1"
    rules: tuple[GovernanceRule, ...] = DEFAULT_RULES
    trust_weights: Mapping[str, float] = field(default_factory=lambda: DEFAULT_TRUST_WEIGHTS)
    high_threshold: float = 0.75
    medium_threshold: float = 0.5
    age_ratings: tuple[str, ...] = DEFAULT_AGE_RATINGS

    def __post_init__(self) -> None:
        unknown = set(self.trust_weights) - set(TRUST_COMPONENTS)
        if unknown:
            raise ValueError(f"Unknown trust components: {sorted(unknown)}")
        total = sum(self.trust_weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Trust weights must sum to 1.0 (got {total:.3f})")
        if not 0.0 <= self.medium_threshold <= self.high_threshold <= 1.0:
            raise ValueError("Trust level thresholds must satisfy 0 <= medium <= high <= 1")
        seen: set[str] = set()
        for rule in self.rules:
            if rule.rule_id in seen:
                raise ValueError(f"Duplicate rule id: {rule.rule_id}")
            seen.add(rule.rule_id)

    def level_for(self, score: float) -> TrustLevel:
        if score >= self.high_threshold:
            return TrustLevel.HIGH
        if score >= self.medium_threshold:
            return TrustLevel.MEDIUM
        return TrustLevel.LOW

    def age_rating_rank(self, rating: str) -> int | None:
        try:
            return self.age_ratings.index(rating)
        except ValueError:
            return None


DEFAULT_GOVERNANCE_POLICY: Final[GovernancePolicy] = GovernancePolicy()
