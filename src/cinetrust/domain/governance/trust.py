"""Trust scoring with a per-rule breakdown and a plain-language explanation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from cinetrust.domain.model import RuleContribution, TrustScore

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from .policy import GovernancePolicy
    from .rules import RuleOutcome

IMPROVEMENTS: Final[dict[str, str]] = {
    "needs_revalidation": "Refresh provider data to restore decayed confidence",
    "needs_primary_source": "Add an official or regional source for key facts",
    "needs_box_office_source": "Corroborate box office figures with a second source",
}

_COMPONENT_LABELS: Final[dict[str, str]] = {
    "confidence": "field confidence",
    "completeness": "required-field coverage",
    "agreement": "source agreement",
    "freshness": "data freshness",
}


def base_score(components: Mapping[str, float], policy: GovernancePolicy) -> float:
    return sum(
        weight * components.get(name, 0.0) for name, weight in policy.trust_weights.items()
    )


def _describe_component(name: str, value: float) -> str:
    label = _COMPONENT_LABELS.get(name, name)
    if value >= 0.8:  # noqa: PLR2004
        tone = "strong"
    elif value >= 0.5:  # noqa: PLR2004
        tone = "moderate"
    else:
        tone = "weak"
    return f"{tone} {label} ({value:.2f})"


def build_trust_score(
    entity_id: str,
    *,
    components: Mapping[str, float],
    outcomes: Sequence[RuleOutcome],
    policy: GovernancePolicy,
    computed_at: datetime,
) -> TrustScore:
    """Combine weighted components and rule adjustments into an explainable score."""

    base = base_score(components, policy)
    delta = sum(outcome.trust_delta for outcome in outcomes)
    score = round(min(1.0, max(0.0, base + delta)), 6)
    level = policy.level_for(score)

    breakdown = {
        outcome.rule_id: RuleContribution(
            rule_id=outcome.rule_id,
            rule_version=outcome.rule_version,
            passed=outcome.passed,
            severity=outcome.severity,
            trust_delta=outcome.trust_delta,
            explanation=outcome.explanation,
        )
        for outcome in outcomes
    }

    key_factors = tuple(
        _describe_component(name, components[name]) for name in sorted(components)
    )
    blocking = [outcome.explanation for outcome in outcomes if outcome.blocks_publish]
    warnings = tuple(outcome.explanation for outcome in outcomes if outcome.is_warning)
    flags = sorted({flag for outcome in outcomes for flag in outcome.flags})
    improvements = tuple(IMPROVEMENTS.get(flag, flag.replace("_", " ")) for flag in flags)

    parts = [f"Trust is {level} ({score:.2f}; base {base:.2f}, rule adjustments {delta:+.2f})."]
    if blocking:
        parts.append("Publishing blocked: " + "; ".join(blocking) + ".")
    if warnings:
        parts.append(f"{len(warnings)} warning(s).")
    else:
        parts.append("No rule warnings.")

    return TrustScore(
        entity_id=entity_id,
        score=score,
        overall_level=level,
        components={name: round(value, 6) for name, value in components.items()},
        breakdown_by_rule=breakdown,
        explanation=" ".join(parts),
        key_factors=key_factors,
        warnings=warnings,
        improvements=improvements,
        computed_at=computed_at,
    )
