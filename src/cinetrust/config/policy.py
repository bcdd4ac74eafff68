"""Resolution and governance policy files.

A policy file is TOML. Every table is optional and overrides the built-in
defaults entry by entry::

    version = "telugu-2025"

    [thresholds]
    auto_approve = 0.9

    [sources.regional]
    tier = 2
    trust = 0.82

    [blend_weights.rating]
    imdb = 0.6
    tmdb = 0.4

    [[governance.rules]]
    rule_id = "certification-present"
    name = "Certification present"
    description = "Movies need an age rating"
    category = "content"
    severity = "high"
    applies_to = ["movie"]
    conditions = [{ fact = "field.age_rating", operator = "is_null" }]
    actions = [{ type = "adjust_trust", delta = -0.1 }]
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cinetrust.domain.governance.policy import DEFAULT_GOVERNANCE_POLICY, GovernancePolicy
from cinetrust.domain.governance.rules import (
    ActionType,
    ConditionOperator,
    GovernanceRule,
    RuleAction,
    RuleCondition,
)
from cinetrust.domain.model import (
    ClaimKind,
    EntityKind,
    FieldCategory,
    RuleCategory,
    RuleSeverity,
)
from cinetrust.domain.reconciliation.policy import (
    DEFAULT_POLICY,
    DecayPolicy,
    FieldSpec,
    ResolutionPolicy,
    SourceProfile,
)

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

POLICY_FILE_ENV = "CINETRUST_POLICY_FILE"


class PolicyModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class SourceModel(PolicyModel):
    tier: int = Field(ge=1)
    trust: float = Field(ge=0.0, le=1.0)
    automated: bool = True
    override: bool = False


class FieldModel(PolicyModel):
    kind: ClaimKind
    category: FieldCategory
    required_for: list[EntityKind] = Field(default_factory=list)
    derived_from: list[str] = Field(default_factory=list)


class ThresholdsModel(PolicyModel):
    auto_approve: float | None = Field(default=None, gt=0.0, le=1.0)
    min_agreeing_sources: int | None = Field(default=None, ge=1)
    authoritative_tier: int | None = Field(default=None, ge=1)
    agreement_bonus: float | None = Field(default=None, ge=0.0)
    conflict_penalty: float | None = Field(default=None, ge=0.0)
    near_tie_margin: float | None = Field(default=None, ge=0.0)
    tie_gap: float | None = Field(default=None, gt=0.0)
    contested_ceiling: float | None = Field(default=None, gt=0.0, le=1.0)
    low_trust_tier: int | None = Field(default=None, ge=1)
    low_trust_penalty: float | None = Field(default=None, ge=0.0)
    text_similarity: float | None = Field(default=None, ge=0.0, le=1.0)
    list_overlap: float | None = Field(default=None, ge=0.0, le=1.0)


class DecayModel(PolicyModel):
    default_window_days: int | None = Field(default=None, ge=1)
    floor: float | None = Field(default=None, ge=0.0, le=1.0)
    windows: dict[FieldCategory, int] = Field(default_factory=dict)


class VerdictModel(PolicyModel):
    name: str
    min_gross: float = Field(ge=0.0)


class ConditionModel(PolicyModel):
    fact: str
    operator: ConditionOperator
    value: Any = None


class ActionModel(PolicyModel):
    type: ActionType
    delta: float = 0.0
    flag: str | None = None
    message: str | None = None


class RuleModel(PolicyModel):
    rule_id: str
    name: str
    description: str
    category: RuleCategory
    severity: RuleSeverity
    conditions: list[ConditionModel] = Field(min_length=1)
    actions: list[ActionModel] = Field(default_factory=list)
    version: int = Field(default=1, ge=1)
    applies_to: list[EntityKind] = Field(default_factory=list)
    enabled: bool = True


class GovernanceModel(PolicyModel):
    version: str | None = None
    replace_rules: bool = False
    rules: list[RuleModel] = Field(default_factory=list)
    trust_weights: dict[str, float] | None = None
    high_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    medium_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    age_ratings: list[str] | None = None


class PolicyFile(PolicyModel):
    version: str | None = None
    thresholds: ThresholdsModel = Field(default_factory=ThresholdsModel)
    sources: dict[str, SourceModel] = Field(default_factory=dict)
    fields: dict[str, FieldModel] = Field(default_factory=dict)
    field_trust: dict[FieldCategory, dict[str, float]] = Field(default_factory=dict)
    hierarchy: dict[FieldCategory, list[str]] = Field(default_factory=dict)
    blend_weights: dict[str, dict[str, float]] = Field(default_factory=dict)
    aliases: dict[FieldCategory, dict[str, str]] = Field(default_factory=dict)
    numeric_tolerance: dict[FieldCategory, float] = Field(default_factory=dict)
    decay: DecayModel = Field(default_factory=DecayModel)
    verdicts: list[VerdictModel] | None = None
    governance: GovernanceModel = Field(default_factory=GovernanceModel)


@dataclass(frozen=True, slots=True)
class PolicyConfig:
    resolution: ResolutionPolicy
    governance: GovernancePolicy
    source: Path | None = None


def _merged[K, V](base: Mapping[K, V], override: Mapping[K, V]) -> Mapping[K, V]:
    return MappingProxyType({**base, **override})


def _set_fields(model: BaseModel) -> dict[str, object]:
    return {name: value for name, value in model if value is not None}


def build_resolution_policy(
    data: PolicyFile, *, base: ResolutionPolicy = DEFAULT_POLICY
) -> ResolutionPolicy:
    sources = {
        source_id: SourceProfile(source_id=source_id, **source.model_dump())
        for source_id, source in data.sources.items()
    }
    fields = {
        name: FieldSpec(
            name=name,
            kind=spec.kind,
            category=spec.category,
            required_for=frozenset(spec.required_for),
            derived_from=tuple(spec.derived_from),
        )
        for name, spec in data.fields.items()
    }
    decay = DecayPolicy(
        windows=_merged(base.decay.windows, data.decay.windows),
        default_window_days=data.decay.default_window_days or base.decay.default_window_days,
        floor=data.decay.floor if data.decay.floor is not None else base.decay.floor,
    )
    verdicts = (
        tuple((verdict.name, verdict.min_gross) for verdict in data.verdicts)
        if data.verdicts is not None
        else base.verdict_thresholds
    )
    return ResolutionPolicy(
        version=data.version or base.version,
        sources=_merged(base.sources, sources),
        fields=_merged(base.fields, fields),
        field_trust=_merged(base.field_trust, data.field_trust),
        hierarchy=_merged(
            base.hierarchy, {key: tuple(order) for key, order in data.hierarchy.items()}
        ),
        blend_weights=_merged(base.blend_weights, data.blend_weights),
        aliases=_merged(base.aliases, data.aliases),
        numeric_tolerance=_merged(base.numeric_tolerance, data.numeric_tolerance),
        thresholds=replace(base.thresholds, **_set_fields(data.thresholds)),
        decay=decay,
        verdict_thresholds=tuple(sorted(verdicts, key=lambda item: -item[1])),
    )


def _rule(model: RuleModel) -> GovernanceRule:
    return GovernanceRule(
        rule_id=model.rule_id,
        name=model.name,
        description=model.description,
        category=model.category,
        severity=model.severity,
        conditions=tuple(
            RuleCondition(
                fact=condition.fact,
                operator=condition.operator,
                value=tuple(condition.value)
                if isinstance(condition.value, list)
                else condition.value,
            )
            for condition in model.conditions
        ),
        actions=tuple(RuleAction(**action.model_dump()) for action in model.actions),
        version=model.version,
        applies_to=frozenset(model.applies_to),
        enabled=model.enabled,
    )


def build_governance_policy(
    data: GovernanceModel, *, base: GovernancePolicy = DEFAULT_GOVERNANCE_POLICY
) -> GovernancePolicy:
    overrides = {rule.rule_id: _rule(rule) for rule in data.rules}
    if data.replace_rules:
        rules = tuple(overrides.values())
    else:
        kept = tuple(overrides.pop(rule.rule_id, rule) for rule in base.rules)
        rules = kept + tuple(overrides.values())
    return GovernancePolicy(
        version=data.version or base.version,
        rules=rules,
        trust_weights=MappingProxyType(data.trust_weights or dict(base.trust_weights)),
        high_threshold=(
            data.high_threshold if data.high_threshold is not None else base.high_threshold
        ),
        medium_threshold=(
            data.medium_threshold if data.medium_threshold is not None else base.medium_threshold
        ),
        age_ratings=tuple(data.age_ratings) if data.age_ratings else base.age_ratings,
    )


def parse_policy(raw: Mapping[str, object], *, source: Path | None = None) -> PolicyConfig:
    try:
        data = PolicyFile.model_validate(raw)
        resolution = build_resolution_policy(data)
        governance = build_governance_policy(data.governance)
    except (ValidationError, ValueError) as exc:
        where = f" in {source}" if source is not None else ""
        raise ConfigurationError(f"Invalid policy{where}: {exc}") from exc
    return PolicyConfig(resolution=resolution, governance=governance, source=source)


def load_policy_file(path: Path) -> PolicyConfig:
    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Policy file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Policy file {path} is not valid TOML: {exc}") from exc
    config = parse_policy(raw, source=path)
    log.info(
        "Loaded policy %s (governance %s) from %s",
        config.resolution.version,
        config.governance.version,
        path,
    )
    return config


def get_policy_config(*, path: Path | None = None) -> PolicyConfig:
    """Load the policy from ``path``, ``$CINETRUST_POLICY_FILE`` or the built-in defaults."""

    if path is None:
        env_path = os.getenv(POLICY_FILE_ENV)
        path = Path(env_path).expanduser() if env_path else None
    if path is None:
        return PolicyConfig(resolution=DEFAULT_POLICY, governance=DEFAULT_GOVERNANCE_POLICY)
    return load_policy_file(path)
