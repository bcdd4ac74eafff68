"""Governance rules as data: named, versioned conditions paired with actions.

A rule describes a *violation*: when all of its conditions hold for an entity the
rule fails and its actions apply. Every evaluation returns a ``RuleOutcome`` with a
human-readable explanation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from cinetrust.domain.model import EntityKind, RuleCategory, RuleSeverity

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

type EvaluationContext = Mapping[str, object]


class ConditionOperator(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IN = "in"
    NOT_IN = "not_in"


class ActionType(StrEnum):
    BLOCK = "block"
    REQUIRE_REVIEW = "require_review"
    ADJUST_TRUST = "adjust_trust"
    FLAG = "flag"
    LOG = "log"


def _compare(  # noqa: PLR0911
    actual: object, expected: object, operator: ConditionOperator
) -> bool:
    match operator:
        case ConditionOperator.IS_NULL:
            return actual is None
        case ConditionOperator.IS_NOT_NULL:
            return actual is not None
        case ConditionOperator.EQUALS:
            return actual == expected
        case ConditionOperator.NOT_EQUALS:
            return actual != expected
        case ConditionOperator.CONTAINS:
            if isinstance(actual, str) and isinstance(expected, str):
                return expected.casefold() in actual.casefold()
            if isinstance(actual, list | tuple | set | frozenset):
                return expected in actual
            return False
        case ConditionOperator.GREATER_THAN:
            return _ordered(actual, expected, greater=True)
        case ConditionOperator.LESS_THAN:
            return _ordered(actual, expected, greater=False)
        case ConditionOperator.IN:
            return isinstance(expected, list | tuple | set | frozenset) and actual in expected
        case ConditionOperator.NOT_IN:
            return isinstance(expected, list | tuple | set | frozenset) and actual not in expected


def _ordered(actual: object, expected: object, *, greater: bool) -> bool:
    if isinstance(actual, bool) or not isinstance(actual, int | float):
        return False
    if isinstance(expected, bool) or not isinstance(expected, int | float):
        return False
    return actual > expected if greater else actual < expected


@dataclass(frozen=True, slots=True, kw_only=True)
class RuleCondition:
    fact: str
    operator: ConditionOperator
    value: object = None

    def holds(self, context: EvaluationContext) -> bool:
        return _compare(context.get(self.fact), self.value, self.operator)

    def describe(self, context: EvaluationContext) -> str:
        actual = context.get(self.fact)
        if self.operator in {ConditionOperator.IS_NULL, ConditionOperator.IS_NOT_NULL}:
            return f"{self.fact} {self.operator} (is {actual!r})"
        return f"{self.fact}={actual!r} {self.operator} {self.value!r}"


@dataclass(frozen=True, slots=True, kw_only=True)
class RuleAction:
    type: ActionType
    delta: float = 0.0
    flag: str | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class RuleOutcome:
    rule_id: str
    rule_version: int
    name: str
    category: RuleCategory
    severity: RuleSeverity
    passed: bool
    explanation: str
    trust_delta: float = 0.0
    flags: tuple[str, ...] = ()
    requires_review: bool = False
    blocks: bool = False

    @property
    def blocks_publish(self) -> bool:
        return not self.passed and (self.blocks or self.severity is RuleSeverity.CRITICAL)

    @property
    def is_warning(self) -> bool:
        return not self.passed and not self.blocks_publish


@dataclass(frozen=True, slots=True, kw_only=True)
class GovernanceRule:
    rule_id: str
    name: str
    description: str
    category: RuleCategory
    severity: RuleSeverity
    conditions: tuple[RuleCondition, ...]
    actions: tuple[RuleAction, ...] = ()
    version: int = 1
    applies_to: frozenset[EntityKind] = field(default_factory=frozenset[EntityKind])
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.conditions:
            raise ValueError(f"Rule {self.rule_id} needs at least one condition")

    def applies(self, kind: EntityKind) -> bool:
        return self.enabled and (not self.applies_to or kind in self.applies_to)

    def evaluate(self, context: EvaluationContext) -> RuleOutcome:
        violated = all(condition.holds(context) for condition in self.conditions)
        if not violated:
            return RuleOutcome(
                rule_id=self.rule_id,
                rule_version=self.version,
                name=self.name,
                category=self.category,
                severity=self.severity,
                passed=True,
                explanation=f"{self.name}: passed",
            )

        details = "; ".join(condition.describe(context) for condition in self.conditions)
        kinds = {action.type for action in self.actions}
        messages = [action.message for action in self.actions if action.message]
        explanation = f"{self.name}: {self.description} ({details})"
        if messages:
            explanation = f"{explanation}. {' '.join(messages)}"
        if ActionType.LOG in kinds:
            level = (
                logging.WARNING
                if self.severity in {RuleSeverity.CRITICAL, RuleSeverity.HIGH}
                else logging.INFO
            )
            log.log(level, "Rule %s v%s failed: %s", self.rule_id, self.version, explanation)
        return RuleOutcome(
            rule_id=self.rule_id,
            rule_version=self.version,
            name=self.name,
            category=self.category,
            severity=self.severity,
            passed=False,
            explanation=explanation,
            trust_delta=sum(
                action.delta for action in self.actions if action.type is ActionType.ADJUST_TRUST
            ),
            flags=tuple(
                action.flag
                for action in self.actions
                if action.type is ActionType.FLAG and action.flag
            ),
            requires_review=ActionType.REQUIRE_REVIEW in kinds,
            blocks=ActionType.BLOCK in kinds,
        )


def _cond(fact: str, operator: ConditionOperator, value: object = None) -> RuleCondition:
    return RuleCondition(fact=fact, operator=operator, value=value)


DEFAULT_RULES: Final[tuple[GovernanceRule, ...]] = (
    GovernanceRule(
        rule_id="required-fields",
        name="Required fields resolved",
        description="Fields required for publishing have no resolved value",
        category=RuleCategory.CONTENT,
        severity=RuleSeverity.CRITICAL,
        conditions=(_cond("missing_required_count", ConditionOperator.GREATER_THAN, 0),),
        actions=(RuleAction(type=ActionType.BLOCK, message="Entity cannot be published."),),
    ),
    GovernanceRule(
        rule_id="age-rating-downgrade",
        name="Age rating consistency",
        description="Age rating would be downgraded below a previously published rating",
        category=RuleCategory.SAFETY,
        severity=RuleSeverity.CRITICAL,
        conditions=(_cond("age_rating_downgrade", ConditionOperator.EQUALS, True),),
        actions=(
            RuleAction(type=ActionType.BLOCK, message="Child-safety rating needs manual sign-off."),
        ),
        applies_to=frozenset({EntityKind.MOVIE}),
    ),
    GovernanceRule(
        rule_id="freshness-window",
        name="Data freshness",
        description="No field has been refreshed within the freshness window",
        category=RuleCategory.FRESHNESS,
        severity=RuleSeverity.HIGH,
        conditions=(_cond("days_since_refresh", ConditionOperator.GREATER_THAN, 180),),
        actions=(
            RuleAction(type=ActionType.ADJUST_TRUST, delta=-0.1),
            RuleAction(type=ActionType.FLAG, flag="needs_revalidation"),
        ),
    ),
    GovernanceRule(
        rule_id="decayed-fields",
        name="Decayed confidence",
        description="Approved fields decayed below the auto-approval threshold",
        category=RuleCategory.FRESHNESS,
        severity=RuleSeverity.MEDIUM,
        conditions=(_cond("stale_field_count", ConditionOperator.GREATER_THAN, 0),),
        actions=(RuleAction(type=ActionType.FLAG, flag="needs_revalidation"),),
    ),
    GovernanceRule(
        rule_id="primary-source",
        name="Primary source present",
        description="Only low-tier sources back this entity",
        category=RuleCategory.SOURCE,
        severity=RuleSeverity.MEDIUM,
        conditions=(_cond("best_source_tier", ConditionOperator.GREATER_THAN, 2),),
        actions=(
            RuleAction(type=ActionType.ADJUST_TRUST, delta=-0.15),
            RuleAction(type=ActionType.FLAG, flag="needs_primary_source"),
        ),
    ),
    GovernanceRule(
        rule_id="source-disagreement",
        name="Source agreement",
        description="Sources contradict each other on factual fields",
        category=RuleCategory.TRUST,
        severity=RuleSeverity.MEDIUM,
        conditions=(_cond("critical_discrepancy_count", ConditionOperator.GREATER_THAN, 0),),
        actions=(
            RuleAction(type=ActionType.ADJUST_TRUST, delta=-0.2),
            RuleAction(type=ActionType.LOG, message="Contested fields are queued individually."),
        ),
    ),
    GovernanceRule(
        rule_id="box-office-sources",
        name="Box office corroboration",
        description="Box office figures need at least two independent sources",
        category=RuleCategory.SOURCE,
        severity=RuleSeverity.MEDIUM,
        conditions=(
            _cond("has_box_office", ConditionOperator.EQUALS, True),
            _cond("box_office_source_count", ConditionOperator.LESS_THAN, 2),
        ),
        actions=(
            RuleAction(type=ActionType.ADJUST_TRUST, delta=-0.25),
            RuleAction(type=ActionType.FLAG, flag="needs_box_office_source"),
        ),
        applies_to=frozenset({EntityKind.MOVIE}),
    ),
    GovernanceRule(
        rule_id="pending-review",
        name="Review backlog",
        description="Some fields are waiting for a human decision",
        category=RuleCategory.TRUST,
        severity=RuleSeverity.LOW,
        conditions=(_cond("pending_review_count", ConditionOperator.GREATER_THAN, 0),),
        actions=(
            RuleAction(type=ActionType.ADJUST_TRUST, delta=-0.05),
            RuleAction(type=ActionType.LOG),
        ),
    ),
)
