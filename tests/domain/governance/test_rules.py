from __future__ import annotations

import logging

import pytest

from cinetrust.domain.governance import (
    DEFAULT_RULES,
    ActionType,
    ConditionOperator,
    GovernancePolicy,
    GovernanceRule,
    RuleAction,
    RuleCondition,
)
from cinetrust.domain.model import EntityKind, RuleCategory, RuleSeverity, TrustLevel


def _rule(*conditions: RuleCondition, actions: tuple[RuleAction, ...] = ()) -> GovernanceRule:
    return GovernanceRule(
        rule_id="test-rule",
        name="Test rule",
        description="Something is off",
        category=RuleCategory.CONTENT,
        severity=RuleSeverity.MEDIUM,
        conditions=conditions,
        actions=actions,
    )


@pytest.mark.parametrize(
    ("operator", "actual", "expected", "holds"),
    [
        (ConditionOperator.EQUALS, "u/a", "u/a", True),
        (ConditionOperator.NOT_EQUALS, "u/a", "a", True),
        (ConditionOperator.CONTAINS, "Roudram Ranam Rudhiram", "ranam", True),
        (ConditionOperator.CONTAINS, ("Drama", "Action"), "Action", True),
        (ConditionOperator.CONTAINS, 42, "4", False),
        (ConditionOperator.GREATER_THAN, 200, 180, True),
        (ConditionOperator.GREATER_THAN, None, 180, False),
        (ConditionOperator.GREATER_THAN, True, 0, False),
        (ConditionOperator.LESS_THAN, 1, 2, True),
        (ConditionOperator.IS_NULL, None, None, True),
        (ConditionOperator.IS_NOT_NULL, 0, None, True),
        (ConditionOperator.IN, "movie", ("movie", "celebrity"), True),
        (ConditionOperator.NOT_IN, "series", ("movie", "celebrity"), True),
        (ConditionOperator.IN, "movie", "movie", False),
    ],
)
def test_condition_operators(
    operator: ConditionOperator, actual: object, expected: object, holds: bool
) -> None:
    condition = RuleCondition(fact="fact", operator=operator, value=expected)

    assert condition.holds({"fact": actual}) is holds


def test_missing_fact_reads_as_null() -> None:
    condition = RuleCondition(fact="absent", operator=ConditionOperator.IS_NULL)

    assert condition.holds({})


def test_rule_passes_unless_every_condition_holds() -> None:
    rule = _rule(
        RuleCondition(fact="has_box_office", operator=ConditionOperator.EQUALS, value=True),
        RuleCondition(
            fact="box_office_source_count", operator=ConditionOperator.LESS_THAN, value=2
        ),
    )

    outcome = rule.evaluate({"has_box_office": True, "box_office_source_count": 2})

    assert outcome.passed
    assert outcome.trust_delta == 0.0
    assert outcome.explanation == "Test rule: passed"


def test_violated_rule_explains_itself_and_applies_actions() -> None:
    rule = _rule(
        RuleCondition(
            fact="days_since_refresh", operator=ConditionOperator.GREATER_THAN, value=180
        ),
        actions=(
            RuleAction(type=ActionType.ADJUST_TRUST, delta=-0.1),
            RuleAction(type=ActionType.FLAG, flag="needs_revalidation"),
            RuleAction(type=ActionType.REQUIRE_REVIEW, message="Ask a curator."),
        ),
    )

    outcome = rule.evaluate({"days_since_refresh": 400})

    assert not outcome.passed
    assert outcome.trust_delta == pytest.approx(-0.1)
    assert outcome.flags == ("needs_revalidation",)
    assert outcome.requires_review
    assert "days_since_refresh=400" in outcome.explanation
    assert outcome.explanation.endswith("Ask a curator.")
    assert outcome.is_warning
    assert not outcome.blocks_publish


def test_only_critical_failures_block() -> None:
    rule = GovernanceRule(
        rule_id="critical",
        name="Critical",
        description="Always fails",
        category=RuleCategory.SAFETY,
        severity=RuleSeverity.CRITICAL,
        conditions=(RuleCondition(fact="kind", operator=ConditionOperator.EQUALS, value="movie"),),
    )

    outcome = rule.evaluate({"kind": "movie"})

    assert outcome.blocks_publish
    assert not outcome.is_warning


def test_block_action_blocks_below_critical_severity() -> None:
    rule = GovernanceRule(
        rule_id="embargo",
        name="Embargo",
        description="Title is under embargo",
        category=RuleCategory.CONTENT,
        severity=RuleSeverity.HIGH,
        conditions=(
            RuleCondition(fact="embargoed", operator=ConditionOperator.EQUALS, value=True),
        ),
        actions=(RuleAction(type=ActionType.BLOCK),),
    )

    outcome = rule.evaluate({"embargoed": True})

    assert not outcome.passed
    assert outcome.blocks_publish
    assert not outcome.is_warning
    assert not outcome.requires_review


def test_flag_and_trust_actions_do_not_block() -> None:
    rule = _rule(
        RuleCondition(fact="count", operator=ConditionOperator.GREATER_THAN, value=0),
        actions=(
            RuleAction(type=ActionType.ADJUST_TRUST, delta=-0.1),
            RuleAction(type=ActionType.FLAG, flag="needs_primary_source"),
        ),
    )

    outcome = rule.evaluate({"count": 3})

    assert not outcome.blocks_publish
    assert not outcome.requires_review


def test_log_action_writes_the_explanation(caplog: pytest.LogCaptureFixture) -> None:
    rule = _rule(
        RuleCondition(fact="count", operator=ConditionOperator.GREATER_THAN, value=0),
        actions=(RuleAction(type=ActionType.LOG, message="Curators notified."),),
    )

    with caplog.at_level(logging.INFO, logger="cinetrust.domain.governance.rules"):
        rule.evaluate({"count": 3})
        rule.evaluate({"count": 0})

    [entry] = caplog.records
    assert entry.levelno == logging.INFO
    assert "test-rule" in entry.getMessage()
    assert "Curators notified." in entry.getMessage()


def test_rules_can_be_scoped_to_entity_kinds() -> None:
    rule = next(rule for rule in DEFAULT_RULES if rule.rule_id == "age-rating-downgrade")

    assert rule.applies(EntityKind.MOVIE)
    assert not rule.applies(EntityKind.CELEBRITY)


def test_rules_need_conditions() -> None:
    with pytest.raises(ValueError, match="at least one condition"):
        _rule()


def test_policy_rejects_duplicate_rule_ids() -> None:
    with pytest.raises(ValueError, match="Duplicate rule id"):
        GovernancePolicy(rules=(DEFAULT_RULES[0], DEFAULT_RULES[0]))


def test_policy_rejects_weights_not_summing_to_one() -> None:
    with pytest.raises(ValueError, match="sum to 1.0"):
        GovernancePolicy(trust_weights={"confidence": 0.5, "freshness": 0.2})


def test_policy_rejects_unknown_components() -> None:
    with pytest.raises(ValueError, match="Unknown trust components"):
        GovernancePolicy(trust_weights={"confidence": 0.5, "popularity": 0.5})


@pytest.mark.parametrize(
    ("score", "level"),
    [
        (0.9, TrustLevel.HIGH),
        (0.75, TrustLevel.HIGH),
        (0.6, TrustLevel.MEDIUM),
        (0.1, TrustLevel.LOW),
    ],
)
def test_trust_levels(score: float, level: TrustLevel) -> None:
    assert GovernancePolicy().level_for(score) is level
