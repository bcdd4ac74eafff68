"""Governance: data-defined rules, trust scoring and the entity publish state."""

from __future__ import annotations

from .policy import DEFAULT_GOVERNANCE_POLICY, GovernancePolicy
from .rules import (
    DEFAULT_RULES,
    ActionType,
    ConditionOperator,
    GovernanceRule,
    RuleAction,
    RuleCondition,
    RuleOutcome,
)
from .trust import build_trust_score
from .validator import GovernanceEvaluation, GovernanceValidator, next_state

__all__ = [
    "DEFAULT_GOVERNANCE_POLICY",
    "DEFAULT_RULES",
    "ActionType",
    "ConditionOperator",
    "GovernanceEvaluation",
    "GovernancePolicy",
    "GovernanceRule",
    "GovernanceValidator",
    "RuleAction",
    "RuleCondition",
    "RuleOutcome",
    "build_trust_score",
    "next_state",
]
