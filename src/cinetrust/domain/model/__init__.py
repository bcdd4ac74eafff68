"""Public domain model surface."""

from __future__ import annotations

from cinetrust.domain.model.audit import AuditRecord, FieldDecision, RunOutcome, StateTransition
from cinetrust.domain.model.entity import Entity
from cinetrust.domain.model.enums import (
    ClaimKind,
    ConsensusDecision,
    DiscrepancySeverity,
    DiscrepancyStatus,
    EntityKind,
    FieldCategory,
    GovernanceState,
    OutcomeKind,
    Provider,
    ResolutionMethod,
    ReviewReason,
    ReviewStatus,
    RuleCategory,
    RuleSeverity,
    TrustLevel,
)
from cinetrust.domain.model.records import (
    ConflictingValue,
    Discrepancy,
    FieldValue,
    ResolvedValue,
    SourceRecord,
    freeze_value,
    is_empty_claim,
)
from cinetrust.domain.model.review import ReviewItem, rule_review_field
from cinetrust.domain.model.trust import RuleContribution, TrustScore

__all__ = [
    "AuditRecord",
    "ClaimKind",
    "ConflictingValue",
    "ConsensusDecision",
    "Discrepancy",
    "DiscrepancySeverity",
    "DiscrepancyStatus",
    "Entity",
    "EntityKind",
    "FieldCategory",
    "FieldDecision",
    "FieldValue",
    "GovernanceState",
    "OutcomeKind",
    "Provider",
    "ResolutionMethod",
    "ResolvedValue",
    "ReviewItem",
    "ReviewReason",
    "ReviewStatus",
    "RuleCategory",
    "RuleContribution",
    "RuleSeverity",
    "RunOutcome",
    "SourceRecord",
    "StateTransition",
    "TrustLevel",
    "TrustScore",
    "freeze_value",
    "is_empty_claim",
    "rule_review_field",
]
