"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    OFFICIAL = "official"
    REGIONAL = "regional"
    TMDB = "tmdb"
    IMDB = "imdb"
    WIKIDATA = "wikidata"
    WIKIPEDIA = "wikipedia"
    MANUAL = "manual"


class EntityKind(StrEnum):
    MOVIE = "movie"
    CELEBRITY = "celebrity"


class ClaimKind(StrEnum):
    """How a field's value may be established."""

    FACT = "fact"
    OPINION = "opinion"
    DERIVED = "derived"


class FieldCategory(StrEnum):
    """Value semantics of a field; drives normalization, trust tables and decay."""

    TEXT = "text"
    NAME = "name"
    NAME_LIST = "name_list"
    DATE = "date"
    YEAR = "year"
    DURATION = "duration"
    RATING = "rating"
    BOX_OFFICE = "box_office"
    CERTIFICATION = "certification"
    BIOGRAPHY = "biography"
    EDITORIAL = "editorial"


class DiscrepancySeverity(StrEnum):
    INFORMATIONAL = "informational"
    CRITICAL = "critical"


class DiscrepancyStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


class ResolutionMethod(StrEnum):
    SINGLE_SOURCE = "single_source"
    AGREEMENT = "agreement"
    TRUST_HIERARCHY = "trust_hierarchy"
    WEIGHTED_BLEND = "weighted_blend"
    MANUAL_OVERRIDE = "manual_override"
    DERIVED = "derived"


class ConsensusDecision(StrEnum):
    AUTO_APPROVE = "auto_approve"
    QUEUE_FOR_REVIEW = "queue_for_review"
    HUMAN_APPROVED = "human_approved"

    @property
    def publishable(self) -> bool:
        return self is not ConsensusDecision.QUEUE_FOR_REVIEW


class GovernanceState(StrEnum):
    PENDING = "pending"
    VALIDATED = "validated"
    BLOCKED = "blocked"
    STALE = "stale"
    REQUEUED = "requeued"


class TrustLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RuleSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RuleCategory(StrEnum):
    SAFETY = "safety"
    FRESHNESS = "freshness"
    SOURCE = "source"
    TRUST = "trust"
    CONTENT = "content"


class ReviewReason(StrEnum):
    DISCREPANCY = "discrepancy"
    LOW_CONFIDENCE = "low_confidence"
    OPINION_REQUIRES_AUTHOR = "opinion_requires_author"
    STALE = "stale"
    DERIVED_INPUT_PENDING = "derived_input_pending"
    GOVERNANCE_RULE = "governance_rule"


class ReviewStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class OutcomeKind(StrEnum):
    """Structured outcomes recorded on an entity's audit trail."""

    SOURCE_UNAVAILABLE = "source_unavailable"
    INSUFFICIENT_DATA = "insufficient_data"
    CRITICAL_DISCREPANCY = "critical_discrepancy"
    GOVERNANCE_VIOLATION = "governance_violation"
    STALE_DATA = "stale_data"
    FAILED = "failed"
