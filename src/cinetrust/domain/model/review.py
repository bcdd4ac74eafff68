"""Manual review queue items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime  # noqa: TC003

from .enums import ReviewReason, ReviewStatus
from .records import Discrepancy, FieldValue  # noqa: TC001

RULE_REVIEW_PREFIX = "rule:"


def rule_review_field(rule_id: str) -> str:
    """Queue key for an entity-level sign-off requested by a governance rule."""

    return f"{RULE_REVIEW_PREFIX}{rule_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class ReviewItem:
    """A field waiting for a human decision."""

    entity_id: str
    field_name: str
    reason: ReviewReason
    explanation: str
    proposed_value: FieldValue
    confidence: float | None
    created_at: datetime
    discrepancy: Discrepancy | None = None
    status: ReviewStatus = ReviewStatus.OPEN
    resolved_by: str | None = None
    resolution_note: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.entity_id, self.field_name)

    @property
    def is_rule_review(self) -> bool:
        return self.reason is ReviewReason.GOVERNANCE_RULE
