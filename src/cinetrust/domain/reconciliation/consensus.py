"""Consensus gate deciding whether a resolved value may be published unattended."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cinetrust.domain.model import (
    ClaimKind,
    ConsensusDecision,
    Discrepancy,
    ResolutionMethod,
    ReviewReason,
)

if TYPE_CHECKING:
    from .classify import Classification
    from .cross_validate import CrossValidation
    from .policy import ResolutionPolicy
    from .resolve import FieldResolution


@dataclass(frozen=True, slots=True, kw_only=True)
class ConsensusOutcome:
    decision: ConsensusDecision
    reason: str
    review_reason: ReviewReason | None = None
    discrepancy: Discrepancy | None = None


def _approve(reason: str, discrepancy: Discrepancy | None = None) -> ConsensusOutcome:
    return ConsensusOutcome(
        decision=ConsensusDecision.AUTO_APPROVE, reason=reason, discrepancy=discrepancy
    )


def _queue(
    reason: str, review_reason: ReviewReason, discrepancy: Discrepancy | None = None
) -> ConsensusOutcome:
    return ConsensusOutcome(
        decision=ConsensusDecision.QUEUE_FOR_REVIEW,
        reason=reason,
        review_reason=review_reason,
        discrepancy=discrepancy,
    )


def decide(
    resolution: FieldResolution,
    *,
    classification: Classification,
    validation: CrossValidation | None,
    policy: ResolutionPolicy,
) -> ConsensusOutcome:
    """Return ``auto_approve``, ``human_approved`` or ``queue_for_review`` for one field."""

    thresholds = policy.thresholds
    discrepancy = validation.discrepancy if validation is not None else None

    if resolution.method is ResolutionMethod.MANUAL_OVERRIDE:
        return ConsensusOutcome(
            decision=ConsensusDecision.HUMAN_APPROVED,
            reason="value authored by a human curator",
            discrepancy=discrepancy,
        )

    if classification.kind is ClaimKind.OPINION:
        return _queue(
            "opinion fields require human authorship; automated claims are never approved",
            ReviewReason.OPINION_REQUIRES_AUTHOR,
        )

    if classification.kind is not ClaimKind.FACT:
        raise ValueError(f"Consensus applies to facts and opinions, not {classification.kind}")

    contested = discrepancy is not None and discrepancy.is_critical
    agreeing = resolution.winner.size if resolution.winner is not None else 0
    if resolution.method is ResolutionMethod.WEIGHTED_BLEND:
        # A blend of contradicting values is not a value any source agreed on.
        agreeing = 0 if contested else resolution.support
    if agreeing >= thresholds.min_agreeing_sources and not resolution.tie:
        return _approve(f"{agreeing} independent sources support the value", discrepancy)

    if (
        resolution.support == 1
        and not contested
        and not resolution.tie
        and resolution.confidence >= thresholds.auto_approve
    ):
        source_id = resolution.contributing_sources[0]
        if policy.profile(source_id).tier <= thresholds.authoritative_tier:
            return _approve(
                f"authoritative source {source_id} at confidence {resolution.confidence:.2f}",
                discrepancy,
            )

    if discrepancy is not None:
        return _queue(discrepancy.describe(), ReviewReason.DISCREPANCY, discrepancy)
    return _queue(
        f"{agreeing or resolution.support} source(s) at confidence "
        f"{resolution.confidence:.2f}; needs {thresholds.min_agreeing_sources} agreeing sources "
        "or one authoritative source",
        ReviewReason.LOW_CONFIDENCE,
    )


@dataclass(slots=True)
class ConsensusGate:
    policy: ResolutionPolicy

    def __call__(
        self,
        resolution: FieldResolution,
        *,
        classification: Classification,
        validation: CrossValidation | None,
    ) -> ConsensusOutcome:
        return decide(
            resolution,
            classification=classification,
            validation=validation,
            policy=self.policy,
        )


@runtime_checkable
class DecideConsensus(Protocol):
    """Stage protocol: gate a resolved field before publication."""

    def __call__(
        self,
        resolution: FieldResolution,
        *,
        classification: Classification,
        validation: CrossValidation | None,
    ) -> ConsensusOutcome: ...
