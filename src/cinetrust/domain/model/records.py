"""Claims, resolved values and discrepancies for a single entity field."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .enums import (
    ClaimKind,
    ConsensusDecision,
    DiscrepancySeverity,
    DiscrepancyStatus,
    ResolutionMethod,
)

type FieldValue = Any


def freeze_value(value: FieldValue) -> FieldValue:
    """Return ``value`` with lists turned into tuples (recursively)."""

    if isinstance(value, list | tuple):
        return tuple(freeze_value(item) for item in value)
    if isinstance(value, dict):
        return {str(key): freeze_value(item) for key, item in value.items()}
    return value


def is_empty_claim(value: FieldValue) -> bool:
    """Null, blank and empty container values carry no claim."""

    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | dict | set | frozenset):
        return len(value) == 0
    return False


@dataclass(frozen=True, slots=True, kw_only=True)
class SourceRecord:
    """One provider's claimed value for one field of one entity."""

    entity_id: str
    field_name: str
    value: FieldValue
    source_id: str
    retrieved_at: datetime
    source_trust_tier: int

    def __post_init__(self) -> None:
        if not self.entity_id.strip():
            raise ValueError("SourceRecord requires an entity_id")
        if not self.field_name.strip():
            raise ValueError("SourceRecord requires a field_name")
        if not self.source_id.strip():
            raise ValueError("SourceRecord requires a source_id")
        if self.retrieved_at.tzinfo is None:
            object.__setattr__(self, "retrieved_at", self.retrieved_at.replace(tzinfo=UTC))
        if self.source_trust_tier < 1:
            raise ValueError(f"Invalid trust tier: {self.source_trust_tier}")
        object.__setattr__(self, "value", freeze_value(self.value))

    @property
    def is_claim(self) -> bool:
        return not is_empty_claim(self.value)


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolvedValue:
    """Current answer for (entity, field); replaced wholesale on every run."""

    entity_id: str
    field_name: str
    value: FieldValue
    confidence: float
    contributing_sources: tuple[str, ...]
    method: ResolutionMethod
    claim_kind: ClaimKind
    decision: ConsensusDecision
    as_of: datetime
    resolved_at: datetime = field(compare=False)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence out of range: {self.confidence}")

    @property
    def publishable(self) -> bool:
        return self.decision.publishable


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictingValue:
    value: FieldValue
    normalized: str
    sources: tuple[str, ...]
    total_trust: float


@dataclass(frozen=True, slots=True, kw_only=True)
class Discrepancy:
    """Disagreement between sources for the same (entity, field)."""

    entity_id: str
    field_name: str
    conflicting_values: tuple[ConflictingValue, ...]
    severity: DiscrepancySeverity
    status: DiscrepancyStatus = DiscrepancyStatus.OPEN

    @property
    def is_critical(self) -> bool:
        return self.severity is DiscrepancySeverity.CRITICAL

    def with_status(self, status: DiscrepancyStatus) -> Discrepancy:
        return Discrepancy(
            entity_id=self.entity_id,
            field_name=self.field_name,
            conflicting_values=self.conflicting_values,
            severity=self.severity,
            status=status,
        )

    def describe(self) -> str:
        parts = [
            f"{value.value!r} ({', '.join(value.sources)})" for value in self.conflicting_values
        ]
        return f"{self.severity} disagreement on {self.field_name}: " + " vs ".join(parts)
