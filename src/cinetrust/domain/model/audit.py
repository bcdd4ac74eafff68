"""Append-only audit trail of resolution runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003

from .enums import (
    ClaimKind,
    ConsensusDecision,
    GovernanceState,
    OutcomeKind,
    ResolutionMethod,
)
from .records import FieldValue  # noqa: TC001


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldDecision:
    field_name: str
    claim_kind: ClaimKind
    method: ResolutionMethod | None
    value: FieldValue
    confidence: float | None
    decision: ConsensusDecision | None
    reason: str


@dataclass(frozen=True, slots=True, kw_only=True)
class RunOutcome:
    """A structured, non-fatal outcome of one run (e.g. missing data, stale fields)."""

    kind: OutcomeKind
    message: str
    field_name: str | None = None
    source_id: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class StateTransition:
    previous: GovernanceState
    current: GovernanceState
    reason: str


@dataclass(frozen=True, slots=True, kw_only=True)
class AuditRecord:
    entity_id: str
    run_id: str
    timestamp: datetime
    fields_touched: tuple[str, ...]
    decisions: tuple[FieldDecision, ...] = ()
    outcomes: tuple[RunOutcome, ...] = ()
    transitions: tuple[StateTransition, ...] = field(default_factory=tuple)
