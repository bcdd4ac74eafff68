"""Domain error taxonomy."""

from __future__ import annotations


class ResolutionError(RuntimeError):
    """Base class for errors raised while resolving an entity."""


class SourceUnavailable(ResolutionError):  # noqa: N818
    """A fetcher failed or timed out; the entity keeps its last resolved values."""

    def __init__(self, source_id: str, reason: str) -> None:
        super().__init__(f"{source_id} unavailable: {reason}")
        self.source_id = source_id
        self.reason = reason


class MalformedRecordError(ResolutionError):
    """Input violates the record schema; fatal for the entity being processed."""


class UnknownEntityError(ResolutionError):
    """Raised when an operation references an entity that was never registered."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Unknown entity: {entity_id}")
        self.entity_id = entity_id


class ConcurrentResolutionError(ResolutionError):
    """Another run committed a newer revision of the same entity first."""

    def __init__(self, entity_id: str, *, expected: int, actual: int) -> None:
        super().__init__(
            f"Entity {entity_id} changed during resolution "
            f"(expected revision {expected}, found {actual})"
        )
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual


class ReviewItemNotFoundError(ResolutionError):
    def __init__(self, entity_id: str, field_name: str) -> None:
        super().__init__(f"No open review item for {entity_id}.{field_name}")
        self.entity_id = entity_id
        self.field_name = field_name


class InsufficientData(ResolutionError):  # noqa: N818
    """No source provides a value for the requested field."""

    def __init__(self, entity_id: str, field_name: str) -> None:
        super().__init__(f"No resolved value for {entity_id}.{field_name}")
        self.entity_id = entity_id
        self.field_name = field_name


class GovernanceViolation(ResolutionError):  # noqa: N818
    """The entity is blocked by a critical governance rule."""

    def __init__(self, entity_id: str, reasons: tuple[str, ...]) -> None:
        detail = "; ".join(reasons) or "blocked"
        super().__init__(f"Entity {entity_id} is blocked: {detail}")
        self.entity_id = entity_id
        self.reasons = reasons


class ReviewPending(ResolutionError):  # noqa: N818
    """The value is still waiting for a review decision."""

    def __init__(self, entity_id: str, field_name: str) -> None:
        super().__init__(f"{entity_id}.{field_name} is waiting for review")
        self.entity_id = entity_id
        self.field_name = field_name


class StaleData(ResolutionError):  # noqa: N818
    """The value's decayed confidence fell below the publication threshold."""

    def __init__(self, entity_id: str, field_name: str, effective_confidence: float) -> None:
        super().__init__(
            f"{entity_id}.{field_name} is stale "
            f"(effective confidence {effective_confidence:.2f})"
        )
        self.entity_id = entity_id
        self.field_name = field_name
        self.effective_confidence = effective_confidence
