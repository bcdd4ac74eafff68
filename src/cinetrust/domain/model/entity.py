"""Entities whose fields are resolved from external sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003

from .enums import EntityKind, GovernanceState


@dataclass(slots=True, kw_only=True)
class Entity:
    """A movie or celebrity subject to enrichment.

    ``revision`` is bumped on every committed resolution run and guards against
    two runs for the same entity interleaving their writes.
    """

    entity_id: str
    kind: EntityKind
    display_name: str | None = None
    external_ids: dict[str, str] = field(default_factory=dict[str, str])
    state: GovernanceState = GovernanceState.PENDING
    revision: int = 0
    evaluated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.entity_id.strip():
            raise ValueError("Entity requires an entity_id")

    def external_id(self, namespace: str) -> str | None:
        return self.external_ids.get(namespace)

    @property
    def needs_refetch(self) -> bool:
        return self.state in {GovernanceState.STALE, GovernanceState.REQUEUED}
