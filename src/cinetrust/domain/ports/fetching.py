"""Ports for fetching source claims from external providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cinetrust.domain.model import Entity, SourceRecord


@runtime_checkable
class SourceFetcher(Protocol):
    """Callable port returning one provider's claims for an entity.

    Implementations raise ``SourceUnavailable`` when the provider cannot be
    reached; returning an empty list means the provider knows nothing new.
    """

    @property
    def source_id(self) -> str: ...

    def __call__(self, entity: Entity) -> list[SourceRecord]: ...


__all__ = ["SourceFetcher"]
