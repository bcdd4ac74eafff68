"""Claim classification: which fields may be resolved from sources at all."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cinetrust.domain.model import ClaimKind, FieldCategory

if TYPE_CHECKING:
    from .policy import FieldSpec, ResolutionPolicy

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Classification:
    field_name: str
    kind: ClaimKind
    category: FieldCategory
    declared: bool


def classify_field(field_name: str, spec: FieldSpec | None) -> Classification:
    """Classify ``field_name`` from its declared semantics.

    Undeclared fields are treated as opinions so that nothing unverified is ever
    auto-published as fact.
    """

    if spec is None:
        return Classification(
            field_name=field_name,
            kind=ClaimKind.OPINION,
            category=FieldCategory.EDITORIAL,
            declared=False,
        )
    return Classification(
        field_name=field_name,
        kind=spec.kind,
        category=spec.category,
        declared=True,
    )


@dataclass(slots=True)
class PolicyClaimClassifier:
    """Classifier stage backed by the field declarations of a resolution policy."""

    policy: ResolutionPolicy

    def __call__(self, field_name: str) -> Classification:
        classification = classify_field(field_name, self.policy.field_spec(field_name))
        if not classification.declared:
            log.debug("Field %s is undeclared; classifying as opinion", field_name)
        return classification


@runtime_checkable
class ClassifyField(Protocol):
    """Stage protocol: label a field as fact, opinion or derived."""

    def __call__(self, field_name: str) -> Classification: ...
