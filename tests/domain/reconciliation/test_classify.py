from __future__ import annotations

import pytest

from cinetrust.domain.model import ClaimKind, FieldCategory
from cinetrust.domain.reconciliation import DEFAULT_POLICY, PolicyClaimClassifier, classify_field


@pytest.mark.parametrize(
    ("field_name", "kind"),
    [
        ("release_year", ClaimKind.FACT),
        ("cast", ClaimKind.FACT),
        ("review_verdict", ClaimKind.OPINION),
        ("synopsis", ClaimKind.OPINION),
        ("box_office_verdict", ClaimKind.DERIVED),
        ("release_decade", ClaimKind.DERIVED),
    ],
)
def test_declared_fields_use_their_semantics(field_name: str, kind: ClaimKind) -> None:
    classification = PolicyClaimClassifier(DEFAULT_POLICY)(field_name)

    assert classification.kind is kind
    assert classification.declared


def test_unknown_fields_are_treated_as_opinion() -> None:
    classification = classify_field("trivia", None)

    assert classification.kind is ClaimKind.OPINION
    assert classification.category is FieldCategory.EDITORIAL
    assert not classification.declared
