from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cinetrust.domain.model import ConsensusDecision, ResolutionMethod
from cinetrust.domain.reconciliation import DEFAULT_POLICY, derive_field
from tests.helpers.records import NOW, make_value

if TYPE_CHECKING:
    from cinetrust.domain.reconciliation import FieldSpec


def _spec(name: str) -> FieldSpec:
    spec = DEFAULT_POLICY.field_spec(name)
    assert spec is not None
    return spec


def test_release_decade_follows_release_year() -> None:
    resolved = {"release_year": make_value("release_year", 2022, confidence=0.9)}

    derived = derive_field(
        _spec("release_decade"), resolved, policy=DEFAULT_POLICY, resolved_at=NOW
    )

    assert derived is not None
    assert derived.value == "2020s"
    assert derived.method is ResolutionMethod.DERIVED
    assert derived.confidence == 0.9
    assert derived.decision is ConsensusDecision.AUTO_APPROVE


@pytest.mark.parametrize(
    ("gross", "verdict"),
    [
        (1_200_000_000, "blockbuster"),
        (300_000_000, "hit"),
        (10_000_000, "flop"),
    ],
)
def test_box_office_verdict_uses_thresholds(gross: int, verdict: str) -> None:
    resolved = {"box_office_gross_inr": make_value("box_office_gross_inr", gross)}

    derived = derive_field(
        _spec("box_office_verdict"), resolved, policy=DEFAULT_POLICY, resolved_at=NOW
    )

    assert derived is not None
    assert derived.value == verdict


def test_missing_input_produces_nothing() -> None:
    assert (
        derive_field(_spec("release_decade"), {}, policy=DEFAULT_POLICY, resolved_at=NOW)
        is None
    )


def test_unpublishable_input_queues_the_derived_value() -> None:
    resolved = {
        "box_office_gross_inr": make_value(
            "box_office_gross_inr",
            1_200_000_000,
            confidence=0.6,
            sources=("wikipedia",),
            decision=ConsensusDecision.QUEUE_FOR_REVIEW,
        )
    }

    derived = derive_field(
        _spec("box_office_verdict"), resolved, policy=DEFAULT_POLICY, resolved_at=NOW
    )

    assert derived is not None
    assert derived.decision is ConsensusDecision.QUEUE_FOR_REVIEW
    assert derived.contributing_sources == ("wikipedia",)


def test_only_derived_fields_can_be_derived() -> None:
    with pytest.raises(ValueError, match="not a derived field"):
        derive_field(_spec("title"), {}, policy=DEFAULT_POLICY, resolved_at=NOW)


def test_unregistered_derivation_is_an_error() -> None:
    with pytest.raises(LookupError):
        derive_field(
            _spec("release_decade"),
            {"release_year": make_value("release_year", 2022)},
            policy=DEFAULT_POLICY,
            resolved_at=NOW,
            derivations={},
        )
