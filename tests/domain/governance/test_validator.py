from __future__ import annotations

from datetime import timedelta

import pytest

from cinetrust.domain.governance import (
    DEFAULT_GOVERNANCE_POLICY,
    GovernanceEvaluation,
    GovernanceValidator,
    next_state,
)
from cinetrust.domain.model import (
    ConflictingValue,
    ConsensusDecision,
    Discrepancy,
    DiscrepancySeverity,
    DiscrepancyStatus,
    Entity,
    EntityKind,
    GovernanceState,
    ResolvedValue,
    TrustLevel,
)
from cinetrust.domain.reconciliation import DEFAULT_POLICY
from tests.helpers.records import NOW, make_celebrity, make_movie, make_value

VALIDATOR = GovernanceValidator(
    policy=DEFAULT_GOVERNANCE_POLICY, resolution_policy=DEFAULT_POLICY
)


def _evaluate(
    values: list[ResolvedValue],
    *,
    entity: Entity | None = None,
    previous: list[ResolvedValue] | None = None,
    discrepancies: list[Discrepancy] | None = None,
    pending_review_count: int = 0,
) -> GovernanceEvaluation:
    return VALIDATOR.evaluate(
        entity or make_movie(),
        {value.field_name: value for value in values},
        previous={value.field_name: value for value in previous or []},
        discrepancies=discrepancies or [],
        pending_review_count=pending_review_count,
        now=NOW,
    )


def _year_discrepancy(status: DiscrepancyStatus = DiscrepancyStatus.OPEN) -> Discrepancy:
    return Discrepancy(
        entity_id="movie-rrr",
        field_name="release_year",
        conflicting_values=(
            ConflictingValue(
                value=2022, normalized="2022", sources=("official",), total_trust=0.95
            ),
            ConflictingValue(value=2021, normalized="2021", sources=("imdb",), total_trust=0.75),
        ),
        severity=DiscrepancySeverity.CRITICAL,
        status=status,
    )


def _complete_values() -> list[ResolvedValue]:
    return [make_value("title", "RRR"), make_value("release_year", 2022)]


def test_fresh_complete_movie_is_validated() -> None:
    evaluation = _evaluate(_complete_values())

    assert evaluation.state is GovernanceState.VALIDATED
    assert evaluation.trust_score.score == pytest.approx(0.98)
    assert evaluation.trust_score.overall_level is TrustLevel.HIGH
    assert not evaluation.failed_rules
    assert [(t.previous, t.current) for t in evaluation.transitions] == [
        (GovernanceState.PENDING, GovernanceState.VALIDATED)
    ]


def test_missing_required_field_blocks() -> None:
    evaluation = _evaluate([make_value("title", "RRR")])

    assert evaluation.blocked
    assert [outcome.rule_id for outcome in evaluation.failed_rules] == ["required-fields"]
    assert evaluation.trust_score.components["completeness"] == 0.5
    assert "Publishing blocked" in evaluation.trust_score.explanation


def test_celebrities_have_their_own_required_fields() -> None:
    evaluation = _evaluate(
        [make_value("name", "N. T. Rama Rao Jr.", entity_id="person-ntr")],
        entity=make_celebrity(),
    )

    assert evaluation.state is GovernanceState.VALIDATED


def test_age_rating_downgrade_blocks_movies() -> None:
    evaluation = _evaluate(
        [*_complete_values(), make_value("age_rating", "U/A")],
        previous=[make_value("age_rating", "A")],
    )

    assert evaluation.blocked
    blocking = [outcome for outcome in evaluation.outcomes if outcome.blocks_publish]
    assert [outcome.rule_id for outcome in blocking] == ["age-rating-downgrade"]


def test_age_rating_upgrade_is_allowed() -> None:
    evaluation = _evaluate(
        [*_complete_values(), make_value("age_rating", "A")],
        previous=[make_value("age_rating", "UA")],
    )

    assert evaluation.state is GovernanceState.VALIDATED


def test_stale_box_office_requeues_the_entity() -> None:
    stale = make_value(
        "box_office_gross_inr",
        12_000_000_000,
        confidence=0.85,
        as_of=NOW - timedelta(days=400),
    )

    evaluation = _evaluate([*_complete_values(), stale])

    assert evaluation.stale_fields == ("box_office_gross_inr",)
    assert evaluation.state is GovernanceState.REQUEUED
    assert evaluation.requires_refetch
    assert [(t.previous, t.current) for t in evaluation.transitions] == [
        (GovernanceState.PENDING, GovernanceState.STALE),
        (GovernanceState.STALE, GovernanceState.REQUEUED),
    ]
    assert evaluation.freshness["box_office_gross_inr"].decayed


def test_unpublished_values_do_not_count_as_stale() -> None:
    queued = make_value(
        "box_office_gross_inr",
        12_000_000_000,
        confidence=0.6,
        decision=ConsensusDecision.QUEUE_FOR_REVIEW,
        as_of=NOW - timedelta(days=400),
    )

    evaluation = _evaluate([*_complete_values(), queued])

    assert evaluation.stale_fields == ()


def test_open_critical_discrepancy_lowers_trust_without_blocking() -> None:
    baseline = _evaluate(_complete_values())
    contested = _evaluate(_complete_values(), discrepancies=[_year_discrepancy()])

    assert contested.state is GovernanceState.VALIDATED
    assert contested.trust_score.score < baseline.trust_score.score
    contribution = contested.trust_score.breakdown_by_rule["source-disagreement"]
    assert not contribution.passed
    assert contribution.trust_delta == pytest.approx(-0.2)


def test_resolved_discrepancies_are_ignored() -> None:
    evaluation = _evaluate(
        _complete_values(), discrepancies=[_year_discrepancy(DiscrepancyStatus.RESOLVED)]
    )

    assert evaluation.trust_score.breakdown_by_rule["source-disagreement"].passed


def test_low_tier_sources_suggest_an_improvement() -> None:
    values = [
        make_value("title", "RRR", sources=("wikipedia",)),
        make_value("release_year", 2022, sources=("wikipedia",)),
    ]

    evaluation = _evaluate(values)

    assert "Add an official or regional source for key facts" in (
        evaluation.trust_score.improvements
    )
    assert evaluation.trust_score.warnings


def test_pending_reviews_cost_a_little_trust() -> None:
    evaluation = _evaluate(_complete_values(), pending_review_count=2)

    assert evaluation.trust_score.score == pytest.approx(0.93)


def test_every_rule_is_explained() -> None:
    evaluation = _evaluate(_complete_values())

    breakdown = evaluation.trust_score.breakdown_by_rule
    assert set(breakdown) == {
        rule.rule_id
        for rule in DEFAULT_GOVERNANCE_POLICY.rules
        if rule.applies(EntityKind.MOVIE)
    }
    assert all(item.explanation for item in breakdown.values())


def test_next_state_blocks_from_any_state() -> None:
    state, transitions = next_state(GovernanceState.VALIDATED, blocked=True, stale=True)

    assert state is GovernanceState.BLOCKED
    assert len(transitions) == 1


def test_next_state_keeps_requeued_entities_waiting() -> None:
    assert next_state(GovernanceState.REQUEUED, blocked=False, stale=True) == (
        GovernanceState.REQUEUED,
        (),
    )


def test_next_state_from_stale_only_requeues() -> None:
    state, transitions = next_state(GovernanceState.STALE, blocked=False, stale=True)

    assert state is GovernanceState.REQUEUED
    assert [(t.previous, t.current) for t in transitions] == [
        (GovernanceState.STALE, GovernanceState.REQUEUED)
    ]


def test_next_state_is_quiet_when_nothing_changes() -> None:
    assert next_state(GovernanceState.VALIDATED, blocked=False, stale=False) == (
        GovernanceState.VALIDATED,
        (),
    )
