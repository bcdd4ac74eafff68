from __future__ import annotations

from datetime import timedelta

import pytest

from cinetrust.domain.model import FieldCategory
from cinetrust.domain.reconciliation import (
    DEFAULT_POLICY,
    DecayPolicy,
    assess_freshness,
    decay_factor,
    effective_confidence,
)
from tests.helpers.records import NOW, make_value


def test_no_decay_inside_the_window() -> None:
    assert decay_factor(0, window_days=180, floor=0.05) == 1.0
    assert decay_factor(180, window_days=180, floor=0.05) == 1.0


def test_decay_halves_per_window() -> None:
    assert decay_factor(360, window_days=180, floor=0.05) == pytest.approx(0.5)
    assert decay_factor(540, window_days=180, floor=0.05) == pytest.approx(0.25)


def test_decay_never_drops_below_the_floor() -> None:
    assert decay_factor(10_000, window_days=30, floor=0.05) == 0.05


def test_zero_window_disables_decay() -> None:
    assert decay_factor(10_000, window_days=0, floor=0.05) == 1.0


def test_decay_is_monotonic_in_age() -> None:
    factors = [decay_factor(age, window_days=90, floor=0.05) for age in range(0, 1000, 7)]

    assert all(later <= earlier for earlier, later in zip(factors, factors[1:], strict=False))


def test_box_office_older_than_its_window_loses_confidence() -> None:
    value = make_value(
        "box_office_gross_inr",
        12_000_000_000,
        confidence=0.85,
        as_of=NOW - timedelta(days=400),
    )

    report = assess_freshness(
        value, category=FieldCategory.BOX_OFFICE, decay=DEFAULT_POLICY.decay, now=NOW
    )

    assert report.decayed
    assert report.window_days == 180
    assert report.factor == pytest.approx(0.4287, abs=1e-4)
    assert report.effective_confidence < value.confidence
    assert report.effective_confidence == pytest.approx(0.85 * report.factor, abs=1e-6)


def test_fresh_value_keeps_its_confidence() -> None:
    value = make_value("title", "RRR", confidence=0.98)

    assert (
        effective_confidence(
            value, category=FieldCategory.TEXT, decay=DEFAULT_POLICY.decay, now=NOW
        )
        == 0.98
    )


def test_unconfigured_categories_use_the_default_window() -> None:
    decay = DecayPolicy(default_window_days=30)
    value = make_value("title", "RRR", as_of=NOW - timedelta(days=60))

    report = assess_freshness(value, category=FieldCategory.TEXT, decay=decay, now=NOW)

    assert report.window_days == 30
    assert report.factor == pytest.approx(0.5)


def test_future_as_of_counts_as_fresh() -> None:
    value = make_value("title", "RRR", as_of=NOW + timedelta(days=1))

    report = assess_freshness(
        value, category=FieldCategory.TEXT, decay=DEFAULT_POLICY.decay, now=NOW
    )

    assert report.age_days == 0.0
    assert not report.decayed
