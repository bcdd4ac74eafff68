"""Freshness decay of resolved confidence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from cinetrust.domain.model import FieldCategory, ResolvedValue

    from .policy import DecayPolicy

SECONDS_PER_DAY = 86_400.0


def age_in_days(as_of: datetime, now: datetime) -> float:
    return max(0.0, (now - as_of).total_seconds() / SECONDS_PER_DAY)


def decay_factor(age_days: float, *, window_days: int, floor: float) -> float:
    """1.0 inside the window, then halving once per window length, never below ``floor``.

    Non-increasing in ``age_days``.
    """

    if window_days <= 0 or age_days <= window_days:
        return 1.0
    overdue = (age_days - window_days) / window_days
    return max(floor, 0.5**overdue)


@dataclass(frozen=True, slots=True, kw_only=True)
class FreshnessReport:
    field_name: str
    age_days: float
    window_days: int
    factor: float
    base_confidence: float
    effective_confidence: float

    @property
    def decayed(self) -> bool:
        return self.factor < 1.0


def assess_freshness(
    value: ResolvedValue,
    *,
    category: FieldCategory,
    decay: DecayPolicy,
    now: datetime,
) -> FreshnessReport:
    window = decay.window_for(category)
    age = age_in_days(value.as_of, now)
    factor = decay_factor(age, window_days=window, floor=decay.floor)
    return FreshnessReport(
        field_name=value.field_name,
        age_days=round(age, 3),
        window_days=window,
        factor=round(factor, 6),
        base_confidence=value.confidence,
        effective_confidence=round(value.confidence * factor, 6),
    )


def effective_confidence(
    value: ResolvedValue,
    *,
    category: FieldCategory,
    decay: DecayPolicy,
    now: datetime,
) -> float:
    return assess_freshness(value, category=category, decay=decay, now=now).effective_confidence
