"""Fact cross-validation: group claims by normalized value and detect discrepancies."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from difflib import SequenceMatcher
from itertools import combinations
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cinetrust.domain.errors import MalformedRecordError
from cinetrust.domain.model import (
    ConflictingValue,
    Discrepancy,
    DiscrepancySeverity,
    FieldCategory,
    SourceRecord,
)

from .normalize import NUMERIC_CATEGORIES, TEXT_CATEGORIES, canonical_value, normalized_key

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cinetrust.domain.model import FieldValue

    from .classify import Classification
    from .policy import ResolutionPolicy


@dataclass(frozen=True, slots=True, kw_only=True)
class ValueGroup:
    """Records from distinct sources that claim the same normalized value."""

    key: str
    canonical: FieldValue
    records: tuple[SourceRecord, ...]
    trusts: tuple[float, ...]
    best_tier: int
    best_rank: int

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(record.source_id for record in self.records)

    @property
    def size(self) -> int:
        return len(self.records)

    @property
    def total_trust(self) -> float:
        return sum(self.trusts)

    @property
    def top_trust(self) -> float:
        return max(self.trusts)

    @property
    def representative(self) -> SourceRecord:
        return self.records[0]

    def strength(self) -> tuple[float, int, int, str]:
        """Sort key: strongest group first; ties fall back to the declared hierarchy."""

        return (-round(self.total_trust, 9), self.best_rank, -self.size, self.key)


@dataclass(frozen=True, slots=True, kw_only=True)
class CrossValidation:
    entity_id: str
    field_name: str
    category: FieldCategory
    records: tuple[SourceRecord, ...]
    groups: tuple[ValueGroup, ...]
    discrepancy: Discrepancy | None = None
    agreement_confidence: float | None = None

    @property
    def has_claims(self) -> bool:
        return bool(self.groups)

    @property
    def in_agreement(self) -> bool:
        return len(self.groups) == 1

    @property
    def source_count(self) -> int:
        return len(self.records)


def latest_claims_per_source(records: Iterable[SourceRecord]) -> tuple[SourceRecord, ...]:
    """Drop empty claims and keep the most recent record of every source."""

    latest: dict[str, SourceRecord] = {}
    for record in records:
        if not record.is_claim:
            continue
        current = latest.get(record.source_id)
        if current is None or (record.retrieved_at, repr(record.value)) > (
            current.retrieved_at,
            repr(current.value),
        ):
            latest[record.source_id] = record
    return tuple(latest[source_id] for source_id in sorted(latest))


def _jaccard(left: tuple[str, ...], right: tuple[str, ...]) -> float:
    union = set(left) | set(right)
    if not union:
        return 1.0
    return len(set(left) & set(right)) / len(union)


def _near_duplicates(
    left: ValueGroup,
    right: ValueGroup,
    category: FieldCategory,
    policy: ResolutionPolicy,
) -> bool:
    thresholds = policy.thresholds
    if category in NUMERIC_CATEGORIES:
        tolerance = policy.numeric_tolerance.get(category, 0.0)
        return abs(float(left.canonical) - float(right.canonical)) <= tolerance
    if category in {FieldCategory.YEAR, FieldCategory.DATE}:
        return False
    if category is FieldCategory.NAME_LIST:
        return _jaccard(left.canonical, right.canonical) >= thresholds.list_overlap
    if category in TEXT_CATEGORIES:
        ratio = SequenceMatcher(None, left.key, right.key).ratio()
        return ratio >= thresholds.text_similarity
    return False


def classify_severity(
    groups: tuple[ValueGroup, ...],
    category: FieldCategory,
    policy: ResolutionPolicy,
) -> DiscrepancySeverity:
    """Critical unless every pair of competing values is a near-duplicate."""

    for left, right in combinations(groups, 2):
        if not _near_duplicates(left, right, category, policy):
            return DiscrepancySeverity.CRITICAL
    return DiscrepancySeverity.INFORMATIONAL


def _build_groups(
    records: tuple[SourceRecord, ...],
    category: FieldCategory,
    policy: ResolutionPolicy,
) -> tuple[ValueGroup, ...]:
    aliases = policy.aliases.get(category)
    buckets: dict[str, list[SourceRecord]] = defaultdict(list)
    canonical_by_key: dict[str, FieldValue] = {}
    for record in records:
        try:
            key = normalized_key(record.value, category, aliases=aliases)
            canonical = canonical_value(record.value, category, aliases=aliases)
        except MalformedRecordError as exc:
            msg = f"{record.source_id} claim for {record.entity_id}.{record.field_name}: {exc}"
            raise MalformedRecordError(msg) from exc
        buckets[key].append(record)
        canonical_by_key[key] = canonical

    groups: list[ValueGroup] = []
    for key, members in buckets.items():
        ordered = sorted(
            members,
            key=lambda rec: (
                -policy.trust_for(rec.source_id, category),
                policy.hierarchy_rank(rec.source_id, category),
                rec.source_id,
            ),
        )
        groups.append(
            ValueGroup(
                key=key,
                canonical=canonical_by_key[key],
                records=tuple(ordered),
                trusts=tuple(policy.trust_for(rec.source_id, category) for rec in ordered),
                best_tier=min(rec.source_trust_tier for rec in ordered),
                best_rank=min(policy.hierarchy_rank(rec.source_id, category) for rec in ordered),
            )
        )
    return tuple(sorted(groups, key=ValueGroup.strength))


def cross_validate(
    records: Iterable[SourceRecord],
    *,
    classification: Classification,
    policy: ResolutionPolicy,
) -> CrossValidation:
    """Group one field's claims and report whether the sources disagree."""

    claims = latest_claims_per_source(records)
    field_name = classification.field_name
    entity_ids = {record.entity_id for record in claims}
    if len(entity_ids) > 1:
        raise MalformedRecordError(f"Records for {field_name} span entities {sorted(entity_ids)}")
    entity_id = next(iter(entity_ids), "")

    groups = _build_groups(claims, classification.category, policy)
    if not groups:
        return CrossValidation(
            entity_id=entity_id,
            field_name=field_name,
            category=classification.category,
            records=claims,
            groups=groups,
        )

    if len(groups) == 1:
        thresholds = policy.thresholds
        confidence = 1.0
        group = groups[0]
        if group.size == 1 and group.best_tier >= thresholds.low_trust_tier:
            confidence -= thresholds.low_trust_penalty
        return CrossValidation(
            entity_id=entity_id,
            field_name=field_name,
            category=classification.category,
            records=claims,
            groups=groups,
            agreement_confidence=confidence,
        )

    discrepancy = Discrepancy(
        entity_id=entity_id,
        field_name=field_name,
        conflicting_values=tuple(
            ConflictingValue(
                value=group.representative.value,
                normalized=group.key,
                sources=group.sources,
                total_trust=round(group.total_trust, 6),
            )
            for group in groups
        ),
        severity=classify_severity(groups, classification.category, policy),
    )
    return CrossValidation(
        entity_id=entity_id,
        field_name=field_name,
        category=classification.category,
        records=claims,
        groups=groups,
        discrepancy=discrepancy,
    )


@runtime_checkable
class CrossValidateField(Protocol):
    """Stage protocol: compare one field's claims across sources."""

    def __call__(
        self, records: Iterable[SourceRecord], *, classification: Classification
    ) -> CrossValidation: ...


@dataclass(slots=True)
class PolicyCrossValidator:
    policy: ResolutionPolicy

    def __call__(
        self, records: Iterable[SourceRecord], *, classification: Classification
    ) -> CrossValidation:
        return cross_validate(records, classification=classification, policy=self.policy)
