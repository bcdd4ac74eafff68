"""Resolution policy: trust tables, field semantics, thresholds and decay windows.

Everything that tunes how claims turn into resolved values lives here as data so
that it can be replaced from a policy file (see ``cinetrust.config.policy``)
without code changes. The defaults below are a single, unified set; callers
that need different numbers pass their own ``ResolutionPolicy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from cinetrust.domain.model import ClaimKind, EntityKind, FieldCategory, Provider

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True, kw_only=True)
class SourceProfile:
    """Static description of a source: its tier in the hierarchy and base trust."""

    source_id: str
    tier: int
    trust: float
    automated: bool = True
    override: bool = False

    def __post_init__(self) -> None:
        if self.tier < 1:
            raise ValueError(f"Invalid tier for {self.source_id}: {self.tier}")
        if not 0.0 <= self.trust <= 1.0:
            raise ValueError(f"Invalid trust for {self.source_id}: {self.trust}")


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldSpec:
    """Declared semantics of one entity field."""

    name: str
    kind: ClaimKind
    category: FieldCategory
    required_for: frozenset[EntityKind] = frozenset()
    derived_from: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind is ClaimKind.DERIVED and not self.derived_from:
            raise ValueError(f"Derived field {self.name} must declare its inputs")


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolutionThresholds:
    auto_approve: float = 0.85
    min_agreeing_sources: int = 3
    authoritative_tier: int = 1
    agreement_bonus: float = 0.1
    conflict_penalty: float = 0.2
    near_tie_margin: float = 0.1
    tie_gap: float = 0.05
    contested_ceiling: float = 0.99
    low_trust_tier: int = 3
    low_trust_penalty: float = 0.1
    text_similarity: float = 0.85
    list_overlap: float = 0.8

    def __post_init__(self) -> None:
        if not 0.0 < self.auto_approve <= 1.0:
            raise ValueError("auto_approve threshold must be within (0, 1]")
        if self.tie_gap <= 0.0:
            raise ValueError("tie_gap must be positive")
        if self.min_agreeing_sources < 1:
            raise ValueError("min_agreeing_sources must be at least 1")

    @property
    def tie_ceiling(self) -> float:
        return max(0.0, self.auto_approve - self.tie_gap)


@dataclass(frozen=True, slots=True, kw_only=True)
class DecayPolicy:
    """Per-category freshness windows in days; decay halves confidence per window."""

    windows: Mapping[FieldCategory, int] = field(default_factory=dict)
    default_window_days: int = 365
    floor: float = 0.05

    def window_for(self, category: FieldCategory) -> int:
        return self.windows.get(category, self.default_window_days)


UNKNOWN_SOURCE_TIER: Final[int] = 4
UNKNOWN_SOURCE_TRUST: Final[float] = 0.3


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolutionPolicy:
    version: str
    sources: Mapping[str, SourceProfile]
    fields: Mapping[str, FieldSpec]
    field_trust: Mapping[FieldCategory, Mapping[str, float]] = field(default_factory=dict)
    hierarchy: Mapping[FieldCategory, tuple[str, ...]] = field(default_factory=dict)
    blend_weights: Mapping[str, Mapping[str, float]] = field(default_factory=dict)
    aliases: Mapping[FieldCategory, Mapping[str, str]] = field(default_factory=dict)
    numeric_tolerance: Mapping[FieldCategory, float] = field(default_factory=dict)
    thresholds: ResolutionThresholds = field(default_factory=ResolutionThresholds)
    decay: DecayPolicy = field(default_factory=DecayPolicy)
    verdict_thresholds: tuple[tuple[str, float], ...] = ()

    def __post_init__(self) -> None:
        for key, weights in self.blend_weights.items():
            total = sum(weights.values())
            if abs(total - 1.0) > 1e-6:
                raise ValueError(f"Blend weights for {key} must sum to 1.0 (got {total:.3f})")
        for name, spec in self.fields.items():
            if name != spec.name:
                raise ValueError(f"Field spec registered as {name} but named {spec.name}")

    def profile(self, source_id: str) -> SourceProfile:
        profile = self.sources.get(source_id)
        if profile is not None:
            return profile
        return SourceProfile(
            source_id=source_id,
            tier=UNKNOWN_SOURCE_TIER,
            trust=UNKNOWN_SOURCE_TRUST,
        )

    def field_spec(self, field_name: str) -> FieldSpec | None:
        return self.fields.get(field_name)

    def trust_for(self, source_id: str, category: FieldCategory) -> float:
        """Effective trust of ``source_id`` for values of ``category``."""

        table = self.field_trust.get(category)
        if table is not None and source_id in table:
            return table[source_id]
        return self.profile(source_id).trust

    def hierarchy_rank(self, source_id: str, category: FieldCategory) -> int:
        """Position of ``source_id`` in the declared hierarchy (lower ranks first)."""

        order = self.hierarchy.get(category)
        if order is not None and source_id in order:
            return order.index(source_id)
        profile = self.profile(source_id)
        # Undeclared sources rank after every declared one, ordered by tier.
        return len(order or ()) + profile.tier * 10

    def blend_weights_for(self, field_name: str) -> Mapping[str, float] | None:
        weights = self.blend_weights.get(field_name)
        if weights is not None:
            return weights
        spec = self.fields.get(field_name)
        if spec is None:
            return None
        return self.blend_weights.get(spec.category.value)

    def required_fields(self, kind: EntityKind) -> tuple[str, ...]:
        return tuple(
            sorted(name for name, spec in self.fields.items() if kind in spec.required_for)
        )


def _spec(
    name: str,
    kind: ClaimKind,
    category: FieldCategory,
    *,
    required_for: tuple[EntityKind, ...] = (),
    derived_from: tuple[str, ...] = (),
) -> tuple[str, FieldSpec]:
    return name, FieldSpec(
        name=name,
        kind=kind,
        category=category,
        required_for=frozenset(required_for),
        derived_from=derived_from,
    )


_FACT = ClaimKind.FACT
_OPINION = ClaimKind.OPINION
_DERIVED = ClaimKind.DERIVED
_MOVIE = (EntityKind.MOVIE,)
_CELEBRITY = (EntityKind.CELEBRITY,)

DEFAULT_FIELDS: Final[Mapping[str, FieldSpec]] = MappingProxyType(
    dict(
        [
            _spec("title", _FACT, FieldCategory.TEXT, required_for=_MOVIE),
            _spec("original_title", _FACT, FieldCategory.TEXT),
            _spec("release_date", _FACT, FieldCategory.DATE),
            _spec("release_year", _FACT, FieldCategory.YEAR, required_for=_MOVIE),
            _spec("runtime_minutes", _FACT, FieldCategory.DURATION),
            _spec("director", _FACT, FieldCategory.NAME),
            _spec("cast", _FACT, FieldCategory.NAME_LIST),
            _spec("genres", _FACT, FieldCategory.NAME_LIST),
            _spec("rating", _FACT, FieldCategory.RATING),
            _spec("age_rating", _FACT, FieldCategory.CERTIFICATION),
            _spec("box_office_gross_inr", _FACT, FieldCategory.BOX_OFFICE),
            _spec("synopsis", _OPINION, FieldCategory.EDITORIAL),
            _spec("review_verdict", _OPINION, FieldCategory.EDITORIAL),
            _spec(
                "box_office_verdict",
                _DERIVED,
                FieldCategory.BOX_OFFICE,
                derived_from=("box_office_gross_inr",),
            ),
            _spec("release_decade", _DERIVED, FieldCategory.YEAR, derived_from=("release_year",)),
            _spec("name", _FACT, FieldCategory.TEXT, required_for=_CELEBRITY),
            _spec("birth_date", _FACT, FieldCategory.DATE),
            _spec("birth_place", _FACT, FieldCategory.BIOGRAPHY),
            _spec("occupations", _FACT, FieldCategory.NAME_LIST),
            _spec("biography", _OPINION, FieldCategory.EDITORIAL),
        ]
    )
)

DEFAULT_SOURCES: Final[Mapping[str, SourceProfile]] = MappingProxyType(
    {
        Provider.OFFICIAL: SourceProfile(source_id=Provider.OFFICIAL, tier=1, trust=0.98),
        Provider.MANUAL: SourceProfile(
            source_id=Provider.MANUAL, tier=1, trust=0.95, automated=False, override=True
        ),
        Provider.REGIONAL: SourceProfile(source_id=Provider.REGIONAL, tier=2, trust=0.8),
        Provider.TMDB: SourceProfile(source_id=Provider.TMDB, tier=2, trust=0.95),
        Provider.IMDB: SourceProfile(source_id=Provider.IMDB, tier=2, trust=0.94),
        Provider.WIKIDATA: SourceProfile(source_id=Provider.WIKIDATA, tier=2, trust=0.9),
        Provider.WIKIPEDIA: SourceProfile(source_id=Provider.WIKIPEDIA, tier=3, trust=0.85),
    }
)


def _row(
    official: float, regional: float, imdb: float, tmdb: float, wikipedia: float
) -> Mapping[str, float]:
    return MappingProxyType(
        {
            Provider.OFFICIAL: official,
            Provider.REGIONAL: regional,
            Provider.IMDB: imdb,
            Provider.TMDB: tmdb,
            Provider.WIKIPEDIA: wikipedia,
        }
    )


_DATES = _row(0.95, 0.9, 0.75, 0.7, 0.6)
_PEOPLE = _row(0.85, 0.8, 0.9, 0.75, 0.6)

DEFAULT_FIELD_TRUST: Final[Mapping[FieldCategory, Mapping[str, float]]] = MappingProxyType(
    {
        FieldCategory.DATE: _DATES,
        FieldCategory.YEAR: _DATES,
        FieldCategory.NAME: _PEOPLE,
        FieldCategory.NAME_LIST: _PEOPLE,
        FieldCategory.TEXT: _row(0.95, 0.85, 0.75, 0.75, 0.7),
        FieldCategory.BIOGRAPHY: _row(0.9, 0.8, 0.65, 0.7, 0.85),
        FieldCategory.BOX_OFFICE: _row(0.85, 0.9, 0.4, 0.5, 0.7),
        FieldCategory.DURATION: _row(0.9, 0.75, 0.85, 0.8, 0.6),
    }
)

DEFAULT_HIERARCHY: Final[Mapping[FieldCategory, tuple[str, ...]]] = MappingProxyType(
    {
        FieldCategory.DATE: (Provider.OFFICIAL, Provider.REGIONAL, Provider.WIKIDATA),
        FieldCategory.YEAR: (Provider.OFFICIAL, Provider.REGIONAL, Provider.WIKIDATA),
        FieldCategory.BOX_OFFICE: (Provider.REGIONAL, Provider.OFFICIAL, Provider.WIKIPEDIA),
    }
)

DEFAULT_BLEND_WEIGHTS: Final[Mapping[str, Mapping[str, float]]] = MappingProxyType(
    {
        "rating": MappingProxyType(
            {Provider.IMDB: 0.5, Provider.TMDB: 0.3, Provider.REGIONAL: 0.2}
        ),
    }
)

DEFAULT_ALIASES: Final[Mapping[FieldCategory, Mapping[str, str]]] = MappingProxyType(
    {
        FieldCategory.NAME: MappingProxyType(
            {"ntr jr": "jr ntr", "n. t. rama rao jr.": "jr ntr", "ss rajamouli": "s. s. rajamouli"}
        ),
        FieldCategory.NAME_LIST: MappingProxyType(
            {"ntr jr": "jr ntr", "n. t. rama rao jr.": "jr ntr", "sci-fi": "science fiction"}
        ),
        FieldCategory.CERTIFICATION: MappingProxyType({"ua": "u/a", "u/a 13+": "u/a"}),
    }
)

DEFAULT_DECAY: Final[DecayPolicy] = DecayPolicy(
    windows=MappingProxyType(
        {
            FieldCategory.BOX_OFFICE: 180,
            FieldCategory.RATING: 90,
            FieldCategory.EDITORIAL: 365,
            FieldCategory.TEXT: 730,
            FieldCategory.NAME: 730,
            FieldCategory.NAME_LIST: 730,
            FieldCategory.CERTIFICATION: 1825,
            FieldCategory.DURATION: 1825,
            FieldCategory.DATE: 3650,
            FieldCategory.YEAR: 3650,
            FieldCategory.BIOGRAPHY: 3650,
        }
    ),
)

# INR thresholds; ordered from the highest class down.
DEFAULT_VERDICT_THRESHOLDS: Final[tuple[tuple[str, float], ...]] = (
    ("blockbuster", 1_000_000_000.0),
    ("superhit", 500_000_000.0),
    ("hit", 250_000_000.0),
    ("average", 100_000_000.0),
    ("flop", 0.0),
)

DEFAULT_POLICY: Final[ResolutionPolicy] = ResolutionPolicy(
    version="default-1",
    sources=DEFAULT_SOURCES,
    fields=DEFAULT_FIELDS,
    field_trust=DEFAULT_FIELD_TRUST,
    hierarchy=DEFAULT_HIERARCHY,
    blend_weights=DEFAULT_BLEND_WEIGHTS,
    aliases=DEFAULT_ALIASES,
    numeric_tolerance=MappingProxyType(
        {FieldCategory.RATING: 0.5, FieldCategory.DURATION: 3.0}
    ),
    decay=DEFAULT_DECAY,
    verdict_thresholds=DEFAULT_VERDICT_THRESHOLDS,
)
