"""Resolution core: from raw source claims to gated, explainable field values.

Stages, in order:
1) classify each field as fact, opinion or derived
2) cross-validate fact claims and detect discrepancies
3) resolve one value per field with a confidence score
4) gate the value through the consensus decision
5) recompute derived fields
6) hand the result to governance (rules, trust, entity state)
"""

from __future__ import annotations

from .classify import Classification, ClassifyField, PolicyClaimClassifier, classify_field
from .consensus import ConsensusGate, ConsensusOutcome, DecideConsensus, decide
from .cross_validate import (
    CrossValidateField,
    CrossValidation,
    PolicyCrossValidator,
    ValueGroup,
    cross_validate,
    latest_claims_per_source,
)
from .derive import DERIVATIONS, derive_field
from .freshness import FreshnessReport, assess_freshness, decay_factor, effective_confidence
from .policy import (
    DEFAULT_POLICY,
    DecayPolicy,
    FieldSpec,
    ResolutionPolicy,
    ResolutionThresholds,
    SourceProfile,
)
from .resolve import (
    FieldResolution,
    ResolveField,
    TrustWeightedResolver,
    resolve_field,
    resolve_opinion,
)

__all__ = [
    "DEFAULT_POLICY",
    "DERIVATIONS",
    "Classification",
    "ClassifyField",
    "ConsensusGate",
    "ConsensusOutcome",
    "CrossValidateField",
    "CrossValidation",
    "DecayPolicy",
    "DecideConsensus",
    "FieldResolution",
    "FieldSpec",
    "FreshnessReport",
    "PolicyClaimClassifier",
    "PolicyCrossValidator",
    "ResolutionPolicy",
    "ResolutionThresholds",
    "ResolveField",
    "SourceProfile",
    "TrustWeightedResolver",
    "ValueGroup",
    "assess_freshness",
    "classify_field",
    "cross_validate",
    "decay_factor",
    "decide",
    "derive_field",
    "effective_confidence",
    "latest_claims_per_source",
    "resolve_field",
    "resolve_opinion",
]
