"""SQLAlchemy Core tables for entities, claims and resolution results."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)

from cinetrust.domain.model import (
    ClaimKind,
    ConsensusDecision,
    DiscrepancySeverity,
    DiscrepancyStatus,
    EntityKind,
    GovernanceState,
    ResolutionMethod,
    ReviewReason,
    ReviewStatus,
    TrustLevel,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

ENUM_LENGTH = 32


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


def _enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=ENUM_LENGTH,
        values_callable=_enum_values,
        validate_strings=True,
    )


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)


def _entity_fk() -> Column[str]:
    return Column(
        "entity_id",
        String(128),
        ForeignKey("entity.entity_id", ondelete="CASCADE"),
        nullable=False,
    )


entity_table = Table(
    "entity",
    metadata,
    Column("entity_id", String(128), primary_key=True),
    Column("kind", _enum(EntityKind), nullable=False),
    Column("display_name", String(512), nullable=True),
    Column("external_ids", JSON, nullable=False, default=dict),
    Column("state", _enum(GovernanceState), nullable=False),
    Column("revision", Integer, nullable=False, default=0),
    Column("evaluated_at", UTCDateTime(), nullable=True),
    Index("ix_entity_state", "state"),
)

source_record_table = Table(
    "source_record",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _entity_fk(),
    Column("field_name", String(128), nullable=False),
    Column("value", JSON, nullable=True),
    Column("source_id", String(64), nullable=False),
    Column("retrieved_at", UTCDateTime(), nullable=False),
    Column("source_trust_tier", Integer, nullable=False),
    Index("ix_source_record_entity_field", "entity_id", "field_name"),
)

resolved_value_table = Table(
    "resolved_value",
    metadata,
    Column(
        "entity_id",
        String(128),
        ForeignKey("entity.entity_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("field_name", String(128), primary_key=True),
    Column("value", JSON, nullable=True),
    Column("confidence", Float, nullable=False),
    Column("contributing_sources", JSON, nullable=False),
    Column("method", _enum(ResolutionMethod), nullable=False),
    Column("claim_kind", _enum(ClaimKind), nullable=False),
    Column("decision", _enum(ConsensusDecision), nullable=False),
    Column("as_of", UTCDateTime(), nullable=False),
    Column("resolved_at", UTCDateTime(), nullable=False),
)

discrepancy_table = Table(
    "discrepancy",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _entity_fk(),
    Column("field_name", String(128), nullable=False),
    Column("conflicting_values", JSON, nullable=False),
    Column("severity", _enum(DiscrepancySeverity), nullable=False),
    Column("status", _enum(DiscrepancyStatus), nullable=False),
    UniqueConstraint("entity_id", "field_name", name="uq_discrepancy_entity_field"),
)

review_item_table = Table(
    "review_item",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _entity_fk(),
    Column("field_name", String(128), nullable=False),
    Column("reason", _enum(ReviewReason), nullable=False),
    Column("explanation", Text, nullable=False),
    Column("proposed_value", JSON, nullable=True),
    Column("confidence", Float, nullable=True),
    Column("discrepancy", JSON, nullable=True),
    Column("status", _enum(ReviewStatus), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("closed_at", UTCDateTime(), nullable=True),
    Column("resolved_by", String(128), nullable=True),
    Column("resolution_note", Text, nullable=True),
    Index("ix_review_item_status_created", "status", "created_at"),
    Index("ix_review_item_entity_field", "entity_id", "field_name"),
)

trust_score_table = Table(
    "trust_score",
    metadata,
    Column(
        "entity_id",
        String(128),
        ForeignKey("entity.entity_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("score", Float, nullable=False),
    Column("overall_level", _enum(TrustLevel), nullable=False),
    Column("components", JSON, nullable=False),
    Column("breakdown_by_rule", JSON, nullable=False),
    Column("explanation", Text, nullable=False),
    Column("key_factors", JSON, nullable=False),
    Column("warnings", JSON, nullable=False),
    Column("improvements", JSON, nullable=False),
    Column("computed_at", UTCDateTime(), nullable=False),
)

audit_record_table = Table(
    "audit_record",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    _entity_fk(),
    Column("run_id", String(64), nullable=False),
    Column("timestamp", UTCDateTime(), nullable=False),
    Column("fields_touched", JSON, nullable=False),
    Column("decisions", JSON, nullable=False),
    Column("outcomes", JSON, nullable=False),
    Column("transitions", JSON, nullable=False),
    Index("ix_audit_record_entity_timestamp", "entity_id", "timestamp"),
)


def create_all_tables(engine: Engine) -> None:
    """Create tables directly from metadata (migrations are the normal path)."""

    metadata.create_all(engine)
