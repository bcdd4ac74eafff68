"""Initial schema: entities, claims, resolved values, review queue and audit trail.

Revision ID: 0001
Revises:
Create Date: 2025-06-02 00:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _entity_fk(*, primary_key: bool = False) -> sa.Column[str]:
    return sa.Column(
        "entity_id",
        sa.String(length=128),
        sa.ForeignKey(
            "entity.entity_id",
            ondelete="CASCADE",
        ),
        primary_key=primary_key,
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "entity",
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("display_name", sa.String(length=512), nullable=True),
        sa.Column("external_ids", sa.JSON(), nullable=False),
        sa.Column("state", sa.String(length=32), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("evaluated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("entity_id", name=op.f("pk_entity")),
    )
    op.create_index("ix_entity_state", "entity", ["state"])

    op.create_table(
        "source_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _entity_fk(),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("source_id", sa.String(length=64), nullable=False),
        sa.Column("retrieved_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source_trust_tier", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_source_record")),
    )
    op.create_index(
        "ix_source_record_entity_field", "source_record", ["entity_id", "field_name"]
    )

    op.create_table(
        "resolved_value",
        _entity_fk(primary_key=True),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("contributing_sources", sa.JSON(), nullable=False),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("claim_kind", sa.String(length=32), nullable=False),
        sa.Column("decision", sa.String(length=32), nullable=False),
        sa.Column("as_of", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("entity_id", "field_name", name=op.f("pk_resolved_value")),
    )

    op.create_table(
        "discrepancy",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _entity_fk(),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("conflicting_values", sa.JSON(), nullable=False),
        sa.Column("severity", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_discrepancy")),
        sa.UniqueConstraint("entity_id", "field_name", name="uq_discrepancy_entity_field"),
    )

    op.create_table(
        "review_item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _entity_fk(),
        sa.Column("field_name", sa.String(length=128), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=False),
        sa.Column("proposed_value", sa.JSON(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("discrepancy", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(length=128), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_review_item")),
    )
    op.create_index(
        "ix_review_item_status_created", "review_item", ["status", "created_at"]
    )
    op.create_index("ix_review_item_entity_field", "review_item", ["entity_id", "field_name"])

    op.create_table(
        "trust_score",
        _entity_fk(primary_key=True),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("overall_level", sa.String(length=32), nullable=False),
        sa.Column("components", sa.JSON(), nullable=False),
        sa.Column("breakdown_by_rule", sa.JSON(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=False),
        sa.Column("key_factors", sa.JSON(), nullable=False),
        sa.Column("warnings", sa.JSON(), nullable=False),
        sa.Column("improvements", sa.JSON(), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("entity_id", name=op.f("pk_trust_score")),
    )

    op.create_table(
        "audit_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _entity_fk(),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fields_touched", sa.JSON(), nullable=False),
        sa.Column("decisions", sa.JSON(), nullable=False),
        sa.Column("outcomes", sa.JSON(), nullable=False),
        sa.Column("transitions", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_record")),
    )
    op.create_index(
        "ix_audit_record_entity_timestamp", "audit_record", ["entity_id", "timestamp"]
    )


def downgrade() -> None:
    op.drop_index("ix_audit_record_entity_timestamp", table_name="audit_record")
    op.drop_table("audit_record")
    op.drop_table("trust_score")
    op.drop_index("ix_review_item_entity_field", table_name="review_item")
    op.drop_index("ix_review_item_status_created", table_name="review_item")
    op.drop_table("review_item")
    op.drop_table("discrepancy")
    op.drop_table("resolved_value")
    op.drop_index("ix_source_record_entity_field", table_name="source_record")
    op.drop_table("source_record")
    op.drop_index("ix_entity_state", table_name="entity")
    op.drop_table("entity")
