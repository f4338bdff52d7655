# migrations/versions/20261018_0001_metric_records.py
"""Create metric_records and metric_record_metrics.

Revision ID: 20261018_0001_metric_records
Revises:
Create Date: 2026-10-18

This migration:
  * Adds metric_records, one row per snapshot version of a (company, domain).
  * Adds a partial unique index allowing one active row per (company, domain).
  * Adds metric_record_metrics holding the ordered metrics of each snapshot.
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001_metric_records"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("last_updated_by", sa.String(length=255), nullable=True),
        sa.Column("last_updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Apply the migration."""
    # ------------------------------------------------------------------
    # metric_records
    # ------------------------------------------------------------------
    op.create_table(
        "metric_records",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("company_id", sa.String(length=128), nullable=False),
        sa.Column("domain", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("previous_version_id", sa.UUID(), nullable=True),
        sa.Column("restored_from_id", sa.UUID(), nullable=True),
        sa.Column("restore_notes", sa.Text(), nullable=True),
        sa.Column("validation_status", sa.String(length=32), nullable=False),
        sa.Column(
            "validation_errors",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("validation_notes", sa.Text(), nullable=True),
        sa.Column("data_quality_score", sa.Integer(), nullable=True),
        sa.Column("verification_status", sa.String(length=32), nullable=False),
        sa.Column("verified_by", sa.String(length=255), nullable=True),
        sa.Column("verified_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("import_source", sa.String(length=32), nullable=True),
        sa.Column("import_batch_id", sa.String(length=64), nullable=True),
        sa.Column("original_file_name", sa.String(length=512), nullable=True),
        sa.Column("data_period_start", sa.String(length=4), nullable=True),
        sa.Column("data_period_end", sa.String(length=4), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_metric_records"),
        sa.UniqueConstraint(
            "company_id", "domain", "version", name="uq_metric_records_version"
        ),
        sa.CheckConstraint("version >= 1", name="ck_metric_records_version_positive"),
        sa.CheckConstraint(
            "data_quality_score IS NULL OR data_quality_score BETWEEN 0 AND 100",
            name="ck_metric_records_quality_score_range",
        ),
    )
    op.create_index(
        "ix_metric_records_company_id",
        "metric_records",
        ["company_id"],
    )
    op.create_index(
        "uq_metric_records_active",
        "metric_records",
        ["company_id", "domain"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    # ------------------------------------------------------------------
    # metric_record_metrics
    # ------------------------------------------------------------------
    op.create_table(
        "metric_record_metrics",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("record_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=False),
        sa.Column("metric_name", sa.String(length=255), nullable=False),
        sa.Column("subcategory", sa.String(length=128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("data_type", sa.String(length=32), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_metric_record_metrics"),
        sa.ForeignKeyConstraint(
            ["record_id"],
            ["metric_records.id"],
            name="fk_metric_record_metrics_record_id_metric_records",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_metric_record_metrics_record_id",
        "metric_record_metrics",
        ["record_id"],
    )


def downgrade() -> None:
    """Revert the migration."""
    op.drop_index("ix_metric_record_metrics_record_id", table_name="metric_record_metrics")
    op.drop_table("metric_record_metrics")
    op.drop_index("uq_metric_records_active", table_name="metric_records")
    op.drop_index("ix_metric_records_company_id", table_name="metric_records")
    op.drop_table("metric_records")
