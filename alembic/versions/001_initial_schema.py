"""Initial schema — the four JTBD force tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. jtbd_question_mappings ───────────────────────────────────
    op.create_table(
        "jtbd_question_mappings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("question_id", sa.String, unique=True, index=True, nullable=False),
        sa.Column("organization_id", sa.String, nullable=True),
        sa.Column("survey_template_id", sa.String, nullable=True),
        sa.Column("question_text", sa.Text, nullable=False),
        sa.Column("question_category", sa.String, nullable=False, server_default=""),
        sa.Column("expected_force", sa.String, nullable=False),
        sa.Column("confidence_level", sa.Integer, nullable=False, comment="1-5"),
        sa.Column("mapping_rationale", sa.Text, nullable=False),
        sa.Column("validation_rules", postgresql.JSONB, nullable=False),
        sa.Column("created_by", sa.String, nullable=False, server_default="system"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── 2. jtbd_force_distributions ─────────────────────────────────
    op.create_table(
        "jtbd_force_distributions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.String, nullable=True),
        sa.Column("survey_id", sa.String, nullable=False),
        sa.Column("question_id", sa.String, nullable=False),
        sa.Column("expected_force", sa.String, nullable=False),
        sa.Column(
            "actual_distribution",
            postgresql.JSONB,
            nullable=False,
            comment="force -> percentage 0-100",
        ),
        sa.Column("total_responses", sa.Integer, nullable=False),
        sa.Column("accuracy_score", sa.Integer, nullable=False),
        sa.Column("deviation_analysis", postgresql.JSONB, nullable=False),
        sa.Column(
            "calculated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "survey_id", "question_id", name="uq_distribution_survey_question"
        ),
    )

    # ── 3. jtbd_aggregate_scores ────────────────────────────────────
    op.create_table(
        "jtbd_aggregate_scores",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.String, nullable=False),
        sa.Column("survey_id", sa.String, unique=True, index=True, nullable=False),
        sa.Column("overall_scores", postgresql.JSONB, nullable=False),
        sa.Column("dominant_force", sa.String, nullable=False),
        sa.Column("force_balance", postgresql.JSONB, nullable=False),
        sa.Column("insights", postgresql.JSONB, nullable=False),
        sa.Column(
            "calculated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── 4. jtbd_response_analyses ───────────────────────────────────
    op.create_table(
        "jtbd_response_analyses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.String, nullable=False),
        sa.Column("survey_id", sa.String, index=True, nullable=False),
        sa.Column("response_id", sa.String, unique=True, nullable=False),
        sa.Column("question_id", sa.String, nullable=False),
        sa.Column("user_response", sa.Text, nullable=False),
        sa.Column("primary_force", sa.String, nullable=False),
        sa.Column(
            "secondary_forces",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "analysis_data",
            postgresql.JSONB,
            nullable=False,
            comment="full ResponseClassification payload",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("jtbd_response_analyses")
    op.drop_table("jtbd_aggregate_scores")
    op.drop_table("jtbd_force_distributions")
    op.drop_table("jtbd_question_mappings")
