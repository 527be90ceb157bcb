"""Create assessment_records

Revision ID: 202610010001
Revises:
Create Date: 2026-10-01 00:01:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "202610010001"
down_revision = None
branch_labels = None
depends_on = None

skill_enum = sa.Enum("reading", "writing", "speaking", "listening", name="skill")
cefr_level_enum = sa.Enum("a1", "a2", "b1", "b2", "c1", "c2", name="cefr_level")
evaluation_status_enum = sa.Enum("pending", "evaluated", name="evaluation_status")
scoring_method_enum = sa.Enum("rule", "ai", "fallback", "pending", name="scoring_method")


def upgrade() -> None:
    op.create_table(
        "assessment_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("skill", skill_enum, nullable=False),
        sa.Column("level", cefr_level_enum, nullable=False),
        sa.Column("language", sa.String(length=32), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("prompt", sa.Text(), nullable=True),
        sa.Column("response_text", sa.Text(), nullable=True),
        sa.Column("transcribed_text", sa.Text(), nullable=True),
        sa.Column("media_url", sa.String(length=1024), nullable=True),
        sa.Column("task_id", sa.Integer(), nullable=True),
        sa.Column("correct_answers", sa.Integer(), nullable=True),
        sa.Column("total_questions", sa.Integer(), nullable=True),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("criteria", sa.JSON(), nullable=True),
        sa.Column("recommendations", sa.JSON(), nullable=True),
        sa.Column("scoring_method", scoring_method_enum, nullable=False),
        sa.Column("degraded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("degraded_reason", sa.String(length=255), nullable=True),
        sa.Column("status", evaluation_status_enum, nullable=True),
        sa.Column("supervisor_id", sa.String(length=64), nullable=True),
        sa.Column("supervisor_score", sa.Float(), nullable=True),
        sa.Column("supervisor_feedback", sa.Text(), nullable=True),
        sa.Column("supervisor_criteria", sa.JSON(), nullable=True),
        sa.Column("evaluated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("window_key", sa.String(length=36), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "user_id",
            "skill",
            "level",
            "language",
            "window_key",
            name="uq_record_cooldown_window",
        ),
    )
    op.create_index("ix_assessment_records_user_id", "assessment_records", ["user_id"])
    op.create_index("ix_assessment_records_status", "assessment_records", ["status"])
    op.create_index(
        "ix_record_scope_submitted",
        "assessment_records",
        ["user_id", "skill", "level", "language", "submitted_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_record_scope_submitted", table_name="assessment_records")
    op.drop_index("ix_assessment_records_status", table_name="assessment_records")
    op.drop_index("ix_assessment_records_user_id", table_name="assessment_records")
    op.drop_table("assessment_records")
    scoring_method_enum.drop(op.get_bind())
    evaluation_status_enum.drop(op.get_bind())
    cefr_level_enum.drop(op.get_bind())
    skill_enum.drop(op.get_bind())
