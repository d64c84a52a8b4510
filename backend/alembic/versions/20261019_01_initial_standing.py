"""Roster mirror, per-student sync metadata and cached academic records."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_01_initial_standing"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("student_id", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("grade", sa.Integer(), nullable=False),
        sa.Column("class_no", sa.Integer(), nullable=False),
        sa.Column("student_no", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False, server_default=""),
    )
    op.create_index("ix_students_number", "students", ["grade", "class_no", "student_no"], unique=True)

    op.create_table(
        "student_sync_metadata",
        sa.Column("student_id", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("login_error", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("private_ranking", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_privacy_change_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "student_academic_records",
        sa.Column(
            "student_id",
            sa.String(length=32),
            sa.ForeignKey("student_sync_metadata.student_id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("positive_point", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("negative_point", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score_raw_html", sa.Text(), nullable=False, server_default=""),
        sa.Column("point_raw_html", sa.Text(), nullable=False, server_default=""),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_student_academic_records_score", "student_academic_records", ["score"])


def downgrade() -> None:
    op.drop_index("ix_student_academic_records_score", table_name="student_academic_records")
    op.drop_table("student_academic_records")
    op.drop_table("student_sync_metadata")
    op.drop_index("ix_students_number", table_name="students")
    op.drop_table("students")
