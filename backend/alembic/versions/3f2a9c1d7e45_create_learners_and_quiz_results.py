"""Create learners and quiz_results tables

Revision ID: 3f2a9c1d7e45
Revises:
Create Date: 2026-10-18 10:12:04.318552

learners holds the learner identity and the progress projection:
aptitude scores and assigned path (write-once), pre/post-assessment
percentages (write-once), the completed unit set with its derived count,
and progress_version, the compare-and-set guard for progress writes.

quiz_results is append-only submission history.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7e45"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

quiz_type_enum = sa.Enum("INTELLIGENCE", "INITIAL", "FINAL", "UNIT", name="quiztype")
unit_quiz_kind_enum = sa.Enum("SMALL", "FULL", "REMEDIAL", name="unitquizkind")


def upgrade() -> None:
    op.create_table(
        "learners",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("aptitude_scores", sa.JSON(), nullable=True),
        sa.Column("assigned_path", sa.String(length=50), nullable=True),
        sa.Column("initial_score", sa.Integer(), nullable=True),
        sa.Column("final_score", sa.Integer(), nullable=True),
        sa.Column("completed_units", sa.JSON(), nullable=False),
        sa.Column(
            "completed_units_count",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column(
            "progress_version",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "completed_units_count >= 0",
            name="ck_learners_completed_units_count_non_negative",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(op.f("ix_learners_id"), "learners", ["id"], unique=False)
    op.create_index(
        op.f("ix_learners_external_id"), "learners", ["external_id"], unique=True
    )

    op.create_table(
        "quiz_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("learner_id", sa.Integer(), nullable=False),
        sa.Column("quiz_type", quiz_type_enum, nullable=False),
        sa.Column("unit_id", sa.String(length=64), nullable=True),
        sa.Column("unit_quiz_kind", unit_quiz_kind_enum, nullable=True),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=True),
        sa.Column("percentage", sa.Integer(), nullable=True),
        sa.Column("scores", sa.JSON(), nullable=True),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "percentage IS NULL OR (percentage >= 0 AND percentage <= 100)",
            name="ck_quiz_results_percentage_range",
        ),
        sa.ForeignKeyConstraint(
            ["learner_id"], ["learners.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_quiz_results_id"), "quiz_results", ["id"], unique=False)
    op.create_index(
        op.f("ix_quiz_results_learner_id"),
        "quiz_results",
        ["learner_id"],
        unique=False,
    )
    op.create_index(
        "ix_quiz_results_learner_type",
        "quiz_results",
        ["learner_id", "quiz_type"],
        unique=False,
    )
    op.create_index(
        "ix_quiz_results_learner_unit",
        "quiz_results",
        ["learner_id", "unit_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_quiz_results_learner_unit", table_name="quiz_results")
    op.drop_index("ix_quiz_results_learner_type", table_name="quiz_results")
    op.drop_index(op.f("ix_quiz_results_learner_id"), table_name="quiz_results")
    op.drop_index(op.f("ix_quiz_results_id"), table_name="quiz_results")
    op.drop_table("quiz_results")
    op.drop_index(op.f("ix_learners_external_id"), table_name="learners")
    op.drop_index(op.f("ix_learners_id"), table_name="learners")
    op.drop_table("learners")
    unit_quiz_kind_enum.drop(op.get_bind(), checkfirst=True)
    quiz_type_enum.drop(op.get_bind(), checkfirst=True)
