"""
Create accounts, personnel identity and training engine tables.

Revision ID: 5a7c1e2d9b40
Revises:
Create Date: 2025-06-02
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5a7c1e2d9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = True, deleted: bool = True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    if deleted:
        cols.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("employee_code", sa.Integer(), nullable=True, unique=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column(
            "role",
            sa.Enum("ADMIN", "TRAINER", "WORKER", name="account_role_enum"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(deleted=False),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    # The personnel table usually already exists (owned by HR); create the
    # identity columns only when it does not.
    bind = op.get_bind()
    if "personnel_records" not in sa.inspect(bind).get_table_names():
        op.create_table(
            "personnel_records",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("employee_code", sa.Integer(), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("first_name", sa.String(length=128), nullable=True),
            sa.Column("last_name", sa.String(length=128), nullable=True),
        )
        op.create_index(
            "ix_personnel_records_employee_code",
            "personnel_records",
            ["employee_code"],
            unique=True,
        )
        op.create_index("ix_personnel_records_email", "personnel_records", ["email"])

    op.create_table(
        "trainings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("validity_months", sa.Integer(), nullable=False, server_default="12"),
        sa.Column("content", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.Column("retired_by_sync", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("code", name="uq_trainings_code"),
    )
    op.create_index("idx_trainings_deleted", "trainings", ["deleted_at"])

    op.create_table(
        "training_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("trainer_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("training_id", sa.String(length=36), sa.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("trainer_id", "training_id", name="uq_training_assignments_trainer_training"),
    )
    op.create_index("ix_training_assignments_trainer_id", "training_assignments", ["trainer_id"])
    op.create_index("ix_training_assignments_training_id", "training_assignments", ["training_id"])

    op.create_table(
        "training_tests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("training_id", sa.String(length=36), sa.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_training_tests_training_id", "training_tests", ["training_id"])
    op.create_index("idx_training_tests_training_active", "training_tests", ["training_id", "is_active"])

    op.create_table(
        "training_test_questions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("test_id", sa.String(length=36), sa.ForeignKey("training_tests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "type",
            sa.Enum("SINGLE", "MULTIPLE", "YES_NO", "TEXT", name="training_question_type_enum"),
            nullable=False,
        ),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("correct_answer", sa.JSON(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index("ix_training_test_questions_test_id", "training_test_questions", ["test_id"])
    op.create_index("idx_training_questions_test_order", "training_test_questions", ["test_id", "sort_order"])

    op.create_table(
        "training_test_attempts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("test_id", sa.String(length=36), sa.ForeignKey("training_tests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("is_manual", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("evaluator_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_training_test_attempts_user_id", "training_test_attempts", ["user_id"])
    op.create_index("ix_training_test_attempts_test_id", "training_test_attempts", ["test_id"])
    op.create_index(
        "idx_training_attempts_user_test_created",
        "training_test_attempts",
        ["user_id", "test_id", "created_at"],
    )
    op.create_index(
        "uq_training_attempts_one_open",
        "training_test_attempts",
        ["user_id", "test_id"],
        unique=True,
        postgresql_where=sa.text("completed_at IS NULL AND deleted_at IS NULL"),
        sqlite_where=sa.text("completed_at IS NULL AND deleted_at IS NULL"),
    )

    op.create_table(
        "training_certificates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("certificate_number", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("training_id", sa.String(length=36), sa.ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "test_attempt_id",
            sa.String(length=36),
            sa.ForeignKey("training_test_attempts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.Date(), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("certificate_number", name="uq_training_certificates_number"),
        sa.UniqueConstraint("test_attempt_id", name="uq_training_certificates_attempt"),
    )
    op.create_index("ix_training_certificates_user_id", "training_certificates", ["user_id"])
    op.create_index("ix_training_certificates_training_id", "training_certificates", ["training_id"])
    op.create_index(
        "idx_training_certificates_user_training",
        "training_certificates",
        ["user_id", "training_id"],
    )


def downgrade() -> None:
    op.drop_table("training_certificates")
    op.drop_index("uq_training_attempts_one_open", table_name="training_test_attempts")
    op.drop_table("training_test_attempts")
    op.drop_table("training_test_questions")
    op.drop_table("training_tests")
    op.drop_table("training_assignments")
    op.drop_table("trainings")
    op.drop_table("users")
    sa.Enum(name="training_question_type_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="account_role_enum").drop(op.get_bind(), checkfirst=True)
