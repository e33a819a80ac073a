"""create applications, status history and approval tokens

Revision ID: 0001_create_applications
Revises:
Create Date: 2026-10-18 12:00:00.000000

Creates the three workflow tables. Enum types store member names
(SUBMITTED, PENDING_DEAN, ...) as SQLAlchemy's Enum type does by default.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_create_applications"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

application_status = postgresql.ENUM(
    "SUBMITTED",
    "PENDING_DIVISION_CHAIR",
    "PENDING_SENIOR_ASSOCIATE_DEAN",
    "PENDING_DEAN",
    "APPROVED",
    "DENIED",
    name="application_status",
    create_type=False,
)
approver_role = postgresql.ENUM(
    "DEPARTMENT_CHAIR",
    "DIVISION_CHAIR",
    "SENIOR_ASSOCIATE_DEAN",
    "DEAN",
    name="approver_role",
    create_type=False,
)
appointment_type = postgresql.ENUM(
    "INITIAL", "SECONDARY", name="appointment_type", create_type=False
)
institution = postgresql.ENUM("VANDERBILT", "VUMC", name="institution", create_type=False)


def upgrade() -> None:
    """Create workflow tables."""
    bind = op.get_bind()
    for enum_type in (application_status, approver_role, appointment_type, institution):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "applications",
        sa.Column("id", sa.String(length=32), nullable=False),
        # Faculty member
        sa.Column("faculty_name", sa.String(length=200), nullable=False),
        sa.Column("faculty_email", sa.String(length=255), nullable=False),
        sa.Column("faculty_title", sa.String(length=200), nullable=False),
        sa.Column("faculty_department", sa.String(length=200), nullable=True),
        sa.Column("faculty_college", sa.String(length=200), nullable=False),
        sa.Column("faculty_institution", institution, nullable=False),
        # Appointment
        sa.Column("appointment_type", appointment_type, nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("duration", sa.String(length=100), nullable=True),
        sa.Column("rationale", sa.Text(), nullable=False),
        sa.Column("contributions_question", sa.Text(), nullable=True),
        sa.Column("alignment_question", sa.Text(), nullable=True),
        sa.Column("enhancement_question", sa.Text(), nullable=True),
        # CV document
        sa.Column("cv_file_path", sa.String(length=500), nullable=False),
        sa.Column("cv_file_name", sa.String(length=255), nullable=False),
        sa.Column("cv_mime_type", sa.String(length=100), nullable=False),
        sa.Column("cv_file_size", sa.Integer(), nullable=False),
        # Workflow
        sa.Column("approval_chain", sa.JSON(), nullable=False),
        sa.Column("chain_position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", application_status, nullable=False),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("last_reminder_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index("ix_applications_faculty_email", "applications", ["faculty_email"])
    op.create_index("ix_applications_submitted_at", "applications", ["submitted_at"])

    op.create_table(
        "status_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("application_id", sa.String(length=32), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("status", application_status, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approver_name", sa.String(length=200), nullable=True),
        sa.Column("approver_email", sa.String(length=255), nullable=True),
        sa.Column("approver_role", approver_role, nullable=True),
        sa.Column("signature", sa.String(length=200), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_status_history_application_sequence",
        "status_history",
        ["application_id", "sequence"],
        unique=True,
    )
    op.create_index("ix_status_history_timestamp", "status_history", ["timestamp"])

    op.create_table(
        "approval_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("application_id", sa.String(length=32), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("approver_email", sa.String(length=255), nullable=False),
        sa.Column("approver_role", approver_role, nullable=False),
        sa.Column("chain_position", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_hash"),
    )
    op.create_index(
        "ix_approval_tokens_application_position",
        "approval_tokens",
        ["application_id", "chain_position"],
    )


def downgrade() -> None:
    """Drop workflow tables and enum types."""
    op.drop_index("ix_approval_tokens_application_position", table_name="approval_tokens")
    op.drop_table("approval_tokens")
    op.drop_index("ix_status_history_timestamp", table_name="status_history")
    op.drop_index("ix_status_history_application_sequence", table_name="status_history")
    op.drop_table("status_history")
    op.drop_index("ix_applications_submitted_at", table_name="applications")
    op.drop_index("ix_applications_faculty_email", table_name="applications")
    op.drop_index("ix_applications_status", table_name="applications")
    op.drop_table("applications")

    bind = op.get_bind()
    for enum_type in (institution, appointment_type, approver_role, application_status):
        enum_type.drop(bind, checkfirst=True)
