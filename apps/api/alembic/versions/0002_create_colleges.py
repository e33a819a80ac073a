"""create college and department catalog

Revision ID: 0002_create_colleges
Revises: 0001_create_applications
Create Date: 2026-10-18 15:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_create_colleges"
down_revision: str | Sequence[str] | None = "0001_create_applications"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create colleges and departments tables."""
    op.create_table(
        "colleges",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("has_departments", sa.Boolean(), nullable=False, server_default=sa.true()),
        # Dean
        sa.Column("dean_name", sa.String(length=200), nullable=False),
        sa.Column("dean_email", sa.String(length=255), nullable=False),
        sa.Column("dean_title", sa.String(length=100), nullable=False, server_default="Dean"),
        # Senior associate dean
        sa.Column("senior_associate_dean_name", sa.String(length=200), nullable=True),
        sa.Column("senior_associate_dean_email", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at",
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
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "departments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("college_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        # Department chair
        sa.Column("chair_name", sa.String(length=200), nullable=False),
        sa.Column("chair_email", sa.String(length=255), nullable=False),
        sa.Column(
            "chair_title",
            sa.String(length=100),
            nullable=False,
            server_default="Department Chair",
        ),
        # Division chair
        sa.Column("division_chair_name", sa.String(length=200), nullable=True),
        sa.Column("division_chair_email", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at",
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
        sa.ForeignKeyConstraint(["college_id"], ["colleges.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_departments_college_id", "departments", ["college_id"])


def downgrade() -> None:
    """Drop the catalog tables."""
    op.drop_index("ix_departments_college_id", table_name="departments")
    op.drop_table("departments")
    op.drop_table("colleges")
