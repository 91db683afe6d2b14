"""create background_jobs table

Revision ID: 3b7c1e9d2a41
Revises:
Create Date: 2026-10-19 10:12:37.401256

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7c1e9d2a41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "background_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("type", sa.Text, nullable=False, comment="Job type"),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="PENDING",
            comment="Job status: PENDING|RUNNING|COMPLETED|FAILED",
        ),
        sa.Column(
            "payload",
            sa.Text,
            nullable=False,
            server_default="",
            comment="Serialized executor parameters",
        ),
        sa.Column(
            "retry_count",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Failed execution attempts",
        ),
        sa.Column("error", sa.Text, nullable=True, comment="Last failure message"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "executed_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="When the job completed successfully",
        ),
        sa.CheckConstraint(
            "status IN ('PENDING', 'RUNNING', 'COMPLETED', 'FAILED')",
            name="background_jobs_status_check",
        ),
        sa.CheckConstraint(
            "type IN ('EMAIL_SEND', 'WEBHOOK_CALL', 'DATA_CLEANUP', 'REPORT_EXPORT')",
            name="background_jobs_type_check",
        ),
        sa.CheckConstraint("retry_count >= 0", name="background_jobs_retry_count_check"),
    )

    # Retry sweep filters on status and retry_count, cleanup on created_at
    op.create_index(
        "ix_background_jobs_status_retry_count",
        "background_jobs",
        ["status", "retry_count"],
    )
    op.create_index(
        "ix_background_jobs_created_at", "background_jobs", ["created_at"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_background_jobs_created_at", table_name="background_jobs")
    op.drop_index(
        "ix_background_jobs_status_retry_count", table_name="background_jobs"
    )
    op.drop_table("background_jobs")
