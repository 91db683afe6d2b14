"""
Background job models.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from taskhub.infra.database import Base

# Ceiling for automatic retry selection; manual retries are not limited by it
MAX_RETRIES = 3


class JobType(str, Enum):
    """Kinds of background work, each handled by exactly one executor."""

    EMAIL_SEND = "EMAIL_SEND"
    WEBHOOK_CALL = "WEBHOOK_CALL"
    DATA_CLEANUP = "DATA_CLEANUP"
    REPORT_EXPORT = "REPORT_EXPORT"


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class BackgroundJob(Base):
    """
    A persisted unit of deferred work.

    Rows are created PENDING by the job service and only ever mutated through
    the transition methods below:

    - ``mark_running``: PENDING/FAILED -> RUNNING
    - ``mark_completed``: RUNNING -> COMPLETED, stamps ``executed_at``
    - ``mark_failed``: -> FAILED, records the error and bumps ``retry_count``
    - ``reset_for_retry``: FAILED -> PENDING, clears the error
    """

    __tablename__ = "background_jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    type: Mapped[str] = mapped_column(Text, nullable=False, comment="Job type")
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="Job status: PENDING|RUNNING|COMPLETED|FAILED",
    )
    payload: Mapped[str] = mapped_column(
        Text, nullable=False, default="", comment="Serialized executor parameters"
    )
    retry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Failed execution attempts"
    )
    error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last failure message"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    executed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the job completed successfully",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'RUNNING', 'COMPLETED', 'FAILED')",
            name="background_jobs_status_check",
        ),
        CheckConstraint(
            "type IN ('EMAIL_SEND', 'WEBHOOK_CALL', 'DATA_CLEANUP', 'REPORT_EXPORT')",
            name="background_jobs_type_check",
        ),
        CheckConstraint("retry_count >= 0", name="background_jobs_retry_count_check"),
        Index("ix_background_jobs_status_retry_count", "status", "retry_count"),
        Index("ix_background_jobs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"BackgroundJob(id={self.id}, type={self.type}, status={self.status}, "
            f"retry_count={self.retry_count})"
        )

    def can_retry(self, max_retries: int = MAX_RETRIES) -> bool:
        """Check if the job is eligible for automatic retry."""
        return (
            self.status == JobStatus.FAILED.value
            and (self.retry_count or 0) < max_retries
        )

    def is_terminal(self) -> bool:
        """Completed jobs never run again."""
        return self.status == JobStatus.COMPLETED.value

    def mark_running(self) -> None:
        self.status = JobStatus.RUNNING.value

    def mark_completed(self) -> None:
        self.status = JobStatus.COMPLETED.value
        self.executed_at = datetime.now(UTC)
        self.error = None

    def mark_failed(self, error_message: str) -> None:
        self.status = JobStatus.FAILED.value
        self.error = error_message
        self.retry_count = (self.retry_count or 0) + 1

    def reset_for_retry(self) -> None:
        self.status = JobStatus.PENDING.value
        self.error = None
