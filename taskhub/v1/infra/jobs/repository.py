"""
Job record store backed by SQLAlchemy.
"""

import logging
from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.v1.core.exceptions import StaleJobStateError
from taskhub.v1.infra.jobs.models import BackgroundJob, JobStatus

logger = logging.getLogger(__name__)

# Columns the engine may change after creation
_MUTABLE_COLUMNS = ("status", "retry_count", "error", "executed_at")


class JobRepository(Protocol):
    """Storage contract consumed by the job service."""

    async def save(
        self, job: BackgroundJob, expected_status: JobStatus | None = None
    ) -> BackgroundJob:
        """
        Persist a job.

        When ``expected_status`` is given the write only succeeds if the stored
        row still has that status; otherwise ``StaleJobStateError`` is raised.
        """
        ...

    async def find_by_id(self, job_id: UUID) -> BackgroundJob | None: ...

    async def find_all(self) -> list[BackgroundJob]: ...

    async def find_by_status(self, status: JobStatus) -> list[BackgroundJob]: ...

    async def find_failed_jobs_for_retry(self, max_retries: int) -> list[BackgroundJob]:
        """FAILED jobs whose retry_count is below ``max_retries``."""
        ...

    async def delete_by_created_at_before(self, cutoff: datetime) -> int:
        """Delete jobs created before ``cutoff`` regardless of status."""
        ...

    async def count_by_status(self) -> dict[str, int]: ...


class SqlAlchemyJobRepository:
    """JobRepository over an AsyncSession. Each write commits."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(
        self, job: BackgroundJob, expected_status: JobStatus | None = None
    ) -> BackgroundJob:
        if expected_status is None:
            self.session.add(job)
            await self.session.commit()
            return job

        job_id = job.id
        expected = JobStatus(expected_status).value
        values = {column: getattr(job, column) for column in _MUTABLE_COLUMNS}

        # The pending in-memory changes must not be flushed ahead of the guard
        with self.session.no_autoflush:
            result = await self.session.execute(
                update(BackgroundJob)
                .where(BackgroundJob.id == job_id, BackgroundJob.status == expected)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

        if result.rowcount == 0:
            # Drop the unsaved transition so a later commit cannot write it
            self.session.expire(job, list(_MUTABLE_COLUMNS))
            logger.info(
                "Conditional job update lost",
                extra={"job_id": str(job_id), "expected_status": expected},
            )
            raise StaleJobStateError(job_id, expected)

        await self.session.commit()
        return job

    async def find_by_id(self, job_id: UUID) -> BackgroundJob | None:
        return await self.session.get(BackgroundJob, job_id, populate_existing=True)

    async def find_all(self) -> list[BackgroundJob]:
        result = await self.session.execute(
            select(BackgroundJob).order_by(BackgroundJob.created_at, BackgroundJob.id)
        )
        return list(result.scalars().all())

    async def find_by_status(self, status: JobStatus) -> list[BackgroundJob]:
        result = await self.session.execute(
            select(BackgroundJob)
            .where(BackgroundJob.status == JobStatus(status).value)
            .order_by(BackgroundJob.created_at)
        )
        return list(result.scalars().all())

    async def find_failed_jobs_for_retry(self, max_retries: int) -> list[BackgroundJob]:
        result = await self.session.execute(
            select(BackgroundJob)
            .where(
                BackgroundJob.status == JobStatus.FAILED.value,
                BackgroundJob.retry_count < max_retries,
            )
            .order_by(BackgroundJob.created_at)
        )
        return list(result.scalars().all())

    async def delete_by_created_at_before(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(BackgroundJob)
            .where(BackgroundJob.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(BackgroundJob.status, func.count(BackgroundJob.id)).group_by(
                BackgroundJob.status
            )
        )
        return {status: count for status, count in result.all()}
