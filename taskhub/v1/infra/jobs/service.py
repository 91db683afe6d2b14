"""
Job service: scheduling, dispatch and lifecycle management for background jobs.
"""

import asyncio
import logging
import uuid
from datetime import UTC, datetime, timedelta
from uuid import UUID

from taskhub.config.settings import Settings
from taskhub.v1.core.exceptions import (
    InvalidJobStateError,
    JobNotFoundError,
    StaleJobStateError,
)
from taskhub.v1.core.registries import ExecutorRegistry
from taskhub.v1.infra.jobs.models import (
    MAX_RETRIES,
    BackgroundJob,
    JobStatus,
    JobType,
)
from taskhub.v1.infra.jobs.repository import JobRepository
from taskhub.v1.infra.jobs.schemas import JobResponse, JobStatsResponse

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "Job cancelled during shutdown"


class JobService:
    """
    Background job execution engine.

    Executor failures and missing executors are recorded on the job rather
    than raised; only ``JobNotFoundError`` and ``InvalidJobStateError`` reach
    callers. Retrying and running are separate calls so that the caller
    controls pacing.
    """

    def __init__(
        self,
        repository: JobRepository,
        registry: ExecutorRegistry,
        settings: Settings,
    ):
        self.repository = repository
        self.registry = registry
        self.settings = settings

    async def schedule_job(self, job_type: JobType, payload: str) -> JobResponse:
        """
        Create a PENDING job.

        The payload is stored as given; its shape is checked by the executor
        when the job runs.
        """
        job = BackgroundJob(
            id=uuid.uuid4(),
            type=JobType(job_type).value,
            status=JobStatus.PENDING.value,
            payload=payload,
            retry_count=0,
            error=None,
            created_at=datetime.now(UTC),
            executed_at=None,
        )

        saved = await self.repository.save(job)

        logger.info(
            "Scheduled background job",
            extra={"job_id": str(saved.id), "type": saved.type},
        )

        return self._to_response(saved)

    async def execute_job(self, job_id: UUID) -> JobResponse:
        """
        Run a job through its executor and record the outcome.

        Raises:
            JobNotFoundError: No job with this id exists.
        """
        job = await self._load(job_id)

        if job.status == JobStatus.RUNNING.value or job.is_terminal():
            logger.info(
                "Skipping job execution",
                extra={"job_id": str(job_id), "status": job.status},
            )
            return self._to_response(job)

        previous_status = JobStatus(job.status)
        executor = self.registry.for_type(job.type)

        if executor is None:
            job.mark_failed(f"No executor found for job type {job.type}")
            try:
                await self.repository.save(job, expected_status=previous_status)
            except StaleJobStateError:
                return await self._reload_after_race(job_id)

            logger.error(
                "No executor found for job type",
                extra={"job_id": str(job_id), "type": job.type},
            )
            return self._to_response(job)

        job.mark_running()
        try:
            await self.repository.save(job, expected_status=previous_status)
        except StaleJobStateError:
            return await self._reload_after_race(job_id)

        try:
            await executor.execute(job.payload)
        except asyncio.CancelledError:
            await self._record_cancelled(job)
            raise
        except Exception as e:
            job.mark_failed(str(e) or e.__class__.__name__)
            await self.repository.save(job)

            logger.error(
                "Job failed",
                extra={
                    "job_id": str(job_id),
                    "type": job.type,
                    "error": job.error,
                    "retry_count": job.retry_count,
                },
                exc_info=True,
            )
            return self._to_response(job)

        job.mark_completed()
        await self.repository.save(job)

        logger.info(
            "Job completed successfully",
            extra={"job_id": str(job_id), "type": job.type},
        )
        return self._to_response(job)

    async def retry_failed_jobs(self) -> int:
        """Reset FAILED jobs below the retry ceiling to PENDING.

        Returns the number of jobs reset. Nothing is executed here.
        """
        failed_jobs = await self.repository.find_failed_jobs_for_retry(MAX_RETRIES)
        count = 0

        for job in failed_jobs:
            if not job.can_retry(MAX_RETRIES):
                continue

            job_id = job.id
            job.reset_for_retry()
            try:
                await self.repository.save(job, expected_status=JobStatus.FAILED)
            except StaleJobStateError:
                # Picked up elsewhere since the sweep read it
                continue

            count += 1
            logger.info(
                "Job queued for retry",
                extra={
                    "job_id": str(job_id),
                    "type": job.type,
                    "retry_count": job.retry_count,
                },
            )

        if count > 0:
            logger.info("Queued failed jobs for retry", extra={"count": count})

        return count

    async def retry_job(self, job_id: UUID) -> JobResponse:
        """
        Reset one FAILED job to PENDING, ignoring the automatic retry ceiling.

        Raises:
            JobNotFoundError: No job with this id exists.
            InvalidJobStateError: The job is not FAILED.
        """
        job = await self._load(job_id)

        if job.status != JobStatus.FAILED.value:
            raise InvalidJobStateError(
                f"Job cannot be retried. Status: {job.status}, "
                f"retryCount: {job.retry_count}",
                {"job_id": str(job_id), "status": job.status},
            )

        job.reset_for_retry()
        try:
            saved = await self.repository.save(job, expected_status=JobStatus.FAILED)
        except StaleJobStateError:
            current = await self._load(job_id)
            raise InvalidJobStateError(
                f"Job cannot be retried. Status: {current.status}, "
                f"retryCount: {current.retry_count}",
                {"job_id": str(job_id), "status": current.status},
            ) from None

        logger.info(
            "Job queued for retry",
            extra={"job_id": str(job_id), "type": saved.type},
        )
        return self._to_response(saved)

    async def cleanup_old_jobs(self) -> int:
        """Delete jobs of any status created before the retention window."""
        retention_days = self.settings.job_retention_days
        cutoff = datetime.now(UTC) - timedelta(days=retention_days)

        deleted = await self.repository.delete_by_created_at_before(cutoff)

        if deleted > 0:
            logger.info(
                "Cleaned up old background jobs",
                extra={
                    "deleted_count": deleted,
                    "retention_days": retention_days,
                    "cutoff": cutoff.isoformat(),
                },
            )

        return deleted

    async def process_pending_jobs(self) -> int:
        """
        Execute every PENDING job in turn within this service's session.

        Backs the admin "process pending" trigger, which drains the queue when
        the scheduler is disabled. The scheduler runs the same per-job
        ``execute_job`` path concurrently, one session per job. Returns the
        number of jobs attempted.
        """
        pending_jobs = await self.repository.find_by_status(JobStatus.PENDING)
        job_ids = [job.id for job in pending_jobs]

        logger.debug(
            "Processing pending background jobs", extra={"count": len(job_ids)}
        )

        attempted = 0
        for job_id in job_ids:
            try:
                await self.execute_job(job_id)
                attempted += 1
            except JobNotFoundError:
                # Removed by a cleanup sweep after being listed
                continue
            except Exception:
                logger.exception(
                    "Error processing job", extra={"job_id": str(job_id)}
                )

        return attempted

    async def get_all_jobs(self) -> list[JobResponse]:
        """List all jobs in store order."""
        jobs = await self.repository.find_all()
        return [self._to_response(job) for job in jobs]

    async def get_job(self, job_id: UUID) -> JobResponse:
        """Get a specific job by ID."""
        return self._to_response(await self._load(job_id))

    async def get_job_stats(self) -> JobStatsResponse:
        """Get job counts per status."""
        counts = await self.repository.count_by_status()
        by_status = {status.value: counts.get(status.value, 0) for status in JobStatus}

        return JobStatsResponse(
            total_jobs=sum(by_status.values()),
            by_status=by_status,
            queue_depth=by_status[JobStatus.PENDING.value]
            + by_status[JobStatus.RUNNING.value],
            registered_types=self.registry.job_types(),
        )

    async def _load(self, job_id: UUID) -> BackgroundJob:
        job = await self.repository.find_by_id(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def _record_cancelled(self, job: BackgroundJob) -> None:
        """Move a job whose executor was cancelled from RUNNING to FAILED."""
        job_id = job.id
        job.mark_failed(CANCELLED_ERROR)
        try:
            await self.repository.save(job, expected_status=JobStatus.RUNNING)
        except StaleJobStateError:
            return

        logger.warning(
            "Job cancelled while running",
            extra={"job_id": str(job_id), "type": job.type},
        )

    async def _reload_after_race(self, job_id: UUID) -> JobResponse:
        """Another caller moved the job first; report its current state."""
        logger.info(
            "Job already picked up by another caller", extra={"job_id": str(job_id)}
        )
        return self._to_response(await self._load(job_id))

    @staticmethod
    def _to_response(job: BackgroundJob) -> JobResponse:
        return JobResponse.model_validate(job)
