"""
In-process scheduler that drives the job service on fixed intervals.
"""

import asyncio
import logging
import os
import socket
from collections.abc import Awaitable, Callable
from uuid import UUID

from taskhub.config.logging import job_log_context
from taskhub.config.settings import Settings
from taskhub.infra.database import Database
from taskhub.v1.core.registries import ExecutorRegistry
from taskhub.v1.infra.jobs.models import JobStatus
from taskhub.v1.infra.jobs.repository import SqlAlchemyJobRepository
from taskhub.v1.infra.jobs.service import JobService

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Periodic trigger for the job engine.

    Runs three loops until stopped:
    - pending sweep: executes PENDING jobs, each in its own session, with at
      most ``job_concurrency`` in flight
    - retry sweep: ``retry_failed_jobs`` every ``job_retry_interval_s``
    - cleanup sweep: ``cleanup_old_jobs`` every ``job_cleanup_interval_s``

    An error in one iteration is logged and the loop carries on. Stopping lets
    the current iteration finish; jobs still running when the shutdown timeout
    expires are cancelled and recorded as FAILED so a retry can pick them up.
    """

    def __init__(
        self, settings: Settings, database: Database, registry: ExecutorRegistry
    ):
        self.settings = settings
        self.database = database
        self.registry = registry
        self.scheduler_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self.active_jobs: set[UUID] = set()
        self._semaphore = asyncio.Semaphore(settings.job_concurrency)
        self._tasks: list[asyncio.Task] = []
        self._stopping = asyncio.Event()

    def _service(self, session) -> JobService:
        return JobService(SqlAlchemyJobRepository(session), self.registry, self.settings)

    def start(self) -> None:
        """Start the scheduler loops as background tasks."""
        if self.running:
            raise RuntimeError("Scheduler is already running")

        self.running = True
        self._stopping.clear()
        logger.info(
            "Starting job scheduler",
            extra={
                "scheduler_id": self.scheduler_id,
                "concurrency": self.settings.job_concurrency,
                "poll_interval_s": self.settings.job_poll_interval_s,
            },
        )

        self._tasks = [
            asyncio.create_task(
                self._loop(
                    "pending", self.settings.job_poll_interval_s, self.run_pending_sweep
                )
            ),
            asyncio.create_task(
                self._loop(
                    "retry", self.settings.job_retry_interval_s, self.run_retry_sweep
                )
            ),
            asyncio.create_task(
                self._loop(
                    "cleanup",
                    self.settings.job_cleanup_interval_s,
                    self.run_cleanup_sweep,
                )
            ),
        ]

    async def stop(self) -> None:
        """Stop the loops, waiting a bounded time for the current iterations."""
        logger.info("Stopping job scheduler", extra={"scheduler_id": self.scheduler_id})
        self.running = False
        self._stopping.set()

        if not self._tasks:
            return

        _, unfinished = await asyncio.wait(
            self._tasks, timeout=self.settings.job_shutdown_timeout_s
        )

        if unfinished:
            logger.warning(
                "Scheduler stopped with active jobs",
                extra={
                    "scheduler_id": self.scheduler_id,
                    "active_jobs": len(self.active_jobs),
                },
            )
            # Running jobs see CancelledError and are recorded as FAILED
            for task in unfinished:
                task.cancel()
            await asyncio.gather(*unfinished, return_exceptions=True)

        self._tasks = []

    async def _loop(
        self, name: str, interval_s: int, sweep: Callable[[], Awaitable[int]]
    ) -> None:
        while self.running:
            try:
                await sweep()
            except Exception:
                logger.exception(
                    "Error in scheduler loop",
                    extra={"scheduler_id": self.scheduler_id, "loop": name},
                )
            await self._wait(interval_s)

    async def _wait(self, interval_s: int) -> None:
        """Sleep until the next iteration, waking early when stopping."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=interval_s)
        except TimeoutError:
            pass

    async def run_pending_sweep(self) -> int:
        """Execute all currently PENDING jobs. Returns how many were started."""
        async with self.database.session_scope() as session:
            pending = await SqlAlchemyJobRepository(session).find_by_status(
                JobStatus.PENDING
            )
            job_ids = [job.id for job in pending if job.id not in self.active_jobs]

        if not job_ids:
            return 0

        logger.debug(
            "Dispatching pending jobs",
            extra={"scheduler_id": self.scheduler_id, "job_count": len(job_ids)},
        )

        await asyncio.gather(*(self._run_job(job_id) for job_id in job_ids))
        return len(job_ids)

    async def _run_job(self, job_id: UUID) -> None:
        async with self._semaphore:
            self.active_jobs.add(job_id)
            try:
                with job_log_context(str(job_id), scheduler_id=self.scheduler_id):
                    async with self.database.session_scope() as session:
                        await self._service(session).execute_job(job_id)
            except Exception:
                logger.exception(
                    "Job dispatch failed",
                    extra={"scheduler_id": self.scheduler_id, "job_id": str(job_id)},
                )
            finally:
                self.active_jobs.discard(job_id)

    async def run_retry_sweep(self) -> int:
        async with self.database.session_scope() as session:
            return await self._service(session).retry_failed_jobs()

    async def run_cleanup_sweep(self) -> int:
        async with self.database.session_scope() as session:
            return await self._service(session).cleanup_old_jobs()


# Scheduler instance management
_scheduler_instance: JobScheduler | None = None


def get_scheduler(
    settings: Settings, database: Database, registry: ExecutorRegistry
) -> JobScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler_instance
    if _scheduler_instance is None:
        _scheduler_instance = JobScheduler(settings, database, registry)
    return _scheduler_instance
