"""
Background job admin API endpoints.

Thin HTTP surface over JobService for operators: inspect, schedule, run,
retry and clean up jobs. Not-found and invalid-state errors are rendered by
the application exception handler.
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config.settings import Settings, SettingsDep
from taskhub.infra.database import SessionDep
from taskhub.v1.core.exceptions import create_success_response
from taskhub.v1.core.registries import executor_registry
from taskhub.v1.infra.jobs.repository import SqlAlchemyJobRepository
from taskhub.v1.infra.jobs.schemas import (
    JobCleanupResponse,
    JobCountResponse,
    JobCreate,
)
from taskhub.v1.infra.jobs.service import JobService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/jobs", tags=["jobs"])


def get_job_service(
    session: AsyncSession = SessionDep,
    settings: Settings = SettingsDep,
) -> JobService:
    """Dependency injection for the job service bound to the request session."""
    return JobService(SqlAlchemyJobRepository(session), executor_registry, settings)


JobServiceDep = Depends(get_job_service)


@router.get("", response_model=dict)
async def list_jobs(job_service: JobService = JobServiceDep) -> dict[str, Any]:
    """List all background jobs."""
    jobs = await job_service.get_all_jobs()
    return create_success_response(data=[job.model_dump(mode="json") for job in jobs])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def schedule_job(
    job_request: JobCreate, job_service: JobService = JobServiceDep
) -> dict[str, Any]:
    """Schedule a new background job."""
    job = await job_service.schedule_job(job_request.type, job_request.payload)

    logger.info(
        "Job scheduled via API", extra={"job_id": str(job.id), "type": job.type.value}
    )

    return create_success_response(data=job.model_dump(mode="json"))


@router.get("/stats", response_model=dict)
async def get_job_stats(job_service: JobService = JobServiceDep) -> dict[str, Any]:
    """Get job counts per status."""
    stats = await job_service.get_job_stats()
    return create_success_response(data=stats.model_dump(mode="json"))


@router.post("/retry-all", response_model=dict)
async def retry_failed_jobs(job_service: JobService = JobServiceDep) -> dict[str, Any]:
    """Queue every automatically retryable failed job for another attempt."""
    count = await job_service.retry_failed_jobs()

    logger.info("Failed jobs retried via API", extra={"count": count})

    return create_success_response(data=JobCountResponse(count=count).model_dump())


@router.post("/process-pending", response_model=dict)
async def process_pending_jobs(
    job_service: JobService = JobServiceDep,
) -> dict[str, Any]:
    """Run every PENDING job now, one after another, within this request."""
    count = await job_service.process_pending_jobs()

    logger.info("Pending jobs processed via API", extra={"count": count})

    return create_success_response(data=JobCountResponse(count=count).model_dump())


@router.post("/cleanup", response_model=dict)
async def cleanup_old_jobs(
    job_service: JobService = JobServiceDep,
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Delete jobs older than the retention window."""
    deleted = await job_service.cleanup_old_jobs()

    response = JobCleanupResponse(
        deleted=deleted, retention_days=settings.job_retention_days
    )
    return create_success_response(data=response.model_dump())


@router.get("/{job_id}", response_model=dict)
async def get_job(job_id: UUID, job_service: JobService = JobServiceDep) -> dict[str, Any]:
    """Get a specific job by ID."""
    job = await job_service.get_job(job_id)
    return create_success_response(data=job.model_dump(mode="json"))


@router.post("/{job_id}/execute", response_model=dict)
async def execute_job(
    job_id: UUID, job_service: JobService = JobServiceDep
) -> dict[str, Any]:
    """Run a job now and return its resulting state."""
    job = await job_service.execute_job(job_id)

    logger.info(
        "Job executed via API",
        extra={"job_id": str(job_id), "status": job.status.value},
    )

    return create_success_response(data=job.model_dump(mode="json"))


@router.post("/{job_id}/retry", response_model=dict)
async def retry_job(job_id: UUID, job_service: JobService = JobServiceDep) -> dict[str, Any]:
    """Reset a failed job to PENDING."""
    job = await job_service.retry_job(job_id)

    logger.info("Job retried via API", extra={"job_id": str(job_id)})

    return create_success_response(data=job.model_dump(mode="json"))
