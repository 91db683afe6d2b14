from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config.settings import Settings, SettingsDep
from taskhub.infra.database import SessionDep
from taskhub.v1.core.exceptions import create_success_response
from taskhub.v1.core.registries import executor_registry
from taskhub.v1.infra.jobs.models import JobStatus
from taskhub.v1.infra.jobs.repository import SqlAlchemyJobRepository

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class JobQueueHealth(BaseModel):
    """Background job queue status."""

    pending: int = 0
    running: int = 0
    failed: int = 0
    registered_executors: list[str] = []


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = SessionDep
):
    """Health check endpoint with database and job queue status."""

    timestamp = datetime.now(UTC).isoformat()

    db_health = await _check_database_health(session)

    # Queue status is informational and never fails the overall check
    jobs_health = None
    if db_health.connected:
        try:
            jobs_health = await _check_job_queue(session)
        except Exception:
            jobs_health = JobQueueHealth(
                registered_executors=executor_registry.list()
            )

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": timestamp,
        "database": db_health.model_dump(),
        "jobs": jobs_health.model_dump() if jobs_health else None,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_job_queue(session: AsyncSession) -> JobQueueHealth:
    """Count jobs per status for queue monitoring."""
    counts = await SqlAlchemyJobRepository(session).count_by_status()

    return JobQueueHealth(
        pending=counts.get(JobStatus.PENDING.value, 0),
        running=counts.get(JobStatus.RUNNING.value, 0),
        failed=counts.get(JobStatus.FAILED.value, 0),
        registered_executors=executor_registry.list(),
    )
