"""
Background job Pydantic schemas.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taskhub.v1.infra.jobs.models import JobStatus, JobType


class JobCreate(BaseModel):
    """Schema for scheduling a new job."""

    type: JobType = Field(..., description="Job type")
    payload: str = Field(
        default="{}", description="Serialized parameters passed to the executor"
    )


class JobResponse(BaseModel):
    """Serialized job representation."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: JobType
    status: JobStatus
    payload: str
    retry_count: int
    error: str | None = None
    created_at: datetime
    executed_at: datetime | None = None


class JobStatsResponse(BaseModel):
    """Schema for job statistics."""

    total_jobs: int
    by_status: dict[str, int]
    queue_depth: int  # pending + running
    registered_types: list[JobType] = Field(default_factory=list)


class JobCountResponse(BaseModel):
    """Result of a bulk retry sweep."""

    count: int


class JobCleanupResponse(BaseModel):
    """Result of an age-based cleanup sweep."""

    deleted: int
    retention_days: int
