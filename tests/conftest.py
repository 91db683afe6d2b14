import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from taskhub.config.settings import Settings
from taskhub.infra.database import Base, get_session
from taskhub.v1.core.exceptions import ExecutionError
from taskhub.v1.core.registries import ExecutorRegistry
from taskhub.v1.infra.jobs.models import BackgroundJob, JobStatus, JobType


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an in-memory SQLite database."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        debug=False,
        job_retention_days=30,
        job_concurrency=2,
        job_shutdown_timeout_s=1,
    )


@pytest.fixture
async def test_engine():
    """Create a test database engine shared by every session in the test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(session_factory):
    """Create a test FastAPI application with the test database."""
    from taskhub.main import create_app

    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class RecordingExecutor:
    """Executor double that records payloads and can be told to fail."""

    def __init__(self, job_type: JobType, error: Exception | None = None):
        self.job_type = job_type
        self.error = error
        self.payloads: list[str] = []

    async def execute(self, payload: str) -> None:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error


@pytest.fixture
def recording_executor() -> Callable[..., RecordingExecutor]:
    return RecordingExecutor


@pytest.fixture
def email_executor() -> RecordingExecutor:
    return RecordingExecutor(JobType.EMAIL_SEND)


@pytest.fixture
def failing_webhook_executor() -> RecordingExecutor:
    return RecordingExecutor(JobType.WEBHOOK_CALL, ExecutionError("boom"))


@pytest.fixture
def registry(email_executor, failing_webhook_executor) -> ExecutorRegistry:
    """Registry with a succeeding EMAIL_SEND and a failing WEBHOOK_CALL executor."""
    return ExecutorRegistry.from_executors([email_executor, failing_webhook_executor])


@pytest.fixture
def mock_repository() -> AsyncMock:
    """In-memory store double; ``save`` hands back the job it was given."""
    repository = AsyncMock()
    repository.save.side_effect = lambda job, expected_status=None: job
    return repository


@pytest.fixture
def make_job() -> Callable[..., BackgroundJob]:
    """Factory for detached job rows."""

    def _make_job(
        job_type: JobType = JobType.EMAIL_SEND,
        status: JobStatus = JobStatus.PENDING,
        payload: str = "{}",
        retry_count: int = 0,
        error: str | None = None,
        created_at: datetime | None = None,
    ) -> BackgroundJob:
        return BackgroundJob(
            id=uuid.uuid4(),
            type=job_type.value,
            status=status.value,
            payload=payload,
            retry_count=retry_count,
            error=error,
            created_at=created_at or datetime.now(UTC),
            executed_at=None,
        )

    return _make_job
