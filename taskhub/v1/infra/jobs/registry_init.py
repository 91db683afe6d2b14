"""
Executor registry initialization.

Registers one executor per job type with the global executor registry.
"""

import logging

from taskhub.config.settings import Settings, settings
from taskhub.infra.database import get_database
from taskhub.v1.core.registries import ExecutorRegistry, JobExecutor, executor_registry
from taskhub.v1.infra.jobs.executors import (
    DataCleanupJobExecutor,
    EmailJobExecutor,
    ReportExportJobExecutor,
    WebhookJobExecutor,
)

logger = logging.getLogger(__name__)


def build_executors(app_settings: Settings) -> list[JobExecutor]:
    """Instantiate the built-in executors."""
    return [
        EmailJobExecutor(app_settings),
        WebhookJobExecutor(app_settings),
        DataCleanupJobExecutor(
            session_factory=lambda: get_database(app_settings).SessionLocal()
        ),
        ReportExportJobExecutor(),
    ]


def register_job_executors(
    registry: ExecutorRegistry = executor_registry,
    app_settings: Settings = settings,
) -> ExecutorRegistry:
    """Register all built-in executors; a repeated job type fails fast."""

    logger.info("Registering job executors")

    for executor in build_executors(app_settings):
        registry.register_executor(executor)

    logger.info(
        "Job executors registered", extra={"registered_executors": registry.list()}
    )
    return registry
