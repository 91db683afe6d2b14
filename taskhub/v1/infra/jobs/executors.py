"""
Job executors for background processing.

Each executor handles exactly one job type and implements the JobExecutor
protocol from the executor registry. Failures are reported by raising
ExecutionError; the job service records the message on the job.
"""

import asyncio
import logging
import smtplib
from datetime import UTC, datetime, timedelta
from email.message import EmailMessage
from enum import Enum
from typing import Any, Callable, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config.settings import Settings
from taskhub.v1.core.exceptions import ExecutionError
from taskhub.v1.infra.jobs.models import JobType
from taskhub.v1.infra.jobs.repository import SqlAlchemyJobRepository

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def parse_payload(model: type[PayloadT], payload: str) -> PayloadT:
    """Parse a serialized payload, converting validation failures to ExecutionError."""
    try:
        return model.model_validate_json(payload or "{}")
    except PydanticValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
            for err in e.errors()
        )
        raise ExecutionError(f"Invalid {model.__name__}: {errors}") from e


class _CamelPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# Email


class EmailType(str, Enum):
    INVITATION = "INVITATION"
    PASSWORD_RESET = "PASSWORD_RESET"
    VERIFICATION = "VERIFICATION"
    WELCOME = "WELCOME"
    NOTIFICATION = "NOTIFICATION"


class EmailJobPayload(_CamelPayload):
    """
    Payload for EMAIL_SEND jobs.

    {
        "emailType": "INVITATION|PASSWORD_RESET|VERIFICATION|WELCOME|NOTIFICATION",
        "to": "recipient@example.com",
        "firstName": "Ada",
        ... fields required by the email type
    }
    """

    email_type: str = Field(..., alias="emailType")
    to: str
    first_name: str = Field(default="", alias="firstName")
    organization_name: str | None = Field(default=None, alias="organizationName")
    token: str | None = None
    role: str | None = None
    notification_type: str | None = Field(default=None, alias="notificationType")
    title: str | None = None
    message: str | None = None
    link: str | None = None

    def require(self, *fields: str) -> None:
        missing = [name for name in fields if getattr(self, name) is None]
        if missing:
            raise ExecutionError(
                f"Missing fields for {self.email_type} email: {', '.join(missing)}"
            )


class EmailSender(Protocol):
    """Delivers a fully built message."""

    async def send(self, message: EmailMessage) -> None: ...


class SmtpEmailSender:
    """EmailSender over SMTP. smtplib blocks, so delivery runs in a thread."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout_s

    async def send(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)


class EmailJobExecutor:
    """Executor for EMAIL_SEND jobs."""

    job_type = JobType.EMAIL_SEND

    def __init__(self, settings: Settings, sender: EmailSender | None = None):
        self.settings = settings
        self.sender = sender or SmtpEmailSender(settings)

    async def execute(self, payload: str) -> None:
        request = parse_payload(EmailJobPayload, payload)
        subject, body = self._compose(request)

        message = EmailMessage()
        message["From"] = self.settings.mail_from
        message["To"] = request.to
        message["Subject"] = subject
        message.set_content(body)

        try:
            await self.sender.send(message)
        except (smtplib.SMTPException, OSError) as e:
            raise ExecutionError(str(e) or "SMTP delivery failed") from e

        logger.info(
            "Email job executed",
            extra={"email_type": request.email_type, "to": request.to},
        )

    def _compose(self, request: EmailJobPayload) -> tuple[str, str]:
        """Subject and plain-text body for each email type."""
        greeting = f"Hello {request.first_name}," if request.first_name else "Hello,"

        try:
            email_type = EmailType(request.email_type)
        except ValueError:
            logger.warning(
                "Unknown email type", extra={"email_type": request.email_type}
            )
            raise ExecutionError(
                f"Unknown email type: {request.email_type}"
            ) from None

        if email_type is EmailType.INVITATION:
            request.require("organization_name", "token", "role")
            return (
                f"You have been invited to join {request.organization_name}",
                f"{greeting}\n\nYou have been invited to join "
                f"{request.organization_name} as {request.role}.\n"
                f"Invitation code: {request.token}\n",
            )
        if email_type is EmailType.PASSWORD_RESET:
            request.require("token")
            return (
                "Reset your password",
                f"{greeting}\n\nUse this code to reset your password: {request.token}\n",
            )
        if email_type is EmailType.VERIFICATION:
            request.require("token")
            return (
                "Verify your email address",
                f"{greeting}\n\nYour verification code is: {request.token}\n",
            )
        if email_type is EmailType.WELCOME:
            return ("Welcome to TaskHub", f"{greeting}\n\nWelcome to TaskHub!\n")

        request.require("notification_type", "title", "message")
        body = f"{greeting}\n\n{request.message}\n"
        if request.link:
            body += f"\n{request.link}\n"
        return (f"[{request.notification_type}] {request.title}", body)


# Webhook


class WebhookJobPayload(_CamelPayload):
    """
    Payload for WEBHOOK_CALL jobs.

    {
        "url": "https://example.com/webhook",
        "body": {...},
        "headers": {"X-Custom": "value"}
    }
    """

    url: str
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)


class WebhookJobExecutor:
    """Executor for WEBHOOK_CALL jobs: POSTs a JSON body to a URL."""

    job_type = JobType.WEBHOOK_CALL

    MAX_RESPONSE_STATUS = 299

    def __init__(
        self,
        settings: Settings,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ):
        self.settings = settings
        self.client_factory = client_factory or self._default_client

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.webhook_timeout_s)

    async def execute(self, payload: str) -> None:
        request = parse_payload(WebhookJobPayload, payload)
        body = request.body if request.body is not None else {}
        headers = {"Content-Type": "application/json", **request.headers}

        logger.info("Sending webhook", extra={"url": request.url})

        try:
            async with self.client_factory() as client:
                response = await client.post(request.url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ExecutionError(
                f"Webhook call to {request.url} failed: {e}"
            ) from e

        if response.status_code > self.MAX_RESPONSE_STATUS:
            raise ExecutionError(
                f"Webhook call failed with status {response.status_code}: "
                f"{response.text}"
            )

        logger.info(
            "Webhook delivered successfully",
            extra={"url": request.url, "status_code": response.status_code},
        )


# Data cleanup


class CleanupType(str, Enum):
    OLD_JOBS = "OLD_JOBS"
    OLD_NOTIFICATIONS = "OLD_NOTIFICATIONS"
    EXPIRED_TOKENS = "EXPIRED_TOKENS"


class DataCleanupPayload(_CamelPayload):
    """
    Payload for DATA_CLEANUP jobs.

    {"cleanupType": "OLD_JOBS|OLD_NOTIFICATIONS|EXPIRED_TOKENS", "retentionDays": 30}
    """

    cleanup_type: str = Field(default=CleanupType.OLD_JOBS.value, alias="cleanupType")
    retention_days: int = Field(default=30, ge=1, alias="retentionDays")


class DataCleanupJobExecutor:
    """Executor for DATA_CLEANUP jobs.

    Job rows are cleaned here through a dedicated session; notification and
    token tables belong to other services and are only acknowledged.
    """

    job_type = JobType.DATA_CLEANUP

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def execute(self, payload: str) -> None:
        request = parse_payload(DataCleanupPayload, payload)

        try:
            cleanup_type = CleanupType(request.cleanup_type)
        except ValueError:
            logger.warning(
                "Unknown cleanup type", extra={"cleanup_type": request.cleanup_type}
            )
            raise ExecutionError(
                f"Unknown cleanup type: {request.cleanup_type}"
            ) from None

        logger.info(
            "Running data cleanup",
            extra={
                "cleanup_type": cleanup_type.value,
                "retention_days": request.retention_days,
            },
        )

        if cleanup_type is CleanupType.OLD_JOBS:
            cutoff = datetime.now(UTC) - timedelta(days=request.retention_days)
            async with self.session_factory() as session:
                deleted = await SqlAlchemyJobRepository(
                    session
                ).delete_by_created_at_before(cutoff)
            logger.info(
                "Cleaned up old background jobs",
                extra={
                    "deleted_count": deleted,
                    "retention_days": request.retention_days,
                },
            )
        else:
            logger.info(
                "Cleanup delegated to owning service",
                extra={
                    "cleanup_type": cleanup_type.value,
                    "retention_days": request.retention_days,
                },
            )

        logger.info("Data cleanup completed", extra={"cleanup_type": cleanup_type.value})


# Report export


class ReportType(str, Enum):
    TASKS = "TASKS"
    GOALS = "GOALS"
    HABITS = "HABITS"


class ReportFormat(str, Enum):
    PDF = "PDF"
    CSV = "CSV"
    EXCEL = "EXCEL"


class ReportExportPayload(_CamelPayload):
    """
    Payload for REPORT_EXPORT jobs.

    {
        "reportType": "TASKS|GOALS|HABITS",
        "format": "PDF|CSV|EXCEL",
        "organizationId": "uuid",
        "userId": "uuid",
        "filters": {...}
    }
    """

    report_type: ReportType = Field(..., alias="reportType")
    format: ReportFormat
    organization_id: str = Field(default="personal", alias="organizationId")
    user_id: str | None = Field(default=None, alias="userId")
    filters: dict[str, Any] = Field(default_factory=dict)


class ReportExportJobExecutor:
    """Executor for REPORT_EXPORT jobs.

    Rendering is done by the analytics service; this validates the request and
    records it in the job log.
    """

    job_type = JobType.REPORT_EXPORT

    async def execute(self, payload: str) -> None:
        request = parse_payload(ReportExportPayload, payload)

        logger.info(
            "Generating report",
            extra={
                "report_type": request.report_type.value,
                "format": request.format.value,
                "organization_id": request.organization_id,
                "filters": request.filters,
            },
        )

        logger.info(
            "Report generation completed",
            extra={
                "report_type": request.report_type.value,
                "format": request.format.value,
                "organization_id": request.organization_id,
            },
        )
