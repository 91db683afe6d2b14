"""Tests for the built-in job executors."""

import json
import smtplib
from datetime import UTC, datetime, timedelta
from email.message import EmailMessage

import httpx
import pytest

from taskhub.v1.core.exceptions import ExecutionError
from taskhub.v1.infra.jobs.executors import (
    DataCleanupJobExecutor,
    EmailJobExecutor,
    ReportExportJobExecutor,
    WebhookJobExecutor,
)
from taskhub.v1.infra.jobs.models import JobStatus, JobType
from taskhub.v1.infra.jobs.repository import SqlAlchemyJobRepository


class FakeEmailSender:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(message)


class TestEmailJobExecutor:
    async def test_sends_invitation(self, test_settings):
        sender = FakeEmailSender()
        executor = EmailJobExecutor(test_settings, sender=sender)

        await executor.execute(
            json.dumps(
                {
                    "emailType": "INVITATION",
                    "to": "ada@example.com",
                    "firstName": "Ada",
                    "organizationName": "Acme",
                    "token": "abc123",
                    "role": "MEMBER",
                }
            )
        )

        (message,) = sender.sent
        assert message["To"] == "ada@example.com"
        assert message["From"] == test_settings.mail_from
        assert "Acme" in message["Subject"]
        assert "abc123" in message.get_content()
        assert executor.job_type == JobType.EMAIL_SEND

    async def test_welcome_needs_no_extra_fields(self, test_settings):
        sender = FakeEmailSender()
        executor = EmailJobExecutor(test_settings, sender=sender)

        await executor.execute('{"emailType": "WELCOME", "to": "a@b.com"}')

        assert sender.sent[0]["Subject"] == "Welcome to TaskHub"

    async def test_missing_required_field(self, test_settings):
        executor = EmailJobExecutor(test_settings, sender=FakeEmailSender())

        with pytest.raises(ExecutionError, match="token"):
            await executor.execute('{"emailType": "PASSWORD_RESET", "to": "a@b.com"}')

    async def test_unknown_email_type(self, test_settings):
        executor = EmailJobExecutor(test_settings, sender=FakeEmailSender())

        with pytest.raises(ExecutionError, match="Unknown email type: NEWSLETTER"):
            await executor.execute('{"emailType": "NEWSLETTER", "to": "a@b.com"}')

    async def test_invalid_payload(self, test_settings):
        executor = EmailJobExecutor(test_settings, sender=FakeEmailSender())

        with pytest.raises(ExecutionError, match="Invalid EmailJobPayload"):
            await executor.execute('{"to": "a@b.com"}')

    async def test_smtp_failure_becomes_execution_error(self, test_settings):
        sender = FakeEmailSender(smtplib.SMTPException("SMTP connection failed"))
        executor = EmailJobExecutor(test_settings, sender=sender)

        with pytest.raises(ExecutionError, match="SMTP connection failed"):
            await executor.execute('{"emailType": "WELCOME", "to": "a@b.com"}')


def webhook_executor(settings, handler) -> WebhookJobExecutor:
    """Webhook executor whose HTTP client is served by ``handler``."""
    return WebhookJobExecutor(
        settings,
        client_factory=lambda: httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        ),
    )


class TestWebhookJobExecutor:
    async def test_posts_json_body(self, test_settings):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        executor = webhook_executor(test_settings, handler)

        await executor.execute(
            json.dumps(
                {
                    "url": "https://hooks.example.com/events",
                    "body": {"event": "task.created"},
                    "headers": {"X-Signature": "sig"},
                }
            )
        )

        (request,) = requests
        assert request.method == "POST"
        assert str(request.url) == "https://hooks.example.com/events"
        assert json.loads(request.content) == {"event": "task.created"}
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-Signature"] == "sig"

    async def test_missing_body_posts_empty_object(self, test_settings):
        bodies: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content)
            return httpx.Response(200)

        executor = webhook_executor(test_settings, handler)
        await executor.execute('{"url": "https://hooks.example.com/events"}')

        assert json.loads(bodies[0]) == {}

    async def test_error_status_fails(self, test_settings):
        executor = webhook_executor(
            test_settings, lambda request: httpx.Response(500, text="upstream down")
        )

        with pytest.raises(
            ExecutionError, match="Webhook call failed with status 500: upstream down"
        ):
            await executor.execute('{"url": "https://hooks.example.com/events"}')

    async def test_redirect_status_fails(self, test_settings):
        executor = webhook_executor(
            test_settings, lambda request: httpx.Response(302, text="")
        )

        with pytest.raises(ExecutionError, match="status 302"):
            await executor.execute('{"url": "https://hooks.example.com/events"}')

    async def test_transport_error_fails(self, test_settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        executor = webhook_executor(test_settings, handler)

        with pytest.raises(ExecutionError, match="connection refused"):
            await executor.execute('{"url": "https://hooks.example.com/events"}')

    async def test_missing_url(self, test_settings):
        executor = WebhookJobExecutor(test_settings)

        with pytest.raises(ExecutionError, match="Invalid WebhookJobPayload"):
            await executor.execute('{"body": {}}')


class TestDataCleanupJobExecutor:
    async def test_deletes_old_jobs(self, session_factory, make_job):
        old = make_job(
            status=JobStatus.COMPLETED, created_at=datetime.now(UTC) - timedelta(days=10)
        )
        recent = make_job()
        async with session_factory() as session:
            repository = SqlAlchemyJobRepository(session)
            await repository.save(old)
            await repository.save(recent)

        executor = DataCleanupJobExecutor(session_factory)
        await executor.execute('{"cleanupType": "OLD_JOBS", "retentionDays": 7}')

        async with session_factory() as session:
            remaining = await SqlAlchemyJobRepository(session).find_all()
        assert [job.id for job in remaining] == [recent.id]

    async def test_other_cleanup_types_are_acknowledged(self, session_factory):
        executor = DataCleanupJobExecutor(session_factory)

        await executor.execute('{"cleanupType": "EXPIRED_TOKENS"}')

    async def test_unknown_cleanup_type(self, session_factory):
        executor = DataCleanupJobExecutor(session_factory)

        with pytest.raises(ExecutionError, match="Unknown cleanup type: EVERYTHING"):
            await executor.execute('{"cleanupType": "EVERYTHING"}')

    async def test_retention_must_be_positive(self, session_factory):
        executor = DataCleanupJobExecutor(session_factory)

        with pytest.raises(ExecutionError, match="retentionDays"):
            await executor.execute('{"retentionDays": 0}')


class TestReportExportJobExecutor:
    async def test_accepts_valid_request(self):
        await ReportExportJobExecutor().execute(
            '{"reportType": "TASKS", "format": "CSV", "organizationId": "org-1"}'
        )

    async def test_rejects_unknown_format(self):
        with pytest.raises(ExecutionError, match="Invalid ReportExportPayload"):
            await ReportExportJobExecutor().execute(
                '{"reportType": "TASKS", "format": "DOCX"}'
            )
