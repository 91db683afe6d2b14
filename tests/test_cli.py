"""Tests for CLI commands"""

from unittest.mock import Mock, patch

import httpx
import pytest
from typer.testing import CliRunner

from taskhub_cli.client.base import APIClient, TaskHubError
from taskhub_cli.main import app
from taskhub_cli.utils.config_manager import ConfigManager

JOB = {
    "id": "3f1b2c4d-0000-4000-8000-000000000001",
    "type": "EMAIL_SEND",
    "status": "PENDING",
    "payload": "{}",
    "retry_count": 0,
    "error": None,
    "created_at": "2026-01-01T00:00:00+00:00",
    "executed_at": None,
}


@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture
def mock_client():
    """Mock API client usable as a context manager"""
    client = Mock()
    client.__enter__ = Mock(return_value=client)
    client.__exit__ = Mock(return_value=None)
    return client


class TestMainCommands:
    """Test main CLI commands"""

    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "TaskHub CLI" in result.stdout

    @patch("taskhub_cli.main.TaskHubClient")
    def test_status_success(self, mock_client_class, runner, mock_client):
        mock_client.health_check.return_value = {
            "version": "1.0.0",
            "environment": "development",
            "jobs": {"pending": 3, "running": 1, "failed": 0},
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Connected" in result.stdout
        assert "Pending jobs" in result.stdout

    @patch("taskhub_cli.main.TaskHubClient")
    def test_status_failure(self, mock_client_class, runner, mock_client):
        mock_client.health_check.side_effect = TaskHubError("Connection failed")
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Connection Failed" in result.stdout


class TestJobsCommands:
    """Test jobs sub-commands"""

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_list_jobs(self, mock_client_class, runner, mock_client):
        mock_client.list_jobs.return_value = [JOB]
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "list"])

        assert result.exit_code == 0
        assert "3f1b2c4d" in result.stdout
        assert "EMAIL_SEND" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_list_jobs_filters_by_status(self, mock_client_class, runner, mock_client):
        mock_client.list_jobs.return_value = [JOB]
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "list", "--status", "failed"])

        assert result.exit_code == 0
        assert "No jobs found" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_schedule_job(self, mock_client_class, runner, mock_client):
        mock_client.schedule_job.return_value = JOB
        mock_client_class.return_value = mock_client

        result = runner.invoke(
            app, ["jobs", "schedule", "email_send", "--payload", '{"to":"a@b.com"}']
        )

        assert result.exit_code == 0
        mock_client.schedule_job.assert_called_once_with("EMAIL_SEND", '{"to":"a@b.com"}')
        assert "Scheduled EMAIL_SEND job" in result.stdout

    def test_schedule_unknown_type(self, runner):
        result = runner.invoke(app, ["jobs", "schedule", "FAX_SEND"])

        assert result.exit_code == 1
        assert "Unknown job type" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_execute_failed_job(self, mock_client_class, runner, mock_client):
        mock_client.execute_job.return_value = {
            **JOB,
            "status": "FAILED",
            "error": "SMTP connection failed",
            "retry_count": 1,
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "execute", JOB["id"]])

        assert result.exit_code == 0
        assert "SMTP connection failed" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_retry_conflict_exits_non_zero(
        self, mock_client_class, runner, mock_client
    ):
        mock_client.retry_job.side_effect = TaskHubError(
            "API Error 409: Job cannot be retried. Status: COMPLETED, retryCount: 0",
            status_code=409,
        )
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "retry", JOB["id"]])

        assert result.exit_code == 1
        assert "Failed to retry job" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_retry_all(self, mock_client_class, runner, mock_client):
        mock_client.retry_failed_jobs.return_value = 4
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "retry-all"])

        assert result.exit_code == 0
        assert "Queued 4 failed job(s)" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_process_pending(self, mock_client_class, runner, mock_client):
        mock_client.process_pending_jobs.return_value = 3
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "process"])

        assert result.exit_code == 0
        assert "Ran 3 pending job(s)" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_cleanup_with_confirmation_flag(
        self, mock_client_class, runner, mock_client
    ):
        mock_client.cleanup_old_jobs.return_value = {"deleted": 5, "retention_days": 30}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "cleanup", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 5 job(s) older than 30 days" in result.stdout

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_cleanup_declined(self, mock_client_class, runner, mock_client):
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "cleanup"], input="n\n")

        assert result.exit_code == 0
        mock_client.cleanup_old_jobs.assert_not_called()

    @patch("taskhub_cli.commands.jobs.TaskHubClient")
    def test_stats(self, mock_client_class, runner, mock_client):
        mock_client.get_job_stats.return_value = {
            "total_jobs": 3,
            "by_status": {"PENDING": 2, "RUNNING": 0, "COMPLETED": 0, "FAILED": 1},
            "queue_depth": 2,
            "registered_types": ["EMAIL_SEND"],
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "stats"])

        assert result.exit_code == 0
        assert "Job Statistics" in result.stdout
        assert "Queue depth" in result.stdout


class TestAPIClient:
    """Test envelope handling in the HTTP client"""

    def _client(self, handler) -> APIClient:
        return APIClient("http://test", transport=httpx.MockTransport(handler))

    def test_unwraps_success_envelope(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/admin/jobs/stats"
            return httpx.Response(200, json={"ok": True, "data": {"total_jobs": 0}})

        with self._client(handler) as client:
            assert client.get("/admin/jobs/stats") == {"total_jobs": 0}

    def test_error_envelope_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404,
                json={"ok": False, "error": {"message": "Background job not found: x"}},
            )

        with self._client(handler) as client:
            with pytest.raises(TaskHubError, match="Background job not found") as exc:
                client.get("/admin/jobs/x")

        assert exc.value.status_code == 404

    def test_connection_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        with self._client(handler) as client:
            with pytest.raises(TaskHubError, match="Connection failed"):
                client.post("/admin/jobs/retry-all")


class TestConfigManager:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TASKHUB_API_URL", raising=False)
        manager = ConfigManager(tmp_path / "cfg")

        assert manager.get("api.base_url") == "http://localhost:8000"
        assert manager.get("api.missing", "fallback") == "fallback"

    def test_set_persists_to_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TASKHUB_API_URL", raising=False)
        manager = ConfigManager(tmp_path / "cfg")

        manager.set("api.base_url", "http://jobs.internal:9000")

        assert manager.config_file.exists()
        reloaded = ConfigManager(tmp_path / "cfg")
        assert reloaded.get("api.base_url") == "http://jobs.internal:9000"
        assert reloaded.get("api.timeout") == 30

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        manager = ConfigManager(tmp_path / "cfg")
        manager.set("api.base_url", "http://from-file:8000")
        monkeypatch.setenv("TASKHUB_API_URL", "http://from-env:8000")

        assert manager.get("api.base_url") == "http://from-env:8000"
