"""API Endpoint Wrappers for the job admin surface"""

from typing import Any

from ..utils.config_manager import config
from .base import APIClient, TaskHubError

__all__ = ["TaskHubClient", "TaskHubError"]


class TaskHubClient:
    """High-level client with one method per admin endpoint"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        api: APIClient | None = None,
    ):
        if api is not None:
            self.api = api
            return

        # Fall back to the CLI config file for anything not passed in
        api_config = config.load_config().get("api", {})
        self.api = APIClient(
            base_url=base_url or api_config.get("base_url", "http://localhost:8000"),
            timeout=api_config.get("timeout", 30),
            headers=headers or api_config.get("headers", {}),
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    # Job Endpoints
    def list_jobs(self) -> list[dict[str, Any]]:
        return self.api.get("/admin/jobs")

    def get_job(self, job_id: str) -> dict[str, Any]:
        return self.api.get(f"/admin/jobs/{job_id}")

    def schedule_job(self, job_type: str, payload: str = "{}") -> dict[str, Any]:
        """Schedule a job; payload is passed through as an opaque string"""
        return self.api.post("/admin/jobs", {"type": job_type, "payload": payload})

    def execute_job(self, job_id: str) -> dict[str, Any]:
        return self.api.post(f"/admin/jobs/{job_id}/execute")

    def retry_job(self, job_id: str) -> dict[str, Any]:
        return self.api.post(f"/admin/jobs/{job_id}/retry")

    def retry_failed_jobs(self) -> int:
        """Returns how many failed jobs were queued again"""
        return self.api.post("/admin/jobs/retry-all")["count"]

    def process_pending_jobs(self) -> int:
        """Returns how many pending jobs the server ran"""
        return self.api.post("/admin/jobs/process-pending")["count"]

    def cleanup_old_jobs(self) -> dict[str, Any]:
        return self.api.post("/admin/jobs/cleanup")

    def get_job_stats(self) -> dict[str, Any]:
        return self.api.get("/admin/jobs/stats")
