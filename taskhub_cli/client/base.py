"""Base HTTP Client for the TaskHub API"""

from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class TaskHubError(Exception):
    """Raised when the TaskHub API is unreachable or returns an error envelope"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class APIClient:
    """HTTP client that unwraps the TaskHub response envelope"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_headers = headers or {}
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=self.default_headers,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def _handle_response(self, response: httpx.Response) -> Any:
        """Check the status and return the envelope's data field"""
        try:
            data = response.json()
        except ValueError:
            console.print(f"[red]Failed to parse response: {response.text}[/red]")
            raise TaskHubError(
                f"Invalid JSON response: {response.status_code}",
                status_code=response.status_code,
            ) from None

        if response.status_code >= 400:
            error_msg = "Unknown error"
            if isinstance(data, dict):
                error_msg = data.get("error", {}).get("message") or data.get(
                    "detail", error_msg
                )
            console.print(Panel(f"[red]{error_msg}[/red]", title="API Error"))
            raise TaskHubError(
                f"API Error {response.status_code}: {error_msg}",
                status_code=response.status_code,
            )

        if isinstance(data, dict) and "ok" in data:
            if not data["ok"]:
                error_msg = data.get("error", {}).get("message", "Request failed")
                console.print(Panel(f"[red]{error_msg}[/red]", title="Request Failed"))
                raise TaskHubError(error_msg, status_code=response.status_code)
            return data.get("data")

        return data

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = self.client.request(
                method, f"/v1{path}", params=params, json=json
            )
        except httpx.RequestError as e:
            console.print(f"[red]Connection error: {e}[/red]")
            raise TaskHubError(f"Connection failed: {e}") from None
        return self._handle_response(response)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make GET request"""
        return self._request("GET", path, params=params)

    def post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        """Make POST request"""
        return self._request("POST", path, json=json)
