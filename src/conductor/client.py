# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""HTTP client for the Conductor controller's control plane.

The client handles transport, deadlines and error-body parsing only. It does
not retry: completions prefer failing fast, and the interactive CLI reports
errors directly.
"""

from __future__ import annotations

import logging
import os
from typing import Any
from urllib.parse import quote

import httpx

from conductor import __version__
from conductor.exceptions import DaemonAPIError, TimeoutError

logger = logging.getLogger(__name__)

HOST_ENV_VAR = "CONDUCTOR_HOST"
DEFAULT_HOST = "http://localhost:8374"
DEFAULT_TIMEOUT = 30.0
COMPLETION_TIMEOUT = 0.5
USER_AGENT = f"conductor-cli/{__version__}"

MCP_SERVER_ACTIONS = ("start", "stop", "restart")


def resolve_host(host: str | None = None) -> tuple[str, str | None]:
    """Turn a ``CONDUCTOR_HOST`` value into ``(base_url, unix_socket_path)``.

    Accepts ``tcp://host:port`` (mapped to ``http://``), ``http(s)://...`` and
    ``unix:///path/to/socket``. An unset or empty value uses the local default.

    Raises:
        DaemonAPIError: If the scheme is not supported.
    """
    host = (host if host is not None else os.environ.get(HOST_ENV_VAR, "")).strip()
    if not host:
        return DEFAULT_HOST, None
    if host.startswith("unix://"):
        return "http://localhost", host[len("unix://"):]
    if host.startswith("tcp://"):
        return "http://" + host[len("tcp://"):].rstrip("/"), None
    if host.startswith(("http://", "https://")):
        return host.rstrip("/"), None
    raise DaemonAPIError(
        f"Unsupported {HOST_ENV_VAR} value: {host}",
        suggestion="Use tcp://host:port, http(s)://host:port or unix:///path/to/socket",
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
        return body["error"]
    return f"HTTP status {response.status_code}"


class ControllerClient:
    """Minimal, timeout-bounded client for the controller daemon.

    Args:
        host: Override for ``CONDUCTOR_HOST``.
        timeout: Per-request ceiling in seconds.
        api_key: Optional bearer token for authenticated controllers.
        transport: Custom httpx transport, mainly for tests.
    """

    def __init__(
        self,
        host: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        base_url, socket_path = resolve_host(host)
        if transport is None and socket_path is not None:
            transport = httpx.HTTPTransport(uds=socket_path)

        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def __enter__(self) -> ControllerClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._client.close()

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty).

        Raises:
            TimeoutError: If the request exceeds the client's timeout.
            DaemonAPIError: On connection failure, HTTP status >= 400, or a
                body that is not JSON.
        """
        try:
            response = self._client.request(method, path, json=json_body, params=params)
        except httpx.TimeoutException as e:
            raise TimeoutError(
                f"Request to controller timed out: {method} {path}",
                operation=f"{method} {path}",
                timeout_seconds=self.timeout,
                suggestion="Check that the controller is responsive",
            ) from e
        except httpx.HTTPError as e:
            raise DaemonAPIError(f"Failed to reach controller at {self.base_url}: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.debug(f"{method} {path} failed with {response.status_code}: {message}")
            raise DaemonAPIError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DaemonAPIError(
                f"Invalid JSON from controller for {method} {path}",
                status_code=response.status_code,
            ) from e

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Any = None) -> Any:
        return self.request("POST", path, json_body=body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def health(self) -> dict[str, Any]:
        """Return the controller's health report."""
        return self.get("/v1/health") or {}

    def version(self) -> dict[str, Any]:
        """Return the controller's version information."""
        return self.get("/v1/version") or {}

    def ping(self) -> None:
        """Raise if the controller is not reachable and healthy."""
        self.health()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def list_runs(self, status: str | None = None) -> list[dict[str, Any]]:
        """Return the runs known to the controller.

        Accepts both ``{"runs": [...]}`` and a bare list in the response.
        """
        params = {"status": status} if status else None
        data = self.get("/v1/runs", params=params)
        if isinstance(data, dict):
            data = data.get("runs")
        return [r for r in (data or []) if isinstance(r, dict)]

    # ------------------------------------------------------------------
    # MCP servers
    # ------------------------------------------------------------------

    @staticmethod
    def _server_path(name: str, suffix: str = "") -> str:
        return f"/v1/mcp/servers/{quote(name, safe='')}{suffix}"

    def list_mcp_servers(self) -> list[dict[str, Any]]:
        """Return registered MCP servers."""
        data = self.get("/v1/mcp/servers")
        if isinstance(data, dict):
            data = data.get("servers")
        return [s for s in (data or []) if isinstance(s, dict)]

    def get_mcp_server(self, name: str) -> dict[str, Any]:
        return self.get(self._server_path(name)) or {}

    def get_mcp_tools(self, name: str) -> list[dict[str, Any]]:
        data = self.get(self._server_path(name, "/tools"))
        if isinstance(data, dict):
            data = data.get("tools")
        return [t for t in (data or []) if isinstance(t, dict)]

    def get_mcp_health(self, name: str) -> dict[str, Any]:
        return self.get(self._server_path(name, "/health")) or {}

    def get_mcp_logs(self, name: str, lines: int | None = None) -> Any:
        params = {"lines": lines} if lines else None
        return self.get(self._server_path(name, "/logs"), params=params)

    def mcp_server_action(self, name: str, action: str) -> Any:
        """Start, stop or restart an MCP server.

        Raises:
            ValueError: If ``action`` is not a lifecycle action.
        """
        if action not in MCP_SERVER_ACTIONS:
            raise ValueError(f"Unknown MCP server action: {action}")
        return self.post(self._server_path(name, f"/{action}"))

    def start_mcp_server(self, name: str) -> Any:
        return self.mcp_server_action(name, "start")

    def stop_mcp_server(self, name: str) -> Any:
        return self.mcp_server_action(name, "stop")

    def restart_mcp_server(self, name: str) -> Any:
        return self.mcp_server_action(name, "restart")

    def register_mcp_server(self, config: dict[str, Any]) -> Any:
        """Register a new MCP server with the controller."""
        return self.post("/v1/mcp/servers", config)

    def remove_mcp_server(self, name: str) -> None:
        self.delete(self._server_path(name))
