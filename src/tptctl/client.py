"""Client for the Threeport REST API.

Only the calls tptctl makes are covered: creating workload clusters and
workload definitions, and the health check. Objects are plain dicts using
the API's field names (Name, YAMLDocument, ...).
"""

from __future__ import annotations

from typing import Any

import httpx

API_VERSION = "v0"
WORKLOAD_CLUSTERS_PATH = f"/{API_VERSION}/workload-clusters"
WORKLOAD_DEFINITIONS_PATH = f"/{API_VERSION}/workload-definitions"


class ThreeportClientError(Exception):
    """A request to the Threeport API failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _error_message(response: httpx.Response) -> str:
    """Best human-readable reason from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class ThreeportClient:
    """Async client; use as `async with ThreeportClient(url) as client`."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            base_url: API URL, e.g. http://localhost:1323
            timeout: Per-request timeout in seconds
            transport: httpx transport override (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ThreeportClient:
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
            transport=self.transport,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _send(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        if self._http is None:
            raise ThreeportClientError("Client not initialized. Use 'async with' context.")
        try:
            response = await self._http.request(method, path, json=body)
        except httpx.ConnectError as e:
            raise ThreeportClientError(
                f"Cannot connect to Threeport API at {self.base_url}: {e}"
            ) from e
        except httpx.TimeoutException as e:
            raise ThreeportClientError(
                f"{method} {path} timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise ThreeportClientError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            raise ThreeportClientError(_error_message(response), status_code=response.status_code)
        return response.json() if response.content else {}

    async def create_workload_cluster(self, workload_cluster: dict[str, Any]) -> dict[str, Any]:
        """POST a workload cluster.

        Fields: Name, Region, Provider, APIEndpoint, CACertificate,
        Certificate, Key and optionally Token.
        """
        return await self._send("POST", WORKLOAD_CLUSTERS_PATH, workload_cluster)

    async def create_workload_definition(
        self, workload_definition: dict[str, Any]
    ) -> dict[str, Any]:
        """POST a workload definition (Name, YAMLDocument, UserID)."""
        return await self._send("POST", WORKLOAD_DEFINITIONS_PATH, workload_definition)

    async def health(self) -> dict[str, Any]:
        return await self._send("GET", "/health")
