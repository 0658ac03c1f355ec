"""Readiness probe for a freshly installed control plane.

SettleWaiter uses this instead of its fixed delay when health waiting is
enabled: GET <api>/health until it answers 200 or the attempts run out.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from ..shared.logging import get_logger

logger = get_logger(__name__)

HEALTH_PATH = "/health"

# (attempt, max_attempts, error of this attempt)
AttemptCallback = Callable[[int, int, "str | None"], None]


@dataclass
class HealthCheckResult:
    healthy: bool
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


class HealthPoller:
    """Probe the API health endpoint a bounded number of times."""

    def __init__(
        self,
        max_attempts: int = 40,
        interval_seconds: float = 5.0,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def _probe(self, client: httpx.AsyncClient, url: str) -> str | None:
        """One GET of the health endpoint; the failure reason, or None if healthy."""
        try:
            response = await client.get(url)
        except httpx.ConnectError:
            return "Connection refused"
        except httpx.TimeoutException:
            return "Request timeout"
        except httpx.HTTPError as e:
            return str(e)
        if response.status_code != 200:
            return f"HTTP {response.status_code}"
        return None

    async def wait_for_healthy(
        self, url: str, on_attempt: AttemptCallback | None = None
    ) -> HealthCheckResult:
        """Poll until healthy or out of attempts.

        on_attempt is called after every failed attempt, for progress output.
        """
        health_url = url.rstrip("/") + HEALTH_PATH
        started = time.monotonic()
        error: str | None = None

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self.transport
        ) as client:
            for attempt in range(1, self.max_attempts + 1):
                error = await self._probe(client, health_url)
                if error is None:
                    return HealthCheckResult(
                        healthy=True,
                        attempts=attempt,
                        elapsed_seconds=time.monotonic() - started,
                    )
                logger.debug("api not healthy yet", url=health_url, attempt=attempt, error=error)
                if on_attempt:
                    on_attempt(attempt, self.max_attempts, error)
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.interval_seconds)

        return HealthCheckResult(
            healthy=False,
            attempts=self.max_attempts,
            elapsed_seconds=time.monotonic() - started,
            error=f"API at {url} not healthy after {self.max_attempts} attempts: {error}",
        )

    def wait_for_healthy_sync(
        self, url: str, on_attempt: AttemptCallback | None = None
    ) -> HealthCheckResult:
        return asyncio.run(self.wait_for_healthy(url, on_attempt))
