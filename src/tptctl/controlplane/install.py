"""Dependency installation for a new control plane cluster.

Applies the operator, API server and workload controller manifests in a
fixed order, then waits for the installed services to settle before any
registration calls are made.
"""

from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import Callable

from .. import output
from ..errors import InstallError, ToolNotInstalledError
from ..shared.logging import get_logger
from .health import HealthPoller
from .manifests import InstallConfig, ManifestSet, install_sequence, support_services_operator

logger = get_logger(__name__)


class Kubectl:
    """Run kubectl against one cluster's kubeconfig."""

    def __init__(self, kubeconfig: str | Path | None = None, binary: str = "kubectl"):
        """Initialize the wrapper.

        Args:
            kubeconfig: Path to kubeconfig file.
            binary: kubectl executable name.
        """
        self.kubeconfig = str(kubeconfig) if kubeconfig else None
        self.binary = binary

    def _kubectl_cmd(self) -> list[str]:
        """Build base kubectl command."""
        cmd = [self.binary]
        if self.kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        return cmd

    def _run(self, args: list[str], manifest: str | None = None) -> tuple[bool, str]:
        try:
            result = subprocess.run(
                self._kubectl_cmd() + args,
                input=manifest,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            raise ToolNotInstalledError(self.binary)
        if result.returncode != 0:
            return False, (result.stderr or result.stdout).strip()
        return True, result.stdout.strip()

    def apply(self, manifest: str) -> tuple[bool, str]:
        """Apply a multi-document manifest.

        Returns:
            Tuple of (success, message).
        """
        return self._run(["apply", "-f", "-"], manifest)

    def delete(self, manifest: str) -> tuple[bool, str]:
        """Delete the objects in a manifest, ignoring ones already gone.

        Returns:
            Tuple of (success, message).
        """
        return self._run(["delete", "--ignore-not-found", "--wait=true", "-f", "-"], manifest)

    def service_hostname(self, namespace: str, name: str) -> str | None:
        """Return the load balancer address of a service, if one is assigned."""
        ok, out = self._run(
            [
                "-n",
                namespace,
                "get",
                "service",
                name,
                "-o",
                "jsonpath={.status.loadBalancer.ingress[0].hostname}"
                "{.status.loadBalancer.ingress[0].ip}",
            ]
        )
        if not ok or not out:
            return None
        return out


class DependencyInstaller:
    """Apply the control plane manifest sets in order."""

    def __init__(
        self,
        kubectl: Kubectl,
        include_support_services: bool = False,
        config: InstallConfig | None = None,
    ):
        self.kubectl = kubectl
        self.include_support_services = include_support_services
        self.config = config or InstallConfig(expose_with_load_balancer=include_support_services)

    def steps(self) -> list[ManifestSet]:
        return install_sequence(self.config, self.include_support_services)

    def install(self) -> list[str]:
        """Apply every manifest set; stop at the first failure.

        Returns:
            Names of the applied steps.

        Raises:
            InstallError: Naming the step that failed.
        """
        applied = []
        for step in self.steps():
            output.info(f"installing {step.name}")
            logger.info("applying manifests", step=step.name, documents=len(step.documents))
            success, msg = self.kubectl.apply(step.render())
            if not success:
                logger.error("manifest apply failed", step=step.name, error=msg)
                raise InstallError(step.name, msg)
            applied.append(step.name)
            output.info(f"{step.name} installed")
        return applied

    def uninstall_support_services(self) -> None:
        """Remove the support services operator.

        Deleting it releases any cloud load balancer it provisioned, which
        must happen before the network it sits in is torn down.

        Raises:
            InstallError: If the delete fails.
        """
        step = support_services_operator(self.config)
        logger.info("deleting manifests", step=step.name)
        success, msg = self.kubectl.delete(step.render())
        if not success:
            raise InstallError(step.name, f"uninstall failed: {msg}")


def _report_attempt(attempt: int, max_attempts: int, error: str | None) -> None:
    output.info(f"health check {attempt}/{max_attempts}: {error}")


class SettleWaiter:
    """Wait for freshly installed services before talking to them.

    The default policy is a fixed sleep; with wait_for_health the API's
    /health endpoint is polled instead, bounded by the same delay.
    """

    def __init__(
        self,
        settle_seconds: float = 200,
        wait_for_health: bool = False,
        poller: HealthPoller | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settle_seconds = settle_seconds
        self.wait_for_health = wait_for_health
        self.poller = poller
        self.sleep = sleep

    def wait(self, api_endpoint: str) -> None:
        """Block until the API is expected to accept requests.

        Raises:
            InstallError: If health polling is enabled and the API never
                becomes healthy.
        """
        if not self.wait_for_health:
            output.info("waiting for control plane components to spin up...")
            logger.info("settling", seconds=self.settle_seconds)
            self.sleep(self.settle_seconds)
            return

        poller = self.poller or HealthPoller(
            max_attempts=max(1, int(self.settle_seconds // 5)),
            interval_seconds=5.0,
        )
        output.info(f"waiting for {api_endpoint} to become healthy...")
        result = poller.wait_for_healthy_sync(api_endpoint, on_attempt=_report_attempt)
        if not result.healthy:
            raise InstallError("api-server", result.error or "API did not become healthy")
        logger.info("api healthy", attempts=result.attempts, elapsed=result.elapsed_seconds)
