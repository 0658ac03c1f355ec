"""Local provider: a kind cluster on the operator's machine.

https://kind.sigs.k8s.io/
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path

import yaml

from ... import output
from ...errors import LocalIOError, ProvisioningError, ResourcesState, ToolNotInstalledError
from ...registry import Provider
from ...shared.logging import get_logger
from ..control_plane import ControlPlane
from ..install import Kubectl
from ..kubeconfig import write_kubeconfig
from ..manifests import API_PORT
from .base import ProviderAdapter, ProvisionedCluster

logger = get_logger(__name__)

KIND_API_PROTOCOL = "http"
KIND_API_HOSTNAME = "localhost"


def kind_config(cluster_name: str, api_port: int = API_PORT) -> str:
    """Render the kind cluster configuration.

    The worker node maps the API port to the host so the control plane is
    reachable at localhost.
    """
    config = {
        "kind": "Cluster",
        "apiVersion": "kind.x-k8s.io/v1alpha4",
        "name": cluster_name,
        "nodes": [
            {"role": "control-plane"},
            {
                "role": "worker",
                "extraPortMappings": [
                    {"containerPort": api_port, "hostPort": api_port, "protocol": "TCP"}
                ],
            },
        ],
    }
    return yaml.safe_dump(config, default_flow_style=False, sort_keys=False)


class KindEngine:
    """Drive the kind CLI."""

    def __init__(self, binary: str = "kind"):
        self.binary = binary

    def installed(self) -> bool:
        return shutil.which(self.binary) is not None

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run([self.binary, *args], capture_output=True, text=True)
        except FileNotFoundError:
            raise ToolNotInstalledError(self.binary)

    def create_cluster(self, config: str) -> tuple[bool, str]:
        """Create a cluster from a kind config document.

        Returns:
            Tuple of (success, message).
        """
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write(config)
            config_file = f.name

        try:
            result = self._run(["create", "cluster", "--config", config_file])
            if result.returncode != 0:
                return False, (result.stderr or result.stdout).strip()
            return True, "kind cluster created"
        finally:
            os.unlink(config_file)

    def get_kubeconfig(self, cluster_name: str) -> tuple[bool, str]:
        """Fetch the kubeconfig for a cluster.

        Returns:
            Tuple of (success, kubeconfig text or error message).
        """
        result = self._run(["get", "kubeconfig", "--name", cluster_name])
        if result.returncode != 0:
            return False, (result.stderr or result.stdout).strip()
        return True, result.stdout

    def delete_cluster(self, cluster_name: str) -> tuple[bool, str]:
        """Delete a cluster by name.

        Returns:
            Tuple of (success, message).
        """
        result = self._run(["delete", "cluster", "--name", cluster_name])
        if result.returncode != 0:
            return False, (result.stderr or result.stdout).strip()
        return True, "kind cluster deleted"


class LocalProvider(ProviderAdapter):
    """Run the control plane on a local kind cluster.

    kind cleans up after itself when creation fails, so there is no
    rollback here.
    """

    provider = Provider.LOCAL
    install_support_services = False
    compute_cluster_provider = "kind"
    region = "local"

    def __init__(self, engine: KindEngine | None = None, api_port: int = API_PORT):
        self.engine = engine or KindEngine()
        self.api_port = api_port

    @property
    def api_endpoint(self) -> str:
        return f"{KIND_API_PROTOCOL}://{KIND_API_HOSTNAME}:{self.api_port}"

    def preflight(self, control_plane: ControlPlane, config_dir: Path) -> None:
        if not self.engine.installed():
            raise ToolNotInstalledError(self.engine.binary)

    def create(self, control_plane: ControlPlane, config_dir: Path) -> ProvisionedCluster:
        cluster = control_plane.cluster_name
        log = logger.bind(instance=control_plane.instance_name, cluster=cluster)

        output.info("creating kind cluster... (this could take a few minutes)")
        log.info("creating kind cluster")
        success, msg = self.engine.create_cluster(kind_config(cluster, self.api_port))
        if not success:
            log.error("kind create failed", error=msg)
            raise ProvisioningError(
                "failed to create new kind cluster", RuntimeError(msg), ResourcesState.NONE
            )
        output.info("kind cluster created")

        success, kubeconfig = self.engine.get_kubeconfig(cluster)
        if not success:
            raise ProvisioningError(
                "failed to get kubeconfig for kind cluster",
                RuntimeError(kubeconfig),
                ResourcesState.FULL,
            )

        kubeconfig_path = control_plane.kubeconfig_path(config_dir)
        try:
            write_kubeconfig(kubeconfig_path, kubeconfig)
        except LocalIOError as e:
            raise ProvisioningError(
                "failed to write kubeconfig for kind cluster", e, ResourcesState.FULL
            ) from e
        output.info(f"kubeconfig for kind cluster written to {kubeconfig_path}")

        return ProvisionedCluster(kubeconfig_path=kubeconfig_path, api_endpoint=self.api_endpoint)

    def resolve_api_endpoint(self, control_plane: ControlPlane, kubectl: Kubectl) -> str:
        return self.api_endpoint

    def delete(
        self,
        control_plane: ControlPlane,
        config_dir: Path,
        kubectl: Kubectl | None = None,
    ) -> None:
        output.info("deleting kind cluster...")
        success, msg = self.engine.delete_cluster(control_plane.cluster_name)
        if not success:
            raise ProvisioningError(
                "failed to delete kind cluster", RuntimeError(msg), ResourcesState.UNKNOWN
            )
        output.info("kind cluster deleted")

        kubeconfig_path = control_plane.kubeconfig_path(config_dir)
        try:
            kubeconfig_path.unlink(missing_ok=True)
        except OSError as e:
            output.error(f"failed to remove kubeconfig file {kubeconfig_path}", e)
