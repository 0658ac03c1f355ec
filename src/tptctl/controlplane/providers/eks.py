"""Cloud provider: an EKS cluster in AWS.

Creation is a single compensating transaction over the resource stack:
whatever was created is recorded in an inventory file, and if creation
fails the recorded resources are deleted again before the error is
returned.
"""

from __future__ import annotations

import json
import subprocess
import time
from pathlib import Path
from typing import Any, Callable

from ... import output
from ...errors import (
    CompensationError,
    InstallError,
    LocalIOError,
    ProvisioningError,
    ResourcesState,
    ToolNotInstalledError,
    ValidationError,
)
from ...registry import Provider
from ...shared.logging import get_logger
from ..control_plane import ControlPlane
from ..install import DependencyInstaller, Kubectl
from ..kubeconfig import load_kubeconfig, write_kubeconfig
from ..manifests import API_SERVER_NAME, CONTROL_PLANE_NAMESPACE
from .aws import DEFAULT_TAGS, EKSResourceClient, ResourceConfig
from .base import ProviderAdapter, ProvisionedCluster
from .inventory import InventoryStore, ResourceInventory
from .progress import ProgressRelay

logger = get_logger(__name__)

ResourceClientFactory = Callable[[str, Callable[[str], Any]], EKSResourceClient]


class AwsCli:
    """The aws CLI, used only to mint cluster tokens."""

    def __init__(self, binary: str = "aws"):
        self.binary = binary

    def get_token(self, cluster_name: str, region: str) -> str:
        """Get a bearer token for the cluster.

        EKS tokens expire after about 15 minutes.

        Raises:
            ToolNotInstalledError: If the aws CLI is missing.
            ProvisioningError: If the CLI fails or returns no token.
        """
        cmd = [
            self.binary, "eks", "get-token",
            "--cluster-name", cluster_name,
            "--region", region,
            "--output", "json",
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            raise ToolNotInstalledError(self.binary)

        if result.returncode != 0:
            raise ProvisioningError(
                "failed to get EKS cluster token",
                RuntimeError(result.stderr.strip()),
                ResourcesState.FULL,
            )
        try:
            token = json.loads(result.stdout)["status"]["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProvisioningError(
                "failed to parse EKS cluster token", e, ResourcesState.FULL
            ) from e
        return token


class CloudProvider(ProviderAdapter):
    """Run the control plane on an EKS cluster."""

    provider = Provider.CLOUD
    install_support_services = True
    compute_cluster_provider = "eks"

    def __init__(
        self,
        region: str,
        instance_type: str = "t3.medium",
        resource_client_factory: ResourceClientFactory = EKSResourceClient,
        aws_cli: AwsCli | None = None,
        endpoint_attempts: int = 30,
        endpoint_interval: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.region = region
        self.instance_type = instance_type
        self.resource_client_factory = resource_client_factory
        self.aws_cli = aws_cli or AwsCli()
        self.endpoint_attempts = endpoint_attempts
        self.endpoint_interval = endpoint_interval
        self.sleep = sleep

    def resource_config(self, control_plane: ControlPlane) -> ResourceConfig:
        return ResourceConfig(
            name=control_plane.cluster_name,
            instance_types=[self.instance_type],
            tags=dict(DEFAULT_TAGS),
        )

    def has_leftovers(self, control_plane: ControlPlane, config_dir: Path) -> bool:
        return InventoryStore(config_dir).exists(control_plane)

    def preflight(self, control_plane: ControlPlane, config_dir: Path) -> None:
        if self.has_leftovers(control_plane, config_dir):
            path = InventoryStore(config_dir).path(control_plane)
            raise ValidationError(
                f"inventory file {path} from an earlier run still exists; "
                f"run 'tptctl delete control-plane --name {control_plane.instance_name} "
                "--cleanup-inventory' to remove the resources it lists"
            )

    def _resource_client(self) -> tuple[EKSResourceClient, ProgressRelay]:
        relay = ProgressRelay().start()
        return self.resource_client_factory(self.region, relay.publish), relay

    def create(self, control_plane: ControlPlane, config_dir: Path) -> ProvisionedCluster:
        store = InventoryStore(config_dir)
        cluster = control_plane.cluster_name
        log = logger.bind(instance=control_plane.instance_name, cluster=cluster)

        client, _ = self._resource_client()
        inventory = ResourceInventory(cluster_name=cluster, region=self.region)

        output.info("creating EKS cluster... (this could take 20 minutes)")
        try:
            client.create_resource_stack(self.resource_config(control_plane), inventory)
        except Exception as create_err:
            log.error("resource creation failed", error=str(create_err), created=len(inventory))
            try:
                store.write(control_plane, inventory)
            except LocalIOError as e:
                log.error("failed to write inventory before compensation", error=str(e))
            self._compensate(store, control_plane, client, inventory, create_err)

        self._write_inventory(store, control_plane, inventory)
        log.info("resources created", resources=len(inventory))
        output.info(f"inventory written to {store.path(control_plane)}")

        try:
            kubeconfig = client.cluster_kubeconfig(cluster)
        except Exception as e:
            raise ProvisioningError(
                "failed to get kubeconfig for EKS cluster", e, ResourcesState.FULL
            ) from e
        kubeconfig["users"] = [self._token_user(cluster)]

        kubeconfig_path = control_plane.kubeconfig_path(config_dir)
        try:
            write_kubeconfig(kubeconfig_path, kubeconfig)
        except LocalIOError as e:
            raise ProvisioningError(
                "failed to write kubeconfig for EKS cluster", e, ResourcesState.FULL
            ) from e
        output.info(f"kubeconfig for EKS cluster written to {kubeconfig_path}")

        return ProvisionedCluster(kubeconfig_path=kubeconfig_path)

    def _token_user(self, cluster: str) -> dict[str, Any]:
        return {"name": cluster, "user": {"token": self.aws_cli.get_token(cluster, self.region)}}

    def refresh_kubeconfig(self, control_plane: ControlPlane, config_dir: Path) -> None:
        """Replace the kubeconfig's bearer token with a newly minted one.

        Failure is reported and tolerated; the uninstall that follows will
        warn in turn.
        """
        kubeconfig_path = control_plane.kubeconfig_path(config_dir)
        try:
            kubeconfig = load_kubeconfig(kubeconfig_path)
            kubeconfig["users"] = [self._token_user(control_plane.cluster_name)]
            write_kubeconfig(kubeconfig_path, kubeconfig)
        except (LocalIOError, ProvisioningError, ToolNotInstalledError) as e:
            output.warning(f"failed to refresh EKS cluster token: {e}")
            return
        logger.debug("cluster token refreshed", cluster=control_plane.cluster_name)

    def _write_inventory(
        self, store: InventoryStore, control_plane: ControlPlane, inventory: ResourceInventory
    ) -> None:
        try:
            store.write(control_plane, inventory)
        except LocalIOError as e:
            raise ProvisioningError(
                "failed to write inventory file", e, ResourcesState.PARTIAL
            ) from e

    def _compensate(
        self,
        store: InventoryStore,
        control_plane: ControlPlane,
        client: EKSResourceClient,
        inventory: ResourceInventory,
        create_err: Exception,
    ) -> None:
        """Delete whatever a failed creation left behind, then raise."""
        output.warning("creating cloud resources failed, deleting created resources")
        try:
            client.delete_resource_stack(inventory)
        except Exception as delete_err:
            path = store.path(control_plane)
            try:
                store.write(control_plane, inventory)
            except LocalIOError as e:
                logger.error("failed to update inventory after compensation", error=str(e))
            raise CompensationError(create_err, delete_err, path) from delete_err

        try:
            store.remove(control_plane)
        except LocalIOError as e:
            output.error("failed to remove inventory file", e)
        raise ProvisioningError(
            "failed to create cloud resources; created resources were deleted",
            create_err,
            ResourcesState.NONE,
        ) from create_err

    def resolve_api_endpoint(self, control_plane: ControlPlane, kubectl: Kubectl) -> str:
        """Wait for the API load balancer and return its URL."""
        for attempt in range(1, self.endpoint_attempts + 1):
            hostname = kubectl.service_hostname(CONTROL_PLANE_NAMESPACE, API_SERVER_NAME)
            if hostname:
                logger.info("api endpoint resolved", hostname=hostname, attempts=attempt)
                return f"http://{hostname}"
            if attempt < self.endpoint_attempts:
                self.sleep(self.endpoint_interval)
        raise InstallError(
            API_SERVER_NAME, "no load balancer hostname assigned to the API service"
        )

    def delete(
        self,
        control_plane: ControlPlane,
        config_dir: Path,
        kubectl: Kubectl | None = None,
    ) -> None:
        store = InventoryStore(config_dir)
        kubeconfig_path = control_plane.kubeconfig_path(config_dir)

        if kubectl is not None:
            try:
                DependencyInstaller(kubectl, include_support_services=True).uninstall_support_services()
                output.info("support services removed")
            except (InstallError, ToolNotInstalledError) as e:
                output.warning(f"failed to remove support services, continuing: {e}")
        else:
            output.warning(
                "kubeconfig not found; support services could not be uninstalled "
                "and a load balancer may block network teardown"
            )

        inventory = store.read(control_plane)

        output.info("deleting EKS cluster... (this could take 15 minutes)")
        client, _ = self._resource_client()
        try:
            client.delete_resource_stack(inventory)
        except Exception as e:
            self._write_inventory(store, control_plane, inventory)
            raise ProvisioningError(
                "failed to delete cloud resources", e, ResourcesState.PARTIAL
            ) from e
        output.info("EKS cluster deleted")

        try:
            store.remove(control_plane)
        except LocalIOError as e:
            output.error("failed to remove inventory file", e)
        try:
            kubeconfig_path.unlink(missing_ok=True)
        except OSError as e:
            output.error(f"failed to remove kubeconfig file {kubeconfig_path}", e)
