"""Lifecycle orchestration for control-plane instances.

create: validate -> provider create -> extract credentials -> install
dependencies -> resolve API endpoint -> settle -> register -> registry.

delete reverses it. The registry is loaded once at the start of an
operation and saved once, as the last mutation.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable

from .. import output
from ..config import CLIConfig
from ..errors import DuplicateInstanceError, InstanceNotFoundError, ValidationError
from ..registry import Instance, InstanceRegistry, Provider
from ..shared.logging import get_logger
from ..shared.paths import ensure_dirs
from .control_plane import ControlPlane
from .install import DependencyInstaller, Kubectl, SettleWaiter
from .kubeconfig import extract_credentials_from_file
from .providers import ProviderAdapter, provider_for
from .registrar import ControlPlaneRegistrar

logger = get_logger(__name__)

# Instance names become cluster and file names
INSTANCE_NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
MAX_INSTANCE_NAME_LENGTH = 40


def validate_instance_name(name: str) -> None:
    """Raise ValidationError unless name is a usable instance name."""
    if not name:
        raise ValidationError("instance name is required")
    if len(name) > MAX_INSTANCE_NAME_LENGTH:
        raise ValidationError(
            f"instance name {name!r} is longer than {MAX_INSTANCE_NAME_LENGTH} characters"
        )
    if not INSTANCE_NAME_PATTERN.match(name):
        raise ValidationError(
            f"instance name {name!r} must be lowercase alphanumerics and '-', "
            "starting and ending with an alphanumeric"
        )


class LifecycleOrchestrator:
    """Sequence provider, installer and registrar for create and delete."""

    def __init__(
        self,
        config: CLIConfig,
        adapters: dict[Provider, ProviderAdapter] | None = None,
        kubectl_factory: Callable[[Path], Kubectl] = Kubectl,
        registrar_factory: Callable[[str], ControlPlaneRegistrar] = ControlPlaneRegistrar,
        settle: SettleWaiter | None = None,
    ):
        self.config = config
        self.adapters = adapters or {}
        self.kubectl_factory = kubectl_factory
        self.registrar_factory = registrar_factory
        self.settle = settle or SettleWaiter(
            settle_seconds=config.settle_seconds,
            wait_for_health=config.wait_for_health,
        )

    @property
    def registry_path(self) -> Path:
        return Path(self.config.registry_file)

    def adapter(self, provider: Provider) -> ProviderAdapter:
        if provider not in self.adapters:
            self.adapters[provider] = provider_for(provider, self.config)
        return self.adapters[provider]

    def create(
        self, name: str, provider: str | Provider, force_overwrite: bool = False
    ) -> Instance:
        """Create a control-plane instance and make it current.

        Raises:
            ValidationError: Before any side effect, for a bad name or
                provider, or an existing instance without force_overwrite.
            TptctlError: Any later failure. The registry is not touched
                and whatever the failing step created is left in place.
        """
        validate_instance_name(name)
        provider = Provider.parse(provider)
        registry = InstanceRegistry.load(self.registry_path)
        if registry.exists(name) and not force_overwrite:
            raise DuplicateInstanceError(name)

        control_plane = ControlPlane(name)
        adapter = self.adapter(provider)
        config_dir = self.config.config_dir
        log = logger.bind(instance=name, cluster=control_plane.cluster_name, provider=provider.value)

        adapter.preflight(control_plane, config_dir)
        ensure_dirs(config_dir)

        log.info("creating control plane")
        provisioned = adapter.create(control_plane, config_dir)

        credentials = extract_credentials_from_file(provisioned.kubeconfig_path)
        log.debug("credentials extracted", token=credentials.token is not None)

        kubectl = self.kubectl_factory(provisioned.kubeconfig_path)
        DependencyInstaller(
            kubectl, include_support_services=adapter.install_support_services
        ).install()
        output.info("Threeport control plane installed")

        api_endpoint = provisioned.api_endpoint or adapter.resolve_api_endpoint(
            control_plane, kubectl
        )
        self.settle.wait(api_endpoint)

        self.registrar_factory(api_endpoint).register_sync(
            credentials, adapter.compute_cluster_provider, adapter.region
        )

        instance = Instance(name=name, provider=provider, api_server=api_endpoint)
        registry.upsert(instance)
        registry.set_current(name)
        registry.save(self.registry_path)
        log.info("control plane created", api_server=api_endpoint)
        output.info("Threeport config updated")
        return instance

    def delete(self, name: str, cleanup_inventory: bool = False) -> Instance | None:
        """Delete an instance's cluster and registry entry.

        With cleanup_inventory, a name with no registry entry is still
        deleted from the leftover cloud inventory of an earlier failed
        create. Registered names are deleted as recorded, without the
        pattern check create applies.

        Returns:
            The removed instance, or None for an inventory cleanup.

        Raises:
            InstanceNotFoundError: The name is not registered (and there is
                no leftover inventory to clean up). Nothing is mutated.
        """
        registry = InstanceRegistry.load(self.registry_path)
        control_plane = ControlPlane(name)
        config_dir = self.config.config_dir
        log = logger.bind(instance=name, cluster=control_plane.cluster_name)

        if not registry.exists(name):
            if not cleanup_inventory:
                raise InstanceNotFoundError(name)
            validate_instance_name(name)
            return self._cleanup_inventory(control_plane)

        instance = registry.get(name)
        adapter = self.adapter(instance.provider)

        kubeconfig_path = control_plane.kubeconfig_path(config_dir)
        kubectl = None
        if kubeconfig_path.exists():
            adapter.refresh_kubeconfig(control_plane, config_dir)
            kubectl = self.kubectl_factory(kubeconfig_path)

        log.info("deleting control plane", provider=instance.provider.value)
        adapter.delete(control_plane, config_dir, kubectl)

        registry.remove(name)
        registry.save(self.registry_path)
        log.info("control plane deleted")
        output.info("Threeport config updated")
        return instance

    def _cleanup_inventory(self, control_plane: ControlPlane) -> None:
        adapter = self.adapter(Provider.CLOUD)
        config_dir = self.config.config_dir
        if not adapter.has_leftovers(control_plane, config_dir):
            raise InstanceNotFoundError(control_plane.instance_name)
        logger.info(
            "cleaning up leftover inventory",
            instance=control_plane.instance_name,
            cluster=control_plane.cluster_name,
        )
        adapter.delete(control_plane, config_dir, kubectl=None)
        return None
