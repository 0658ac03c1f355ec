"""Provider adapter contract.

Each infrastructure provider is one adapter class. Adding a provider means
adding a class here and an entry in the lookup in __init__.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from ...registry import Provider
from ..control_plane import ControlPlane
from ..install import Kubectl


@dataclass
class ProvisionedCluster:
    """A cluster an adapter created, ready for installs."""

    kubeconfig_path: Path
    api_endpoint: str | None = None


class ProviderAdapter(ABC):
    """Create and delete the cluster that hosts a control plane."""

    provider: Provider
    # Whether the cluster needs the support services operator (load balancers)
    install_support_services: bool = False
    # Provider and region recorded with the default compute cluster
    compute_cluster_provider: str = ""
    region: str = ""

    def preflight(self, control_plane: ControlPlane, config_dir: Path) -> None:
        """Check for state that makes creation unsafe. No side effects."""

    @abstractmethod
    def create(self, control_plane: ControlPlane, config_dir: Path) -> ProvisionedCluster:
        """Provision the cluster and write its kubeconfig.

        Rollback of partially created resources is the adapter's job; when
        this raises, whatever external state remains is described by the
        error.
        """

    def resolve_api_endpoint(self, control_plane: ControlPlane, kubectl: Kubectl) -> str:
        """URL of the control-plane API once dependencies are installed."""
        raise NotImplementedError

    @abstractmethod
    def delete(
        self,
        control_plane: ControlPlane,
        config_dir: Path,
        kubectl: Kubectl | None = None,
    ) -> None:
        """Tear the cluster down and remove its local files."""

    def refresh_kubeconfig(self, control_plane: ControlPlane, config_dir: Path) -> None:
        """Renew short-lived credentials in the kubeconfig before it is used again."""

    def has_leftovers(self, control_plane: ControlPlane, config_dir: Path) -> bool:
        """Whether local files describe resources from an earlier failed run."""
        return False
