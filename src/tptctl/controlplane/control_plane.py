"""Per-invocation control plane context."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

CLUSTER_NAME_PREFIX = "threeport"


@dataclass(frozen=True)
class ControlPlane:
    """Names and on-disk locations derived from an instance name.

    Not persisted; rebuilt from the instance name on every run.
    """

    instance_name: str

    @property
    def cluster_name(self) -> str:
        return f"{CLUSTER_NAME_PREFIX}-{self.instance_name}"

    def kubeconfig_path(self, config_dir: Path) -> Path:
        return config_dir / f"kubeconfig-{self.cluster_name}"

    def inventory_path(self, config_dir: Path) -> Path:
        return config_dir / f"eks-inventory-{self.cluster_name}.json"
