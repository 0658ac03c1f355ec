"""Resource inventory for cloud clusters.

The inventory records every cloud resource created for one cluster, in
creation order, so that deletion (or rollback of a failed creation) can
target exactly what exists.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from ...errors import LocalIOError
from ..control_plane import ControlPlane


@dataclass
class CloudResource:
    """One created cloud resource."""

    kind: str
    id: str
    region: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class ResourceInventory:
    """Created resources in creation order."""

    cluster_name: str = ""
    region: str = ""
    resources: list[CloudResource] = field(default_factory=list)

    def add(self, kind: str, resource_id: str, **attributes: Any) -> CloudResource:
        resource = CloudResource(kind=kind, id=resource_id, region=self.region, attributes=attributes)
        self.resources.append(resource)
        return resource

    def of_kind(self, kind: str) -> list[CloudResource]:
        return [r for r in self.resources if r.kind == kind]

    def remove(self, resource: CloudResource) -> None:
        self.resources.remove(resource)

    def is_empty(self) -> bool:
        return not self.resources

    def __len__(self) -> int:
        return len(self.resources)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ClusterName": self.cluster_name,
            "Region": self.region,
            "Resources": [asdict(r) for r in self.resources],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceInventory:
        return cls(
            cluster_name=data.get("ClusterName", ""),
            region=data.get("Region", ""),
            resources=[CloudResource(**r) for r in data.get("Resources") or []],
        )


class InventoryStore:
    """Persist inventories as JSON files keyed by cluster name."""

    def __init__(self, config_dir: Path):
        self.config_dir = config_dir

    def path(self, control_plane: ControlPlane) -> Path:
        return control_plane.inventory_path(self.config_dir)

    def exists(self, control_plane: ControlPlane) -> bool:
        return self.path(control_plane).exists()

    def write(self, control_plane: ControlPlane, inventory: ResourceInventory) -> Path:
        """Write the inventory, durably.

        The new content replaces the old file only once fully written.

        Raises:
            LocalIOError: If the file cannot be written.
        """
        path = self.path(control_plane)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
            with os.fdopen(fd, "w") as f:
                json.dump(inventory.to_dict(), f, indent=1)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError) as e:
            raise LocalIOError("failed to write inventory file", path, e) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        return path

    def read(self, control_plane: ControlPlane) -> ResourceInventory:
        """Load the inventory.

        Raises:
            LocalIOError: If the file is missing or unreadable. Deletion
                cannot proceed without it.
        """
        path = self.path(control_plane)
        try:
            with open(path) as f:
                data = json.load(f)
            return ResourceInventory.from_dict(data)
        except (OSError, ValueError, TypeError) as e:
            raise LocalIOError("failed to read inventory file", path, e) from e

    def remove(self, control_plane: ControlPlane) -> None:
        """Delete the inventory file.

        Raises:
            LocalIOError: If the file exists but cannot be removed.
        """
        path = self.path(control_plane)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise LocalIOError("failed to remove inventory file", path, e) from e
