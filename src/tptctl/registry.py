"""Instance registry.

The registry is the YAML document at ~/.config/threeport/config.yaml:

    Instances:
      - Name: dev
        Provider: local
        APIServer: http://localhost:1323
    CurrentInstance: dev

It is read wholesale at the start of a lifecycle operation and rewritten
wholesale (write-then-rename) as the last step.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .errors import InstanceNotFoundError, LocalIOError, ValidationError


class Provider(Enum):
    """Infrastructure providers an instance can run on."""

    LOCAL = "local"
    CLOUD = "cloud"

    @classmethod
    def parse(cls, value: str | Provider) -> Provider:
        """Parse a provider name, accepting the original kind/eks spellings.

        Raises:
            ValidationError: If the name is not in the allow-list.
        """
        if isinstance(value, Provider):
            return value
        normalized = (value or "").strip().lower()
        normalized = PROVIDER_ALIASES.get(normalized, normalized)
        for provider in cls:
            if provider.value == normalized:
                return provider
        allowed = ", ".join(p.value for p in cls)
        raise ValidationError(f"infra provider {value!r} not supported (choose from: {allowed})")


PROVIDER_ALIASES = {
    "kind": Provider.LOCAL.value,
    "eks": Provider.CLOUD.value,
}


@dataclass
class Instance:
    """One named control-plane deployment."""

    name: str
    provider: Provider
    api_server: str

    def to_dict(self) -> dict[str, str]:
        return {
            "Name": self.name,
            "Provider": self.provider.value,
            "APIServer": self.api_server,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instance:
        return cls(
            name=str(data["Name"]),
            provider=Provider.parse(str(data.get("Provider", Provider.LOCAL.value))),
            api_server=str(data.get("APIServer", "")),
        )


@dataclass
class InstanceRegistry:
    """Known instances plus the current-instance pointer."""

    instances: list[Instance] = field(default_factory=list)
    current_instance: str = ""

    @classmethod
    def load(cls, path: Path) -> InstanceRegistry:
        """Read the registry file.

        A missing file is an empty registry.

        Raises:
            LocalIOError: If the file exists but cannot be read or parsed.
        """
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise LocalIOError("failed to read Threeport config", path, e) from e

        if not isinstance(data, dict):
            raise LocalIOError("Threeport config is not a mapping", path)

        try:
            instances = [Instance.from_dict(i) for i in data.get("Instances") or []]
        except (KeyError, TypeError, ValidationError) as e:
            raise LocalIOError("Threeport config has a malformed instance entry", path, e) from e

        registry = cls(instances=[], current_instance=str(data.get("CurrentInstance") or ""))
        # Later duplicates win; keep the first position.
        for instance in instances:
            registry.upsert(instance)
        if registry.current_instance and not registry.exists(registry.current_instance):
            registry.current_instance = ""
        return registry

    def save(self, path: Path) -> None:
        """Rewrite the registry file atomically.

        The document is written to a temporary file in the same directory,
        flushed to disk, then renamed over the target.

        Raises:
            LocalIOError: If the file cannot be written.
        """
        data = {
            "Instances": [i.to_dict() for i in self.instances],
            "CurrentInstance": self.current_instance,
        }
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
            with os.fdopen(fd, "w") as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise LocalIOError("failed to write Threeport config", path, e) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def exists(self, name: str) -> bool:
        return any(i.name == name for i in self.instances)

    def get(self, name: str) -> Instance:
        """Look up an instance by name.

        Raises:
            InstanceNotFoundError: If no entry has that name.
        """
        for instance in self.instances:
            if instance.name == name:
                return instance
        raise InstanceNotFoundError(name)

    def current(self) -> Instance | None:
        if not self.current_instance:
            return None
        try:
            return self.get(self.current_instance)
        except InstanceNotFoundError:
            return None

    def upsert(self, instance: Instance) -> None:
        """Overwrite the entry with the same name in place, or append."""
        for n, existing in enumerate(self.instances):
            if existing.name == instance.name:
                self.instances[n] = instance
                return
        self.instances.append(instance)

    def remove(self, name: str) -> Instance:
        """Drop an entry, clearing the current pointer if it referenced it."""
        instance = self.get(name)
        self.instances = [i for i in self.instances if i.name != name]
        if self.current_instance == name:
            self.current_instance = ""
        return instance

    def set_current(self, name: str) -> None:
        self.get(name)
        self.current_instance = name
