"""Workload definitions created from a config file.

    Name: web3-sample
    YAMLDocument: web3-sample-manifest.yaml
    UserID: 1

YAMLDocument is a path to the Kubernetes manifest, relative to the config
file.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import yaml

from .client import ThreeportClient, ThreeportClientError
from .errors import LocalIOError, RegistrationError, ValidationError
from .registry import InstanceRegistry


@dataclass
class WorkloadDefinitionConfig:
    name: str
    yaml_document: Path
    user_id: int = 1

    @classmethod
    def load(cls, path: Path) -> WorkloadDefinitionConfig:
        """Read a workload definition config file.

        Raises:
            LocalIOError: If the file cannot be read or parsed.
            ValidationError: If Name or YAMLDocument is missing.
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise LocalIOError("failed to read config file", path, e) from e
        if not isinstance(data, dict):
            raise LocalIOError("config file is not a mapping", path)

        # Accept the document nested under a WorkloadDefinition key too
        data = data.get("WorkloadDefinition", data)
        missing = [key for key in ("Name", "YAMLDocument") if not data.get(key)]
        if missing:
            raise ValidationError(f"workload definition config is missing {', '.join(missing)}")

        document = Path(str(data["YAMLDocument"])).expanduser()
        if not document.is_absolute():
            document = path.parent / document
        try:
            user_id = int(data.get("UserID", 1))
        except (TypeError, ValueError) as e:
            raise ValidationError("workload definition UserID must be an integer", e) from e
        return cls(name=str(data["Name"]), yaml_document=document, user_id=user_id)

    def to_request(self) -> dict[str, Any]:
        try:
            content = self.yaml_document.read_text()
        except OSError as e:
            raise LocalIOError("failed to read workload YAML document", self.yaml_document, e) from e
        return {"Name": self.name, "YAMLDocument": content, "UserID": self.user_id}


def current_api_endpoint(registry_path: Path) -> str:
    """API endpoint of the current instance.

    Raises:
        ValidationError: If no instance is current.
    """
    current = InstanceRegistry.load(registry_path).current()
    if current is None:
        raise ValidationError(
            "no current Threeport instance; create one with 'tptctl create control-plane'"
        )
    return current.api_server


async def create_workload_definition(
    config: WorkloadDefinitionConfig,
    api_endpoint: str,
    client_factory: Callable[[str], ThreeportClient] = ThreeportClient,
) -> dict[str, Any]:
    body = config.to_request()
    async with client_factory(api_endpoint) as client:
        try:
            return await client.create_workload_definition(body)
        except ThreeportClientError as e:
            raise RegistrationError(
                "failed to create workload definition", e, e.status_code
            ) from e


def create_workload_definition_sync(
    config: WorkloadDefinitionConfig,
    api_endpoint: str,
    client_factory: Callable[[str], ThreeportClient] = ThreeportClient,
) -> dict[str, Any]:
    """Synchronous wrapper for create_workload_definition."""
    return asyncio.run(create_workload_definition(config, api_endpoint, client_factory))
