"""Infrastructure provider adapters."""

from __future__ import annotations

from ...config import CLIConfig
from ...registry import Provider
from .base import ProviderAdapter, ProvisionedCluster
from .eks import CloudProvider
from .kind import LocalProvider


def provider_for(provider: Provider, config: CLIConfig) -> ProviderAdapter:
    """Build the adapter for a provider."""
    if provider is Provider.LOCAL:
        return LocalProvider()
    if provider is Provider.CLOUD:
        return CloudProvider(region=config.aws_region, instance_type=config.instance_type)
    raise ValueError(f"no adapter for provider {provider}")


__all__ = [
    "CloudProvider",
    "LocalProvider",
    "ProviderAdapter",
    "ProvisionedCluster",
    "provider_for",
]
