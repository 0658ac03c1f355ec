"""Registration of seed objects with a new control plane.

Two single-attempt calls: the default compute cluster (the control plane's
own cluster) and the forward-proxy workload definition.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

from .. import output
from ..client import ThreeportClient, ThreeportClientError
from ..errors import RegistrationError
from ..shared.logging import get_logger
from .kubeconfig import CredentialBundle
from .manifests import forward_proxy_manifest

logger = get_logger(__name__)

DEFAULT_COMPUTE_CLUSTER_NAME = "default-threeport-compute-space"
DEFAULT_COMPUTE_CLUSTER_API_ENDPOINT = "kubernetes.default"
FORWARD_PROXY_WORKLOAD_DEFINITION_NAME = "forwardProxy"

# No user management yet; seed objects belong to the first user
SUPERUSER_ID = 1


@dataclass
class RegistrationResult:
    workload_cluster: dict[str, Any]
    workload_definition: dict[str, Any]


class ControlPlaneRegistrar:
    """Register the default compute cluster and seed workload definition."""

    def __init__(
        self,
        api_endpoint: str,
        client_factory: Callable[[str], ThreeportClient] = ThreeportClient,
    ):
        self.api_endpoint = api_endpoint
        self.client_factory = client_factory

    def workload_cluster(
        self, credentials: CredentialBundle, provider: str, region: str
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "Name": DEFAULT_COMPUTE_CLUSTER_NAME,
            "Region": region,
            "Provider": provider,
            "APIEndpoint": DEFAULT_COMPUTE_CLUSTER_API_ENDPOINT,
            **credentials.as_text(),
        }
        if credentials.token:
            body["Token"] = credentials.token
        return body

    def workload_definition(self) -> dict[str, Any]:
        return {
            "Name": FORWARD_PROXY_WORKLOAD_DEFINITION_NAME,
            "YAMLDocument": forward_proxy_manifest(),
            "UserID": SUPERUSER_ID,
        }

    async def register(
        self, credentials: CredentialBundle, provider: str, region: str
    ) -> RegistrationResult:
        """Create the default compute cluster, then the seed definition.

        Raises:
            RegistrationError: If either call fails; the second call is not
                attempted when the first fails.
        """
        async with self.client_factory(self.api_endpoint) as client:
            try:
                wc = await client.create_workload_cluster(
                    self.workload_cluster(credentials, provider, region)
                )
            except ThreeportClientError as e:
                raise RegistrationError(
                    "failed to create workload cluster in Threeport API", e, e.status_code
                ) from e
            output.info(
                f"default workload cluster {wc.get('Name', DEFAULT_COMPUTE_CLUSTER_NAME)} "
                "for compute space set up"
            )
            logger.info("workload cluster registered", endpoint=self.api_endpoint)

            try:
                wd = await client.create_workload_definition(self.workload_definition())
            except ThreeportClientError as e:
                raise RegistrationError(
                    "failed to create forward proxy workload definition in Threeport API",
                    e,
                    e.status_code,
                ) from e
            output.info(
                f"forward proxy workload definition "
                f"{wd.get('Name', FORWARD_PROXY_WORKLOAD_DEFINITION_NAME)} added"
            )

        return RegistrationResult(workload_cluster=wc, workload_definition=wd)

    def register_sync(
        self, credentials: CredentialBundle, provider: str, region: str
    ) -> RegistrationResult:
        """Synchronous wrapper for register."""
        return asyncio.run(self.register(credentials, provider, region))
