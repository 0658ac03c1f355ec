"""Kubernetes manifests for the Threeport control plane.

Each manifest set is a list of documents rendered as multi-document YAML
and applied to the new cluster in a fixed order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

CONTROL_PLANE_NAMESPACE = "threeport-control-plane"
SUPPORT_SERVICES_NAMESPACE = "support-services-system"

API_SERVER_NAME = "threeport-api-server"
API_PORT = 1323

# Default images
API_SERVER_IMAGE = "ghcr.io/threeport/threeport-rest-api:v0.1.6"
WORKLOAD_CONTROLLER_IMAGE = "ghcr.io/threeport/threeport-workload-controller:v0.1.3"
SUPPORT_SERVICES_OPERATOR_IMAGE = "ghcr.io/nukleros/support-services-operator:v0.1.7"
DATABASE_IMAGE = "postgres:15-alpine"
MESSAGE_BROKER_IMAGE = "nats:2.9-alpine"
FORWARD_PROXY_IMAGE = "envoyproxy/envoy:v1.26-latest"


@dataclass
class InstallConfig:
    """Configuration for a control plane install."""

    namespace: str = CONTROL_PLANE_NAMESPACE
    api_server_image: str = API_SERVER_IMAGE
    workload_controller_image: str = WORKLOAD_CONTROLLER_IMAGE
    support_services_image: str = SUPPORT_SERVICES_OPERATOR_IMAGE
    # kind maps the API port from the node; cloud clusters get a load balancer
    expose_with_load_balancer: bool = False


@dataclass
class ManifestSet:
    """A named group of manifest documents applied as one install step."""

    name: str
    documents: list[dict[str, Any]] = field(default_factory=list)

    def render(self) -> str:
        return yaml.dump_all(self.documents, default_flow_style=False, sort_keys=False)


def _namespace(name: str) -> dict[str, Any]:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}


def _deployment(
    name: str,
    namespace: str,
    container: dict[str, Any],
    service_account: str | None = None,
) -> dict[str, Any]:
    pod_spec: dict[str, Any] = {"containers": [container]}
    if service_account:
        pod_spec["serviceAccountName"] = service_account
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"app.kubernetes.io/name": name}},
            "template": {
                "metadata": {"labels": {"app.kubernetes.io/name": name}},
                "spec": pod_spec,
            },
        },
    }


def _service(
    name: str,
    namespace: str,
    port: int,
    target_port: int,
    service_type: str = "ClusterIP",
) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "type": service_type,
            "selector": {"app.kubernetes.io/name": name},
            "ports": [{"port": port, "targetPort": target_port, "protocol": "TCP"}],
        },
    }


def _secret(name: str, namespace: str, data: dict[str, str]) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "Opaque",
        "stringData": data,
    }


def support_services_operator(config: InstallConfig) -> ManifestSet:
    """Operator that manages ingress and cloud load balancers."""
    ns = SUPPORT_SERVICES_NAMESPACE
    name = "support-services-operator"
    return ManifestSet(
        name=name,
        documents=[
            _namespace(ns),
            {
                "apiVersion": "v1",
                "kind": "ServiceAccount",
                "metadata": {"name": name, "namespace": ns},
            },
            {
                "apiVersion": "rbac.authorization.k8s.io/v1",
                "kind": "ClusterRoleBinding",
                "metadata": {"name": name},
                "roleRef": {
                    "apiGroup": "rbac.authorization.k8s.io",
                    "kind": "ClusterRole",
                    "name": "cluster-admin",
                },
                "subjects": [{"kind": "ServiceAccount", "name": name, "namespace": ns}],
            },
            _deployment(
                name,
                ns,
                {
                    "name": "manager",
                    "image": config.support_services_image,
                    "imagePullPolicy": "IfNotPresent",
                    "args": ["--leader-elect"],
                },
                service_account=name,
            ),
        ],
    )


def api_server(config: InstallConfig) -> ManifestSet:
    """API server plus its database and message broker."""
    ns = config.namespace

    database = _deployment(
        "threeport-api-db",
        ns,
        {
            "name": "postgres",
            "image": DATABASE_IMAGE,
            "ports": [{"containerPort": 5432}],
            "envFrom": [{"secretRef": {"name": "db-config"}}],
            "readinessProbe": {
                "exec": {"command": ["pg_isready", "-U", "tp_rest_api"]},
                "initialDelaySeconds": 5,
                "periodSeconds": 5,
            },
        },
    )
    broker = _deployment(
        "threeport-message-broker",
        ns,
        {
            "name": "nats",
            "image": MESSAGE_BROKER_IMAGE,
            "args": ["--jetstream"],
            "ports": [{"containerPort": 4222}],
        },
    )

    api_container: dict[str, Any] = {
        "name": "api-server",
        "image": config.api_server_image,
        "imagePullPolicy": "IfNotPresent",
        "ports": [{"containerPort": API_PORT}],
        "envFrom": [{"secretRef": {"name": "db-config"}}],
        "env": [
            {"name": "MSG_BROKER_HOST", "value": "threeport-message-broker"},
            {"name": "MSG_BROKER_PORT", "value": "4222"},
        ],
        "readinessProbe": {
            "httpGet": {"path": "/health", "port": API_PORT},
            "initialDelaySeconds": 10,
            "periodSeconds": 10,
        },
    }
    if not config.expose_with_load_balancer:
        api_container["ports"][0]["hostPort"] = API_PORT

    service_type = "LoadBalancer" if config.expose_with_load_balancer else "ClusterIP"

    return ManifestSet(
        name="api-server",
        documents=[
            _namespace(ns),
            _secret(
                "db-config",
                ns,
                {
                    "POSTGRES_USER": "tp_rest_api",
                    "POSTGRES_PASSWORD": "tp-rest-api-pwd",
                    "POSTGRES_DB": "threeport_api",
                    "DB_HOST": "threeport-api-db",
                    "DB_PORT": "5432",
                },
            ),
            database,
            _service("threeport-api-db", ns, 5432, 5432),
            broker,
            _service("threeport-message-broker", ns, 4222, 4222),
            _deployment(API_SERVER_NAME, ns, api_container),
            _service(API_SERVER_NAME, ns, 80, API_PORT, service_type),
        ],
    )


def workload_controller(config: InstallConfig) -> ManifestSet:
    """Controller that reconciles workload instances onto compute clusters."""
    ns = config.namespace
    return ManifestSet(
        name="workload-controller",
        documents=[
            _secret(
                "workload-controller-config",
                ns,
                {
                    "API_SERVER": f"http://{API_SERVER_NAME}",
                    "MSG_BROKER_HOST": "threeport-message-broker",
                    "MSG_BROKER_PORT": "4222",
                },
            ),
            _deployment(
                "threeport-workload-controller",
                ns,
                {
                    "name": "workload-controller",
                    "image": config.workload_controller_image,
                    "imagePullPolicy": "IfNotPresent",
                    "envFrom": [{"secretRef": {"name": "workload-controller-config"}}],
                },
            ),
        ],
    )


def install_sequence(config: InstallConfig, include_support_services: bool) -> list[ManifestSet]:
    """Manifest sets in the order they must be applied."""
    steps = []
    if include_support_services:
        steps.append(support_services_operator(config))
    steps.append(api_server(config))
    steps.append(workload_controller(config))
    return steps


def forward_proxy_manifest() -> str:
    """YAML document for the seed forward-proxy workload definition."""
    name = "forward-proxy"
    documents = [
        {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": f"{name}-config"},
            "data": {
                "envoy.yaml": yaml.safe_dump(
                    {
                        "static_resources": {
                            "listeners": [
                                {
                                    "name": "listener_0",
                                    "address": {
                                        "socket_address": {
                                            "address": "0.0.0.0",
                                            "port_value": 8080,
                                        }
                                    },
                                }
                            ]
                        }
                    },
                    sort_keys=False,
                )
            },
        },
        _deployment(
            name,
            "default",
            {
                "name": "envoy",
                "image": FORWARD_PROXY_IMAGE,
                "ports": [{"containerPort": 8080}],
                "volumeMounts": [{"name": "config", "mountPath": "/etc/envoy"}],
            },
        ),
        _service(name, "default", 8080, 8080),
    ]
    # Namespace is assigned when the workload is instantiated
    for doc in documents:
        doc["metadata"].pop("namespace", None)
    documents[1]["spec"]["template"]["spec"]["volumes"] = [
        {"name": "config", "configMap": {"name": f"{name}-config"}}
    ]
    return yaml.dump_all(documents, default_flow_style=False, sort_keys=False)
