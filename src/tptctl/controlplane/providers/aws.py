"""AWS resource stack for EKS-hosted control planes.

Builds (and tears down) the network, IAM roles, EKS cluster and node group
one cluster needs. Every created resource is recorded in the caller's
inventory as soon as AWS returns its identifier, so a failure at any step
leaves an inventory that describes exactly what exists.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

import boto3
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ...errors import TptctlError
from ...shared.logging import get_logger
from .inventory import CloudResource, ResourceInventory

logger = get_logger(__name__)

DEFAULT_TAGS = {"provisioner": "threeport"}
VPC_CIDR = "10.0.0.0/16"
SUBNET_CIDRS = ["10.0.0.0/19", "10.0.32.0/19"]
NODE_GROUP_SIZE = 2

CLUSTER_ROLE_POLICIES = ["arn:aws:iam::aws:policy/AmazonEKSClusterPolicy"]
NODE_ROLE_POLICIES = [
    "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
    "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
    "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
]

# Resource kinds, in creation order
VPC = "vpc"
INTERNET_GATEWAY = "internet_gateway"
SUBNET = "subnet"
ROUTE_TABLE = "route_table"
IAM_ROLE = "iam_role"
EKS_CLUSTER = "eks_cluster"
EKS_NODE_GROUP = "eks_node_group"

_NOT_FOUND_CODES = {
    "NoSuchEntity",
    "ResourceNotFoundException",
    "InvalidVpcID.NotFound",
    "InvalidSubnetID.NotFound",
    "InvalidInternetGatewayID.NotFound",
    "InvalidRouteTableID.NotFound",
    "InvalidAssociationID.NotFound",
    "Gateway.NotAttached",
}


class ResourceStackError(TptctlError):
    """Raised when an AWS call in the resource stack fails."""


@dataclass
class ResourceConfig:
    """What to build for one cluster."""

    name: str
    instance_types: list[str] = field(default_factory=lambda: ["t3.medium"])
    tags: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TAGS))

    def aws_tags(self) -> list[dict[str, str]]:
        return [{"Key": k, "Value": v} for k, v in self.tags.items()]

    def tag_spec(self, resource_type: str, suffix: str = "") -> list[dict[str, Any]]:
        name = f"{self.name}-{suffix}" if suffix else self.name
        return [
            {
                "ResourceType": resource_type,
                "Tags": self.aws_tags() + [{"Key": "Name", "Value": name}],
            }
        ]


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


def _assume_role_policy(service: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"Service": service},
                    "Action": "sts:AssumeRole",
                }
            ],
        }
    )


class EKSResourceClient:
    """Create and delete the AWS resources behind one EKS cluster."""

    def __init__(
        self,
        region: str,
        publish: Callable[[str], Any] | None = None,
        session: boto3.Session | None = None,
    ):
        self.region = region
        self.publish = publish or (lambda message: None)
        self.session = session or boto3.Session(region_name=region)
        self._clients: dict[str, Any] = {}

    def _client(self, service: str) -> Any:
        if service not in self._clients:
            self._clients[service] = self.session.client(service, region_name=self.region)
        return self._clients[service]

    @property
    def ec2(self) -> Any:
        return self._client("ec2")

    @property
    def iam(self) -> Any:
        return self._client("iam")

    @property
    def eks(self) -> Any:
        return self._client("eks")

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create_resource_stack(self, config: ResourceConfig, inventory: ResourceInventory) -> None:
        """Create every resource for the cluster, recording each in inventory.

        Raises:
            ResourceStackError: On the first failed AWS call. The inventory
                holds whatever was created before it.
        """
        inventory.cluster_name = config.name
        inventory.region = self.region
        try:
            vpc_id = self._create_network(config, inventory)
            subnet_ids = [r.id for r in inventory.of_kind(SUBNET)]
            cluster_role_arn = self._create_role(
                config, inventory, "cluster", "eks.amazonaws.com", CLUSTER_ROLE_POLICIES
            )
            node_role_arn = self._create_role(
                config, inventory, "node", "ec2.amazonaws.com", NODE_ROLE_POLICIES
            )
            self._create_cluster(config, inventory, cluster_role_arn, subnet_ids)
            self._create_node_group(config, inventory, node_role_arn, subnet_ids)
        except (ClientError, BotoCoreError, WaiterError) as e:
            logger.error("resource stack creation failed", cluster=config.name, error=str(e))
            raise ResourceStackError(f"failed to create resources for {config.name}", e) from e
        logger.info("resource stack created", cluster=config.name, vpc=vpc_id)

    def _create_network(self, config: ResourceConfig, inventory: ResourceInventory) -> str:
        self.publish("creating VPC")
        vpc = self.ec2.create_vpc(
            CidrBlock=VPC_CIDR, TagSpecifications=config.tag_spec("vpc")
        )["Vpc"]
        vpc_id = vpc["VpcId"]
        inventory.add(VPC, vpc_id)
        self.ec2.modify_vpc_attribute(VpcId=vpc_id, EnableDnsHostnames={"Value": True})
        self.publish(f"VPC {vpc_id} created")

        igw = self.ec2.create_internet_gateway(
            TagSpecifications=config.tag_spec("internet-gateway")
        )["InternetGateway"]
        igw_id = igw["InternetGatewayId"]
        inventory.add(INTERNET_GATEWAY, igw_id, vpc_id=vpc_id, attached=False)
        self.ec2.attach_internet_gateway(InternetGatewayId=igw_id, VpcId=vpc_id)
        inventory.of_kind(INTERNET_GATEWAY)[-1].attributes["attached"] = True
        self.publish(f"internet gateway {igw_id} attached")

        zones = self.ec2.describe_availability_zones(
            Filters=[{"Name": "state", "Values": ["available"]}]
        )["AvailabilityZones"]
        for i, cidr in enumerate(SUBNET_CIDRS):
            zone = zones[i % len(zones)]["ZoneName"]
            subnet = self.ec2.create_subnet(
                VpcId=vpc_id,
                CidrBlock=cidr,
                AvailabilityZone=zone,
                TagSpecifications=config.tag_spec("subnet", f"subnet-{i}"),
            )["Subnet"]
            inventory.add(SUBNET, subnet["SubnetId"], availability_zone=zone)
            self.ec2.modify_subnet_attribute(
                SubnetId=subnet["SubnetId"], MapPublicIpOnLaunch={"Value": True}
            )
        self.publish("subnets created")

        route_table = self.ec2.create_route_table(
            VpcId=vpc_id, TagSpecifications=config.tag_spec("route-table")
        )["RouteTable"]
        rt_id = route_table["RouteTableId"]
        rt = inventory.add(ROUTE_TABLE, rt_id, associations=[])
        self.ec2.create_route(
            RouteTableId=rt_id, DestinationCidrBlock="0.0.0.0/0", GatewayId=igw_id
        )
        for subnet in inventory.of_kind(SUBNET):
            assoc = self.ec2.associate_route_table(RouteTableId=rt_id, SubnetId=subnet.id)
            rt.attributes["associations"].append(assoc["AssociationId"])
        self.publish(f"route table {rt_id} created")
        return vpc_id

    def _create_role(
        self,
        config: ResourceConfig,
        inventory: ResourceInventory,
        suffix: str,
        service: str,
        policies: list[str],
    ) -> str:
        role_name = f"{config.name}-{suffix}"
        self.publish(f"creating IAM role {role_name}")
        role = self.iam.create_role(
            RoleName=role_name,
            AssumeRolePolicyDocument=_assume_role_policy(service),
            Tags=config.aws_tags(),
        )["Role"]
        resource = inventory.add(IAM_ROLE, role_name, arn=role["Arn"], policies=[])
        for policy_arn in policies:
            self.iam.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)
            resource.attributes["policies"].append(policy_arn)
        return role["Arn"]

    def _create_cluster(
        self,
        config: ResourceConfig,
        inventory: ResourceInventory,
        role_arn: str,
        subnet_ids: list[str],
    ) -> None:
        self.publish(f"creating EKS cluster {config.name} (this could take 15 minutes)")
        self.eks.create_cluster(
            name=config.name,
            roleArn=role_arn,
            resourcesVpcConfig={
                "subnetIds": subnet_ids,
                "endpointPublicAccess": True,
                "endpointPrivateAccess": False,
            },
            tags=config.tags,
        )
        inventory.add(EKS_CLUSTER, config.name)
        self.eks.get_waiter("cluster_active").wait(name=config.name)
        self.publish(f"EKS cluster {config.name} active")

    def _create_node_group(
        self,
        config: ResourceConfig,
        inventory: ResourceInventory,
        role_arn: str,
        subnet_ids: list[str],
    ) -> None:
        node_group = f"{config.name}-nodes"
        self.publish(f"creating node group {node_group}")
        self.eks.create_nodegroup(
            clusterName=config.name,
            nodegroupName=node_group,
            nodeRole=role_arn,
            subnets=subnet_ids,
            instanceTypes=config.instance_types,
            scalingConfig={
                "minSize": NODE_GROUP_SIZE,
                "maxSize": NODE_GROUP_SIZE,
                "desiredSize": NODE_GROUP_SIZE,
            },
            tags=config.tags,
        )
        inventory.add(EKS_NODE_GROUP, node_group, cluster_name=config.name)
        self.eks.get_waiter("nodegroup_active").wait(
            clusterName=config.name, nodegroupName=node_group
        )
        self.publish(f"node group {node_group} active")

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete_resource_stack(self, inventory: ResourceInventory) -> None:
        """Delete every inventoried resource, newest first.

        Each resource leaves the inventory once it is gone, so on failure the
        inventory lists what still exists. Resources AWS no longer knows
        about count as deleted.

        Raises:
            ResourceStackError: On the first failed AWS call.
        """
        handlers = {
            EKS_NODE_GROUP: self._delete_node_group,
            EKS_CLUSTER: self._delete_cluster,
            IAM_ROLE: self._delete_role,
            ROUTE_TABLE: self._delete_route_table,
            SUBNET: self._delete_subnet,
            INTERNET_GATEWAY: self._delete_internet_gateway,
            VPC: self._delete_vpc,
        }
        for resource in reversed(list(inventory.resources)):
            handler = handlers.get(resource.kind)
            if handler is None:
                raise ResourceStackError(f"unknown resource kind in inventory: {resource.kind}")
            try:
                handler(resource)
            except ClientError as e:
                if not _is_not_found(e):
                    raise ResourceStackError(
                        f"failed to delete {resource.kind} {resource.id}", e
                    ) from e
            except (BotoCoreError, WaiterError) as e:
                raise ResourceStackError(f"failed to delete {resource.kind} {resource.id}", e) from e
            inventory.remove(resource)
            self.publish(f"{resource.kind} {resource.id} deleted")
        logger.info("resource stack deleted", cluster=inventory.cluster_name)

    def _delete_node_group(self, resource: CloudResource) -> None:
        cluster = resource.attributes.get("cluster_name", "")
        self.eks.delete_nodegroup(clusterName=cluster, nodegroupName=resource.id)
        self.eks.get_waiter("nodegroup_deleted").wait(
            clusterName=cluster, nodegroupName=resource.id
        )

    def _delete_cluster(self, resource: CloudResource) -> None:
        self.eks.delete_cluster(name=resource.id)
        self.eks.get_waiter("cluster_deleted").wait(name=resource.id)

    def _delete_role(self, resource: CloudResource) -> None:
        for policy_arn in resource.attributes.get("policies", []):
            self.iam.detach_role_policy(RoleName=resource.id, PolicyArn=policy_arn)
        self.iam.delete_role(RoleName=resource.id)

    def _delete_route_table(self, resource: CloudResource) -> None:
        for assoc_id in resource.attributes.get("associations", []):
            try:
                self.ec2.disassociate_route_table(AssociationId=assoc_id)
            except ClientError as e:
                if not _is_not_found(e):
                    raise
        self.ec2.delete_route_table(RouteTableId=resource.id)

    def _delete_subnet(self, resource: CloudResource) -> None:
        self.ec2.delete_subnet(SubnetId=resource.id)

    def _delete_internet_gateway(self, resource: CloudResource) -> None:
        vpc_id = resource.attributes.get("vpc_id")
        if vpc_id and resource.attributes.get("attached", True):
            try:
                self.ec2.detach_internet_gateway(InternetGatewayId=resource.id, VpcId=vpc_id)
            except ClientError as e:
                if not _is_not_found(e):
                    raise
        self.ec2.delete_internet_gateway(InternetGatewayId=resource.id)

    def _delete_vpc(self, resource: CloudResource) -> None:
        self.ec2.delete_vpc(VpcId=resource.id)

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def cluster_kubeconfig(self, cluster_name: str) -> dict[str, Any]:
        """Kubeconfig for the cluster without a user credential.

        The cluster, user and context entries are all named after the
        cluster. The caller fills in the user.
        """
        cluster = self.eks.describe_cluster(name=cluster_name)["cluster"]
        ca_data = cluster["certificateAuthority"]["data"]
        return {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [
                {
                    "name": cluster_name,
                    "cluster": {
                        "server": cluster["endpoint"],
                        "certificate-authority-data": ca_data,
                    },
                }
            ],
            "contexts": [
                {"name": cluster_name, "context": {"cluster": cluster_name, "user": cluster_name}}
            ],
            "users": [{"name": cluster_name, "user": {}}],
            "current-context": cluster_name,
        }
