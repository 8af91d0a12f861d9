"""
AWS access for the sandbox tool.

CloudGateway is the only place that talks to boto3. Every call is synchronous
and every botocore failure comes back as a CloudGatewayError naming the API
operation, the resource it was about and the AWS error code.
"""

import json
import logging
from contextlib import contextmanager

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ProfileNotFound

from .errors import CloudGatewayError, ConfigurationError
from .models import SecurityGroupSummary, SubnetSummary, VpcSummary

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────

def get_aws_session(profile: str | None = None, region: str | None = None) -> boto3.Session:
    try:
        return boto3.Session(profile_name=profile, region_name=region)
    except ProfileNotFound as e:
        raise ConfigurationError(f"AWS profile '{profile}' not found", "load-profile", profile) from e


def _tag_list(tags: dict[str, str]) -> list[dict]:
    return [{"Key": k, "Value": v} for k, v in tags.items()]


def _tag_dict(tags: list[dict] | None) -> dict[str, str]:
    return {t["Key"]: t["Value"] for t in tags or []}


def _tag_specs(resource_type: str, tags: dict[str, str]) -> list[dict]:
    return [{"ResourceType": resource_type, "Tags": _tag_list(tags)}]


def _vpc_filter(vpc_id: str, name: str = "vpc-id") -> list[dict]:
    return [{"Name": name, "Values": [vpc_id]}]


# ─────────────────────────────────────────────────────────────────────────────
# GATEWAY
# ─────────────────────────────────────────────────────────────────────────────

class CloudGateway:
    """Thin, typed wrapper over the STS, IAM, EC2 and EKS clients."""

    def __init__(self, session: boto3.Session, region: str | None = None):
        self.session = session
        self.region = region or session.region_name
        self._clients = {}

    def _client(self, service: str):
        if service not in self._clients:
            self._clients[service] = self.session.client(service, region_name=self.region)
        return self._clients[service]

    @contextmanager
    def _translate_errors(self, operation: str, resource_id: str | None):
        logger.debug("%s %s", operation, resource_id or "")
        try:
            yield
        except ClientError as e:
            error = e.response.get("Error", {})
            raise CloudGatewayError(
                error.get("Message") or str(e), operation, resource_id, error.get("Code", "")
            ) from e
        except BotoCoreError as e:
            raise CloudGatewayError(str(e), operation, resource_id, type(e).__name__) from e

    def _call(self, service: str, method: str, resource_id: str | None = None, **kwargs):
        with self._translate_errors(f"{service}:{method}", resource_id):
            return getattr(self._client(service), method)(**kwargs)

    def _paginate(self, service: str, method: str, key: str, resource_id: str | None = None, **kwargs) -> list:
        items = []
        with self._translate_errors(f"{service}:{method}", resource_id):
            paginator = self._client(service).get_paginator(method)
            for page in paginator.paginate(**kwargs):
                items.extend(page.get(key, []))
        return items

    def _wait(self, service: str, waiter_name: str, resource_id: str, delay: int, max_attempts: int, **kwargs):
        with self._translate_errors(f"{service}:wait:{waiter_name}", resource_id):
            waiter = self._client(service).get_waiter(waiter_name)
            waiter.wait(WaiterConfig={"Delay": delay, "MaxAttempts": max_attempts}, **kwargs)

    # ─── identity ───

    def get_caller_identity(self) -> dict:
        response = self._call("sts", "get_caller_identity")
        return {"account": response["Account"], "arn": response["Arn"]}

    def create_role(self, role_name: str, trust_policy: dict) -> str:
        response = self._call(
            "iam", "create_role", role_name,
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(trust_policy),
        )
        return response["Role"]["Arn"]

    def attach_role_policy(self, role_name: str, policy_arn: str):
        self._call("iam", "attach_role_policy", role_name, RoleName=role_name, PolicyArn=policy_arn)

    # ─── network: create ───

    def create_vpc(self, cidr: str, tags: dict[str, str]) -> str:
        response = self._call(
            "ec2", "create_vpc", cidr,
            CidrBlock=cidr,
            TagSpecifications=_tag_specs("vpc", tags),
        )
        return response["Vpc"]["VpcId"]

    def create_subnet(self, vpc_id: str, cidr: str, availability_zone: str, tags: dict[str, str]) -> str:
        response = self._call(
            "ec2", "create_subnet", vpc_id,
            VpcId=vpc_id,
            CidrBlock=cidr,
            AvailabilityZone=availability_zone,
            TagSpecifications=_tag_specs("subnet", tags),
        )
        return response["Subnet"]["SubnetId"]

    def enable_public_ip(self, subnet_id: str):
        self._call(
            "ec2", "modify_subnet_attribute", subnet_id,
            SubnetId=subnet_id,
            MapPublicIpOnLaunch={"Value": True},
        )

    def create_internet_gateway(self, tags: dict[str, str]) -> str:
        response = self._call(
            "ec2", "create_internet_gateway",
            TagSpecifications=_tag_specs("internet-gateway", tags),
        )
        return response["InternetGateway"]["InternetGatewayId"]

    def attach_internet_gateway(self, igw_id: str, vpc_id: str):
        self._call("ec2", "attach_internet_gateway", igw_id, InternetGatewayId=igw_id, VpcId=vpc_id)

    def create_route_table(self, vpc_id: str, tags: dict[str, str]) -> str:
        response = self._call(
            "ec2", "create_route_table", vpc_id,
            VpcId=vpc_id,
            TagSpecifications=_tag_specs("route-table", tags),
        )
        return response["RouteTable"]["RouteTableId"]

    def create_route(self, route_table_id: str, cidr: str, igw_id: str):
        self._call(
            "ec2", "create_route", route_table_id,
            RouteTableId=route_table_id,
            DestinationCidrBlock=cidr,
            GatewayId=igw_id,
        )

    def associate_route_table(self, route_table_id: str, subnet_id: str) -> str:
        response = self._call(
            "ec2", "associate_route_table", route_table_id,
            RouteTableId=route_table_id,
            SubnetId=subnet_id,
        )
        return response.get("AssociationId", "")

    def create_security_group(self, vpc_id: str, name: str, description: str, tags: dict[str, str]) -> str:
        response = self._call(
            "ec2", "create_security_group", vpc_id,
            GroupName=name,
            Description=description,
            VpcId=vpc_id,
            TagSpecifications=_tag_specs("security-group", tags),
        )
        return response["GroupId"]

    def authorize_all_ingress(self, group_id: str, cidr: str = "0.0.0.0/0"):
        self._call(
            "ec2", "authorize_security_group_ingress", group_id,
            GroupId=group_id,
            IpPermissions=[{"IpProtocol": "-1", "IpRanges": [{"CidrIp": cidr}]}],
        )

    # ─── network: describe ───

    def list_vpcs(self) -> list[VpcSummary]:
        vpcs = self._paginate("ec2", "describe_vpcs", "Vpcs")
        return [
            VpcSummary(
                id=v["VpcId"],
                name=_tag_dict(v.get("Tags")).get("Name", "unnamed"),
                cidr=v.get("CidrBlock", ""),
                is_default=v.get("IsDefault", False),
            )
            for v in vpcs
        ]

    def describe_vpc(self, vpc_id: str) -> dict:
        response = self._call("ec2", "describe_vpcs", vpc_id, VpcIds=[vpc_id])
        return response["Vpcs"][0]

    @staticmethod
    def _subnet_summary(s: dict) -> SubnetSummary:
        return SubnetSummary(
            id=s["SubnetId"],
            name=_tag_dict(s.get("Tags")).get("Name", "unnamed"),
            cidr=s.get("CidrBlock", ""),
            az=s.get("AvailabilityZone", ""),
            public=s.get("MapPublicIpOnLaunch", False),
        )

    def list_subnets(self, vpc_id: str) -> list[SubnetSummary]:
        subnets = self._paginate("ec2", "describe_subnets", "Subnets", vpc_id, Filters=_vpc_filter(vpc_id))
        return [self._subnet_summary(s) for s in subnets]

    def describe_subnets(self, subnet_ids: list[str]) -> list[SubnetSummary]:
        response = self._call("ec2", "describe_subnets", ",".join(subnet_ids), SubnetIds=list(subnet_ids))
        return [self._subnet_summary(s) for s in response["Subnets"]]

    def list_internet_gateways(self, vpc_id: str) -> list[str]:
        gateways = self._paginate(
            "ec2", "describe_internet_gateways", "InternetGateways", vpc_id,
            Filters=_vpc_filter(vpc_id, "attachment.vpc-id"),
        )
        return [g["InternetGatewayId"] for g in gateways]

    def list_route_tables(self, vpc_id: str) -> list[str]:
        tables = self._paginate("ec2", "describe_route_tables", "RouteTables", vpc_id, Filters=_vpc_filter(vpc_id))
        return [t["RouteTableId"] for t in tables]

    def is_main_route_table(self, route_table_id: str) -> bool:
        response = self._call("ec2", "describe_route_tables", route_table_id, RouteTableIds=[route_table_id])
        tables = response.get("RouteTables", [])
        if not tables:
            return False
        return any(a.get("Main") for a in tables[0].get("Associations", []))

    def list_security_groups(self, vpc_id: str) -> list[SecurityGroupSummary]:
        groups = self._paginate(
            "ec2", "describe_security_groups", "SecurityGroups", vpc_id, Filters=_vpc_filter(vpc_id)
        )
        return [
            SecurityGroupSummary(id=g["GroupId"], name=g.get("GroupName", ""), description=g.get("Description", ""))
            for g in groups
        ]

    def security_group_name(self, group_id: str) -> str:
        response = self._call("ec2", "describe_security_groups", group_id, GroupIds=[group_id])
        groups = response.get("SecurityGroups", [])
        return groups[0].get("GroupName", "") if groups else ""

    def list_network_interfaces(self, vpc_id: str) -> list[dict]:
        interfaces = self._paginate(
            "ec2", "describe_network_interfaces", "NetworkInterfaces", vpc_id, Filters=_vpc_filter(vpc_id)
        )
        return [
            {
                "id": eni["NetworkInterfaceId"],
                "attachment_id": (eni.get("Attachment") or {}).get("AttachmentId"),
                "description": eni.get("Description", ""),
            }
            for eni in interfaces
        ]

    # ─── network: teardown ───

    def detach_network_interface(self, attachment_id: str, force: bool = True):
        self._call("ec2", "detach_network_interface", attachment_id, AttachmentId=attachment_id, Force=force)

    def delete_network_interface(self, eni_id: str):
        self._call("ec2", "delete_network_interface", eni_id, NetworkInterfaceId=eni_id)

    def detach_internet_gateway(self, igw_id: str, vpc_id: str):
        self._call("ec2", "detach_internet_gateway", igw_id, InternetGatewayId=igw_id, VpcId=vpc_id)

    def delete_internet_gateway(self, igw_id: str):
        self._call("ec2", "delete_internet_gateway", igw_id, InternetGatewayId=igw_id)

    def delete_subnet(self, subnet_id: str):
        self._call("ec2", "delete_subnet", subnet_id, SubnetId=subnet_id)

    def delete_route_table(self, route_table_id: str):
        self._call("ec2", "delete_route_table", route_table_id, RouteTableId=route_table_id)

    def delete_security_group(self, group_id: str):
        self._call("ec2", "delete_security_group", group_id, GroupId=group_id)

    def delete_vpc(self, vpc_id: str):
        self._call("ec2", "delete_vpc", vpc_id, VpcId=vpc_id)

    # ─── cluster ───

    def create_cluster(self, request: dict) -> dict:
        response = self._call("eks", "create_cluster", request["name"], **request)
        return response.get("cluster", {})

    def describe_cluster(self, name: str) -> dict:
        return self._call("eks", "describe_cluster", name, name=name)["cluster"]

    def get_cluster_tags(self, name: str) -> dict[str, str]:
        return self.describe_cluster(name).get("tags") or {}

    def list_clusters(self) -> list[str]:
        return self._paginate("eks", "list_clusters", "clusters")

    def delete_cluster(self, name: str):
        self._call("eks", "delete_cluster", name, name=name)

    def list_cluster_versions(self) -> list[str]:
        versions = []
        kwargs = {"includeAll": True}
        while True:
            response = self._call("eks", "describe_cluster_versions", **kwargs)
            versions.extend(
                v["clusterVersion"] for v in response.get("clusterVersions", []) if v.get("clusterVersion")
            )
            token = response.get("nextToken")
            if not token:
                return versions
            kwargs["nextToken"] = token

    def create_addon(self, cluster_name: str, addon_name: str):
        self._call("eks", "create_addon", f"{cluster_name}/{addon_name}", clusterName=cluster_name, addonName=addon_name)

    def wait_for_cluster_active(self, name: str, delay: int = 30, max_attempts: int = 60):
        self._wait("eks", "cluster_active", name, delay, max_attempts, name=name)

    def wait_for_cluster_deleted(self, name: str, delay: int = 30, max_attempts: int = 60):
        self._wait("eks", "cluster_deleted", name, delay, max_attempts, name=name)
