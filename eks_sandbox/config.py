"""
Sandbox settings.

Everything the create and delete flows need to know that is not asked of the
operator: tag keys, naming, address layout, the cluster role and the add-on
set. Values can be overridden from the environment with Settings.from_env().
"""

import os
from dataclasses import dataclass, field, replace


# ─────────────────────────────────────────────────────────────────────────────
# CONSTANTS
# ─────────────────────────────────────────────────────────────────────────────

TOOL_TAG_KEY = "CreatedBy"
TOOL_TAG_VALUE = "EKS-Sandbox-Tool"
HOSTING_TAG_KEY = "HostingVPC"
HOSTING_TAG_VALUE = "isolated"
VPC_TAG_KEY = "VpcId"
NAME_TAG_KEY = "Name"

DEFAULT_REGION = "eu-west-2"
CLUSTER_NAME_PREFIX = "Sandbox-"

CLUSTER_ROLE_NAME = "EKSClusterRole"
CLUSTER_ROLE_POLICIES = (
    "arn:aws:iam::aws:policy/AmazonEKSClusterPolicy",
    "arn:aws:iam::aws:policy/AmazonEKSVPCResourceController",
)

CORE_ADDONS = ("coredns", "kube-proxy", "vpc-cni")

VERSION_STRATEGIES = ("lexicographic", "numeric")


@dataclass(frozen=True)
class SubnetLayout:
    """One subnet of a freshly created sandbox network."""
    name: str
    cidr: str
    az_suffix: str


@dataclass(frozen=True)
class Settings:
    """Settings for one run of the tool."""
    region: str = DEFAULT_REGION
    name_prefix: str = CLUSTER_NAME_PREFIX

    role_name: str = CLUSTER_ROLE_NAME
    role_policies: tuple = CLUSTER_ROLE_POLICIES

    vpc_cidr: str = "10.0.0.0/16"
    vpc_name_prefix: str = "Sandbox-EKS-VPC"
    subnets: tuple = (
        SubnetLayout("EKS-Subnet-1", "10.0.1.0/24", "a"),
        SubnetLayout("EKS-Subnet-2", "10.0.2.0/24", "b"),
    )
    internet_gateway_name: str = "EKS-IGW"
    route_table_name: str = "EKS-Route-Table"
    default_route_cidr: str = "0.0.0.0/0"
    security_group_name: str = "EKS-SG"
    security_group_description: str = "EKS Security Group"

    addons: tuple = CORE_ADDONS
    authentication_mode: str = "API_AND_CONFIG_MAP"

    open_ingress: bool = False
    wait_for_cluster_deletion: bool = True
    version_strategy: str = "lexicographic"

    extra_tags: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings, letting the environment pick the default region."""
        environ = os.environ if environ is None else environ
        region = (
            environ.get("EKS_SANDBOX_REGION")
            or environ.get("AWS_DEFAULT_REGION")
            or DEFAULT_REGION
        )
        return cls(region=region)

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with the non-None keyword arguments applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def cluster_name(self, name: str) -> str:
        """Effective cluster name for an operator-supplied name. Always prefixed."""
        return f"{self.name_prefix}{name.strip()}"

    def provenance_tags(self, name: str | None = None) -> dict[str, str]:
        """Tags put on every resource the tool creates."""
        tags = dict(self.extra_tags)
        if name:
            tags[NAME_TAG_KEY] = name
        tags[TOOL_TAG_KEY] = TOOL_TAG_VALUE
        return tags
