"""
Tag checks that gate destructive operations.

Nothing is remembered locally about which clusters the tool created. Each
check reads the cluster's current tags from AWS.
"""

from .config import (
    HOSTING_TAG_KEY,
    HOSTING_TAG_VALUE,
    TOOL_TAG_KEY,
    TOOL_TAG_VALUE,
    VPC_TAG_KEY,
)
from .errors import CloudGatewayError, TeardownError


class TagGuard:
    def __init__(self, gateway):
        self.gateway = gateway

    def _tags(self, cluster_name: str) -> dict[str, str]:
        try:
            return self.gateway.get_cluster_tags(cluster_name)
        except CloudGatewayError as e:
            raise TeardownError(f"Failed to describe EKS cluster: {e.message}", "check-tags", cluster_name) from e

    def has_tag(self, cluster_name: str, key: str, value: str) -> bool:
        """True when the cluster carries key=value. A missing tag is False."""
        return self._tags(cluster_name).get(key) == value

    def is_created_by_tool(self, cluster_name: str) -> bool:
        return self.has_tag(cluster_name, TOOL_TAG_KEY, TOOL_TAG_VALUE)

    def is_isolated_hosting(self, cluster_name: str) -> bool:
        return self.has_tag(cluster_name, HOSTING_TAG_KEY, HOSTING_TAG_VALUE)

    def owning_network_id(self, cluster_name: str) -> str:
        vpc_id = self._tags(cluster_name).get(VPC_TAG_KEY)
        if not vpc_id:
            raise TeardownError(f"{VPC_TAG_KEY} tag not found on cluster", "resolve-vpc", cluster_name)
        return vpc_id

    def classify(self, cluster_name: str) -> dict[str, str | bool]:
        """Provenance, hosting classification and owning VPC in one lookup."""
        tags = self._tags(cluster_name)
        return {
            "created_by_tool": tags.get(TOOL_TAG_KEY) == TOOL_TAG_VALUE,
            "isolated": tags.get(HOSTING_TAG_KEY) == HOSTING_TAG_VALUE,
            "vpc_id": tags.get(VPC_TAG_KEY, ""),
        }
