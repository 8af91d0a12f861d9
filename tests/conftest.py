"""
Pytest configuration and fixtures for EKS Sandbox tests.
"""

import io
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from eks_sandbox.gateway import CloudGateway
from eks_sandbox.models import SecurityGroupSummary, SubnetSummary


@pytest.fixture
def quiet_console():
    """Console that writes to a buffer instead of the terminal."""
    return Console(file=io.StringIO(), force_terminal=False, width=120)


@pytest.fixture
def gateway():
    """Mocked CloudGateway with a working create path."""
    gw = MagicMock(spec=CloudGateway)
    gw.region = "eu-west-2"

    gw.get_caller_identity.return_value = {
        "account": "123456789012",
        "arn": "arn:aws:iam::123456789012:user/dev",
    }
    gw.create_role.return_value = "arn:aws:iam::123456789012:role/EKSClusterRole"
    gw.create_vpc.return_value = "vpc-new"
    gw.create_subnet.side_effect = ["subnet-a", "subnet-b"]
    gw.create_internet_gateway.return_value = "igw-new"
    gw.create_route_table.return_value = "rtb-new"
    gw.create_security_group.return_value = "sg-new"
    gw.describe_subnets.return_value = [
        SubnetSummary("subnet-1", "one", "10.1.1.0/24", "eu-west-2a"),
        SubnetSummary("subnet-2", "two", "10.1.2.0/24", "eu-west-2b"),
    ]
    gw.list_cluster_versions.return_value = ["1.29", "1.30", "1.31"]
    return gw


@pytest.fixture
def populated_vpc(gateway):
    """Gateway describing a VPC with one of everything, plus the defaults."""
    gateway.list_network_interfaces.return_value = [
        {"id": "eni-1", "attachment_id": "eni-attach-1", "description": "Amazon EKS"},
        {"id": "eni-2", "attachment_id": None, "description": "detached"},
    ]
    gateway.describe_vpc.return_value = {"VpcId": "vpc-123"}
    gateway.list_internet_gateways.return_value = ["igw-1"]
    gateway.list_subnets.return_value = [
        SubnetSummary("subnet-1", "EKS-Subnet-1", "10.0.1.0/24", "eu-west-2a"),
        SubnetSummary("subnet-2", "EKS-Subnet-2", "10.0.2.0/24", "eu-west-2b"),
    ]
    gateway.list_route_tables.return_value = ["rtb-main", "rtb-1"]
    gateway.is_main_route_table.side_effect = lambda rtb: rtb == "rtb-main"
    gateway.list_security_groups.return_value = [
        SecurityGroupSummary("sg-default", "default"),
        SecurityGroupSummary("sg-1", "EKS-SG"),
    ]
    gateway.security_group_name.side_effect = lambda sg: {"sg-default": "default", "sg-1": "EKS-SG"}[sg]
    return gateway


@pytest.fixture
def operator():
    """Mocked operator; tests queue answers with side_effect/return_value."""
    op = MagicMock()
    op.confirm.return_value = True
    return op


@pytest.fixture
def call_names():
    """Names of the methods called on a mock, in order."""
    def names(mock):
        return [c[0] for c in mock.mock_calls if c[0]]
    return names
