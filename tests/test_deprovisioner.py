# =============================================================================
# EKS SANDBOX DEPROVISIONER TESTS
# =============================================================================
# Tests for cluster deletion and dependency-ordered VPC teardown.
# =============================================================================

import pytest

from eks_sandbox.config import Settings
from eks_sandbox.deprovisioner import Deprovisioner
from eks_sandbox.errors import CloudGatewayError, TeardownError

NETWORK_DELETES = {
    "detach_network_interface",
    "delete_network_interface",
    "detach_internet_gateway",
    "delete_internet_gateway",
    "delete_subnet",
    "delete_route_table",
    "delete_security_group",
    "delete_vpc",
}

OWN_ISOLATED_TAGS = {"CreatedBy": "EKS-Sandbox-Tool", "HostingVPC": "isolated", "VpcId": "vpc-123"}


@pytest.fixture
def deprovisioner(populated_vpc, operator, quiet_console):
    return Deprovisioner(populated_vpc, operator, Settings(), console=quiet_console)


class TestClusterDeletion:
    """Provenance and classification gates."""

    def test_foreign_cluster_declined_issues_no_deletes(self, deprovisioner, populated_vpc, operator, call_names):
        """Operator says no to the danger prompt: nothing is deleted."""
        populated_vpc.get_cluster_tags.return_value = {}
        operator.confirm.return_value = False

        result = deprovisioner.run("someone-elses")

        assert result.aborted is True
        assert result.cluster_deleted is False
        deleting = [n for n in call_names(populated_vpc) if n.startswith(("delete", "detach"))]
        assert deleting == []
        assert operator.confirm.call_count == 1
        assert operator.confirm.call_args.kwargs["default"] is False

    def test_foreign_cluster_confirmed_is_deleted(self, deprovisioner, populated_vpc, operator):
        populated_vpc.get_cluster_tags.return_value = {"team": "platform"}
        operator.confirm.return_value = True

        result = deprovisioner.run("someone-elses")

        populated_vpc.delete_cluster.assert_called_once_with("someone-elses")
        assert result.cluster_deleted is True
        assert result.network_deleted is False

    def test_own_cluster_skips_danger_prompt(self, deprovisioner, populated_vpc, operator):
        populated_vpc.get_cluster_tags.return_value = {"CreatedBy": "EKS-Sandbox-Tool"}

        deprovisioner.run("Sandbox-demo")

        operator.confirm.assert_not_called()
        populated_vpc.delete_cluster.assert_called_once_with("Sandbox-demo")

    def test_non_isolated_cluster_never_touches_network(self, deprovisioner, populated_vpc, call_names):
        """Without the isolated classification there is no cascade."""
        populated_vpc.get_cluster_tags.return_value = {"CreatedBy": "EKS-Sandbox-Tool", "VpcId": "vpc-123"}

        result = deprovisioner.run("Sandbox-demo")

        assert NETWORK_DELETES.isdisjoint(call_names(populated_vpc))
        assert result.network_deleted is False

    def test_isolated_value_must_match(self, deprovisioner, populated_vpc, call_names):
        populated_vpc.get_cluster_tags.return_value = {
            "CreatedBy": "EKS-Sandbox-Tool", "HostingVPC": "shared", "VpcId": "vpc-123",
        }

        deprovisioner.run("Sandbox-demo")

        assert NETWORK_DELETES.isdisjoint(call_names(populated_vpc))

    def test_cascade_declined_keeps_network(self, deprovisioner, populated_vpc, operator, call_names):
        populated_vpc.get_cluster_tags.return_value = OWN_ISOLATED_TAGS
        operator.confirm.return_value = False

        result = deprovisioner.run("Sandbox-demo")

        populated_vpc.delete_cluster.assert_called_once_with("Sandbox-demo")
        assert NETWORK_DELETES.isdisjoint(call_names(populated_vpc))
        assert result.network_deleted is False

    def test_cascade_prompt_defaults_to_yes(self, deprovisioner, populated_vpc, operator):
        populated_vpc.get_cluster_tags.return_value = OWN_ISOLATED_TAGS

        deprovisioner.run("Sandbox-demo")

        assert operator.confirm.call_args.kwargs["default"] is True
        assert "vpc-123" in operator.confirm.call_args[0][0]

    def test_cascade_deletes_cluster_then_network(self, deprovisioner, populated_vpc, call_names):
        populated_vpc.get_cluster_tags.return_value = OWN_ISOLATED_TAGS

        result = deprovisioner.run("Sandbox-demo")

        names = call_names(populated_vpc)
        assert names.index("delete_cluster") < names.index("wait_for_cluster_deleted")
        assert names.index("wait_for_cluster_deleted") < names.index("list_network_interfaces")
        populated_vpc.delete_vpc.assert_called_once_with("vpc-123")
        assert result.vpc_id == "vpc-123"
        assert result.network_deleted is True

    def test_no_wait_goes_straight_to_teardown(self, populated_vpc, operator, quiet_console):
        populated_vpc.get_cluster_tags.return_value = OWN_ISOLATED_TAGS
        deprovisioner = Deprovisioner(
            populated_vpc, operator, Settings(wait_for_cluster_deletion=False), console=quiet_console
        )

        deprovisioner.run("Sandbox-demo")

        populated_vpc.wait_for_cluster_deleted.assert_not_called()
        populated_vpc.delete_vpc.assert_called_once_with("vpc-123")

    def test_isolated_cluster_without_vpc_tag_fails(self, deprovisioner, populated_vpc):
        populated_vpc.get_cluster_tags.return_value = {"CreatedBy": "EKS-Sandbox-Tool", "HostingVPC": "isolated"}

        with pytest.raises(TeardownError, match="VpcId"):
            deprovisioner.run("Sandbox-demo")

        populated_vpc.delete_cluster.assert_not_called()

    def test_cluster_delete_failure_surfaces(self, deprovisioner, populated_vpc):
        populated_vpc.get_cluster_tags.return_value = OWN_ISOLATED_TAGS
        populated_vpc.delete_cluster.side_effect = CloudGatewayError(
            "In use", "eks:delete_cluster", "Sandbox-demo", code="ResourceInUseException"
        )

        with pytest.raises(TeardownError) as exc_info:
            deprovisioner.run("Sandbox-demo")

        assert exc_info.value.operation == "delete-cluster"
        populated_vpc.list_network_interfaces.assert_not_called()


class TestNetworkTeardown:
    """Fixed dependency order for VPC deletion."""

    def test_full_order(self, deprovisioner, populated_vpc, call_names):
        deprovisioner.teardown_network("vpc-123")

        mutating = [n for n in call_names(populated_vpc) if n.startswith(("delete", "detach"))]
        assert mutating == [
            "detach_network_interface",
            "delete_network_interface",
            "delete_network_interface",
            "detach_internet_gateway",
            "delete_internet_gateway",
            "delete_subnet",
            "delete_subnet",
            "delete_route_table",
            "delete_security_group",
            "delete_vpc",
        ]

    def test_interfaces_gone_before_subnets_and_gateways(self, deprovisioner, populated_vpc, call_names):
        deprovisioner.teardown_network("vpc-123")

        names = call_names(populated_vpc)
        last_eni = max(i for i, n in enumerate(names) if n == "delete_network_interface")
        first_subnet = names.index("delete_subnet")
        first_igw = min(names.index("detach_internet_gateway"), names.index("delete_internet_gateway"))
        assert last_eni < first_igw
        assert last_eni < first_subnet

    def test_attached_interfaces_are_force_detached(self, deprovisioner, populated_vpc):
        deprovisioner.teardown_network("vpc-123")

        populated_vpc.detach_network_interface.assert_called_once_with("eni-attach-1", force=True)
        assert [c[0][0] for c in populated_vpc.delete_network_interface.call_args_list] == ["eni-1", "eni-2"]

    def test_interface_descriptions_reported(self, deprovisioner, quiet_console):
        deprovisioner.teardown_network("vpc-123")

        output = quiet_console.file.getvalue()
        assert "Deleted network interface eni-1 (Amazon EKS)" in output
        assert "Deleted network interface eni-2 (detached)" in output

    def test_gateway_detached_before_delete(self, deprovisioner, populated_vpc):
        deprovisioner.teardown_network("vpc-123")

        populated_vpc.detach_internet_gateway.assert_called_once_with("igw-1", "vpc-123")
        populated_vpc.delete_internet_gateway.assert_called_once_with("igw-1")

    def test_main_route_table_never_deleted(self, deprovisioner, populated_vpc):
        result = deprovisioner.teardown_network("vpc-123")

        deleted = [c[0][0] for c in populated_vpc.delete_route_table.call_args_list]
        assert deleted == ["rtb-1"]
        assert "rtb-main" not in deleted
        assert result.skipped_route_tables == ["rtb-main"]

    def test_default_security_group_never_deleted(self, deprovisioner, populated_vpc):
        result = deprovisioner.teardown_network("vpc-123")

        deleted = [c[0][0] for c in populated_vpc.delete_security_group.call_args_list]
        assert deleted == ["sg-1"]
        assert result.skipped_security_groups == ["sg-default"]

    def test_default_group_checked_by_described_name(self, deprovisioner, populated_vpc):
        """The name comes from a describe call, not the listing."""
        populated_vpc.security_group_name.side_effect = lambda sg: "default"

        deprovisioner.teardown_network("vpc-123")

        populated_vpc.delete_security_group.assert_not_called()

    def test_empty_vpc_only_deletes_vpc(self, deprovisioner, populated_vpc, call_names):
        populated_vpc.list_network_interfaces.return_value = []
        populated_vpc.list_internet_gateways.return_value = []
        populated_vpc.list_subnets.return_value = []
        populated_vpc.list_route_tables.return_value = ["rtb-main"]
        populated_vpc.list_security_groups.return_value = []

        result = deprovisioner.teardown_network("vpc-123")

        mutating = [n for n in call_names(populated_vpc) if n.startswith(("delete", "detach"))]
        assert mutating == ["delete_vpc"]
        assert result.network_deleted is True

    def test_failure_aborts_remaining_steps(self, deprovisioner, populated_vpc):
        populated_vpc.delete_subnet.side_effect = CloudGatewayError(
            "has dependencies", "ec2:delete_subnet", "subnet-1", code="DependencyViolation"
        )

        with pytest.raises(TeardownError) as exc_info:
            deprovisioner.teardown_network("vpc-123")

        assert exc_info.value.operation == "delete-subnet"
        assert exc_info.value.resource_id == "subnet-1"
        populated_vpc.delete_route_table.assert_not_called()
        populated_vpc.delete_security_group.assert_not_called()
        populated_vpc.delete_vpc.assert_not_called()

    def test_missing_vpc_stops_before_gateways(self, deprovisioner, populated_vpc):
        populated_vpc.describe_vpc.side_effect = CloudGatewayError(
            "not found", "ec2:describe_vpcs", "vpc-123", code="InvalidVpcID.NotFound"
        )

        with pytest.raises(TeardownError):
            deprovisioner.teardown_network("vpc-123")

        populated_vpc.detach_internet_gateway.assert_not_called()
        populated_vpc.delete_vpc.assert_not_called()
