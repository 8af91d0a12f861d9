"""
Cluster and network teardown.

A cluster the tool did not tag as its own can still be deleted, but only after
the operator says so. The cluster's VPC is only offered for deletion when the
cluster is tagged as its sole tenant.

VPC teardown follows the dependency order AWS enforces:

  a. network interfaces (detach, then delete)
  b. internet gateways (detach, then delete)
  c. subnets
  d. route tables, except the main one
  e. security groups, except "default"
  f. the VPC itself
"""

import logging
from contextlib import contextmanager

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .config import Settings
from .errors import CloudGatewayError, TeardownError
from .guard import TagGuard
from .models import TeardownResult

logger = logging.getLogger(__name__)

DEFAULT_SECURITY_GROUP = "default"


@contextmanager
def tearing_down(operation: str, resource_id: str | None = None):
    """Re-raise gateway failures as TeardownError for this step."""
    try:
        yield
    except CloudGatewayError as e:
        raise TeardownError(e.message, operation, resource_id or e.resource_id) from e


class Deprovisioner:
    """Deletes a cluster and, when it owns one, its VPC."""

    def __init__(self, gateway, operator, settings: Settings | None = None,
                 guard: TagGuard | None = None, console: Console | None = None):
        self.gateway = gateway
        self.operator = operator
        self.settings = settings or Settings()
        self.guard = guard or TagGuard(gateway)
        self.console = console or Console()

    def run(self, cluster_name: str) -> TeardownResult:
        result = TeardownResult(cluster_name=cluster_name)

        if not self.guard.is_created_by_tool(cluster_name):
            confirmed = self.operator.confirm(
                "This cluster does not appear to be created by this tool. "
                "Are you sure you want to delete it? Danger!!",
                default=False,
            )
            if not confirmed:
                self.console.print("[yellow]Cluster deletion aborted.[/yellow]")
                result.aborted = True
                return result

        cascade = False
        vpc_id = ""
        if self.guard.is_isolated_hosting(cluster_name):
            vpc_id = self.guard.owning_network_id(cluster_name)
            cascade = self.operator.confirm(
                f"Do you want to delete VPC {vpc_id} and all dependent objects in it?",
                default=True,
            )

        self.console.print(Panel(f"[bold]Deleting EKS cluster: {cluster_name}[/bold]", border_style="red"))
        with tearing_down("delete-cluster", cluster_name):
            self.gateway.delete_cluster(cluster_name)
        result.cluster_deleted = True
        self.console.print(f"[green]✓[/green] Cluster '{cluster_name}' deletion initiated")

        if not cascade:
            if vpc_id:
                self.console.print(f"[dim]Leaving VPC {vpc_id} intact[/dim]")
            return result

        if self.settings.wait_for_cluster_deletion:
            self._wait_for_cluster_deleted(cluster_name)

        result.vpc_id = vpc_id
        self.teardown_network(vpc_id, result)
        return result

    def _wait_for_cluster_deleted(self, cluster_name: str):
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
        ) as progress:
            progress.add_task("Waiting for cluster deletion...", total=None)
            with tearing_down("wait-cluster-deleted", cluster_name):
                self.gateway.wait_for_cluster_deleted(cluster_name)
        self.console.print(f"[green]✓[/green] Cluster '{cluster_name}' deleted")

    def teardown_network(self, vpc_id: str, result: TeardownResult | None = None) -> TeardownResult:
        """Delete a VPC and everything in it, in dependency order."""
        result = result or TeardownResult(cluster_name="", vpc_id=vpc_id)
        result.vpc_id = vpc_id
        self.console.print(Panel(f"[bold]Deleting VPC: {vpc_id}[/bold]", border_style="red"))

        # a. network interfaces
        with tearing_down("list-network-interfaces", vpc_id):
            interfaces = self.gateway.list_network_interfaces(vpc_id)
        if not interfaces:
            self.console.print("[dim]No network interfaces found[/dim]")
        for eni in interfaces:
            if eni["attachment_id"]:
                with tearing_down("detach-network-interface", eni["id"]):
                    self.gateway.detach_network_interface(eni["attachment_id"], force=True)
            with tearing_down("delete-network-interface", eni["id"]):
                self.gateway.delete_network_interface(eni["id"])
            label = f" ({escape(eni['description'])})" if eni["description"] else ""
            self.console.print(f"[green]✓[/green] Deleted network interface {eni['id']}{label}")

        with tearing_down("describe-vpc", vpc_id):
            self.gateway.describe_vpc(vpc_id)

        # b. internet gateways
        with tearing_down("list-internet-gateways", vpc_id):
            gateways = self.gateway.list_internet_gateways(vpc_id)
        for igw_id in gateways:
            with tearing_down("detach-internet-gateway", igw_id):
                self.gateway.detach_internet_gateway(igw_id, vpc_id)
            with tearing_down("delete-internet-gateway", igw_id):
                self.gateway.delete_internet_gateway(igw_id)
            self.console.print(f"[green]✓[/green] Deleted Internet Gateway {igw_id}")

        # c. subnets
        with tearing_down("list-subnets", vpc_id):
            subnets = self.gateway.list_subnets(vpc_id)
        for subnet in subnets:
            with tearing_down("delete-subnet", subnet.id):
                self.gateway.delete_subnet(subnet.id)
            self.console.print(f"[green]✓[/green] Deleted subnet {subnet.id}")

        # d. route tables
        with tearing_down("list-route-tables", vpc_id):
            route_tables = self.gateway.list_route_tables(vpc_id)
        for rtb_id in route_tables:
            with tearing_down("describe-route-table", rtb_id):
                is_main = self.gateway.is_main_route_table(rtb_id)
            if is_main:
                self.console.print(f"[dim]Skipping deletion of main route table {rtb_id}[/dim]")
                result.skipped_route_tables.append(rtb_id)
                continue
            with tearing_down("delete-route-table", rtb_id):
                self.gateway.delete_route_table(rtb_id)
            self.console.print(f"[green]✓[/green] Deleted route table {rtb_id}")

        # e. security groups
        with tearing_down("list-security-groups", vpc_id):
            groups = self.gateway.list_security_groups(vpc_id)
        for group in groups:
            with tearing_down("describe-security-group", group.id):
                name = self.gateway.security_group_name(group.id)
            if name == DEFAULT_SECURITY_GROUP:
                self.console.print(f"[dim]Skipping deletion of default security group {group.id}[/dim]")
                result.skipped_security_groups.append(group.id)
                continue
            with tearing_down("delete-security-group", group.id):
                self.gateway.delete_security_group(group.id)
            self.console.print(f"[green]✓[/green] Deleted security group {group.id}")

        # f. the VPC
        with tearing_down("delete-vpc", vpc_id):
            self.gateway.delete_vpc(vpc_id)
        result.network_deleted = True
        logger.info("VPC %s and its dependents deleted", vpc_id)
        self.console.print("[green]✓ VPC and all components of the VPC deleted[/green]")
        return result
