"""
Sandbox creation pipeline.

Steps run strictly in order and stop at the first failure:

  1. IDENTITY: look up the caller's account to build the cluster role ARN
  2. ROLE:     create EKSClusterRole (an existing role is fine) and attach policies
  3. NETWORK:  validate the operator's selection, or create VPC, subnets,
               internet gateway, route table and security group
  4. CLUSTER:  create the EKS cluster
  5. ADDONS:   install coredns, kube-proxy and vpc-cni

Resources created before a failure are left in place.
"""

import logging
from contextlib import contextmanager
from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .config import HOSTING_TAG_KEY, HOSTING_TAG_VALUE, VPC_TAG_KEY, Settings
from .errors import (
    CloudGatewayError,
    ConfigurationError,
    InvariantViolation,
    ResourceCreationError,
)
from .models import NetworkSelection, ProvisionRequest, ProvisionResult

logger = logging.getLogger(__name__)

ASSUME_ROLE_POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "eks.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}

ROLE_EXISTS_CODE = "EntityAlreadyExists"
MIN_SUBNETS = 2


@contextmanager
def creating(operation: str, resource_id: str | None = None):
    """Re-raise gateway failures as ResourceCreationError for this step."""
    try:
        yield
    except CloudGatewayError as e:
        raise ResourceCreationError(e.message, operation, resource_id or e.resource_id) from e


def role_arn_for(caller_arn: str, account_id: str, role_name: str) -> str:
    # arn:<partition>:sts::<account>:assumed-role/...
    parts = caller_arn.split(":")
    partition = parts[1] if len(parts) > 1 and parts[1] else "aws"
    return f"arn:{partition}:iam::{account_id}:role/{role_name}"


def validate_network_selection(gateway, selection: NetworkSelection | None):
    """
    Check an operator-picked network before a cluster is requested on it.

    At least two subnets in different availability zones and at least one
    security group are required.
    """
    if selection is None or not selection.vpc_id:
        raise InvariantViolation("A VPC must be selected to reuse an existing network", "select-network")

    subnet_ids = list(dict.fromkeys(selection.subnet_ids))
    if len(subnet_ids) < MIN_SUBNETS:
        raise InvariantViolation(
            f"At least {MIN_SUBNETS} subnets are required for EKS, got {len(subnet_ids)}",
            "select-subnets", selection.vpc_id,
        )
    if not selection.security_group_ids:
        raise InvariantViolation("At least one security group is required for EKS", "select-security-groups", selection.vpc_id)

    try:
        subnets = gateway.describe_subnets(subnet_ids)
    except CloudGatewayError as e:
        raise InvariantViolation(f"Could not describe selected subnets: {e.message}", "select-subnets", selection.vpc_id) from e

    zones = {s.az for s in subnets}
    if len(zones) < MIN_SUBNETS:
        raise InvariantViolation(
            "Selected subnets must span at least two availability zones",
            "select-subnets", ",".join(subnet_ids),
        )


def build_cluster_request(
    name: str,
    version: str,
    role_arn: str,
    subnet_ids: list[str],
    security_group_ids: list[str],
    tags: dict[str, str],
    auto_mode: bool = True,
    authentication_mode: str = "API_AND_CONFIG_MAP",
) -> dict:
    request = {
        "name": name,
        "version": version,
        "roleArn": role_arn,
        "resourcesVpcConfig": {
            "subnetIds": list(subnet_ids),
            "securityGroupIds": list(security_group_ids),
        },
        "accessConfig": {
            "authenticationMode": authentication_mode,
            "bootstrapClusterCreatorAdminPermissions": True,
        },
        "tags": tags,
    }
    if auto_mode:
        request["computeConfig"] = {"enabled": True}
        request["kubernetesNetworkConfig"] = {"elasticLoadBalancing": {"enabled": True}}
        request["storageConfig"] = {"blockStorage": {"enabled": True}}
    return request


class Provisioner:
    """Runs the create pipeline against a CloudGateway."""

    def __init__(self, gateway, settings: Settings | None = None, console: Console | None = None, today: date | None = None):
        self.gateway = gateway
        self.settings = settings or Settings()
        self.console = console or Console()
        self.today = today

    def run(self, request: ProvisionRequest) -> ProvisionResult:
        result = ProvisionResult(cluster_name=request.cluster_name)

        self.console.print(Panel(f"[bold]Creating cluster: {request.cluster_name}[/bold]", border_style="blue"))

        identity = self._resolve_identity()
        result.role_arn = self._ensure_role(identity)

        if request.reuse_network:
            self._use_existing_network(request.network, result)
        else:
            self._create_network(request.region, result)

        self._create_cluster(request, result)

        if request.install_addons:
            self._install_addons(request.cluster_name, result)

        return result

    # ─── 1. identity ───

    def _resolve_identity(self) -> dict:
        self.console.print("[dim]Fetching AWS Account ID...[/dim]")
        try:
            identity = self.gateway.get_caller_identity()
        except CloudGatewayError as e:
            raise ConfigurationError(f"Failed to get caller identity: {e.message}", "get-caller-identity") from e
        self.console.print(f"[green]✓[/green] AWS Account ID: [cyan]{identity['account']}[/cyan]")
        self.console.print(f"[dim]Performing operations as the identity {identity['arn']}[/dim]")
        return identity

    # ─── 2. role ───

    def _ensure_role(self, identity: dict) -> str:
        role_name = self.settings.role_name
        try:
            self.gateway.create_role(role_name, ASSUME_ROLE_POLICY)
            self.console.print(f"[green]✓[/green] Created role: [cyan]{role_name}[/cyan]")
        except CloudGatewayError as e:
            if e.code != ROLE_EXISTS_CODE:
                raise ResourceCreationError(f"Failed to create role: {e.message}", "create-role", role_name) from e
            logger.info("Role %s already exists, proceeding", role_name)
            self.console.print(f"[yellow]Role {role_name} already exists. Proceeding...[/yellow]")

        for policy_arn in self.settings.role_policies:
            with creating("attach-role-policy", f"{role_name}/{policy_arn}"):
                self.gateway.attach_role_policy(role_name, policy_arn)
            self.console.print(f"[green]✓[/green] Attached policy [dim]{policy_arn}[/dim]")

        return role_arn_for(identity["arn"], identity["account"], role_name)

    # ─── 3. network ───

    def _use_existing_network(self, selection: NetworkSelection | None, result: ProvisionResult):
        validate_network_selection(self.gateway, selection)
        result.vpc_id = selection.vpc_id
        result.subnet_ids = list(dict.fromkeys(selection.subnet_ids))
        result.security_group_ids = list(selection.security_group_ids)
        self.console.print(f"[green]✓[/green] Using VPC: [cyan]{result.vpc_id}[/cyan]")
        self.console.print(f"[green]✓[/green] Using subnets: [cyan]{', '.join(result.subnet_ids)}[/cyan]")
        self.console.print(f"[green]✓[/green] Using security groups: [cyan]{', '.join(result.security_group_ids)}[/cyan]")

    def _create_network(self, region: str, result: ProvisionResult):
        s = self.settings
        today = self.today or date.today()
        vpc_name = f"{s.vpc_name_prefix}-{today.isoformat()}"

        with creating("create-vpc", s.vpc_cidr):
            vpc_id = self.gateway.create_vpc(s.vpc_cidr, s.provenance_tags(vpc_name))
        result.vpc_id = vpc_id
        result.network_created = True
        self.console.print(f"[green]✓[/green] Created VPC: [cyan]{vpc_id}[/cyan]")

        for layout in s.subnets:
            with creating("create-subnet", f"{vpc_id}/{layout.cidr}"):
                subnet_id = self.gateway.create_subnet(
                    vpc_id, layout.cidr, f"{region}{layout.az_suffix}", s.provenance_tags(layout.name)
                )
            result.subnet_ids.append(subnet_id)

        for subnet_id in result.subnet_ids:
            with creating("enable-public-ip", subnet_id):
                self.gateway.enable_public_ip(subnet_id)
        self.console.print(f"[green]✓[/green] Created subnets: [cyan]{', '.join(result.subnet_ids)}[/cyan]")

        with creating("create-internet-gateway", vpc_id):
            igw_id = self.gateway.create_internet_gateway(s.provenance_tags(s.internet_gateway_name))
        result.internet_gateway_id = igw_id
        with creating("attach-internet-gateway", igw_id):
            self.gateway.attach_internet_gateway(igw_id, vpc_id)
        self.console.print(f"[green]✓[/green] Created Internet Gateway: [cyan]{igw_id}[/cyan]")

        with creating("create-route-table", vpc_id):
            rtb_id = self.gateway.create_route_table(vpc_id, s.provenance_tags(s.route_table_name))
        result.route_table_id = rtb_id
        with creating("create-route", rtb_id):
            self.gateway.create_route(rtb_id, s.default_route_cidr, igw_id)
        for subnet_id in result.subnet_ids:
            with creating("associate-route-table", f"{rtb_id}/{subnet_id}"):
                self.gateway.associate_route_table(rtb_id, subnet_id)
        self.console.print(f"[green]✓[/green] Created Route Table: [cyan]{rtb_id}[/cyan]")

        with creating("create-security-group", vpc_id):
            sg_id = self.gateway.create_security_group(
                vpc_id, s.security_group_name, s.security_group_description,
                s.provenance_tags(s.security_group_name),
            )
        if s.open_ingress:
            with creating("authorize-ingress", sg_id):
                self.gateway.authorize_all_ingress(sg_id, s.default_route_cidr)
        result.security_group_ids = [sg_id]
        self.console.print(f"[green]✓[/green] Created Security Group: [cyan]{sg_id}[/cyan]")

    # ─── 4. cluster ───

    def _create_cluster(self, request: ProvisionRequest, result: ProvisionResult):
        tags = self.settings.provenance_tags()
        if result.network_created:
            tags[HOSTING_TAG_KEY] = HOSTING_TAG_VALUE
            tags[VPC_TAG_KEY] = result.vpc_id

        cluster_request = build_cluster_request(
            name=request.cluster_name,
            version=request.version,
            role_arn=result.role_arn,
            subnet_ids=result.subnet_ids,
            security_group_ids=result.security_group_ids,
            tags=tags,
            auto_mode=request.auto_mode,
            authentication_mode=self.settings.authentication_mode,
        )

        self.console.print("[cyan]→ Creating EKS cluster...[/cyan]")
        with creating("create-cluster", request.cluster_name):
            self.gateway.create_cluster(cluster_request)
        self.console.print(
            f"[green]✓[/green] EKS cluster '{request.cluster_name}' creation initiated "
            f"with Kubernetes version {request.version}"
        )

    # ─── 5. addons ───

    def _install_addons(self, cluster_name: str, result: ProvisionResult):
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
        ) as progress:
            progress.add_task("Waiting for cluster to become ACTIVE (10-15 minutes)...", total=None)
            with creating("wait-cluster-active", cluster_name):
                self.gateway.wait_for_cluster_active(cluster_name)

        for addon in self.settings.addons:
            with creating("create-addon", f"{cluster_name}/{addon}"):
                self.gateway.create_addon(cluster_name, addon)
            result.addons.append(addon)
            self.console.print(f"[green]✓[/green] Installed addon [cyan]{addon}[/cyan]")
