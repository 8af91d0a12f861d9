"""
EKS Sandbox command line.

Creates a throwaway EKS cluster (with its own VPC by default), or deletes one
together with the VPC it was given.
"""

import argparse
import logging
import sys

from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import VERSION_STRATEGIES, Settings
from .deprovisioner import Deprovisioner
from .errors import (
    CloudGatewayError,
    ConfigurationError,
    InvariantViolation,
    OperationCancelled,
    SandboxError,
)
from .gateway import CloudGateway, get_aws_session
from .guard import TagGuard
from .models import NetworkSelection, ProvisionRequest, ProvisionResult, TeardownResult
from .prompts import QuestionaryOperator, console
from .provisioner import MIN_SUBNETS, Provisioner
from .versions import resolve_latest_version

ACTIONS = {
    "create": "Create Cluster",
    "delete": "Delete Cluster",
    "list": "List Clusters",
}


def configure_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # botocore is far too chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def tag_pair(value: str) -> tuple[str, str]:
    """argparse type for --tag KEY=VALUE."""
    key, sep, val = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{value}'")
    return key.strip(), val.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eks-sandbox", description="EKS Sandbox cluster tool")
    parser.add_argument("action", nargs="?", choices=sorted(ACTIONS), help="What to do (prompted when omitted)")
    parser.add_argument("--profile", help="AWS profile to use")
    parser.add_argument("--region", help="AWS region")
    parser.add_argument("--cluster-name", help="Cluster name (prefixed with 'Sandbox-' on create)")
    parser.add_argument("--k8s-version", help="Kubernetes version (default: latest available)")
    parser.add_argument("--version-strategy", choices=VERSION_STRATEGIES, help="How 'latest' version is picked")
    parser.add_argument("--open-ingress", action="store_true", help="Allow all inbound traffic on the new security group")
    parser.add_argument("--no-wait", action="store_true", help="Do not wait for cluster deletion before VPC teardown")
    parser.add_argument("--tag", action="append", type=tag_pair, metavar="KEY=VALUE",
                        help="Extra tag for every created resource (repeatable)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every AWS call")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


# ─────────────────────────────────────────────────────────────────────────────
# INTERACTIVE PROMPTS
# ─────────────────────────────────────────────────────────────────────────────

def select_network(gateway: CloudGateway, operator) -> NetworkSelection:
    """Pick an existing VPC, its subnets and security groups."""
    vpcs = gateway.list_vpcs()
    if not vpcs:
        raise ConfigurationError("No VPCs found in the region", "list-vpcs", gateway.region)
    vpc_id = operator.select("Select an existing VPC:", [(v.label, v.id) for v in vpcs])

    # questionary cannot render an empty checkbox
    subnets = gateway.list_subnets(vpc_id)
    if len(subnets) < MIN_SUBNETS:
        raise InvariantViolation(
            f"At least {MIN_SUBNETS} subnets are required for EKS, VPC has {len(subnets)}",
            "select-subnets", vpc_id,
        )
    subnet_ids = operator.checkbox("Select subnets to use:", [(s.label, s.id) for s in subnets])

    groups = gateway.list_security_groups(vpc_id)
    if not groups:
        raise InvariantViolation("VPC has no security groups to choose from", "select-security-groups", vpc_id)
    group_ids = operator.checkbox("Select security groups to use:", [(g.label, g.id) for g in groups])

    return NetworkSelection(vpc_id=vpc_id, subnet_ids=subnet_ids, security_group_ids=group_ids)


def gather_create_request(gateway: CloudGateway, operator, settings: Settings, args) -> ProvisionRequest:
    """Ask for everything the create pipeline needs."""
    name = args.cluster_name or operator.text("Enter the name of the EKS cluster:", required=True)
    cluster_name = settings.cluster_name(name)

    version = args.k8s_version
    if not version:
        latest = resolve_latest_version(gateway, settings.version_strategy)
        version = operator.text("Enter the Kubernetes version:", default=latest, required=True)

    auto_mode = operator.confirm("Do you want to enable auto mode for the cluster?", default=True)

    reuse = operator.confirm(
        "Do you want to create a cluster in existing VPC and subnets etc..? (Recommended No)",
        default=False,
    )
    network = select_network(gateway, operator) if reuse else None

    install_addons = operator.confirm(
        f"Do you want to install {', '.join(settings.addons)} addons?", default=True
    )

    return ProvisionRequest(
        region=settings.region,
        cluster_name=cluster_name,
        version=version.strip(),
        reuse_network=reuse,
        network=network,
        auto_mode=auto_mode,
        install_addons=install_addons,
    )


def display_request_summary(request: ProvisionRequest):
    table = Table(title="Create Cluster", show_header=False, border_style="cyan")
    table.add_column("Field", style="dim")
    table.add_column("Value", style="green")
    table.add_row("Region", request.region)
    table.add_row("Cluster", request.cluster_name)
    table.add_row("Kubernetes", request.version)
    table.add_row("Auto mode", "yes" if request.auto_mode else "no")
    if request.reuse_network and request.network:
        table.add_row("VPC", request.network.vpc_id)
        table.add_row("Subnets", ", ".join(request.network.subnet_ids) or "none")
        table.add_row("Security groups", ", ".join(request.network.security_group_ids) or "none")
    else:
        table.add_row("Network", "new VPC")
    table.add_row("Addons", "yes" if request.install_addons else "no")
    console.print(table)


def display_provision_result(result: ProvisionResult):
    table = Table(title="Sandbox Resources", show_header=False, border_style="green")
    table.add_column("Resource", style="dim")
    table.add_column("ID", style="green")
    table.add_row("Cluster", result.cluster_name)
    table.add_row("Role", result.role_arn)
    table.add_row("VPC", f"{result.vpc_id}{' (new)' if result.network_created else ''}")
    table.add_row("Subnets", ", ".join(result.subnet_ids))
    if result.internet_gateway_id:
        table.add_row("Internet Gateway", result.internet_gateway_id)
    if result.route_table_id:
        table.add_row("Route Table", result.route_table_id)
    table.add_row("Security groups", ", ".join(result.security_group_ids))
    if result.addons:
        table.add_row("Addons", ", ".join(result.addons))
    console.print(table)


# ─────────────────────────────────────────────────────────────────────────────
# ACTIONS
# ─────────────────────────────────────────────────────────────────────────────

def cmd_create(gateway: CloudGateway, operator, settings: Settings, args) -> int:
    request = gather_create_request(gateway, operator, settings, args)
    console.print()
    display_request_summary(request)
    console.print()

    result = Provisioner(gateway, settings, console).run(request)
    console.print()
    display_provision_result(result)
    console.print(Panel("[bold green]✅ Sandbox cluster requested![/bold green]", border_style="green"))
    return 0


def cmd_delete(gateway: CloudGateway, operator, settings: Settings, args) -> int:
    clusters = gateway.list_clusters()
    if not clusters:
        console.print("[yellow]No clusters found in the specified region.[/yellow]")
        return 0

    if args.cluster_name:
        # accept the name as typed on create, without the sandbox prefix
        cluster_name = args.cluster_name.strip()
        if cluster_name not in clusters:
            cluster_name = settings.cluster_name(cluster_name)
        if cluster_name not in clusters:
            raise ConfigurationError("Cluster not found in region", "select-cluster", args.cluster_name)
    else:
        cluster_name = operator.select("Select the cluster to delete:", clusters)

    result: TeardownResult = Deprovisioner(gateway, operator, settings, console=console).run(cluster_name)
    if result.aborted:
        return 0
    if result.network_deleted:
        console.print(Panel("[bold green]Cluster and VPC deleted[/bold green]", border_style="green"))
    else:
        console.print(Panel("[bold green]Cluster deletion initiated[/bold green]", border_style="green"))
    return 0


def cmd_list(gateway: CloudGateway, operator, settings: Settings, args) -> int:
    clusters = gateway.list_clusters()
    guard = TagGuard(gateway)

    table = Table(title=f"EKS clusters in {settings.region}", border_style="cyan")
    table.add_column("Cluster", style="cyan")
    table.add_column("Created by tool")
    table.add_column("Hosting")
    table.add_column("VPC", style="dim")
    for name in clusters:
        info = guard.classify(name)
        table.add_row(
            name,
            "[green]yes[/green]" if info["created_by_tool"] else "[red]no[/red]",
            "isolated" if info["isolated"] else "shared",
            info["vpc_id"] or "-",
        )
    console.print(table)
    return 0


COMMANDS = {
    "create": cmd_create,
    "delete": cmd_delete,
    "list": cmd_list,
}


# ─────────────────────────────────────────────────────────────────────────────
# MAIN
# ─────────────────────────────────────────────────────────────────────────────

def main(argv=None, operator=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    operator = operator or QuestionaryOperator()

    console.print(Panel.fit(
        "[bold cyan]EKS Sandbox[/bold cyan]\n[dim]Throwaway EKS clusters, cleaned up properly[/dim]",
        border_style="cyan",
    ))
    console.print()

    try:
        action = args.action
        if not action:
            action = operator.select(
                "What action do you want to perform?",
                [(label, key) for key, label in ACTIONS.items()],
            )

        settings = Settings.from_env().with_overrides(
            version_strategy=args.version_strategy,
            open_ingress=args.open_ingress or None,
            wait_for_cluster_deletion=False if args.no_wait else None,
            extra_tags=dict(args.tag) if args.tag else None,
        )
        region = args.region or operator.text("Enter the AWS region:", default=settings.region, required=True)
        settings = settings.with_overrides(region=region.strip())

        session = get_aws_session(args.profile, settings.region)
        gateway = CloudGateway(session, settings.region)
        console.print(f"[green]✓[/green] Region: {settings.region}")
        console.print()

        return COMMANDS[action](gateway, operator, settings, args)

    except OperationCancelled:
        console.print("[yellow]Cancelled[/yellow]")
        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 1
    except CloudGatewayError as e:
        console.print(f"[red]❌ AWS error: {e}[/red]")
        return 1
    except SandboxError as e:
        console.print(f"[red]❌ {type(e).__name__}: {e}[/red]")
        if e.__cause__ is not None:
            console.print(f"[dim]{e.__cause__}[/dim]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
