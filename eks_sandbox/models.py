"""
Value types passed between the prompts, the gateway and the orchestrator.

Nothing here is persisted. Resource state lives in AWS and is looked up again
whenever it is needed.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class VpcSummary:
    id: str
    name: str
    cidr: str
    is_default: bool = False

    @property
    def label(self) -> str:
        default = " [default]" if self.is_default else ""
        return f"{self.id} - {self.name} ({self.cidr}){default}"


@dataclass(frozen=True)
class SubnetSummary:
    id: str
    name: str
    cidr: str
    az: str
    public: bool = False

    @property
    def label(self) -> str:
        scope = "public" if self.public else "private"
        return f"{self.id} - {self.name} ({self.az}, {self.cidr}, {scope})"


@dataclass(frozen=True)
class SecurityGroupSummary:
    id: str
    name: str
    description: str = ""

    @property
    def label(self) -> str:
        return f"{self.id} - {self.name}"


@dataclass
class NetworkSelection:
    """Existing network resources picked by the operator."""
    vpc_id: str
    subnet_ids: list[str] = field(default_factory=list)
    security_group_ids: list[str] = field(default_factory=list)


@dataclass
class ProvisionRequest:
    """Parameters of one create run."""
    region: str
    cluster_name: str
    version: str
    reuse_network: bool = False
    network: NetworkSelection | None = None
    auto_mode: bool = True
    install_addons: bool = True


@dataclass
class ProvisionResult:
    cluster_name: str
    role_arn: str = ""
    vpc_id: str = ""
    subnet_ids: list[str] = field(default_factory=list)
    security_group_ids: list[str] = field(default_factory=list)
    internet_gateway_id: str = ""
    route_table_id: str = ""
    network_created: bool = False
    addons: list[str] = field(default_factory=list)


@dataclass
class TeardownResult:
    cluster_name: str
    aborted: bool = False
    cluster_deleted: bool = False
    vpc_id: str = ""
    network_deleted: bool = False
    skipped_route_tables: list[str] = field(default_factory=list)
    skipped_security_groups: list[str] = field(default_factory=list)
