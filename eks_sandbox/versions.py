"""Kubernetes version selection."""

from .config import VERSION_STRATEGIES
from .errors import CloudGatewayError, ConfigurationError


def _numeric_key(version: str) -> tuple:
    parts = []
    for piece in version.split("."):
        parts.append(int(piece) if piece.isdigit() else -1)
    return tuple(parts)


def latest_version(versions: list[str], strategy: str = "lexicographic") -> str:
    """
    Pick the newest version string.

    The default strategy sorts the strings in descending order as text, so
    "1.9" beats "1.10". The "numeric" strategy compares dotted components as
    integers instead.
    """
    if strategy not in VERSION_STRATEGIES:
        raise ValueError(f"Unknown version strategy: {strategy}")
    if not versions:
        raise ConfigurationError("No available EKS versions found", "resolve-version")

    if strategy == "numeric":
        ordered = sorted(versions, key=_numeric_key, reverse=True)
    else:
        ordered = sorted(versions, reverse=True)
    return ordered[0]


def resolve_latest_version(gateway, strategy: str = "lexicographic") -> str:
    """Fetch every available cluster version and pick the latest."""
    try:
        versions = gateway.list_cluster_versions()
    except CloudGatewayError as e:
        raise ConfigurationError(
            f"Failed to fetch EKS cluster versions: {e.message}", "describe-cluster-versions", gateway.region
        ) from e
    return latest_version(versions, strategy)
