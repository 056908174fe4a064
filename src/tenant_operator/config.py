"""Operator configuration loaded from environment variables."""

from __future__ import annotations

import ipaddress
import os
from dataclasses import dataclass, field

from .constants import HTTPS_PORT
from .errors import InvalidConfigError

DEFAULT_RESYNC_INTERVAL_SECONDS = 300
MIN_RESYNC_INTERVAL_SECONDS = 30

DEFAULT_CLUSTER_SUBNET_PREFIX = 24
DEFAULT_NODE_POOL_SUBNET_PREFIX = 25
MIN_SUBNET_PREFIX = 8
MAX_SUBNET_PREFIX = 28
DEFAULT_NETWORK_RANGE = "10.1.0.0/16"


@dataclass(frozen=True)
class OperatorConfig:
    """Operator configuration.

    All fields are validated at construction time. Invalid configurations
    raise InvalidConfigError immediately rather than failing during a pass.
    """

    region: str
    resync_interval_seconds: int = DEFAULT_RESYNC_INTERVAL_SECONDS
    metrics_port: int = 8080
    api_port: int = HTTPS_PORT
    cluster_subnet_prefix: int = DEFAULT_CLUSTER_SUBNET_PREFIX
    node_pool_subnet_prefix: int = DEFAULT_NODE_POOL_SUBNET_PREFIX
    network_range: tuple[str, ...] = field(default_factory=lambda: (DEFAULT_NETWORK_RANGE,))

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not self.region:
            errors.append("AWS_REGION is required")

        if self.resync_interval_seconds < MIN_RESYNC_INTERVAL_SECONDS:
            errors.append(
                f"RESYNC_INTERVAL_SECONDS must be at least {MIN_RESYNC_INTERVAL_SECONDS}"
            )

        for name, prefix in (
            ("CLUSTER_SUBNET_PREFIX", self.cluster_subnet_prefix),
            ("NODE_POOL_SUBNET_PREFIX", self.node_pool_subnet_prefix),
        ):
            if not MIN_SUBNET_PREFIX <= prefix <= MAX_SUBNET_PREFIX:
                errors.append(f"{name} must be between {MIN_SUBNET_PREFIX} and {MAX_SUBNET_PREFIX}: {prefix}")

        if not self.network_range:
            errors.append("IPAM_NETWORK_RANGE must name at least one CIDR")
        for cidr in self.network_range:
            try:
                ipaddress.IPv4Network(cidr)
            except ValueError:
                errors.append(f"IPAM_NETWORK_RANGE contains an invalid CIDR: {cidr}")

        if errors:
            raise InvalidConfigError("Configuration validation failed:\n  - " + "\n  - ".join(errors))

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Load configuration from environment variables.

        Environment Variables:
            AWS_REGION: Region of the control plane account
            RESYNC_INTERVAL_SECONDS: Seconds between passes per object (default: 300)
            METRICS_PORT: Port for /metrics, /healthz and /readyz (default: 8080)
            API_PORT: Port of the tenant Kubernetes API (default: 443)
            CLUSTER_SUBNET_PREFIX: Prefix length of cluster subnets (default: 24)
            NODE_POOL_SUBNET_PREFIX: Prefix length of node pool subnets (default: 25)
            IPAM_NETWORK_RANGE: Comma separated CIDRs subnets are drawn from
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise InvalidConfigError(f"{key} must be an integer: {value}") from e

        network_range = tuple(
            cidr.strip()
            for cidr in os.environ.get("IPAM_NETWORK_RANGE", DEFAULT_NETWORK_RANGE).split(",")
            if cidr.strip()
        )

        return cls(
            region=os.environ.get("AWS_REGION", ""),
            resync_interval_seconds=get_int("RESYNC_INTERVAL_SECONDS", DEFAULT_RESYNC_INTERVAL_SECONDS),
            metrics_port=get_int("METRICS_PORT", 8080),
            api_port=get_int("API_PORT", HTTPS_PORT),
            cluster_subnet_prefix=get_int("CLUSTER_SUBNET_PREFIX", DEFAULT_CLUSTER_SUBNET_PREFIX),
            node_pool_subnet_prefix=get_int("NODE_POOL_SUBNET_PREFIX", DEFAULT_NODE_POOL_SUBNET_PREFIX),
            network_range=network_range,
        )
