"""Custom object parsing and key derivation helpers."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any

from .config import MAX_SUBNET_PREFIX, MIN_SUBNET_PREFIX, OperatorConfig
from .constants import (
    ANNOTATION_SUBNET,
    KIND_CLUSTER,
    KIND_MACHINE_DEPLOYMENT,
    LABEL_CLUSTER,
    LABEL_OPERATOR_VERSION,
    LABEL_ORGANIZATION,
    MASTER_ENDPOINTS_NAME,
    PLURAL_CLUSTERS,
    PLURAL_MACHINE_DEPLOYMENTS,
)
from .errors import InvalidCustomObjectError

PLURALS = {
    KIND_CLUSTER: PLURAL_CLUSTERS,
    KIND_MACHINE_DEPLOYMENT: PLURAL_MACHINE_DEPLOYMENTS,
}


@dataclass(frozen=True)
class CustomObject:
    """Immutable per-pass snapshot of a Cluster or MachineDeployment."""

    kind: str
    namespace: str
    name: str
    uid: str
    resource_version: str
    version: str
    cluster_id: str
    organization_id: str
    base_domain: str
    region: str
    subnet_pool: tuple[str, ...]
    subnet_prefix: int
    subnet: str | None = None
    role_arn: str | None = None
    deleting: bool = False
    body: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def plural(self) -> str:
        return PLURALS[self.kind]


def to_custom_object(
    body: dict[str, Any],
    config: OperatorConfig,
    deleting: bool | None = None,
) -> CustomObject:
    """Build a CustomObject from a raw Kubernetes body.

    Args:
        body: Custom resource body as delivered by kopf or the API
        config: Operator configuration providing pool and prefix defaults
        deleting: Override deletion detection (defaults to deletionTimestamp)

    Returns:
        Parsed custom object

    Raises:
        InvalidCustomObjectError: If required fields are missing or malformed
    """
    if not isinstance(body, dict):
        raise InvalidCustomObjectError(f"expected a mapping, got {type(body).__name__}")

    kind = body.get("kind", "")
    if kind not in PLURALS:
        raise InvalidCustomObjectError(f"unsupported kind {kind!r}")

    meta = body.get("metadata") or {}
    spec = body.get("spec") or {}
    labels = meta.get("labels") or {}
    annotations = meta.get("annotations") or {}

    name = meta.get("name")
    if not name:
        raise InvalidCustomObjectError("metadata.name is required")

    cluster_id = labels.get(LABEL_CLUSTER) or (name if kind == KIND_CLUSTER else "")
    if not cluster_id:
        raise InvalidCustomObjectError(f"label {LABEL_CLUSTER} is required for {kind} {name}")

    version = labels.get(LABEL_OPERATOR_VERSION)
    if not version:
        raise InvalidCustomObjectError(f"label {LABEL_OPERATOR_VERSION} is required for {kind} {name}")

    network = spec.get("network") or {}
    pool = network.get("pool") or list(config.network_range)
    if isinstance(pool, str):
        pool = [pool]
    default_prefix = config.cluster_subnet_prefix if kind == KIND_CLUSTER else config.node_pool_subnet_prefix
    try:
        subnet_prefix = int(network.get("subnetPrefix", default_prefix))
    except (TypeError, ValueError) as e:
        raise InvalidCustomObjectError(f"spec.network.subnetPrefix must be an integer for {kind} {name}") from e
    if not MIN_SUBNET_PREFIX <= subnet_prefix <= MAX_SUBNET_PREFIX:
        raise InvalidCustomObjectError(
            f"spec.network.subnetPrefix must be between {MIN_SUBNET_PREFIX} and {MAX_SUBNET_PREFIX} "
            f"for {kind} {name}: {subnet_prefix}"
        )
    pool = _parse_pool(pool, kind, name)

    base_domain = (spec.get("dns") or {}).get("baseDomain", "")
    if kind == KIND_CLUSTER and not base_domain:
        raise InvalidCustomObjectError(f"spec.dns.baseDomain is required for {kind} {name}")

    if deleting is None:
        deleting = bool(meta.get("deletionTimestamp"))

    return CustomObject(
        kind=kind,
        namespace=meta.get("namespace", "default"),
        name=name,
        uid=meta.get("uid", ""),
        resource_version=str(meta.get("resourceVersion", "")),
        version=version,
        cluster_id=cluster_id,
        organization_id=labels.get(LABEL_ORGANIZATION, ""),
        base_domain=base_domain,
        region=spec.get("region") or config.region,
        subnet_pool=tuple(pool),
        subnet_prefix=subnet_prefix,
        subnet=subnet_from_annotations(annotations),
        role_arn=(spec.get("aws") or {}).get("roleArn"),
        deleting=deleting,
        body=body,
    )


def _parse_pool(pool: Any, kind: str, name: str) -> list[str]:
    if not isinstance(pool, list):
        raise InvalidCustomObjectError(f"spec.network.pool must be a list of CIDRs for {kind} {name}")
    networks = []
    for cidr in pool:
        try:
            networks.append(str(ipaddress.IPv4Network(cidr, strict=True)))
        except (TypeError, ValueError) as e:
            raise InvalidCustomObjectError(
                f"spec.network.pool contains an invalid CIDR for {kind} {name}: {cidr}"
            ) from e
    return networks


def subnet_from_annotations(annotations: dict[str, str] | None) -> str | None:
    """Return the allocated subnet annotation, or None when unallocated."""
    if not annotations:
        return None
    return annotations.get(ANNOTATION_SUBNET) or None


def cluster_base_domain(obj: CustomObject) -> str:
    return f"{obj.cluster_id}.k8s.{obj.base_domain}"


def api_domain(obj: CustomObject) -> str:
    return f"api.{cluster_base_domain(obj)}"


def internal_api_domain(obj: CustomObject) -> str:
    return f"internal-api.{cluster_base_domain(obj)}"


def etcd_domain(obj: CustomObject) -> str:
    return f"etcd.{cluster_base_domain(obj)}"


def ingress_domain(obj: CustomObject) -> str:
    return f"ingress.{cluster_base_domain(obj)}"


def master_instance_name(obj: CustomObject) -> str:
    return f"{obj.cluster_id}-master"


def bucket_name(obj: CustomObject, account_id: str) -> str:
    """Bucket holding the cluster's cloud configs, unique per account."""
    return f"{account_id}-g8s-{obj.cluster_id}"


def bucket_object_key(obj: CustomObject, role: str) -> str:
    return f"version/{obj.version}/cloudconfig/{role}"


def stack_name(obj: CustomObject) -> str:
    return f"cluster-{obj.cluster_id}-tccp"


def endpoints_labels(obj: CustomObject) -> dict[str, str]:
    return {
        "app": MASTER_ENDPOINTS_NAME,
        "cluster": obj.cluster_id,
        "customer": obj.organization_id,
    }
