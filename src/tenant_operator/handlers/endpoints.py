"""Handler for the control plane Endpoints of a tenant cluster."""

from __future__ import annotations

from dataclasses import dataclass, field

from kubernetes import client

from .. import key
from ..constants import MASTER_ENDPOINTS_NAME
from ..controllercontext import ControllerContext
from ..key import CustomObject
from ..services.k8s.client import is_not_found
from ..utils.events import emit_endpoints_updated
from .base import BaseHandler, Delta


@dataclass(frozen=True)
class EndpointSet:
    """Addresses and ports exposed under one Endpoints name."""

    name: str
    namespace: str
    addresses: tuple[str, ...]
    ports: tuple[int, ...]
    labels: dict[str, str] = field(default_factory=dict)


def from_v1_endpoints(endpoints: client.V1Endpoints) -> EndpointSet:
    addresses: list[str] = []
    ports: list[int] = []
    for subset in endpoints.subsets or []:
        addresses.extend(address.ip for address in subset.addresses or [])
        ports.extend(port.port for port in subset.ports or [])
    return EndpointSet(
        name=endpoints.metadata.name,
        namespace=endpoints.metadata.namespace,
        addresses=tuple(sorted(addresses)),
        ports=tuple(sorted(ports)),
        labels=dict(endpoints.metadata.labels or {}),
    )


def to_v1_endpoints(endpoint_set: EndpointSet) -> client.V1Endpoints:
    return client.V1Endpoints(
        metadata=client.V1ObjectMeta(
            name=endpoint_set.name,
            namespace=endpoint_set.namespace,
            labels=dict(endpoint_set.labels),
        ),
        subsets=[
            client.V1EndpointSubset(
                addresses=[client.V1EndpointAddress(ip=ip) for ip in endpoint_set.addresses],
                ports=[client.CoreV1EndpointPort(port=port) for port in endpoint_set.ports],
            ),
        ],
    )


class EndpointsHandler(BaseHandler):
    """Keeps the master Endpoints pointed at the control plane instance."""

    def __init__(self) -> None:
        super().__init__("endpoints")

    def get_current_state(self, ctx: ControllerContext, obj: CustomObject) -> EndpointSet | None:
        self.log_debug(obj, "looking for master endpoints")
        try:
            endpoints = ctx.clients.k8s.read_endpoints(obj.cluster_id, MASTER_ENDPOINTS_NAME)
        except Exception as e:
            if is_not_found(e):
                self.log_debug(obj, "did not find master endpoints")
                return None
            raise

        self.log_debug(obj, "found master endpoints")
        return from_v1_endpoints(endpoints)

    def get_desired_state(self, ctx: ControllerContext, obj: CustomObject) -> EndpointSet | None:
        if obj.deleting:
            return None

        instance_name = key.master_instance_name(obj)
        instance = ctx.clients.tenant_cluster_aws.find_instance(instance_name)
        if instance is None or not instance.get("PrivateIpAddress"):
            # The master instance is shut down while it is being replaced.
            # The endpoints of the previous instance stay in place and are
            # corrected on the next resync once the new instance is up.
            self.cancel(ctx, obj, f"master instance {instance_name} not found")
            return None

        return EndpointSet(
            name=MASTER_ENDPOINTS_NAME,
            namespace=obj.cluster_id,
            addresses=(instance["PrivateIpAddress"],),
            ports=(ctx.config.api_port,),
            labels=key.endpoints_labels(obj),
        )

    def new_delta(self, obj: CustomObject, current: EndpointSet | None, desired: EndpointSet | None) -> Delta:
        if desired is None:
            if obj.deleting and current is not None:
                return Delta(delete=current)
            return Delta()
        if current is None:
            return Delta(create=desired)
        if current != desired:
            return Delta(update=desired)
        return Delta()

    def apply_create(self, ctx: ControllerContext, obj: CustomObject, change: EndpointSet) -> None:
        self.log_info(obj, f"creating master endpoints for {', '.join(change.addresses)}", reason="EndpointsCreated")
        ctx.clients.k8s.create_endpoints(change.namespace, to_v1_endpoints(change))
        emit_endpoints_updated(obj.body, ", ".join(change.addresses))

    def apply_update(self, ctx: ControllerContext, obj: CustomObject, change: EndpointSet) -> None:
        self.log_info(obj, f"updating master endpoints to {', '.join(change.addresses)}", reason="EndpointsUpdated")
        ctx.clients.k8s.replace_endpoints(change.namespace, change.name, to_v1_endpoints(change))
        emit_endpoints_updated(obj.body, ", ".join(change.addresses))

    def apply_delete(self, ctx: ControllerContext, obj: CustomObject, change: EndpointSet) -> None:
        self.log_info(obj, "deleting master endpoints", reason="EndpointsDeleted")
        try:
            ctx.clients.k8s.delete_endpoints(change.namespace, change.name)
        except Exception as e:
            if not is_not_found(e):
                raise
            self.log_debug(obj, "master endpoints already deleted")
