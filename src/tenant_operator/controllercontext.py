"""Per-pass controller context and cooperative cancellation."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from .config import OperatorConfig
from .key import CustomObject
from .services.aws.client import AWSClients
from .services.k8s.client import K8sClients


class CancellationSignal:
    """Pass-scoped flag any handler may raise to stop the pipeline.

    The flag only ever moves from unset to set. The handler that set it is
    remembered for logging and metrics.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.cancelled_by: str | None = None

    def cancel(self, handler: str) -> None:
        if not self._event.is_set():
            self.cancelled_by = handler
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ContextClients:
    """Transport clients of one pass."""

    control_plane_aws: AWSClients
    tenant_cluster_aws: AWSClients
    k8s: K8sClients


@dataclass
class ControllerContext:
    """Everything a handler needs during one reconciliation pass.

    Built once before the pass and handed to every handler. Clients are
    read-only; ``status`` holds scratch values shared between handlers of the
    same pass, such as the tenant account ID.
    """

    config: OperatorConfig
    clients: ContextClients
    cancellation: CancellationSignal = field(default_factory=CancellationSignal)
    status: dict[str, Any] = field(default_factory=dict)

    def tenant_account_id(self) -> str:
        """Return the tenant account ID, looking it up once per pass."""
        if "account_id" not in self.status:
            self.status["account_id"] = self.clients.tenant_cluster_aws.get_account_id()
        return self.status["account_id"]


def new_controller_context(
    config: OperatorConfig,
    obj: CustomObject,
    control_plane_aws: AWSClients,
    k8s: K8sClients,
) -> ControllerContext:
    """Build the context for one pass over one custom object.

    Tenant cluster clients assume the role named in the object's spec. Objects
    without a role share the control plane account.
    """
    tenant_cluster_aws = control_plane_aws
    if obj.role_arn:
        tenant_cluster_aws = control_plane_aws.assume_role(
            obj.role_arn, session_name=f"tenant-operator-{obj.cluster_id}", region=obj.region,
        )
    elif obj.region != control_plane_aws.region:
        tenant_cluster_aws = AWSClients(obj.region)

    return ControllerContext(
        config=config,
        clients=ContextClients(
            control_plane_aws=control_plane_aws,
            tenant_cluster_aws=tenant_cluster_aws,
            k8s=k8s,
        ),
    )
