"""Main entry point for the Tenant Cluster Operator.

Run with ``kopf run --all-namespaces -m tenant_operator.main``.
"""

from __future__ import annotations

import os
from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from .config import OperatorConfig
from .constants import API_GROUP_VERSION, KIND_CLUSTER, KIND_MACHINE_DEPLOYMENT
from .controller import Controller
from .pipeline import PassOutcome
from .registry import cluster_registry, machine_deployment_registry
from .services.aws.client import AWSClients
from .services.k8s.client import K8sClients, load_config
from .tracing import initialize_tracing

# Timer intervals are fixed when handlers register, before startup runs.
RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "300"))


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    config = OperatorConfig.from_env()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    health.start_health_server(config.metrics_port)
    initialize_tracing()

    load_config()
    memo.controller = Controller(
        config=config,
        control_plane_aws=AWSClients(config.region),
        k8s=K8sClients(),
        registries={
            KIND_CLUSTER: cluster_registry(),
            KIND_MACHINE_DEPLOYMENT: machine_deployment_registry(),
        },
    )
    health.set_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    health.set_ready(False)


@kopf.timer(API_GROUP_VERSION, KIND_CLUSTER, interval=RESYNC_INTERVAL_SECONDS)
def reconcile_cluster(body: kopf.Body, patch: kopf.Patch, memo: kopf.Memo, **_: Any) -> None:
    """Converge a Cluster's infrastructure on every resync."""
    memo.controller.run_pass(dict(body), patch)


@kopf.timer(API_GROUP_VERSION, KIND_MACHINE_DEPLOYMENT, interval=RESYNC_INTERVAL_SECONDS)
def reconcile_machine_deployment(body: kopf.Body, patch: kopf.Patch, memo: kopf.Memo, **_: Any) -> None:
    """Allocate a node pool subnet for a MachineDeployment."""
    memo.controller.run_pass(dict(body), patch)


@kopf.on.delete(API_GROUP_VERSION, KIND_CLUSTER)
def teardown_cluster(body: kopf.Body, patch: kopf.Patch, memo: kopf.Memo, **_: Any) -> None:
    """Tear down a Cluster's infrastructure before releasing the finalizer.

    Teardown passes that did not finish keep the finalizer in place and are
    retried after the resync interval. Fatal errors included, as a released
    finalizer would leak the cluster's infrastructure.
    """
    try:
        result = memo.controller.run_pass(dict(body), patch, deleting=True)
    except kopf.PermanentError as e:
        raise kopf.TemporaryError(f"teardown failed: {e}", delay=RESYNC_INTERVAL_SECONDS) from e
    if result.outcome is not PassOutcome.SUCCEEDED:
        raise kopf.TemporaryError(
            f"teardown {result.outcome.value} in {result.handler} handler", delay=RESYNC_INTERVAL_SECONDS,
        )
