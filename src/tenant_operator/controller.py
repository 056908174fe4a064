"""Runs reconciliation passes for custom objects delivered by kopf."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import kopf

from . import metrics, pipeline
from .classifier import is_transient
from .config import OperatorConfig
from .constants import CONTROLLER_NAME
from .controllercontext import new_controller_context
from .errors import FatalError
from .key import to_custom_object
from .logging import log_resource_event
from .pipeline import PassOutcome, PassResult
from .registry import PipelineRegistry
from .services.aws.client import AWSClients
from .services.k8s.client import K8sClients
from .tracing import add_span_attribute, trace_span
from .utils.conditions import set_ready_condition, set_reconcile_failed_condition
from .utils.context import new_correlation_id, with_correlation_id
from .utils.errors import sanitize_exception
from .utils.events import emit_reconcile_cancelled, emit_reconcile_failed

logger = logging.getLogger(__name__)


@dataclass
class Controller:
    """Long-lived state shared by all passes of the operator process."""

    config: OperatorConfig
    control_plane_aws: AWSClients
    k8s: K8sClients
    registries: dict[str, PipelineRegistry] = field(default_factory=dict)

    def run_pass(self, body: dict[str, Any], patch: Any, deleting: bool | None = None) -> PassResult:
        """Run one pass over a custom object body.

        Args:
            body: Custom object body as delivered by kopf
            patch: kopf patch receiving status conditions
            deleting: Force a teardown pass (defaults to the deletionTimestamp)

        Returns:
            How the pass ended

        Raises:
            kopf.PermanentError: If the pass failed with a fatal error
        """
        meta = body.get("metadata") or {}
        kind = body.get("kind", "unknown")
        name = meta.get("name", "unknown")
        namespace = meta.get("namespace", "default")

        with with_correlation_id(new_correlation_id()):
            self._log(body, "reconcile_started", "ReconcileStarted", f"Starting pass over {kind} {namespace}/{name}")
            start_time = time.time()
            try:
                with trace_span(f"reconcile.{kind}", kind=kind, attributes={"resource.name": name}):
                    result = self._run(body, deleting)
                    add_span_attribute("reconcile.outcome", result.outcome.value)
            except Exception as e:
                if is_transient(e):
                    result = PassResult(PassOutcome.TRANSIENT, error=e)
                else:
                    self._fail(body, patch, e)
                    metrics.reconcile_total.labels(kind=kind, result="failed").inc()
                    raise kopf.PermanentError(sanitize_exception(e)) from e
            finally:
                metrics.reconcile_duration_seconds.labels(kind=kind).observe(time.time() - start_time)

            metrics.reconcile_total.labels(kind=kind, result=result.outcome.value).inc()
            self._report(body, patch, result)
            return result

    def _run(self, body: dict[str, Any], deleting: bool | None) -> PassResult:
        obj = to_custom_object(body, self.config, deleting=deleting)
        registry = self.registries.get(obj.kind)
        if registry is None:
            raise FatalError(f"no pipelines registered for kind {obj.kind}")

        handlers = registry.resolve(obj.version)
        if obj.deleting:
            # Dependents are torn down before what they depend on.
            handlers = list(reversed(handlers))

        ctx = new_controller_context(self.config, obj, self.control_plane_aws, self.k8s)
        return pipeline.run(ctx, handlers, obj)

    def _fail(self, body: dict[str, Any], patch: Any, error: BaseException) -> None:
        message = sanitize_exception(error)
        metrics.error_total.labels(kind=body.get("kind", "unknown"), error_type=type(error).__name__).inc()
        self._log(body, "reconcile_failed", "ReconcileFailed", f"Pass failed: {message}", level=logging.ERROR)
        emit_reconcile_failed(body, message)

        generation = (body.get("metadata") or {}).get("generation")
        conditions = (body.get("status") or {}).get("conditions", [])
        conditions = set_ready_condition(conditions, False, message, generation)
        conditions = set_reconcile_failed_condition(conditions, True, message, generation)
        patch.status["conditions"] = conditions

    def _report(self, body: dict[str, Any], patch: Any, result: PassResult) -> None:
        generation = (body.get("metadata") or {}).get("generation")
        conditions = (body.get("status") or {}).get("conditions", [])

        if result.outcome is PassOutcome.SUCCEEDED:
            conditions = set_ready_condition(conditions, True, "Infrastructure reconciled", generation)
            self._log(body, "reconcile_succeeded", "Reconciled", "Pass succeeded")
        elif result.outcome is PassOutcome.CANCELLED:
            message = f"Waiting for {result.handler} dependencies"
            conditions = set_ready_condition(conditions, False, message, generation)
            self._log(body, "reconcile_cancelled", "ReconcileCancelled", message)
            emit_reconcile_cancelled(body, result.handler or "unknown")
        else:
            message = f"Transient error, retrying on next resync: {sanitize_exception(result.error)}"
            conditions = set_ready_condition(conditions, False, message, generation)
            self._log(body, "reconcile_transient", "TransientError", message)

        conditions = set_reconcile_failed_condition(conditions, False, "", generation)
        patch.status["conditions"] = conditions

    def _log(self, body: dict[str, Any], event: str, reason: str, message: str, level: int = logging.INFO) -> None:
        meta = body.get("metadata") or {}
        log_resource_event(
            logger,
            controller=CONTROLLER_NAME,
            resource_kind=body.get("kind", "unknown"),
            resource_name=meta.get("name", "unknown"),
            namespace=meta.get("namespace", "default"),
            uid=meta.get("uid", ""),
            event=event,
            reason=reason,
            message=message,
            level=level,
        )
