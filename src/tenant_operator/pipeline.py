"""Reconciliation pipeline running handlers over one custom object."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Sequence

from . import metrics
from .classifier import is_transient
from .controllercontext import ControllerContext
from .handlers.base import Handler, has_changes
from .key import CustomObject
from .tracing import trace_span
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)


class PassOutcome(enum.Enum):
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class PassResult:
    """How a pass ended, and which handler ended it early."""

    outcome: PassOutcome
    handler: str | None = None
    error: BaseException | None = None


class _Transient(Exception):
    """Carries a classified transient error out of a handler step."""

    def __init__(self, error: BaseException) -> None:
        super().__init__(str(error))
        self.error = error


def _step(handler: Handler, operation: str, func, *args):
    try:
        return func(*args)
    except Exception as e:
        if is_transient(e):
            raise _Transient(e) from e
        logger.error(f"Handler {handler.name} failed to {operation}: {sanitize_exception(e)}")
        raise


def _apply(ctx: ControllerContext, handler: Handler, obj: CustomObject, operation: str, change) -> None:
    if not has_changes(change):
        return
    func = getattr(handler, f"apply_{operation}")
    try:
        _step(handler, operation, func, ctx, obj, change)
    except Exception:
        metrics.handler_operations_total.labels(handler=handler.name, operation=operation, result="error").inc()
        raise
    metrics.handler_operations_total.labels(handler=handler.name, operation=operation, result="success").inc()


def _cancelled(ctx: ControllerContext, obj: CustomObject) -> PassResult:
    handler = ctx.cancellation.cancelled_by
    logger.info(f"Pass over {obj.kind} {obj.namespace}/{obj.name} cancelled by {handler} handler")
    return PassResult(PassOutcome.CANCELLED, handler=handler)


def run_handler(ctx: ControllerContext, handler: Handler, obj: CustomObject) -> None:
    """Converge one handler's infrastructure, at most one apply sequence."""
    current = _step(handler, "get current state", handler.get_current_state, ctx, obj)
    if ctx.cancellation.is_cancelled:
        return

    desired = _step(handler, "get desired state", handler.get_desired_state, ctx, obj)
    if ctx.cancellation.is_cancelled:
        return

    delta = handler.new_delta(obj, current, desired)
    if delta.is_empty():
        logger.debug(f"Handler {handler.name} found {obj.kind} {obj.namespace}/{obj.name} up to date")
        return
    _apply(ctx, handler, obj, "create", delta.create)
    _apply(ctx, handler, obj, "update", delta.update)
    _apply(ctx, handler, obj, "delete", delta.delete)


def run(ctx: ControllerContext, handlers: Sequence[Handler], obj: CustomObject) -> PassResult:
    """Run one reconciliation pass.

    Handlers run strictly in order. A handler that finds a dependency not
    ready sets the cancellation flag, which ends the pass successfully and
    skips the remaining handlers. Transient errors end the pass without
    raising; the next resync retries it.

    Raises:
        Exception: Any error not classified as transient, unchanged
    """
    for handler in handlers:
        if ctx.cancellation.is_cancelled:
            return _cancelled(ctx, obj)

        with trace_span(f"handler.{handler.name}", kind=obj.kind, attributes={"resource.name": obj.name}):
            try:
                run_handler(ctx, handler, obj)
            except _Transient as t:
                metrics.transient_errors_total.labels(handler=handler.name).inc()
                logger.info(
                    f"Pass over {obj.kind} {obj.namespace}/{obj.name} stopped by transient error in "
                    f"{handler.name} handler: {sanitize_exception(t.error)}"
                )
                return PassResult(PassOutcome.TRANSIENT, handler=handler.name, error=t.error)

    if ctx.cancellation.is_cancelled:
        return _cancelled(ctx, obj)
    return PassResult(PassOutcome.SUCCEEDED)
