"""Handler contract and shared functionality for infrastructure handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, TypeVar

from .. import metrics
from ..constants import CONTROLLER_NAME
from ..controllercontext import ControllerContext
from ..key import CustomObject
from ..logging import log_resource_event
from ..utils.errors import sanitize_exception

_V = TypeVar("_V")


@dataclass(frozen=True)
class Delta:
    """Changes that converge current state toward desired state.

    Each field holds handler specific change data, or None when there is
    nothing to do for that operation.
    """

    create: Any = None
    update: Any = None
    delete: Any = None

    def is_empty(self) -> bool:
        return not any(has_changes(change) for change in (self.create, self.update, self.delete))


def has_changes(change: Any) -> bool:
    """Check whether a change carries work, treating empty containers as none."""
    if change is None:
        return False
    if isinstance(change, (dict, list, tuple, set, frozenset)):
        return len(change) > 0
    return True


def diff_maps(
    current: Mapping[str, _V],
    desired: Mapping[str, _V],
    equal: Callable[[_V, _V], bool] = lambda a, b: a == b,
) -> Delta:
    """Compute a keyed delta between two state maps.

    Keys only in ``desired`` are created, keys only in ``current`` are
    deleted, keys in both whose values differ are updated with the desired
    value. Neither input is modified.
    """
    create = {k: v for k, v in desired.items() if k not in current}
    update = {k: v for k, v in desired.items() if k in current and not equal(current[k], v)}
    delete = {k: v for k, v in current.items() if k not in desired}
    return Delta(create=create, update=update, delete=delete)


class Handler(Protocol):
    """Capability set every infrastructure handler provides to the pipeline."""

    name: str

    def get_current_state(self, ctx: ControllerContext, obj: CustomObject) -> Any:
        """Observe the infrastructure as it is."""
        ...

    def get_desired_state(self, ctx: ControllerContext, obj: CustomObject) -> Any:
        """Compute the infrastructure as the custom object declares it."""
        ...

    def new_delta(self, obj: CustomObject, current: Any, desired: Any) -> Delta:
        """Compute create, update and delete changes."""
        ...

    def apply_create(self, ctx: ControllerContext, obj: CustomObject, change: Any) -> None:
        ...

    def apply_update(self, ctx: ControllerContext, obj: CustomObject, change: Any) -> None:
        ...

    def apply_delete(self, ctx: ControllerContext, obj: CustomObject, change: Any) -> None:
        ...


class BaseHandler:
    """Base class for infrastructure handlers with common functionality."""

    def __init__(self, name: str):
        """Initialize base handler.

        Args:
            name: Handler name used in logs, metrics and traces (e.g., "endpoints")
        """
        self.name = name
        self.logger = logging.getLogger(__name__)

    def new_delta(self, obj: CustomObject, current: Any, desired: Any) -> Delta:
        return Delta()

    def apply_create(self, ctx: ControllerContext, obj: CustomObject, change: Any) -> None:
        raise NotImplementedError(f"{self.name} handler does not create")

    def apply_update(self, ctx: ControllerContext, obj: CustomObject, change: Any) -> None:
        raise NotImplementedError(f"{self.name} handler does not update")

    def apply_delete(self, ctx: ControllerContext, obj: CustomObject, change: Any) -> None:
        raise NotImplementedError(f"{self.name} handler does not delete")

    def cancel(self, ctx: ControllerContext, obj: CustomObject, message: str) -> None:
        """Cancel the rest of the pass because a dependency is not ready.

        Args:
            ctx: Controller context of the pass
            obj: Custom object being reconciled
            message: Why the handler cannot proceed
        """
        self.log_debug(obj, message, reason="DependencyNotReady")
        ctx.cancellation.cancel(self.name)
        metrics.handler_cancellations_total.labels(handler=self.name).inc()
        self.log_debug(obj, "canceling resource", reason="Cancelled")

    def _log(
        self,
        level: int,
        obj: CustomObject,
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=obj.kind,
            resource_name=obj.name,
            namespace=obj.namespace,
            uid=obj.uid,
            event=event,
            reason=reason,
            message=message,
            level=level,
            handler=self.name,
            **kwargs,
        )

    def log_debug(self, obj: CustomObject, message: str, reason: str = "Debug", **kwargs: Any) -> None:
        self._log(logging.DEBUG, obj, message, "debug", reason, **kwargs)

    def log_info(self, obj: CustomObject, message: str, reason: str = "Info", **kwargs: Any) -> None:
        """Log an info-level structured log message.

        Args:
            obj: Custom object being reconciled
            message: Log message
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, obj, message, "info", reason, **kwargs)

    def log_warning(self, obj: CustomObject, message: str, reason: str = "Warning", **kwargs: Any) -> None:
        self._log(logging.WARNING, obj, message, "warning", reason, **kwargs)

    def log_error(
        self,
        obj: CustomObject,
        message: str,
        error: BaseException | None = None,
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            obj: Custom object being reconciled
            message: Log message
            error: Optional exception to include sanitized error details
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, obj, message, "error", reason, **kwargs)
