"""Utility functions for the Tenant Cluster Operator."""

from .conditions import (
    set_ready_condition,
    set_reconcile_failed_condition,
    update_condition,
)
from .context import (
    get_context_dict,
    get_correlation_id,
    new_correlation_id,
    with_correlation_id,
)
from .errors import sanitize_error_message, sanitize_exception
from .events import emit_event
from .rate_limit import rate_limit_aws, rate_limit_k8s

__all__ = [
    "update_condition",
    "set_ready_condition",
    "set_reconcile_failed_condition",
    "emit_event",
    "sanitize_error_message",
    "sanitize_exception",
    "rate_limit_k8s",
    "rate_limit_aws",
    "new_correlation_id",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
