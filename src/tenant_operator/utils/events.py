"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_ENDPOINTS_UPDATED,
    EVENT_REASON_RECONCILE_CANCELLED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_STACK_CREATED,
    EVENT_REASON_STACK_DELETED,
    EVENT_REASON_STACK_UPDATED,
    EVENT_REASON_SUBNET_ALLOCATED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body the event refers to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_reconcile_cancelled(body: dict[str, Any], handler: str) -> None:
    """Emit reconcile cancelled event."""
    emit_event(body, EVENT_REASON_RECONCILE_CANCELLED, f"Reconciliation cancelled by {handler}")


def emit_subnet_allocated(body: dict[str, Any], subnet: str) -> None:
    """Emit subnet allocated event."""
    emit_event(body, EVENT_REASON_SUBNET_ALLOCATED, f"Subnet {subnet} allocated")


def emit_stack_created(body: dict[str, Any], stack_name: str) -> None:
    emit_event(body, EVENT_REASON_STACK_CREATED, f"Stack {stack_name} created")


def emit_stack_updated(body: dict[str, Any], stack_name: str) -> None:
    emit_event(body, EVENT_REASON_STACK_UPDATED, f"Stack {stack_name} updated")


def emit_stack_deleted(body: dict[str, Any], stack_name: str) -> None:
    emit_event(body, EVENT_REASON_STACK_DELETED, f"Stack {stack_name} deleted")


def emit_endpoints_updated(body: dict[str, Any], address: str) -> None:
    """Emit endpoints updated event."""
    emit_event(body, EVENT_REASON_ENDPOINTS_UPDATED, f"Master endpoints point to {address}")
