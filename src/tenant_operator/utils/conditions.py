"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_READY, COND_RECONCILE_FAILED


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()
    conditions = [dict(cond) for cond in conditions]

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }
    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    for idx, existing in enumerate(conditions):
        if existing.get("type") == condition_type:
            # Only move lastTransitionTime when the status flips
            if existing.get("status") == status:
                new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
            conditions[idx] = new_condition
            break
    else:
        conditions.append(new_condition)

    return conditions


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    return update_condition(
        conditions,
        COND_READY,
        "True" if status else "False",
        "Reconciled" if status else "NotReconciled",
        message,
        observed_generation,
    )


def set_reconcile_failed_condition(
    conditions: list[dict[str, Any]],
    failed: bool,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the ReconcileFailed condition."""
    return update_condition(
        conditions,
        COND_RECONCILE_FAILED,
        "True" if failed else "False",
        "FatalError" if failed else "NoError",
        message,
        observed_generation,
    )
