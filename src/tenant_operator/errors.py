"""Exception hierarchy for reconciliation passes.

Errors fall into two families. ``FatalError`` aborts a pass and is surfaced to
the scheduler. ``TransientError`` aborts a pass silently; the next resync
retries it. Transport errors raised by ``boto3`` or the ``kubernetes`` client
are neither and are classified by :mod:`tenant_operator.classifier`.
"""

from __future__ import annotations

from typing import Sequence


class OperatorError(Exception):
    """Base class for all operator errors."""


class FatalError(OperatorError):
    """A pass must abort and the failure must be surfaced."""


class TransientError(OperatorError):
    """A pass must abort and be retried on the next resync."""


class InvalidConfigError(FatalError):
    """Raised when operator configuration validation fails."""


class InvalidCustomObjectError(FatalError):
    """Raised when a custom object body is malformed."""


class UnknownVersionError(FatalError):
    """Raised when no pipeline is registered for a version."""

    def __init__(self, version: str, known: Sequence[str] = ()) -> None:
        message = f"no pipeline registered for version {version!r}"
        if known:
            message += f" (known versions: {', '.join(known)})"
        super().__init__(message)
        self.version = version
        self.known = tuple(known)


class NoFreeRangeError(FatalError):
    """Raised when a subnet pool has no free range of the requested size."""


class APINotAvailableError(TransientError):
    """The tenant cluster API is not available yet."""

    def __init__(self, message: str = "API not available") -> None:
        super().__init__(message)


class AllocationConflictError(TransientError):
    """An allocation commit lost an optimistic concurrency race."""
