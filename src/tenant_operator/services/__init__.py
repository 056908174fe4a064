"""Transport clients consumed by infrastructure handlers."""

from __future__ import annotations

import time
from typing import Any, Callable

from .. import metrics
from ..utils.rate_limit import rate_limit_aws, rate_limit_k8s

_LIMITERS = {
    "aws": rate_limit_aws,
    "k8s": rate_limit_k8s,
}


def call_api(api_type: str, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Invoke a transport call with rate limiting and metrics.

    Errors are recorded and re-raised unchanged. Retrying is left to the
    next reconciliation pass.
    """
    start_time = time.time()
    try:
        result = _LIMITERS[api_type](func)(*args, **kwargs)
        metrics.api_call_total.labels(api_type=api_type, operation=operation, result="success").inc()
        return result
    except Exception:
        metrics.api_call_total.labels(api_type=api_type, operation=operation, result="error").inc()
        raise
    finally:
        duration = time.time() - start_time
        metrics.api_call_duration_seconds.labels(api_type=api_type, operation=operation).observe(duration)
