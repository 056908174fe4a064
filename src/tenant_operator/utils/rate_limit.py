"""Rate limiting utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_AWS_RATE_LIMIT_PER_SECOND = float(os.getenv("AWS_RATE_LIMIT_PER_SECOND", "5.0"))


class _Throttle:
    """Minimum interval between calls, shared by all worker threads."""

    def __init__(self, per_second: float) -> None:
        self.min_interval = 1.0 / per_second
        self.last_call_time = 0.0
        self.lock = threading.Lock()

    def wait(self) -> None:
        with self.lock:
            elapsed = time.time() - self.last_call_time
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self.last_call_time = time.time()


_k8s_throttle = _Throttle(_K8S_RATE_LIMIT_PER_SECOND)
_aws_throttle = _Throttle(_AWS_RATE_LIMIT_PER_SECOND)


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _k8s_throttle.wait()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_aws(func: _F) -> _F:
    """Decorator to rate limit AWS API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _aws_throttle.wait()
        return func(*args, **kwargs)

    return wrapper  # type: ignore
