"""Client-side throttling for Kubernetes API calls."""

from __future__ import annotations

import os
import time
from functools import wraps
from typing import Any, Callable, TypeVar

_F = TypeVar("_F", bound=Callable[..., Any])

_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))

# Track last call time
_k8s_last_call_time: float = 0.0


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Enforces a minimum interval between calls to avoid overwhelming the
    Kubernetes API server.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _k8s_last_call_time
        current_time = time.time()
        min_interval = 1.0 / _K8S_RATE_LIMIT_PER_SECOND

        time_since_last_call = current_time - _k8s_last_call_time
        if time_since_last_call < min_interval:
            time.sleep(min_interval - time_since_last_call)

        _k8s_last_call_time = time.time()
        return func(*args, **kwargs)

    return wrapper  # type: ignore
