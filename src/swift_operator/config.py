"""Runtime configuration for the Swift Operator."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class OperatorConfig:
    """Operator settings read once at startup."""

    metrics_port: int = 8080
    request_timeout: float = 30.0
    max_workers: int = 4
    min_retry_delay: float = 1.0
    max_retry_delay: float = 60.0
    retry_backoff: float = 2.0
    conflict_requeue_delay: float = 0.0
    drift_check_interval: float = 300.0
    watch_namespace: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> OperatorConfig:
        """Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Populated configuration

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        return cls(
            metrics_port=_get_int(env, "METRICS_PORT", cls.metrics_port),
            request_timeout=_get_float(env, "K8S_REQUEST_TIMEOUT_SECONDS", cls.request_timeout),
            max_workers=_get_int(env, "MAX_WORKERS", cls.max_workers),
            min_retry_delay=_get_float(env, "RETRY_MIN_DELAY_SECONDS", cls.min_retry_delay),
            max_retry_delay=_get_float(env, "RETRY_MAX_DELAY_SECONDS", cls.max_retry_delay),
            retry_backoff=_get_float(env, "RETRY_BACKOFF", cls.retry_backoff),
            conflict_requeue_delay=_get_float(
                env, "CONFLICT_REQUEUE_DELAY_SECONDS", cls.conflict_requeue_delay
            ),
            drift_check_interval=_get_float(
                env, "DRIFT_CHECK_INTERVAL_SECONDS", cls.drift_check_interval
            ),
            watch_namespace=env.get("WATCH_NAMESPACE", cls.watch_namespace),
        )

    def backoff_delay(self, retry: int) -> float:
        """Exponential backoff delay for the given retry attempt.

        Exponential backoff: 1s, 2s, 4s, 8s, 16s, 32s, 60s (max) with defaults.
        """
        delay = self.min_retry_delay * (self.retry_backoff ** max(retry, 0))
        return min(delay, self.max_retry_delay)
