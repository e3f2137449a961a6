"""Utility functions for the Swift Operator."""

from .conditions import (
    set_apply_failed_condition,
    set_ready_condition,
    set_spec_invalid_condition,
    update_condition,
)
from .context import get_context_dict, get_correlation_id, with_correlation_id
from .errors import (
    ConflictError,
    NotFoundError,
    OperatorError,
    TransportError,
    ValidationError,
    sanitize_exception,
)
from .events import emit_event
from .rate_limit import rate_limit_k8s

__all__ = [
    "update_condition",
    "set_ready_condition",
    "set_apply_failed_condition",
    "set_spec_invalid_condition",
    "emit_event",
    "rate_limit_k8s",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "OperatorError",
    "NotFoundError",
    "TransportError",
    "ConflictError",
    "ValidationError",
    "sanitize_exception",
]
