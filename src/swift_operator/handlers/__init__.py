"""Handlers for SwiftStorage resources."""

from .applier import ApplyOutcome, ApplyResult, StatefulSetApplier
from .registrar import OwnershipRegistrar, build_owner_reference
from .swift_storage import SwiftStorageReconciler

__all__ = [
    "ApplyOutcome",
    "ApplyResult",
    "StatefulSetApplier",
    "OwnershipRegistrar",
    "build_owner_reference",
    "SwiftStorageReconciler",
]
