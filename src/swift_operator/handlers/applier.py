"""Applies a synthesized StatefulSet against the live cluster state."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .. import metrics
from ..constants import KIND_STATEFUL_SET, KIND_SWIFT_STORAGE
from ..models import TargetSpec
from ..services.kube.base import ClusterApi
from ..tracing import add_span_attribute
from ..utils.diff import build_managed_patch, immutable_drift
from ..utils.errors import ConflictError, NotFoundError, OperatorError
from .base import BaseHandler
from .registrar import build_owner_reference


class ApplyOutcome(str, Enum):
    """Result of comparing and applying a target StatefulSet."""

    CREATED = "created"
    UNCHANGED = "unchanged"
    PATCHED = "patched"
    RETRY = "retry"
    ERROR = "error"


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of one apply, with the patch sent and the object observed."""

    outcome: ApplyOutcome
    error: Exception | None = None
    patch: dict[str, Any] | None = None
    live: dict[str, Any] | None = None


class StatefulSetApplier(BaseHandler):
    """Creates or merge-patches the StatefulSet owned by a SwiftStorage."""

    def __init__(self, api: ClusterApi):
        """Initialize the applier.

        Args:
            api: Cluster API used for reads and writes
        """
        super().__init__(KIND_STATEFUL_SET)
        self.api = api

    def _finish(self, result: ApplyResult) -> ApplyResult:
        metrics.apply_outcome_total.labels(outcome=result.outcome.value).inc()
        add_span_attribute("apply.outcome", result.outcome.value)
        return result

    def apply(self, target: TargetSpec, owner: dict[str, Any]) -> ApplyResult:
        """Drive the live StatefulSet towards ``target``.

        Only the managed fields are compared and patched. Conflicts are
        reported as RETRY; every other API failure is returned unmodified
        with an ERROR outcome.

        Args:
            target: Synthesized StatefulSet
            owner: The owning SwiftStorage object

        Returns:
            Apply result
        """
        meta = {"name": target.name, "namespace": target.namespace}

        try:
            live = self.api.get_stateful_set(target.namespace, target.name)
        except NotFoundError:
            return self._create(target, owner, meta)
        except OperatorError as e:
            self.log_error(meta, "Failed to read StatefulSet", error=e, reason="ReadFailed")
            return self._finish(ApplyResult(ApplyOutcome.ERROR, error=e))

        drifted = immutable_drift(target.manifest, live)
        if drifted:
            metrics.drift_detected_total.labels(
                kind=KIND_SWIFT_STORAGE, resource_type=f"{KIND_STATEFUL_SET}Immutable"
            ).inc()
            self.log_warning(
                meta,
                "Immutable StatefulSet fields differ from the desired state and are left as is",
                event="drift",
                reason="ImmutableDrift",
                fields=drifted,
            )

        patch = build_managed_patch(target.manifest, live)
        if patch is None:
            return self._finish(ApplyResult(ApplyOutcome.UNCHANGED, live=live))

        metrics.drift_detected_total.labels(kind=KIND_SWIFT_STORAGE, resource_type=KIND_STATEFUL_SET).inc()
        resource_version = (live.get("metadata") or {}).get("resourceVersion")
        if resource_version:
            patch.setdefault("metadata", {})["resourceVersion"] = resource_version

        try:
            patched = self.api.patch_stateful_set(target.namespace, target.name, patch)
        except ConflictError as e:
            self.log_info(meta, "StatefulSet changed concurrently, retrying", event="conflict", reason="Conflict")
            return self._finish(ApplyResult(ApplyOutcome.RETRY, error=e, patch=patch, live=live))
        except OperatorError as e:
            self.log_error(meta, "Failed to patch StatefulSet", error=e, reason="PatchFailed")
            return self._finish(ApplyResult(ApplyOutcome.ERROR, error=e, patch=patch, live=live))

        self.log_info(meta, "StatefulSet patched", event="patch", reason="Patched")
        return self._finish(ApplyResult(ApplyOutcome.PATCHED, patch=patch, live=patched))

    def _create(self, target: TargetSpec, owner: dict[str, Any], meta: dict[str, Any]) -> ApplyResult:
        body = copy.deepcopy(target.manifest)
        body["metadata"]["ownerReferences"] = [build_owner_reference(owner)]

        try:
            created = self.api.create_stateful_set(target.namespace, body)
        except ConflictError as e:
            self.log_info(meta, "StatefulSet created concurrently, retrying", event="conflict", reason="Conflict")
            return self._finish(ApplyResult(ApplyOutcome.RETRY, error=e))
        except OperatorError as e:
            self.log_error(meta, "Failed to create StatefulSet", error=e, reason="CreateFailed")
            return self._finish(ApplyResult(ApplyOutcome.ERROR, error=e))

        self.log_info(meta, "StatefulSet created", event="create", reason="Created")
        return self._finish(ApplyResult(ApplyOutcome.CREATED, live=created))
