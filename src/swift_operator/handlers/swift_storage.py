"""Reconciliation loop for SwiftStorage resources."""

from __future__ import annotations

import copy
from typing import Any

from ..builders.statefulset import synthesize
from ..config import OperatorConfig
from ..constants import ANNOTATION_RECONCILE_TRIGGER, KIND_SWIFT_STORAGE
from ..models import DesiredState
from ..scheduling import Action, SchedulingDirective
from ..services.kube.base import ClusterApi
from ..tracing import add_span_attribute, trace_span
from ..utils.conditions import (
    set_apply_failed_condition,
    set_ready_condition,
    set_spec_invalid_condition,
)
from ..utils.context import with_correlation_id
from ..utils.errors import NotFoundError, OperatorError, ValidationError, sanitize_exception
from ..utils.events import (
    emit_reconcile_failed,
    emit_reconcile_started,
    emit_stateful_set_created,
    emit_stateful_set_patched,
    emit_validate_failed,
)
from .applier import ApplyOutcome, ApplyResult, StatefulSetApplier
from .base import BaseHandler


class SwiftStorageReconciler(BaseHandler):
    """Runs reconciliation passes for SwiftStorage resources.

    Every pass refetches the SwiftStorage, synthesizes the StatefulSet,
    applies it and reports the result on the status subresource. Nothing
    is cached between passes.
    """

    def __init__(self, api: ClusterApi, config: OperatorConfig | None = None):
        """Initialize the reconciler.

        Args:
            api: Cluster API
            config: Operator configuration
        """
        super().__init__(KIND_SWIFT_STORAGE)
        self.api = api
        self.config = config or OperatorConfig()
        self.applier = StatefulSetApplier(api)

    def reconcile(self, namespace: str, name: str) -> SchedulingDirective:
        """Run one reconciliation pass.

        Args:
            namespace: Namespace of the SwiftStorage
            name: Name of the SwiftStorage

        Returns:
            Scheduling directive for the work queue
        """
        meta = {"name": name, "namespace": namespace}
        with with_correlation_id():
            with trace_span(
                "reconcile_swift_storage",
                kind=KIND_SWIFT_STORAGE,
                attributes={"swiftstorage.name": name, "swiftstorage.namespace": namespace},
            ):
                directive = self.reconcile_with_metrics(meta, lambda: self._reconcile(namespace, name))
                add_span_attribute("reconcile.result", directive.result)
                return directive

    def request_pass(self, namespace: str, name: str, trigger: str) -> bool:
        """Ask kopf to run a pass for a SwiftStorage through its own handlers.

        The trigger annotation changes the object, so its update handler
        runs with kopf's per-object serialization and retry backoff.

        Args:
            namespace: Namespace of the SwiftStorage
            name: Name of the SwiftStorage
            trigger: Value recorded in the trigger annotation

        Returns:
            False if the SwiftStorage no longer exists

        Raises:
            OperatorError: If the annotation could not be written
        """
        meta = {"name": name, "namespace": namespace}
        try:
            self.api.annotate_swift_storage(namespace, name, {ANNOTATION_RECONCILE_TRIGGER: trigger})
        except NotFoundError:
            self.log_info(meta, "SwiftStorage not found, no pass requested", event="trigger", reason="NotFound")
            return False
        return True

    def _reconcile(self, namespace: str, name: str) -> SchedulingDirective:
        meta = {"name": name, "namespace": namespace}

        try:
            obj = self.api.get_swift_storage(namespace, name)
        except NotFoundError:
            self.log_info(meta, "SwiftStorage not found, nothing to do", event="reconcile", reason="NotFound")
            return SchedulingDirective.done()
        except OperatorError as e:
            self.record_error(e)
            self.log_error(meta, "Failed to fetch SwiftStorage", error=e, reason="FetchFailed")
            return SchedulingDirective.requeue_error(e)

        meta = obj.get("metadata") or meta
        if meta.get("deletionTimestamp"):
            self.log_info(meta, "SwiftStorage is being deleted, skipping", event="reconcile", reason="Deleting")
            return SchedulingDirective.done()

        emit_reconcile_started(obj)
        conditions = copy.deepcopy((obj.get("status") or {}).get("conditions") or [])

        try:
            desired = DesiredState.from_resource(obj)
        except ValidationError as e:
            return self._handle_spec_invalid(obj, conditions, e)

        with trace_span("synthesize_stateful_set", kind=KIND_SWIFT_STORAGE):
            target = synthesize(desired)

        with trace_span("apply_stateful_set", kind=KIND_SWIFT_STORAGE):
            result = self.applier.apply(target, obj)

        directive = self._directive_for(obj, result)
        if directive.action is Action.REQUEUE_AFTER:
            # Nothing was applied; the retried pass reports status
            return directive

        status = self._build_status(desired, result, conditions)
        return self._write_status(obj, status, directive)

    def _directive_for(self, obj: dict[str, Any], result: ApplyResult) -> SchedulingDirective:
        name = (obj.get("metadata") or {}).get("name", "unknown")

        if result.outcome is ApplyOutcome.CREATED:
            emit_stateful_set_created(obj, name)
            return SchedulingDirective.done()
        if result.outcome is ApplyOutcome.PATCHED:
            emit_stateful_set_patched(obj, name)
            return SchedulingDirective.done()
        if result.outcome is ApplyOutcome.UNCHANGED:
            return SchedulingDirective.done()
        if result.outcome is ApplyOutcome.RETRY:
            return SchedulingDirective.requeue_after(self.config.conflict_requeue_delay)

        error = result.error or OperatorError("StatefulSet apply failed")
        self.record_error(error)
        emit_reconcile_failed(obj, f"Reconciliation failed: {sanitize_exception(error)}")
        return SchedulingDirective.requeue_error(error)

    def _build_status(
        self,
        desired: DesiredState,
        result: ApplyResult,
        conditions: list[dict[str, Any]],
    ) -> dict[str, Any]:
        generation = desired.generation
        live_status = (result.live or {}).get("status") or {}
        ready_count = live_status.get("readyReplicas") or 0

        if result.outcome is ApplyOutcome.ERROR:
            message = sanitize_exception(result.error) if result.error else "StatefulSet apply failed"
            conditions = set_apply_failed_condition(conditions, True, message, generation)
            conditions = set_ready_condition(conditions, False, message, generation, reason="ApplyFailed")
            ready = False
        else:
            conditions = set_apply_failed_condition(conditions, False, "StatefulSet applied", generation)
            ready = ready_count >= desired.replicas
            message = f"{ready_count}/{desired.replicas} replicas ready"
            conditions = set_ready_condition(
                conditions, ready, message, generation, reason=None if ready else "Deploying"
            )

        conditions = set_spec_invalid_condition(conditions, False, "Spec is valid", generation)
        self.record_resource_status(ready)

        return {
            "observedGeneration": generation,
            "readyCount": ready_count,
            "conditions": conditions,
        }

    def _handle_spec_invalid(
        self,
        obj: dict[str, Any],
        conditions: list[dict[str, Any]],
        error: ValidationError,
    ) -> SchedulingDirective:
        meta = obj.get("metadata") or {}
        generation = meta.get("generation") or 0
        message = sanitize_exception(error)

        self.record_error(error)
        self.log_error(meta, "SwiftStorage spec is invalid", error=error, reason="SpecInvalid")
        emit_validate_failed(obj, message)

        conditions = set_spec_invalid_condition(conditions, True, message, generation)
        conditions = set_ready_condition(conditions, False, message, generation, reason="SpecInvalid")
        self.record_resource_status(False)

        status = {"observedGeneration": generation, "conditions": conditions}
        return self._write_status(obj, status, SchedulingDirective.requeue_error(error))

    def _write_status(
        self,
        obj: dict[str, Any],
        status: dict[str, Any],
        directive: SchedulingDirective,
    ) -> SchedulingDirective:
        meta = obj.get("metadata") or {}
        try:
            self.api.patch_swift_storage_status(meta.get("namespace", "default"), meta.get("name"), status)
        except NotFoundError:
            self.log_info(meta, "SwiftStorage deleted before status update", event="status", reason="NotFound")
        except OperatorError as e:
            self.record_error(e)
            self.log_error(meta, "Failed to update SwiftStorage status", error=e, reason="StatusUpdateFailed")
            if directive.action is not Action.REQUEUE_ERROR:
                return SchedulingDirective.requeue_error(e)
        return directive
