"""Registration of the SwiftStorage handlers with kopf."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Protocol

import kopf

from ..config import OperatorConfig
from ..constants import (
    API_GROUP,
    API_GROUP_VERSION,
    APPS_GROUP_VERSION,
    FIELD_MANAGER,
    KIND_STATEFUL_SET,
    KIND_SWIFT_STORAGE,
    LABEL_MANAGED_BY,
)
from ..logging import log_resource_event
from ..scheduling import Action, SchedulingDirective
from ..utils.errors import OperatorError, sanitize_exception

logger = logging.getLogger(__name__)


class Reconciler(Protocol):
    """Anything able to run one reconciliation pass."""

    def reconcile(self, namespace: str, name: str) -> SchedulingDirective:
        ...

    def request_pass(self, namespace: str, name: str, trigger: str) -> bool:
        ...


def build_owner_reference(owner: dict[str, Any]) -> dict[str, Any]:
    """Build the controller owner reference pointing at a SwiftStorage.

    Args:
        owner: The owning SwiftStorage object

    Returns:
        Owner reference dict
    """
    meta = owner.get("metadata") or {}
    return {
        "apiVersion": owner.get("apiVersion", API_GROUP_VERSION),
        "kind": owner.get("kind", KIND_SWIFT_STORAGE),
        "name": meta.get("name"),
        "uid": meta.get("uid"),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def controller_owner(obj: dict[str, Any]) -> dict[str, Any] | None:
    """Return the SwiftStorage controller reference of an owned object, if any."""
    for ref in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if ref.get("kind") != KIND_SWIFT_STORAGE or not ref.get("controller"):
            continue
        if str(ref.get("apiVersion", "")).split("/")[0] != API_GROUP:
            continue
        return ref
    return None


class OwnershipRegistrar:
    """Wires SwiftStorage and owned StatefulSet events to the reconciler.

    Handlers are registered once per registry. The reconciler is bound
    later, at operator startup; until then every handler asks kopf to
    retry. Passes only run in the SwiftStorage handlers, one at a time per
    object; StatefulSet events request a pass through the owner.
    """

    def __init__(self, registry: kopf.OperatorRegistry | None = None):
        """Initialize the registrar.

        Args:
            registry: kopf registry to register with (kopf's default when omitted)
        """
        self.registry = registry
        self.config = OperatorConfig()
        self._reconciler: Reconciler | None = None
        self._registered = False
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def register(self, drift_check_interval: float | None = None) -> None:
        """Register the owner and child handlers.

        Args:
            drift_check_interval: Seconds between periodic passes per SwiftStorage

        Raises:
            RuntimeError: If the handlers were already registered
        """
        if self._registered:
            raise RuntimeError("SwiftStorage handlers are already registered")

        owner_decorators = {
            "create": kopf.on.create,
            "update": kopf.on.update,
            "resume": kopf.on.resume,
        }
        for cause, decorator in owner_decorators.items():
            decorator(
                API_GROUP_VERSION,
                KIND_SWIFT_STORAGE,
                id=f"reconcile-swift-storage-{cause}",
                registry=self.registry,
            )(self.handle_swift_storage)

        kopf.timer(
            API_GROUP_VERSION,
            KIND_SWIFT_STORAGE,
            id="drift-check-swift-storage",
            interval=drift_check_interval or self.config.drift_check_interval,
            registry=self.registry,
        )(self.handle_swift_storage)

        kopf.on.event(
            APPS_GROUP_VERSION,
            KIND_STATEFUL_SET,
            id="watch-owned-stateful-set",
            labels={LABEL_MANAGED_BY: FIELD_MANAGER},
            registry=self.registry,
        )(self.handle_stateful_set_event)

        self._registered = True

    def bind(self, reconciler: Reconciler, config: OperatorConfig | None = None) -> None:
        """Attach the reconciler that handles every pass.

        Args:
            reconciler: Reconciler to run
            config: Settings used to compute requeue delays

        Raises:
            RuntimeError: If a reconciler is already bound
        """
        if self._reconciler is not None:
            raise RuntimeError("A reconciler is already bound")
        self._reconciler = reconciler
        if config is not None:
            self.config = config

    def is_bound(self) -> bool:
        """Report whether a reconciler is bound, for readiness probes."""
        return self._reconciler is not None

    @contextmanager
    def _identity_lock(self, namespace: str, name: str) -> Iterator[None]:
        # kopf serializes handlers per object, but timers run beside them
        with self._locks_guard:
            lock = self._locks.setdefault((namespace, name), threading.Lock())
        with lock:
            yield

    def _require_reconciler(self) -> Reconciler:
        if self._reconciler is None:
            raise kopf.TemporaryError("Reconciler is not bound yet", delay=self.config.min_retry_delay)
        return self._reconciler

    def to_kopf(self, directive: SchedulingDirective, retry: int) -> None:
        """Translate a directive into kopf's handler protocol.

        Args:
            directive: Directive returned by the pass
            retry: kopf's retry counter for the handler

        Raises:
            kopf.TemporaryError: For any directive other than DONE
        """
        if directive.action is Action.DONE:
            return
        if directive.action is Action.REQUEUE_AFTER:
            raise kopf.TemporaryError("Requeue requested", delay=directive.delay)
        message = sanitize_exception(directive.error) if directive.error else "Reconciliation failed"
        raise kopf.TemporaryError(message, delay=self.config.backoff_delay(retry))

    def handle_swift_storage(
        self,
        name: str,
        namespace: str,
        retry: int = 0,
        **_: Any,
    ) -> None:
        """Run one pass for a SwiftStorage change or drift check."""
        reconciler = self._require_reconciler()
        with self._identity_lock(namespace, name):
            directive = reconciler.reconcile(namespace, name)
        self.to_kopf(directive, retry)

    def handle_stateful_set_event(
        self,
        body: dict[str, Any],
        namespace: str | None = None,
        **_: Any,
    ) -> None:
        """Request a pass for the owner of a changed StatefulSet.

        The pass itself runs in the owner's update handler. If the request
        cannot be written, the drift check timer picks the owner up.
        """
        owner = controller_owner(body)
        if owner is None:
            return

        reconciler = self._require_reconciler()
        meta = body.get("metadata") or {}
        owner_namespace = namespace or meta.get("namespace", "default")
        trigger = meta.get("resourceVersion") or meta.get("uid", "unknown")
        try:
            reconciler.request_pass(owner_namespace, owner["name"], trigger)
        except OperatorError as e:
            log_resource_event(
                logger,
                controller="swift-operator",
                resource_kind=KIND_STATEFUL_SET,
                resource_name=meta.get("name", "unknown"),
                namespace=owner_namespace,
                uid=meta.get("uid", "unknown"),
                event="trigger",
                reason="TriggerFailed",
                message=f"Failed to request a pass for the owner: {sanitize_exception(e)}",
                level=logging.WARNING,
                owner=owner["name"],
            )
