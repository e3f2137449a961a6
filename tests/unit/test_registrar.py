"""Unit tests for the ownership registrar."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock, patch

import kopf
import pytest

from swift_operator.config import OperatorConfig
from swift_operator.constants import ANNOTATION_RECONCILE_TRIGGER
from swift_operator.handlers.registrar import (
    OwnershipRegistrar,
    build_owner_reference,
    controller_owner,
)
from swift_operator.handlers.swift_storage import SwiftStorageReconciler
from swift_operator.scheduling import SchedulingDirective
from swift_operator.utils.errors import TransportError

from conftest import make_swift_storage


def _stateful_set(owner_refs: list[dict]) -> dict:
    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": {
            "name": "swift-storage",
            "namespace": "openstack",
            "uid": "sts-uid",
            "ownerReferences": owner_refs,
        },
    }


class TestOwnerReferences:
    """Test cases for owner reference helpers."""

    def test_build_owner_reference(self) -> None:
        ref = build_owner_reference(make_swift_storage())

        assert ref == {
            "apiVersion": "swift.openstack.org/v1beta1",
            "kind": "SwiftStorage",
            "name": "swift-storage",
            "uid": "uid-swift-storage",
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def test_controller_owner(self) -> None:
        ref = build_owner_reference(make_swift_storage())

        assert controller_owner(_stateful_set([ref])) == ref

    def test_controller_owner_ignores_non_controller(self) -> None:
        ref = dict(build_owner_reference(make_swift_storage()), controller=False)

        assert controller_owner(_stateful_set([ref])) is None

    def test_controller_owner_ignores_other_kinds(self) -> None:
        ref = {"apiVersion": "apps/v1", "kind": "Deployment", "name": "x", "uid": "u", "controller": True}

        assert controller_owner(_stateful_set([ref])) is None

    def test_controller_owner_ignores_other_groups(self) -> None:
        ref = dict(build_owner_reference(make_swift_storage()), apiVersion="example.com/v1")

        assert controller_owner(_stateful_set([ref])) is None


class TestRegistration:
    """Test cases for handler registration and binding."""

    def test_register_twice_fails(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        registrar.register()

        with pytest.raises(RuntimeError):
            registrar.register()

    @patch("swift_operator.handlers.registrar.kopf.timer")
    @patch("swift_operator.handlers.registrar.kopf.on")
    def test_register_declares_owner_and_child_handlers(self, mock_on, mock_timer) -> None:
        registry = kopf.OperatorRegistry()
        registrar = OwnershipRegistrar(registry=registry)

        registrar.register(drift_check_interval=120.0)

        for decorator in (mock_on.create, mock_on.update, mock_on.resume):
            args, kwargs = decorator.call_args
            assert args == ("swift.openstack.org/v1beta1", "SwiftStorage")
            assert kwargs["registry"] is registry
            decorator.return_value.assert_called_once_with(registrar.handle_swift_storage)
        args, kwargs = mock_on.event.call_args
        assert args == ("apps/v1", "StatefulSet")
        assert kwargs["labels"] == {"app.kubernetes.io/managed-by": "swift-operator"}
        mock_on.event.return_value.assert_called_once_with(registrar.handle_stateful_set_event)

        args, kwargs = mock_timer.call_args
        assert args == ("swift.openstack.org/v1beta1", "SwiftStorage")
        assert kwargs["interval"] == 120.0
        assert kwargs["registry"] is registry
        mock_timer.return_value.assert_called_once_with(registrar.handle_swift_storage)

    @patch("swift_operator.handlers.registrar.kopf.timer")
    @patch("swift_operator.handlers.registrar.kopf.on")
    def test_drift_check_interval_defaults_from_config(self, mock_on, mock_timer) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())

        registrar.register()

        assert mock_timer.call_args.kwargs["interval"] == 300.0

    def test_bind_twice_fails(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        registrar.bind(MagicMock())

        with pytest.raises(RuntimeError):
            registrar.bind(MagicMock())

    def test_is_bound(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        assert registrar.is_bound() is False

        registrar.bind(MagicMock())

        assert registrar.is_bound() is True

    def test_handler_before_bind_retries(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())

        with pytest.raises(kopf.TemporaryError):
            registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=0)


class TestDirectiveTranslation:
    """Test cases for translating directives into kopf outcomes."""

    def _registrar(self, directive: SchedulingDirective) -> tuple[OwnershipRegistrar, MagicMock]:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        reconciler = MagicMock()
        reconciler.reconcile.return_value = directive
        registrar.bind(reconciler, OperatorConfig(min_retry_delay=1.0, retry_backoff=2.0, max_retry_delay=60.0))
        return registrar, reconciler

    def test_done_returns(self) -> None:
        registrar, reconciler = self._registrar(SchedulingDirective.done())

        registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=0)

        reconciler.reconcile.assert_called_once_with("openstack", "swift-storage")

    def test_requeue_after(self) -> None:
        registrar, _ = self._registrar(SchedulingDirective.requeue_after(0.0))

        with pytest.raises(kopf.TemporaryError) as exc_info:
            registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=5)

        assert exc_info.value.delay == 0.0

    def test_requeue_error_backs_off(self) -> None:
        registrar, _ = self._registrar(SchedulingDirective.requeue_error(TransportError("boom")))

        with pytest.raises(kopf.TemporaryError) as exc_info:
            registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=3)

        assert exc_info.value.delay == 8.0
        assert "boom" in str(exc_info.value)

    def test_requeue_error_delay_is_capped(self) -> None:
        registrar, _ = self._registrar(SchedulingDirective.requeue_error(TransportError("boom")))

        with pytest.raises(kopf.TemporaryError) as exc_info:
            registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=20)

        assert exc_info.value.delay == 60.0


class TestPassSerialization:
    """Test cases for running one pass at a time per SwiftStorage."""

    def _tracking_reconciler(self) -> tuple[MagicMock, dict[str, int]]:
        counts = {"active": 0, "peak": 0}
        guard = threading.Lock()

        def reconcile(namespace: str, name: str) -> SchedulingDirective:
            with guard:
                counts["active"] += 1
                counts["peak"] = max(counts["peak"], counts["active"])
            time.sleep(0.05)
            with guard:
                counts["active"] -= 1
            return SchedulingDirective.done()

        reconciler = MagicMock()
        reconciler.reconcile.side_effect = reconcile
        return reconciler, counts

    def _run_concurrently(self, registrar: OwnershipRegistrar, identities: list[tuple[str, str]]) -> None:
        threads = [
            threading.Thread(
                target=registrar.handle_swift_storage,
                kwargs={"name": name, "namespace": namespace, "retry": 0},
            )
            for namespace, name in identities
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def test_same_identity_runs_one_pass_at_a_time(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        reconciler, counts = self._tracking_reconciler()
        registrar.bind(reconciler)

        self._run_concurrently(registrar, [("openstack", "swift-storage")] * 3)

        assert reconciler.reconcile.call_count == 3
        assert counts["peak"] == 1

    def test_distinct_identities_do_not_block_each_other(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        barrier = threading.Barrier(2, timeout=5)
        met: list[str] = []

        def reconcile(namespace: str, name: str) -> SchedulingDirective:
            barrier.wait()
            met.append(name)
            return SchedulingDirective.done()

        reconciler = MagicMock()
        reconciler.reconcile.side_effect = reconcile
        registrar.bind(reconciler)

        self._run_concurrently(registrar, [("openstack", "a"), ("openstack", "b")])

        assert sorted(met) == ["a", "b"]


class TestChildEvents:
    """Test cases for StatefulSet watch events."""

    def test_owned_event_requests_owner_pass(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        reconciler = MagicMock()
        registrar.bind(reconciler)
        body = _stateful_set([build_owner_reference(make_swift_storage(name="owner"))])
        body["metadata"]["resourceVersion"] = "42"

        registrar.handle_stateful_set_event(body=body, namespace="openstack", type="MODIFIED")

        reconciler.request_pass.assert_called_once_with("openstack", "owner", "42")
        reconciler.reconcile.assert_not_called()

    def test_unowned_event_is_ignored(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        reconciler = MagicMock()
        registrar.bind(reconciler)

        registrar.handle_stateful_set_event(body=_stateful_set([]), namespace="openstack")

        reconciler.request_pass.assert_not_called()
        reconciler.reconcile.assert_not_called()

    def test_failed_request_is_logged(self) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        reconciler = MagicMock()
        reconciler.request_pass.side_effect = TransportError("500 Internal Server Error", status=500)
        registrar.bind(reconciler)
        body = _stateful_set([build_owner_reference(make_swift_storage())])

        with patch("swift_operator.handlers.registrar.log_resource_event") as mock_log:
            registrar.handle_stateful_set_event(body=body, namespace="openstack")

        assert mock_log.call_args.kwargs["reason"] == "TriggerFailed"

    def test_drift_repair_failure_is_retried_by_owner_handler(self, fake_api) -> None:
        registrar = OwnershipRegistrar(registry=kopf.OperatorRegistry())
        reconciler = SwiftStorageReconciler(fake_api)
        registrar.bind(reconciler, OperatorConfig(min_retry_delay=1.0, retry_backoff=2.0, max_retry_delay=60.0))
        fake_api.add_swift_storage(make_swift_storage(spec={"replicas": 3}))
        registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=0)
        fake_api.edit_stateful_set("openstack", "swift-storage", {"spec": {"replicas": 1}})
        fake_api.failures["patch_stateful_set"] = TransportError("500 Internal Server Error", status=500)
        sts = fake_api.get_stateful_set("openstack", "swift-storage")

        registrar.handle_stateful_set_event(body=sts, namespace="openstack")

        owner = fake_api.swift_storages[("openstack", "swift-storage")]
        assert owner["metadata"]["annotations"][ANNOTATION_RECONCILE_TRIGGER] == sts["metadata"]["resourceVersion"]
        with pytest.raises(kopf.TemporaryError) as exc_info:
            registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=1)
        assert exc_info.value.delay == 2.0

        del fake_api.failures["patch_stateful_set"]
        registrar.handle_swift_storage(name="swift-storage", namespace="openstack", retry=2)

        assert fake_api.stateful_sets[("openstack", "swift-storage")]["spec"]["replicas"] == 3

    def test_request_for_missing_owner_is_ignored(self, fake_api) -> None:
        reconciler = SwiftStorageReconciler(fake_api)

        assert reconciler.request_pass("openstack", "gone", "1") is False
        assert fake_api.calls == ["annotate_swift_storage"]

    def test_request_propagates_transport_errors(self, fake_api) -> None:
        fake_api.add_swift_storage(make_swift_storage())
        fake_api.failures["annotate_swift_storage"] = TransportError("connection refused")

        with pytest.raises(TransportError):
            SwiftStorageReconciler(fake_api).request_pass("openstack", "swift-storage", "1")
