"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import patch

import pytest

from swift_operator.utils.errors import ConflictError, NotFoundError


def apply_merge_patch(target: dict[str, Any], patch_body: dict[str, Any]) -> dict[str, Any]:
    """Apply a JSON merge patch in place."""
    for key, value in patch_body.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            apply_merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def apply_server_defaults(obj: dict[str, Any]) -> None:
    """Fill in fields the API server would default on a StatefulSet."""
    spec = obj.setdefault("spec", {})
    spec.setdefault("podManagementPolicy", "OrderedReady")
    spec.setdefault("revisionHistoryLimit", 10)
    pod_spec = spec.get("template", {}).get("spec", {})
    pod_spec.setdefault("restartPolicy", "Always")
    for container in pod_spec.get("initContainers", []) + pod_spec.get("containers", []):
        container.setdefault("terminationMessagePath", "/dev/termination-log")
        for port in container.get("ports", []):
            port.setdefault("protocol", "TCP")
    for volume in pod_spec.get("volumes", []):
        if "configMap" in volume:
            volume["configMap"].setdefault("defaultMode", 420)


class FakeClusterApi:
    """In-memory cluster API enforcing resourceVersion preconditions."""

    def __init__(self) -> None:
        self.swift_storages: dict[tuple[str, str], dict[str, Any]] = {}
        self.stateful_sets: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[str] = []
        self.patches: list[dict[str, Any]] = []
        self.status_patches: list[dict[str, Any]] = []
        self.failures: dict[str, Exception] = {}
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failures:
            raise self.failures[operation]

    def add_swift_storage(self, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        self.swift_storages[(meta["namespace"], meta["name"])] = copy.deepcopy(obj)

    def get_swift_storage(self, namespace: str, name: str) -> dict[str, Any]:
        self._record("get_swift_storage")
        try:
            return copy.deepcopy(self.swift_storages[(namespace, name)])
        except KeyError:
            raise NotFoundError(f"swiftstorages {name} not found") from None

    def patch_swift_storage_status(
        self, namespace: str, name: str, status: dict[str, Any]
    ) -> dict[str, Any]:
        self._record("patch_swift_storage_status")
        if (namespace, name) not in self.swift_storages:
            raise NotFoundError(f"swiftstorages {name} not found")
        obj = self.swift_storages[(namespace, name)]
        apply_merge_patch(obj.setdefault("status", {}), status)
        self.status_patches.append(copy.deepcopy(status))
        return copy.deepcopy(obj)

    def annotate_swift_storage(
        self, namespace: str, name: str, annotations: dict[str, str]
    ) -> dict[str, Any]:
        self._record("annotate_swift_storage")
        if (namespace, name) not in self.swift_storages:
            raise NotFoundError(f"swiftstorages {name} not found")
        obj = self.swift_storages[(namespace, name)]
        obj["metadata"].setdefault("annotations", {}).update(annotations)
        return copy.deepcopy(obj)

    def get_stateful_set(self, namespace: str, name: str) -> dict[str, Any]:
        self._record("get_stateful_set")
        try:
            return copy.deepcopy(self.stateful_sets[(namespace, name)])
        except KeyError:
            raise NotFoundError(f"statefulsets {name} not found") from None

    def create_stateful_set(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        self._record("create_stateful_set")
        name = body["metadata"]["name"]
        if (namespace, name) in self.stateful_sets:
            raise ConflictError(f"statefulsets {name} already exists")
        obj = copy.deepcopy(body)
        obj["metadata"]["resourceVersion"] = self._next_version()
        obj["metadata"]["uid"] = f"sts-uid-{name}"
        obj["metadata"]["generation"] = 1
        apply_server_defaults(obj)
        obj["status"] = {"replicas": 0}
        self.stateful_sets[(namespace, name)] = obj
        return copy.deepcopy(obj)

    def patch_stateful_set(
        self, namespace: str, name: str, patch_body: dict[str, Any]
    ) -> dict[str, Any]:
        self._record("patch_stateful_set")
        if (namespace, name) not in self.stateful_sets:
            raise NotFoundError(f"statefulsets {name} not found")
        obj = self.stateful_sets[(namespace, name)]
        expected = (patch_body.get("metadata") or {}).get("resourceVersion")
        if expected is not None and expected != obj["metadata"]["resourceVersion"]:
            raise ConflictError("the object has been modified; please apply your changes to the latest version")
        self.patches.append(copy.deepcopy(patch_body))
        apply_merge_patch(obj, patch_body)
        apply_server_defaults(obj)
        obj["metadata"]["resourceVersion"] = self._next_version()
        obj["metadata"]["generation"] += 1
        return copy.deepcopy(obj)

    def edit_stateful_set(self, namespace: str, name: str, patch_body: dict[str, Any]) -> None:
        """Mutate a StatefulSet the way another actor would."""
        obj = self.stateful_sets[(namespace, name)]
        apply_merge_patch(obj, patch_body)
        obj["metadata"]["resourceVersion"] = self._next_version()


def make_swift_storage(
    name: str = "swift-storage",
    namespace: str = "openstack",
    spec: dict[str, Any] | None = None,
    generation: int = 1,
) -> dict[str, Any]:
    """Build a SwiftStorage custom object."""
    return {
        "apiVersion": "swift.openstack.org/v1beta1",
        "kind": "SwiftStorage",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": f"uid-{name}",
            "generation": generation,
        },
        "spec": spec if spec is not None else {},
    }


@pytest.fixture
def fake_api() -> FakeClusterApi:
    return FakeClusterApi()


@pytest.fixture
def swift_storage() -> dict[str, Any]:
    return make_swift_storage()


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """Keep kopf from posting events outside an operator context."""
    with patch("swift_operator.utils.events.kopf.event") as mock_event:
        yield mock_event
