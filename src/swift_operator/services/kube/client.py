"""Kubernetes client implementation of the cluster API."""

from __future__ import annotations

import time
from typing import Any, Callable

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from ... import metrics
from ...constants import (
    API_GROUP,
    API_VERSION,
    FIELD_MANAGER,
    PLURAL_SWIFT_STORAGE,
)
from ...utils.errors import ConflictError, NotFoundError, TransportError, sanitize_exception
from ...utils.rate_limit import rate_limit_k8s

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


def translate_api_error(error: Exception) -> Exception:
    """Map a kubernetes client failure onto the operator error taxonomy.

    Args:
        error: Exception raised by the kubernetes client

    Returns:
        Matching operator error, or ``error`` itself when unrelated to the API
    """
    if isinstance(error, ApiException):
        message = f"{error.status} {error.reason or ''}".strip()
        if error.status == 404:
            return NotFoundError(message)
        if error.status == 409:
            return ConflictError(message)
        return TransportError(message, status=error.status)
    if isinstance(error, urllib3.exceptions.HTTPError):
        return TransportError(sanitize_exception(error))
    return error


class KubeClusterClient:
    """Cluster API backed by the official kubernetes client."""

    def __init__(
        self,
        api_client: client.ApiClient | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        """Initialize the cluster client.

        Args:
            api_client: Configured kubernetes ApiClient (default configuration when omitted)
            request_timeout: Per-call timeout in seconds
        """
        self.api_client = api_client or client.ApiClient()
        self.apps = client.AppsV1Api(self.api_client)
        self.custom = client.CustomObjectsApi(self.api_client)
        self.request_timeout = request_timeout

    @classmethod
    def from_kube_config(cls, request_timeout: float = 30.0) -> KubeClusterClient:
        """Build a client from in-cluster credentials, falling back to kubeconfig."""
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
        return cls(request_timeout=request_timeout)

    def _call(self, operation: str, func: Callable[..., Any], **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            result = rate_limit_k8s(func)(_request_timeout=self.request_timeout, **kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            raise translate_api_error(e) from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        # Typed models become camelCase dicts; custom objects are dicts already
        return self.api_client.sanitize_for_serialization(obj)

    def get_swift_storage(self, namespace: str, name: str) -> dict[str, Any]:
        """Read a SwiftStorage custom object."""
        return self._call(
            "get_swift_storage",
            self.custom.get_namespaced_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_SWIFT_STORAGE,
            name=name,
        )

    def patch_swift_storage_status(
        self, namespace: str, name: str, status: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge-patch the status subresource of a SwiftStorage."""
        return self._call(
            "patch_swift_storage_status",
            self.custom.patch_namespaced_custom_object_status,
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_SWIFT_STORAGE,
            name=name,
            body={"status": status},
            field_manager=FIELD_MANAGER,
            _content_type=MERGE_PATCH_CONTENT_TYPE,
        )

    def annotate_swift_storage(
        self, namespace: str, name: str, annotations: dict[str, str]
    ) -> dict[str, Any]:
        """Merge annotations into the metadata of a SwiftStorage."""
        return self._call(
            "annotate_swift_storage",
            self.custom.patch_namespaced_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=PLURAL_SWIFT_STORAGE,
            name=name,
            body={"metadata": {"annotations": annotations}},
            field_manager=FIELD_MANAGER,
            _content_type=MERGE_PATCH_CONTENT_TYPE,
        )

    def get_stateful_set(self, namespace: str, name: str) -> dict[str, Any]:
        """Read a StatefulSet."""
        obj = self._call(
            "get_stateful_set",
            self.apps.read_namespaced_stateful_set,
            name=name,
            namespace=namespace,
        )
        return self._to_dict(obj)

    def create_stateful_set(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create a StatefulSet."""
        obj = self._call(
            "create_stateful_set",
            self.apps.create_namespaced_stateful_set,
            namespace=namespace,
            body=body,
            field_manager=FIELD_MANAGER,
        )
        return self._to_dict(obj)

    def patch_stateful_set(
        self, namespace: str, name: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a JSON merge patch to a StatefulSet."""
        obj = self._call(
            "patch_stateful_set",
            self.apps.patch_namespaced_stateful_set,
            name=name,
            namespace=namespace,
            body=patch,
            field_manager=FIELD_MANAGER,
            _content_type=MERGE_PATCH_CONTENT_TYPE,
        )
        return self._to_dict(obj)
