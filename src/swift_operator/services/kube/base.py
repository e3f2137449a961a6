"""Cluster API interface used by the reconciler."""

from __future__ import annotations

from typing import Any, Protocol


class ClusterApi(Protocol):
    """Protocol defining the cluster operations the controller needs.

    Objects are exchanged as camelCase dicts. Implementations raise
    ``NotFoundError``, ``ConflictError`` or ``TransportError``.
    """

    def get_swift_storage(self, namespace: str, name: str) -> dict[str, Any]:
        """Read a SwiftStorage custom object."""
        ...

    def patch_swift_storage_status(
        self, namespace: str, name: str, status: dict[str, Any]
    ) -> dict[str, Any]:
        """Merge-patch the status subresource of a SwiftStorage."""
        ...

    def annotate_swift_storage(
        self, namespace: str, name: str, annotations: dict[str, str]
    ) -> dict[str, Any]:
        """Merge annotations into the metadata of a SwiftStorage."""
        ...

    def get_stateful_set(self, namespace: str, name: str) -> dict[str, Any]:
        """Read a StatefulSet."""
        ...

    def create_stateful_set(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create a StatefulSet."""
        ...

    def patch_stateful_set(
        self, namespace: str, name: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a JSON merge patch to a StatefulSet.

        A ``metadata.resourceVersion`` in the patch makes the write
        conditional; a stale version raises ``ConflictError``.
        """
        ...
