"""Models for the SwiftStorage desired state."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .utils.errors import ValidationError

DEFAULT_REPLICAS = 1
DEFAULT_IMAGE_ACCOUNT = "quay.io/tripleozedcentos9/openstack-swift-account:current-tripleo"
DEFAULT_IMAGE_CONTAINER = "quay.io/tripleozedcentos9/openstack-swift-container:current-tripleo"
DEFAULT_IMAGE_OBJECT = "quay.io/tripleozedcentos9/openstack-swift-object:current-tripleo"
DEFAULT_IMAGE_PROXY = "quay.io/tripleozedcentos9/openstack-swift-proxy-server:current-tripleo"
DEFAULT_IMAGE_MEMCACHED = "quay.io/tripleozedcentos9/openstack-memcached:current-tripleo"
DEFAULT_STORAGE_CLASS = ""
DEFAULT_RING_CONFIG_MAP = "swift-ring-config-data"

# CRD spec field -> (attribute, default)
_STRING_FIELDS = {
    "containerImageAccount": ("image_account", DEFAULT_IMAGE_ACCOUNT),
    "containerImageContainer": ("image_container", DEFAULT_IMAGE_CONTAINER),
    "containerImageObject": ("image_object", DEFAULT_IMAGE_OBJECT),
    "containerImageProxy": ("image_proxy", DEFAULT_IMAGE_PROXY),
    "containerImageMemcached": ("image_memcached", DEFAULT_IMAGE_MEMCACHED),
    "storageClassName": ("storage_class_name", DEFAULT_STORAGE_CLASS),
    "swiftRingConfigMap": ("ring_config_map", DEFAULT_RING_CONFIG_MAP),
}


@dataclass(frozen=True)
class DesiredState:
    """Desired storage topology declared by a SwiftStorage resource."""

    namespace: str
    name: str
    uid: str = ""
    generation: int = 0
    replicas: int = DEFAULT_REPLICAS
    image_account: str = DEFAULT_IMAGE_ACCOUNT
    image_container: str = DEFAULT_IMAGE_CONTAINER
    image_object: str = DEFAULT_IMAGE_OBJECT
    image_proxy: str = DEFAULT_IMAGE_PROXY
    image_memcached: str = DEFAULT_IMAGE_MEMCACHED
    storage_class_name: str = DEFAULT_STORAGE_CLASS
    ring_config_map: str = DEFAULT_RING_CONFIG_MAP

    @classmethod
    def from_resource(cls, obj: Any) -> DesiredState:
        """Parse a SwiftStorage custom object.

        Absent fields take their documented defaults. Only the structure is
        checked here; value ranges are the admission webhook's concern.

        Args:
            obj: Custom object as returned by the API server

        Returns:
            Parsed desired state

        Raises:
            ValidationError: If the object is structurally malformed
        """
        if not isinstance(obj, dict):
            raise ValidationError("SwiftStorage object must be a mapping")

        meta = obj.get("metadata") or {}
        name = meta.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("metadata.name is required")
        namespace = meta.get("namespace") or "default"

        spec = obj.get("spec")
        if spec is None:
            spec = {}
        if not isinstance(spec, dict):
            raise ValidationError("spec must be a mapping")

        values: dict[str, Any] = {}

        replicas = spec.get("replicas")
        if replicas is not None:
            if isinstance(replicas, bool) or not isinstance(replicas, int):
                raise ValidationError(f"spec.replicas must be an integer, got {replicas!r}")
            values["replicas"] = replicas

        for spec_field, (attr, _default) in _STRING_FIELDS.items():
            value = spec.get(spec_field)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValidationError(f"spec.{spec_field} must be a string, got {value!r}")
            values[attr] = value

        return cls(
            namespace=namespace,
            name=name,
            uid=meta.get("uid") or "",
            generation=meta.get("generation") or 0,
            **values,
        )

    @property
    def config_map_name(self) -> str:
        """Name of the ConfigMap holding the rendered service configuration."""
        return f"{self.name}-config-data"

    def image_for(self, domain: str) -> str:
        """Select the container image backing a logical domain.

        Args:
            domain: One of "account", "container", "object", "proxy", "memcached"

        Returns:
            Image reference
        """
        return getattr(self, f"image_{domain}")


@dataclass(frozen=True)
class TargetSpec:
    """Synthesized StatefulSet for one SwiftStorage.

    The manifest is a camelCase dict in the shape the API server accepts.
    """

    namespace: str
    name: str
    manifest: dict[str, Any] = field(hash=False)

    def canonical_json(self) -> str:
        """Serialize the manifest deterministically."""
        return json.dumps(self.manifest, sort_keys=True, separators=(",", ":"))
