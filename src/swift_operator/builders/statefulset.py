"""Builder for the SwiftStorage StatefulSet."""

from __future__ import annotations

from typing import Any

from ..constants import (
    APPS_GROUP_VERSION,
    FIELD_MANAGER,
    KIND_STATEFUL_SET,
    LABEL_INSTANCE,
    LABEL_MANAGED_BY,
    LABEL_NAME,
    LABEL_NAME_STORAGE,
    RSYNC_PORT,
    RUN_AS_USER,
    STORAGE_CLAIM_NAME,
    STORAGE_MIN_CAPACITY,
)
from ..models import DesiredState, TargetSpec
from .roles import INIT_ROLES, SERVICE_ROLES, Role

# Mount points shared by every swift role
STORAGE_MOUNT_PATH = "/srv/node/d1"
CONFIG_MOUNT_PATH = "/var/lib/config-data/default"
RING_MOUNT_PATH = "/var/lib/config-data/rings"
MERGED_CONFIG_MOUNT_PATH = "/etc/swift"

CONFIG_VOLUME = "config-data"
RING_VOLUME = "ring-data"
MERGED_CONFIG_VOLUME = "config-data-merged"


def selector_labels(name: str) -> dict[str, str]:
    """Labels identifying the pods of one SwiftStorage."""
    return {
        LABEL_NAME: LABEL_NAME_STORAGE,
        LABEL_INSTANCE: name,
    }


def object_labels(name: str) -> dict[str, str]:
    """Labels set on the StatefulSet and its pod template."""
    labels = selector_labels(name)
    labels[LABEL_MANAGED_BY] = FIELD_MANAGER
    return labels


def _volume_mounts() -> list[dict[str, Any]]:
    return [
        {"name": STORAGE_CLAIM_NAME, "mountPath": STORAGE_MOUNT_PATH},
        {"name": CONFIG_VOLUME, "mountPath": CONFIG_MOUNT_PATH, "readOnly": True},
        {"name": RING_VOLUME, "mountPath": RING_MOUNT_PATH, "readOnly": True},
        {"name": MERGED_CONFIG_VOLUME, "mountPath": MERGED_CONFIG_MOUNT_PATH},
    ]


def _container_security_context() -> dict[str, Any]:
    return {
        "runAsUser": RUN_AS_USER,
        "runAsNonRoot": True,
        "allowPrivilegeEscalation": False,
        "capabilities": {"drop": ["ALL"]},
        "seccompProfile": {"type": "RuntimeDefault"},
    }


def _pod_security_context() -> dict[str, Any]:
    return {
        "fsGroup": RUN_AS_USER,
        "fsGroupChangePolicy": "OnRootMismatch",
        "runAsNonRoot": True,
        "seccompProfile": {"type": "RuntimeDefault"},
        # rsync binds a privileged port without extra capabilities
        "sysctls": [
            {"name": "net.ipv4.ip_unprivileged_port_start", "value": str(RSYNC_PORT)},
        ],
    }


def build_container(role: Role, desired: DesiredState) -> dict[str, Any]:
    """Render one role as a container.

    Args:
        role: Role descriptor
        desired: Desired state supplying the images

    Returns:
        Container dict
    """
    container: dict[str, Any] = {
        "name": role.name,
        "image": desired.image_for(role.image),
        "imagePullPolicy": "IfNotPresent",
        "command": list(role.command),
        "securityContext": _container_security_context(),
    }
    if role.port is not None:
        container["ports"] = [{"containerPort": role.port, "name": role.port_name}]
    if role.mounts:
        container["volumeMounts"] = _volume_mounts()
    return container


def _volumes(desired: DesiredState) -> list[dict[str, Any]]:
    return [
        {"name": CONFIG_VOLUME, "configMap": {"name": desired.config_map_name}},
        {"name": RING_VOLUME, "configMap": {"name": desired.ring_config_map}},
        {"name": MERGED_CONFIG_VOLUME, "emptyDir": {}},
    ]


def _volume_claim_templates(desired: DesiredState) -> list[dict[str, Any]]:
    claim_spec: dict[str, Any] = {
        "accessModes": ["ReadWriteOnce"],
        "resources": {"requests": {"storage": STORAGE_MIN_CAPACITY}},
    }
    # Empty class name falls back to the cluster default
    if desired.storage_class_name:
        claim_spec["storageClassName"] = desired.storage_class_name
    return [{"metadata": {"name": STORAGE_CLAIM_NAME}, "spec": claim_spec}]


def synthesize(desired: DesiredState) -> TargetSpec:
    """Synthesize the StatefulSet for a SwiftStorage.

    The result depends only on ``desired``; identical inputs produce
    identical manifests. Owner references are added by the applier.

    Args:
        desired: Parsed desired state

    Returns:
        Target StatefulSet manifest
    """
    labels = object_labels(desired.name)
    manifest: dict[str, Any] = {
        "apiVersion": APPS_GROUP_VERSION,
        "kind": KIND_STATEFUL_SET,
        "metadata": {
            "name": desired.name,
            "namespace": desired.namespace,
            "labels": dict(labels),
        },
        "spec": {
            "replicas": desired.replicas,
            "serviceName": desired.name,
            "selector": {"matchLabels": selector_labels(desired.name)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "securityContext": _pod_security_context(),
                    "initContainers": [build_container(role, desired) for role in INIT_ROLES],
                    "containers": [build_container(role, desired) for role in SERVICE_ROLES],
                    "volumes": _volumes(desired),
                },
            },
            "volumeClaimTemplates": _volume_claim_templates(desired),
        },
    }
    return TargetSpec(namespace=desired.namespace, name=desired.name, manifest=manifest)
