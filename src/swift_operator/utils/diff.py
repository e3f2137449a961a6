"""Comparison of synthesized manifests against live objects."""

from __future__ import annotations

import copy
from typing import Any

# Fields this controller owns and patches on an existing StatefulSet
MANAGED_PATHS: tuple[tuple[str, ...], ...] = (
    ("metadata", "labels"),
    ("spec", "replicas"),
    ("spec", "template"),
)

# Fields the API server refuses to change after creation
IMMUTABLE_PATHS: tuple[tuple[str, ...], ...] = (
    ("spec", "selector"),
    ("spec", "serviceName"),
    ("spec", "volumeClaimTemplates"),
)

_MISSING = object()


def get_path(obj: Any, path: tuple[str, ...]) -> Any:
    """Return the value at ``path`` or the ``_MISSING`` sentinel."""
    current = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _set_path(obj: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    current = obj
    for key in path[:-1]:
        current = current.setdefault(key, {})
    current[path[-1]] = value


def is_subset(desired: Any, live: Any) -> bool:
    """Check that every field set in ``desired`` has the same value in ``live``.

    Keys present only in ``live`` (server defaults, fields owned by other
    actors) are ignored. Lists must have the same length and match
    element-wise.
    """
    if isinstance(desired, dict):
        if not isinstance(live, dict):
            return False
        return all(key in live and is_subset(value, live[key]) for key, value in desired.items())
    if isinstance(desired, list):
        if not isinstance(live, list) or len(desired) != len(live):
            return False
        return all(is_subset(d, l) for d, l in zip(desired, live))
    return desired == live


def merge_patch_diff(desired: dict[str, Any], live: Any) -> dict[str, Any]:
    """Compute a JSON merge patch moving ``live`` towards ``desired``.

    Only keys that differ are carried. Lists cannot be merged by a JSON
    merge patch and are replaced as a whole.

    Args:
        desired: Desired object (or fragment)
        live: Live object (or fragment)

    Returns:
        Merge patch, empty when ``live`` already matches
    """
    patch: dict[str, Any] = {}
    for key, value in desired.items():
        current = live.get(key, _MISSING) if isinstance(live, dict) else _MISSING
        if isinstance(value, dict) and isinstance(current, dict):
            sub_patch = merge_patch_diff(value, current)
            if sub_patch:
                patch[key] = sub_patch
        elif current is _MISSING or not is_subset(value, current):
            patch[key] = copy.deepcopy(value)
    return patch


def managed_view(manifest: dict[str, Any]) -> dict[str, Any]:
    """Project a manifest onto the managed, mutable fields."""
    view: dict[str, Any] = {}
    for path in MANAGED_PATHS:
        value = get_path(manifest, path)
        if value is not _MISSING:
            _set_path(view, path, copy.deepcopy(value))
    return view


def build_managed_patch(manifest: dict[str, Any], live: dict[str, Any]) -> dict[str, Any] | None:
    """Build the merge patch for the managed fields, or None when in sync."""
    patch = merge_patch_diff(managed_view(manifest), live)
    return patch or None


def immutable_drift(manifest: dict[str, Any], live: dict[str, Any]) -> list[str]:
    """List immutable fields whose live value differs from the manifest."""
    drifted = []
    for path in IMMUTABLE_PATHS:
        desired = get_path(manifest, path)
        if desired is _MISSING:
            continue
        if not is_subset(desired, get_path(live, path)):
            drifted.append(".".join(path))
    return drifted
