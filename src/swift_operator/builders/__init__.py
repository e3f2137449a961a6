"""Builders translating the desired state into Kubernetes manifests."""

from .roles import INIT_ROLES, SERVICE_ROLES, Role
from .statefulset import synthesize

__all__ = ["INIT_ROLES", "SERVICE_ROLES", "Role", "synthesize"]
