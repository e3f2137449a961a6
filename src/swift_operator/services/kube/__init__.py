"""Kubernetes cluster API access."""

from .base import ClusterApi
from .client import KubeClusterClient, translate_api_error

__all__ = ["ClusterApi", "KubeClusterClient", "translate_api_error"]
