"""Kubernetes operator reconciling SwiftStorage resources into StatefulSets."""

__version__ = "0.1.0"
