"""Main entry point for the Swift Operator."""

from __future__ import annotations

import threading
from typing import Any

import kopf
from werkzeug.serving import make_server

from . import health
from . import logging as structured_logging
from .config import OperatorConfig
from .handlers.registrar import OwnershipRegistrar
from .handlers.swift_storage import SwiftStorageReconciler
from .services.kube.client import KubeClusterClient
from .tracing import initialize_tracing

# Handlers are registered at import time so `kopf run -m swift_operator.main` works too
registrar = OwnershipRegistrar()
registrar.register(drift_check_interval=OperatorConfig.from_env().drift_check_interval)


def start_metrics_server(port: int) -> threading.Thread:
    """Serve metrics and health endpoints in a daemon thread.

    Args:
        port: Port to listen on

    Returns:
        The serving thread
    """
    combined_app = health.create_combined_wsgi_app(ready_check=registrar.is_bound)
    server = make_server("", port, combined_app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()

    config = OperatorConfig.from_env()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = config.request_timeout
    settings.execution.max_workers = config.max_workers

    initialize_tracing()
    start_metrics_server(config.metrics_port)

    api = KubeClusterClient.from_kube_config(request_timeout=config.request_timeout)
    registrar.bind(SwiftStorageReconciler(api, config), config)


def run() -> None:
    """Run the operator for WATCH_NAMESPACE, or cluster-wide when unset."""
    config = OperatorConfig.from_env()
    if config.watch_namespace:
        kopf.run(standalone=True, namespaces=[config.watch_namespace])
    else:
        kopf.run(standalone=True, clusterwide=True)


if __name__ == "__main__":
    run()
