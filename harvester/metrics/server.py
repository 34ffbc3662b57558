"""Metrics exposition endpoint for Thread Harvester."""

import logging

from prometheus_client import start_http_server

from harvester.api.exceptions import InitializationError
from harvester.metrics.registry import MetricsRegistry

logger = logging.getLogger(__name__)


def start_metrics_server(metrics: MetricsRegistry, port: int = 8080, addr: str = "0.0.0.0"):
    """Serve ``/metrics`` for the registry from a daemon thread.

    Args:
        metrics: MetricsRegistry whose series are exposed
        port: Port to bind
        addr: Address to bind

    Returns:
        The ``(server, thread)`` pair from ``prometheus_client``

    Raises:
        InitializationError: When the port cannot be bound
    """
    try:
        server_and_thread = start_http_server(port, addr=addr, registry=metrics.registry)
    except OSError as e:
        raise InitializationError(f"Failed to bind metrics endpoint on {addr}:{port}: {e}") from e

    logger.info(f"Serving metrics on http://{addr}:{port}/metrics")
    return server_and_thread
