"""
Metrics package for Thread Harvester.

This package owns the Prometheus series published for each source and the
HTTP endpoint that exposes them.
"""

from .registry import MetricsRegistry, SourceMetrics
from .server import start_metrics_server
