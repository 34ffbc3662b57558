"""
Metrics registry for Thread Harvester.

Each source owns four labeled series, named with a per-source prefix so both
sources can share one process and one exposition endpoint:

* ``<prefix>_api_calls_total``: adapter invocations (counter)
* ``<prefix>_data_collected_total``: records returned (counter)
* ``<prefix>_api_calls_per_second``: calls counter over the lookback window (gauge)
* ``<prefix>_data_collected_per_second``: items counter over the lookback window (gauge)

The series live on a ``CollectorRegistry`` owned by the registry instance
rather than on the ``prometheus_client`` default registry, so tests and
embedding applications can build as many registries as they need.
"""

import logging
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge

from harvester.api.records import ISSUES, QA

logger = logging.getLogger(__name__)

# Metric name prefix and label name per source kind
SOURCE_SERIES = {
    ISSUES: ("issues", "repository"),
    QA: ("qa", "query"),
}


class SourceMetrics:
    """The four labeled series for one source kind."""

    def __init__(self, registry: CollectorRegistry, prefix: str, label_name: str, description: str):
        """Register the series on ``registry``.

        Args:
            registry: Collector registry to register on
            prefix: Metric name prefix, e.g. ``issues``
            label_name: Label carried by every series, e.g. ``repository``
            description: Source description used in help strings
        """
        self.registry = registry
        self.prefix = prefix
        self.label_name = label_name

        self.api_calls = Counter(
            f"{prefix}_api_calls_total",
            f"Total number of {description} API calls",
            [label_name],
            registry=registry,
        )
        self.data_collected = Counter(
            f"{prefix}_data_collected_total",
            f"Total number of records collected from {description}",
            [label_name],
            registry=registry,
        )
        self.api_calls_per_second = Gauge(
            f"{prefix}_api_calls_per_second",
            f"{description} API calls per second of lookback window",
            [label_name],
            registry=registry,
        )
        self.data_collected_per_second = Gauge(
            f"{prefix}_data_collected_per_second",
            f"Records collected from {description} per second of lookback window",
            [label_name],
            registry=registry,
        )

    def record_call(self, label: str) -> None:
        self.api_calls.labels(label).inc()

    def record_items(self, label: str, count: int) -> None:
        if count < 0:
            raise ValueError("item count must be non-negative")
        self.data_collected.labels(label).inc(count)

    def calls_total(self, label: str) -> float:
        return self._sample(f"{self.prefix}_api_calls_total", label)

    def items_total(self, label: str) -> float:
        return self._sample(f"{self.prefix}_data_collected_total", label)

    def calls_per_second(self, label: str) -> float:
        return self._sample(f"{self.prefix}_api_calls_per_second", label)

    def items_per_second(self, label: str) -> float:
        return self._sample(f"{self.prefix}_data_collected_per_second", label)

    def update_rates(self, label: str, window_seconds: float) -> bool:
        """Set both rate gauges from the current counter values.

        Args:
            label: Series label
            window_seconds: Lookback window the iteration covered

        Returns:
            False when the window is not positive and the gauges were left untouched
        """
        if window_seconds <= 0:
            logger.warning(f"Skipping rate update for {self.prefix}{{{label}}}: window is {window_seconds}s")
            return False

        self.api_calls_per_second.labels(label).set(self.calls_total(label) / window_seconds)
        self.data_collected_per_second.labels(label).set(self.items_total(label) / window_seconds)
        return True

    def _sample(self, name: str, label: str) -> float:
        # get_sample_value collects under the registry lock
        value = self.registry.get_sample_value(name, {self.label_name: label})
        return value if value is not None else 0.0


class MetricsRegistry:
    """Process-wide metrics for every source kind.

    Created once by the application and passed to the adapters and the
    scheduler, which write to it, and to the metrics server, which reads it.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize the registry.

        Args:
            registry: Optional collector registry; a fresh one is created when omitted
        """
        self.registry = registry or CollectorRegistry()
        self.issues = SourceMetrics(self.registry, *SOURCE_SERIES[ISSUES], description="GitHub")
        self.qa = SourceMetrics(self.registry, *SOURCE_SERIES[QA], description="Stack Overflow")
        self._labels = {ISSUES: set(), QA: set()}

    def for_kind(self, kind: str) -> SourceMetrics:
        """Return the series for a source kind (``issues`` or ``qa``)."""
        if kind == ISSUES:
            return self.issues
        if kind == QA:
            return self.qa
        raise ValueError(f"unknown source kind: {kind}")

    def track(self, kind: str, label: str) -> None:
        """Remember a label so it appears in the summary even before any call."""
        self._labels[kind].add(label)

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, float]]]:
        """Return current values per kind and label.

        Returns:
            ``{kind: {label: {"api_calls_total": ..., ...}}}``
        """
        result = {}
        for kind, labels in self._labels.items():
            series = self.for_kind(kind)
            result[kind] = {
                label: {
                    "api_calls_total": series.calls_total(label),
                    "data_collected_total": series.items_total(label),
                    "api_calls_per_second": series.calls_per_second(label),
                    "data_collected_per_second": series.items_per_second(label),
                }
                for label in sorted(labels)
            }
        return result

    def log_summary(self) -> None:
        """Log per-label totals collected so far."""
        for kind, labels in self.snapshot().items():
            for label, values in labels.items():
                logger.info(
                    f"Metrics | {kind} | {label} | "
                    f"calls: {values['api_calls_total']:.0f} | "
                    f"items: {values['data_collected_total']:.0f} | "
                    f"calls/s: {values['api_calls_per_second']:.6f} | "
                    f"items/s: {values['data_collected_per_second']:.6f}"
                )
