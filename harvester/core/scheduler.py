"""Collection scheduler for Thread Harvester.

Drives the ordered cross-product of sources and lookback windows: fetch,
dump, save, then update the per-second rate gauges. Failures are logged and
the matrix moves on; nothing short of a signal stops the run.
"""

import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, TextIO

from harvester.api.exceptions import (
    DatabaseException, InvalidRepoURLError, SourceException
)
from harvester.api.issue_client import IssueClient
from harvester.api.qa_scraper import QAScraper
from harvester.api.records import ISSUES, Source
from harvester.core.config import format_duration
from harvester.db.record_store import RecordStore
from harvester.metrics.registry import MetricsRegistry
from harvester.utils.error_handling import format_error_context, log_error

logger = logging.getLogger(__name__)

DEFAULT_INTER_SOURCE_INTERVAL = 60


@dataclass
class RunSummary:
    """Outcome of one pass over the collection matrix."""
    iterations: int = 0
    fetch_failures: int = 0
    save_failures: int = 0
    records_fetched: int = 0
    records_saved: int = 0
    errors: List[dict] = field(default_factory=list)


class CollectionScheduler:
    """Runs every (source, window) pair once, in order, on the calling thread."""

    def __init__(self, sources: Sequence[Source], windows: Sequence[float],
                 store: RecordStore, metrics: MetricsRegistry,
                 issue_client: Optional[IssueClient] = None,
                 qa_scraper: Optional[QAScraper] = None,
                 inter_source_interval: float = DEFAULT_INTER_SOURCE_INTERVAL,
                 stop_event: Optional[threading.Event] = None,
                 output: Optional[TextIO] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        """Initialize the scheduler.

        Args:
            sources: Sources in collection order
            windows: Lookback windows in seconds, in collection order
            store: Record store the batches are written to
            metrics: Registry whose rate gauges are updated after each pair
            issue_client: Adapter for ``issues`` sources
            qa_scraper: Adapter for ``qa`` sources
            inter_source_interval: Seconds to pause between consecutive sources
            stop_event: Event that ends the inter-source pause and ``hold``
            output: Stream receiving the record dumps (defaults to stdout)
            sleep: Pause function; defaults to waiting on ``stop_event``
        """
        self.sources = list(sources)
        self.windows = list(windows)
        self.store = store
        self.metrics = metrics
        self.issue_client = issue_client
        self.qa_scraper = qa_scraper
        self.inter_source_interval = inter_source_interval
        self.stop_event = stop_event or threading.Event()
        self.output = output
        self._sleep = sleep or self._wait

        for source in self.sources:
            self.metrics.track(source.kind, source.label)

    def run_matrix(self) -> RunSummary:
        """Run every (source, window) pair once.

        Returns:
            Counts of iterations, failures and records
        """
        summary = RunSummary()
        start_time = time.time()
        logger.info(f"Starting collection over {len(self.sources)} sources x {len(self.windows)} windows")

        for position, source in enumerate(self.sources):
            if self.stop_event.is_set():
                logger.warning("Stop requested, abandoning remaining sources")
                break

            for window in self.windows:
                if not self.run_iteration(source, window, summary):
                    break

            if position < len(self.sources) - 1 and self.inter_source_interval > 0:
                logger.debug(f"Sleeping {self.inter_source_interval:g}s before next source")
                self._sleep(self.inter_source_interval)

        elapsed = time.time() - start_time
        logger.info(
            f"Collection matrix completed in {elapsed:.1f}s: {summary.iterations} iterations, "
            f"{summary.records_saved}/{summary.records_fetched} records saved, "
            f"{summary.fetch_failures} fetch failures, {summary.save_failures} save failures"
        )
        self.metrics.log_summary()
        return summary

    def run_iteration(self, source: Source, window: float, summary: Optional[RunSummary] = None) -> bool:
        """Fetch, dump, save and update rates for one (source, window) pair.

        Args:
            source: Source to collect
            window: Lookback window in seconds
            summary: Summary to accumulate into

        Returns:
            False when the remaining windows of this source should be skipped
        """
        summary = summary if summary is not None else RunSummary()
        summary.iterations += 1
        context = {"source": source.label, "window": format_duration(window)}

        try:
            records = self._fetch(source, window)
        except InvalidRepoURLError as e:
            summary.fetch_failures += 1
            summary.errors.append(format_error_context(e, "fetch", **context))
            log_error(logger, "Skipping source with invalid repository URL", exception=e,
                      level="error", **context)
            return False
        except SourceException as e:
            summary.fetch_failures += 1
            summary.errors.append(format_error_context(e, "fetch", **context))
            log_error(logger, f"Error fetching {source.kind} data", exception=e, level="warning", **context)
            return True
        except Exception as e:
            summary.fetch_failures += 1
            summary.errors.append(format_error_context(e, "fetch", **context))
            log_error(logger, f"Unexpected error fetching {source.kind} data", exception=e,
                      level="error", **context)
            return True

        summary.records_fetched += len(records)
        try:
            self._dump(source, records)
        except Exception as e:
            log_error(logger, "Could not write record dump", exception=e, level="warning", **context)

        try:
            saved = self._save(source, records)
            summary.records_saved += saved
        except DatabaseException as e:
            summary.save_failures += 1
            summary.records_saved += getattr(e, "inserted", 0)
            summary.errors.append(format_error_context(e, "save", **context))
            log_error(logger, f"Error saving {source.kind} data to the database", exception=e,
                      level="error", **context)
        except Exception as e:
            summary.save_failures += 1
            summary.errors.append(format_error_context(e, "save", **context))
            log_error(logger, f"Unexpected error saving {source.kind} data", exception=e,
                      level="error", **context)

        self.metrics.for_kind(source.kind).update_rates(source.label, window)
        return True

    def hold(self) -> None:
        """Block until the stop event is set, keeping the metrics endpoint alive."""
        logger.info("Collection finished; serving metrics until stopped")
        while not self.stop_event.wait(timeout=3600):
            pass
        logger.info("Stop requested, leaving hold")

    def run(self) -> RunSummary:
        """Run the matrix once, then hold until stopped."""
        summary = self.run_matrix()
        self.hold()
        return summary

    def _fetch(self, source: Source, window: float):
        if source.kind == ISSUES:
            if self.issue_client is None:
                raise RuntimeError("No issue client configured")
            return self.issue_client.fetch_issues(source.url, window, label=source.label)

        if self.qa_scraper is None:
            raise RuntimeError("No Q&A scraper configured")
        return self.qa_scraper.fetch_questions(source.url, source.label, window)

    def _save(self, source: Source, records) -> int:
        if source.kind == ISSUES:
            return self.store.save_issues(records)
        return self.store.save_questions(records)

    def _dump(self, source: Source, records) -> None:
        stream = self.output or sys.stdout
        for record in records:
            print(record.describe(source.label), file=stream)

    def _wait(self, seconds: float) -> None:
        self.stop_event.wait(timeout=seconds)
