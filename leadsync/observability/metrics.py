"""
Prometheus metrics collection for leadsync

Counts row outcomes, remote calls and sweep deletions so a long import can
be watched from outside while it runs.
"""
import os
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

REGISTRY = CollectorRegistry()


# =======================
# INGESTION METRICS
# =======================

rows_processed_total = Counter(
    name="leadsync_rows_processed_total",
    documentation="Total number of input rows reconciled",
    labelnames=["mode", "status"],  # status: created, skipped, merged, create_failed, ...
    registry=REGISTRY,
)

rows_in_flight = Gauge(
    name="leadsync_rows_in_flight",
    documentation="Rows dispatched to the worker pool and not yet finished",
    registry=REGISTRY,
)

file_processing_duration_seconds = Histogram(
    name="leadsync_file_processing_duration_seconds",
    documentation="Time spent processing one input file",
    labelnames=["mode"],
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0, 3600.0],
    registry=REGISTRY,
)

detector_degraded_total = Counter(
    name="leadsync_detector_degraded_total",
    documentation="Duplicate lookups that failed and were treated as 'no match'",
    registry=REGISTRY,
)

# =======================
# REMOTE STORE METRICS
# =======================

remote_requests_total = Counter(
    name="leadsync_remote_requests_total",
    documentation="Total number of requests sent to the remote store",
    labelnames=["operation", "status"],  # status: success, failure
    registry=REGISTRY,
)

remote_request_duration_seconds = Histogram(
    name="leadsync_remote_request_duration_seconds",
    documentation="Remote store request latency in seconds",
    labelnames=["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

remote_retries_total = Counter(
    name="leadsync_remote_retries_total",
    documentation="Rate-limited requests that were retried",
    labelnames=["operation"],
    registry=REGISTRY,
)

# =======================
# SWEEP METRICS
# =======================

sweep_deletions_total = Counter(
    name="leadsync_sweep_deletions_total",
    documentation="Duplicate items deleted (or failed to delete) by the sweep",
    labelnames=["status"],  # status: deleted, failed
    registry=REGISTRY,
)

sweep_duplicate_groups = Gauge(
    name="leadsync_sweep_duplicate_groups",
    documentation="Duplicate groups found by the last sweep",
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: binds a port, only wanted when the CLI asks for it
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(remote_request_duration_seconds, operation="query"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


def record_row_outcome(mode: str, status: str) -> None:
    """Count one reconciled row."""
    increment_counter(rows_processed_total, 1, mode=mode, status=status)


def record_remote_call(operation: str, success: bool) -> None:
    """Count one remote store request."""
    status = "success" if success else "failure"
    increment_counter(remote_requests_total, 1, operation=operation, status=status)
