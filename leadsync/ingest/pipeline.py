"""
Ingestion pipeline orchestration.

Flow per file: read rows -> dispatch each row to a bounded worker pool ->
reconcile -> fold outcomes into the file summary. A file is reported
finished only after every dispatched row has completed.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from leadsync.core.errors import SourceReadError
from leadsync.core.models import FileSummary, RowOutcome, RunSummary
from leadsync.ingest.readers import CsvRecordSource
from leadsync.ingest.reconcile import Reconciler
from leadsync.observability import metrics
from leadsync.observability.logger import get_logger, log_operation

logger = get_logger(__name__)


class IngestPipeline:
    """
    Runs the reconciler over every row of every input file.

    Concurrency per file:
    1. Rows are submitted to a ThreadPoolExecutor of ``max_workers`` threads
    2. A semaphore caps pending rows at ``max_in_flight``; the reader blocks
       until a slot frees up, so a fast source cannot outrun the remote store
    3. The executor is drained before the file summary is returned
    """

    def __init__(
        self,
        reconciler: Reconciler,
        source: CsvRecordSource | None = None,
        max_workers: int = 8,
        max_in_flight: int = 32,
    ):
        """
        Initialize the pipeline.

        Args:
            reconciler: Per-row reconciliation policy
            source: Input record source (defaults to comma-delimited CSV)
            max_workers: Worker threads per file
            max_in_flight: Rows dispatched but not yet finished, at most
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if max_in_flight < max_workers:
            raise ValueError("max_in_flight must be >= max_workers")

        self.reconciler = reconciler
        self.source = source or CsvRecordSource()
        self.max_workers = max_workers
        self.max_in_flight = max_in_flight

    @property
    def mode(self) -> str:
        return self.reconciler.mode.value

    def run(self, directory: str | Path) -> RunSummary:
        """
        Process every input file of a directory.

        A file that cannot be read is recorded as failed and the remaining
        files are still processed.

        Raises:
            SourceReadError: If the directory itself cannot be listed
        """
        files = self.source.list_files(directory)
        logger.info(f"Found {len(files)} input files in {directory}", extra={"mode": self.mode})

        summary = RunSummary(mode=self.mode)
        for path in files:
            summary.files.append(self.process_file(path))

        log_run_summary(summary)
        return summary

    def process_file(self, path: str | Path) -> FileSummary:
        """
        Process one input file.

        Returns:
            FileSummary built after every dispatched row finished
        """
        summary = FileSummary(path=str(path))
        lock = threading.Lock()
        slots = threading.BoundedSemaphore(self.max_in_flight)

        def on_done(future: Future, row_number: int) -> None:
            try:
                outcome = future.result()
            except Exception as e:  # row isolation: one broken row never stops the file
                logger.error(
                    f"Unexpected error processing row: {e}",
                    extra={"row_number": row_number, "file": str(path)},
                    exc_info=e,
                )
                outcome = RowOutcome(row_number=row_number, status="failed", error=repr(e))
                metrics.record_row_outcome(self.mode, "failed")
            finally:
                metrics.rows_in_flight.dec()
                slots.release()
            with lock:
                summary.add(outcome)

        with metrics.track_duration(metrics.file_processing_duration_seconds, mode=self.mode), \
                log_operation("Processing file", logger=logger, file=str(path), mode=self.mode):
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="leadsync-row") as executor:
                try:
                    for row_number, row in self.source.iter_rows(path):
                        slots.acquire()
                        metrics.rows_in_flight.inc()
                        future = executor.submit(self.reconciler.process, row_number, row)
                        future.add_done_callback(_bind(on_done, row_number))
                except SourceReadError as e:
                    logger.error(f"Error reading file {path}: {e.message}", extra={"file": str(path)})
                    summary.read_error = e.message
                # leaving the executor block waits for every dispatched row

        logger.info(f"Finished processing file: {path}", extra={"file": str(path), **_counts(summary)})
        return summary


def _bind(callback, row_number: int):
    return lambda future: callback(future, row_number)


def _counts(summary: FileSummary) -> dict[str, Any]:
    # LogRecord already has a "created" attribute, so counters are prefixed
    return {
        "rows_created": summary.created,
        "rows_skipped": summary.skipped,
        "rows_merged": summary.merged,
        "rows_create_failed": summary.create_failed,
        "rows_merge_failed": summary.merge_failed,
        "rows_invalid": summary.invalid,
        "rows_failed": summary.failed,
        "rows_detector_degraded": summary.detector_degraded,
    }


def log_run_summary(summary: RunSummary) -> None:
    """Log the end-of-run counters."""
    totals = summary.totals()
    logger.info("=" * 60)
    logger.info(f"RUN COMPLETE ({summary.mode})", extra={f"total_{k}": v for k, v in totals.items()})
    logger.info("=" * 60)
    logger.info(f"Files processed: {totals['files_processed']} (failed: {totals['files_failed']})")
    logger.info(f"Created: {totals['created']}")
    logger.info(f"Skipped (duplicates): {totals['skipped']}")
    logger.info(f"Merged (backfilled): {totals['merged']}")
    logger.info(f"Create failed: {totals['create_failed']}")
    logger.info(f"Merge failed: {totals['merge_failed']}")
    logger.info(f"Invalid rows: {totals['invalid']}")
    if totals["failed"]:
        logger.info(f"Failed rows: {totals['failed']}")
    if totals["detector_degraded"]:
        logger.warning(
            f"Duplicate lookups degraded to 'no match': {totals['detector_degraded']}"
        )
    logger.info("=" * 60)
