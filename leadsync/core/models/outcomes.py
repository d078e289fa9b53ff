"""
Per-row outcomes and run-level summaries.

Each reconciled row yields a RowOutcome instead of raising; the pipeline
folds outcomes into FileSummary/RunSummary counters.
"""

from typing import Literal

from pydantic import BaseModel, Field

from .decision import Action

RowStatus = Literal[
    "created",
    "skipped",
    "merged",
    "create_failed",
    "merge_failed",
    "invalid",
    "failed",
]

COUNTED_STATUSES: tuple[str, ...] = (
    "created",
    "skipped",
    "merged",
    "create_failed",
    "merge_failed",
    "invalid",
    "failed",
)


class RowOutcome(BaseModel):
    """
    Result of reconciling one input row (ephemeral).

    Attributes:
        row_number: 1-based line number in the source file (header is row 1)
        key: Match key value, if one was resolved
        action: Decision taken, if the row got that far
        status: Terminal status of the row
        item_ids: Remote items created or updated
        detector_degraded: The duplicate lookup failed and was treated as no match
        error: Error message for failed/invalid rows
    """

    row_number: int
    key: str | None = None
    action: Action | None = None
    status: RowStatus
    item_ids: list[int] = Field(default_factory=list)
    detector_degraded: bool = False
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status in ("create_failed", "merge_failed", "invalid", "failed")


class FileSummary(BaseModel):
    """Counters for one processed input file."""

    path: str
    created: int = 0
    skipped: int = 0
    merged: int = 0
    create_failed: int = 0
    merge_failed: int = 0
    invalid: int = 0
    failed: int = 0
    detector_degraded: int = 0
    read_error: str | None = None

    @property
    def rows(self) -> int:
        return sum(getattr(self, status) for status in COUNTED_STATUSES)

    @property
    def completed(self) -> bool:
        return self.read_error is None

    def add(self, outcome: RowOutcome) -> None:
        setattr(self, outcome.status, getattr(self, outcome.status) + 1)
        if outcome.detector_degraded:
            self.detector_degraded += 1


class RunSummary(BaseModel):
    """Counters aggregated over every file of one run."""

    mode: str
    files: list[FileSummary] = Field(default_factory=list)

    def _total(self, name: str) -> int:
        return sum(getattr(f, name) for f in self.files)

    @property
    def files_failed(self) -> int:
        return sum(1 for f in self.files if not f.completed)

    def totals(self) -> dict[str, int]:
        totals = {status: self._total(status) for status in COUNTED_STATUSES}
        totals["detector_degraded"] = self._total("detector_degraded")
        totals["files_processed"] = len(self.files)
        totals["files_failed"] = self.files_failed
        return totals


class SweepResult(BaseModel):
    """
    Result of a bulk dedup sweep.

    Attributes:
        scanned: Remote records fetched
        groups: Duplicate groups found (size > 1)
        duplicates: Non-canonical records selected for deletion
        deleted: Deletions that succeeded
        delete_failed: Deletions that failed
        failed_ids: Item ids whose deletion failed
        dry_run: No deletion was attempted
    """

    scanned: int = 0
    groups: int = 0
    duplicates: int = 0
    deleted: int = 0
    delete_failed: int = 0
    failed_ids: list[int] = Field(default_factory=list)
    dry_run: bool = False
