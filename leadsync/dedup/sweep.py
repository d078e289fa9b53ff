"""
Bulk dedup sweep over the whole remote dataset.

Steps:
1. Fetch every remote item (offset-paged)
2. Group items by match key; items without a key are never grouped
3. Canonicalize every group of size > 1
4. Collect the union of the non-canonical items
5. Delete them one by one; a failed delete is reported and the sweep goes on
"""

from leadsync.core.errors import RemoteUnavailable
from leadsync.core.matching import MatchKeyResolver, group_duplicates
from leadsync.core.models import DuplicateGroup, SweepResult
from leadsync.observability import metrics
from leadsync.observability.logger import get_logger, log_operation
from leadsync.remote.detector import DuplicateDetector
from leadsync.remote.store import RemoteStore

logger = get_logger(__name__)


class BulkDedupSweep:
    """
    Finds and deletes duplicate remote items, keeping one canonical item per key.
    """

    def __init__(self, store: RemoteStore, detector: DuplicateDetector, resolver: MatchKeyResolver):
        """
        Initialize the sweep.

        Args:
            store: Remote store client used for deletions
            detector: Detector providing the paged full scan
            resolver: Match key resolver applied to remote items
        """
        self.store = store
        self.detector = detector
        self.resolver = resolver

    def find_duplicate_groups(self) -> tuple[int, list[DuplicateGroup]]:
        """
        Scan the remote dataset and group duplicates.

        Returns:
            Tuple of (items scanned, duplicate groups)

        Raises:
            RemoteUnavailable: If the scan cannot complete
        """
        records = self.detector.fetch_all()
        groups = group_duplicates(records, self.resolver)
        logger.info(
            f"Total duplicate groups found: {len(groups)}",
            extra={"scanned": len(records), "groups": len(groups)},
        )
        return len(records), groups

    def run(self, dry_run: bool = False) -> SweepResult:
        """
        Run the sweep.

        Args:
            dry_run: Report the duplicates without deleting anything

        Returns:
            SweepResult; ``deleted`` is the number of deletions performed

        Raises:
            RemoteUnavailable: If the scan cannot complete (nothing is deleted)
        """
        with log_operation("Dedup sweep", logger=logger, dry_run=dry_run):
            scanned, groups = self.find_duplicate_groups()
            metrics.sweep_duplicate_groups.set(len(groups))

            to_delete = collect_duplicate_ids(groups)
            result = SweepResult(scanned=scanned, groups=len(groups), duplicates=len(to_delete), dry_run=dry_run)

            for group in groups:
                logger.info(
                    f"Duplicate group '{group.key}': keeping {group.canonical.item_id}",
                    extra={"key": group.key, "canonical_id": group.canonical.item_id, "duplicate_ids": group.duplicate_ids},
                )

            if dry_run:
                logger.info(f"DRY RUN: {len(to_delete)} items would be deleted")
                return result

            for item_id in to_delete:
                if self._delete(item_id):
                    result.deleted += 1
                else:
                    result.delete_failed += 1
                    result.failed_ids.append(item_id)

        logger.info(
            f"Sweep deleted {result.deleted} items ({result.delete_failed} failed)",
            extra={"deleted": result.deleted, "delete_failed": result.delete_failed, "failed_ids": result.failed_ids},
        )
        return result

    def _delete(self, item_id: int) -> bool:
        logger.info(f"Deleting item with ID: {item_id}", extra={"item_id": item_id})
        try:
            self.store.delete(item_id)
        except RemoteUnavailable as e:
            logger.error(f"Failed to delete item with ID: {item_id}: {e}", extra={"item_id": item_id})
            metrics.increment_counter(metrics.sweep_deletions_total, 1, status="failed")
            return False
        metrics.increment_counter(metrics.sweep_deletions_total, 1, status="deleted")
        return True


def collect_duplicate_ids(groups: list[DuplicateGroup]) -> list[int]:
    """Union of every group's duplicates, in group order, each id once."""
    seen: set[int] = set()
    ids: list[int] = []
    for group in groups:
        for item_id in group.duplicate_ids:
            if item_id not in seen:
                seen.add(item_id)
                ids.append(item_id)
    return ids
