"""
Duplicate detection against the remote store.

Two access paths:
- find_matches(): one filtered query per incoming row, bounded by match_limit
- fetch_all(): full offset-paged scan, used only by the bulk dedup sweep
"""

from leadsync.core.errors import RemoteUnavailable
from leadsync.core.models import MatchKey, RemoteRecord
from leadsync.observability import metrics
from leadsync.observability.logger import get_logger

from .store import RemoteStore

logger = get_logger(__name__)


class DuplicateDetector:
    """
    Finds remote items sharing a match key.

    A failed lookup is logged and treated as "no matches", so an outage of
    the remote store makes every row look new. Pass ``fail_closed=True`` to
    have the failure propagate and mark the row failed instead.
    """

    def __init__(
        self,
        store: RemoteStore,
        match_limit: int = 30,
        page_size: int = 100,
        fail_closed: bool = False,
    ):
        """
        Initialize the detector.

        Args:
            store: Remote store client
            match_limit: Maximum items returned by a single lookup
            page_size: Page size used when scanning the whole dataset
            fail_closed: Propagate lookup failures instead of degrading
        """
        if match_limit < 1 or page_size < 1:
            raise ValueError("match_limit and page_size must be positive")
        self.store = store
        self.match_limit = match_limit
        self.page_size = page_size
        self.fail_closed = fail_closed

    def find_matches(self, key: MatchKey | None) -> set[int]:
        """
        Return the ids of remote items stored under ``key``.

        Raises:
            RemoteUnavailable: Only when fail_closed is set and the lookup fails
        """
        matches, _ = self.lookup(key)
        return matches

    def lookup(self, key: MatchKey | None) -> tuple[set[int], bool]:
        """
        Like find_matches(), but also reports whether the lookup degraded.

        Returns:
            Tuple of (matching item ids, degraded)
        """
        if key is None:
            return set(), False

        try:
            items = self.store.query({key.field_id: key.filter_value}, limit=self.match_limit, offset=0)
        except RemoteUnavailable as e:
            if self.fail_closed:
                raise
            metrics.increment_counter(metrics.detector_degraded_total)
            logger.warning(
                f"Duplicate lookup failed, treating row as new: {e}",
                extra={"address": key.filter_value, "field_id": key.field_id},
            )
            return set(), True

        return {item.item_id for item in items}, False

    def fetch_all(self) -> list[RemoteRecord]:
        """
        Page through the entire remote dataset.

        The offset advances by the size of each page and the scan stops at
        the first empty page. Errors propagate: a partial scan must never
        drive deletions.

        Raises:
            RemoteUnavailable: If any page cannot be fetched
        """
        records: list[RemoteRecord] = []
        offset = 0

        while True:
            page = self.store.query(None, limit=self.page_size, offset=offset)
            if not page:
                break
            records.extend(page)
            offset += len(page)
            logger.debug(f"Fetched {len(records)} remote items", extra={"offset": offset})

        logger.info(f"Total remote items retrieved: {len(records)}")
        return records
