"""
Reconciliation policy: the per-row ingestion path.

    START --(no key)-----------------------------> CREATE
    START --(key) --> detector --(no matches)----> CREATE
                              --(matches, import)---> SKIP
                              --(matches, backfill)-> MERGE_UPDATE(all matches)

Every row is handled in isolation. Errors are turned into a RowOutcome so a
failing row never stops or corrupts its siblings.
"""

from typing import Any, Iterable, Mapping

from leadsync.core.errors import InvalidRecord, RemoteUnavailable
from leadsync.core.mapping import PayloadBuilder
from leadsync.core.matching import MatchKeyResolver
from leadsync.core.models import (
    Action,
    MatchKey,
    ReconciliationDecision,
    RowOutcome,
    SyncMode,
)
from leadsync.observability import metrics
from leadsync.observability.logger import get_logger
from leadsync.remote.detector import DuplicateDetector
from leadsync.remote.store import RemoteStore

logger = get_logger(__name__)


def decide(key: MatchKey | None, matches: Iterable[int], mode: SyncMode) -> ReconciliationDecision:
    """
    Decide what to do with one row. Pure function of its inputs.

    Args:
        key: Resolved match key, or None when the row has no address
        matches: Ids of remote items sharing the key
        mode: IMPORT or BACKFILL

    Returns:
        CREATE, SKIP or MERGE_UPDATE targeting every match
    """
    matches = set(matches)
    if key is None or not matches:
        return ReconciliationDecision.create()
    if mode is SyncMode.BACKFILL:
        return ReconciliationDecision.merge_update(matches)
    return ReconciliationDecision.skip()


class Reconciler:
    """
    Applies the reconciliation policy to input rows.

    All collaborators are injected; the reconciler holds no state between
    rows and is safe to call from several worker threads at once.
    """

    def __init__(
        self,
        store: RemoteStore,
        detector: DuplicateDetector,
        resolver: MatchKeyResolver,
        payloads: PayloadBuilder,
        mode: SyncMode = SyncMode.IMPORT,
    ):
        """
        Initialize the reconciler.

        Args:
            store: Remote store client used for create/update
            detector: Duplicate detector
            resolver: Match key resolver
            payloads: Payload builder for the field mapping
            mode: IMPORT skips existing items, BACKFILL merges onto them
        """
        self.store = store
        self.detector = detector
        self.resolver = resolver
        self.payloads = payloads
        self.mode = SyncMode(mode)

    def process(self, row_number: int, row: Mapping[str, Any]) -> RowOutcome:
        """
        Resolve the key, query the detector and act on one row.

        Args:
            row_number: Source line number, for log context
            row: Input row

        Returns:
            The row's outcome; never raises for row-level failures
        """
        key = self.resolver.resolve(row)
        key_value = key.filter_value if key else None
        context = {"row_number": row_number, "address": key_value}

        try:
            matches, degraded = self.detector.lookup(key)
        except RemoteUnavailable as e:
            logger.error(f"Duplicate lookup failed: {e}", extra=context)
            return self._finish(RowOutcome(row_number=row_number, key=key_value, status="failed", error=str(e)))

        decision = decide(key, matches, self.mode)
        logger.debug(
            f"Row decision: {decision.action.value}",
            extra={**context, "matches": sorted(matches)},
        )

        if decision.action is Action.CREATE:
            outcome = self._create(row_number, key_value, row)
        elif decision.action is Action.SKIP:
            logger.info("Skipping duplicate entry for row", extra={**context, "matches": sorted(matches)})
            outcome = RowOutcome(row_number=row_number, key=key_value, action=Action.SKIP, status="skipped")
        else:
            outcome = self._merge(row_number, key_value, row, decision)

        if degraded:
            outcome = outcome.model_copy(update={"detector_degraded": True})
        return self._finish(outcome)

    def _create(self, row_number: int, key_value: str | None, row: Mapping[str, Any]) -> RowOutcome:
        context = {"row_number": row_number, "address": key_value}
        try:
            payload = self.payloads.build_create_payload(row)
        except InvalidRecord as e:
            logger.warning(f"Invalid row skipped: {e}", extra=context)
            return RowOutcome(row_number=row_number, key=key_value, action=Action.CREATE, status="invalid", error=str(e))

        try:
            record = self.store.create(payload)
        except RemoteUnavailable as e:
            logger.error(f"Error creating record: {e}", extra=context)
            return RowOutcome(
                row_number=row_number, key=key_value, action=Action.CREATE, status="create_failed", error=str(e)
            )

        logger.info("Record created", extra={**context, "item_id": record.item_id})
        return RowOutcome(
            row_number=row_number, key=key_value, action=Action.CREATE, status="created", item_ids=[record.item_id]
        )

    def _merge(
        self,
        row_number: int,
        key_value: str | None,
        row: Mapping[str, Any],
        decision: ReconciliationDecision,
    ) -> RowOutcome:
        context = {"row_number": row_number, "address": key_value}
        try:
            payload = self.payloads.build_backfill_payload(row)
        except InvalidRecord as e:
            logger.warning(f"Invalid backfill value, row skipped: {e}", extra=context)
            return RowOutcome(
                row_number=row_number, key=key_value, action=Action.MERGE_UPDATE, status="invalid", error=str(e)
            )

        if not payload:
            logger.info("No backfill values in row, nothing to merge", extra=context)
            return RowOutcome(row_number=row_number, key=key_value, action=Action.MERGE_UPDATE, status="skipped")

        updated: list[int] = []
        errors: list[str] = []
        for item_id in decision.target_ids:
            try:
                self.store.update(item_id, payload)
                updated.append(item_id)
            except RemoteUnavailable as e:
                logger.error(f"Error updating record: {e}", extra={**context, "item_id": item_id})
                errors.append(str(e))

        if errors:
            return RowOutcome(
                row_number=row_number,
                key=key_value,
                action=Action.MERGE_UPDATE,
                status="merge_failed",
                item_ids=updated,
                error="; ".join(errors),
            )

        logger.info(
            "Backfilled existing records",
            extra={**context, "item_ids": updated, "field_ids": sorted(payload)},
        )
        return RowOutcome(
            row_number=row_number, key=key_value, action=Action.MERGE_UPDATE, status="merged", item_ids=updated
        )

    def _finish(self, outcome: RowOutcome) -> RowOutcome:
        metrics.record_row_outcome(self.mode.value, outcome.status)
        return outcome
