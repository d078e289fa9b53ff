"""
Canonical record selection for groups of remote records sharing a match key.

Ordering: oldest ``created_on`` first. Among records created at the same
instant the one with the HIGHER revision comes first and is kept, which is
the reverse of the usual "newest wins" tie-break. Records that still tie are
ordered by item id so the result never depends on input order.
"""

from collections import defaultdict
from typing import Iterable

from leadsync.core.models import DuplicateGroup, RemoteRecord
from leadsync.observability.logger import get_logger

from .match_key import MatchKeyResolver

logger = get_logger(__name__)


def precedence(record: RemoteRecord) -> tuple:
    """Sort key: earlier creation, then higher revision, then lower item id."""
    return (record.created_on, -record.revision, record.item_id)


def canonicalize(records: list[RemoteRecord]) -> tuple[RemoteRecord, list[RemoteRecord]]:
    """
    Designate the canonical record of a group.

    Args:
        records: Non-empty list of records sharing one match key

    Returns:
        Tuple of (canonical, duplicates); duplicates is empty for a single record

    Raises:
        ValueError: If records is empty
    """
    if not records:
        raise ValueError("canonicalize() requires at least one record")

    ordered = sorted(records, key=precedence)
    return ordered[0], ordered[1:]


def group_duplicates(
    records: Iterable[RemoteRecord],
    resolver: MatchKeyResolver,
) -> list[DuplicateGroup]:
    """
    Partition records by match key and canonicalize every group of size > 1.

    Records without a key land in an "unknown" bucket that is never grouped:
    two items both lacking an address are not duplicates of each other.

    Returns:
        Duplicate groups ordered by key
    """
    by_key: dict[str, list[RemoteRecord]] = defaultdict(list)
    unknown: list[RemoteRecord] = []

    for record in records:
        key = resolver.resolve_remote(record)
        if key is None:
            unknown.append(record)
        else:
            by_key[key.value].append(record)

    if unknown:
        logger.info(
            f"{len(unknown)} items without address left untouched",
            extra={"unkeyed_ids": sorted(r.item_id for r in unknown)},
        )

    groups = []
    for key in sorted(by_key):
        members = by_key[key]
        if len(members) < 2:
            continue
        canonical, duplicates = canonicalize(members)
        groups.append(DuplicateGroup(key=key, canonical=canonical, duplicates=duplicates))

    return groups
