"""
Offline duplicate removal over the whole remote dataset.
"""

from .sweep import BulkDedupSweep, collect_duplicate_ids

__all__ = [
    "BulkDedupSweep",
    "collect_duplicate_ids",
]
