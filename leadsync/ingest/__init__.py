"""
Ingestion: CSV record source, reconciliation policy and the per-file pipeline.
"""

from .pipeline import IngestPipeline
from .readers import CsvRecordSource
from .reconcile import Reconciler, decide

__all__ = [
    "CsvRecordSource",
    "IngestPipeline",
    "Reconciler",
    "decide",
]
