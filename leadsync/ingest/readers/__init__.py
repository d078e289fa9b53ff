"""
Input record sources.
"""

from .csv_reader import CsvRecordSource

__all__ = [
    "CsvRecordSource",
]
