"""
leadsync: CSV lead ingestion into Podio with duplicate detection.
"""

__version__ = "0.1.0"
