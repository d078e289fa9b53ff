"""
Remote store access: the store contract, the Podio client and the duplicate detector.
"""

from .client import PodioClient, PodioCredentials
from .detector import DuplicateDetector
from .store import RemoteStore

__all__ = [
    "DuplicateDetector",
    "PodioClient",
    "PodioCredentials",
    "RemoteStore",
]
