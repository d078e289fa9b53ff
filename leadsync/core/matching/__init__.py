"""
Duplicate matching: match key resolution and canonical record selection.
"""

from .canonical import canonicalize, group_duplicates, precedence
from .match_key import MatchKeyResolver, is_blank, normalize_key

__all__ = [
    "MatchKeyResolver",
    "canonicalize",
    "group_duplicates",
    "is_blank",
    "normalize_key",
    "precedence",
]
