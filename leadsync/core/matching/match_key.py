"""
Match key resolution for input rows and remote records.

The key is the property address. The primary address column/field is
preferred; when it is blank the alternate one is used; when both are blank
there is no key and the record is never considered a duplicate.
"""

import re
from typing import Any, Mapping

from leadsync.core.models import MatchKey, RemoteRecord

_WHITESPACE = re.compile(r"\s+")


def is_blank(value: Any) -> bool:
    """True for None, empty and whitespace-only values."""
    if value is None:
        return True
    return not str(value).strip()


def normalize_key(value: str) -> str:
    """Collapse runs of whitespace and case-fold."""
    return _WHITESPACE.sub(" ", value.strip()).casefold()


class MatchKeyResolver:
    """
    Derives MatchKeys from input rows and remote records.

    By default the key is the address exactly as written; only blankness is
    checked. With ``normalize=True`` keys are compared after whitespace
    collapsing and case-folding, while lookups still send the value as
    written.
    """

    def __init__(
        self,
        primary_column: str,
        primary_field_id: int,
        fallback_column: str | None = None,
        fallback_field_id: int | None = None,
        normalize: bool = False,
    ):
        """
        Initialize the resolver.

        Args:
            primary_column: Input column holding the primary address
            primary_field_id: Remote field holding the primary address
            fallback_column: Input column used when the primary one is blank
            fallback_field_id: Remote field used when the primary one is blank
            normalize: Compare keys case- and whitespace-insensitively
        """
        self.primary_column = primary_column
        self.primary_field_id = primary_field_id
        self.fallback_column = fallback_column
        self.fallback_field_id = fallback_field_id
        self.normalize = normalize

    def resolve(self, row: Mapping[str, Any]) -> MatchKey | None:
        """
        Resolve the key of an input row.

        A value found in the fallback column is still looked up in the
        primary remote field unless a fallback field is configured, since
        that is where created items store the address.
        """
        value = row.get(self.primary_column)
        if not is_blank(value):
            return self._make_key(str(value), self.primary_field_id)

        if self.fallback_column:
            value = row.get(self.fallback_column)
            if not is_blank(value):
                field_id = self.fallback_field_id or self.primary_field_id
                return self._make_key(str(value), field_id)

        return None

    def resolve_remote(self, record: RemoteRecord) -> MatchKey | None:
        """Resolve the key of a remote record from its field projection."""
        value = record.first_value(self.primary_field_id)
        if not is_blank(value):
            return self._make_key(str(value), self.primary_field_id)

        if self.fallback_field_id is not None:
            value = record.first_value(self.fallback_field_id)
            if not is_blank(value):
                return self._make_key(str(value), self.fallback_field_id)

        return None

    def _make_key(self, value: str, field_id: int) -> MatchKey:
        if self.normalize:
            return MatchKey(value=normalize_key(value), field_id=field_id, source_value=value)
        return MatchKey(value=value, field_id=field_id)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(primary={self.primary_column!r}/{self.primary_field_id}, "
            f"fallback={self.fallback_column!r}/{self.fallback_field_id}, normalize={self.normalize})"
        )
