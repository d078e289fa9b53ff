"""
Payload construction for create and backfill writes.

A create payload covers every mapped field. A backfill payload covers only
fields flagged ``backfill`` whose cell is non-blank in the row: existing
items may carry data from other feeds and nothing outside the backfill set
is ever written to them.
"""

from typing import Any, Mapping

from leadsync.core.errors import InvalidRecord
from leadsync.core.matching import is_blank
from leadsync.core.models import FieldMapping, FieldMappingConfig

from .coercion import convert, format_date_value

_OMIT = object()


class PayloadBuilder:
    """
    Builds remote field payloads (field id -> value) from input rows.
    """

    def __init__(self, config: FieldMappingConfig):
        """
        Initialize the payload builder.

        Args:
            config: Field mapping configuration
        """
        self.config = config

    def build_create_payload(self, row: Mapping[str, Any]) -> dict[int, Any]:
        """
        Build the payload for a new remote item from every mapped field.

        Args:
            row: Input row

        Returns:
            Field id -> remote value; blank cells without a default are left out

        Raises:
            InvalidRecord: If a required value is blank or a value cannot be converted
        """
        payload: dict[int, Any] = {}
        for mapping in self.config.fields:
            value = self._field_value(mapping, row, use_default=True)
            if value is not _OMIT:
                payload[mapping.field_id] = value
        return payload

    def build_backfill_payload(self, row: Mapping[str, Any]) -> dict[int, Any]:
        """
        Build the narrow payload merged onto existing items.

        Defaults are never applied here: a blank cell must not overwrite a
        value the item already has.

        Raises:
            InvalidRecord: If a backfill value cannot be converted
        """
        payload: dict[int, Any] = {}
        for mapping in self.config.backfill_fields:
            value = self._field_value(mapping, row, use_default=False)
            if value is not _OMIT:
                payload[mapping.field_id] = value
        return payload

    def _field_value(self, mapping: FieldMapping, row: Mapping[str, Any], use_default: bool) -> Any:
        if mapping.kind == "constant":
            return mapping.value if use_default else _OMIT

        raw = row.get(mapping.column)
        if is_blank(raw) and mapping.fallback_column:
            raw = row.get(mapping.fallback_column)
        if is_blank(raw):
            if use_default and mapping.default is not None:
                return self._default_value(mapping)
            if mapping.required and use_default:
                raise InvalidRecord(mapping.label, "required value is blank")
            return _OMIT

        try:
            return convert(mapping, str(raw))
        except ValueError as e:
            if use_default and mapping.default is not None:
                return self._default_value(mapping)
            raise InvalidRecord(mapping.label, f"cannot convert '{raw}' to {mapping.kind}: {e}") from e

    def _default_value(self, mapping: FieldMapping) -> Any:
        if mapping.kind == "date":
            return format_date_value(mapping.default)
        if mapping.kind in ("phone", "email"):
            return convert(mapping, str(mapping.default))
        return mapping.default
