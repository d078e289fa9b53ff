"""
RemoteRecord model representing an item owned by the remote store.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Podio reports ``created_on`` as naive UTC strings ("2024-10-09 15:00:00").
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class RemoteRecord(BaseModel):
    """
    An item in the remote store. The core never mutates it; changes go through
    the store's update operation.

    Attributes:
        item_id: Server-assigned identifier, immutable once created
        fields: Field id -> raw value list as returned by the API
        created_on: Creation timestamp (UTC)
        revision: Revision counter, incremented by the store on every update
    """

    item_id: int
    fields: dict[int, list[Any]] = Field(default_factory=dict)
    created_on: datetime
    revision: int = Field(0, ge=0)

    @field_validator("created_on")
    @classmethod
    def normalize_created_on(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "RemoteRecord":
        """
        Build a RemoteRecord from a Podio item document.

        Only ``item_id``, ``created_on``, ``revision`` and ``fields`` are read;
        each field contributes its ``values`` list under its ``field_id``.
        """
        fields: dict[int, list[Any]] = {}
        for field in item.get("fields") or []:
            if "field_id" not in field:
                continue
            fields[int(field["field_id"])] = list(field.get("values") or [])

        return cls(
            item_id=item["item_id"],
            fields=fields,
            created_on=item["created_on"],
            revision=item.get("revision") or 0,
        )

    def first_value(self, field_id: int) -> Any | None:
        """
        Project the first value of a field to a scalar.

        Text fields come back as ``{"value": "..."}``, phone/email fields as
        ``{"value": {"type": ..., "value": ...}}`` and category fields as
        ``{"value": {"id": ..., "text": ...}}``.
        """
        values = self.fields.get(field_id) or []
        if not values:
            return None

        value = values[0]
        if isinstance(value, dict):
            value = value.get("value", value.get("text"))
        if isinstance(value, dict):
            value = value.get("text", value.get("value"))
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "item_id": 2871234501,
                "fields": {
                    "267139876": [{"value": "123 Main St"}],
                    "267139891": [{"value": "Springfield"}],
                },
                "created_on": "2024-10-09T15:00:00Z",
                "revision": 2,
            }
        }
