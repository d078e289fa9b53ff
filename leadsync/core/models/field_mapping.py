"""
FieldMapping models: which input column feeds which remote field, and how.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

FieldKind = Literal["text", "integer", "number", "phone", "email", "category", "date", "constant"]


class FieldMapping(BaseModel):
    """
    Mapping of one input column to one remote field.

    Attributes:
        column: Input column name (not used by "constant" fields)
        fallback_column: Column read when ``column`` is blank
        field_id: Remote field identifier
        kind: How the raw string is converted for the remote field
        required: Row is invalid when the value is blank and has no default
        backfill: Field may be written onto existing items in backfill mode
        default: Value used when the column is blank (or unparsable, for
            numeric and date kinds)
        value: Fixed value of a "constant" field
        choices: Source text -> option id, for "category" fields
        phone_type: Podio phone type label
        email_type: Podio email type label
    """

    column: str | None = None
    fallback_column: str | None = None
    field_id: int
    kind: FieldKind = "text"
    required: bool = False
    backfill: bool = False
    default: Any = None
    value: Any = None
    choices: dict[str, int] | None = None
    phone_type: str = "mobile"
    email_type: str = "other"

    @model_validator(mode="after")
    def check_kind_parameters(self) -> "FieldMapping":
        if self.kind == "constant":
            if self.value is None:
                raise ValueError(f"constant field {self.field_id} needs a 'value'")
            if self.backfill:
                raise ValueError(f"constant field {self.field_id} cannot be a backfill field")
        elif not self.column:
            raise ValueError(f"{self.kind} field {self.field_id} needs a 'column'")
        if self.kind == "category" and not self.choices:
            raise ValueError(f"category field {self.field_id} needs 'choices'")
        return self

    @property
    def label(self) -> str:
        return self.column or f"field {self.field_id}"


class MatchKeyConfig(BaseModel):
    """Where the match key is read from in rows and remote records."""

    primary_column: str = Field(..., min_length=1)
    primary_field_id: int
    fallback_column: str | None = None
    fallback_field_id: int | None = None
    normalize: bool = False


class FieldMappingConfig(BaseModel):
    """
    Complete field mapping for one remote app.

    Attributes:
        app_id: Remote app id (environment configuration takes precedence)
        match_key: Match key location
        fields: Ordered field mappings
    """

    app_id: int | None = None
    match_key: MatchKeyConfig
    fields: list[FieldMapping] = Field(..., min_length=1)

    @field_validator("fields")
    @classmethod
    def check_unique_field_ids(cls, v: list[FieldMapping]) -> list[FieldMapping]:
        seen: set[int] = set()
        for mapping in v:
            if mapping.field_id in seen:
                raise ValueError(f"field_id {mapping.field_id} is mapped more than once")
            seen.add(mapping.field_id)
        return v

    @property
    def backfill_fields(self) -> list[FieldMapping]:
        return [m for m in self.fields if m.backfill]

    @property
    def backfill_field_ids(self) -> frozenset[int]:
        return frozenset(m.field_id for m in self.backfill_fields)

    class Config:
        json_schema_extra = {
            "example": {
                "app_id": 29638542,
                "match_key": {
                    "primary_column": "Address",
                    "primary_field_id": 267139876,
                },
                "fields": [
                    {"column": "Address", "fallback_column": "Property Address", "field_id": 267139876, "kind": "text"},
                    {"column": "Beds", "field_id": 267139895, "kind": "integer"},
                    {"column": "Primary Phone1", "field_id": 267139901, "kind": "phone", "backfill": True},
                    {"field_id": 267140023, "kind": "constant", "value": 1},
                ],
            }
        }
