"""
Field mapping configuration management.

Loads the column -> remote field mapping from YAML files and provides a
builder for assembling mappings in code.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from leadsync.core.errors import MappingConfigError
from leadsync.core.matching import MatchKeyResolver
from leadsync.core.models import FieldMapping, FieldMappingConfig, MatchKeyConfig

DEFAULT_MAPPING_PATH = Path(__file__).resolve().parents[2] / "config" / "field_mapping.yaml"


class FieldMappingLoader:
    """
    Loads the field mapping from a YAML configuration file.

    Expected YAML format:
    ```yaml
    app_id: 29638542
    match_key:
      primary_column: Address
      primary_field_id: 267139876
      fallback_column: Property Address

    fields:
      - column: Address
        fallback_column: Property Address
        field_id: 267139876
        kind: text
      - column: Primary Phone1
        field_id: 267139901
        kind: phone
        backfill: true
      - field_id: 267140023
        kind: constant
        value: 1
    ```
    """

    def __init__(self, config_path: str | Path | None = None):
        """
        Initialize the loader.

        Args:
            config_path: Path to the YAML file (defaults to the bundled mapping)
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_MAPPING_PATH
        if not self.config_path.exists():
            raise FileNotFoundError(f"Field mapping file not found: {self.config_path}")

    def load(self) -> FieldMappingConfig:
        """
        Load and validate the field mapping.

        Returns:
            Validated FieldMappingConfig

        Raises:
            MappingConfigError: If the YAML is invalid or the mapping is inconsistent
        """
        try:
            with open(self.config_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise MappingConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config or "fields" not in config:
            raise MappingConfigError("Configuration file must contain 'fields' section")
        if "match_key" not in config:
            raise MappingConfigError("Configuration file must contain 'match_key' section")
        if not isinstance(config["fields"], list):
            raise MappingConfigError("'fields' must be a list")

        try:
            return FieldMappingConfig.model_validate(config)
        except ValidationError as e:
            raise MappingConfigError(f"Invalid field mapping in {self.config_path}: {e}") from e


def build_resolver(config: FieldMappingConfig) -> MatchKeyResolver:
    """Create the MatchKeyResolver described by a mapping's match_key section."""
    key = config.match_key
    return MatchKeyResolver(
        primary_column=key.primary_column,
        primary_field_id=key.primary_field_id,
        fallback_column=key.fallback_column,
        fallback_field_id=key.fallback_field_id,
        normalize=key.normalize,
    )


class FieldMappingBuilder:
    """
    Programmatically build field mappings (for testing or ad-hoc imports).
    """

    def __init__(self, primary_column: str, primary_field_id: int):
        """Initialize with the match key's primary column and field."""
        self.match_key: dict[str, Any] = {
            "primary_column": primary_column,
            "primary_field_id": primary_field_id,
        }
        self.fields: list[dict[str, Any]] = []
        self.app_id: int | None = None

    def with_fallback(self, column: str, field_id: int | None = None) -> "FieldMappingBuilder":
        """Set the alternate address column (and field) for the match key."""
        self.match_key["fallback_column"] = column
        self.match_key["fallback_field_id"] = field_id
        return self

    def with_normalized_keys(self) -> "FieldMappingBuilder":
        self.match_key["normalize"] = True
        return self

    def with_app_id(self, app_id: int) -> "FieldMappingBuilder":
        self.app_id = app_id
        return self

    def add_field(self, column: str | None, field_id: int, kind: str = "text", **options) -> "FieldMappingBuilder":
        """Add a field mapping of any kind."""
        self.fields.append({"column": column, "field_id": field_id, "kind": kind, **options})
        return self

    def add_text(
        self,
        column: str,
        field_id: int,
        required: bool = False,
        default: str | None = None,
        fallback_column: str | None = None,
    ) -> "FieldMappingBuilder":
        return self.add_field(
            column, field_id, "text", required=required, default=default, fallback_column=fallback_column
        )

    def add_integer(self, column: str, field_id: int, default: int | None = None) -> "FieldMappingBuilder":
        return self.add_field(column, field_id, "integer", default=default)

    def add_number(self, column: str, field_id: int, default: float | None = None) -> "FieldMappingBuilder":
        return self.add_field(column, field_id, "number", default=default)

    def add_phone(self, column: str, field_id: int, backfill: bool = True, phone_type: str = "mobile") -> "FieldMappingBuilder":
        """Add a phone field; phones are backfill fields unless told otherwise."""
        return self.add_field(column, field_id, "phone", backfill=backfill, phone_type=phone_type)

    def add_email(self, column: str, field_id: int, backfill: bool = False) -> "FieldMappingBuilder":
        return self.add_field(column, field_id, "email", backfill=backfill)

    def add_category(self, column: str, field_id: int, choices: dict[str, int], default: int | None = None) -> "FieldMappingBuilder":
        return self.add_field(column, field_id, "category", choices=choices, default=default)

    def add_date(self, column: str, field_id: int, default: str | None = None) -> "FieldMappingBuilder":
        return self.add_field(column, field_id, "date", default=default)

    def add_constant(self, field_id: int, value: Any) -> "FieldMappingBuilder":
        return self.add_field(None, field_id, "constant", value=value)

    def build(self) -> FieldMappingConfig:
        """
        Build and validate the mapping.

        Raises:
            MappingConfigError: If the mapping is inconsistent
        """
        try:
            return FieldMappingConfig(
                app_id=self.app_id,
                match_key=MatchKeyConfig(**self.match_key),
                fields=[FieldMapping(**f) for f in self.fields],
            )
        except ValidationError as e:
            raise MappingConfigError(f"Invalid field mapping: {e}") from e
