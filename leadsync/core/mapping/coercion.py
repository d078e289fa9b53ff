"""
Conversion of raw CSV strings into remote field values.

Every converter takes the mapping and the raw cell text and returns the value
to send, or raises ValueError when the text cannot be converted. Blank cells
and defaults are handled by the payload builder, not here.
"""

from typing import Any, Callable

import pandas as pd

from leadsync.core.models import FieldMapping

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _clean_number(raw: str) -> str:
    """Strip whitespace, a leading currency sign and thousands separators."""
    cleaned = raw.strip().replace(",", "")
    if cleaned.startswith("$"):
        cleaned = cleaned[1:]
    return cleaned


def to_text(mapping: FieldMapping, raw: str) -> str:
    return raw


def to_integer(mapping: FieldMapping, raw: str) -> int:
    """Integers accept decimal text and truncate it ("2.0" -> 2)."""
    cleaned = _clean_number(raw)
    try:
        return int(cleaned)
    except ValueError:
        return int(float(cleaned))


def to_number(mapping: FieldMapping, raw: str) -> float:
    value = float(_clean_number(raw))
    if value != value:  # NaN
        raise ValueError(f"'{raw}' is not a number")
    return value


def to_phone(mapping: FieldMapping, raw: str) -> list[dict[str, str]]:
    return [{"type": mapping.phone_type, "value": raw.strip()}]


def to_email(mapping: FieldMapping, raw: str) -> list[dict[str, str]]:
    return [{"type": mapping.email_type, "value": raw.strip()}]


def to_category(mapping: FieldMapping, raw: str) -> int:
    choices = mapping.choices or {}
    key = raw.strip()
    if key not in choices:
        raise ValueError(f"'{raw}' is not one of {sorted(choices)}")
    return choices[key]


def to_date(mapping: FieldMapping, raw: str) -> dict[str, str]:
    """Dates are sent as a zero-length range in the remote's datetime format."""
    parsed = pd.to_datetime(raw.strip())
    if pd.isna(parsed):
        raise ValueError(f"'{raw}' is not a date")
    formatted = parsed.strftime(DATE_FORMAT)
    return {"start": formatted, "end": formatted}


def format_date_value(value: Any) -> dict[str, str]:
    """Format a configured date default/constant the same way as parsed dates."""
    if isinstance(value, dict):
        return value
    formatted = pd.Timestamp(value).strftime(DATE_FORMAT)
    return {"start": formatted, "end": formatted}


CONVERTERS: dict[str, Callable[[FieldMapping, str], Any]] = {
    "text": to_text,
    "integer": to_integer,
    "number": to_number,
    "phone": to_phone,
    "email": to_email,
    "category": to_category,
    "date": to_date,
}


def convert(mapping: FieldMapping, raw: str) -> Any:
    """
    Convert a non-blank raw value for the mapping's kind.

    Raises:
        ValueError: If the value cannot be converted
    """
    converter = CONVERTERS.get(mapping.kind)
    if converter is None:
        raise ValueError(f"No converter for field kind '{mapping.kind}'")
    try:
        return converter(mapping, raw)
    except (TypeError, OverflowError) as e:
        raise ValueError(str(e)) from e
