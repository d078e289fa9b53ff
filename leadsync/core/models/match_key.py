"""
MatchKey model: the identity string used to group potential duplicates.
"""

from pydantic import BaseModel, Field, field_validator


class MatchKey(BaseModel):
    """
    A resolved match key.

    Attributes:
        value: Key string; equality on it is the duplicate criterion
        field_id: Remote field the key is stored in (the detector filters on it)
        source_value: The value as written in the record, when ``value`` was
            normalized from it
    """

    model_config = {"frozen": True}

    value: str = Field(..., min_length=1)
    field_id: int
    source_value: str | None = None

    @field_validator("value")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        """Blank keys never identify anything."""
        if not v.strip():
            raise ValueError("match key value cannot be blank")
        return v

    @property
    def filter_value(self) -> str:
        """Value sent to the remote store when looking up matches."""
        return self.source_value if self.source_value is not None else self.value

    def __str__(self) -> str:
        return self.value
