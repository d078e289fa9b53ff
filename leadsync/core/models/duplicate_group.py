"""
DuplicateGroup model: remote records sharing one match key.
"""

from pydantic import BaseModel, Field

from .remote_record import RemoteRecord


class DuplicateGroup(BaseModel):
    """
    Records sharing one match key, computed on demand and never persisted.

    Attributes:
        key: The shared match key value
        canonical: The record kept as authoritative
        duplicates: Every other record in the group (never empty)
    """

    key: str
    canonical: RemoteRecord
    duplicates: list[RemoteRecord] = Field(..., min_length=1)

    @property
    def size(self) -> int:
        return 1 + len(self.duplicates)

    @property
    def duplicate_ids(self) -> list[int]:
        return [record.item_id for record in self.duplicates]
