"""
ReconciliationDecision model: what to do with one incoming row.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class Action(str, Enum):
    CREATE = "create"
    SKIP = "skip"
    MERGE_UPDATE = "merge_update"


class SyncMode(str, Enum):
    """
    IMPORT skips rows that already exist remotely; BACKFILL merges the
    backfill-eligible fields onto them instead.
    """

    IMPORT = "import"
    BACKFILL = "backfill"


class ReconciliationDecision(BaseModel):
    """
    Outcome of the reconciliation policy for one row (ephemeral).

    Attributes:
        action: CREATE, SKIP or MERGE_UPDATE
        target_ids: Remote items to update (MERGE_UPDATE only, ascending)
    """

    model_config = {"frozen": True}

    action: Action
    target_ids: tuple[int, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def check_targets(self) -> "ReconciliationDecision":
        if self.action is Action.MERGE_UPDATE and not self.target_ids:
            raise ValueError("MERGE_UPDATE requires at least one target id")
        if self.action is not Action.MERGE_UPDATE and self.target_ids:
            raise ValueError(f"{self.action.value} takes no target ids")
        return self

    @classmethod
    def create(cls) -> "ReconciliationDecision":
        return cls(action=Action.CREATE)

    @classmethod
    def skip(cls) -> "ReconciliationDecision":
        return cls(action=Action.SKIP)

    @classmethod
    def merge_update(cls, target_ids) -> "ReconciliationDecision":
        return cls(action=Action.MERGE_UPDATE, target_ids=tuple(sorted(target_ids)))
