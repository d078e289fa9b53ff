"""
Core data models for leadsync.

All models use Pydantic for runtime validation and type safety.
"""

from .decision import Action, ReconciliationDecision, SyncMode
from .duplicate_group import DuplicateGroup
from .field_mapping import FieldKind, FieldMapping, FieldMappingConfig, MatchKeyConfig
from .match_key import MatchKey
from .outcomes import FileSummary, RowOutcome, RunSummary, SweepResult
from .remote_record import RemoteRecord, ensure_utc

# One input row: column name -> cell text
RawRecord = dict[str, str]

__all__ = [
    "Action",
    "DuplicateGroup",
    "FieldKind",
    "FieldMapping",
    "FieldMappingConfig",
    "FileSummary",
    "MatchKey",
    "MatchKeyConfig",
    "RawRecord",
    "ReconciliationDecision",
    "RemoteRecord",
    "RowOutcome",
    "RunSummary",
    "SweepResult",
    "SyncMode",
    "ensure_utc",
]
