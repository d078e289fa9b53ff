"""
Exception taxonomy for leadsync.

Row- and record-level errors (InvalidRecord, RemoteUnavailable) are caught by
the reconciler and the sweep and turned into counted outcomes. Only
configuration, authentication and input-enumeration errors end a run.
"""


class LeadSyncError(Exception):
    """Base class for all leadsync errors."""


class SourceReadError(LeadSyncError):
    """Raised when an input file or directory cannot be read."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class InvalidRecord(LeadSyncError):
    """Raised when a row has a missing required value or an unparsable one."""

    def __init__(self, column: str, message: str):
        self.column = column
        self.message = message
        super().__init__(f"{column}: {message}")


class RemoteUnavailable(LeadSyncError):
    """Raised when a single remote store operation fails."""

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: int | None = None,
        item_id: int | None = None,
    ):
        self.operation = operation
        self.message = message
        self.status_code = status_code
        self.item_id = item_id
        detail = f"[{operation}]"
        if item_id is not None:
            detail += f" item {item_id}"
        if status_code is not None:
            detail += f" HTTP {status_code}"
        super().__init__(f"{detail}: {message}")


class AuthenticationError(RemoteUnavailable):
    """Raised when the remote store rejects the app credentials."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__("authenticate", message, status_code=status_code)


class MappingConfigError(LeadSyncError):
    """Raised when the field mapping configuration is invalid."""
