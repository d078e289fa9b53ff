"""
Remote store contract consumed by the reconciliation core.
"""

from typing import Any, Protocol

from leadsync.core.models import RemoteRecord


class RemoteStore(Protocol):
    """
    The four operations the core needs from the remote service.

    None of them is retried by the core: a single failure is terminal for
    the unit of work that issued it. Every operation raises
    ``RemoteUnavailable`` on failure.
    """

    def create(self, payload: dict[int, Any]) -> RemoteRecord:
        """Create an item from a field id -> value payload."""
        ...

    def query(self, filters: dict[int, Any] | None, limit: int, offset: int) -> list[RemoteRecord]:
        """Return one page of items matching field id -> value filters."""
        ...

    def update(self, item_id: int, payload: dict[int, Any]) -> int:
        """Write the given fields onto an item and return its new revision."""
        ...

    def delete(self, item_id: int) -> None:
        """Delete an item."""
        ...
