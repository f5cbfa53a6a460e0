"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the cache and the services decoupled from storage implementation

The interface is intentionally small: the store is a queryable collection
of records, not an ORM. Relationships are plain id fields and are resolved
by filtering.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional
from uuid import UUID

from pydantic import BaseModel

from omomoney.models.audit import AuditEvent
from omomoney.models.finance import EntityKind, Record


Predicate = Callable[[Record], bool]


class SortOrder(BaseModel):
    """Sort by one record field."""
    field: str
    ascending: bool = True


def apply_query(
    records: list[Record],
    predicate: Optional[Predicate] = None,
    sort: Optional[SortOrder] = None,
    limit: Optional[int] = None,
) -> list[Record]:
    """
    Filter, sort and truncate records in Python.

    Records whose sort field is None go last regardless of direction.
    """
    if predicate is not None:
        records = [record for record in records if predicate(record)]

    if sort is not None:
        present = [r for r in records if getattr(r, sort.field) is not None]
        missing = [r for r in records if getattr(r, sort.field) is None]
        present.sort(
            key=lambda r: getattr(r, sort.field),
            reverse=not sort.ascending,
        )
        records = present + missing

    if limit is not None:
        records = records[:limit]
    return records


class RecordStore(ABC):
    """
    Abstract interface for record storage.

    Any storage implementation (in-memory, Google Sheets, ...) must
    implement these methods. Records are addressed by (kind, id).
    """

    @abstractmethod
    async def query(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortOrder] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        """
        Fetch records of one kind.

        Args:
            kind: Which kind of record to fetch
            predicate: Keep only records for which this returns True
            sort: Optional ordering
            limit: Maximum number of results

        Returns:
            Matching records; empty list if none

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save(self, record: Record) -> bool:
        """
        Insert the record, or replace the stored record with the same id.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete(self, record: Record) -> bool:
        """
        Delete a record.

        Returns:
            True if deleted, False if it was not stored

        Raises:
            StorageError: If delete fails
        """
        pass

    @abstractmethod
    async def count(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
    ) -> int:
        """
        Count records of one kind, optionally filtered.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific record.

        Args:
            entity_type: Kind of record (e.g., 'user', 'item')
            entity_id: The record's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Record not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate record."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
