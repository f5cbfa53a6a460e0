"""
In-Memory Storage Implementation

Default backend for development and the backend every test runs against.

Records are copied on the way in and on the way out, so a caller holding a
record (or a cached list of records) can never change what the store holds
without going through save().
"""

from typing import Optional
from uuid import UUID

from omomoney.models.audit import AuditEvent
from omomoney.models.finance import EntityKind, Record
from omomoney.services.storage.interface import (
    AuditStorageInterface,
    Predicate,
    RecordStore,
    SortOrder,
    apply_query,
)


class InMemoryRecordStore(RecordStore):
    """Dict-backed record store, one partition per EntityKind."""

    def __init__(self):
        self._records: dict[EntityKind, dict[UUID, Record]] = {
            kind: {} for kind in EntityKind
        }

    async def query(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortOrder] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        records = [
            record.model_copy(deep=True)
            for record in self._records[kind].values()
        ]
        return apply_query(records, predicate, sort, limit)

    async def save(self, record: Record) -> bool:
        self._records[record.kind][record.id] = record.model_copy(deep=True)
        return True

    async def delete(self, record: Record) -> bool:
        return self._records[record.kind].pop(record.id, None) is not None

    async def count(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
    ) -> int:
        if predicate is None:
            return len(self._records[kind])
        return sum(1 for record in self._records[kind].values() if predicate(record))


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
