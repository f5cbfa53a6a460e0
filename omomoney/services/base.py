"""
Base Record Service

Every data-access service follows the same two rules:

READ-THROUGH: a cached query first asks the cache under a key derived from
the query parameters; on a miss it asks the store and puts the result.

WRITE-INVALIDATE: a mutation first goes to the store. Only when the store
call returns does the service drop the cache keys whose results it could
have changed. If the store raises, the error propagates unchanged and the
cache is left alone.

Records are immutable from the caller's point of view: update methods
return a new, re-validated record instead of changing the one passed in.
"""

import copy
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar, Optional, TypeVar
from uuid import UUID

from omomoney.cache import CacheCategory, CacheManager
from omomoney.models.finance import EntityKind, Record, utcnow
from omomoney.services.storage import (
    Predicate,
    RecordStore,
    SortOrder,
    StorageError,
)

if TYPE_CHECKING:
    from omomoney.audit import AuditLogger


R = TypeVar("R", bound=Record)
T = TypeVar("T")


def apply_changes(record: R, **changes: Any) -> tuple[R, list[str]]:
    """
    Build an updated copy of a record.

    Arguments that are None mean "leave unchanged". The copy is validated
    like a new record and stamped with last_modified_at.

    Returns:
        (updated record, sorted names of fields that changed). If nothing
        changed the original record is returned with an empty list.
    """
    changed = {
        field: value
        for field, value in changes.items()
        if value is not None and getattr(record, field) != value
    }
    if not changed:
        return record, []

    data = record.model_dump()
    data.update(changed)
    data["last_modified_at"] = utcnow()
    return type(record).model_validate(data), sorted(changed)


class RecordService:
    """
    Shared plumbing for services that own one kind of record.

    Subclasses set `kind` and build their public API from the helpers
    below.
    """

    kind: ClassVar[EntityKind]

    def __init__(
        self,
        store: RecordStore,
        cache: CacheManager,
        audit_logger: Optional["AuditLogger"] = None,
    ):
        """
        Args:
            store: Source of truth for records
            cache: The process-wide cache
            audit_logger: Records mutations and store failures. Optional.
        """
        self._store = store
        self._cache = cache
        self._audit = audit_logger

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _fetch(
        self,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortOrder] = None,
        limit: Optional[int] = None,
    ) -> list:
        return await self._store.query(self.kind, predicate, sort, limit)

    async def _fetch_by_id(self, record_id: UUID) -> Optional[Record]:
        results = await self._fetch(lambda r: r.id == record_id, limit=1)
        return results[0] if results else None

    async def _count(self, predicate: Optional[Predicate] = None) -> int:
        return await self._store.count(self.kind, predicate)

    async def _read_through(
        self,
        category: CacheCategory,
        key: str,
        expected_type: type[T],
        loader: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached value for key, or load, cache and return it.

        Callers always get their own copy; the cached value is never handed
        out, so mutating a result cannot change later reads.
        """
        cached = self._cache.get(category, key, expected_type)
        if cached is not None:
            return copy.deepcopy(cached)

        value = await loader()
        self._cache.put(category, key, copy.deepcopy(value))
        return value

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def _insert(self, record: R) -> R:
        await self._save(record, "create")
        if self._audit:
            await self._audit.log_record_created(record)
        return record

    async def _replace(self, record: R, changed_fields: list[str]) -> R:
        await self._save(record, "update")
        if self._audit:
            await self._audit.log_record_updated(record, changed_fields)
        return record

    async def _remove(self, record: Record) -> bool:
        try:
            deleted = await self._store.delete(record)
        except StorageError as e:
            await self._report_failure("delete", record, e)
            raise

        if deleted and self._audit:
            await self._audit.log_record_deleted(record)
        return deleted

    async def _save(self, record: Record, operation: str) -> None:
        try:
            await self._store.save(record)
        except StorageError as e:
            await self._report_failure(operation, record, e)
            raise

    async def _report_failure(
        self,
        operation: str,
        record: Record,
        error: StorageError,
    ) -> None:
        if self._audit:
            await self._audit.log_store_failed(
                entity_type=record.kind.value,
                operation=operation,
                error_message=str(error),
                entity_id=record.id,
            )
