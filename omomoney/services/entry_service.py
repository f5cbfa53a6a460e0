"""
Entry Service

CRUD for entries. Entry queries are not cached, but entry mutations change
results cached by other services:

- CategoryService entry counts, for the old and the new category
- ItemService per-group items and totals, when items go away with an entry

Those keys are dropped here after every successful write.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from omomoney.cache import CacheCategory, CategoryCacheKeys, ItemCacheKeys
from omomoney.models.finance import Category, EntityKind, Entry, Group, as_utc
from omomoney.services.base import RecordService, apply_changes
from omomoney.services.storage import SortOrder


NEWEST_FIRST = SortOrder(field="date", ascending=False)


class EntryService(RecordService):
    """Data access for Entry records."""

    kind = EntityKind.ENTRY

    async def fetch_entries(self) -> list[Entry]:
        """All entries, most recently created first."""
        return await self._fetch(sort=SortOrder(field="created_at", ascending=False))

    async def fetch_entry(self, entry_id: UUID) -> Optional[Entry]:
        return await self._fetch_by_id(entry_id)

    async def create_entry(
        self,
        date: datetime,
        category_id: UUID,
        group_id: UUID,
        description: Optional[str] = None,
    ) -> Entry:
        entry = await self._insert(
            Entry(
                date=date,
                category_id=category_id,
                group_id=group_id,
                description=description,
            )
        )

        self._invalidate_for_entry(entry, category_id)
        return entry

    async def update_entry(
        self,
        entry: Entry,
        category_id: UUID,
        description: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> Entry:
        """
        Update an entry, possibly moving it to another category.

        Entry counts of both the old and the new category are invalidated.
        """
        updated, changed = apply_changes(
            entry,
            category_id=category_id,
            description=description,
            date=date,
        )
        if not changed:
            return entry

        await self._replace(updated, changed)

        self._invalidate_for_entry(updated, entry.category_id, updated.category_id)
        return updated

    async def delete_entry(self, entry: Entry) -> bool:
        """
        Delete an entry together with its items.

        Items are deleted first. If a later delete fails, whatever was
        already deleted stays deleted and its cached results are dropped.
        """
        items = await self._store.query(
            EntityKind.ITEM, lambda i: i.entry_id == entry.id
        )
        removed = 0
        try:
            for item in items:
                await self._remove(item)
                removed += 1
        finally:
            if removed:
                self._invalidate_items(entry)

        deleted = await self._remove(entry)

        self._invalidate_for_entry(entry, entry.category_id)
        return deleted

    async def get_entries_for_group(self, group: Group) -> list[Entry]:
        return await self._fetch(lambda e: e.group_id == group.id, sort=NEWEST_FIRST)

    async def get_entries_for_category(self, category: Category) -> list[Entry]:
        return await self._fetch(
            lambda e: e.category_id == category.id, sort=NEWEST_FIRST
        )

    async def get_entries_between(self, start: datetime, end: datetime) -> list[Entry]:
        """Entries dated within [start, end], newest first. Naive bounds are UTC."""
        start, end = as_utc(start), as_utc(end)
        return await self._fetch(lambda e: start <= e.date <= end, sort=NEWEST_FIRST)

    async def get_entries_count(self) -> int:
        return await self._count()

    async def get_entries_count_for_group(self, group: Group) -> int:
        return await self._count(lambda e: e.group_id == group.id)

    def _invalidate_for_entry(self, entry: Entry, *category_ids: UUID) -> None:
        for category_id in set(category_ids):
            self._cache.invalidate(
                CacheCategory.DATA, CategoryCacheKeys.entry_count(category_id)
            )
        self._cache.invalidate(
            CacheCategory.CALCULATION, ItemCacheKeys.group_total(entry.group_id)
        )

    def _invalidate_items(self, entry: Entry) -> None:
        self._cache.invalidate(CacheCategory.DATA, ItemCacheKeys.ALL)
        self._cache.invalidate(CacheCategory.DATA, ItemCacheKeys.for_entry(entry.id))
        self._cache.invalidate(CacheCategory.DATA, ItemCacheKeys.for_group(entry.group_id))
        self._cache.invalidate(
            CacheCategory.CALCULATION, ItemCacheKeys.entry_total(entry.id)
        )
        self._cache.invalidate(
            CacheCategory.CALCULATION, ItemCacheKeys.group_total(entry.group_id)
        )
