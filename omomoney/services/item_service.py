"""
Item Service

CRUD for line items, plus the derived totals.

Cached:
- DATA: all items, items per entry, items per group
- CALCULATION: total per entry, total per group

An item only knows its entry; the group it counts towards comes from the
entry. Mutations look the entry up before writing so that the exact
per-group keys can be dropped afterwards.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from omomoney.cache import CacheCategory, ItemCacheKeys, family_prefix
from omomoney.models.finance import EntityKind, Entry, Group, Item, safe_add
from omomoney.services.base import RecordService, apply_changes
from omomoney.services.storage import SortOrder


OLDEST_FIRST = SortOrder(field="created_at")


class ItemService(RecordService):
    """Data access for Item records."""

    kind = EntityKind.ITEM

    async def fetch_items(self) -> list[Item]:
        return await self._read_through(
            CacheCategory.DATA,
            ItemCacheKeys.ALL,
            list,
            lambda: self._fetch(sort=OLDEST_FIRST),
        )

    async def fetch_item(self, item_id: UUID) -> Optional[Item]:
        return await self._fetch_by_id(item_id)

    async def create_item(
        self,
        amount: Decimal,
        quantity: int,
        entry: Optional[Entry],
        description: Optional[str] = None,
    ) -> Item:
        """
        Create an item under an entry.

        Raises:
            ValueError: If amount is negative or NaN, or quantity is out of range
            StorageError: If the store rejects the write
        """
        item = await self._insert(
            Item(
                amount=amount,
                quantity=quantity,
                entry_id=entry.id if entry else None,
                description=description,
            )
        )

        self._invalidate_for(item.entry_id, entry.group_id if entry else None)
        return item

    async def update_item(
        self,
        item: Item,
        description: Optional[str] = None,
        amount: Optional[Decimal] = None,
        quantity: Optional[int] = None,
    ) -> Item:
        updated, changed = apply_changes(
            item,
            description=description,
            amount=amount,
            quantity=quantity,
        )
        if not changed:
            return item

        entry = await self._parent_entry(item)
        await self._replace(updated, changed)

        self._invalidate_for(item.entry_id, entry.group_id if entry else None)
        return updated

    async def delete_item(self, item: Item) -> bool:
        entry = await self._parent_entry(item)
        deleted = await self._remove(item)

        self._invalidate_for(item.entry_id, entry.group_id if entry else None)
        return deleted

    async def get_items_for_entry(self, entry: Entry) -> list[Item]:
        return await self._read_through(
            CacheCategory.DATA,
            ItemCacheKeys.for_entry(entry.id),
            list,
            lambda: self._fetch(lambda i: i.entry_id == entry.id, sort=OLDEST_FIRST),
        )

    async def get_items_for_group(self, group: Group) -> list[Item]:
        """Items of every entry in a group."""
        async def load() -> list[Item]:
            entries = await self._store.query(
                EntityKind.ENTRY, lambda e: e.group_id == group.id
            )
            entry_ids = {entry.id for entry in entries}
            return await self._fetch(lambda i: i.entry_id in entry_ids, sort=OLDEST_FIRST)

        return await self._read_through(
            CacheCategory.DATA,
            ItemCacheKeys.for_group(group.id),
            list,
            load,
        )

    async def calculate_total_for_entry(self, entry: Entry) -> Decimal:
        """Sum of item amounts of an entry. Quantity is not applied."""
        async def load() -> Decimal:
            return _total(await self.get_items_for_entry(entry))

        return await self._read_through(
            CacheCategory.CALCULATION,
            ItemCacheKeys.entry_total(entry.id),
            Decimal,
            load,
        )

    async def calculate_total_for_group(self, group: Group) -> Decimal:
        """Sum of item amounts over every entry of a group."""
        async def load() -> Decimal:
            return _total(await self.get_items_for_group(group))

        return await self._read_through(
            CacheCategory.CALCULATION,
            ItemCacheKeys.group_total(group.id),
            Decimal,
            load,
        )

    async def get_items_count(self) -> int:
        return await self._count()

    async def _parent_entry(self, item: Item) -> Optional[Entry]:
        if item.entry_id is None:
            return None
        entries = await self._store.query(
            EntityKind.ENTRY, lambda e: e.id == item.entry_id, limit=1
        )
        return entries[0] if entries else None

    def _invalidate_for(
        self,
        entry_id: Optional[UUID],
        group_id: Optional[UUID],
    ) -> None:
        self._cache.invalidate(CacheCategory.DATA, ItemCacheKeys.ALL)
        if entry_id is None:
            return

        self._cache.invalidate(CacheCategory.DATA, ItemCacheKeys.for_entry(entry_id))
        self._cache.invalidate(
            CacheCategory.CALCULATION, ItemCacheKeys.entry_total(entry_id)
        )

        if group_id is not None:
            self._cache.invalidate(CacheCategory.DATA, ItemCacheKeys.for_group(group_id))
            self._cache.invalidate(
                CacheCategory.CALCULATION, ItemCacheKeys.group_total(group_id)
            )
        else:
            # Entry is gone, so the group is unknown
            self._cache.invalidate_prefix(
                CacheCategory.DATA, family_prefix(ItemCacheKeys.GROUP_ITEMS)
            )
            self._cache.invalidate_prefix(
                CacheCategory.CALCULATION, family_prefix(ItemCacheKeys.GROUP_TOTAL)
            )


def _total(items: list[Item]) -> Decimal:
    total = Decimal("0")
    for item in items:
        total = safe_add(total, item.amount)
    return total
