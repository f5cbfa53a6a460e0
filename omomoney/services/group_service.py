"""
Group Service

CRUD for groups. Cached the same way as users: the list, the count and
name-uniqueness checks.
"""

from typing import Optional
from uuid import UUID

from omomoney.cache import (
    CacheCategory,
    CategoryCacheKeys,
    GroupCacheKeys,
    ItemCacheKeys,
    family_prefix,
    scoped_key,
)
from omomoney.config import get_settings
from omomoney.models.finance import EntityKind, Group
from omomoney.services.base import RecordService, apply_changes
from omomoney.services.storage import SortOrder


class GroupService(RecordService):
    """Data access for Group records."""

    kind = EntityKind.GROUP

    async def fetch_groups(self) -> list[Group]:
        """All groups, sorted by name."""
        return await self._read_through(
            CacheCategory.DATA,
            GroupCacheKeys.ALL,
            list,
            lambda: self._fetch(sort=SortOrder(field="name")),
        )

    async def fetch_group(self, group_id: UUID) -> Optional[Group]:
        return await self._fetch_by_id(group_id)

    async def create_group(self, name: str, currency: Optional[str] = None) -> Group:
        """
        Create and store a new group.

        The currency defaults to AppSettings.default_currency.
        """
        currency = currency or get_settings().app.default_currency
        group = await self._insert(Group(name=name, currency=currency))

        self._cache.invalidate(CacheCategory.DATA, GroupCacheKeys.ALL)
        self._cache.invalidate(CacheCategory.DATA, GroupCacheKeys.COUNT)
        self._invalidate_exists()
        return group

    async def update_group(
        self,
        group: Group,
        name: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Group:
        updated, changed = apply_changes(group, name=name, currency=currency)
        if not changed:
            return group

        await self._replace(updated, changed)

        self._cache.invalidate(CacheCategory.DATA, GroupCacheKeys.ALL)
        self._invalidate_exists()
        return updated

    async def delete_group(self, group: Group) -> bool:
        """
        Delete a group.

        Categories, entries and memberships of the group are not deleted;
        the per-group results cached for them are dropped.
        """
        deleted = await self._remove(group)

        self._cache.invalidate(CacheCategory.DATA, GroupCacheKeys.ALL)
        self._cache.invalidate(CacheCategory.DATA, GroupCacheKeys.COUNT)
        self._invalidate_exists()
        self._cache.invalidate(CacheCategory.DATA, CategoryCacheKeys.for_group(group.id))
        self._cache.invalidate(
            CacheCategory.DATA, CategoryCacheKeys.count_for_group(group.id)
        )
        self._cache.invalidate(CacheCategory.DATA, ItemCacheKeys.for_group(group.id))
        self._cache.invalidate(
            CacheCategory.CALCULATION, ItemCacheKeys.group_total(group.id)
        )
        return deleted

    async def group_exists(self, name: str, excluding: Optional[UUID] = None) -> bool:
        """Whether a group with exactly this name exists (ignoring `excluding`)."""
        name = name.strip()
        key = scoped_key(GroupCacheKeys.EXISTS, name, excluding)

        async def load() -> bool:
            matches = await self._count(
                lambda g: g.name == name and g.id != excluding
            )
            return matches > 0

        return await self._read_through(CacheCategory.VALIDATION, key, bool, load)

    async def get_groups_count(self) -> int:
        return await self._read_through(
            CacheCategory.DATA,
            GroupCacheKeys.COUNT,
            int,
            self._count,
        )

    def _invalidate_exists(self) -> None:
        self._cache.invalidate_prefix(
            CacheCategory.VALIDATION, family_prefix(GroupCacheKeys.EXISTS)
        )
