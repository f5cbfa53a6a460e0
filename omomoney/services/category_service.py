"""
Category Service

CRUD for categories, which belong to one group.

Cached: the full list, the per-group lists and counts, name-uniqueness
checks, and the number of entries filed under each category. The entry
counts are invalidated by EntryService, since only entry mutations change
them.
"""

from typing import Optional
from uuid import UUID

from omomoney.cache import (
    CacheCategory,
    CategoryCacheKeys,
    family_prefix,
    scoped_key,
)
from omomoney.config import get_settings
from omomoney.models.finance import Category, EntityKind, Group
from omomoney.services.base import RecordService, apply_changes
from omomoney.services.storage import SortOrder


BY_NAME = SortOrder(field="name")


class CategoryService(RecordService):
    """Data access for Category records."""

    kind = EntityKind.CATEGORY

    async def fetch_categories(self) -> list[Category]:
        """All categories of all groups, sorted by name."""
        return await self._read_through(
            CacheCategory.DATA,
            CategoryCacheKeys.ALL,
            list,
            lambda: self._fetch(sort=BY_NAME),
        )

    async def fetch_category(self, category_id: UUID) -> Optional[Category]:
        return await self._fetch_by_id(category_id)

    async def create_category(
        self,
        name: str,
        group: Group,
        color: Optional[str] = None,
    ) -> Category:
        """
        Create a category in a group.

        The color defaults to AppSettings.default_category_color.
        """
        color = color or get_settings().app.default_category_color
        category = await self._insert(
            Category(name=name, color=color, group_id=group.id)
        )

        self._invalidate_lists(category.group_id)
        self._cache.invalidate(CacheCategory.DATA, CategoryCacheKeys.COUNT)
        self._cache.invalidate(
            CacheCategory.DATA, CategoryCacheKeys.count_for_group(category.group_id)
        )
        return category

    async def update_category(
        self,
        category: Category,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Category:
        updated, changed = apply_changes(category, name=name, color=color)
        if not changed:
            return category

        await self._replace(updated, changed)

        self._invalidate_lists(updated.group_id)
        return updated

    async def delete_category(self, category: Category) -> bool:
        """
        Delete a category.

        Entries filed under it are kept; moving them is up to the caller.
        """
        deleted = await self._remove(category)

        self._invalidate_lists(category.group_id)
        self._cache.invalidate(CacheCategory.DATA, CategoryCacheKeys.COUNT)
        self._cache.invalidate(
            CacheCategory.DATA, CategoryCacheKeys.count_for_group(category.group_id)
        )
        self._cache.invalidate(
            CacheCategory.DATA, CategoryCacheKeys.entry_count(category.id)
        )
        return deleted

    async def get_categories_for_group(self, group: Group) -> list[Category]:
        """Categories of one group, sorted by name."""
        return await self._read_through(
            CacheCategory.DATA,
            CategoryCacheKeys.for_group(group.id),
            list,
            lambda: self._fetch(lambda c: c.group_id == group.id, sort=BY_NAME),
        )

    async def category_exists(
        self,
        name: str,
        group: Optional[Group] = None,
        excluding: Optional[UUID] = None,
    ) -> bool:
        """
        Whether a category with exactly this name exists.

        Args:
            name: Name to look for (compared after trimming)
            group: Only look inside this group. None searches every group.
            excluding: Ignore this category id (used when renaming)
        """
        name = name.strip()
        group_id = group.id if group else None
        key = scoped_key(CategoryCacheKeys.EXISTS, name, group_id, excluding)

        def matches(category: Category) -> bool:
            if category.name != name or category.id == excluding:
                return False
            return group_id is None or category.group_id == group_id

        async def load() -> bool:
            return await self._count(matches) > 0

        return await self._read_through(CacheCategory.VALIDATION, key, bool, load)

    async def get_categories_count(self) -> int:
        return await self._read_through(
            CacheCategory.DATA,
            CategoryCacheKeys.COUNT,
            int,
            self._count,
        )

    async def get_categories_count_for_group(self, group: Group) -> int:
        return await self._read_through(
            CacheCategory.DATA,
            CategoryCacheKeys.count_for_group(group.id),
            int,
            lambda: self._count(lambda c: c.group_id == group.id),
        )

    async def get_entries_count_for_category(self, category: Category) -> int:
        """Number of entries filed under a category."""
        return await self._read_through(
            CacheCategory.DATA,
            CategoryCacheKeys.entry_count(category.id),
            int,
            lambda: self._store.count(
                EntityKind.ENTRY, lambda e: e.category_id == category.id
            ),
        )

    def _invalidate_lists(self, group_id: UUID) -> None:
        self._cache.invalidate(CacheCategory.DATA, CategoryCacheKeys.ALL)
        self._cache.invalidate(CacheCategory.DATA, CategoryCacheKeys.for_group(group_id))
        self._cache.invalidate_prefix(
            CacheCategory.VALIDATION, family_prefix(CategoryCacheKeys.EXISTS)
        )
