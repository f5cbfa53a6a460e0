"""
Cache Keys

Every cached result lives under a namespaced key:

    "<Service>.<operation>"                   e.g. "UserService.allUsers"
    "<Service>.<operation>.<id>[.<id>...]"    e.g. "ItemService.entryTotalAmount.<entry id>"

Keys are deterministic in the query parameters, so the service that writes
can rebuild exactly the keys that the service that reads populated.

Mutations in one service often invalidate keys owned by another (deleting
an entry changes item totals), so all key families are defined here.
"""

from typing import Optional
from uuid import UUID


def scoped_key(base: str, *parts: Optional[object]) -> str:
    """
    Append query parameters to a base key.

    None becomes "nil" so that "no group" and "group X" never collide.

    Example:
        >>> scoped_key(CategoryCacheKeys.EXISTS, "Food", None, None)
        'CategoryService.categoryExists.Food.nil.nil'
    """
    if not parts:
        return base
    suffix = ".".join("nil" if part is None else str(part) for part in parts)
    return f"{base}.{suffix}"


def family_prefix(base: str) -> str:
    """Prefix matching every scoped variant of a base key (not the base itself)."""
    return f"{base}."


class UserCacheKeys:
    ALL = "UserService.allUsers"
    COUNT = "UserService.userCount"
    EXISTS = "UserService.userExists"


class GroupCacheKeys:
    ALL = "GroupService.allGroups"
    COUNT = "GroupService.groupCount"
    EXISTS = "GroupService.groupExists"


class CategoryCacheKeys:
    ALL = "CategoryService.allCategories"
    COUNT = "CategoryService.categoryCount"
    GROUP_CATEGORIES = "CategoryService.groupCategories"
    GROUP_COUNT = "CategoryService.groupCategoryCount"
    ENTRY_COUNT = "CategoryService.entryCount"
    EXISTS = "CategoryService.categoryExists"

    @classmethod
    def for_group(cls, group_id: UUID) -> str:
        return scoped_key(cls.GROUP_CATEGORIES, group_id)

    @classmethod
    def count_for_group(cls, group_id: UUID) -> str:
        return scoped_key(cls.GROUP_COUNT, group_id)

    @classmethod
    def entry_count(cls, category_id: UUID) -> str:
        return scoped_key(cls.ENTRY_COUNT, category_id)


class ItemCacheKeys:
    ALL = "ItemService.allItems"
    ENTRY_ITEMS = "ItemService.entryItems"
    GROUP_ITEMS = "ItemService.groupItems"
    ENTRY_TOTAL = "ItemService.entryTotalAmount"
    GROUP_TOTAL = "ItemService.groupTotalAmount"

    @classmethod
    def for_entry(cls, entry_id: UUID) -> str:
        return scoped_key(cls.ENTRY_ITEMS, entry_id)

    @classmethod
    def for_group(cls, group_id: UUID) -> str:
        return scoped_key(cls.GROUP_ITEMS, group_id)

    @classmethod
    def entry_total(cls, entry_id: UUID) -> str:
        return scoped_key(cls.ENTRY_TOTAL, entry_id)

    @classmethod
    def group_total(cls, group_id: UUID) -> str:
        return scoped_key(cls.GROUP_TOTAL, group_id)
