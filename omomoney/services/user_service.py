"""
User Service

CRUD for users. The user list, the user count and name-uniqueness checks
are cached.
"""

from typing import Optional
from uuid import UUID

from omomoney.cache import CacheCategory, UserCacheKeys, family_prefix, scoped_key
from omomoney.models.finance import EntityKind, User
from omomoney.services.base import RecordService, apply_changes
from omomoney.services.storage import SortOrder


class UserService(RecordService):
    """Data access for User records."""

    kind = EntityKind.USER

    async def fetch_users(self) -> list[User]:
        """All users, sorted by name."""
        return await self._read_through(
            CacheCategory.DATA,
            UserCacheKeys.ALL,
            list,
            lambda: self._fetch(sort=SortOrder(field="name")),
        )

    async def fetch_user(self, user_id: UUID) -> Optional[User]:
        return await self._fetch_by_id(user_id)

    async def create_user(self, name: str, email: Optional[str] = None) -> User:
        """
        Create and store a new user.

        Raises:
            ValueError: If name or email fail validation
            StorageError: If the store rejects the write
        """
        user = await self._insert(User(name=name, email=email))

        self._cache.invalidate(CacheCategory.DATA, UserCacheKeys.ALL)
        self._cache.invalidate(CacheCategory.DATA, UserCacheKeys.COUNT)
        self._invalidate_exists()
        return user

    async def update_user(
        self,
        user: User,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Apply the non-None fields and return the updated user."""
        updated, changed = apply_changes(user, name=name, email=email)
        if not changed:
            return user

        await self._replace(updated, changed)

        self._cache.invalidate(CacheCategory.DATA, UserCacheKeys.ALL)
        self._invalidate_exists()
        return updated

    async def delete_user(self, user: User) -> bool:
        deleted = await self._remove(user)

        self._cache.invalidate(CacheCategory.DATA, UserCacheKeys.ALL)
        self._cache.invalidate(CacheCategory.DATA, UserCacheKeys.COUNT)
        self._invalidate_exists()
        return deleted

    async def user_exists(self, name: str, excluding: Optional[UUID] = None) -> bool:
        """
        Whether a user with exactly this name exists.

        Args:
            name: Name to look for (compared after trimming)
            excluding: Ignore this user id (used when renaming)
        """
        name = name.strip()
        key = scoped_key(UserCacheKeys.EXISTS, name, excluding)

        async def load() -> bool:
            matches = await self._count(
                lambda u: u.name == name and u.id != excluding
            )
            return matches > 0

        return await self._read_through(CacheCategory.VALIDATION, key, bool, load)

    async def get_users_count(self) -> int:
        return await self._read_through(
            CacheCategory.DATA,
            UserCacheKeys.COUNT,
            int,
            self._count,
        )

    def _invalidate_exists(self) -> None:
        self._cache.invalidate_prefix(
            CacheCategory.VALIDATION, family_prefix(UserCacheKeys.EXISTS)
        )
