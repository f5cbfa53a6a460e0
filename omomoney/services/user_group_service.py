"""
User Group Service

Group membership. Nothing here is cached: membership lists are small and
are read far less often than entries and items.
"""

from typing import Optional
from uuid import UUID

from omomoney.models.finance import EntityKind, Group, GroupRole, User, UserGroup
from omomoney.services.base import RecordService, apply_changes
from omomoney.services.storage import SortOrder


BY_JOINED_AT = SortOrder(field="joined_at")


class UserGroupService(RecordService):
    """Data access for UserGroup records."""

    kind = EntityKind.USER_GROUP

    async def fetch_user_groups(self) -> list[UserGroup]:
        """All memberships, oldest first."""
        return await self._fetch(sort=BY_JOINED_AT)

    async def fetch_user_group(self, user_group_id: UUID) -> Optional[UserGroup]:
        return await self._fetch_by_id(user_group_id)

    async def create_user_group(
        self,
        user: User,
        group: Group,
        role: GroupRole = GroupRole.MEMBER,
    ) -> UserGroup:
        """Add a user to a group."""
        return await self._insert(
            UserGroup(user_id=user.id, group_id=group.id, role=role)
        )

    async def update_user_group(
        self,
        user_group: UserGroup,
        role: Optional[GroupRole] = None,
    ) -> UserGroup:
        updated, changed = apply_changes(user_group, role=role)
        if not changed:
            return user_group
        return await self._replace(updated, changed)

    async def delete_user_group(self, user_group: UserGroup) -> bool:
        return await self._remove(user_group)

    async def get_user_groups_for_user(self, user: User) -> list[UserGroup]:
        return await self._fetch(lambda ug: ug.user_id == user.id, sort=BY_JOINED_AT)

    async def get_user_groups_for_group(self, group: Group) -> list[UserGroup]:
        return await self._fetch(lambda ug: ug.group_id == group.id, sort=BY_JOINED_AT)

    async def get_users_in_group(self, group: Group) -> list[User]:
        """Members of a group, in the order they joined."""
        memberships = await self.get_user_groups_for_group(group)
        user_ids = [ug.user_id for ug in memberships]
        users = await self._store.query(EntityKind.USER, lambda u: u.id in user_ids)

        by_id = {user.id: user for user in users}
        # Memberships pointing at deleted users are skipped
        return [by_id[user_id] for user_id in user_ids if user_id in by_id]

    async def get_groups_for_user(self, user: User) -> list[Group]:
        """Groups a user belongs to, in the order they joined."""
        memberships = await self.get_user_groups_for_user(user)
        group_ids = [ug.group_id for ug in memberships]
        groups = await self._store.query(EntityKind.GROUP, lambda g: g.id in group_ids)

        by_id = {group.id: group for group in groups}
        return [by_id[group_id] for group_id in group_ids if group_id in by_id]

    async def is_member(self, user: User, group: Group) -> bool:
        matches = await self._count(
            lambda ug: ug.user_id == user.id and ug.group_id == group.id
        )
        return matches > 0

    async def get_user_groups_count(self) -> int:
        return await self._count()
