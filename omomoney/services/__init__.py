"""
Services Package

Data-access services (one per record kind) and the storage backends they
read from and write to.
"""

from omomoney.services.base import RecordService, apply_changes
from omomoney.services.category_service import CategoryService
from omomoney.services.entry_service import EntryService
from omomoney.services.group_service import GroupService
from omomoney.services.item_service import ItemService
from omomoney.services.user_group_service import UserGroupService
from omomoney.services.user_service import UserService

__all__ = [
    "RecordService",
    "apply_changes",
    "CategoryService",
    "EntryService",
    "GroupService",
    "ItemService",
    "UserGroupService",
    "UserService",
]
