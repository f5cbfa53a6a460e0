"""
Core Data Models for OMOMoney

These models define the records the data-access layer reads from and writes
to the store. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Every record carries its own UUID and creation timestamp.
Relationships are expressed as foreign-key ids (group_id, entry_id, ...)
rather than object references, so any store that can filter on a field
can answer relationship queries.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from omomoney.config import AVAILABLE_CURRENCIES
from omomoney.validation import get_input_validator


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for all record times."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Convert a datetime to aware UTC. Naive values are taken to be UTC.

    Record times are compared and sorted against each other, and Python
    refuses to compare naive with aware datetimes.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntityKind(str, Enum):
    """
    Kinds of records held by the store.

    The store partitions records by kind; each kind maps to exactly one
    record model below.
    """
    USER = "user"
    GROUP = "group"
    USER_GROUP = "user_group"
    CATEGORY = "category"
    ENTRY = "entry"
    ITEM = "item"


class GroupRole(str, Enum):
    """Role of a user inside a group."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


# =============================================================================
# BASE RECORD
# =============================================================================

class Record(BaseModel):
    """
    Base class for everything the store persists.

    Subclasses set `kind` so the store knows which partition a record
    belongs to.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    kind: ClassVar[EntityKind]

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the record was created"
    )
    last_modified_at: Optional[datetime] = Field(
        default=None,
        description="Last update timestamp"
    )

    @field_validator('created_at', 'last_modified_at')
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None


def _check_name(v: str) -> str:
    message = get_input_validator().name_validation_message(v)
    if message:
        raise ValueError(message)
    return v


# =============================================================================
# DOMAIN RECORDS
# =============================================================================

class User(Record):
    """A person tracking expenses."""
    kind: ClassVar[EntityKind] = EntityKind.USER

    name: str = Field(
        ...,
        description="Display name"
    )
    email: Optional[str] = Field(
        default=None,
        description="Contact email (optional)"
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """Empty email means no email."""
        if v is None or not v:
            return None
        message = get_input_validator().email_validation_message(v)
        if message:
            raise ValueError(message)
        return v


class Group(Record):
    """
    A shared ledger (household, trip, ...).

    All amounts in a group are in the group's currency.
    """
    kind: ClassVar[EntityKind] = EntityKind.GROUP

    name: str = Field(
        ...,
        description="Group name"
    )
    currency: str = Field(
        default="USD",
        description="ISO currency code for all amounts in the group"
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if v not in AVAILABLE_CURRENCIES:
            raise ValueError(get_input_validator().currency_validation_message(v))
        return v


class UserGroup(Record):
    """Membership of a user in a group."""
    kind: ClassVar[EntityKind] = EntityKind.USER_GROUP

    user_id: UUID
    group_id: UUID
    role: GroupRole = Field(
        default=GroupRole.MEMBER,
        description="Role of the user in the group"
    )
    joined_at: datetime = Field(
        default_factory=utcnow,
        description="When the user joined"
    )

    @field_validator('joined_at')
    @classmethod
    def normalize_joined_at(cls, v: datetime) -> datetime:
        return as_utc(v)


class Category(Record):
    """Spending category, scoped to one group."""
    kind: ClassVar[EntityKind] = EntityKind.CATEGORY

    name: str
    color: str = Field(
        default="#007AFF",
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Hex color used to display the category"
    )
    group_id: UUID

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)


class Entry(Record):
    """
    A dated expense in a group, filed under a category.

    The amount of an entry is the sum of its items.
    """
    kind: ClassVar[EntityKind] = EntityKind.ENTRY

    description: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    date: datetime = Field(
        ...,
        description="When the expense happened"
    )
    category_id: UUID
    group_id: UUID

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class Item(Record):
    """Line item of an entry."""
    kind: ClassVar[EntityKind] = EntityKind.ITEM

    description: Optional[str] = Field(
        default=None,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in the group's currency"
    )
    quantity: int = Field(
        default=1,
        ge=0,
        le=2**31 - 1,
    )
    entry_id: Optional[UUID] = None


RECORD_TYPES: dict[EntityKind, type[Record]] = {
    EntityKind.USER: User,
    EntityKind.GROUP: Group,
    EntityKind.USER_GROUP: UserGroup,
    EntityKind.CATEGORY: Category,
    EntityKind.ENTRY: Entry,
    EntityKind.ITEM: Item,
}


def safe_add(total: Decimal, value: Optional[Decimal]) -> Decimal:
    """
    Add two decimals, collapsing NaN to zero.

    Missing values count as zero.
    """
    if value is None:
        value = Decimal("0")
    if total.is_nan() or value.is_nan():
        return Decimal("0")
    return total + value
