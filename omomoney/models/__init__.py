"""
Data Models Package

This package contains all Pydantic models used in OMOMoney.
All data flowing through the store must conform to these schemas.
"""

from omomoney.models.finance import (
    RECORD_TYPES,
    Category,
    EntityKind,
    Entry,
    Group,
    GroupRole,
    Item,
    Record,
    User,
    UserGroup,
    as_utc,
    safe_add,
    utcnow,
)
from omomoney.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance records
    "RECORD_TYPES",
    "Category",
    "EntityKind",
    "Entry",
    "Group",
    "GroupRole",
    "Item",
    "Record",
    "User",
    "UserGroup",
    "as_utc",
    "safe_add",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
