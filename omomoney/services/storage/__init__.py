"""
Storage Services Package

Provides the abstract record store and its implementations.
In-memory is the default backend; Google Sheets is the hosted one.
"""

from omomoney.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    Predicate,
    RecordStore,
    SortOrder,
    StorageError,
    apply_query,
)
from omomoney.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)
from omomoney.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "Predicate",
    "RecordStore",
    "SortOrder",
    "apply_query",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
