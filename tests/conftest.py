"""
Shared fixtures.

Every test runs against the in-memory store and a cache driven by a fake
clock, so expiry is tested by advancing time rather than sleeping.
"""

from typing import Optional

import pytest

from omomoney.audit import AuditLogger
from omomoney.cache import CacheManager
from omomoney.config import CacheSettings
from omomoney.models.finance import EntityKind, Record
from omomoney.services import (
    CategoryService,
    EntryService,
    GroupService,
    ItemService,
    UserGroupService,
    UserService,
)
from omomoney.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    Predicate,
    SortOrder,
    StorageError,
)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


class CountingStore(InMemoryRecordStore):
    """
    In-memory store that counts calls and can be told to fail writes.

    Lets tests tell a cache hit (no query) from a miss.
    """

    def __init__(self):
        super().__init__()
        self.query_calls = 0
        self.count_calls = 0
        self.fail_writes = False

    async def query(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortOrder] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        self.query_calls += 1
        return await super().query(kind, predicate, sort, limit)

    async def count(self, kind: EntityKind, predicate: Optional[Predicate] = None) -> int:
        self.count_calls += 1
        return await super().count(kind, predicate)

    async def save(self, record: Record) -> bool:
        if self.fail_writes:
            raise StorageError("store is read-only")
        return await super().save(record)

    async def delete(self, record: Record) -> bool:
        if self.fail_writes:
            raise StorageError("store is read-only")
        return await super().delete(record)

    @property
    def reads(self) -> int:
        return self.query_calls + self.count_calls


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings(
        data_ttl_seconds=300,
        validation_ttl_seconds=60,
        calculation_ttl_seconds=600,
    )


@pytest.fixture
def cache(cache_settings, clock) -> CacheManager:
    return CacheManager(cache_settings, clock=clock)


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def users(store, cache, audit_logger) -> UserService:
    return UserService(store, cache, audit_logger)


@pytest.fixture
def groups(store, cache, audit_logger) -> GroupService:
    return GroupService(store, cache, audit_logger)


@pytest.fixture
def user_groups(store, cache, audit_logger) -> UserGroupService:
    return UserGroupService(store, cache, audit_logger)


@pytest.fixture
def categories(store, cache, audit_logger) -> CategoryService:
    return CategoryService(store, cache, audit_logger)


@pytest.fixture
def entries(store, cache, audit_logger) -> EntryService:
    return EntryService(store, cache, audit_logger)


@pytest.fixture
def items(store, cache, audit_logger) -> ItemService:
    return ItemService(store, cache, audit_logger)
