"""
Composition Root for OMOMoney

This module builds the one set of components a process runs with:

    store  ->  cache  ->  services
                 ^
              sweeper

DESIGN DECISION: There is exactly one CacheManager per process, created
here and injected into every service. Services never build their own
cache, so an invalidation in one service is seen by every other service.

The sweeper is an asyncio task on the same event loop as the services.
Cache calls never await, so a sweep can never interleave with a service
call half-way through a read or an invalidation.
"""

import asyncio
from typing import NamedTuple, Optional

import structlog
from pydantic import ValidationError

from omomoney.audit import AuditLogger
from omomoney.cache import CacheManager, Clock
from omomoney.config import get_settings
from omomoney.services import (
    CategoryService,
    EntryService,
    GroupService,
    ItemService,
    UserGroupService,
    UserService,
)
from omomoney.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStore,
)


logger = structlog.get_logger(__name__)


class CacheSweeper:
    """
    Periodically evicts expired cache entries.

    Expiry is enforced on read anyway; sweeping only keeps entries that
    are never read again from piling up.
    """

    def __init__(
        self,
        cache: CacheManager,
        interval_seconds: Optional[float] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._cache = cache
        if interval_seconds is None:
            interval_seconds = get_settings().cache.sweep_interval_seconds
        self._interval = interval_seconds
        self._audit_logger = audit_logger
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start background sweeping on the running loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._sweep_loop())
            logger.info("cache_sweeper_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop background sweeping."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("cache_sweeper_stopped")

    async def sweep_once(self) -> int:
        """Run one sweep and audit it if anything was evicted."""
        evicted = self._cache.sweep_expired()
        if evicted and self._audit_logger:
            await self._audit_logger.log_cache_swept(
                evicted, self._cache.stats().to_log_dict()
            )
        return evicted

    async def clear(self, reason: str) -> None:
        """Drop every cached entry, e.g. after the store was edited out of band."""
        self._cache.invalidate_all()
        if self._audit_logger:
            await self._audit_logger.log_cache_cleared(reason)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.sweep_once()


class AppComponents(NamedTuple):
    """Everything a process needs, wired to one store and one cache."""
    store: RecordStore
    cache: CacheManager
    audit_logger: AuditLogger
    sweeper: CacheSweeper
    users: UserService
    groups: GroupService
    user_groups: UserGroupService
    categories: CategoryService
    entries: EntryService
    items: ItemService
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    use_storage: Optional[bool] = None,
    store: Optional[RecordStore] = None,
    clock: Optional[Clock] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage. Defaults to
                    AppSettings.storage_backend == "google_sheets".
                    Falls back to in-memory storage if Sheets is not
                    configured.
        store: Use this store instead of building one.
        clock: Time source for the cache (tests).

    Returns:
        AppComponents sharing a single CacheManager
    """
    settings = get_settings()
    if use_storage is None:
        use_storage = settings.app.storage_backend == "google_sheets"

    sheets_client = None
    audit_logger = None

    if store is None and use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsRecordStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValidationError as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            store = None

    store = store or InMemoryRecordStore()
    audit_logger = audit_logger or AuditLogger()  # Local-only logging
    cache = CacheManager(settings.cache, clock=clock)

    return AppComponents(
        store=store,
        cache=cache,
        audit_logger=audit_logger,
        sweeper=CacheSweeper(cache, audit_logger=audit_logger),
        users=UserService(store, cache, audit_logger),
        groups=GroupService(store, cache, audit_logger),
        user_groups=UserGroupService(store, cache, audit_logger),
        categories=CategoryService(store, cache, audit_logger),
        entries=EntryService(store, cache, audit_logger),
        items=ItemService(store, cache, audit_logger),
        sheets_client=sheets_client,
    )
