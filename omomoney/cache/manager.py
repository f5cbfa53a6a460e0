"""
Expiring Multi-Category Cache

DESIGN DECISION: The data-access services memoize three different kinds of
results, and each kind goes stale at a different rate:

- DATA         query results (lists, counts)          5 minutes
- VALIDATION   yes/no checks ("does this name exist")  1 minute
- CALCULATION  derived totals                          10 minutes

So the cache keeps one partition per category, each with its own TTL,
and one timestamp index shared by all partitions.

EXPIRY IS LAZY: a read checks the age of the entry and evicts it if it is
too old. sweep_expired() exists only to reclaim memory; correctness never
depends on it running.

THE CACHE NEVER RAISES: expired, evicted, missing and wrongly-typed entries
all come back as None. The caller re-fetches and re-puts.

CONCURRENCY: there is no locking. One CacheManager is owned by one event
loop; every call is synchronous and never awaits, so calls made from
coroutines on that loop cannot interleave.
"""

import time
import types
from enum import Enum
from typing import Any, Optional, Protocol, TypeVar, Union, get_args, get_origin

import structlog
from pydantic import BaseModel, ConfigDict

from omomoney.config import CacheSettings, get_settings


T = TypeVar("T")


class CacheCategory(str, Enum):
    """Cache partitions. Each one has its own TTL."""
    DATA = "data"
    VALIDATION = "validation"
    CALCULATION = "calculation"


class Clock(Protocol):
    """Source of the current time, in seconds."""

    def now(self) -> float:
        ...


class SystemClock:
    """Monotonic clock; unaffected by wall-clock adjustments."""

    def now(self) -> float:
        return time.monotonic()


class CacheStats(BaseModel):
    """
    Snapshot of live entry counts per category.

    Counts are not re-checked for expiry, so entries that went stale since
    their last read are still counted until a read or a sweep evicts them.
    """
    model_config = ConfigDict(frozen=True)

    data_count: int
    validation_count: int
    calculation_count: int

    @property
    def total(self) -> int:
        return self.data_count + self.validation_count + self.calculation_count

    def to_log_dict(self) -> dict[str, int]:
        return {
            "data": self.data_count,
            "validation": self.validation_count,
            "calculation": self.calculation_count,
        }


def _matches_type(value: Any, expected_type: Any) -> bool:
    """
    Check a cached value against the type the caller asked for.

    Parameterized generics (list[User], dict[str, int]) are checked against
    their origin only; element types are not inspected. A bool never
    satisfies a request for int.
    """
    origin = get_origin(expected_type)
    if origin is Union or origin is types.UnionType:
        return any(_matches_type(value, arg) for arg in get_args(expected_type))

    target = origin or expected_type
    if target is Any:
        return True
    if isinstance(value, bool) and target is int:
        return False
    try:
        return isinstance(value, target)
    except TypeError:
        # Not a runtime-checkable type (Literal, TypeVar, ...)
        return False


class CacheManager:
    """
    In-memory cache with one partition and one TTL per CacheCategory.

    Build exactly one per process (see omomoney.orchestrator) and inject it
    into every service that reads through it.

    Example:
        >>> cache = CacheManager()
        >>> cache.put(CacheCategory.DATA, "UserService.allUsers", users)
        >>> cache.get(CacheCategory.DATA, "UserService.allUsers", list)
        [User(...), ...]
        >>> cache.get(CacheCategory.DATA, "UserService.allUsers", int)
        None
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the cache.

        Args:
            settings: TTL configuration. Defaults to CacheSettings from env.
            clock: Time source. Tests pass a controllable clock here.
        """
        settings = settings or get_settings().cache
        self._ttls: dict[CacheCategory, float] = {
            CacheCategory.DATA: settings.data_ttl_seconds,
            CacheCategory.VALIDATION: settings.validation_ttl_seconds,
            CacheCategory.CALCULATION: settings.calculation_ttl_seconds,
        }
        self._clock = clock or SystemClock()
        self._partitions: dict[CacheCategory, dict[str, Any]] = {
            category: {} for category in CacheCategory
        }
        # Shared by all partitions; keyed by (category, key)
        self._timestamps: dict[tuple[CacheCategory, str], float] = {}
        self._logger = structlog.get_logger(__name__)

    def ttl_for(self, category: CacheCategory) -> float:
        """TTL in seconds for a category."""
        return self._ttls[category]

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def put(self, category: CacheCategory, key: str, value: Any) -> None:
        """
        Store a value, replacing any previous value under the same key.

        Also restarts the entry's TTL.
        """
        self._partitions[category][key] = value
        self._timestamps[(category, key)] = self._clock.now()

    def get(
        self,
        category: CacheCategory,
        key: str,
        expected_type: type[T],
    ) -> Optional[T]:
        """
        Return the cached value if it is fresh and of the expected type.

        Any miss (never stored, expired, wrong type) evicts the entry as a
        side effect and returns None.
        """
        partition = self._partitions[category]
        inserted_at = self._timestamps.get((category, key))

        if inserted_at is not None and key in partition:
            value = partition[key]
            age = self._clock.now() - inserted_at
            if age >= self._ttls[category]:
                self._logger.debug(
                    "cache_expired", category=category.value, key=key, age=age
                )
            elif not _matches_type(value, expected_type):
                self._logger.debug(
                    "cache_type_mismatch",
                    category=category.value,
                    key=key,
                    stored_type=type(value).__name__,
                )
            else:
                return value

        self._evict(category, key)
        return None

    def invalidate(self, category: CacheCategory, key: str) -> None:
        """Remove one key. Invalidating a missing key is a no-op."""
        self._evict(category, key)

    def invalidate_prefix(self, category: CacheCategory, prefix: str) -> int:
        """
        Remove every key of a category that starts with prefix.

        Used to drop all per-entity variants of a key family, e.g. every
        "CategoryService.categoryExists.*" entry.

        Returns:
            Number of entries removed
        """
        partition = self._partitions[category]
        keys = [key for key in partition if key.startswith(prefix)]
        for key in keys:
            self._evict(category, key)
        return len(keys)

    def invalidate_category(self, category: CacheCategory) -> None:
        """Remove every key of one category. Other categories are untouched."""
        partition = self._partitions[category]
        for key in partition:
            self._timestamps.pop((category, key), None)
        partition.clear()

    def invalidate_all(self) -> None:
        """Clear every partition and the whole timestamp index."""
        for partition in self._partitions.values():
            partition.clear()
        self._timestamps.clear()
        self._logger.info("cache_cleared")

    def sweep_expired(self) -> int:
        """
        Evict every entry, in every category, whose TTL has elapsed.

        Returns:
            Number of entries evicted
        """
        now = self._clock.now()
        expired = [
            (category, key)
            for (category, key), inserted_at in self._timestamps.items()
            if now - inserted_at >= self._ttls[category]
        ]
        for category, key in expired:
            self._evict(category, key)

        if expired:
            self._logger.debug("cache_swept", evicted=len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        """Entry counts per category (not re-checked for expiry)."""
        return CacheStats(
            data_count=len(self._partitions[CacheCategory.DATA]),
            validation_count=len(self._partitions[CacheCategory.VALIDATION]),
            calculation_count=len(self._partitions[CacheCategory.CALCULATION]),
        )

    def _evict(self, category: CacheCategory, key: str) -> None:
        self._partitions[category].pop(key, None)
        self._timestamps.pop((category, key), None)

    # -------------------------------------------------------------------------
    # Per-category shorthands
    # -------------------------------------------------------------------------

    def put_data(self, key: str, value: Any) -> None:
        self.put(CacheCategory.DATA, key, value)

    def get_data(self, key: str, expected_type: type[T]) -> Optional[T]:
        return self.get(CacheCategory.DATA, key, expected_type)

    def invalidate_data(self, key: str) -> None:
        self.invalidate(CacheCategory.DATA, key)

    def put_validation(self, key: str, is_valid: bool) -> None:
        self.put(CacheCategory.VALIDATION, key, is_valid)

    def get_validation(self, key: str) -> Optional[bool]:
        return self.get(CacheCategory.VALIDATION, key, bool)

    def invalidate_validation(self, key: str) -> None:
        self.invalidate(CacheCategory.VALIDATION, key)

    def put_calculation(self, key: str, result: Any) -> None:
        self.put(CacheCategory.CALCULATION, key, result)

    def get_calculation(self, key: str, expected_type: type[T]) -> Optional[T]:
        return self.get(CacheCategory.CALCULATION, key, expected_type)

    def invalidate_calculation(self, key: str) -> None:
        self.invalidate(CacheCategory.CALCULATION, key)
