"""
Cache Package

One in-memory cache per process, partitioned by category with a TTL each.
See omomoney.cache.manager for the expiry rules.
"""

from omomoney.cache.keys import (
    CategoryCacheKeys,
    GroupCacheKeys,
    ItemCacheKeys,
    UserCacheKeys,
    family_prefix,
    scoped_key,
)
from omomoney.cache.manager import (
    CacheCategory,
    CacheManager,
    CacheStats,
    Clock,
    SystemClock,
)

__all__ = [
    # Manager
    "CacheCategory",
    "CacheManager",
    "CacheStats",
    "Clock",
    "SystemClock",
    # Keys
    "CategoryCacheKeys",
    "GroupCacheKeys",
    "ItemCacheKeys",
    "UserCacheKeys",
    "family_prefix",
    "scoped_key",
]
