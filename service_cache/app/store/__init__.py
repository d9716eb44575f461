"""
Store package.

Defines the four primitives the cache needs from its backing store
(upsert, touch with optional read, delete, delete-expired) and provides
PostgreSQL implementations for blocking and coroutine callers, plus an
in-process store for tests and local development.
"""

from .base import AsyncCacheStore, CacheStore
from .memory import AsyncInMemoryCacheStore, InMemoryCacheStore
from .postgres import AsyncPostgresCacheStore, PostgresCacheStore
from .queries import CacheTableQueries

__all__ = [
    "AsyncCacheStore",
    "AsyncInMemoryCacheStore",
    "AsyncPostgresCacheStore",
    "CacheStore",
    "CacheTableQueries",
    "InMemoryCacheStore",
    "PostgresCacheStore",
]
