"""
Build stores and caches from configuration.
"""

from typing import Optional, Union, TYPE_CHECKING

from shared.config import CacheConfig
from .expiration.clock import SystemClock
from .operations.cache import AsyncDistributedCache, DistributedCache
from .operations.sweeper import ExpiredItemsSweeper
from .store.postgres import AsyncPostgresCacheStore, PostgresCacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def create_store(config: CacheConfig) -> PostgresCacheStore:
    """Blocking PostgreSQL store; call ``start()`` before use."""
    return PostgresCacheStore(
        config.postgres_dsn,
        config.schema_name,
        config.table_name,
        min_size=config.pool_min_size,
        max_size=config.pool_max_size,
        command_timeout=config.command_timeout,
        create_infrastructure=config.create_infrastructure,
    )


def create_async_store(config: CacheConfig) -> AsyncPostgresCacheStore:
    """Coroutine PostgreSQL store; await ``start()`` before use."""
    return AsyncPostgresCacheStore(
        config.postgres_dsn,
        config.schema_name,
        config.table_name,
        min_size=config.pool_min_size,
        max_size=config.pool_max_size,
        command_timeout=config.command_timeout,
        create_infrastructure=config.create_infrastructure,
    )


def create_cache(
    config: CacheConfig,
    clock: Optional[SystemClock] = None,
    metrics: Optional["MetricsCollector"] = None,
) -> DistributedCache:
    """Start a blocking store and wrap it in a cache."""
    store = create_store(config)
    store.start()
    return DistributedCache(store, clock=clock, metrics=metrics)


async def create_async_cache(
    config: CacheConfig,
    clock: Optional[SystemClock] = None,
    metrics: Optional["MetricsCollector"] = None,
) -> AsyncDistributedCache:
    """Start a coroutine store and wrap it in a cache."""
    store = create_async_store(config)
    await store.start()
    return AsyncDistributedCache(store, clock=clock, metrics=metrics)


def create_sweeper(
    cache: Union[DistributedCache, AsyncDistributedCache],
    config: CacheConfig,
) -> ExpiredItemsSweeper:
    """Sweeper running at the configured deletion interval."""
    return ExpiredItemsSweeper(cache, interval_seconds=config.expired_items_deletion_interval)
