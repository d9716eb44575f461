"""
Cache operations over a shared store.

``DistributedCache`` blocks the calling thread while the store works;
``AsyncDistributedCache`` yields to the event loop instead. Both keep no
shared mutable state of their own: the store is the single point of
synchronization, so any number of callers and processes may use the same
table concurrently.
"""

import time
from datetime import datetime
from typing import Optional, Tuple, TYPE_CHECKING

from shared.errors import StoreError, ValidationError
from shared.logging import get_logger
from ..expiration.clock import SystemClock, UtcSystemClock
from ..expiration.policy import compute_absolute_expiration, validate_expiration
from ..models import CacheEntryOptions, WriteOutcome, WriteResult
from ..store.base import AsyncCacheStore, CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def _validate_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValidationError("Cache key must be a non-empty string", details={"key": repr(key)})


def _validate_value(value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise ValidationError(
            "Cache value must be bytes",
            details={"type": type(value).__name__}
        )


def _validate_now(now: datetime) -> None:
    if not isinstance(now, datetime) or now.tzinfo is None:
        raise ValidationError(
            "Sweep time must be a timezone-aware datetime",
            details={"now": repr(now)}
        )


class _CacheOperationsBase:
    """Validation, logging and metrics shared by both execution modes."""

    def __init__(
        self,
        clock: Optional[SystemClock] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.clock = clock or UtcSystemClock()
        self.metrics = metrics
        self.logger = get_logger("cache.operations")

    def _prepare_write(self, key: str, value: bytes,
                       options: Optional[CacheEntryOptions]) -> Tuple[datetime, Optional[datetime]]:
        """Validate a write and resolve its absolute expiration, before any store call."""
        _validate_key(key)
        _validate_value(value)
        options = options or CacheEntryOptions()

        now = self.clock.utc_now()
        absolute_expiration = compute_absolute_expiration(now, options)
        validate_expiration(options.sliding_expiration, absolute_expiration)
        return now, absolute_expiration

    def _finish_write(self, key: str, result: WriteResult, started: float) -> None:
        if result.outcome is WriteOutcome.FAILED:
            self._on_store_error("set", key, result.error, started)
            raise result.error

        if result.outcome is WriteOutcome.CONFLICT_IGNORED:
            # Another writer created the key first; either value is acceptable.
            self.logger.debug("Concurrent insert for cache key ignored", key=key)
        else:
            self.logger.debug("Cache entry written", key=key)
        self._record("set", result.outcome.value, started)

    def _finish_read(self, operation: str, key: str, value: Optional[bytes], started: float) -> None:
        if operation == "refresh":
            self._record(operation, "ok", started)
            return

        if value is None:
            self.logger.debug("Cache miss", key=key)
            self._record(operation, "miss", started)
        else:
            self.logger.debug("Cache hit", key=key)
            self._record(operation, "hit", started)

    def _finish_sweep(self, removed: int, now: datetime, started: float) -> None:
        self.logger.info("Expired cache items swept", removed=removed, now=now.isoformat())
        self._record("sweep", "ok", started)
        if self.metrics:
            self.metrics.record_sweep(removed)

    def _on_store_error(self, operation: str, key: Optional[str], error: StoreError, started: float) -> None:
        self.logger.error(
            "Cache store operation failed",
            operation=operation,
            key=key,
            error=str(error)
        )
        self._record(operation, "error", started)

    def _record(self, operation: str, result: str, started: float) -> None:
        if self.metrics:
            self.metrics.record_operation(operation, result, time.time() - started)


class DistributedCache(_CacheOperationsBase):
    """Blocking distributed cache."""

    def __init__(
        self,
        store: CacheStore,
        clock: Optional[SystemClock] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        super().__init__(clock, metrics)
        self.store = store

    def get(self, key: str) -> Optional[bytes]:
        """Return the value for ``key`` and extend its sliding expiration."""
        return self._touch("get", key, include_value=True)

    def refresh(self, key: str) -> None:
        """Extend the sliding expiration of ``key`` without fetching the value."""
        self._touch("refresh", key, include_value=False)

    def _touch(self, operation: str, key: str, include_value: bool) -> Optional[bytes]:
        _validate_key(key)
        started = time.time()
        now = self.clock.utc_now()
        try:
            value = self.store.touch_and_maybe_read(key, now, include_value)
        except StoreError as e:
            self._on_store_error(operation, key, e, started)
            raise

        self._finish_read(operation, key, value, started)
        return value

    def set(self, key: str, value: bytes, options: Optional[CacheEntryOptions] = None) -> None:
        """Create or replace ``key``. Losing a concurrent insert race is not an error."""
        now, absolute_expiration = self._prepare_write(key, value, options)
        started = time.time()
        result = self.store.upsert(
            key, bytes(value), options.sliding_expiration, absolute_expiration, now
        )
        self._finish_write(key, result, started)

    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""
        _validate_key(key)
        started = time.time()
        try:
            self.store.delete(key)
        except StoreError as e:
            self._on_store_error("remove", key, e, started)
            raise

        self.logger.debug("Cache entry removed", key=key)
        self._record("remove", "ok", started)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Delete every entry whose deadline is at or before ``now``."""
        now = now or self.clock.utc_now()
        _validate_now(now)
        started = time.time()
        try:
            removed = self.store.delete_where_expired(now)
        except StoreError as e:
            self._on_store_error("sweep", None, e, started)
            raise

        self._finish_sweep(removed, now, started)
        return removed


class AsyncDistributedCache(_CacheOperationsBase):
    """Coroutine distributed cache with the same semantics as :class:`DistributedCache`."""

    def __init__(
        self,
        store: AsyncCacheStore,
        clock: Optional[SystemClock] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        super().__init__(clock, metrics)
        self.store = store

    async def get(self, key: str) -> Optional[bytes]:
        """Return the value for ``key`` and extend its sliding expiration."""
        return await self._touch("get", key, include_value=True)

    async def refresh(self, key: str) -> None:
        """Extend the sliding expiration of ``key`` without fetching the value."""
        await self._touch("refresh", key, include_value=False)

    async def _touch(self, operation: str, key: str, include_value: bool) -> Optional[bytes]:
        _validate_key(key)
        started = time.time()
        now = self.clock.utc_now()
        try:
            value = await self.store.touch_and_maybe_read(key, now, include_value)
        except StoreError as e:
            self._on_store_error(operation, key, e, started)
            raise

        self._finish_read(operation, key, value, started)
        return value

    async def set(self, key: str, value: bytes, options: Optional[CacheEntryOptions] = None) -> None:
        """Create or replace ``key``. Losing a concurrent insert race is not an error."""
        now, absolute_expiration = self._prepare_write(key, value, options)
        started = time.time()
        result = await self.store.upsert(
            key, bytes(value), options.sliding_expiration, absolute_expiration, now
        )
        self._finish_write(key, result, started)

    async def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""
        _validate_key(key)
        started = time.time()
        try:
            await self.store.delete(key)
        except StoreError as e:
            self._on_store_error("remove", key, e, started)
            raise

        self.logger.debug("Cache entry removed", key=key)
        self._record("remove", "ok", started)

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Delete every entry whose deadline is at or before ``now``."""
        now = now or self.clock.utc_now()
        _validate_now(now)
        started = time.time()
        try:
            removed = await self.store.delete_where_expired(now)
        except StoreError as e:
            self._on_store_error("sweep", None, e, started)
            raise

        self._finish_sweep(removed, now, started)
        return removed
