"""
In-process store for tests and single-node development.
"""

import threading
from datetime import datetime, timedelta
from typing import Dict, Optional

from shared.logging import get_logger
from ..expiration.policy import compute_expiration_deadline, is_expired
from ..models import CacheItem, WriteResult


class InMemoryCacheStore:
    """Dictionary-backed store with the same row semantics as the SQL stores."""

    def __init__(self):
        self.logger = get_logger("cache.store.memory")
        self._items: Dict[str, CacheItem] = {}
        self._lock = threading.Lock()

    def upsert(self, key: str, value: bytes, sliding_expiration: Optional[timedelta],
               absolute_expiration: Optional[datetime], now: datetime) -> WriteResult:
        expires_at = compute_expiration_deadline(now, sliding_expiration, absolute_expiration)
        with self._lock:
            self._items[key] = CacheItem(
                key=key,
                value=bytes(value),
                expires_at=expires_at,
                sliding_expiration=sliding_expiration,
                absolute_expiration=absolute_expiration
            )
        return WriteResult.written()

    def touch_and_maybe_read(self, key: str, now: datetime, include_value: bool) -> Optional[bytes]:
        with self._lock:
            item = self._items.get(key)
            if item is None or is_expired(item.expires_at, now):
                return None

            if item.sliding_expiration is not None:
                item.expires_at = compute_expiration_deadline(
                    now, item.sliding_expiration, item.absolute_expiration
                )

            return item.value if include_value else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def delete_where_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [key for key, item in self._items.items() if is_expired(item.expires_at, now)]
            for key in expired:
                del self._items[key]

        if expired:
            self.logger.debug("Removed expired items", count=len(expired))
        return len(expired)

    def get_item(self, key: str) -> Optional[CacheItem]:
        """Raw row lookup, ignoring expiration."""
        with self._lock:
            return self._items.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class AsyncInMemoryCacheStore:
    """Coroutine facade over :class:`InMemoryCacheStore`."""

    def __init__(self, store: Optional[InMemoryCacheStore] = None):
        self.store = store or InMemoryCacheStore()

    async def upsert(self, key: str, value: bytes, sliding_expiration: Optional[timedelta],
                     absolute_expiration: Optional[datetime], now: datetime) -> WriteResult:
        return self.store.upsert(key, value, sliding_expiration, absolute_expiration, now)

    async def touch_and_maybe_read(self, key: str, now: datetime, include_value: bool) -> Optional[bytes]:
        return self.store.touch_and_maybe_read(key, now, include_value)

    async def delete(self, key: str) -> None:
        self.store.delete(key)

    async def delete_where_expired(self, now: datetime) -> int:
        return self.store.delete_where_expired(now)
