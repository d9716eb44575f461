"""
Store capability consumed by the cache operations.
"""

from datetime import datetime, timedelta
from typing import Optional, Protocol

from ..models import WriteResult


class CacheStore(Protocol):
    """Blocking store primitives. Each call is atomic for a single row."""

    def upsert(self, key: str, value: bytes, sliding_expiration: Optional[timedelta],
               absolute_expiration: Optional[datetime], now: datetime) -> WriteResult:
        ...

    def touch_and_maybe_read(self, key: str, now: datetime, include_value: bool) -> Optional[bytes]:
        ...

    def delete(self, key: str) -> None:
        ...

    def delete_where_expired(self, now: datetime) -> int:
        ...


class AsyncCacheStore(Protocol):
    """Coroutine flavour of :class:`CacheStore`."""

    async def upsert(self, key: str, value: bytes, sliding_expiration: Optional[timedelta],
                     absolute_expiration: Optional[datetime], now: datetime) -> WriteResult:
        ...

    async def touch_and_maybe_read(self, key: str, now: datetime, include_value: bool) -> Optional[bytes]:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_where_expired(self, now: datetime) -> int:
        ...
