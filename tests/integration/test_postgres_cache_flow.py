"""
Integration tests for the cache against a real PostgreSQL server.

Set CACHE_TEST_POSTGRES_DSN to run them.
"""

import os
import uuid
import asyncio
import threading
import pytest
import pytest_asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from service_cache.app.expiration import ManualClock
from service_cache.app.models import CacheEntryOptions, WriteOutcome
from service_cache.app.operations import AsyncDistributedCache, DistributedCache
from service_cache.app.store import AsyncPostgresCacheStore, PostgresCacheStore
from shared.errors import InvalidExpirationError


POSTGRES_DSN = os.environ.get("CACHE_TEST_POSTGRES_DSN")
START = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not POSTGRES_DSN, reason="CACHE_TEST_POSTGRES_DSN is not set"),
]


@pytest.fixture
def table_name():
    """Fresh table per test."""
    return f"cache_it_{uuid.uuid4().hex[:12]}"


class TestPostgresCacheFlow:
    """Blocking cache over psycopg2."""

    @pytest.fixture
    def store(self, table_name):
        store = PostgresCacheStore(POSTGRES_DSN, "public", table_name)
        store.start()
        yield store
        conn = store.pool.getconn()
        try:
            with conn:
                with conn.cursor() as cursor:
                    cursor.execute(f'DROP TABLE IF EXISTS "public"."{table_name}"')
        finally:
            store.pool.putconn(conn)
        store.stop()

    @pytest.fixture
    def clock(self):
        return ManualClock(START)

    @pytest.fixture
    def cache(self, store, clock):
        return DistributedCache(store, clock=clock)

    def test_health_check(self, store):
        assert store.health_check() is True

    def test_set_get_remove(self, cache):
        """Values round-trip through the table."""
        cache.set("k", b"\x00\x01payload", CacheEntryOptions(sliding_expiration=timedelta(minutes=1)))

        assert cache.get("k") == b"\x00\x01payload"

        cache.remove("k")
        assert cache.get("k") is None

    def test_overwrite(self, cache):
        """A second set replaces value and expiration."""
        cache.set("k", b"one", CacheEntryOptions(sliding_expiration=timedelta(seconds=5)))
        cache.set("k", b"two", CacheEntryOptions(sliding_expiration=timedelta(minutes=5)))

        assert cache.get("k") == b"two"

    def test_sliding_expiration(self, cache, clock):
        """Reads extend the deadline until a gap longer than the window."""
        cache.set("k", b"v", CacheEntryOptions(sliding_expiration=timedelta(seconds=10)))

        clock.advance(timedelta(seconds=8))
        assert cache.get("k") == b"v"
        clock.advance(timedelta(seconds=8))
        assert cache.get("k") == b"v"
        clock.advance(timedelta(seconds=10))
        assert cache.get("k") is None

    def test_sliding_capped_by_absolute(self, cache, clock):
        """Sliding renewals never pass the absolute deadline."""
        cache.set("k", b"v", CacheEntryOptions(
            sliding_expiration=timedelta(seconds=10),
            absolute_expiration_relative_to_now=timedelta(seconds=15)
        ))

        clock.advance(timedelta(seconds=9))
        assert cache.get("k") == b"v"
        clock.advance(timedelta(seconds=6))
        assert cache.get("k") is None

    def test_rejected_write(self, cache):
        with pytest.raises(InvalidExpirationError):
            cache.set("k", b"v", CacheEntryOptions())

        assert cache.get("k") is None

    def test_sweep(self, cache, clock):
        """Sweep deletes expired rows only."""
        cache.set("short", b"1", CacheEntryOptions(sliding_expiration=timedelta(seconds=10)))
        cache.set("long", b"2", CacheEntryOptions(sliding_expiration=timedelta(hours=1)))

        clock.advance(timedelta(minutes=1))

        assert cache.sweep() == 1
        assert cache.get("long") == b"2"


    def test_concurrent_sets_of_one_key(self, cache):
        """Writers racing to create the same key all succeed; one value wins."""
        options = CacheEntryOptions(sliding_expiration=timedelta(minutes=5))
        values = [f"writer-{i}".encode() for i in range(8)]
        barrier = threading.Barrier(len(values))

        def write(value):
            barrier.wait()
            cache.set("contended", value, options)

        with ThreadPoolExecutor(max_workers=len(values)) as executor:
            futures = [executor.submit(write, value) for value in values]
            for future in futures:
                future.result()

        assert cache.get("contended") in values

    def test_concurrent_upserts_report_written_or_conflict(self, store):
        """Each racing upsert is either written or a tolerated duplicate-key conflict."""
        writers = 8
        outcomes = []
        lock = threading.Lock()

        def write(barrier, round_number, value):
            barrier.wait()
            result = store.upsert(f"race-{round_number}", value, timedelta(minutes=5), None, START)
            with lock:
                outcomes.append(result.outcome)

        for round_number in range(5):
            barrier = threading.Barrier(writers)
            with ThreadPoolExecutor(max_workers=writers) as executor:
                futures = [executor.submit(write, barrier, round_number, f"{i}".encode()) for i in range(writers)]
                for future in futures:
                    future.result()

        assert len(outcomes) == writers * 5
        assert set(outcomes) <= {WriteOutcome.WRITTEN, WriteOutcome.CONFLICT_IGNORED}
        for round_number in range(5):
            assert store.touch_and_maybe_read(f"race-{round_number}", START, include_value=True) is not None


class TestAsyncPostgresCacheFlow:

    """Coroutine cache over asyncpg."""

    @pytest_asyncio.fixture
    async def store(self, table_name):
        store = AsyncPostgresCacheStore(POSTGRES_DSN, "public", table_name)
        await store.start()
        yield store
        async with store.pool.acquire() as conn:
            await conn.execute(f'DROP TABLE IF EXISTS "public"."{table_name}"')
        await store.stop()

    @pytest.fixture
    def clock(self):
        return ManualClock(START)

    @pytest.mark.asyncio
    async def test_flow(self, store, clock):
        """Write, read, refresh, expire and sweep."""
        cache = AsyncDistributedCache(store, clock=clock)
        await cache.set("k", b"v", CacheEntryOptions(sliding_expiration=timedelta(seconds=10)))

        assert await store.health_check() is True
        assert await cache.get("k") == b"v"

        clock.advance(timedelta(seconds=9))
        await cache.refresh("k")
        clock.advance(timedelta(seconds=9))
        assert await cache.get("k") == b"v"

        clock.advance(timedelta(seconds=30))
        assert await cache.get("k") is None
        assert await cache.sweep() == 1
        assert await cache.sweep() == 0

    @pytest.mark.asyncio
    async def test_absolute_expiration(self, store, clock):
        cache = AsyncDistributedCache(store, clock=clock)
        await cache.set("k", b"v", CacheEntryOptions(absolute_expiration=START + timedelta(seconds=5)))

        clock.advance(timedelta(seconds=4))
        assert await cache.get("k") == b"v"
        clock.advance(timedelta(seconds=1))
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_concurrent_sets_of_one_key(self, store, clock):
        """Coroutines racing to create the same key all succeed; one value wins."""
        cache = AsyncDistributedCache(store, clock=clock)
        options = CacheEntryOptions(sliding_expiration=timedelta(minutes=5))
        values = [f"writer-{i}".encode() for i in range(8)]

        await asyncio.gather(*(cache.set("contended", value, options) for value in values))

        assert await cache.get("contended") in values

    @pytest.mark.asyncio
    async def test_concurrent_upserts_report_written_or_conflict(self, store):
        """Each racing upsert is either written or a tolerated duplicate-key conflict."""
        results = await asyncio.gather(*(
            store.upsert("race", f"{i}".encode(), timedelta(minutes=5), None, START)
            for i in range(8)
        ))

        assert {result.outcome for result in results} <= {WriteOutcome.WRITTEN, WriteOutcome.CONFLICT_IGNORED}
        assert await store.touch_and_maybe_read("race", START, include_value=True) is not None
