"""
PostgreSQL stores for the distributed cache.

Both stores issue the same statements (see ``queries``): psycopg2 for
blocking callers, asyncpg for coroutine callers. Upserts run as
update-then-insert inside one transaction, so two writers racing to create
the same key surface as a unique violation on the primary key. That case is
reported as ``WriteOutcome.CONFLICT_IGNORED`` instead of an error.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

import asyncpg
import psycopg2
import psycopg2.errors
import psycopg2.pool

from shared.errors import StoreError, StoreNotStartedError
from shared.logging import get_logger
from ..expiration.policy import compute_expiration_deadline
from ..models import WriteResult
from .queries import CacheTableQueries, NUMERIC, PYFORMAT

_ASYNCPG_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


def _sliding_seconds(sliding_expiration: Optional[timedelta]) -> Optional[float]:
    if sliding_expiration is None:
        return None
    return sliding_expiration.total_seconds()


def _affected_rows(status: str) -> int:
    """Row count from an asyncpg command tag such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class PostgresCacheStore:
    """Blocking store backed by a psycopg2 connection pool."""

    def __init__(
        self,
        dsn: str,
        schema_name: str = "public",
        table_name: str = "cache_items",
        *,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 30.0,
        create_infrastructure: bool = True,
    ):
        self.dsn = dsn
        self.queries = CacheTableQueries(schema_name, table_name, PYFORMAT)
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.create_infrastructure = create_infrastructure
        self.logger = get_logger("cache.store.postgres")
        self.pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None

    def start(self):
        """Open the connection pool and provision the table if configured."""
        try:
            self.pool = psycopg2.pool.ThreadedConnectionPool(
                self.min_size,
                self.max_size,
                self.dsn,
                options=f"-c statement_timeout={int(self.command_timeout * 1000)}"
            )
        except psycopg2.Error as e:
            self.logger.error("Failed to start PostgreSQL cache store", error=str(e))
            raise StoreError("start", str(e)) from e

        if self.create_infrastructure:
            self.create_table()

        self.logger.info(
            "PostgreSQL cache store started",
            schema=self.queries.schema_name,
            table=self.queries.table_name
        )

    def stop(self):
        """Close every pooled connection."""
        if self.pool:
            self.pool.closeall()
            self.pool = None
            self.logger.info("PostgreSQL cache store stopped")

    def _run(self, operation: str, work):
        """Call ``work(cursor)`` inside one transaction on a pooled connection."""
        pool = self.pool
        if pool is None:
            raise StoreNotStartedError(operation)

        conn = pool.getconn()
        try:
            with conn:
                with conn.cursor() as cursor:
                    return work(cursor)
        finally:
            pool.putconn(conn)

    def _execute(self, operation: str, *statements):
        """Run ``(statement, values)`` pairs in one transaction; return the last cursor result."""
        def work(cursor):
            for statement, values in statements:
                cursor.execute(statement.sql, statement.bind(**values))
            return cursor.rowcount, (cursor.fetchone() if cursor.description else None)

        return self._run(operation, work)

    def create_table(self):
        """Create schema, table and expiry index if they do not exist."""
        try:
            self._execute(
                "create_table",
                (self.queries.create_schema, {}),
                (self.queries.create_table, {}),
                (self.queries.create_index, {}),
            )
        except psycopg2.Error as e:
            self.logger.error("Failed to create cache table", error=str(e))
            raise StoreError("create_table", str(e)) from e

    def upsert(self, key: str, value: bytes, sliding_expiration: Optional[timedelta],
               absolute_expiration: Optional[datetime], now: datetime) -> WriteResult:
        values = {
            "key": key,
            "value": psycopg2.Binary(value),
            "expires_at": compute_expiration_deadline(now, sliding_expiration, absolute_expiration),
            "sliding_seconds": _sliding_seconds(sliding_expiration),
            "absolute_expiration": absolute_expiration,
        }
        update, insert = self.queries.update_item, self.queries.insert_item

        def work(cursor):
            cursor.execute(update.sql, update.bind(**values))
            if cursor.rowcount == 0:
                cursor.execute(insert.sql, insert.bind(**values))

        try:
            self._run("upsert", work)
        except psycopg2.errors.UniqueViolation:
            return WriteResult.conflict_ignored()
        except psycopg2.Error as e:
            return WriteResult.failed(StoreError("upsert", str(e), details={"key": key}))
        except StoreNotStartedError as e:
            return WriteResult.failed(e)

        return WriteResult.written()

    def touch_and_maybe_read(self, key: str, now: datetime, include_value: bool) -> Optional[bytes]:
        values = {"key": key, "now": now}
        statements = [(self.queries.touch_item, values)]
        if include_value:
            statements.append((self.queries.select_item, values))

        try:
            _, row = self._execute("touch", *statements)
        except psycopg2.Error as e:
            raise StoreError("touch", str(e), details={"key": key}) from e

        if not include_value or row is None:
            return None
        return bytes(row[0])

    def delete(self, key: str) -> None:
        try:
            self._execute("delete", (self.queries.delete_item, {"key": key}))
        except psycopg2.Error as e:
            raise StoreError("delete", str(e), details={"key": key}) from e

    def delete_where_expired(self, now: datetime) -> int:
        try:
            rowcount, _ = self._execute("delete_expired", (self.queries.delete_expired_items, {"now": now}))
        except psycopg2.Error as e:
            raise StoreError("delete_expired", str(e)) from e
        return max(rowcount, 0)

    def health_check(self) -> bool:
        """Check database health."""
        try:
            self._execute("health_check", (self.queries.health_check, {}))
            return True
        except (psycopg2.Error, StoreError):
            return False


class AsyncPostgresCacheStore:
    """Coroutine store backed by an asyncpg pool."""

    def __init__(
        self,
        dsn: str,
        schema_name: str = "public",
        table_name: str = "cache_items",
        *,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 30.0,
        create_infrastructure: bool = True,
    ):
        self.dsn = dsn
        self.queries = CacheTableQueries(schema_name, table_name, NUMERIC)
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.create_infrastructure = create_infrastructure
        self.logger = get_logger("cache.store.asyncpg")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool and provision the table if configured."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )
        except _ASYNCPG_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL cache store", error=str(e))
            raise StoreError("start", str(e)) from e

        if self.create_infrastructure:
            await self.create_table()

        self.logger.info(
            "PostgreSQL cache store started",
            schema=self.queries.schema_name,
            table=self.queries.table_name
        )

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL cache store stopped")

    def _require_pool(self, operation: str) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreNotStartedError(operation)
        return self.pool

    async def create_table(self):
        """Create schema, table and expiry index if they do not exist."""
        pool = self._require_pool("create_table")
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(self.queries.create_schema.sql)
                    await conn.execute(self.queries.create_table.sql)
                    await conn.execute(self.queries.create_index.sql)
        except _ASYNCPG_ERRORS as e:
            self.logger.error("Failed to create cache table", error=str(e))
            raise StoreError("create_table", str(e)) from e

    async def upsert(self, key: str, value: bytes, sliding_expiration: Optional[timedelta],
                     absolute_expiration: Optional[datetime], now: datetime) -> WriteResult:
        values = {
            "key": key,
            "value": bytes(value),
            "expires_at": compute_expiration_deadline(now, sliding_expiration, absolute_expiration),
            "sliding_seconds": _sliding_seconds(sliding_expiration),
            "absolute_expiration": absolute_expiration,
        }
        pool = self.pool
        if pool is None:
            return WriteResult.failed(StoreNotStartedError("upsert"))

        update, insert = self.queries.update_item, self.queries.insert_item
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    status = await conn.execute(update.sql, *update.bind(**values))
                    if _affected_rows(status) == 0:
                        await conn.execute(insert.sql, *insert.bind(**values))
        except asyncpg.UniqueViolationError:
            return WriteResult.conflict_ignored()
        except _ASYNCPG_ERRORS as e:
            return WriteResult.failed(StoreError("upsert", str(e), details={"key": key}))

        return WriteResult.written()

    async def touch_and_maybe_read(self, key: str, now: datetime, include_value: bool) -> Optional[bytes]:
        pool = self._require_pool("touch")
        touch, select = self.queries.touch_item, self.queries.select_item
        try:
            async with pool.acquire() as conn:
                await conn.execute(touch.sql, *touch.bind(key=key, now=now))
                if not include_value:
                    return None
                return await conn.fetchval(select.sql, *select.bind(key=key, now=now))
        except _ASYNCPG_ERRORS as e:
            raise StoreError("touch", str(e), details={"key": key}) from e

    async def delete(self, key: str) -> None:
        pool = self._require_pool("delete")
        statement = self.queries.delete_item
        try:
            async with pool.acquire() as conn:
                await conn.execute(statement.sql, *statement.bind(key=key))
        except _ASYNCPG_ERRORS as e:
            raise StoreError("delete", str(e), details={"key": key}) from e

    async def delete_where_expired(self, now: datetime) -> int:
        pool = self._require_pool("delete_expired")
        statement = self.queries.delete_expired_items
        try:
            async with pool.acquire() as conn:
                status = await conn.execute(statement.sql, *statement.bind(now=now))
        except _ASYNCPG_ERRORS as e:
            raise StoreError("delete_expired", str(e)) from e
        return _affected_rows(status)

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            pool = self._require_pool("health_check")
            async with pool.acquire() as conn:
                await conn.fetchval(self.queries.health_check.sql)
                return True
        except (StoreError, *_ASYNCPG_ERRORS):
            return False
