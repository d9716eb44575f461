#!/usr/bin/env python3
"""
Administrative helpers for the PostgreSQL cache table.

``provision`` creates the schema, table and expiry index; ``sweep`` removes
expired rows once. Both are handy from a developer workstation, a CI job or
a cron entry when no long-running host owns the sweeper.

The summary is printed to stdout as JSON. On failure a JSON error document
is printed to stderr instead; cache errors keep their code and details.
"""

import argparse
import asyncio
import json
import sys

from shared.config import get_config
from shared.errors import CacheLayerException
from shared.logging import bind_run_id, clear_run_id, configure_logging
from service_cache.app.factory import create_async_cache, create_async_store


def _without_provisioning(config):
    return config.model_copy(update={"create_infrastructure": False})


async def provision(config) -> dict:
    """Create the cache table and return a summary."""
    store = create_async_store(_without_provisioning(config))
    await store.start()
    try:
        await store.create_table()
    finally:
        await store.stop()
    return {"schema": config.schema_name, "table": config.table_name, "provisioned": True}


async def sweep(config) -> dict:
    """Remove expired rows once and return a summary."""
    cache = await create_async_cache(_without_provisioning(config))
    try:
        removed = await cache.sweep()
    finally:
        await cache.store.stop()
    return {"schema": config.schema_name, "table": config.table_name, "removed": removed}


def _error_document(command: str, run_id: str, exc: Exception) -> dict:
    if isinstance(exc, CacheLayerException):
        error = exc.to_response().model_dump()
    else:
        error = {"code": "UNEXPECTED_ERROR", "message": str(exc), "details": {"type": type(exc).__name__}}
    return {"command": command, "run_id": run_id, "error": error}


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage the PostgreSQL distributed cache table.")
    parser.add_argument("command", choices=["provision", "sweep"], help="Action to run")
    parser.add_argument("--dsn", default=None, help="PostgreSQL DSN (defaults to CACHE_POSTGRES_DSN)")
    parser.add_argument("--schema", default=None, help="Schema name (defaults to CACHE_SCHEMA_NAME)")
    parser.add_argument("--table", default=None, help="Table name (defaults to CACHE_TABLE_NAME)")
    parser.add_argument("--run-id", default=None, help="Correlation id for log events (random by default)")
    parser.add_argument("--log-level", default="warning", help="Log level")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("cache", args.log_level)
    run_id = bind_run_id(args.run_id)

    overrides = {}
    if args.dsn:
        overrides["postgres_dsn"] = args.dsn
    if args.schema:
        overrides["schema_name"] = args.schema
    if args.table:
        overrides["table_name"] = args.table

    try:
        config = get_config(**overrides)
        action = provision if args.command == "provision" else sweep
        summary = asyncio.run(action(config))
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        print(json.dumps(_error_document(args.command, run_id, exc), indent=2), file=sys.stderr)
        return 1
    finally:
        clear_run_id()

    summary["run_id"] = run_id
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
