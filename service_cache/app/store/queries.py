"""
SQL for the cache table, rendered for either PostgreSQL driver.

Statements are written once with ``:name`` placeholders. asyncpg receives
``$n`` positional parameters; psycopg2 receives ``%(name)s`` and a dict.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")
_PLACEHOLDER_RE = re.compile(r"(?<![:\w]):([a-z_]+)\b")

NUMERIC = "numeric"    # asyncpg
PYFORMAT = "pyformat"  # psycopg2

_DEADLINE_ON_TOUCH = (
    "CAST(:now AS TIMESTAMPTZ) + sliding_expiration_seconds * INTERVAL '1 second'"
)

_TEMPLATES = {
    "create_schema": "CREATE SCHEMA IF NOT EXISTS {schema}",
    "create_table": """
        CREATE TABLE IF NOT EXISTS {table} (
            id TEXT NOT NULL PRIMARY KEY,
            value BYTEA NOT NULL,
            expires_at_time TIMESTAMPTZ NOT NULL,
            sliding_expiration_seconds DOUBLE PRECISION NULL,
            absolute_expiration TIMESTAMPTZ NULL
        )
    """,
    "create_index": "CREATE INDEX IF NOT EXISTS {index} ON {table} (expires_at_time)",
    "update_item": """
        UPDATE {table}
        SET value = :value,
            expires_at_time = :expires_at,
            sliding_expiration_seconds = :sliding_seconds,
            absolute_expiration = :absolute_expiration
        WHERE id = :key
    """,
    "insert_item": """
        INSERT INTO {table} (id, value, expires_at_time, sliding_expiration_seconds, absolute_expiration)
        VALUES (:key, :value, :expires_at, :sliding_seconds, :absolute_expiration)
    """,
    "touch_item": f"""
        UPDATE {{table}}
        SET expires_at_time = CASE
                WHEN absolute_expiration IS NOT NULL
                     AND absolute_expiration < {_DEADLINE_ON_TOUCH}
                    THEN absolute_expiration
                ELSE {_DEADLINE_ON_TOUCH}
            END
        WHERE id = :key
          AND expires_at_time > CAST(:now AS TIMESTAMPTZ)
          AND sliding_expiration_seconds IS NOT NULL
    """,
    "select_item": """
        SELECT value FROM {table}
        WHERE id = :key AND expires_at_time > CAST(:now AS TIMESTAMPTZ)
    """,
    "delete_item": "DELETE FROM {table} WHERE id = :key",
    "delete_expired_items": "DELETE FROM {table} WHERE expires_at_time <= CAST(:now AS TIMESTAMPTZ)",
    "health_check": "SELECT 1",
}


@dataclass(frozen=True)
class Statement:
    """A rendered statement and the parameter names it binds, in order."""
    sql: str
    params: Tuple[str, ...]
    paramstyle: str

    def bind(self, **values: Any) -> Union[Tuple[Any, ...], Dict[str, Any]]:
        """Arrange ``values`` the way the driver expects them."""
        missing = [name for name in self.params if name not in values]
        if missing:
            raise KeyError(f"missing SQL parameters: {', '.join(missing)}")
        if self.paramstyle == NUMERIC:
            return tuple(values[name] for name in self.params)
        return {name: values[name] for name in self.params}


def quote_identifier(name: str) -> str:
    """Double-quote a validated SQL identifier."""
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"{name!r} is not a valid SQL identifier")
    return f'"{name}"'


def render(template: str, paramstyle: str) -> Statement:
    """Replace ``:name`` placeholders for the given driver style."""
    order = []

    def _replace(match):
        name = match.group(1)
        if name not in order:
            order.append(name)
        if paramstyle == NUMERIC:
            return f"${order.index(name) + 1}"
        return f"%({name})s"

    if paramstyle not in (NUMERIC, PYFORMAT):
        raise ValueError(f"unsupported paramstyle {paramstyle!r}")
    sql = _PLACEHOLDER_RE.sub(_replace, template)
    return Statement(sql=" ".join(sql.split()), params=tuple(order), paramstyle=paramstyle)


class CacheTableQueries:
    """All statements the cache issues against one schema/table pair."""

    def __init__(self, schema_name: str, table_name: str, paramstyle: str = NUMERIC):
        self.schema_name = schema_name
        self.table_name = table_name
        self.paramstyle = paramstyle

        names = {
            "schema": quote_identifier(schema_name),
            "table": f"{quote_identifier(schema_name)}.{quote_identifier(table_name)}",
            "index": quote_identifier(f"ix_{table_name}_expires_at_time"[:63]),
        }
        for attr, template in _TEMPLATES.items():
            setattr(self, attr, render(template.format(**names), paramstyle))
