"""
Shared configuration management for the PostgreSQL distributed cache.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

# The sweep must not hammer the store; five minutes is the floor.
MIN_EXPIRED_ITEMS_DELETION_INTERVAL = 300.0
DEFAULT_EXPIRED_ITEMS_DELETION_INTERVAL = 1800.0


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    postgres_dsn: str = Field(default="postgresql://localhost:5432/cache")


class CacheConfig(BaseConfig):
    """Settings for the cache table, connection pool and sweeper."""

    schema_name: str = Field(default="public")
    table_name: str = Field(default="cache_items")
    create_infrastructure: bool = Field(default=True)

    expired_items_deletion_interval: float = Field(default=DEFAULT_EXPIRED_ITEMS_DELETION_INTERVAL)

    # Connection pool
    pool_min_size: int = Field(default=1, ge=1)
    pool_max_size: int = Field(default=10, ge=1)
    command_timeout: float = Field(default=30.0, gt=0)

    @field_validator("schema_name", "table_name")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"{value!r} is not a valid SQL identifier")
        return value

    @field_validator("expired_items_deletion_interval")
    @classmethod
    def _check_deletion_interval(cls, value: float) -> float:
        if value < MIN_EXPIRED_ITEMS_DELETION_INTERVAL:
            raise ValueError(
                f"expired_items_deletion_interval must be at least "
                f"{MIN_EXPIRED_ITEMS_DELETION_INTERVAL:.0f} seconds"
            )
        return value

    @field_validator("pool_max_size")
    @classmethod
    def _check_pool_bounds(cls, value: int, info) -> int:
        min_size = info.data.get("pool_min_size")
        if min_size is not None and value < min_size:
            raise ValueError("pool_max_size must be >= pool_min_size")
        return value


def get_config(**overrides) -> CacheConfig:
    """Get cache configuration from the environment, with explicit overrides."""
    return CacheConfig(**overrides)
