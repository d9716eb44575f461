"""
Data models for the distributed cache.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from shared.errors import InvalidExpirationError, StoreError


@dataclass(frozen=True)
class CacheEntryOptions:
    """Caller-supplied expiration settings for a cache write.

    ``absolute_expiration_relative_to_now`` wins over ``absolute_expiration``
    when both are given. At least one of the sliding or absolute forms must
    be present for the write to be accepted.
    """
    sliding_expiration: Optional[timedelta] = None
    absolute_expiration: Optional[datetime] = None
    absolute_expiration_relative_to_now: Optional[timedelta] = None

    def __post_init__(self):
        for name in ("sliding_expiration", "absolute_expiration_relative_to_now"):
            value = getattr(self, name)
            if value is not None and value <= timedelta(0):
                raise InvalidExpirationError(
                    f"{name} must be positive",
                    details={name: value.total_seconds()}
                )
        if self.absolute_expiration is not None and self.absolute_expiration.tzinfo is None:
            raise InvalidExpirationError(
                "absolute_expiration must be timezone-aware",
                details={"absolute_expiration": self.absolute_expiration.isoformat()}
            )


@dataclass
class CacheItem:
    """A stored cache row."""
    key: str
    value: bytes
    expires_at: datetime
    sliding_expiration: Optional[timedelta] = None
    absolute_expiration: Optional[datetime] = None


class WriteOutcome(str, Enum):
    """Result of an upsert against the store."""
    WRITTEN = "written"
    CONFLICT_IGNORED = "conflict_ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteResult:
    """Tagged upsert outcome; ``error`` is set only for ``FAILED``."""
    outcome: WriteOutcome
    error: Optional[StoreError] = None

    @classmethod
    def written(cls) -> "WriteResult":
        return cls(WriteOutcome.WRITTEN)

    @classmethod
    def conflict_ignored(cls) -> "WriteResult":
        return cls(WriteOutcome.CONFLICT_IGNORED)

    @classmethod
    def failed(cls, error: StoreError) -> "WriteResult":
        return cls(WriteOutcome.FAILED, error)
