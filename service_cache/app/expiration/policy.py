"""
Expiration policy for cache entries.

Pure functions of their inputs: the caller supplies ``now`` from an injected
clock so that every decision can be replayed deterministically in tests.
"""

from datetime import datetime, timedelta
from typing import Optional

from shared.errors import InvalidExpirationError
from ..models import CacheEntryOptions


def compute_absolute_expiration(now: datetime, options: CacheEntryOptions) -> Optional[datetime]:
    """Resolve the absolute expiration for a write happening at ``now``."""
    if options.absolute_expiration_relative_to_now is not None:
        return now + options.absolute_expiration_relative_to_now

    if options.absolute_expiration is not None:
        if options.absolute_expiration <= now:
            raise InvalidExpirationError(
                "The absolute expiration value must be in the future.",
                details={
                    "absolute_expiration": options.absolute_expiration.isoformat(),
                    "now": now.isoformat()
                }
            )
        return options.absolute_expiration

    return None


def validate_expiration(sliding_expiration: Optional[timedelta],
                        absolute_expiration: Optional[datetime]) -> None:
    """Reject entries that would never expire."""
    if sliding_expiration is None and absolute_expiration is None:
        raise InvalidExpirationError("Either absolute or sliding expiration needs to be provided.")


def compute_expiration_deadline(now: datetime,
                                sliding_expiration: Optional[timedelta],
                                absolute_expiration: Optional[datetime]) -> datetime:
    """Deadline of an entry written or touched at ``now``.

    Without a sliding interval the absolute expiration is the deadline.
    Otherwise the deadline is ``now + sliding``, capped by the absolute
    expiration when one exists.
    """
    if sliding_expiration is None:
        if absolute_expiration is None:
            raise InvalidExpirationError("Either absolute or sliding expiration needs to be provided.")
        return absolute_expiration

    deadline = now + sliding_expiration
    if absolute_expiration is not None and absolute_expiration < deadline:
        return absolute_expiration
    return deadline


def is_expired(expires_at: datetime, now: datetime) -> bool:
    """An entry is expired from its deadline onward."""
    return expires_at <= now
