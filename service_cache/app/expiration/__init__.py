"""
Expiration package.

Computes absolute and sliding deadlines for cache entries and validates the
options a caller passes to a write. The clock is injected everywhere so that
tests can drive time explicitly.
"""

from .clock import ManualClock, SystemClock, UtcSystemClock
from .policy import (
    compute_absolute_expiration,
    compute_expiration_deadline,
    is_expired,
    validate_expiration,
)

__all__ = [
    "ManualClock",
    "SystemClock",
    "UtcSystemClock",
    "compute_absolute_expiration",
    "compute_expiration_deadline",
    "is_expired",
    "validate_expiration",
]
