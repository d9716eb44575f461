"""
Clock capability used for every expiration decision.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class SystemClock(Protocol):
    """Source of the current UTC time."""

    def utc_now(self) -> datetime:
        ...


class UtcSystemClock:
    """Wall clock returning timezone-aware UTC timestamps."""

    def utc_now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        if start is None:
            start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        if start.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware start time")
        self._now = start
        self._lock = threading.Lock()

    def utc_now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward and return the new time."""
        with self._lock:
            self._now = self._now + delta
            return self._now

    def set(self, now: datetime) -> None:
        if now.tzinfo is None:
            raise ValueError("ManualClock requires timezone-aware timestamps")
        with self._lock:
            self._now = now
