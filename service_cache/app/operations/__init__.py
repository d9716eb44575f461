"""
Cache operations package.

Get, Set, Refresh, Remove and Sweep over a store, for blocking and
coroutine callers, plus the periodic expired-items sweeper.
"""

from .cache import AsyncDistributedCache, DistributedCache
from .sweeper import ExpiredItemsSweeper

__all__ = ["AsyncDistributedCache", "DistributedCache", "ExpiredItemsSweeper"]
