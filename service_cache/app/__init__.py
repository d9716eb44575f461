"""
PostgreSQL-backed distributed cache.

Entries carry sliding and/or absolute expirations; reads extend sliding
deadlines, concurrent writers of the same key both succeed, and expired
rows are invisible to readers until a sweep removes them.
"""

from .models import CacheEntryOptions, CacheItem, WriteOutcome, WriteResult
from .operations import AsyncDistributedCache, DistributedCache, ExpiredItemsSweeper

__all__ = [
    "AsyncDistributedCache",
    "CacheEntryOptions",
    "CacheItem",
    "DistributedCache",
    "ExpiredItemsSweeper",
    "WriteOutcome",
    "WriteResult",
]
