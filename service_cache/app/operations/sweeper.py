"""
Periodic removal of expired cache items.
"""

import asyncio
from typing import Optional, Union

from shared.logging import bind_run_id, get_logger
from .cache import AsyncDistributedCache, DistributedCache


class ExpiredItemsSweeper:
    """Background task that sweeps expired rows on a fixed interval.

    Reads never return expired rows, so the sweeper only reclaims space. It
    accepts either cache flavour; a blocking cache is swept in a worker
    thread so the event loop is never stalled. Running several sweepers
    against the same table is safe and merely redundant.
    """

    def __init__(self, cache: Union[DistributedCache, AsyncDistributedCache], interval_seconds: float = 1800.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.logger = get_logger("cache.sweeper")

        self.sweep_task: Optional[asyncio.Task] = None
        self.running = False
        self.last_removed = 0

    async def start(self):
        """Start the sweeper."""
        if self.running:
            return
        self.running = True
        self.sweep_task = asyncio.create_task(self._sweep_loop())
        self.logger.info("Expired items sweeper started", interval=self.interval_seconds)

    async def stop(self):
        """Stop the sweeper."""
        self.running = False
        if self.sweep_task:
            self.sweep_task.cancel()
            try:
                await self.sweep_task
            except asyncio.CancelledError:
                pass
            self.sweep_task = None

        self.logger.info("Expired items sweeper stopped")

    async def sweep_once(self) -> int:
        """Run a single sweep and return the number of rows removed."""
        if isinstance(self.cache, AsyncDistributedCache):
            removed = await self.cache.sweep()
        else:
            removed = await asyncio.to_thread(self.cache.sweep)
        self.last_removed = removed
        return removed

    async def _sweep_loop(self):
        """Main sweep loop."""
        while self.running:
            try:
                await asyncio.sleep(self.interval_seconds)
                bind_run_id()
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                # Next interval retries.
                self.logger.error("Error in sweep loop", error=str(e))
