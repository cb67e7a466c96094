"""Background cache cleanup service.

Sweeps expired search cache entries on a fixed interval.
"""

import asyncio
import logging
from typing import Optional

from ..config import SEARCH_CACHE_CLEANUP_INTERVAL
from ..cache import SearchCache

logger = logging.getLogger(__name__)


class CacheCleanupService:
    """Background service that sweeps the search cache every 5 minutes"""

    def __init__(self, cache: SearchCache, interval: float = SEARCH_CACHE_CLEANUP_INTERVAL):
        self.cache = cache
        self.interval = interval
        self.running = False
        self.task: Optional[asyncio.Task] = None

    async def start(self):
        """Start background cleanup"""
        if self.running:
            logger.warning("Cache cleanup already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._cleanup_loop())
        logger.info(f"Cache cleanup service started (every {self.interval}s)")

    async def stop(self):
        """Stop background cleanup"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Cache cleanup service stopped")

    async def run_once(self) -> int:
        """Run a single sweep cycle"""
        return await self.cache.sweep()

    async def _cleanup_loop(self):
        """Main cleanup loop - sleep first, then sweep"""
        while self.running:
            try:
                await asyncio.sleep(self.interval)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cache cleanup loop: {e}")
