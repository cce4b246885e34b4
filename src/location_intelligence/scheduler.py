"""Periodic cache purge.

Drops score cache entries past the retention window and expired provider
records on a fixed interval. Uses asyncio tasks, no external scheduler
dependency.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_PURGE_INTERVAL_HOURS = 24.0


class CachePurgeScheduler:
    """Runs ``purge`` once at start, then every ``interval_hours``."""

    def __init__(
        self,
        purge: Callable[[], Awaitable[dict]],
        interval_hours: float = DEFAULT_PURGE_INTERVAL_HOURS,
    ):
        self._purge = purge
        self._task: asyncio.Task | None = None
        self._running = False
        self._interval_seconds = interval_hours * 3600

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the background purge loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Cache purge scheduler started (interval: %.1f hours)", self._interval_seconds / 3600)

    async def stop(self):
        """Stop the background purge loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Cache purge scheduler stopped")

    async def run_once(self) -> dict:
        purged = await self._purge()
        logger.info("Cache purge complete: %s", purged)
        return purged

    async def _run_loop(self):
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("Scheduled cache purge failed: %s", exc, exc_info=True)
            try:
                await asyncio.sleep(self._interval_seconds)
            except asyncio.CancelledError:
                break
