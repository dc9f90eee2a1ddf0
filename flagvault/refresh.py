"""
Background refresh of cache entries that are about to expire.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from flagvault.cache import CacheKey, FlagCache
from flagvault.gateway import FlagGateway

logger = logging.getLogger("flagvault.refresh")

REFRESH_WINDOW_SECONDS = 30.0


class RefreshState(str, Enum):
    """Refresher states."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"


class BackgroundRefresher:
    """
    Periodically re-fetches cached flags that expire within the refresh window.

    Only entries without a target identifier are refreshed. A timer fire
    while a cycle is still running is skipped, so cycles never overlap.
    """

    def __init__(
        self,
        cache: FlagCache,
        gateway: FlagGateway,
        interval_seconds: float,
        window_seconds: float = REFRESH_WINDOW_SECONDS,
    ):
        self._cache = cache
        self._gateway = gateway
        self._interval = interval_seconds
        self._window = window_seconds
        self._state = RefreshState.IDLE
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Start the recurring timer. Requires a running event loop."""
        if self._interval <= 0 or self.running:
            return
        self._stopped = False
        self._timer_task = asyncio.create_task(self._run_timer())

    def stop(self) -> None:
        """Cancel the timer. An in-flight cycle may finish but its writes are dropped."""
        self._stopped = True
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

    async def _run_timer(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self._interval)
            if self._stopped:
                break
            self._fire()

    def _fire(self) -> None:
        if self._state is RefreshState.IN_FLIGHT:
            logger.debug("FlagVault: Refresh already in progress, skipping cycle")
            return
        self._cycle_task = asyncio.create_task(self.run_cycle())

    async def run_cycle(self) -> int:
        """
        Run one refresh cycle.

        Returns:
            Number of entries refreshed; 0 if a cycle was already running
        """
        if self._state is RefreshState.IN_FLIGHT:
            logger.debug("FlagVault: Refresh already in progress, skipping cycle")
            return 0

        self._state = RefreshState.IN_FLIGHT
        try:
            keys = self._cache.expiring_keys(self._window)
            if not keys:
                return 0
            results = await asyncio.gather(
                *(self._refresh_key(key) for key in keys),
                return_exceptions=True,
            )
            refreshed = 0
            for key, result in zip(keys, results):
                if isinstance(result, BaseException):
                    logger.warning(f"FlagVault: Background refresh failed for '{key}': {result}")
                elif result:
                    refreshed += 1
            return refreshed
        finally:
            self._state = RefreshState.IDLE

    async def _refresh_key(self, key: CacheKey) -> bool:
        result = await self._gateway.fetch_flag(key.flag_key, False)
        if result.error is not None:
            logger.warning(f"FlagVault: Background refresh failed for '{key}': {result.error.message}")
            return False
        if not result.cacheable or self._stopped:
            return False
        self._cache.put(key, result.value)
        return True
