"""
Request deduplication to prevent duplicate inflight requests.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, TypeVar

from flagvault.config import DedupConfig, DEFAULT_DEDUP_CONFIG

T = TypeVar("T")


class RequestDeduplicator:
    """
    Deduplicates concurrent identical requests.

    When multiple callers request the same resource simultaneously,
    only one actual request is made and the result is shared. Callers
    arriving after the request settles start a new one.

    The shared request runs in its own task, so cancelling any caller,
    including the one that started it, does not cancel the others.

    Registration happens without suspending, so no lock is needed on a
    single event loop.

    Example:
        ```python
        dedup = RequestDeduplicator()

        # These concurrent calls will result in only one actual fetch
        await asyncio.gather(
            dedup.dedupe("flags", fetch_flags),
            dedup.dedupe("flags", fetch_flags),
        )
        ```
    """

    def __init__(self, config: Optional[DedupConfig] = None):
        """
        Initialize the deduplicator.

        Args:
            config: Deduplication configuration
        """
        self._config = config or DEFAULT_DEDUP_CONFIG
        self._inflight: Dict[Hashable, asyncio.Future] = {}

        # Statistics
        self._total_requests = 0
        self._deduplicated_requests = 0

    async def dedupe(
        self,
        key: Hashable,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Execute a request with deduplication.

        If an identical request (by key) is already inflight,
        wait for its result instead of making a new request.

        Args:
            key: Unique key for this request
            request_fn: Async function to execute if no inflight request exists

        Returns:
            Result of the request
        """
        if not self._config.enabled:
            return await request_fn()

        self._total_requests += 1

        task = self._inflight.get(key)
        if task is not None:
            self._deduplicated_requests += 1
        else:
            task = asyncio.ensure_future(request_fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._settle(key, t))

        # every caller, including the one that started the request, waits
        # through a shield so a cancelled caller leaves the others untouched
        return await asyncio.shield(task)

    def _settle(self, key: Hashable, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # mark retrieved so a result nobody awaits does not log a warning
            task.exception()

    @property
    def inflight_count(self) -> int:
        """Get number of currently inflight requests."""
        return len(self._inflight)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get deduplication statistics.

        Returns:
            Dictionary with total_requests, deduplicated_requests, dedup_rate
        """
        total = self._total_requests
        deduped = self._deduplicated_requests
        return {
            "total_requests": total,
            "deduplicated_requests": deduped,
            "dedup_rate": deduped / total if total > 0 else 0,
            "inflight_count": len(self._inflight),
        }

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self._total_requests = 0
        self._deduplicated_requests = 0

    def clear(self) -> None:
        """Forget all inflight requests."""
        self._inflight.clear()
