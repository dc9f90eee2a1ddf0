"""
FlagVault client for feature flag evaluation.
"""

import logging
from typing import Callable, Dict, Optional

import httpx

from flagvault.cache import (
    BulkFlagsCache,
    CacheKey,
    CacheStats,
    FlagCache,
    FlagDebugInfo,
)
from flagvault.config import FallbackBehavior, FlagVaultConfig
from flagvault.dedup import RequestDeduplicator
from flagvault.errors import ParameterError
from flagvault.evaluate import FlagMetadata, evaluate_flag
from flagvault.gateway import FetchResult, FlagGateway
from flagvault.refresh import BackgroundRefresher

logger = logging.getLogger("flagvault")

BULK_DEDUP_KEY = "__all_flags__"


class FlagVaultClient:
    """
    FlagVault feature flag client.

    Evaluations are served from, in order: a fresh bulk snapshot (evaluated
    locally), the per-flag cache, and finally the API. Failed lookups fall
    back to the caller's default value unless the fallback behavior is
    ``THROW_ERROR``.

    Example:
        ```python
        async with FlagVaultClient(FlagVaultConfig(api_key="live_...")) as client:
            if await client.is_enabled("new-checkout", target_id="user-123"):
                show_new_checkout()
        ```
    """

    def __init__(
        self,
        config: FlagVaultConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the FlagVault client.

        Args:
            config: Client configuration
            http_client: Optional shared httpx client
            clock: Optional time source for the caches (epoch seconds)
        """
        self._config = config
        cache_kwargs = {"clock": clock} if clock is not None else {}
        self._cache = FlagCache(config.cache, **cache_kwargs)
        self._bulk_cache = BulkFlagsCache(config.cache, **cache_kwargs)
        self._gateway = FlagGateway(config, http_client)
        self._dedup = RequestDeduplicator(config.dedup)
        self._refresher = BackgroundRefresher(
            self._cache,
            self._gateway,
            config.cache.refresh_interval_seconds if config.cache.enabled else 0,
        )
        self._destroyed = False

    @property
    def config(self) -> FlagVaultConfig:
        return self._config

    @property
    def refresher(self) -> BackgroundRefresher:
        return self._refresher

    def start(self) -> None:
        """Start background refresh. Requires a running event loop."""
        if self._destroyed:
            return
        self._refresher.start()

    def _ensure_started(self) -> None:
        if not self._destroyed and not self._refresher.running:
            self._refresher.start()

    async def is_enabled(
        self,
        flag_key: str,
        default_value: bool = False,
        target_id: Optional[str] = None,
    ) -> bool:
        """
        Check if a flag is enabled.

        Args:
            flag_key: The flag key to check
            default_value: Value returned when the flag cannot be fetched
            target_id: Optional target identifier (e.g. user id) for
                consistent rollouts

        Returns:
            True if the flag is enabled

        Raises:
            ParameterError: If flag_key is empty
            FlagVaultError: If the fetch fails and fallback behavior is THROW_ERROR
        """
        if not flag_key:
            raise ParameterError("flag_key is required to check if a feature is enabled.")
        target_id = target_id or None

        self._ensure_started()
        cache_enabled = self._config.cache.enabled
        cache_key = CacheKey(flag_key, target_id)

        if cache_enabled:
            snapshot = self._bulk_cache.get()
            if snapshot is not None:
                flag = snapshot.flags.get(flag_key)
                if flag is not None:
                    return evaluate_flag(flag, target_id)

            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached

        result = await self._dedup.dedupe(
            ("flag", cache_key, default_value),
            lambda: self._gateway.fetch_flag(flag_key, default_value, target_id),
        )

        if result.error is not None:
            return self._handle_fetch_failure(flag_key, default_value, result)

        if cache_enabled and result.cacheable and not self._destroyed:
            self._cache.put(cache_key, result.value)

        return result.value

    def _handle_fetch_failure(
        self,
        flag_key: str,
        default_value: bool,
        result: FetchResult,
    ) -> bool:
        """Apply the configured fallback behavior to a failed lookup."""
        behavior = self._config.cache.fallback_behavior

        if behavior is FallbackBehavior.THROW_ERROR:
            raise result.error

        if behavior is FallbackBehavior.RETRY_API:
            # No retry policy is defined yet; behaves like RETURN_DEFAULT.
            logger.warning(
                f"FlagVault: Retry not implemented for '{flag_key}', using default: {default_value}"
            )
            return default_value

        logger.warning(f"FlagVault: {result.error.message}, using default: {default_value}")
        return default_value

    async def get_all_flags(self) -> Dict[str, FlagMetadata]:
        """
        Get metadata for all flags, using the bulk cache when fresh.

        Returns:
            Dictionary of flag keys to metadata

        Raises:
            FlagVaultError: If the API call fails
        """
        self._ensure_started()
        cache_enabled = self._config.cache.enabled

        if cache_enabled:
            snapshot = self._bulk_cache.get()
            if snapshot is not None:
                return dict(snapshot.flags)

        flags = await self._dedup.dedupe(BULK_DEDUP_KEY, self._gateway.fetch_all_flags)

        if cache_enabled and not self._destroyed:
            self._bulk_cache.put(flags)

        return dict(flags)

    async def preload_flags(self) -> None:
        """
        Warm the bulk cache.

        Raises:
            FlagVaultError: If the API call fails
        """
        await self.get_all_flags()

    def get_cache_stats(self) -> CacheStats:
        """Get per-flag cache statistics."""
        return self._cache.stats()

    def debug_flag(self, flag_key: str, target_id: Optional[str] = None) -> FlagDebugInfo:
        """Describe the cached state of a flag."""
        return self._cache.debug(flag_key, target_id or None)

    def clear_cache(self) -> None:
        """Clear the per-flag cache. A fresh bulk snapshot keeps serving."""
        self._cache.clear()

    def destroy(self) -> None:
        """Stop background refresh and drop all cached state."""
        self._destroyed = True
        self._refresher.stop()
        self._dedup.clear()
        self._cache.clear()
        self._bulk_cache.clear()

    async def close(self) -> None:
        """Destroy the client and close the HTTP client."""
        self.destroy()
        await self._gateway.aclose()

    async def __aenter__(self) -> "FlagVaultClient":
        """Async context manager entry."""
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
