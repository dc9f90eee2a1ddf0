"""
FlagVault Python SDK - Feature flags with local caching and consistent rollouts.

Usage:
    from flagvault import FlagVaultClient, FlagVaultConfig

    async with FlagVaultClient(FlagVaultConfig(api_key="live_your-api-key")) as client:
        if await client.is_enabled("my-feature", target_id="user-123"):
            # Feature is enabled
            pass
"""

from flagvault.client import FlagVaultClient
from flagvault.config import (
    CacheConfig,
    DedupConfig,
    FallbackBehavior,
    FlagVaultConfig,
)
from flagvault.cache import (
    BulkFlagsCache,
    BulkSnapshot,
    CacheEntry,
    CacheKey,
    CacheStats,
    FlagCache,
    FlagDebugInfo,
)
from flagvault.errors import (
    FlagVaultError,
    ParameterError,
    ConfigurationError,
    AuthenticationError,
    NetworkError,
    RequestTimeoutError,
    APIError,
    FlagNotFoundError,
    InvalidResponseError,
    CapabilityUnavailableError,
    ErrorCategory,
)
from flagvault.evaluate import FlagMetadata, evaluate_flag, rollout_bucket
from flagvault.gateway import FetchResult, FlagGateway
from flagvault.refresh import BackgroundRefresher, RefreshState
from flagvault.dedup import RequestDeduplicator

__version__ = "1.0.0"
__all__ = [
    # Client
    "FlagVaultClient",
    "FlagVaultConfig",
    "CacheConfig",
    "DedupConfig",
    "FallbackBehavior",
    # Cache
    "BulkFlagsCache",
    "BulkSnapshot",
    "CacheEntry",
    "CacheKey",
    "CacheStats",
    "FlagCache",
    "FlagDebugInfo",
    # Errors
    "FlagVaultError",
    "ParameterError",
    "ConfigurationError",
    "AuthenticationError",
    "NetworkError",
    "RequestTimeoutError",
    "APIError",
    "FlagNotFoundError",
    "InvalidResponseError",
    "CapabilityUnavailableError",
    "ErrorCategory",
    # Evaluation
    "FlagMetadata",
    "evaluate_flag",
    "rollout_bucket",
    # Gateway
    "FetchResult",
    "FlagGateway",
    # Refresh
    "BackgroundRefresher",
    "RefreshState",
    # Dedup
    "RequestDeduplicator",
]
