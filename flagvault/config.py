"""Configuration classes for FlagVault SDK."""

from dataclasses import dataclass, field
from enum import Enum

from flagvault.errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.flagvault.com"


class FallbackBehavior(str, Enum):
    """What a cache-miss evaluation does when the API call fails."""

    RETURN_DEFAULT = "default"
    """Return the caller's default value."""

    THROW_ERROR = "throw"
    """Raise the structured error to the caller."""

    RETRY_API = "api"
    """Reserved for a retry policy. Currently returns the default value."""


@dataclass
class CacheConfig:
    """Cache configuration settings."""

    enabled: bool = True
    """Enable or disable caching."""

    ttl_seconds: float = 300.0
    """Time-to-live for cache entries and the bulk snapshot (default: 5 minutes)."""

    max_entries: int = 1000
    """Maximum number of per-flag entries before LRU eviction."""

    refresh_interval_seconds: float = 60.0
    """Background refresh interval. Set to 0 to disable."""

    fallback_behavior: FallbackBehavior = FallbackBehavior.RETURN_DEFAULT
    """Fallback policy when a cache miss is followed by a failed fetch."""

    def __post_init__(self) -> None:
        if not isinstance(self.fallback_behavior, FallbackBehavior):
            try:
                self.fallback_behavior = FallbackBehavior(self.fallback_behavior)
            except ValueError:
                raise ConfigurationError(
                    f"Unknown fallback behavior: {self.fallback_behavior!r}"
                ) from None
        if self.ttl_seconds <= 0:
            raise ConfigurationError("ttl_seconds must be positive")
        if self.max_entries < 1:
            raise ConfigurationError("max_entries must be at least 1")
        if self.refresh_interval_seconds < 0:
            raise ConfigurationError("refresh_interval_seconds must not be negative")


@dataclass
class DedupConfig:
    """Configuration for request deduplication."""

    enabled: bool = True
    """Coalesce identical concurrent fetches into one request."""


DEFAULT_CACHE_CONFIG = CacheConfig()
DEFAULT_DEDUP_CONFIG = DedupConfig()


@dataclass
class FlagVaultConfig:
    """Main configuration for FlagVault client."""

    api_key: str
    """API key. The prefix selects the environment (live_ or test_)."""

    base_url: str = DEFAULT_BASE_URL
    """Base URL for the API."""

    timeout: float = 10.0
    """Request timeout in seconds."""

    cache: CacheConfig = field(default_factory=lambda: DEFAULT_CACHE_CONFIG)
    """Cache configuration."""

    dedup: DedupConfig = field(default_factory=lambda: DEFAULT_DEDUP_CONFIG)
    """Request deduplication configuration."""

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigurationError("API Key is required to initialize the SDK.")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        self.base_url = self.base_url.rstrip("/")

    @property
    def environment(self) -> str:
        """Environment inferred from the API key prefix."""
        if self.api_key.startswith("live_"):
            return "production"
        if self.api_key.startswith("test_"):
            return "test"
        return "unknown"
