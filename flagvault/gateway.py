"""
HTTP gateway to the FlagVault API.

Single-flag lookups never raise: every failure is absorbed into the caller's
default value and reported through ``FetchResult.error``. Bulk lookups raise
structured errors since there is no sensible default for "all flags".
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import quote

import httpx

from flagvault.config import FlagVaultConfig
from flagvault.errors import (
    AuthenticationError,
    FlagNotFoundError,
    FlagVaultError,
    InvalidResponseError,
    NetworkError,
    RequestTimeoutError,
    classify_error,
    classify_status,
)
from flagvault.evaluate import FlagMetadata

logger = logging.getLogger("flagvault")

API_KEY_HEADER = "X-API-Key"


@dataclass
class FetchResult:
    """Outcome of a single-flag lookup."""

    value: bool
    cacheable: bool
    error: Optional[FlagVaultError] = None


class FlagGateway:
    """Issues one bounded-timeout request per lookup."""

    def __init__(
        self,
        config: FlagVaultConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            config: Client configuration
            http_client: Optional client to reuse. The gateway does not close
                clients it did not create.
        """
        self._config = config
        self._http_client = http_client
        self._owns_client = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._config.timeout)
        return self._http_client

    def _headers(self) -> Dict[str, str]:
        return {API_KEY_HEADER: self._config.api_key}

    def flag_url(self, flag_key: str) -> str:
        return f"{self._config.base_url}/api/feature-flag/{quote(flag_key, safe='')}/enabled"

    @property
    def flags_url(self) -> str:
        return f"{self._config.base_url}/api/feature-flag"

    async def fetch_flag(
        self,
        flag_key: str,
        default_value: bool,
        target_id: Optional[str] = None,
    ) -> FetchResult:
        """
        Fetch a single flag's enabled state.

        Args:
            flag_key: The flag key
            default_value: Value to use if the lookup fails
            target_id: Optional target identifier for rollouts

        Returns:
            FetchResult; cacheable only for successful responses
        """
        params = {"targetId": target_id} if target_id else None

        try:
            response = await self._client().get(
                self.flag_url(flag_key),
                params=params,
                headers=self._headers(),
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException:
            return self._absorb(
                default_value,
                RequestTimeoutError(
                    f"Request timed out for flag '{flag_key}' after {self._config.timeout}s"
                ),
            )
        except httpx.TransportError as e:
            return self._absorb(
                default_value,
                NetworkError(f"Failed to connect to API for flag '{flag_key}': {e}"),
            )

        if response.status_code == 401:
            return self._absorb(
                default_value,
                AuthenticationError(f"Invalid API credentials for flag '{flag_key}'", 401),
            )
        if response.status_code == 403:
            return self._absorb(
                default_value,
                AuthenticationError(f"Access forbidden for flag '{flag_key}'", 403),
            )
        if response.status_code == 404:
            return self._absorb(default_value, FlagNotFoundError(f"Flag '{flag_key}' not found"))
        if not response.is_success:
            return self._absorb(
                default_value,
                classify_status(
                    response.status_code,
                    f"API error for flag '{flag_key}' "
                    f"(HTTP {response.status_code}: {response.reason_phrase})",
                ),
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return self._absorb(
                default_value,
                InvalidResponseError(
                    f"Invalid JSON response for flag '{flag_key}'", response.status_code
                ),
            )

        return FetchResult(value=bool(data.get("enabled", False)), cacheable=True)

    def _absorb(self, default_value: bool, error: FlagVaultError) -> FetchResult:
        # the caller decides whether the default is used, and logs it
        logger.debug(f"FlagVault: {error.message}")
        return FetchResult(value=default_value, cacheable=False, error=error)

    async def fetch_all_flags(self) -> Dict[str, FlagMetadata]:
        """
        Fetch metadata for every flag.

        Returns:
            Mapping of flag key to metadata

        Raises:
            AuthenticationError: On 401/403
            APIError: On other error responses or an unparseable body
            NetworkError: On timeout or connection failure
        """
        try:
            response = await self._client().get(
                self.flags_url,
                headers=self._headers(),
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException:
            raise RequestTimeoutError(
                f"Request timed out after {self._config.timeout}s"
            ) from None
        except httpx.TransportError as e:
            raise classify_error(e) from e

        if not response.is_success:
            raise classify_status(
                response.status_code,
                f"Failed to fetch flags: {response.status_code} {response.reason_phrase}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"Invalid JSON response: {e}", response.status_code
            ) from e

        flags: Dict[str, FlagMetadata] = {}
        raw_flags = data.get("flags") if isinstance(data, dict) else None
        if isinstance(raw_flags, list):
            for item in raw_flags:
                if isinstance(item, dict) and item.get("key"):
                    try:
                        flag = FlagMetadata.from_dict(item)
                    except (TypeError, ValueError) as e:
                        raise InvalidResponseError(
                            f"Invalid flag metadata for '{item['key']}': {e}",
                            response.status_code,
                        ) from e
                    flags[flag.key] = flag
        return flags

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this gateway created it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
