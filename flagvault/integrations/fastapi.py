"""
FastAPI integration.

Exposes flag evaluation as request dependencies:

    client = FlagVaultClient(FlagVaultConfig(api_key="live_..."))

    @app.get("/checkout")
    async def checkout(state: FlagState = Depends(flag_dependency(client, "new-checkout"))):
        ...

    @app.get("/beta", dependencies=[Depends(require_flag(client, "beta"))])
    async def beta():
        ...

The target identifier is read from a request header (``X-Target-Id`` by
default). FastAPI must be installed; otherwise the factories raise
CapabilityUnavailableError.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from flagvault.cache import CacheKey, FlagCache
from flagvault.client import FlagVaultClient
from flagvault.errors import CapabilityUnavailableError, FlagVaultError

DEFAULT_TARGET_HEADER = "X-Target-Id"


@dataclass
class FlagState:
    """Result of a flag dependency."""

    is_enabled: bool
    error: Optional[FlagVaultError] = None


def _require_fastapi(feature: str):
    try:
        import fastapi
    except ImportError as e:
        raise CapabilityUnavailableError(
            f"{feature} requires FastAPI to be installed. "
            "Please install it: pip install 'flagvault-sdk[fastapi]'"
        ) from e
    return fastapi


def flag_dependency(
    client: FlagVaultClient,
    flag_key: str,
    default_value: bool = False,
    target_header: str = DEFAULT_TARGET_HEADER,
    cache: Optional[FlagCache] = None,
) -> Callable[..., Awaitable[FlagState]]:
    """
    Build a dependency that evaluates a flag for the current request.

    Args:
        client: Client used for evaluation
        flag_key: The flag key to evaluate
        default_value: Value used when evaluation fails
        target_header: Request header carrying the target identifier
        cache: Optional cache owned by the caller. Results, including
            defaults after a failure, are reused until its TTL expires.

    Returns:
        An async dependency resolving to FlagState
    """
    fastapi = _require_fastapi("flag_dependency")

    async def dependency(
        target_id: Optional[str] = fastapi.Header(default=None, alias=target_header),
    ) -> FlagState:
        target_id = target_id or None
        key = CacheKey(flag_key, target_id)
        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                return FlagState(is_enabled=cached)

        try:
            enabled = await client.is_enabled(flag_key, default_value, target_id=target_id)
        except FlagVaultError as e:
            return FlagState(is_enabled=default_value, error=e)

        if cache is not None:
            cache.put(key, enabled)
        return FlagState(is_enabled=enabled)

    return dependency


def require_flag(
    client: FlagVaultClient,
    flag_key: str,
    target_header: str = DEFAULT_TARGET_HEADER,
    status_code: int = 404,
) -> Callable[..., Awaitable[None]]:
    """
    Build a dependency that rejects the request unless the flag is enabled.

    Args:
        client: Client used for evaluation
        flag_key: The flag key to check
        target_header: Request header carrying the target identifier
        status_code: Status returned when the flag is off
    """
    fastapi = _require_fastapi("require_flag")
    inner = flag_dependency(client, flag_key, False, target_header)

    async def dependency(state: FlagState = fastapi.Depends(inner)) -> None:
        if not state.is_enabled:
            raise fastapi.HTTPException(status_code=status_code, detail="Not Found")

    return dependency
