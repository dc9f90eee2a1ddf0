"""Tests for deprecated calling conventions."""

import httpx
import pytest
import respx
from flagvault import CacheConfig, FlagVaultClient, FlagVaultConfig
from flagvault.legacy import is_enabled_with_context

FLAG_URL = "https://api.flagvault.com/api/feature-flag/f/enabled"


async def test_context_forwarded_as_target_id():
    """The legacy string context is used as the target id and warns."""
    client = FlagVaultClient(
        FlagVaultConfig(api_key="k", cache=CacheConfig(refresh_interval_seconds=0))
    )
    with respx.mock:
        route = respx.get(FLAG_URL).mock(return_value=httpx.Response(200, json={"enabled": True}))

        with pytest.deprecated_call():
            assert await is_enabled_with_context(client, "f", False, "user-1") is True

        assert route.calls.last.request.url.params["targetId"] == "user-1"

    assert client.debug_flag("f", "user-1").cached is True
    await client.close()
