"""Tests for the HTTP gateway."""

import logging

import pytest
import httpx
import respx
from flagvault.config import FlagVaultConfig
from flagvault.errors import (
    APIError,
    AuthenticationError,
    FlagNotFoundError,
    InvalidResponseError,
    NetworkError,
    RequestTimeoutError,
)
from flagvault.evaluate import FlagMetadata
from flagvault.gateway import FlagGateway

BASE_URL = "https://api.flagvault.com"
FLAG_URL = f"{BASE_URL}/api/feature-flag/test-flag/enabled"
FLAGS_URL = f"{BASE_URL}/api/feature-flag"


@pytest.fixture
def mock_api():
    """Mock API responses."""
    with respx.mock:
        yield respx


@pytest.fixture
async def gateway():
    gw = FlagGateway(FlagVaultConfig(api_key="test_key", timeout=2.0))
    yield gw
    await gw.aclose()


class TestFetchFlag:
    """Tests for single-flag lookups."""

    async def test_enabled_response(self, mock_api, gateway):
        """2xx with enabled=true is returned and cacheable."""
        route = mock_api.get(FLAG_URL).mock(
            return_value=httpx.Response(200, json={"enabled": True})
        )

        result = await gateway.fetch_flag("test-flag", False)

        assert result.value is True
        assert result.cacheable is True
        assert result.error is None
        assert route.calls.last.request.headers["X-API-Key"] == "test_key"

    async def test_missing_enabled_field(self, mock_api, gateway):
        """2xx without enabled field is false but still cacheable."""
        mock_api.get(FLAG_URL).mock(return_value=httpx.Response(200, json={}))

        result = await gateway.fetch_flag("test-flag", True)

        assert result.value is False
        assert result.cacheable is True

    async def test_target_id_query_param(self, mock_api, gateway):
        """Target id is sent as an encoded query parameter."""
        route = mock_api.get(FLAG_URL).mock(
            return_value=httpx.Response(200, json={"enabled": True})
        )

        await gateway.fetch_flag("test-flag", False, target_id="user 1&x")

        assert route.calls.last.request.url.params["targetId"] == "user 1&x"

    async def test_no_query_without_target(self, mock_api, gateway):
        """No query string is sent without a target id."""
        route = mock_api.get(FLAG_URL).mock(
            return_value=httpx.Response(200, json={"enabled": True})
        )

        await gateway.fetch_flag("test-flag", False)

        assert "targetId" not in route.calls.last.request.url.params

    @pytest.mark.parametrize(
        "status,error_type",
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (404, FlagNotFoundError),
            (500, APIError),
            (429, APIError),
        ],
    )
    async def test_error_status_returns_default(self, mock_api, gateway, caplog, status, error_type):
        """Error statuses yield the default and an error naming the flag."""
        mock_api.get(FLAG_URL).mock(return_value=httpx.Response(status, json={"error": "x"}))

        with caplog.at_level(logging.WARNING, logger="flagvault"):
            result = await gateway.fetch_flag("test-flag", True)

        assert result.value is True
        assert result.cacheable is False
        assert isinstance(result.error, error_type)
        assert "test-flag" in result.error.message
        # substituting the default is reported by the client, not here
        assert caplog.records == []

    async def test_invalid_json_returns_default(self, mock_api, gateway):
        """Unparseable body yields the default."""
        mock_api.get(FLAG_URL).mock(return_value=httpx.Response(200, text="not json"))

        result = await gateway.fetch_flag("test-flag", True)

        assert result.value is True
        assert result.cacheable is False
        assert isinstance(result.error, InvalidResponseError)

    async def test_non_object_body_returns_default(self, mock_api, gateway):
        """A JSON body that is not an object is treated as invalid."""
        mock_api.get(FLAG_URL).mock(return_value=httpx.Response(200, json=[True]))

        result = await gateway.fetch_flag("test-flag", False)

        assert result.cacheable is False
        assert isinstance(result.error, InvalidResponseError)

    async def test_timeout_returns_default(self, mock_api, gateway):
        """Timeouts yield the default."""
        mock_api.get(FLAG_URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        result = await gateway.fetch_flag("test-flag", True)

        assert result.value is True
        assert result.cacheable is False
        assert isinstance(result.error, RequestTimeoutError)
        assert result.error.message == "Request timed out for flag 'test-flag' after 2.0s"

    async def test_connection_error_returns_default(self, mock_api, gateway):
        """Transport failures yield the default."""
        mock_api.get(FLAG_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        result = await gateway.fetch_flag("test-flag", False)

        assert result.value is False
        assert result.cacheable is False
        assert isinstance(result.error, NetworkError)
        assert not isinstance(result.error, RequestTimeoutError)


class TestFetchAllFlags:
    """Tests for bulk lookups."""

    async def test_parses_flags(self, mock_api, gateway):
        """Flags are parsed into metadata keyed by flag key."""
        mock_api.get(FLAGS_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "flags": [
                        {"key": "a", "isEnabled": True, "name": "A"},
                        {
                            "key": "b",
                            "isEnabled": True,
                            "name": "B",
                            "rolloutPercentage": 50,
                            "rolloutSeed": "s",
                        },
                        {"name": "no key"},
                    ]
                },
            )
        )

        flags = await gateway.fetch_all_flags()

        assert set(flags) == {"a", "b"}
        assert flags["a"] == FlagMetadata(key="a", is_enabled=True, name="A")
        assert flags["b"].rollout_percentage == 50.0
        assert flags["b"].rollout_seed == "s"

    async def test_missing_flags_list(self, mock_api, gateway):
        """A body without a flags list yields no flags."""
        mock_api.get(FLAGS_URL).mock(return_value=httpx.Response(200, json={"flags": None}))

        assert await gateway.fetch_all_flags() == {}

    async def test_auth_error_raises(self, mock_api, gateway):
        """401 raises AuthenticationError."""
        mock_api.get(FLAGS_URL).mock(return_value=httpx.Response(401))

        with pytest.raises(AuthenticationError):
            await gateway.fetch_all_flags()

    async def test_server_error_raises(self, mock_api, gateway):
        """Non-2xx raises APIError with the status code."""
        mock_api.get(FLAGS_URL).mock(return_value=httpx.Response(503))

        with pytest.raises(APIError) as exc_info:
            await gateway.fetch_all_flags()
        assert exc_info.value.status_code == 503

    async def test_invalid_json_raises(self, mock_api, gateway):
        """Unparseable body raises InvalidResponseError."""
        mock_api.get(FLAGS_URL).mock(return_value=httpx.Response(200, text="<html>"))

        with pytest.raises(InvalidResponseError):
            await gateway.fetch_all_flags()

    async def test_timeout_raises(self, mock_api, gateway):
        """Timeouts raise RequestTimeoutError."""
        mock_api.get(FLAGS_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

        with pytest.raises(RequestTimeoutError):
            await gateway.fetch_all_flags()

    async def test_connection_error_raises(self, mock_api, gateway):
        """Transport failures raise NetworkError."""
        mock_api.get(FLAGS_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NetworkError):
            await gateway.fetch_all_flags()

    @pytest.mark.parametrize(
        "item",
        [
            {"key": "a", "isEnabled": True, "rolloutPercentage": "abc"},
            {"key": "a", "isEnabled": True, "rolloutPercentage": [50]},
        ],
    )
    async def test_malformed_flag_raises(self, mock_api, gateway, item):
        """Unparseable flag metadata raises InvalidResponseError."""
        mock_api.get(FLAGS_URL).mock(return_value=httpx.Response(200, json={"flags": [item]}))

        with pytest.raises(InvalidResponseError, match="'a'"):
            await gateway.fetch_all_flags()


class TestGatewayLifecycle:
    """Tests for HTTP client ownership."""

    async def test_injected_client_not_closed(self):
        """A shared client stays open after aclose()."""
        http_client = httpx.AsyncClient()
        gateway = FlagGateway(FlagVaultConfig(api_key="k"), http_client)

        await gateway.aclose()

        assert http_client.is_closed is False
        await http_client.aclose()
