"""Tests for the aiohttp-based client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from pcloud_sdk.async_client import AsyncPCloudClient, check_result
from pcloud_sdk.events import StreamCloseReason
from pcloud_sdk.exceptions import (
    ApiError, ChangeFetchError, ConfigurationError, NetworkError, RequestTimeoutError, ResponseFormatError
)
from pcloud_sdk.models import StreamConfig


def mock_response(json_data=None, status=200, json_error=None, headers=None):
    """Async context manager standing in for ``session.get(...)``."""
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    response.json = AsyncMock(return_value=json_data, side_effect=json_error)
    if status >= 400:
        response.raise_for_status.side_effect = aiohttp.ClientResponseError(
            request_info=MagicMock(), history=(), status=status, message="Internal Server Error"
        )

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


def failing_request(error):
    context = MagicMock()
    context.__aenter__ = AsyncMock(side_effect=error)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


@pytest.fixture
def session():
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    return session


@pytest.fixture
def client(session):
    client = AsyncPCloudClient(access_token="test-token", max_retries=2)
    client._session = session
    return client


@pytest.fixture
def no_sleep():
    with patch("pcloud_sdk.async_client.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


class TestCall:
    @pytest.mark.asyncio
    async def test_success(self, client, session):
        session.get.return_value = mock_response({"result": 0, "diffid": 4})

        data = await client.call("diff", params={"diffid": 3})

        assert data == {"result": 0, "diffid": 4}
        args, kwargs = session.get.call_args
        assert args == ("https://api.pcloud.com/diff",)
        assert kwargs["params"] == {"diffid": 3}
        assert kwargs["timeout"].total == 30

    @pytest.mark.asyncio
    async def test_per_call_timeout(self, client, session):
        session.get.return_value = mock_response({"result": 0})

        await client.call("diff", timeout=5)

        assert session.get.call_args.kwargs["timeout"].total == 5

    @pytest.mark.asyncio
    async def test_service_error(self, client, session):
        session.get.return_value = mock_response({"result": 2009, "error": "File not found."})

        with pytest.raises(ApiError) as exc_info:
            await client.call("diff")

        assert exc_info.value.result == 2009
        assert exc_info.value.error_code == "RESULT_2009"
        assert "diff: File not found." in str(exc_info.value)
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_without_retry(self, client, session):
        session.get.return_value = failing_request(asyncio.TimeoutError())

        with pytest.raises(RequestTimeoutError):
            await client.call("diff", retry=False)

        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, client, session, no_sleep):
        session.get.side_effect = [
            failing_request(asyncio.TimeoutError()),
            mock_response({"result": 0, "api": []}),
        ]

        data = await client.call("getapiserver")

        assert data["result"] == 0
        assert session.get.call_count == 2
        no_sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_connection_error_after_retries(self, client, session, no_sleep):
        session.get.side_effect = lambda *args, **kwargs: failing_request(
            aiohttp.ClientConnectionError("Connection refused")
        )

        with pytest.raises(NetworkError) as exc_info:
            await client.call("diff")

        assert "Connection refused" in str(exc_info.value)
        assert session.get.call_count == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self, client, session):
        session.get.return_value = mock_response(status=500)

        with pytest.raises(NetworkError) as exc_info:
            await client.call("diff")

        assert "HTTP 500" in str(exc_info.value)
        assert session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_waits_for_retry_after(self, client, session, no_sleep):
        session.get.side_effect = [
            mock_response(status=429, headers={"Retry-After": "2"}),
            mock_response({"result": 0}),
        ]

        assert await client.call("diff") == {"result": 0}
        no_sleep.assert_awaited_once_with(2)

    @pytest.mark.asyncio
    async def test_invalid_json(self, client, session):
        session.get.return_value = mock_response(json_error=ValueError("Expecting value"))

        with pytest.raises(ResponseFormatError):
            await client.call("diff")

    @pytest.mark.asyncio
    async def test_body_must_be_an_object(self, client, session):
        session.get.return_value = mock_response([1, 2, 3])

        with pytest.raises(ResponseFormatError):
            await client.call("diff")


def test_check_result_describes_unnamed_errors():
    with pytest.raises(ApiError) as exc_info:
        check_result("diff", {"result": 1000})

    assert exc_info.value.message == "diff: Log in required"
    assert exc_info.value.details == {"result": 1000}


class TestConfiguration:
    def test_missing_token(self, monkeypatch):
        monkeypatch.delenv("PCLOUD_ACCESS_TOKEN", raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            AsyncPCloudClient()

        assert exc_info.value.config_key == "access_token"

    def test_environment_settings(self, monkeypatch):
        monkeypatch.setenv("PCLOUD_ACCESS_TOKEN", "env-token")
        monkeypatch.setenv("PCLOUD_ENDPOINT", "https://eapi.pcloud.com/")

        client = AsyncPCloudClient()

        assert client.access_token == "env-token"
        assert client.endpoint == "https://eapi.pcloud.com"
        assert client.api_host == "https://eapi.pcloud.com"

    @pytest.mark.asyncio
    async def test_session_carries_token(self):
        async with AsyncPCloudClient(access_token="test-token") as client:
            session = await client._get_session()

            assert session.headers["Authorization"] == "Bearer test-token"
            assert await client._get_session() is session

        assert session.closed


class TestApiServer:
    @pytest.mark.asyncio
    async def test_uses_nearest_server(self, client, session):
        session.get.side_effect = [
            mock_response({"result": 0, "api": ["eapi-fra.pcloud.com", "eapi.pcloud.com"]}),
            mock_response({"result": 0, "diffid": 1}),
        ]

        assert await client.resolve_api_server() == "https://eapi-fra.pcloud.com"
        await client.call("diff")

        urls = [c.args[0] for c in session.get.call_args_list]
        assert urls == ["https://api.pcloud.com/getapiserver", "https://eapi-fra.pcloud.com/diff"]

    @pytest.mark.asyncio
    async def test_falls_back_to_endpoint(self, client, session):
        session.get.return_value = mock_response({"result": 5000, "error": "Internal error."})

        assert await client.resolve_api_server() == "https://api.pcloud.com"
        assert client.api_host == "https://api.pcloud.com"


class TestChangeFeed:
    @pytest.mark.asyncio
    async def test_diff(self, client, session, diff_payload):
        session.get.return_value = mock_response(diff_payload)

        batch = await client.diff(start_cursor=10, page_limit=50)

        assert batch.high_water_cursor == 12
        assert [event.name for event in batch.events] == ["Documents", "report.pdf"]
        assert session.get.call_args.kwargs["params"] == {"diffid": 10, "limit": 50}

    @pytest.mark.asyncio
    async def test_diff_failure(self, client, session):
        session.get.return_value = mock_response({"result": 1000, "error": "Log in required."})

        with pytest.raises(ChangeFetchError) as exc_info:
            await client.diff(StreamConfig(start_cursor=10))

        assert isinstance(exc_info.value.cause, ApiError)
        assert exc_info.value.cursor == 10

    @pytest.mark.asyncio
    async def test_stream_changes(self, client, session, diff_payload):
        session.get.side_effect = [
            mock_response(diff_payload),
            mock_response({"result": 1000, "error": "Log in required."}),
        ]

        stream = client.stream_changes(block_timeout=20)
        names = [event.name async for event in stream]
        await stream.wait_closed()

        assert names == ["Documents", "report.pdf"]
        assert stream.close_reason is StreamCloseReason.FATAL
        assert stream.error.cause.result == 1000

        first, second = session.get.call_args_list
        assert first.kwargs["params"] == {}
        assert second.kwargs["params"] == {"diffid": 12, "block": "1"}
        assert second.kwargs["timeout"].total == 20

    @pytest.mark.asyncio
    async def test_close(self, client, session):
        await client.close()

        session.close.assert_awaited_once()
