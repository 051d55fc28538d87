"""
Asynchronous pCloud client implementation.

This module provides the aiohttp-based client used by the change-event
stream. Every API method is a GET returning a JSON object with a ``result``
field; non-zero results are raised as ``ApiError``.
"""

import asyncio
import os
import logging
from typing import Optional, Dict, Any

import aiohttp

from .models import ChangeBatch, ResultCode, StreamConfig
from .exceptions import (
    ApiError, ConfigurationError, NetworkError, RequestTimeoutError, ResponseFormatError
)
from .events import ChangeFetcher, EventStream


logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.pcloud.com"
USER_AGENT = "pcloud-python-sdk/0.1.0"


def check_result(method: str, data: Any) -> Dict[str, Any]:
    """Validate a decoded response body and raise on service errors."""
    if not isinstance(data, dict):
        raise ResponseFormatError(f"Expected a JSON object from '{method}', got {type(data).__name__}")

    result = data.get("result", ResultCode.OK)
    if result != ResultCode.OK:
        message = data.get("error") or ResultCode.describe(result)
        raise ApiError(f"{method}: {message}", result=result, details=data)

    return data


class AsyncPCloudClient:
    """
    Asynchronous client for the pCloud REST API.

    Attaches the access token to every request and exposes the account's
    change feed both as single diff calls and as a continuous stream.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
    ):
        """
        Initialize the async pCloud client.

        Args:
            access_token: OAuth access token (can also use PCLOUD_ACCESS_TOKEN env var)
            endpoint: API endpoint URL (can also use PCLOUD_ENDPOINT env var)
            timeout: Default request timeout in seconds
            max_retries: Maximum number of retry attempts for connection errors
        """
        self.access_token = access_token or os.getenv("PCLOUD_ACCESS_TOKEN")
        self.endpoint = (endpoint or os.getenv("PCLOUD_ENDPOINT") or DEFAULT_ENDPOINT).rstrip("/")
        self.api_host = self.endpoint
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_retries = max_retries

        if not self.access_token:
            raise ConfigurationError(
                "Access token is required. Provide it as parameter or PCLOUD_ACCESS_TOKEN env var.",
                config_key="access_token",
            )

        # Session will be created when needed
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            headers = {
                "Authorization": f"Bearer {self.access_token}",
                "User-Agent": USER_AGENT,
            }

            connector = aiohttp.TCPConnector(limit=100, limit_per_host=30)
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=self.timeout,
                connector=connector,
            )

        return self._session

    async def call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        retry: bool = True,
        host: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Call an API method and return its decoded response.

        Args:
            method: API method name (e.g. "diff")
            params: Query parameters
            timeout: Per-request timeout in seconds, overrides the client default
            retry: Retry connection errors and timeouts with exponential backoff
            host: Host to call instead of the resolved API host

        Returns:
            Decoded JSON object

        Raises:
            RequestTimeoutError: The request timed out
            NetworkError: Any other transport failure
            ResponseFormatError: The body is not a JSON object
            ApiError: The service reported a non-zero result
        """
        session = await self._get_session()
        url = f"{host or self.api_host}/{method}"
        request_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else self.timeout
        attempts = self.max_retries + 1 if retry else 1

        for attempt in range(attempts):
            logger.debug("GET %s %s (attempt %d)", url, params or {}, attempt + 1)
            try:
                async with session.get(url, params=params, timeout=request_timeout) as response:
                    if response.status == 429 and attempt < attempts - 1:
                        retry_after = int(response.headers.get("Retry-After", 1))
                        await asyncio.sleep(min(retry_after, 60))
                        continue

                    response.raise_for_status()
                    data = await response.json(content_type=None)

            except asyncio.TimeoutError as e:
                if attempt < attempts - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise RequestTimeoutError(
                    f"Request timeout: {method}", timeout_seconds=request_timeout.total
                ) from e
            except aiohttp.ClientResponseError as e:
                raise NetworkError(f"HTTP {e.status} from {method}: {e.message}") from e
            except aiohttp.ClientError as e:
                if attempt < attempts - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                raise NetworkError(f"Connection error: {e}") from e
            except ValueError as e:
                raise ResponseFormatError(f"Invalid JSON from {method}: {e}") from e

            return check_result(method, data)

        raise NetworkError(f"Rate limit persisted for {method}")

    async def resolve_api_server(self) -> str:
        """
        Switch to the API host nearest to this client.

        Falls back to the configured endpoint when the service does not
        suggest one.
        """
        try:
            data = await self.call("getapiserver", host=self.endpoint)
        except ApiError as e:
            logger.warning("Could not resolve nearest API server: %s", e)
            self.api_host = self.endpoint
            return self.api_host

        hosts = data.get("api") or []
        if hosts:
            self.api_host = f"https://{hosts[0]}"
            logger.debug("Using API server %s for endpoint %s", self.api_host, self.endpoint)
        else:
            self.api_host = self.endpoint

        return self.api_host

    async def diff(self, config: Optional[StreamConfig] = None, **options) -> ChangeBatch:
        """
        Fetch one page of account events.

        Not all events are returned at once; call again with the returned
        ``high_water_cursor`` as ``start_cursor`` to continue.

        Args:
            config: Poll configuration, built from ``options`` when omitted
            **options: StreamConfig fields (start_cursor, start_after, ...)

        Returns:
            ChangeBatch with the events after the requested cursor
        """
        if config is None:
            config = StreamConfig(**options)
        return await ChangeFetcher(self).fetch(config)

    def stream_changes(
        self,
        config: Optional[StreamConfig] = None,
        capacity: Optional[int] = None,
        **options,
    ) -> EventStream:
        """
        Stream account events continuously.

        Must be called from a running event loop. Blocking polls are enabled
        by default; set ``block_timeout`` so each poll ends in bounded time.

        Args:
            config: Stream configuration, built from ``options`` when omitted
            capacity: Output queue size, defaults to the page limit or 128
            **options: StreamConfig fields (start_cursor, block_timeout, ...)

        Returns:
            Running EventStream; iterate it with ``async for`` and ``aclose()`` it when done
        """
        if config is None:
            options.setdefault("blocking", True)
            config = StreamConfig(**options)
        return EventStream.start(ChangeFetcher(self), config, capacity)

    async def close(self):
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
