"""
Synchronous pCloud client implementation.

This module provides a requests-based client for one-shot calls: resolving
the nearest API server and reading a single page of the change feed. Use
``AsyncPCloudClient`` for continuous streaming.
"""

import os
import logging
from typing import Optional, Dict, Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .models import ChangeBatch, StreamConfig
from .exceptions import ApiError, ConfigurationError, NetworkError, RequestTimeoutError, ResponseFormatError
from .async_client import DEFAULT_ENDPOINT, USER_AGENT, check_result
from .events import ChangeFetcher


logger = logging.getLogger(__name__)


class PCloudClient:
    """
    Synchronous client for the pCloud REST API.

    Shares the response handling of ``AsyncPCloudClient``; suited to scripts
    and the command line.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 3,
    ):
        """
        Initialize the pCloud client.

        Args:
            access_token: OAuth access token (can also use PCLOUD_ACCESS_TOKEN env var)
            endpoint: API endpoint URL (can also use PCLOUD_ENDPOINT env var)
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
        """
        self.access_token = access_token or os.getenv("PCLOUD_ACCESS_TOKEN")
        self.endpoint = (endpoint or os.getenv("PCLOUD_ENDPOINT") or DEFAULT_ENDPOINT).rstrip("/")
        self.api_host = self.endpoint
        self.timeout = timeout

        if not self.access_token:
            raise ConfigurationError(
                "Access token is required. Provide it as parameter or PCLOUD_ACCESS_TOKEN env var.",
                config_key="access_token",
            )

        # Setup HTTP session with retry strategy
        self.session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        # Set default headers
        self.session.headers.update({
            "Authorization": f"Bearer {self.access_token}",
            "User-Agent": USER_AGENT,
        })

    def call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        host: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Call an API method and return its decoded response."""
        url = f"{host or self.api_host}/{method}"
        logger.debug("GET %s %s", url, params or {})

        try:
            response = self.session.get(url, params=params, timeout=timeout or self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(f"Request timeout: {e}", timeout_seconds=timeout or self.timeout) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"Connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseFormatError(f"Invalid JSON from {method}: {e}") from e

        return check_result(method, data)

    def resolve_api_server(self) -> str:
        """Switch to the API host nearest to this client."""
        try:
            data = self.call("getapiserver", host=self.endpoint)
        except ApiError as e:
            logger.warning("Could not resolve nearest API server: %s", e)
            data = {}

        hosts = data.get("api") or []
        self.api_host = f"https://{hosts[0]}" if hosts else self.endpoint
        return self.api_host

    def diff(self, config: Optional[StreamConfig] = None, **options) -> ChangeBatch:
        """
        Fetch one page of account events.

        Args:
            config: Poll configuration, built from ``options`` when omitted
            **options: StreamConfig fields (start_cursor, start_after, last_n, ...)

        Returns:
            ChangeBatch with the events after the requested cursor

        Raises:
            PCloudError: On transport failures, malformed bodies or service errors
        """
        if config is None:
            config = StreamConfig(**options)

        data = self.call("diff", params=config.to_params(), timeout=config.request_timeout)
        try:
            batch = ChangeBatch.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            raise ResponseFormatError(f"Unexpected diff response: {e!r}") from e

        return ChangeFetcher.drop_seen(batch, config.start_cursor)

    def close(self):
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
