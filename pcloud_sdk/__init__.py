"""
pCloud SDK - Python client for the pCloud REST API change feed.

This package provides:
- Synchronous and async/await clients with API server discovery
- A reconnecting, backpressured stream of account change events
- Composable filter stages on top of any event stream
- A CLI for listing and following events
"""

__version__ = "0.1.0"

from .client import PCloudClient
from .async_client import AsyncPCloudClient
from .channel import Channel
from .events import (
    ChangeFetcher,
    EventStream,
    FilterStage,
    StreamCloseReason,
    filter_stream,
    kinds_predicate,
)
from .models import (
    ChangeBatch,
    ChangeEvent,
    EventKind,
    FileCategory,
    Metadata,
    ResultCode,
    ShareInfo,
    StreamConfig,
)
from .exceptions import (
    PCloudError,
    ApiError,
    ConfigurationError,
    NetworkError,
    RequestTimeoutError,
    ResponseFormatError,
    ChangeFetchTimeout,
    ChangeFetchError,
)

__all__ = [
    # Main clients
    "PCloudClient",
    "AsyncPCloudClient",

    # Streaming
    "Channel",
    "ChangeFetcher",
    "EventStream",
    "FilterStage",
    "StreamCloseReason",
    "filter_stream",
    "kinds_predicate",

    # Data models
    "ChangeBatch",
    "ChangeEvent",
    "EventKind",
    "FileCategory",
    "Metadata",
    "ResultCode",
    "ShareInfo",
    "StreamConfig",

    # Exceptions
    "PCloudError",
    "ApiError",
    "ConfigurationError",
    "NetworkError",
    "RequestTimeoutError",
    "ResponseFormatError",
    "ChangeFetchTimeout",
    "ChangeFetchError",
]
