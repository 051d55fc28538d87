"""
Custom exceptions for the pCloud SDK.

This module defines the exception classes raised by the clients and the
change-event stream. Transport failures are mapped onto this hierarchy so
callers never have to handle aiohttp or requests exceptions directly.
"""


class PCloudError(Exception):
    """Base exception for all pCloud SDK errors."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self):
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(PCloudError):
    """Raised when SDK configuration is invalid."""

    def __init__(self, message: str = "Invalid configuration", config_key: str = None, **kwargs):
        super().__init__(message, error_code="CONFIG_ERROR", **kwargs)
        self.config_key = config_key


class ApiError(PCloudError):
    """Raised when the service answers with a non-zero result code."""

    def __init__(self, message: str = "Service reported an error", result: int = None, **kwargs):
        super().__init__(message, error_code=f"RESULT_{result}", **kwargs)
        self.result = result


class NetworkError(PCloudError):
    """Raised when network operations fail."""

    def __init__(self, message: str = "Network operation failed", **kwargs):
        super().__init__(message, error_code="NETWORK_ERROR", **kwargs)


class RequestTimeoutError(PCloudError):
    """Raised when a request times out."""

    def __init__(self, message: str = "Request timed out", timeout_seconds: float = None, **kwargs):
        super().__init__(message, error_code="TIMEOUT_ERROR", **kwargs)
        self.timeout_seconds = timeout_seconds


class ResponseFormatError(PCloudError):
    """Raised when a response body cannot be decoded."""

    def __init__(self, message: str = "Malformed response", **kwargs):
        super().__init__(message, error_code="FORMAT_ERROR", **kwargs)


class ChangeFetchTimeout(PCloudError):
    """
    Raised when a diff poll expires without data.

    This is the retryable outcome of a poll: the caller should poll again
    with the same cursor.
    """

    def __init__(self, message: str = "Diff poll timed out", cursor: int = None, **kwargs):
        super().__init__(message, error_code="DIFF_TIMEOUT", **kwargs)
        self.cursor = cursor


class ChangeFetchError(PCloudError):
    """Raised when a diff poll fails for any reason other than a timeout."""

    def __init__(self, message: str = "Diff poll failed", cause: Exception = None, cursor: int = None, **kwargs):
        if cause is not None and message == "Diff poll failed":
            message = f"Diff poll failed: {cause}"
        super().__init__(message, error_code="DIFF_ERROR", **kwargs)
        self.cause = cause
        self.cursor = cursor
