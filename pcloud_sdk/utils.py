"""
Utility functions for the pCloud SDK.

This module provides the timestamp codec for the service's date format and
small helpers shared by the clients, the event stream and the CLI.
"""

import math
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Optional


# Page size the diff endpoint uses when no limit is requested is ~100 entries.
DEFAULT_QUEUE_CAPACITY = 128


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime the way the service expects it in query parameters.

    Naive datetimes are taken to be UTC. Weekday and month names are always
    English, independent of the current locale.

    Args:
        value: Datetime to format

    Returns:
        Formatted string (e.g., "Thu, 21 Mar 2013 18:31:37 +0000")
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


def parse_timestamp(text: str) -> datetime:
    """
    Parse a timestamp in the service's date format.

    Args:
        text: Timestamp string as sent by the service

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the string is not in the expected format
    """
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, IndexError) as e:
        raise ValueError(f"Invalid timestamp format: {text!r}") from e

    if parsed.tzinfo is None:
        # "-0000" means UTC with no known local offset
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_optional_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Parse a timestamp that may be absent."""
    if not text:
        return None
    return parse_timestamp(text)


def queue_capacity(page_limit: Optional[int]) -> int:
    """
    Size a stream's output queue for the given page limit.

    One full page fits without blocking the producer mid-batch.
    """
    if page_limit is None or page_limit <= 0:
        return DEFAULT_QUEUE_CAPACITY
    return page_limit


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
    i = int(math.floor(math.log(size_bytes, 1024)))

    if i >= len(size_names):
        i = len(size_names) - 1

    p = math.pow(1024, i)
    size = round(size_bytes / p, 2)

    return f"{size} {size_names[i]}"
