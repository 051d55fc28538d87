"""Tests for utility functions."""

import locale
from datetime import datetime, timezone, timedelta

import pytest

from pcloud_sdk.utils import (
    DEFAULT_QUEUE_CAPACITY,
    format_file_size,
    format_timestamp,
    parse_optional_timestamp,
    parse_timestamp,
    queue_capacity,
)


def test_format_timestamp_keeps_offset():
    value = datetime(2013, 3, 21, 18, 31, 37, tzinfo=timezone(timedelta(hours=-5, minutes=-30)))

    assert format_timestamp(value) == "Thu, 21 Mar 2013 18:31:37 -0530"


def test_format_timestamp_treats_naive_as_utc():
    assert format_timestamp(datetime(2024, 12, 1, 0, 0, 5)) == "Sun, 01 Dec 2024 00:00:05 +0000"


def test_parse_timestamp_returns_utc():
    parsed = parse_timestamp("Thu, 21 Mar 2013 20:31:37 +0200")

    assert parsed == datetime(2013, 3, 21, 18, 31, 37, tzinfo=timezone.utc)
    assert parsed.tzinfo == timezone.utc


def test_parse_timestamp_unknown_local_offset_is_utc():
    parsed = parse_timestamp("Thu, 21 Mar 2013 18:31:37 -0000")

    assert parsed == datetime(2013, 3, 21, 18, 31, 37, tzinfo=timezone.utc)


def test_format_timestamp_ignores_locale():
    saved = locale.setlocale(locale.LC_TIME)
    try:
        locale.setlocale(locale.LC_TIME, "de_DE.UTF-8")
    except locale.Error:
        pytest.skip("de_DE.UTF-8 locale not available")

    try:
        assert format_timestamp(datetime(2024, 3, 21, tzinfo=timezone.utc)) == "Thu, 21 Mar 2024 00:00:00 +0000"
    finally:
        locale.setlocale(locale.LC_TIME, saved)


def test_parse_format_agree():
    value = datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc)

    assert parse_timestamp(format_timestamp(value)) == value


@pytest.mark.parametrize("text", [
    "2024-03-21T18:31:37Z",
    "Thu, 21 Foo 2013 18:31:37 +0000",
    "not a date",
    "",
    "Thu, 30 Feb 2013 18:31:37 +0000",
])
def test_parse_timestamp_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_timestamp(text)


def test_parse_optional_timestamp():
    assert parse_optional_timestamp(None) is None
    assert parse_optional_timestamp("") is None
    assert parse_optional_timestamp("Mon, 01 Jan 2024 00:00:00 +0000").year == 2024


def test_queue_capacity():
    assert queue_capacity(None) == DEFAULT_QUEUE_CAPACITY
    assert queue_capacity(0) == DEFAULT_QUEUE_CAPACITY
    assert queue_capacity(4) == 4
    assert queue_capacity(500) == 500


def test_format_file_size():
    assert format_file_size(0) == "0 B"
    assert format_file_size(2048) == "2.0 KB"
    assert format_file_size(1536 * 1024) == "1.5 MB"
