"""Shared fixtures for pcloud_sdk tests."""

import asyncio
from datetime import datetime, timezone

import pytest

from pcloud_sdk.exceptions import ChangeFetchError
from pcloud_sdk.models import ChangeBatch, ChangeEvent, EventKind


EVENT_TIME = datetime(2024, 3, 21, 18, 31, 37, tzinfo=timezone.utc)


def build_event(cursor, kind=EventKind.CREATE_FILE):
    return ChangeEvent(cursor=cursor, timestamp=EVENT_TIME, kind=kind)


def build_batch(cursors, high_water=None, kind=EventKind.CREATE_FILE):
    events = [build_event(c, kind) for c in cursors]
    if high_water is None:
        high_water = max(cursors) if cursors else 0
    return ChangeBatch(high_water_cursor=high_water, events=events)


class ScriptedFetcher:
    """
    Fetcher replaying a fixed list of outcomes.

    Each outcome is a ChangeBatch to return or an exception to raise. Once
    the script runs out, ``then`` decides: a callable producing the next
    outcome from the request config, or by default a fatal error.
    """

    def __init__(self, script, then=None):
        self.script = list(script)
        self.then = then
        self.requests = []

    @property
    def calls(self):
        return len(self.requests)

    @property
    def cursors(self):
        return [request.start_cursor for request in self.requests]

    async def fetch(self, config):
        self.requests.append(config)
        await asyncio.sleep(0)

        if self.script:
            outcome = self.script.pop(0)
        elif self.then is not None:
            outcome = self.then(config)
        else:
            outcome = ChangeFetchError(cause=RuntimeError("script exhausted"))

        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def make_event():
    """Factory for ChangeEvent objects."""
    return build_event


@pytest.fixture
def make_batch():
    """Factory for ChangeBatch objects."""
    return build_batch


@pytest.fixture
def scripted_fetcher():
    """Factory for ScriptedFetcher objects."""
    return ScriptedFetcher


@pytest.fixture
def diff_payload():
    """A diff response as sent by the service."""
    return {
        "result": 0,
        "diffid": 12,
        "entries": [
            {
                "event": "createfolder",
                "time": "Thu, 21 Mar 2024 18:31:37 +0000",
                "diffid": 11,
                "metadata": {
                    "id": "d42",
                    "folderid": 42,
                    "parentfolderid": 0,
                    "name": "Documents",
                    "isfolder": True,
                    "ismine": True,
                    "isshared": False,
                    "thumb": False,
                    "icon": "folder",
                    "created": "Thu, 21 Mar 2024 18:31:37 +0000",
                    "modified": "Thu, 21 Mar 2024 18:31:37 +0000",
                },
            },
            {
                "event": "createfile",
                "time": "Thu, 21 Mar 2024 20:31:38 +0200",
                "diffid": 12,
                "metadata": {
                    "id": "f1001",
                    "fileid": 1001,
                    "parentfolderid": 42,
                    "name": "report.pdf",
                    "isfolder": False,
                    "ismine": True,
                    "isshared": False,
                    "thumb": False,
                    "icon": "document",
                    "category": 4,
                    "contenttype": "application/pdf",
                    "size": 2048,
                    "hash": 9061247584306349000,
                    "created": "Thu, 21 Mar 2024 18:31:38 +0000",
                    "modified": "Thu, 21 Mar 2024 18:31:38 +0000",
                },
            },
        ],
    }
