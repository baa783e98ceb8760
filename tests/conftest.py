# tests/conftest.py
import asyncio
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tickwatch.providers.base import MarketDataProvider


class AsyncContextManagerMock:
    """Helper class to mock async context managers."""
    def __init__(self, return_value=None):
        self.return_value = return_value or MagicMock()

    async def __aenter__(self):
        return self.return_value

    async def __aexit__(self, *args):
        return None


class GatedContextManagerMock(AsyncContextManagerMock):
    """Async context manager that only enters once ``gate`` is set."""
    def __init__(self, gate, return_value=None):
        super().__init__(return_value)
        self.gate = gate

    async def __aenter__(self):
        await self.gate.wait()
        return self.return_value


def make_http_response(payload=None, json_error=None):
    """Create a mock aiohttp response whose json() returns payload (or raises json_error)."""
    mock_response = MagicMock()
    mock_response.status = 200
    mock_response.raise_for_status = MagicMock()
    if json_error is not None:
        mock_response.json = AsyncMock(side_effect=json_error)
    else:
        mock_response.json = AsyncMock(return_value=payload)
    return mock_response


@pytest.fixture
def mock_aiohttp_session():
    """
    Mock aiohttp ClientSession routing GETs on the ``function`` query parameter.

    Tests set ``session.payloads[function] = payload`` (or an Exception
    instance to raise on entering the request). ``session.gates[function]``
    holds an ``asyncio.Event`` the response waits on. Every call is recorded
    in ``session.calls`` as the params dict.
    """
    mock_session = MagicMock()
    mock_session.payloads = {}
    mock_session.gates = {}
    mock_session.calls = []

    def get(url, params=None, **kwargs):
        params = dict(params or {})
        mock_session.calls.append(params)
        payload = mock_session.payloads.get(params.get("function"), {})
        if isinstance(payload, Exception):
            context = MagicMock()
            context.__aenter__ = AsyncMock(side_effect=payload)
            context.__aexit__ = AsyncMock(return_value=None)
            return context
        gate = mock_session.gates.get(params.get("function"))
        if gate is not None:
            return GatedContextManagerMock(gate, make_http_response(payload))
        return AsyncContextManagerMock(make_http_response(payload))

    mock_session.get = MagicMock(side_effect=get)
    mock_session.close = AsyncMock()
    return mock_session


class FakeProvider(MarketDataProvider):
    """In-memory provider: records subscriptions and lets tests push events."""

    name = "fake"
    display_name = "Fake"

    def __init__(self, fail_connect=None, fail_subscribe=None):
        super().__init__()
        self.fail_connect = fail_connect
        self.fail_subscribe = fail_subscribe
        self.connect_calls = []
        self.subscribe_calls = []

    async def connect(self, api_key):
        self.connect_calls.append(api_key)
        if self.fail_connect is not None:
            raise self.fail_connect
        await super().connect(api_key)

    async def _on_subscribe(self):
        self.subscribe_calls.append(self.subscriptions)
        if self.fail_subscribe is not None:
            raise self.fail_subscribe


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def provider_factory():
    """The FakeProvider class, for tests that need failure injection."""
    return FakeProvider


@pytest.fixture
def eventually():
    """Await until predicate() is truthy, failing after timeout seconds."""
    async def _eventually(predicate, timeout=1.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met within %.2fs" % timeout)
            await asyncio.sleep(0.005)
    return _eventually


def drain(channel):
    """Synchronously pop every buffered event from a channel."""
    events = []
    while len(channel):
        events.append(channel._queue.get_nowait())
    return events


@pytest.fixture
def drain_events():
    return drain
