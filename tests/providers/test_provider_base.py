"""Tests for the provider state machine and the shared polling loop."""

import asyncio

import pytest

from tickwatch.errors import (
    InvalidRequestError,
    MalformedResponseError,
    MissingCredentialError,
)
from tickwatch.events import QuoteEvent, StatusEvent
from tickwatch.marketdata import Quote
from tickwatch.providers.base import (
    AGGREGATES,
    QUOTES,
    TRADES,
    PollingProvider,
    ProviderState,
    normalize_symbols,
)
from tickwatch.time_utils import utc_now


class RecordingPoller(PollingProvider):
    """Polling provider that records requests instead of calling an API."""

    name = "recording"
    display_name = "Recorder"

    SUPPORTED_CATEGORIES = frozenset({QUOTES, AGGREGATES})

    def __init__(self, **kwargs):
        kwargs.setdefault("polling_interval", 0.02)
        kwargs.setdefault("min_poll_interval", 0.01)
        kwargs.setdefault("session", object())
        super().__init__(**kwargs)
        self.requests = []
        self.fail_with = None

    async def poll_quote(self, session, symbol):
        self.requests.append((QUOTES, symbol))
        if self.fail_with is not None:
            raise self.fail_with
        self.emit(QuoteEvent(quote=Quote(symbol, 99.0, 1, 101.0, 1, utc_now())))

    async def poll_aggregate(self, session, symbol):
        self.requests.append((AGGREGATES, symbol))


def statuses(events):
    return [e.message for e in events if isinstance(e, StatusEvent)]


class TestNormalizeSymbols:
    def test_dedupes_uppercases_and_sorts(self):
        assert normalize_symbols(["msft", "AAPL", " aapl ", "MSFT"]) == ["AAPL", "MSFT"]

    def test_empty(self):
        assert normalize_symbols([]) == []

    @pytest.mark.parametrize("bad", [[""], ["  "], [None], [42]])
    def test_rejects_invalid_entries(self, bad):
        with pytest.raises(InvalidRequestError):
            normalize_symbols(bad)

    def test_rejects_bare_string(self):
        with pytest.raises(InvalidRequestError):
            normalize_symbols("AAPL")


class TestLifecycle:
    async def test_connect_requires_api_key(self, fake_provider):
        with pytest.raises(MissingCredentialError):
            await fake_provider.connect("")
        with pytest.raises(MissingCredentialError):
            await fake_provider.connect("   ")
        assert fake_provider.state is ProviderState.DISCONNECTED
        assert not fake_provider.is_connected

    async def test_connect_emits_status(self, fake_provider, drain_events):
        await fake_provider.connect("key")

        assert fake_provider.state is ProviderState.CONNECTED
        assert fake_provider.is_connected
        assert statuses(drain_events(fake_provider.events)) == ["Connected to Fake"]

    async def test_subscribe_requires_connection(self, fake_provider):
        with pytest.raises(InvalidRequestError):
            await fake_provider.subscribe(quotes=["AAPL"])

    async def test_subscribe_normalizes_and_reports(self, fake_provider, drain_events):
        await fake_provider.connect("key")
        await fake_provider.subscribe(trades=["aapl"], quotes=["msft", "AAPL", "msft"])

        assert fake_provider.state is ProviderState.SUBSCRIBED
        assert fake_provider.subscriptions == {
            TRADES: ["AAPL"],
            QUOTES: ["AAPL", "MSFT"],
            AGGREGATES: [],
        }
        assert statuses(drain_events(fake_provider.events))[-1] == (
            "Subscribed -> trades: AAPL | quotes: AAPL,MSFT"
        )

    async def test_subscribe_replaces_previous_set(self, fake_provider):
        await fake_provider.connect("key")
        await fake_provider.subscribe(quotes=["A", "B"])
        await fake_provider.subscribe(quotes=["C"])

        assert fake_provider.subscriptions[QUOTES] == ["C"]

    async def test_empty_subscribe_returns_to_connected(self, fake_provider):
        await fake_provider.connect("key")
        await fake_provider.subscribe(quotes=["A"])
        await fake_provider.subscribe()

        assert fake_provider.state is ProviderState.CONNECTED

    async def test_disconnect_is_idempotent(self, fake_provider, drain_events):
        fake_provider.disconnect()  # never connected: no-op
        await fake_provider.connect("key")
        fake_provider.disconnect()
        fake_provider.disconnect()

        assert fake_provider.state is ProviderState.DISCONNECTED
        assert statuses(drain_events(fake_provider.events)) == [
            "Connected to Fake",
            "Disconnected from Fake",
        ]

    async def test_events_is_always_the_same_channel(self, fake_provider):
        channel = fake_provider.events
        await fake_provider.connect("key")
        fake_provider.disconnect()
        await fake_provider.connect("key")
        assert fake_provider.events is channel

    async def test_close_ends_the_channel(self, fake_provider):
        await fake_provider.connect("key")
        fake_provider.close()

        received = [e async for e in fake_provider.events]
        assert statuses(received) == ["Connected to Fake", "Disconnected from Fake"]
        assert fake_provider.events.closed


class TestPollingLoop:
    def test_next_delay_has_floor(self):
        poller = RecordingPoller(polling_interval=15, min_poll_interval=0.5)
        assert poller.next_delay(2.0) == pytest.approx(13.0)
        assert poller.next_delay(14.9) == pytest.approx(0.5)
        assert poller.next_delay(60.0) == pytest.approx(0.5)

    async def test_unsupported_categories_are_dropped(self):
        poller = RecordingPoller()
        await poller.connect("key")
        await poller.subscribe(trades=["AAPL"])

        assert poller.subscriptions[TRADES] == []
        assert poller.state is ProviderState.CONNECTED
        assert not poller.is_polling

    async def test_round_robin_one_symbol_per_category_per_cycle(self, eventually):
        poller = RecordingPoller()
        await poller.connect("key")
        await poller.subscribe(quotes=["C", "A", "B"], aggregates=["X", "Y"])

        await eventually(lambda: len(poller.requests) >= 6)
        poller.disconnect()
        await poller.wait_stopped()

        quotes = [s for c, s in poller.requests if c == QUOTES]
        aggregates = [s for c, s in poller.requests if c == AGGREGATES]
        assert quotes[:3] == ["A", "B", "C"]
        assert aggregates[:3] == ["X", "Y", "X"]
        # Each cycle issues exactly one quote then one aggregate request
        assert poller.requests[:2] == [(QUOTES, "A"), (AGGREGATES, "X")]

    async def test_resubscribe_stops_previous_symbols(self, eventually):
        poller = RecordingPoller()
        await poller.connect("key")
        await poller.subscribe(quotes=["A", "B"])
        await eventually(lambda: len(poller.requests) >= 2)

        await poller.subscribe(quotes=["C"])
        await asyncio.sleep(0)
        mark = len(poller.requests)
        await eventually(lambda: len(poller.requests) >= mark + 3)
        poller.disconnect()
        await poller.wait_stopped()

        assert {s for _, s in poller.requests[mark:]} == {"C"}

    async def test_disconnect_stops_loop_before_next_request(self, eventually):
        poller = RecordingPoller(polling_interval=10.0)
        await poller.connect("key")
        await poller.subscribe(quotes=["A"])
        await eventually(lambda: len(poller.requests) == 1)

        # The loop is in its long inter-cycle sleep; disconnect must wake it
        poller.disconnect()
        await asyncio.wait_for(poller.wait_stopped(), timeout=1.0)

        assert poller.requests == [(QUOTES, "A")]
        assert not poller.is_polling

    async def test_errors_become_status_and_loop_continues(self, eventually, drain_events):
        poller = RecordingPoller()
        poller.fail_with = MalformedResponseError("bad payload")
        await poller.connect("key")
        await poller.subscribe(quotes=["A"])

        await eventually(lambda: len(poller.requests) >= 3)
        poller.disconnect()
        await poller.wait_stopped()

        events = drain_events(poller.events)
        assert not any(isinstance(e, QuoteEvent) for e in events)
        assert "Quote error for A: bad payload" in statuses(events)

    async def test_unexpected_exceptions_do_not_abort_loop(self, eventually, drain_events, caplog):
        poller = RecordingPoller()
        poller.fail_with = RuntimeError("boom")
        await poller.connect("key")
        await poller.subscribe(quotes=["A"])

        await eventually(lambda: len(poller.requests) >= 2)
        poller.disconnect()
        await poller.wait_stopped()

        assert "Quote error for A: unexpected failure" in statuses(drain_events(poller.events))
        assert "Unexpected failure polling quotes for A" in caplog.text
