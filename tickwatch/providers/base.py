"""
Provider-neutral interfaces.

Every market data source implements ``MarketDataProvider``: a small
connection state machine that pushes ``MarketEvent`` values onto a single
long-lived ``EventChannel``. ``PollingProvider`` adds the shared
round-robin polling loop used by REST sources.
"""

import abc
import asyncio
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from enum import Enum
from typing import AsyncIterator, Iterable, Optional

import aiohttp

from tickwatch.errors import InvalidRequestError, MissingCredentialError, ProviderError
from tickwatch.events import MarketEvent, StatusEvent
from tickwatch.providers.channel import EventChannel


log = logging.getLogger(__name__)


# Stop flag of the polling loop running in the current task, if any
_loop_stop: ContextVar[Optional[asyncio.Event]] = ContextVar("tickwatch_loop_stop", default=None)


__all__ = [
    "AGGREGATES",
    "CATEGORIES",
    "MarketDataProvider",
    "PollingProvider",
    "ProviderState",
    "QUOTES",
    "TRADES",
    "normalize_symbols",
]


TRADES = "trades"
QUOTES = "quotes"
AGGREGATES = "aggregates"
CATEGORIES = (TRADES, QUOTES, AGGREGATES)

_CATEGORY_LABELS = {TRADES: "Trade", QUOTES: "Quote", AGGREGATES: "Aggregate"}


class ProviderState(str, Enum):
    """Connection lifecycle of a provider."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"


def normalize_symbols(symbols: Iterable[str]) -> list[str]:
    """
    Strip, upper-case, de-duplicate and sort a symbol collection.

    Raises:
        InvalidRequestError: if any entry is not a non-blank string.
    """
    if isinstance(symbols, str):
        raise InvalidRequestError(f"Expected a collection of symbols, got string {symbols!r}")

    normalized: set[str] = set()
    for symbol in symbols:
        if not isinstance(symbol, str) or not symbol.strip():
            raise InvalidRequestError(f"Invalid symbol: {symbol!r}")
        normalized.add(symbol.strip().upper())
    return sorted(normalized)


def _describe(subscriptions: dict[str, list[str]]) -> str:
    parts = [
        f"{category}: {','.join(symbols)}"
        for category, symbols in subscriptions.items()
        if symbols
    ]
    return " | ".join(parts)


class MarketDataProvider(abc.ABC):
    """
    Abstract base for a market data source.

    Lifecycle: disconnected -> connecting -> connected -> subscribed.
    ``disconnect()`` is reachable from every state and always returns to
    disconnected. All output, including failures discovered while polling,
    is delivered as events on ``events``.
    """

    name = "provider"
    display_name = "provider"

    # Categories the upstream source can serve; others are dropped on subscribe
    SUPPORTED_CATEGORIES: frozenset[str] = frozenset(CATEGORIES)

    def __init__(self) -> None:
        self._channel = EventChannel()
        self._state = ProviderState.DISCONNECTED
        self._api_key = ""
        self._subscriptions: dict[str, list[str]] = {c: [] for c in CATEGORIES}

    @property
    def events(self) -> EventChannel:
        """The provider's output channel. Always the same object."""
        return self._channel

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state in (ProviderState.CONNECTED, ProviderState.SUBSCRIBED)

    @property
    def subscriptions(self) -> dict[str, list[str]]:
        """Active symbols per category (copy)."""
        return {c: list(symbols) for c, symbols in self._subscriptions.items()}

    def emit(self, event: MarketEvent) -> None:
        self._channel.push(event)

    def emit_status(self, message: str) -> None:
        log.info("%s", message)
        self._channel.push(StatusEvent(message=message))

    async def connect(self, api_key: str) -> None:
        """
        Establish the connection to the upstream source.

        Args:
            api_key: Credential passed to the upstream API.

        Raises:
            MissingCredentialError: if ``api_key`` is empty.
        """
        if not api_key or not api_key.strip():
            raise MissingCredentialError(f"Missing {self.display_name} API key")

        self._state = ProviderState.CONNECTING
        try:
            await self._on_connect(api_key.strip())
        except BaseException:
            self._state = ProviderState.DISCONNECTED
            raise

        self._api_key = api_key.strip()
        self._state = ProviderState.CONNECTED
        self.emit_status(f"Connected to {self.display_name}")

    def disconnect(self) -> None:
        """
        Stop any active loop and drop the connection. Idempotent.

        Only the transition out of a connected state emits a status event.
        """
        was_disconnected = self._state is ProviderState.DISCONNECTED
        self._on_disconnect()
        self._state = ProviderState.DISCONNECTED
        self._subscriptions = {c: [] for c in CATEGORIES}

        if was_disconnected:
            log.debug("%s already disconnected", self.display_name)
            return
        self.emit_status(f"Disconnected from {self.display_name}")

    async def subscribe(
        self,
        trades: Iterable[str] = (),
        quotes: Iterable[str] = (),
        aggregates: Iterable[str] = (),
    ) -> None:
        """
        Replace the active subscription.

        Symbols are normalized per ``normalize_symbols``. Categories the
        source cannot serve are dropped silently.

        Raises:
            InvalidRequestError: if not connected or a symbol is invalid.
        """
        if not self.is_connected:
            raise InvalidRequestError(f"{self.display_name} is not connected")

        requested = {
            TRADES: normalize_symbols(trades),
            QUOTES: normalize_symbols(quotes),
            AGGREGATES: normalize_symbols(aggregates),
        }

        subscriptions: dict[str, list[str]] = {}
        for category, symbols in requested.items():
            if symbols and category not in self.SUPPORTED_CATEGORIES:
                log.debug(
                    "%s does not serve %s; ignoring %s",
                    self.display_name,
                    category,
                    ",".join(symbols),
                )
                symbols = []
            subscriptions[category] = symbols

        self._subscriptions = subscriptions
        await self._on_subscribe()

        if any(subscriptions.values()):
            self._state = ProviderState.SUBSCRIBED
            self.emit_status(f"Subscribed -> {_describe(subscriptions)}")
        else:
            self._state = ProviderState.CONNECTED

    def close(self) -> None:
        """Disconnect and close the channel. The provider cannot be reused."""
        self.disconnect()
        self._channel.close()

    async def _on_connect(self, api_key: str) -> None:
        """Hook for source-specific connection work."""
        return None

    def _on_disconnect(self) -> None:
        """Hook to stop source-specific loops. Must not block."""
        return None

    @abc.abstractmethod
    async def _on_subscribe(self) -> None:
        """Apply ``self._subscriptions`` (already replaced) to the source."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(state={self._state.value})"


class PollingProvider(MarketDataProvider):
    """
    Base for REST sources refreshed by a cancellable polling loop.

    Each cycle refreshes one symbol per subscribed category, chosen by an
    independent round-robin cursor, then sleeps for
    ``max(min_poll_interval, polling_interval - elapsed)``.

    Subclasses implement ``poll_trade``, ``poll_quote`` and/or
    ``poll_aggregate`` for the categories in ``SUPPORTED_CATEGORIES``.
    Those methods push events themselves and raise ``ProviderError`` on
    failure; the loop converts failures into status events and carries on.
    """

    POLLING_INTERVAL = 15.0  # seconds
    MIN_POLL_INTERVAL = 0.5  # seconds
    REQUEST_TIMEOUT = 10.0  # seconds

    def __init__(
        self,
        polling_interval: Optional[float] = None,
        min_poll_interval: Optional[float] = None,
        request_timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            polling_interval: Target cycle period in seconds
            min_poll_interval: Lower bound on the sleep between cycles
            request_timeout: Total timeout for a single upstream request
            session: Optional caller-owned HTTP session. When omitted each
                polling loop opens and closes its own.
        """
        super().__init__()
        self.polling_interval = float(
            self.POLLING_INTERVAL if polling_interval is None else polling_interval
        )
        self.min_poll_interval = float(
            self.MIN_POLL_INTERVAL if min_poll_interval is None else min_poll_interval
        )
        self.request_timeout = float(
            self.REQUEST_TIMEOUT if request_timeout is None else request_timeout
        )
        self._session = session
        self._poll_task: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def api_key(self) -> str:
        return self._api_key

    @property
    def is_polling(self) -> bool:
        return (
            self._poll_task is not None
            and not self._poll_task.done()
            and self._stop is not None
            and not self._stop.is_set()
        )

    def next_delay(self, elapsed: float) -> float:
        """Sleep before the next cycle given the time the current one took."""
        return max(self.min_poll_interval, self.polling_interval - elapsed)

    def _stopping(self) -> bool:
        """True inside a polling loop that has been told to stop."""
        stop = _loop_stop.get()
        return stop is not None and stop.is_set()

    async def wait_stopped(self) -> None:
        """Wait for the most recent polling loop to exit."""
        if self._poll_task is not None:
            await asyncio.gather(self._poll_task, return_exceptions=True)

    async def _on_subscribe(self) -> None:
        self._stop_polling()

        plan = {c: list(symbols) for c, symbols in self._subscriptions.items() if symbols}
        if not plan:
            return

        stop = asyncio.Event()
        self._stop = stop
        self._poll_task = asyncio.create_task(
            self._poll_loop(plan, stop), name=f"{self.name}-poll"
        )

    def _on_disconnect(self) -> None:
        self._stop_polling()

    def _stop_polling(self) -> None:
        # The loop sees the flag before its next request; nothing in flight is aborted
        if self._stop is not None:
            self._stop.set()
        self._stop = None

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return

        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            yield session

    async def _poll_loop(self, plan: dict[str, list[str]], stop: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        cursors = {category: 0 for category in plan}

        _loop_stop.set(stop)
        log.debug("%s polling loop started: %s", self.display_name, _describe(plan))

        async with self._session_scope() as session:
            while not stop.is_set():
                started = loop.time()

                for category, symbols in plan.items():
                    if stop.is_set():
                        break
                    symbol = symbols[cursors[category] % len(symbols)]
                    cursors[category] += 1
                    await self._poll_step(session, category, symbol)

                if stop.is_set():
                    break

                delay = self.next_delay(loop.time() - started)
                try:
                    await asyncio.wait_for(stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

        log.debug("%s polling loop stopped", self.display_name)

    async def _poll_step(
        self, session: aiohttp.ClientSession, category: str, symbol: str
    ) -> None:
        handlers = {
            TRADES: self.poll_trade,
            QUOTES: self.poll_quote,
            AGGREGATES: self.poll_aggregate,
        }
        label = _CATEGORY_LABELS[category]
        try:
            await handlers[category](session, symbol)
        except ProviderError as e:
            self.emit_status(f"{label} error for {symbol}: {e}")
        except Exception:
            log.exception("Unexpected failure polling %s for %s", category, symbol)
            self.emit_status(f"{label} error for {symbol}: unexpected failure")

    async def poll_trade(self, session: aiohttp.ClientSession, symbol: str) -> None:
        raise NotImplementedError

    async def poll_quote(self, session: aiohttp.ClientSession, symbol: str) -> None:
        raise NotImplementedError

    async def poll_aggregate(self, session: aiohttp.ClientSession, symbol: str) -> None:
        raise NotImplementedError
