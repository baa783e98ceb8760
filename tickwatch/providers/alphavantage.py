"""
Alpha Vantage REST provider.

Polls GLOBAL_QUOTE for quotes and TIME_SERIES_INTRADAY for the latest bar.
Alpha Vantage has no trade-by-trade feed and no bid/ask on its quote
endpoint, so quotes are synthesized symmetrically around the last price.

Responses are treated as untrusted: missing keys, string-encoded numbers
and vendor notices in place of data are all expected.
"""

import asyncio
import json
import logging
import math
from typing import Any, Optional

import aiohttp

from tickwatch.errors import MalformedResponseError, NoDataError, UpstreamUnavailableError
from tickwatch.events import AggregateEvent, QuoteEvent
from tickwatch.marketdata import Candle, Quote
from tickwatch.providers.base import AGGREGATES, QUOTES, PollingProvider
from tickwatch.time_utils import (
    DEFAULT_INTERVAL,
    interval_to_timedelta,
    parse_timestamp,
    utc_now,
)


log = logging.getLogger(__name__)


__all__ = [
    "AlphaVantageProvider",
    "parse_global_quote",
    "parse_latest_intraday",
    "synthesize_quote",
]


BASE_URL = "https://www.alphavantage.co/query"

# Half-width of the spread synthesized around a last price
SYNTHETIC_SPREAD = 0.001

# Keys Alpha Vantage uses to return a notice instead of data
_NOTICE_KEYS = ("Error Message", "Note", "Information")


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    if number is None:
        return None
    return int(number)


def synthesize_quote(symbol: str, price: float) -> Quote:
    """Build a zero-size quote spread symmetrically around ``price``."""
    return Quote(
        symbol=symbol,
        bid_price=price * (1 - SYNTHETIC_SPREAD),
        bid_size=0,
        ask_price=price * (1 + SYNTHETIC_SPREAD),
        ask_size=0,
        timestamp=utc_now(),
    )


def parse_global_quote(symbol: str, payload: dict[str, Any]) -> Quote:
    """
    Build a quote from a GLOBAL_QUOTE response.

    Raises:
        NoDataError: if the response has no usable price.
    """
    block = payload.get("Global Quote")
    if not isinstance(block, dict):
        raise NoDataError(f"GLOBAL_QUOTE empty for {symbol}")

    price = _to_float(block.get("05. price"))
    if price is None or price <= 0:
        raise NoDataError(f"GLOBAL_QUOTE has no price for {symbol}")

    return synthesize_quote(symbol, price)


def _latest_bar(payload: dict[str, Any], interval: str) -> tuple[str, dict[str, Any]]:
    series = payload.get(f"Time Series ({interval})")
    if not isinstance(series, dict) or not series:
        raise NoDataError(f"no {interval} intraday series")

    # Keys are "YYYY-MM-DD HH:MM:SS", so lexical order is chronological
    latest_key = max(series)
    bar = series[latest_key]
    if not isinstance(bar, dict):
        raise NoDataError(f"latest {interval} bar is not an object")
    return latest_key, bar


def latest_intraday_close(payload: dict[str, Any], interval: str) -> float:
    """
    Closing price of the most recent bar in a TIME_SERIES_INTRADAY response.

    Raises:
        NoDataError: if there is no bar or no usable close.
    """
    _, bar = _latest_bar(payload, interval)
    close = _to_float(bar.get("4. close"))
    if close is None or close <= 0:
        raise NoDataError(f"latest {interval} bar has no close")
    return close


def parse_latest_intraday(symbol: str, interval: str, payload: dict[str, Any]) -> Candle:
    """
    Build a candle from the most recent bar of a TIME_SERIES_INTRADAY response.

    The bar key is interpreted in the time zone named by the response's
    ``Meta Data`` block (UTC when absent).

    Raises:
        NoDataError: if the series or any OHLCV field is missing.
    """
    latest_key, bar = _latest_bar(payload, interval)

    o = _to_float(bar.get("1. open"))
    h = _to_float(bar.get("2. high"))
    l = _to_float(bar.get("3. low"))
    c = _to_float(bar.get("4. close"))
    v = _to_int(bar.get("5. volume"))
    if None in (o, h, l, c, v):
        raise NoDataError(f"incomplete {interval} bar at {latest_key}")

    meta = payload.get("Meta Data")
    tz_name = meta.get("6. Time Zone") if isinstance(meta, dict) else None

    try:
        start = parse_timestamp(latest_key, tz_name=tz_name)
    except ValueError:
        log.debug("Unparsable bar key %r for %s; using receive time", latest_key, symbol)
        start = utc_now()

    return Candle(
        symbol=symbol,
        open=o,
        high=h,
        low=l,
        close=c,
        volume=v,
        vwap=None,
        start=start,
        end=start + interval_to_timedelta(interval),
    )


class AlphaVantageProvider(PollingProvider):
    """
    REST-based provider that polls quotes and optional intraday aggregates.

    Example:
        provider = AlphaVantageProvider(polling_interval=15, intraday_interval="5min")
        await provider.connect(api_key)
        await provider.subscribe(quotes=["SPY"], aggregates=["SPY"])

        async for event in provider.events:
            ...
    """

    name = "alphavantage"
    display_name = "Alpha Vantage"

    SUPPORTED_CATEGORIES = frozenset({QUOTES, AGGREGATES})

    def __init__(
        self,
        polling_interval: Optional[float] = None,
        intraday_interval: str = DEFAULT_INTERVAL,
        min_poll_interval: Optional[float] = None,
        request_timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: str = BASE_URL,
    ):
        """
        Args:
            polling_interval: Target cycle period in seconds (default 15)
            intraday_interval: Bar size: "1min", "5min", "15min", "30min" or "60min"
            min_poll_interval: Lower bound on the sleep between cycles
            request_timeout: Total timeout for a single request
            session: Optional caller-owned aiohttp session
            base_url: Query endpoint, overridable for testing
        """
        super().__init__(
            polling_interval=polling_interval,
            min_poll_interval=min_poll_interval,
            request_timeout=request_timeout,
            session=session,
        )
        self.intraday_interval = intraday_interval
        self.base_url = base_url

    async def poll_quote(self, session: aiohttp.ClientSession, symbol: str) -> None:
        """Push a quote, falling back to the latest intraday close when GLOBAL_QUOTE is empty."""
        payload = await self._query(session, function="GLOBAL_QUOTE", symbol=symbol)
        try:
            quote = parse_global_quote(symbol, payload)
        except NoDataError as e:
            log.debug("%s; trying intraday fallback", e)
        else:
            self.emit(QuoteEvent(quote=quote))
            return

        if self._stopping():
            log.debug("Skipping intraday fallback for %s: polling stopped", symbol)
            return

        # Some instruments (e.g. leveraged ETFs) come back with an empty GLOBAL_QUOTE
        try:
            price = await self._latest_intraday_price(session, symbol)
        except NoDataError:
            self.emit_status(
                f"No data for {symbol} (GLOBAL_QUOTE empty, intraday fallback unavailable)"
            )
            return

        self.emit(QuoteEvent(quote=synthesize_quote(symbol, price)))

    async def poll_aggregate(self, session: aiohttp.ClientSession, symbol: str) -> None:
        payload = await self._intraday(session, symbol)
        try:
            candle = parse_latest_intraday(symbol, self.intraday_interval, payload)
        except NoDataError as e:
            log.debug("No aggregate for %s: %s", symbol, e)
            return
        self.emit(AggregateEvent(candle=candle))

    async def _latest_intraday_price(self, session: aiohttp.ClientSession, symbol: str) -> float:
        payload = await self._intraday(session, symbol)
        return latest_intraday_close(payload, self.intraday_interval)

    async def _intraday(self, session: aiohttp.ClientSession, symbol: str) -> dict[str, Any]:
        return await self._query(
            session,
            function="TIME_SERIES_INTRADAY",
            symbol=symbol,
            interval=self.intraday_interval,
            outputsize="compact",
        )

    async def _query(self, session: aiohttp.ClientSession, **params: str) -> dict[str, Any]:
        """
        Issue one GET against the query endpoint and decode the JSON object.

        Raises:
            UpstreamUnavailableError: on network failure, HTTP error or vendor notice.
            MalformedResponseError: if the body is not a JSON object.
        """
        params["apikey"] = self.api_key
        try:
            async with session.get(self.base_url, params=params) as response:
                response.raise_for_status()
                payload = await response.json(content_type=None)
        except aiohttp.ClientResponseError as e:
            raise UpstreamUnavailableError(f"HTTP {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailableError(str(e) or type(e).__name__) from e
        except (json.JSONDecodeError, ValueError) as e:
            raise MalformedResponseError("response is not valid JSON") from e

        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"expected a JSON object, got {type(payload).__name__}"
            )

        for key in _NOTICE_KEYS:
            notice = payload.get(key)
            if notice:
                raise UpstreamUnavailableError(str(notice))

        return payload
