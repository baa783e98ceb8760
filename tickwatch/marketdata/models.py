from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Trade:
    """A single executed trade."""

    symbol: str
    price: float
    size: int
    timestamp: datetime


@dataclass(frozen=True)
class Quote:
    """
    Top-of-book bid/ask for a symbol.

    Sources that only publish a last price synthesize a symmetric spread
    around it with zero sizes; ``is_synthetic`` reports that case.
    """

    symbol: str
    bid_price: float
    bid_size: int
    ask_price: float
    ask_size: int
    timestamp: datetime

    @property
    def mid_price(self) -> float:
        """Midpoint between bid and ask."""
        return (self.bid_price + self.ask_price) / 2

    @property
    def spread(self) -> float:
        return self.ask_price - self.bid_price

    @property
    def is_synthetic(self) -> bool:
        """True when no real bid/ask size came with the quote."""
        return self.bid_size == 0 and self.ask_size == 0


@dataclass(frozen=True)
class Candle:
    """
    Represents one completed (or latest-known) OHLCV bar.

    Attributes:
        symbol: Ticker the bar belongs to
        open: Opening price
        high: Highest price during the bar
        low: Lowest price during the bar
        close: Closing price
        volume: Traded volume
        vwap: Volume-weighted average price, when the source provides it
        start: Bar open time (UTC)
        end: Bar close time (UTC), ``start`` plus the bar interval
    """

    symbol: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    vwap: Optional[float]
    start: datetime
    end: datetime

    @property
    def typical_price(self) -> float:
        """Typical price (HLC/3)."""
        return (self.high + self.low + self.close) / 3

    @property
    def range(self) -> float:
        """Bar range (high - low)."""
        return self.high - self.low

    def __repr__(self) -> str:
        return (
            f"Candle(symbol={self.symbol}, start={self.start.isoformat()}, "
            f"O={self.open:.4f}, H={self.high:.4f}, "
            f"L={self.low:.4f}, C={self.close:.4f}, "
            f"V={self.volume})"
        )
