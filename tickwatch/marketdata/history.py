from collections import deque
from typing import Optional

import numpy as np

from tickwatch.marketdata.models import Candle


class CandleHistory:
    """
    Maintains a rolling window of bars for a single symbol.

    Polling sources report the latest bar on every cycle, so a bar that
    shares its start time with the newest entry replaces it rather than
    being appended twice.

    Example:
        history = CandleHistory("SPY", max_length=200)
        history.add_candle(candle)

        closes = history.get_closes()
        volumes = history.get_volumes(count=20)  # Last 20 bars only
    """

    def __init__(self, symbol: str, max_length: int = 200):
        """
        Initialize bar history.

        Args:
            symbol: Ticker the bars belong to
            max_length: Maximum number of bars to retain
        """
        self.symbol = symbol
        self.max_length = max_length
        self.candles: deque[Candle] = deque(maxlen=max_length)

    def add_candle(self, candle: Candle) -> None:
        """
        Add a bar to history, replacing the newest bar if it is the same one.

        Bars older than the newest entry are ignored.
        """
        if self.candles:
            newest = self.candles[-1]
            if candle.start == newest.start:
                self.candles[-1] = candle
                return
            if candle.start < newest.start:
                return
        self.candles.append(candle)

    def get_candles(self, count: Optional[int] = None) -> list[Candle]:
        """
        Get bar objects.

        Args:
            count: Number of most recent bars to return (None = all)

        Returns:
            List of Candle objects, oldest first
        """
        if count is None:
            return list(self.candles)
        return list(self.candles)[-count:]

    def get_closes(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of closing prices."""
        candles = self.get_candles(count)
        return np.array([c.close for c in candles], dtype=np.float64)

    def get_volumes(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of volumes."""
        candles = self.get_candles(count)
        return np.array([c.volume for c in candles], dtype=np.int64)

    def get_typical_prices(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of typical prices (HLC/3)."""
        candles = self.get_candles(count)
        return np.array([c.typical_price for c in candles], dtype=np.float64)

    @property
    def latest(self) -> Optional[Candle]:
        """Get the most recent bar, or None if empty."""
        return self.candles[-1] if self.candles else None

    def __len__(self) -> int:
        return len(self.candles)

    def __repr__(self) -> str:
        return (
            f"CandleHistory(symbol={self.symbol}, "
            f"candles={len(self)}/{self.max_length})"
        )
