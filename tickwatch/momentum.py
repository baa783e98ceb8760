"""Short-horizon momentum classification over per-symbol mid-prices."""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


log = logging.getLogger(__name__)


# Delta signs retained per symbol
MAX_HISTORY = 3


__all__ = [
    "MomentumEngine",
    "MomentumSignal",
    "MomentumState",
]


class MomentumSignal(str, Enum):
    """Momentum classification for a symbol."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


def _sign(delta: float) -> int:
    if delta > 0:
        return 1
    if delta < 0:
        return -1
    return 0


@dataclass
class MomentumState:
    """Incremental momentum state for one symbol."""

    ema: Optional[float] = None
    last_mid: Optional[float] = None
    delta_signs: deque[int] = field(default_factory=lambda: deque(maxlen=MAX_HISTORY))


class MomentumEngine:
    """
    Classifies each symbol as bullish, bearish or neutral from its mid-price ticks.

    Every tick updates an EMA of the mid-price and records the sign of the
    change from the previous tick in a short FIFO. A symbol is bullish when
    its latest mid sits more than ``threshold`` (fractional) above the EMA
    and the last two moves were both up; bearish is the mirror image.

    Example:
        engine = MomentumEngine()
        for mid in (100.0, 101.0, 102.0):
            engine.update("SPY", mid)
        engine.signal("SPY")  # MomentumSignal.BULLISH
    """

    def __init__(self, alpha: float = 0.2, threshold: float = 0.001, history: int = MAX_HISTORY):
        """
        Args:
            alpha: EMA smoothing factor in (0, 1]
            threshold: Minimum fractional distance of mid from EMA
            history: Number of recent delta signs retained per symbol (2 or 3)
        """
        if not 0 < alpha <= 1:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        if not 2 <= history <= MAX_HISTORY:
            raise ValueError(f"history must be between 2 and {MAX_HISTORY}, got {history}")

        self.alpha = alpha
        self.threshold = threshold
        self.history = history
        self._states: dict[str, MomentumState] = {}

    def update(self, symbol: str, mid: float) -> MomentumState:
        """Fold one mid-price tick into the symbol's state."""
        state = self._states.get(symbol)
        if state is None:
            state = MomentumState(delta_signs=deque(maxlen=self.history))
            self._states[symbol] = state

        if state.ema is None:
            state.ema = mid
        else:
            state.ema += self.alpha * (mid - state.ema)

        if state.last_mid is not None:
            state.delta_signs.append(_sign(mid - state.last_mid))

        state.last_mid = mid
        return state

    def signal(self, symbol: str) -> MomentumSignal:
        """Current classification; neutral when the symbol has no usable state."""
        state = self._states.get(symbol)
        if state is None or state.ema is None or state.last_mid is None:
            return MomentumSignal.NEUTRAL

        if state.ema == 0:
            log.debug("Zero EMA for %s; reporting neutral", symbol)
            return MomentumSignal.NEUTRAL

        pct_diff = (state.last_mid - state.ema) / state.ema
        last_two = list(state.delta_signs)[-2:]
        up_streak = len(last_two) == 2 and all(s > 0 for s in last_two)
        down_streak = len(last_two) == 2 and all(s < 0 for s in last_two)

        if pct_diff > self.threshold and up_streak:
            return MomentumSignal.BULLISH
        if pct_diff < -self.threshold and down_streak:
            return MomentumSignal.BEARISH
        return MomentumSignal.NEUTRAL

    def state(self, symbol: str) -> Optional[MomentumState]:
        return self._states.get(symbol)

    def reset(self, symbol: Optional[str] = None) -> None:
        """Forget one symbol's state, or every symbol's when ``symbol`` is None."""
        if symbol is None:
            self._states.clear()
        else:
            self._states.pop(symbol, None)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._states

    def __len__(self) -> int:
        return len(self._states)
