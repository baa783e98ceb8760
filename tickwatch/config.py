"""Runtime configuration loaded from the environment (and an optional .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from dotenv import load_dotenv

from tickwatch.time_utils import DEFAULT_INTERVAL


__all__ = [
    "DEFAULT_SYMBOLS",
    "Settings",
    "parse_watchlist",
]


DEFAULT_SYMBOLS = ("SPY", "SPXL", "SPXS")

_PROVIDERS = ("alphavantage", "massive", "simulated")
_INTERVALS = ("1min", "5min", "15min", "30min", "60min")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_watchlist(raw: str | Iterable[str]) -> list[str]:
    """
    Normalise a watchlist into upper-case symbols, first occurrence wins.

    Accepts a comma-separated string (as stored by the settings UI) or an
    iterable of symbols. Blank entries are dropped.
    """
    items = raw.split(",") if isinstance(raw, str) else raw

    symbols: list[str] = []
    seen = set()
    for item in items:
        symbol = str(item).strip().upper()
        if symbol and symbol not in seen:
            seen.add(symbol)
            symbols.append(symbol)
    return symbols


@dataclass(frozen=True)
class Settings:
    provider: str = "alphavantage"
    api_key: str = ""
    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    polling_interval: float = 15.0
    intraday_interval: str = DEFAULT_INTERVAL
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> Settings:
        """Build settings from ``TICKWATCH_*`` variables.

        When ``environ`` is omitted a ``.env`` file is loaded first (existing
        process variables take precedence) and ``os.environ`` is read.

        Raises ``ValueError`` with a clear message on unparsable values.
        """
        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ

        raw_interval = environ.get("TICKWATCH_POLLING_INTERVAL", "15")
        try:
            polling_interval = float(raw_interval)
        except ValueError as exc:
            raise ValueError(
                f"TICKWATCH_POLLING_INTERVAL is not numeric: {raw_interval!r}"
            ) from exc

        raw_symbols = environ.get("TICKWATCH_SYMBOLS")
        symbols = parse_watchlist(raw_symbols) if raw_symbols is not None else list(DEFAULT_SYMBOLS)

        return cls(
            provider=environ.get("TICKWATCH_PROVIDER", "alphavantage").strip().lower(),
            api_key=environ.get("TICKWATCH_API_KEY", "").strip(),
            symbols=symbols,
            polling_interval=polling_interval,
            intraday_interval=environ.get("TICKWATCH_INTRADAY_INTERVAL", DEFAULT_INTERVAL).strip(),
            log_level=environ.get("TICKWATCH_LOG_LEVEL", "INFO").strip().upper(),
        )

    def validate(self) -> None:
        """Raise ``ValueError`` describing the first invalid setting."""
        if self.provider not in _PROVIDERS:
            raise ValueError(
                f"Unknown provider {self.provider!r}; expected one of {', '.join(_PROVIDERS)}"
            )
        if not self.api_key:
            raise ValueError("TICKWATCH_API_KEY is not set")
        if not self.symbols:
            raise ValueError("Watchlist is empty")
        if self.polling_interval <= 0:
            raise ValueError(f"polling_interval must be positive, got {self.polling_interval}")
        if self.intraday_interval not in _INTERVALS:
            raise ValueError(
                f"Unsupported intraday interval {self.intraday_interval!r}; "
                f"expected one of {', '.join(_INTERVALS)}"
            )
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level {self.log_level!r}")
