"""Centralised timestamp handling.

All timestamp parsing and conversion goes through this module.
Internal representation: UTC-aware ``datetime``.
Vendor strings and epoch milliseconds are only seen at provider boundaries.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


__all__ = [
    "DEFAULT_INTERVAL",
    "from_millis",
    "interval_to_timedelta",
    "parse_timestamp",
    "utc_now",
]


DEFAULT_INTERVAL = "5min"

_INTERVAL_SECONDS = {
    "1min": 60,
    "5min": 5 * 60,
    "15min": 15 * 60,
    "30min": 30 * 60,
    "60min": 60 * 60,
}


def utc_now() -> datetime:
    """Current time as a UTC-aware datetime."""
    return datetime.now(timezone.utc)


def from_millis(ms: int | float) -> datetime:
    """Convert milliseconds since epoch to a UTC-aware datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def parse_timestamp(ts: str | int | float, tz_name: str | None = None) -> datetime:
    """Parse any timestamp representation to a UTC-aware datetime.

    Accepted inputs:
      * ISO 8601 string (``T`` or space separator, with or without ``Z``)
      * Integer or float milliseconds since epoch
      * String containing a numeric value (e.g. ``"1640995200000"``)

    Naive strings are interpreted in ``tz_name`` (an IANA zone such as
    ``"US/Eastern"``) when given and known, otherwise as UTC.

    Raises:
        ValueError: if the string is empty or not a recognisable timestamp.
    """
    if isinstance(ts, (int, float)):
        return from_millis(ts)

    s = (ts or "").strip()
    if not s:
        raise ValueError("empty timestamp")

    # String that looks like a number -> treat as milliseconds
    if s.replace(".", "", 1).lstrip("-").isdigit():
        return from_millis(float(s))

    s = s.replace("Z", "+00:00")
    s = s.replace(" ", "T", 1)

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_zone(tz_name))
    return dt.astimezone(timezone.utc)


def _zone(tz_name: str | None):
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def interval_to_timedelta(interval: str) -> timedelta:
    """Map an intraday interval string ("1min".."60min") to its duration.

    Unrecognised intervals fall back to five minutes.
    """
    seconds = _INTERVAL_SECONDS.get(interval.strip().lower(), _INTERVAL_SECONDS[DEFAULT_INTERVAL])
    return timedelta(seconds=seconds)
