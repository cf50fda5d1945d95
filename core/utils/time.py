"""
Time Utilities

This module provides utilities for handling timestamps from different exchanges.

Different exchanges return settlement times in different formats:
- Binance, Bybit, OKX, MEXC: milliseconds since epoch, sometimes as strings
  (e.g., 1704110400000 or "1704110400000")
- Gate.io: seconds since epoch (e.g., 1704110400)
- We need: Python datetime objects in UTC

The utilities in this module normalize all timestamp formats into
consistent UTC datetime objects for use in our Pydantic schemas.
"""

from datetime import datetime, timezone
from typing import Any, Union


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

    Notes:
        - Seconds: ~1.7 billion (current time)
        - Milliseconds: ~1.7 trillion (current time)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def parse_epoch(value: Any) -> datetime:
    """
    Parse an exchange-supplied epoch value into a UTC datetime.

    Accepts ints, floats and numeric strings in seconds or milliseconds.
    Rejects everything that cannot be a real settlement time: None, empty
    strings, booleans, non-numeric strings, zero and negative values.

    Args:
        value: Raw epoch value from an exchange payload

    Returns:
        datetime: Timezone-aware datetime in UTC

    Raises:
        ValueError: If the value is missing or not a valid epoch

    Examples:
        >>> parse_epoch("1704110400000")
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> parse_epoch(None)
        Traceback (most recent call last):
        ...
        ValueError: Missing timestamp
    """
    if value is None or isinstance(value, bool):
        raise ValueError("Missing timestamp")

    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("Missing timestamp")
        try:
            value = float(value)
        except ValueError:
            raise ValueError(f"Non-numeric timestamp: {value!r}")

    if not isinstance(value, (int, float)):
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    # NaN fails every comparison, so test the positive case
    if not value > 0:
        raise ValueError(f"Timestamp must be positive: {value}")

    return to_utc_datetime(value)


def current_utc_datetime() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)
