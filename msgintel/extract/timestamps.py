"""
Timestamp normalization for chat.db values.

chat.db stores times in three encodings and the schema does not say which one
a column uses. The encoding is therefore chosen by magnitude:

    raw > 10**12   nanoseconds since 2001-01-01 (message dates on modern macOS)
    raw < 10**9    seconds since 2001-01-01 (attachment created_date)
    otherwise      plain Unix seconds

Every value is rendered as ISO-8601 UTC with millisecond precision,
e.g. 2023-03-08T20:26:40.000Z.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Seconds between the Unix epoch and Apple's 2001-01-01 reference date
APPLE_EPOCH_OFFSET = 978307200

NANOSECOND_THRESHOLD = 1_000_000_000_000
APPLE_SECONDS_THRESHOLD = 1_000_000_000


def format_utc(dt: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with milliseconds and a Z suffix.

    Naive datetimes are assumed to already be in UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_unix_seconds(raw: Any) -> Optional[float]:
    """
    Convert a raw chat.db timestamp to Unix seconds.

    Returns:
        Seconds since the Unix epoch, or None for absent/zero/non-numeric input.
    """
    if raw is None or isinstance(raw, bool):
        return None

    value: float
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = float(raw)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric timestamp: {raw!r}")
            return None

    if value == 0 or math.isnan(value) or math.isinf(value):
        return None

    if value > NANOSECOND_THRESHOLD:
        # Integer division keeps full precision for 19-digit nanosecond values
        if isinstance(value, int):
            return value // 1_000_000_000 + APPLE_EPOCH_OFFSET
        return math.floor(value / 1_000_000_000) + APPLE_EPOCH_OFFSET

    if value < APPLE_SECONDS_THRESHOLD:
        return value + APPLE_EPOCH_OFFSET

    return value


def normalize_timestamp(raw: Any) -> Optional[str]:
    """
    Normalize a raw chat.db timestamp to an ISO-8601 UTC string.

    Args:
        raw: Integer/float timestamp in any of the three chat.db encodings.

    Returns:
        ISO-8601 string, or None if the input is absent, zero or unrepresentable.

    Examples:
        >>> normalize_timestamp(700000000000000000)
        '2023-03-08T20:26:40.000Z'
        >>> normalize_timestamp(700000000)
        '2023-03-08T20:26:40.000Z'
        >>> normalize_timestamp(1678307200)
        '2023-03-08T20:26:40.000Z'
    """
    seconds = to_unix_seconds(raw)
    if seconds is None:
        return None

    try:
        dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.debug(f"Timestamp out of range: {raw!r}")
        return None

    return format_utc(dt)


def to_apple_nanoseconds(dt: datetime) -> int:
    """
    Convert a datetime to chat.db's nanoseconds-since-2001 encoding.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int((dt.timestamp() - APPLE_EPOCH_OFFSET) * 1_000_000_000)
