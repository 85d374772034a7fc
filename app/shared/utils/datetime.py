"""
UTC datetime utilities for consistent timezone handling.

All datetime values in the system are timezone-aware UTC. Cache
freshness compares these values directly, so naive datetimes must be
normalized at every persistence and wire boundary.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure a datetime is UTC-aware.

    - If None, returns None
    - If naive, assumes UTC and attaches timezone
    - If aware, converts to UTC

    Args:
        dt: A datetime that may be naive or aware

    Returns:
        UTC-aware datetime or None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def from_timestamp_utc(timestamp: float) -> datetime:
    """
    Create a UTC-aware datetime from a Unix timestamp (seconds).

    Args:
        timestamp: Unix timestamp (seconds since epoch)

    Returns:
        UTC-aware datetime
    """
    return datetime.fromtimestamp(timestamp, tz=UTC)


def parse_datetime_utc(value: object) -> datetime | None:
    """
    Parse an upstream timestamp into a UTC-aware datetime.

    Accepts ISO-8601 strings (with or without trailing 'Z'), epoch
    milliseconds (as identity-provider payloads send them) and datetimes.
    Anything unparseable yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None
