"""Cache staleness policy.

A record is fresh for ttl after it was written. Records written "in the
future" (clock skew between writers) count as fresh.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from app.application.dtos.cache import CacheRecord
from app.shared.utils.datetime import ensure_utc, utc_now


def is_stale(
    record: CacheRecord | None,
    ttl: timedelta,
    now: datetime | None = None,
) -> bool:
    """Return True when record must be refreshed before it is served.

    Args:
        record: Cached record or None when the key was never written.
        ttl: Maximum age of a fresh record.
        now: Reference time (defaults to current UTC time).

    Returns:
        True if record is None or older than ttl.
    """
    if record is None:
        return True
    reference = ensure_utc(now) if now is not None else utc_now()
    updated_at = ensure_utc(record.updated_at)
    return reference - updated_at > ttl
