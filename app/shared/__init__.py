"""Shared utilities: telemetry and cross-cutting helpers.

Used by domain, application, and infrastructure. No business logic.
"""

from app.shared.utils import (
    ensure_utc,
    from_timestamp_utc,
    generate_cuid,
    parse_datetime_utc,
    utc_now,
)

__all__ = [
    "generate_cuid",
    "utc_now",
    "ensure_utc",
    "from_timestamp_utc",
    "parse_datetime_utc",
]
