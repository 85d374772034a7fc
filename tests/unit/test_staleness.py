"""Unit tests for the cache staleness rule."""

from datetime import UTC, datetime, timedelta

from app.application.dtos.cache import CacheRecord
from app.application.services.staleness import is_stale
from app.domain.enums import CacheCategory

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
TTL = timedelta(minutes=5)


def _record(updated_at: datetime) -> CacheRecord:
    return CacheRecord("t1", "u1", CacheCategory.PROFILE, {}, updated_at)


def test_missing_record_is_stale() -> None:
    assert is_stale(None, TTL, NOW) is True


def test_record_within_ttl_is_fresh() -> None:
    assert is_stale(_record(NOW - timedelta(minutes=4)), TTL, NOW) is False


def test_record_exactly_at_ttl_is_fresh() -> None:
    """Age equal to ttl is not yet stale; only strictly older records are."""
    assert is_stale(_record(NOW - TTL), TTL, NOW) is False


def test_record_older_than_ttl_is_stale() -> None:
    assert is_stale(_record(NOW - TTL - timedelta(seconds=1)), TTL, NOW) is True


def test_future_timestamp_is_fresh() -> None:
    """Clock skew between writers never makes a record stale."""
    assert is_stale(_record(NOW + timedelta(minutes=10)), TTL, NOW) is False


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = datetime(2026, 1, 1, 11, 58)
    assert is_stale(_record(naive), TTL, NOW) is False
