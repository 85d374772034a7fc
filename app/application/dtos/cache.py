"""DTOs for the tenant-scoped cache (no dependency on ORM)."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.domain.enums import CacheCategory

CachePayload = dict[str, Any] | list[Any]


@dataclass(frozen=True)
class CacheRecord:
    """Cached upstream data for one (tenant, user, category).

    payload is opaque JSON owned by the upstream service. updated_at is
    the time the row was last written (UTC-aware).
    """

    tenant_id: str
    user_id: str
    category: CacheCategory
    payload: CachePayload
    updated_at: datetime


@dataclass(frozen=True)
class CacheWrite:
    """Result of an upsert: the stored record and whether this write won.

    applied is False only when an ordering guard rejected an older write,
    or when an insert-if-absent found an existing row.
    """

    record: CacheRecord
    applied: bool
