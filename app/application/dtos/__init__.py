"""Application DTOs (no ORM dependency)."""

from app.application.dtos.cache import CachePayload, CacheRecord, CacheWrite
from app.application.dtos.tenant import (
    MembershipResult,
    ResolvedTenant,
    TenantResult,
    TenantUpsert,
    TenantWithRole,
)
from app.application.dtos.user import SessionClaims, UserResult, UserUpsert
from app.application.dtos.webhook import WebhookEventRecord, WebhookOutcome

__all__ = [
    "CachePayload",
    "CacheRecord",
    "CacheWrite",
    "MembershipResult",
    "ResolvedTenant",
    "SessionClaims",
    "TenantResult",
    "TenantUpsert",
    "TenantWithRole",
    "UserResult",
    "UserUpsert",
    "WebhookEventRecord",
    "WebhookOutcome",
]
