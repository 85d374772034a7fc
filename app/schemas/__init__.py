"""Pydantic request/response schemas for the API."""

from app.schemas.account_data import (
    EntitlementCheckResponse,
    EntitlementsResponse,
    InvoicesResponse,
    ProfileUpdateRequest,
    SubscriptionResponse,
)
from app.schemas.health import HealthResponse, ReadinessErrorResponse, ReadinessResponse
from app.schemas.session import (
    SessionResponse,
    SessionTenant,
    SessionUser,
    TenantSwitchRequest,
    TenantSwitchResponse,
)
from app.schemas.webhook import WebhookResponse

__all__ = [
    "EntitlementCheckResponse",
    "EntitlementsResponse",
    "HealthResponse",
    "InvoicesResponse",
    "ProfileUpdateRequest",
    "ReadinessErrorResponse",
    "ReadinessResponse",
    "SessionResponse",
    "SessionTenant",
    "SessionUser",
    "SubscriptionResponse",
    "TenantSwitchRequest",
    "TenantSwitchResponse",
    "WebhookResponse",
]
