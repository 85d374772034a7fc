"""Persistence models: ORM entities and mixins."""

from app.infrastructure.persistence.models.cache import (
    CACHE_MODELS,
    BillingCache,
    CacheEntryModel,
    EntitlementCache,
    ProfileCache,
)
from app.infrastructure.persistence.models.membership import TenantMembership, UserPreferences
from app.infrastructure.persistence.models.mixins import (
    CuidMixin,
    MetadataMixin,
    SoftDeleteMixin,
    TenantMixin,
    TenantUserModel,
    TimestampMixin,
    UserRefMixin,
)
from app.infrastructure.persistence.models.tenant import Tenant
from app.infrastructure.persistence.models.user import User
from app.infrastructure.persistence.models.webhook_event import WebhookEvent

__all__ = [
    "CACHE_MODELS",
    "BillingCache",
    "CacheEntryModel",
    "CuidMixin",
    "EntitlementCache",
    "MetadataMixin",
    "ProfileCache",
    "SoftDeleteMixin",
    "Tenant",
    "TenantMembership",
    "TenantMixin",
    "TenantUserModel",
    "TimestampMixin",
    "User",
    "UserPreferences",
    "UserRefMixin",
    "WebhookEvent",
]
