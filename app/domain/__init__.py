"""Domain layer: enums and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from app.domain.enums import (
    CacheCategory,
    MembershipStatus,
    TenantRole,
    TenantSource,
    WebhookSource,
    WebhookStatus,
)
from app.domain.exceptions import (
    AccountsException,
    AuthenticationException,
    AuthorizationException,
    MalformedWebhookException,
    ResourceNotFoundException,
    TenantNotFoundException,
    ValidationException,
)

__all__ = [
    # Enums
    "CacheCategory",
    "MembershipStatus",
    "TenantRole",
    "TenantSource",
    "WebhookSource",
    "WebhookStatus",
    # Exceptions
    "AccountsException",
    "AuthenticationException",
    "AuthorizationException",
    "MalformedWebhookException",
    "ResourceNotFoundException",
    "TenantNotFoundException",
    "ValidationException",
]
