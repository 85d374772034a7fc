"""Domain enumerations for the accounts service.

Enums represent fixed sets of domain values (cache categories, roles,
webhook sources and states).
"""

from enum import Enum


class CacheCategory(str, Enum):
    """Kind of upstream data mirrored per (tenant, user)."""

    PROFILE = "profile"
    BILLING = "billing"
    ENTITLEMENTS = "entitlements"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid category values as strings."""
        return [category.value for category in cls]


class TenantRole(str, Enum):
    """Role of a user inside a tenant."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    BILLING_ADMIN = "billing_admin"

    @classmethod
    def from_identity_role(cls, role: str | None) -> "TenantRole":
        """Map an identity-provider org role (e.g. 'org:admin') to a tenant role.

        Unknown or missing roles map to MEMBER.
        """
        mapping = {
            "org:owner": cls.OWNER,
            "org:admin": cls.ADMIN,
            "org:billing_admin": cls.BILLING_ADMIN,
            "org:member": cls.MEMBER,
        }
        return mapping.get(role or "", cls.MEMBER)


class MembershipStatus(str, Enum):
    """Membership lifecycle status."""

    ACTIVE = "active"
    REMOVED = "removed"


class WebhookSource(str, Enum):
    """Origin of an inbound webhook."""

    PAYMENTS = "payments"
    CRM = "crm"
    IDENTITY = "identity"


class WebhookStatus(str, Enum):
    """Processing state of a recorded webhook event.

    SKIPPED: verified and recorded but not applied (user or tenant unknown).
    """

    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class TenantSource(str, Enum):
    """How the active tenant of a request was chosen."""

    HEADER = "header"
    ORGANIZATION = "organization"
    PERSONAL = "personal"
