"""DTOs for tenant and membership use cases (no dependency on ORM)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.application.dtos.user import UserResult
from app.domain.enums import MembershipStatus, TenantRole, TenantSource


@dataclass(frozen=True)
class TenantResult:
    """Tenant read-model (result of get_by_id, get_by_external_org_id, etc.)."""

    id: str
    name: str
    slug: str
    is_personal: bool
    external_org_id: str | None = None
    owner_user_id: str | None = None
    logo_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    deleted_at: datetime | None = None


@dataclass(frozen=True)
class TenantUpsert:
    """Fields for creating or updating an organization tenant from the identity provider."""

    external_org_id: str
    name: str
    slug: str
    logo_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MembershipResult:
    """Membership read-model."""

    id: str
    tenant_id: str
    user_id: str
    role: TenantRole
    status: MembershipStatus
    external_membership_id: str | None = None


@dataclass(frozen=True)
class TenantWithRole:
    """A tenant the user belongs to, with their role (for tenant listings)."""

    tenant: TenantResult
    role: TenantRole


@dataclass(frozen=True)
class ResolvedTenant:
    """Outcome of tenant resolution for one request.

    tenant is never None: a valid user always resolves to at least the
    personal tenant.
    """

    user: UserResult
    tenant: TenantResult
    role: TenantRole
    source: TenantSource
    tenants: list[TenantWithRole] = field(default_factory=list)
