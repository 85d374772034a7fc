"""Session (/me) and tenant switch API schemas."""

from pydantic import BaseModel, ConfigDict, Field

from app.application.dtos.tenant import ResolvedTenant, TenantResult
from app.domain.enums import TenantRole


class SessionUser(BaseModel):
    """The signed-in user."""

    id: str
    external_user_id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    platform_role: str = "user"


class SessionTenant(BaseModel):
    """A tenant the user can act in, with their role."""

    id: str
    name: str
    slug: str
    role: TenantRole
    is_personal: bool
    external_org_id: str | None = None

    @classmethod
    def from_result(cls, tenant: TenantResult, role: TenantRole) -> "SessionTenant":
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            role=role,
            is_personal=tenant.is_personal,
            external_org_id=tenant.external_org_id,
        )


class SessionResponse(BaseModel):
    """Response for GET /me."""

    user: SessionUser
    tenants: list[SessionTenant]
    active_tenant_id: str
    active_tenant: SessionTenant

    @classmethod
    def from_resolved(cls, resolved: ResolvedTenant) -> "SessionResponse":
        user = resolved.user
        return cls(
            user=SessionUser(
                id=user.id,
                external_user_id=user.external_user_id,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                avatar_url=user.avatar_url,
                platform_role=user.platform_role,
            ),
            tenants=[SessionTenant.from_result(t.tenant, t.role) for t in resolved.tenants],
            active_tenant_id=resolved.tenant.id,
            active_tenant=SessionTenant.from_result(resolved.tenant, resolved.role),
        )


class TenantSwitchRequest(BaseModel):
    """Request body for POST /tenants/switch."""

    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(..., min_length=1, alias="tenantId")


class TenantSwitchResponse(BaseModel):
    """Response after a tenant switch. The client sends active_tenant.id in the tenant header from now on."""

    success: bool = True
    active_tenant: SessionTenant
