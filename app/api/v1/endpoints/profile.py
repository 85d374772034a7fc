"""Profile API: CRM profile served through the tenant-scoped cache, with write-through updates."""

from typing import Any

from fastapi import APIRouter, Request

from app.api.v1.dependencies import ProfileServiceDep, RefreshServiceDep, ResolvedTenantDep
from app.core.limiter import limit_reads
from app.domain.enums import CacheCategory
from app.schemas.account_data import ProfileUpdateRequest

router = APIRouter()


@router.get("/profile")
@limit_reads
async def get_profile(
    request: Request,
    resolved: ResolvedTenantDep,
    refresh_service: RefreshServiceDep,
) -> dict[str, Any]:
    """Cached CRM profile; before the CRM has ever answered, a profile built from the local user."""
    user = resolved.user
    payload = await refresh_service.get_or_refresh(
        CacheCategory.PROFILE,
        resolved.tenant.id,
        user.id,
        subject_id=user.external_user_id,
        tenant_slug=resolved.tenant.slug,
    )
    if isinstance(payload, dict) and payload:
        return payload
    return {
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
        "phone": None,
        "company": None,
        "street": None,
        "city": None,
        "postalCode": None,
        "country": None,
        "vatId": None,
    }


@router.patch("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    resolved: ResolvedTenantDep,
    profile_service: ProfileServiceDep,
) -> dict[str, Any]:
    """Update the profile in the CRM and replace the cached copy for the active tenant.

    CRM failures map to 502/503 and leave the cache untouched.
    """
    return await profile_service.update_profile(resolved, body.changes())
