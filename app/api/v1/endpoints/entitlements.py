"""Entitlements API: list and per-resource access check from the entitlement cache."""

from typing import Any

from fastapi import APIRouter, Request

from app.api.v1.dependencies import RefreshServiceDep, ResolvedTenantDep
from app.core.limiter import limit_reads
from app.domain.enums import CacheCategory
from app.schemas.account_data import EntitlementCheckResponse, EntitlementsResponse
from app.shared.utils.datetime import parse_datetime_utc, utc_now

router = APIRouter()

_GROUPS = {
    "course_access": "course_access",
    "feature_flags": "feature_flag",
    "resource_limits": "resource_limit",
}


async def _entitlements(resolved: ResolvedTenantDep, refresh_service: RefreshServiceDep) -> list[Any]:
    payload = await refresh_service.get_or_refresh(
        CacheCategory.ENTITLEMENTS,
        resolved.tenant.id,
        resolved.user.id,
        subject_id=resolved.user.external_user_id,
        tenant_slug=resolved.tenant.slug,
    )
    return payload if isinstance(payload, list) else []


@router.get("", response_model=EntitlementsResponse)
@limit_reads
async def list_entitlements(
    request: Request,
    resolved: ResolvedTenantDep,
    refresh_service: RefreshServiceDep,
) -> EntitlementsResponse:
    """All entitlements of the user in the active tenant, also grouped by type."""
    entitlements = await _entitlements(resolved, refresh_service)
    grouped = {
        group: [e for e in entitlements if isinstance(e, dict) and e.get("type") == kind]
        for group, kind in _GROUPS.items()
    }
    return EntitlementsResponse(entitlements=entitlements, grouped=grouped, total=len(entitlements))


@router.get("/{resource_id}", response_model=EntitlementCheckResponse)
@limit_reads
async def check_entitlement(
    request: Request,
    resource_id: str,
    resolved: ResolvedTenantDep,
    refresh_service: RefreshServiceDep,
) -> EntitlementCheckResponse:
    """Whether the user holds an unexpired entitlement for resource_id."""
    entitlements = await _entitlements(resolved, refresh_service)
    entitlement = next(
        (e for e in entitlements if isinstance(e, dict) and e.get("resourceId") == resource_id),
        None,
    )
    if entitlement is None:
        return EntitlementCheckResponse(has_access=False)
    expires_at = parse_datetime_utc(entitlement.get("expiresAt"))
    is_expired = expires_at is not None and expires_at < utc_now()
    return EntitlementCheckResponse(
        has_access=not is_expired, entitlement=entitlement, is_expired=is_expired
    )
