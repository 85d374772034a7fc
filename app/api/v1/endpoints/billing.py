"""Billing API: subscription and invoices from the billing cache."""

from typing import Any

from fastapi import APIRouter, Request

from app.api.v1.dependencies import RefreshServiceDep, ResolvedTenantDep
from app.core.limiter import limit_reads
from app.domain.enums import CacheCategory
from app.schemas.account_data import InvoicesResponse, SubscriptionResponse

router = APIRouter()


async def _billing(resolved: ResolvedTenantDep, refresh_service: RefreshServiceDep) -> dict[str, Any]:
    payload = await refresh_service.get_or_refresh(
        CacheCategory.BILLING,
        resolved.tenant.id,
        resolved.user.id,
        subject_id=resolved.user.external_user_id,
        tenant_slug=resolved.tenant.slug,
    )
    return payload if isinstance(payload, dict) else {}


@router.get("/subscription", response_model=SubscriptionResponse)
@limit_reads
async def get_subscription(
    request: Request,
    resolved: ResolvedTenantDep,
    refresh_service: RefreshServiceDep,
) -> SubscriptionResponse:
    billing = await _billing(resolved, refresh_service)
    return SubscriptionResponse(subscription=billing.get("subscription"))


@router.get("/invoices", response_model=InvoicesResponse)
@limit_reads
async def get_invoices(
    request: Request,
    resolved: ResolvedTenantDep,
    refresh_service: RefreshServiceDep,
) -> InvoicesResponse:
    billing = await _billing(resolved, refresh_service)
    return InvoicesResponse(invoices=billing.get("invoices") or [])
