"""Session API: current user with tenants (GET /me) and tenant switch."""

import hashlib
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from app.api.v1.dependencies import (
    RefreshServiceDep,
    ResolvedTenantDep,
    get_background_tasks,
)
from app.application.services import BackgroundTaskRunner
from app.core.limiter import limit_reads
from app.domain.exceptions import AuthorizationException
from app.schemas.session import (
    SessionResponse,
    SessionTenant,
    TenantSwitchRequest,
    TenantSwitchResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _etag(body: dict) -> str:
    digest = hashlib.sha256(json.dumps(body, sort_keys=True).encode()).hexdigest()
    return f'"{digest[:32]}"'


@router.get("/me", response_model=SessionResponse, responses={304: {"description": "Not modified"}})
@limit_reads
async def get_me(request: Request, resolved: ResolvedTenantDep) -> Response:
    """Current user, tenant list and active tenant. Supports If-None-Match."""
    body = SessionResponse.from_resolved(resolved).model_dump(mode="json")
    etag = _etag(body)
    if request.headers.get("if-none-match") == etag:
        return Response(status_code=304, headers={"ETag": etag})
    return JSONResponse(
        content=body,
        headers={"ETag": etag, "Cache-Control": "private, max-age=60"},
    )


@router.post("/tenants/switch", response_model=TenantSwitchResponse)
async def switch_tenant(
    body: TenantSwitchRequest,
    resolved: ResolvedTenantDep,
    refresh_service: RefreshServiceDep,
    background: Annotated[BackgroundTaskRunner, Depends(get_background_tasks)],
) -> TenantSwitchResponse:
    """Switch the active tenant (membership required).

    Caches for the new tenant are refreshed in a detached task; the
    response does not wait for it and its failures are only logged.
    """
    target = next((t for t in resolved.tenants if t.tenant.id == body.tenant_id), None)
    if target is None:
        raise AuthorizationException(
            "You do not have access to this tenant", tenant_id=body.tenant_id
        )

    user = resolved.user
    background.spawn(
        f"refresh-after-switch:{target.tenant.id}:{user.id}",
        refresh_service.refresh_all(
            target.tenant.id,
            user.id,
            subject_id=user.external_user_id,
            tenant_slug=target.tenant.slug,
        ),
    )
    logger.info("User %s switched to tenant %s", user.id, target.tenant.id)
    return TenantSwitchResponse(active_tenant=SessionTenant.from_result(target.tenant, target.role))
