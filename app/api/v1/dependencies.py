"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for DB sessions, the session user, the
resolved tenant, and application services. Process-wide singletons
(cache store, refresh service, verifiers) are built in the lifespan and
read from app.state; request-scoped objects are built here.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.dtos.tenant import ResolvedTenant
from app.application.dtos.user import SessionClaims
from app.application.services import (
    BackgroundTaskRunner,
    CacheRefreshService,
    ProfileService,
    TenantResolutionService,
    WebhookHandlers,
    WebhookReconciler,
)
from app.core.config import Settings, get_settings
from app.domain.exceptions import AuthenticationException
from app.infrastructure.persistence.database import get_db
from app.infrastructure.persistence.repositories import SqlAlchemyUnitOfWork
from app.infrastructure.security.jwt import claims_from_payload, verify_token
from app.shared.telemetry import add_span_attributes

# ---- Infrastructure ----


def get_app_settings() -> Settings:
    return get_settings()


def get_lookup_cache(request: Request) -> Any:
    """Redis lookup cache, or None when Redis is disabled."""
    return getattr(request.app.state, "cache", None)


async def get_uow(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[Any, Depends(get_lookup_cache)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> SqlAlchemyUnitOfWork:
    """Unit of work on the request session (commit/rollback are explicit)."""
    return SqlAlchemyUnitOfWork(db, cache, cache_ttl=settings.cache_ttl_tenants)


def get_refresh_service(request: Request) -> CacheRefreshService:
    return request.app.state.refresh_service


def get_background_tasks(request: Request) -> BackgroundTaskRunner:
    return request.app.state.background_tasks


def get_profile_service(
    request: Request,
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_uow)],
) -> ProfileService:
    """Profile writes on the request unit of work (same one the tenant was resolved on)."""
    state = request.app.state
    return ProfileService(state.crm_client, state.cache_store, uow)


# ---- Auth (session claims from the identity provider token) ----

_http_bearer = HTTPBearer(auto_error=False)


async def get_session_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_http_bearer)],
) -> SessionClaims:
    """Verified claims of the bearer token; 401 if missing or invalid."""
    if not credentials:
        raise AuthenticationException("Not authenticated")
    try:
        payload = verify_token(credentials.credentials)
    except ValueError as e:
        raise AuthenticationException(str(e)) from e
    return claims_from_payload(payload)


async def get_resolved_tenant(
    request: Request,
    claims: Annotated[SessionClaims, Depends(get_session_claims)],
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_uow)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ResolvedTenant:
    """Resolve user and active tenant; lazily created rows are committed here."""
    requested = request.headers.get(settings.tenant_header_name)
    resolved = await TenantResolutionService(uow).resolve(claims, requested)
    await uow.commit()
    add_span_attributes(
        tenant_id=resolved.tenant.id,
        user_id=resolved.user.id,
        tenant_source=resolved.source.value,
    )
    return resolved


# ---- Webhooks ----


async def get_webhook_reconciler(
    request: Request,
    uow: Annotated[SqlAlchemyUnitOfWork, Depends(get_uow)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> WebhookReconciler:
    """Reconciler with handlers on the request unit of work."""
    state = request.app.state
    handlers = WebhookHandlers(
        state.cache_store,
        uow,
        state.crm_client,
        reject_out_of_order_writes=settings.cache_reject_out_of_order_writes,
    )
    return WebhookReconciler(state.webhook_verifiers, state.webhook_events, handlers, uow)


# Annotated shortcuts used by routes
ResolvedTenantDep = Annotated[ResolvedTenant, Depends(get_resolved_tenant)]
RefreshServiceDep = Annotated[CacheRefreshService, Depends(get_refresh_service)]
ProfileServiceDep = Annotated[ProfileService, Depends(get_profile_service)]
