"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from app.api.v1.dependencies (no manual repo/service construction).
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    billing,
    entitlements,
    health,
    profile,
    session,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(session.router, tags=["session"])
api_router.include_router(profile.router, tags=["profile"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(entitlements.router, prefix="/entitlements", tags=["entitlements"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
